"""Pydantic models describing a Document Intelligence analysis result.

Layers / roles:
    AnalyzedField      : Closed tagged union (discriminator ``kind``) over every field shape
                         the analyzer reports: string, boolean, number, selection mark,
                         signature, list, map and "other" (dates, phone numbers, addresses...).
    AnalyzedDocument   : One document recognized by a custom / composed model (doc_type + fields).
    AnalyzedTable      : Layout table made of cells tagged with their row / column index.
    KeyValueElement    : One key/value pair from the key-value-pairs add-on.
    AnalysisResult     : Service-side view of a whole analyze call (page count + the above).

The SDK objects are converted into these models by analysis_client so the
normalization code never touches azure types directly and can be unit tested
with plain data.
"""

from typing import Annotated, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, Field


class _FieldBase(BaseModel):
    # Raw text the analyzer matched for this field, whatever its type.
    content: Optional[str] = None


class StringField(_FieldBase):
    kind: Literal["string"] = "string"
    value: Optional[str] = None


class BooleanField(_FieldBase):
    kind: Literal["boolean"] = "boolean"
    value: Optional[bool] = None


class NumberField(_FieldBase):
    """Covers both ``number`` and ``integer`` analyzer types."""

    kind: Literal["number"] = "number"
    value: Optional[Union[int, float]] = None


class SelectionMarkField(_FieldBase):
    kind: Literal["selection_mark"] = "selection_mark"
    state: Optional[str] = None  # "selected" / "unselected"


class SignatureField(_FieldBase):
    kind: Literal["signature"] = "signature"
    state: Optional[str] = None  # "signed" / "unsigned"


class ListField(_FieldBase):
    kind: Literal["list"] = "list"
    items: List["AnalyzedField"] = Field(default_factory=list)


class MapField(_FieldBase):
    kind: Literal["map"] = "map"
    entries: Dict[str, "AnalyzedField"] = Field(default_factory=dict)


class OtherField(_FieldBase):
    """Any analyzer type without a dedicated variant; only its content is kept."""

    kind: Literal["other"] = "other"
    field_type: Optional[str] = None


AnalyzedField = Annotated[
    Union[
        StringField,
        BooleanField,
        NumberField,
        SelectionMarkField,
        SignatureField,
        ListField,
        MapField,
        OtherField,
    ],
    Field(discriminator="kind"),
]

ListField.model_rebuild()
MapField.model_rebuild()


class AnalyzedDocument(BaseModel):
    """One document found by a custom model.

    doc_type is reported as "<model>:<model>" for plain custom models and
    "<composed model>:<sub model>" when a composed model routed the page.
    """

    doc_type: Optional[str] = None
    fields: Dict[str, AnalyzedField] = Field(default_factory=dict)


class TableCell(BaseModel):
    row_index: int
    content: str = ""


class AnalyzedTable(BaseModel):
    cells: List[TableCell] = Field(default_factory=list)


class KeyValueElement(BaseModel):
    key: str = ""
    value: Optional[str] = None


class AnalysisResult(BaseModel):
    model_id: Optional[str] = None
    page_count: int = 0
    documents: List[AnalyzedDocument] = Field(default_factory=list)
    tables: List[AnalyzedTable] = Field(default_factory=list)
    key_value_pairs: List[KeyValueElement] = Field(default_factory=list)
