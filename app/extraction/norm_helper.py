"""Normalization layer converting AnalyzedDocument -> FormDocument.

Kept apart from both the analysis client and the page orchestrator so the
mapping from heterogeneous analyzer fields to the flat stored shape can be
unit tested with plain pydantic data.

Flows handled:
    - Scalar fields (string, boolean, number, selection mark, signature, other)
      collapse to one canonical string via coerce_field_value.
    - List fields are custom tables: each item is a map field (one row) whose
      entries are coerced column by column.
"""

import logging
from decimal import Decimal
from typing import Callable, Dict, List

from app.extraction.schemas import (
    AnalyzedDocument,
    BooleanField,
    ListField,
    MapField,
    NumberField,
    OtherField,
    SelectionMarkField,
    SignatureField,
    StringField,
)
from app.forms.form_schemas import FormDocument

logger = logging.getLogger("forms.normalize")


def _format_number(value) -> str:
    if isinstance(value, float):
        # Plain decimal notation, never exponent form (1e-05 -> 0.00001).
        return str(int(value)) if value.is_integer() else format(Decimal(repr(value)), "f")
    return str(value)


def _coerce_string(field: StringField) -> str:
    return field.value if field.value is not None else (field.content or "")


def _coerce_boolean(field: BooleanField) -> str:
    return str(field.value is True)


def _coerce_number(field: NumberField) -> str:
    if field.value is None:
        return field.content or ""
    return _format_number(field.value)


def _coerce_selection_mark(field: SelectionMarkField) -> str:
    return str((field.state or "").lower() == "selected")


def _coerce_signature(field: SignatureField) -> str:
    return str((field.state or "").lower() == "signed")


def _coerce_structural(field) -> str:
    # Lists and maps are tables / rows, handled by the caller.
    return ""


def _coerce_other(field: OtherField) -> str:
    logger.debug("unmapped_field_type type=%s", field.field_type)
    return field.content or ""


_COERCERS: Dict[type, Callable[..., str]] = {
    StringField: _coerce_string,
    BooleanField: _coerce_boolean,
    NumberField: _coerce_number,
    SelectionMarkField: _coerce_selection_mark,
    SignatureField: _coerce_signature,
    ListField: _coerce_structural,
    MapField: _coerce_structural,
    OtherField: _coerce_other,
}


def coerce_field_value(field) -> str:
    """Return the canonical string for one analyzed field.

    Total over the field union: unknown shapes fall through to their raw
    content and never raise.
    """
    coercer = _COERCERS.get(type(field), _coerce_other)
    return coercer(field)


def _table_rows(table_name: str, field: ListField) -> List[Dict[str, str]]:
    rows: List[Dict[str, str]] = []
    for idx, row in enumerate(field.items):
        if not isinstance(row, MapField):
            raise ValueError(f"table_row_not_a_map table={table_name} row={idx} kind={row.kind}")
        rows.append({column: coerce_field_value(value) for column, value in row.entries.items()})
    return rows


def normalize_document(document: AnalyzedDocument) -> FormDocument:
    """Return the stored FormDocument for one custom-model document.

    A failure on one top-level field is logged and only that field (or table)
    is dropped; the rest of the document is still returned.
    """
    out = FormDocument(model_type_actual=document.doc_type)
    for name, field in document.fields.items():
        try:
            if isinstance(field, ListField):
                out.tables[name] = _table_rows(name, field)
            else:
                out.fields[name] = coerce_field_value(field)
        except Exception as exc:
            logger.error("field_normalize_failed doc_type=%s field=%s err=%s", document.doc_type, name, exc)
    return out
