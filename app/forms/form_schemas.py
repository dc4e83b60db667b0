"""Pydantic models for the records written to Cosmos DB.

One FormPage is persisted per page of an inbound document. Field names are
snake_case in Python and camelCase in the stored JSON (``blobUrl``,
``processingStatus``...), so the container keeps the shape consumers of the
``forms`` collection already query.

Backward compatibility considerations:
    * Adding new optional fields is safe (consumers ignore unknown keys).
    * Renaming aliases would be a breaking change for stored documents.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Well-known selector for the pre-built general document path; any other
# MODEL_TYPE value is treated as a custom or composed model id.
GENERAL_DOCUMENT_MODEL = "GeneralDocument"


class ProcessingStatus(str, Enum):
    PROCESSING = "Processing"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"


# Forward-only status moves; Succeeded and Failed are terminal.
_ALLOWED_TRANSITIONS = {
    ProcessingStatus.PROCESSING: {ProcessingStatus.SUCCEEDED, ProcessingStatus.FAILED},
    ProcessingStatus.SUCCEEDED: set(),
    ProcessingStatus.FAILED: set(),
}


class _CosmosModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class KeyValueEntry(_CosmosModel):
    key: str
    value: str = ""


class FormDocument(_CosmosModel):
    """Normalized output of one custom-model document on a page.

    tables maps table name -> rows; each row maps column name -> value.
    """

    model_type_actual: Optional[str] = None
    fields: Dict[str, str] = Field(default_factory=dict)
    tables: Dict[str, List[Dict[str, str]]] = Field(default_factory=dict)


class FormPage(_CosmosModel):  # Tracking record; the unit of work and status
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    blob_url: str
    model_type_proposed: str
    page_number: int = 0
    processing_status: ProcessingStatus = ProcessingStatus.PROCESSING
    # General document path only
    key_value_pairs: List[KeyValueEntry] = Field(default_factory=list)
    tables: List[List[str]] = Field(default_factory=list)
    # Custom model path only
    documents: List[FormDocument] = Field(default_factory=list)
    last_updated: Optional[datetime] = None

    def advance(self, status: ProcessingStatus) -> None:
        """Move to ``status``; raises ValueError on a backward or terminal move."""
        if status not in _ALLOWED_TRANSITIONS[self.processing_status]:
            raise ValueError(
                f"invalid_status_transition {self.processing_status.value}->{status.value}"
            )
        self.processing_status = status

    def to_cosmos(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class FormRunResult(BaseModel):  # Outcome of one notification; logged, never persisted
    blob_url: str
    status: ProcessingStatus
    total_pages: int = 0
    pages: List[FormPage] = Field(default_factory=list)
    aborted_page: Optional[int] = None
    reason: Optional[str] = None
    elapsed_ms: int = 0
