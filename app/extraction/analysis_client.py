"""Analysis client abstraction layer.

Extended description:
        * Encapsulates Azure AI Document Intelligence setup so swapping the SDK
            version (or vendor) only touches this file.
        * Exposes three async calls used by the page orchestrator:
            analyze_layout (page count), analyze_general (whole document, key/value
            pairs + tables) and analyze_custom (one page, custom / composed model).
        * Converts SDK objects into app.extraction.schemas models; nothing past
            this module sees azure types.
        * Every SDK, network or timeout failure surfaces as AnalysisError.
"""

import asyncio
import logging
import time
from functools import lru_cache
from typing import Any, List, Optional

from azure.ai.documentintelligence.aio import DocumentIntelligenceClient
from azure.ai.documentintelligence.models import AnalyzeDocumentRequest, DocumentAnalysisFeature
from azure.core.credentials import AzureKeyCredential

from app.core.config import get_settings
from app.extraction.schemas import (
    AnalysisResult,
    AnalyzedDocument,
    AnalyzedTable,
    BooleanField,
    KeyValueElement,
    ListField,
    MapField,
    NumberField,
    OtherField,
    SelectionMarkField,
    SignatureField,
    StringField,
    TableCell,
)

logger = logging.getLogger("forms.analysis")

# prebuilt-layout gives the page count, and with the key/value add-on it is
# the v4 replacement of the retired prebuilt-document model.
LAYOUT_MODEL = "prebuilt-layout"


class AnalysisError(RuntimeError):
    """Raised when an analyze call fails, times out or returns nothing usable."""


def _enum_value(value: Any) -> str:
    return str(getattr(value, "value", value) or "")


def convert_field(field: Any):
    """Map one SDK DocumentField onto the AnalyzedField union."""
    kind = _enum_value(getattr(field, "type", None)).lower()
    content = getattr(field, "content", None)
    if kind == "string":
        return StringField(content=content, value=getattr(field, "value_string", None))
    if kind == "boolean":
        return BooleanField(content=content, value=getattr(field, "value_boolean", None))
    if kind == "number":
        return NumberField(content=content, value=getattr(field, "value_number", None))
    if kind == "integer":
        return NumberField(content=content, value=getattr(field, "value_integer", None))
    if kind == "selectionmark":
        state = getattr(field, "value_selection_mark", None)
        return SelectionMarkField(content=content, state=_enum_value(state) or None)
    if kind == "signature":
        state = getattr(field, "value_signature", None)
        return SignatureField(content=content, state=_enum_value(state) or None)
    if kind == "array":
        items = getattr(field, "value_array", None) or []
        return ListField(content=content, items=[convert_field(item) for item in items])
    if kind == "object":
        entries = getattr(field, "value_object", None) or {}
        return MapField(content=content, entries={k: convert_field(v) for k, v in entries.items()})
    return OtherField(content=content, field_type=kind or None)


def _convert_table(table: Any) -> AnalyzedTable:
    cells = [
        TableCell(
            row_index=cell.row_index,
            content=getattr(cell, "content", None) or "",
        )
        for cell in (getattr(table, "cells", None) or [])
    ]
    return AnalyzedTable(cells=cells)


def _convert_key_value_pair(pair: Any) -> KeyValueElement:
    key = getattr(pair, "key", None)
    value = getattr(pair, "value", None)
    return KeyValueElement(
        key=(getattr(key, "content", None) or "") if key is not None else "",
        value=getattr(value, "content", None) if value is not None else None,
    )


def convert_result(result: Any) -> AnalysisResult:
    """Convert an SDK AnalyzeResult (or any object with the same attributes)."""
    documents = [
        AnalyzedDocument(
            doc_type=getattr(doc, "doc_type", None),
            fields={name: convert_field(f) for name, f in (getattr(doc, "fields", None) or {}).items()},
        )
        for doc in (getattr(result, "documents", None) or [])
    ]
    return AnalysisResult(
        model_id=getattr(result, "model_id", None),
        page_count=len(getattr(result, "pages", None) or []),
        documents=documents,
        tables=[_convert_table(t) for t in (getattr(result, "tables", None) or [])],
        key_value_pairs=[_convert_key_value_pair(p) for p in (getattr(result, "key_value_pairs", None) or [])],
    )


class DocumentAnalyzer:
    """Thin async wrapper over DocumentIntelligenceClient.

    Key points:
        - A client is opened per call (async context manager) so concurrent runs
          never share a transport session.
        - Calls are bounded by ``timeout`` seconds when set.
    """

    def __init__(self, endpoint: str, key: str, timeout: Optional[float] = None):
        if not endpoint or not key:
            raise RuntimeError("DOCUMENT_INTELLIGENCE_ENDPOINT and DOCUMENT_INTELLIGENCE_KEY are required.")
        self.endpoint = endpoint
        self.credential = AzureKeyCredential(key)
        self.timeout = timeout

    def _client(self) -> DocumentIntelligenceClient:
        return DocumentIntelligenceClient(endpoint=self.endpoint, credential=self.credential)

    async def _analyze(
        self,
        model_id: str,
        url: str,
        *,
        pages: Optional[str] = None,
        features: Optional[List[str]] = None,
    ) -> AnalysisResult:
        async def _call():
            async with self._client() as client:
                poller = await client.begin_analyze_document(
                    model_id,
                    AnalyzeDocumentRequest(url_source=url),
                    pages=pages,
                    features=features,
                )
                return await poller.result()

        t0 = time.time()
        try:
            raw = await asyncio.wait_for(_call(), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            logger.error("analysis_timeout model=%s url=%s timeout_s=%s", model_id, url, self.timeout)
            raise AnalysisError(f"analysis_timeout model={model_id}") from exc
        except Exception as exc:
            if exc.__cause__ is not None:
                logger.info("analysis_inner_error model=%s err=%s", model_id, exc.__cause__)
            logger.error("analysis_error model=%s url=%s err=%s", model_id, url, exc, exc_info=True)
            raise AnalysisError(f"analysis_error model={model_id}: {exc}") from exc
        if raw is None:
            raise AnalysisError(f"analysis_empty_result model={model_id}")
        latency_ms = int((time.time() - t0) * 1000)
        try:
            result = convert_result(raw)
        except Exception as exc:
            logger.error("analysis_result_unreadable model=%s url=%s err=%s", model_id, url, exc, exc_info=True)
            raise AnalysisError(f"analysis_result_unreadable model={model_id}: {exc}") from exc
        logger.debug(
            "analysis_done model=%s reported_model=%s pages=%s documents=%d tables=%d kv_pairs=%d latency_ms=%d",
            model_id,
            result.model_id,
            pages or "all",
            len(result.documents),
            len(result.tables),
            len(result.key_value_pairs),
            latency_ms,
        )
        return result

    async def analyze_layout(self, url: str) -> int:
        """Return the number of pages in the document."""
        result = await self._analyze(LAYOUT_MODEL, url)
        return result.page_count

    async def analyze_general(self, url: str) -> AnalysisResult:
        """Whole-document layout analysis with key/value pairs."""
        return await self._analyze(LAYOUT_MODEL, url, features=[DocumentAnalysisFeature.KEY_VALUE_PAIRS])

    async def analyze_custom(self, url: str, model_id: str, page_number: int) -> AnalysisResult:
        """Analyze a single page with a custom or composed model."""
        logger.info("analyzing_custom_form model=%s page=%d", model_id, page_number)
        return await self._analyze(model_id, url, pages=str(page_number))


@lru_cache
def get_document_analyzer() -> DocumentAnalyzer:
    settings = get_settings()
    return DocumentAnalyzer(
        settings.DOCUMENT_INTELLIGENCE_ENDPOINT,
        settings.DOCUMENT_INTELLIGENCE_KEY,
        timeout=settings.analysis_timeout,
    )
