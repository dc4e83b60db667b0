"""Page-level orchestration for one inbound document.

A run turns one blob URL into one persisted FormPage per page:

    Start -> LayoutAnalyzed -> PageLoop -> Complete | Aborted

and, inside the loop, for every page:

    Created -> Persisted(Processing) -> Analyzed -> Persisted(Succeeded)

Pages are processed strictly in order, one at a time, so a later page's
failure can never touch an earlier page's Succeeded record. The first failure
at any step aborts the run: nothing is raised to the caller, the reason is
logged and reported in the returned FormRunResult.

Error handling:
    * Missing model selector      -> abort before any external call.
    * Layout failure / zero pages -> abort, nothing persisted.
    * Upsert failure              -> abort immediately.
    * Analysis failure            -> abort; the page stays Processing unless
                                     mark_failed_on_abort is enabled, in which
                                     case a best-effort Failed upsert follows.
"""

import logging
import time
import uuid
from typing import Optional

from app.core.config import get_settings
from app.extraction.analysis_client import AnalysisError, DocumentAnalyzer, get_document_analyzer
from app.extraction.general_tables import extract_general_tables, promote_selected_cells
from app.extraction.norm_helper import normalize_document
from app.forms.form_schemas import (
    GENERAL_DOCUMENT_MODEL,
    FormPage,
    FormRunResult,
    KeyValueEntry,
    ProcessingStatus,
)
from app.storage.cosmos_store import FormStore, PersistenceError, get_form_store

logger = logging.getLogger("forms.processor")


def is_general_model(model_type: str) -> bool:
    return model_type.strip().lower() == GENERAL_DOCUMENT_MODEL.lower()


class FormProcessor:
    """Drives analysis and status tracking for every page of a document.

    The analyzer and store are injected; the store's Cosmos client is shared
    process-wide, everything else belongs to the run.
    """

    def __init__(
        self,
        analyzer: DocumentAnalyzer,
        store: FormStore,
        model_type: str,
        *,
        mark_failed_on_abort: bool = False,
    ):
        self.analyzer = analyzer
        self.store = store
        self.model_type = (model_type or "").strip()
        self.mark_failed_on_abort = mark_failed_on_abort

    async def _analyze_general(self, page: FormPage) -> None:
        result = await self.analyzer.analyze_general(page.blob_url)
        for pair in result.key_value_pairs:
            page.key_value_pairs.append(KeyValueEntry(key=pair.key, value=pair.value or ""))
        page.tables.extend(extract_general_tables(result.tables).rows)

    async def _analyze_custom(self, page: FormPage) -> None:
        result = await self.analyzer.analyze_custom(page.blob_url, self.model_type, page.page_number)
        selected = promote_selected_cells(result.tables)
        for document in result.documents:
            logger.debug("parsing_document page=%d doc_type=%s", page.page_number, document.doc_type)
            form_document = normalize_document(document)
            form_document.fields.update(selected)
            page.documents.append(form_document)

    async def analyze_page(self, page: FormPage) -> None:
        """Populate ``page`` from the analyzer chosen by the model selector."""
        if is_general_model(self.model_type):
            await self._analyze_general(page)
        else:
            await self._analyze_custom(page)

    async def _mark_failed(self, page: FormPage, run_id: str) -> None:
        page.advance(ProcessingStatus.FAILED)
        try:
            await self.store.upsert(page)
        except PersistenceError as exc:
            logger.warning("mark_failed_upsert_error run_id=%s page=%d err=%s", run_id, page.page_number, exc)

    def _abort(
        self,
        outcome: FormRunResult,
        reason: str,
        start: float,
        page_number: Optional[int] = None,
    ) -> FormRunResult:
        outcome.status = ProcessingStatus.FAILED
        outcome.reason = reason
        outcome.aborted_page = page_number
        outcome.elapsed_ms = int((time.time() - start) * 1000)
        logger.warning(
            "form_run_aborted url=%s reason=%s page=%s pages_done=%d elapsed_ms=%d",
            outcome.blob_url,
            reason,
            page_number,
            sum(1 for p in outcome.pages if p.processing_status == ProcessingStatus.SUCCEEDED),
            outcome.elapsed_ms,
        )
        return outcome

    async def process_blob(self, blob_url: str) -> FormRunResult:
        """Run the full page loop for one blob and report how it ended."""
        start = time.time()
        run_id = uuid.uuid4().hex[:12]
        outcome = FormRunResult(blob_url=blob_url, status=ProcessingStatus.PROCESSING)

        if not self.model_type:
            logger.error("model_type_not_set run_id=%s url=%s", run_id, blob_url)
            return self._abort(outcome, "configuration_missing", start)

        # Document-level placeholder; only page records are ever persisted.
        aggregate = FormPage(blob_url=blob_url, model_type_proposed=self.model_type)

        try:
            page_count = await self.analyzer.analyze_layout(blob_url)
        except AnalysisError as exc:
            logger.error("layout_analysis_failed run_id=%s url=%s err=%s", run_id, blob_url, exc)
            return self._abort(outcome, "layout_failed", start)
        if page_count < 1:
            logger.warning("layout_no_pages run_id=%s url=%s", run_id, blob_url)
            return self._abort(outcome, "no_pages", start)

        outcome.total_pages = page_count
        logger.info(
            "form_run_start run_id=%s url=%s pages=%d model=%s", run_id, blob_url, page_count, self.model_type
        )

        for page_number in range(1, page_count + 1):
            page = FormPage(
                blob_url=blob_url,
                model_type_proposed=self.model_type,
                page_number=page_number,
            )
            outcome.pages.append(page)

            try:
                await self.store.upsert(page)
            except PersistenceError:
                return self._abort(outcome, "persistence_failed", start, page_number)

            try:
                await self.analyze_page(page)
            except AnalysisError as exc:
                logger.error("page_analysis_failed run_id=%s page=%d err=%s", run_id, page_number, exc)
                if self.mark_failed_on_abort:
                    await self._mark_failed(page, run_id)
                return self._abort(outcome, "analysis_failed", start, page_number)

            page.advance(ProcessingStatus.SUCCEEDED)
            try:
                await self.store.upsert(page)
            except PersistenceError:
                return self._abort(outcome, "persistence_failed", start, page_number)
            logger.info(
                "page_succeeded run_id=%s page=%d/%d documents=%d kv_pairs=%d tables=%d",
                run_id,
                page_number,
                page_count,
                len(page.documents),
                len(page.key_value_pairs),
                len(page.tables),
            )

        aggregate.advance(ProcessingStatus.SUCCEEDED)
        outcome.status = aggregate.processing_status
        outcome.elapsed_ms = int((time.time() - start) * 1000)
        logger.info("form_run_complete run_id=%s pages=%d elapsed_ms=%d", run_id, page_count, outcome.elapsed_ms)
        return outcome


def get_form_processor() -> FormProcessor:
    """Build a processor from settings (analyzer + shared store)."""
    settings = get_settings()
    return FormProcessor(
        get_document_analyzer(),
        get_form_store(),
        settings.MODEL_TYPE,
        mark_failed_on_abort=settings.MARK_FAILED_ON_ABORT,
    )
