"""Event Grid webhook: the ingestion entry point.

Endpoint: POST /api/events

Event Grid delivers a JSON array of events (Event Grid schema). Handling per
event type:
    * Microsoft.EventGrid.SubscriptionValidationEvent -> echo the validation code
      (webhook handshake done once when the subscription is created).
    * Microsoft.Storage.BlobCreated -> read data.url and schedule one form run
      in the background; the response returns before analysis starts.
    * anything else -> ignored.

A body that does not parse as events is logged and answered with 400. Runs
never raise into the host: every failure ends up in the log.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Union

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from app.forms.processor import FormProcessor, get_form_processor

logger = logging.getLogger("forms.events")
router_events = APIRouter()

BLOB_CREATED_EVENT = "Microsoft.Storage.BlobCreated"
SUBSCRIPTION_VALIDATION_EVENT = "Microsoft.EventGrid.SubscriptionValidationEvent"


class EventGridEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[str] = None
    event_type: str = Field(alias="eventType")
    subject: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)


_EVENTS = TypeAdapter(Union[List[EventGridEvent], EventGridEvent])


def parse_events(payload: Any) -> List[EventGridEvent]:
    """Parse an Event Grid body (array or single event); raises ValidationError."""
    parsed = _EVENTS.validate_python(payload)
    return parsed if isinstance(parsed, list) else [parsed]


def blob_url_from_event(event: EventGridEvent) -> Optional[str]:
    """Return the created blob's URL, or None for any other event type."""
    if event.event_type != BLOB_CREATED_EVENT:
        return None
    url = event.data.get("url")
    if not isinstance(url, str) or not url.strip():
        raise ValueError("blob_created_event_without_url")
    return url.strip()


async def run_form_pipeline(build_processor: Callable[[], FormProcessor], blob_url: str, subject: Optional[str]) -> None:
    """Background task body: one sequential run per created blob."""
    logger.info("processing_blob subject=%s url=%s", subject, blob_url)
    try:
        processor = build_processor()
        result = await processor.process_blob(blob_url)
    except Exception as exc:
        logger.error("form_run_crashed url=%s err=%s", blob_url, exc, exc_info=True)
        return
    logger.info(
        "form_run_finished url=%s status=%s pages=%d reason=%s elapsed_ms=%d",
        blob_url,
        result.status.value,
        result.total_pages,
        result.reason,
        result.elapsed_ms,
    )


def get_processor_factory() -> Callable[[], FormProcessor]:
    return get_form_processor


@router_events.post(
    "/api/events",
    responses={400: {"description": "Malformed notification"}},
)
async def receive_events(
    request: Request,
    background_tasks: BackgroundTasks,
    build_processor: Callable[[], FormProcessor] = Depends(get_processor_factory),
):
    try:
        events = parse_events(await request.json())
    except (ValidationError, ValueError) as exc:
        logger.error("malformed_notification err=%s", exc)
        return JSONResponse(status_code=400, content={"detail": "malformed_notification"})

    scheduled = 0
    for event in events:
        if event.event_type == SUBSCRIPTION_VALIDATION_EVENT:
            code = event.data.get("validationCode")
            logger.info("subscription_validation event_id=%s", event.id)
            return {"validationResponse": code}
        try:
            blob_url = blob_url_from_event(event)
        except ValueError as exc:
            logger.error("blob_url_missing event_id=%s subject=%s err=%s", event.id, event.subject, exc)
            continue
        if blob_url is None:
            logger.debug("event_ignored event_id=%s type=%s", event.id, event.event_type)
            continue
        background_tasks.add_task(run_form_pipeline, build_processor, blob_url, event.subject)
        scheduled += 1

    return JSONResponse(status_code=202 if scheduled else 200, content={"scheduled": scheduled})
