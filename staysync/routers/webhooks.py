"""
Webhook Endpoints

POST /webhooks/{source} is called by Beds24. Processing is synchronous: the
response tells the sender whether the booking was applied. Every logged event
id answers 200 "duplicate" on redelivery, including events whose processing
failed; those are recovered only through the replay endpoint.

The /api/webhooks routes let an operator inspect the event log and replay
events that failed.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.concurrency import run_in_threadpool

from ..schemas.webhook import WebhookEventListResponse, WebhookEventResponse, WebhookResponse
from ..services.container import ServiceContainer
from ..services.exceptions import AuthFailed, ValidationError, WebhookProcessingError
from ..utils.dependencies import get_request_id, get_services, http_error, require_admin_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])
ops_router = APIRouter(
    prefix="/api/webhooks",
    tags=["Webhook Ops"],
    dependencies=[Depends(require_admin_token)],
)


@router.post("/{source}", response_model=WebhookResponse)
async def receive_webhook(
    source: str,
    request: Request,
    services: ServiceContainer = Depends(get_services),
):
    """
    Receive a booking webhook.

    - 401: signature missing or wrong (only when a secret is configured)
    - 400: body is not a JSON object
    - 500: mapping or reconciliation failed; the event stays logged for replay
    """
    request_id = get_request_id(request)
    settings = services.settings

    if source.lower() != settings.booking_source.lower():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown webhook source: {source}")

    body = await request.body()
    signature = request.headers.get(settings.signature_header)

    try:
        result = await run_in_threadpool(services.ingestor.handle, body, signature)
    except AuthFailed as e:
        logger.warning(f"[{request_id}] Webhook rejected: {e.message}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")
    except ValidationError as e:
        raise http_error(e)
    except WebhookProcessingError as e:
        logger.error(f"[{request_id}] Webhook {e.event_id} failed, kept for replay")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"message": "Webhook processing failed", "event_id": e.event_id},
        )

    return WebhookResponse(**result.to_dict())


@ops_router.get("/events", response_model=WebhookEventListResponse)
def list_webhook_events(
    processed: Optional[bool] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    services: ServiceContainer = Depends(get_services),
):
    """List logged events, newest first. processed=false shows what needs replay."""
    events = services.ingestor.list_events(processed=processed, limit=limit)
    return WebhookEventListResponse(
        total=len(events),
        events=[WebhookEventResponse.model_validate(e) for e in events],
    )


@ops_router.post("/events/{event_id}/replay", response_model=WebhookResponse)
def replay_webhook_event(
    event_id: str,
    services: ServiceContainer = Depends(get_services),
):
    try:
        result = services.ingestor.replay_event(event_id)
    except WebhookProcessingError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"message": "Replay failed", "event_id": e.event_id, "error": e.raw_error},
        )

    if result is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Webhook event not found")
    return WebhookResponse(**result.to_dict())
