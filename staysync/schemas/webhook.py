"""
Webhook Schemas

Responses for the webhook receiver and the event-log ops endpoints.
"""

from datetime import datetime
from typing import Optional, List, Dict, Any
from pydantic import BaseModel


class WebhookResponse(BaseModel):
    """Body returned to Beds24 for every accepted delivery"""
    success: bool
    action: str
    event_id: Optional[str] = None
    reservation_id: Optional[str] = None


class WebhookEventResponse(BaseModel):
    id: str
    event_id: str
    event_id_generated: bool
    event_type: Optional[str]
    external_booking_id: Optional[str]
    processed: bool
    result_action: Optional[str]
    error_message: Optional[str]
    received_at: Optional[datetime]
    processed_at: Optional[datetime]
    payload: Optional[Dict[str, Any]] = None

    class Config:
        from_attributes = True


class WebhookEventListResponse(BaseModel):
    total: int
    events: List[WebhookEventResponse]
