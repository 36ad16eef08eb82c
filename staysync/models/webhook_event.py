"""
Webhook Event Log Model

Every inbound webhook is written here before it is processed, so the raw
payload survives even when processing fails and can be replayed by hand.
The unique event_id is what makes processing at-most-once.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Boolean, JSON, Index
from ..database import Base


class WebhookEvent(Base):
    __tablename__ = "webhook_events"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Dedup key from the sender; generated when the sender omits one
    event_id = Column(String(255), nullable=False, unique=True)
    event_id_generated = Column(Boolean, default=False, nullable=False)
    event_type = Column(String(100), nullable=True)

    external_booking_id = Column(String(255), nullable=True)

    # Raw payload as received
    payload = Column(JSON, nullable=False)

    # Processing result
    processed = Column(Boolean, default=False, nullable=False)
    result_action = Column(String(50), nullable=True)  # created, updated, cancelled, not_found, stale
    error_message = Column(String(1000), nullable=True)

    received_at = Column(DateTime, default=datetime.utcnow)
    processed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_webhook_events_processed", "processed", "received_at"),
        Index("ix_webhook_events_booking", "external_booking_id"),
    )

    def __repr__(self):
        return f"<WebhookEvent {self.event_id} {self.event_type} processed={self.processed}>"
