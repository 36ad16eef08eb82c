"""
Webhook Ingestor

Synchronous path for Beds24 booking webhooks:
1. Verify HMAC signature over the raw body (when a secret is configured)
2. Deduplicate by event id
3. Store the raw event in webhook_events
4. Dispatch by event type to the mapper/reconciler
5. Mark the event processed

The event row is committed before dispatch, so a failed event stays in the
log with processed=False and can be replayed with replay_event().
"""

import hashlib
import hmac
import json
import logging
import secrets
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..models import WebhookEvent
from ..utils.db_helpers import insert_or_get
from ..utils.logging_config import get_logger
from .booking_mapper import BookingMapper, extract_booking_id, extract_modified_at
from .exceptions import AuthFailed, ValidationError, WebhookProcessingError
from .notifications import GuestNotifier, send_invitation_once
from .reservation_reconciler import ReconcileResult, ReservationReconciler

logger = logging.getLogger(__name__)
audit_log = get_logger(__name__)


CREATE_EVENTS = frozenset({"booking_new", "booking_created", "new_booking"})
UPDATE_EVENTS = frozenset({"booking_modified", "booking_updated"})
CANCEL_EVENTS = frozenset({"booking_cancelled", "booking_deleted"})

DEFAULT_EVENT_TYPE = "booking_update"


@dataclass
class WebhookResult:
    success: bool
    action: str  # created, updated, stale, cancelled, not_found, duplicate, already_processed
    event_id: str
    reservation_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "action": self.action,
            "event_id": self.event_id,
            "reservation_id": self.reservation_id,
        }


def compute_signature(raw_body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def generate_event_id() -> str:
    return f"{int(time.time() * 1000)}-{secrets.token_hex(6)}"


class WebhookIngestor:

    def __init__(
        self,
        session_factory: sessionmaker,
        mapper: BookingMapper,
        reconciler: ReservationReconciler,
        notifier: Optional[GuestNotifier] = None,
        webhook_secret: Optional[str] = None,
    ):
        self.session_factory = session_factory
        self.mapper = mapper
        self.reconciler = reconciler
        self.notifier = notifier or GuestNotifier()
        self.webhook_secret = webhook_secret or None
        if not self.webhook_secret:
            logger.warning("Webhook secret not configured, signatures will NOT be verified")

    # ==================
    # Validation
    # ==================

    def verify_signature(self, raw_body: bytes, signature: Optional[str]) -> bool:
        """
        Verify the hex HMAC-SHA256 of the raw body.
        Returns True if valid or no secret configured.
        """
        if not self.webhook_secret:
            return True
        if not signature:
            return False

        provided = signature.strip().lower()
        if provided.startswith("sha256="):
            provided = provided[len("sha256="):]
        expected = compute_signature(raw_body, self.webhook_secret)
        return hmac.compare_digest(expected, provided)

    @staticmethod
    def parse_body(raw_body: bytes) -> Dict[str, Any]:
        try:
            payload = json.loads(raw_body or b"")
        except (ValueError, UnicodeDecodeError):
            raise ValidationError("Webhook body is not valid JSON")
        if not isinstance(payload, dict):
            raise ValidationError("Webhook body must be a JSON object")
        return payload

    # ==================
    # Entry points
    # ==================

    def handle(self, raw_body: bytes, signature: Optional[str] = None) -> WebhookResult:
        """
        Process one webhook delivery end to end.

        Raises:
            AuthFailed: bad or missing signature; nothing is logged
            ValidationError: body is not a JSON object
            WebhookProcessingError: dispatch failed, event left unprocessed
        """
        if not self.verify_signature(raw_body, signature):
            logger.warning("Rejected webhook with invalid signature")
            raise AuthFailed("Invalid webhook signature")

        payload = self.parse_body(raw_body)

        event_type = str(payload.get("event") or payload.get("type") or DEFAULT_EVENT_TYPE).strip().lower()
        event_id = payload.get("eventId") or payload.get("id")
        generated = False
        if event_id is None or str(event_id).strip() == "":
            event_id = generate_event_id()
            generated = True
            logger.warning(f"Webhook without event id, generated {event_id}; redelivery cannot be deduplicated")
        event_id = str(event_id)

        db = self.session_factory()
        try:
            existing = db.query(WebhookEvent.id).filter(WebhookEvent.event_id == event_id).first()
            if existing is not None:
                audit_log.webhook_event(event_id, event_type, "duplicate")
                return WebhookResult(success=True, action="duplicate", event_id=event_id)

            event, created = insert_or_get(
                db, WebhookEvent,
                {"event_id": event_id},
                {
                    "event_type": event_type,
                    "event_id_generated": generated,
                    "external_booking_id": extract_booking_id(payload),
                    "payload": payload,
                    "processed": False,
                    "received_at": datetime.utcnow(),
                },
            )
            db.commit()

            if not created:
                # Concurrent delivery of the same event won the insert
                audit_log.webhook_event(event_id, event_type, "duplicate")
                return WebhookResult(success=True, action="duplicate", event_id=event_id)

            return self._process(db, event)
        finally:
            db.close()

    def replay_event(self, event_id: str) -> Optional[WebhookResult]:
        """Re-run dispatch for a logged event. Returns None for an unknown id."""
        db = self.session_factory()
        try:
            event = db.query(WebhookEvent).filter(WebhookEvent.event_id == event_id).first()
            if event is None:
                return None
            if event.processed:
                return WebhookResult(success=True, action="already_processed", event_id=event_id)

            logger.info(f"Replaying webhook event {event_id}")
            return self._process(db, event)
        finally:
            db.close()

    # ==================
    # Processing
    # ==================

    def _process(self, db: Session, event: WebhookEvent) -> WebhookResult:
        start_time = time.time()
        event_id = event.event_id
        event_type = event.event_type or DEFAULT_EVENT_TYPE

        try:
            result = self.dispatch(db, event_type, event.payload)
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(f"Webhook {event_id} ({event_type}) failed: {e}", exc_info=True)
            self._record_failure(db, event_id, str(e))
            raise WebhookProcessingError(f"Failed to process webhook {event_id}", event_id=event_id, cause=e)

        if result.action == "created" and result.reservation is not None:
            send_invitation_once(db, self.notifier, result.reservation)

        self._mark_processed(db, event_id, result.action)

        audit_log.webhook_event(
            event_id, event_type, result.action,
            duration_ms=round((time.time() - start_time) * 1000, 1),
        )
        return WebhookResult(
            success=True,
            action=result.action,
            event_id=event_id,
            reservation_id=result.reservation_id,
        )

    def dispatch(self, db: Session, event_type: str, payload: Dict[str, Any]) -> ReconcileResult:
        """Route an event to the create/update or cancellation path"""
        if event_type in CANCEL_EVENTS:
            booking_id = extract_booking_id(payload)
            if not booking_id:
                raise ValidationError("Cancellation event has no booking id")
            return self.reconciler.cancel(db, booking_id, extract_modified_at(payload))

        if event_type not in CREATE_EVENTS and event_type not in UPDATE_EVENTS:
            logger.info(f"Unrecognized event type '{event_type}', handling as booking create")

        mapped = self.mapper.map(db, payload)
        return self.reconciler.upsert_from_mapped(db, mapped)

    def _mark_processed(self, db: Session, event_id: str, action: str) -> None:
        try:
            db.query(WebhookEvent).filter(WebhookEvent.event_id == event_id).update(
                {
                    "processed": True,
                    "result_action": action,
                    "error_message": None,
                    "processed_at": datetime.utcnow(),
                },
                synchronize_session=False,
            )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Webhook {event_id} applied but could not be marked processed: {e}")

    def _record_failure(self, db: Session, event_id: str, error: str) -> None:
        try:
            db.query(WebhookEvent).filter(WebhookEvent.event_id == event_id).update(
                {"error_message": error[:1000]},
                synchronize_session=False,
            )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Could not record failure on webhook {event_id}: {e}")

    # ==================
    # Event log reads
    # ==================

    def list_events(self, processed: Optional[bool] = None, limit: int = 50) -> List[WebhookEvent]:
        db = self.session_factory()
        try:
            query = db.query(WebhookEvent)
            if processed is not None:
                query = query.filter(WebhookEvent.processed == processed)
            return query.order_by(WebhookEvent.received_at.desc()).limit(limit).all()
        finally:
            db.close()

    def unprocessed_count(self) -> int:
        db = self.session_factory()
        try:
            return db.query(WebhookEvent).filter(WebhookEvent.processed.is_(False)).count()
        finally:
            db.close()
