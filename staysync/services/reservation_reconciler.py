"""
Reservation Reconciler

Applies MappedBooking records to the reservations table:
- create-or-update keyed on external_booking_id (atomic insert-or-get)
- only fields present in the payload are written, so staff edits to
  anything else survive re-syncs
- id and check_in_token are set once at creation and never touched again
- updates older than the stored upstream modification time are skipped
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ..models import Reservation, ReservationStatus
from ..utils.db_helpers import insert_or_get
from ..utils.logging_config import get_logger
from .booking_mapper import MappedBooking

logger = logging.getLogger(__name__)
audit_log = get_logger(__name__)

# Fields an update may overwrite; identity and token are not among them
MUTABLE_FIELDS = (
    "property_id", "room_type_id", "room_unit_id",
    "guest_given_name", "guest_family_name", "guest_email", "guest_phone", "lang",
    "check_in_date", "check_out_date", "num_adults", "num_children", "num_guests",
    "total_amount", "currency", "status", "booking_source", "special_requests",
    "source_modified_at",
)


def generate_check_in_token() -> str:
    return secrets.token_urlsafe(32)


@dataclass
class ReconcileResult:
    action: str  # created, updated, stale, cancelled, not_found
    reservation: Optional[Reservation] = None

    @property
    def reservation_id(self) -> Optional[str]:
        return self.reservation.id if self.reservation is not None else None


class ReservationReconciler:
    """Writes reservations; the caller owns the transaction."""

    def upsert_from_mapped(self, db: Session, mapped: MappedBooking) -> ReconcileResult:
        values = {
            name: getattr(mapped, name)
            for name in MUTABLE_FIELDS
            if getattr(mapped, name) is not None
        }
        create_values = dict(values)
        create_values.setdefault("status", ReservationStatus.NEW.value)
        create_values.setdefault("num_guests", 1)
        create_values["check_in_token"] = generate_check_in_token()

        reservation, created = insert_or_get(
            db, Reservation,
            {"external_booking_id": mapped.external_booking_id},
            create_values,
        )
        if created:
            audit_log.reservation_reconciled(reservation.id, mapped.external_booking_id, "created")
            return ReconcileResult(action="created", reservation=reservation)

        if self.is_stale(reservation, mapped.source_modified_at):
            logger.info(
                f"Skipping stale update for {mapped.external_booking_id}: "
                f"{mapped.source_modified_at} < {reservation.source_modified_at}"
            )
            return ReconcileResult(action="stale", reservation=reservation)

        for name, value in values.items():
            setattr(reservation, name, value)
        reservation.updated_at = datetime.utcnow()
        db.flush()

        audit_log.reservation_reconciled(reservation.id, mapped.external_booking_id, "updated")
        return ReconcileResult(action="updated", reservation=reservation)

    @staticmethod
    def is_stale(reservation: Reservation, incoming: Optional[datetime]) -> bool:
        """An update is stale only when both sides carry a timestamp and ours is newer"""
        if incoming is None or reservation.source_modified_at is None:
            return False
        return incoming < reservation.source_modified_at

    def cancel(
        self,
        db: Session,
        external_booking_id: str,
        modified_at: Optional[datetime] = None,
    ) -> ReconcileResult:
        """
        Mark a reservation cancelled. Unknown ids are a logged no-op.

        A cancellation always applies. Its modification time is recorded when
        newer than the stored one, so updates issued before the cancellation
        but delivered after it are skipped as stale.
        """
        reservation = db.query(Reservation).filter(
            Reservation.external_booking_id == external_booking_id
        ).first()

        if reservation is None:
            logger.info(f"Cancellation for unknown booking {external_booking_id}, nothing to do")
            return ReconcileResult(action="not_found")

        changed = False
        if reservation.status != ReservationStatus.CANCELLED.value:
            reservation.status = ReservationStatus.CANCELLED.value
            changed = True
        if modified_at is not None and (
            reservation.source_modified_at is None or modified_at > reservation.source_modified_at
        ):
            reservation.source_modified_at = modified_at
            changed = True
        if changed:
            reservation.updated_at = datetime.utcnow()
            db.flush()

        audit_log.reservation_reconciled(reservation.id, external_booking_id, "cancelled")
        return ReconcileResult(action="cancelled", reservation=reservation)

    # ==================
    # Reads for the guest and admin flows
    # ==================

    def get(self, db: Session, reservation_id: str) -> Optional[Reservation]:
        return db.get(Reservation, reservation_id)

    def get_by_check_in_token(self, db: Session, check_in_token: str) -> Optional[Reservation]:
        if not check_in_token:
            return None
        return db.query(Reservation).filter(Reservation.check_in_token == check_in_token).first()

    def get_by_external_id(self, db: Session, external_booking_id: str) -> Optional[Reservation]:
        return db.query(Reservation).filter(
            Reservation.external_booking_id == external_booking_id
        ).first()
