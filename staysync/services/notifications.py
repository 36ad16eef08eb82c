"""
Guest notification hook.

The booking pipeline calls notify_reservation_created once per new
reservation. Email rendering and delivery live outside this service; the
default notifier only logs so deployments without mail still work.
"""

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from ..models import Reservation

logger = logging.getLogger(__name__)


class GuestNotifier:
    """Base notifier. Subclasses deliver the check-in invitation."""

    def notify_reservation_created(self, reservation: Reservation) -> None:
        if not reservation.guest_email:
            logger.info(f"Reservation {reservation.id} has no guest email, invitation skipped")
            return
        logger.info(
            f"Check-in invitation pending for reservation {reservation.id} "
            f"({reservation.external_booking_id})"
        )


def send_invitation_once(db: Session, notifier: GuestNotifier, reservation: Reservation) -> bool:
    """
    Notify the guest unless this reservation was already notified.

    Keyed on invitation_sent_at so repeated deliveries of the same booking
    never send twice. A notifier failure is logged and leaves the stamp unset.
    """
    if reservation.invitation_sent_at is not None:
        return False
    reservation_id = reservation.id
    try:
        notifier.notify_reservation_created(reservation)
        reservation.invitation_sent_at = datetime.utcnow()
        db.commit()
        return True
    except Exception as e:
        db.rollback()
        logger.error(f"Check-in invitation for reservation {reservation_id} failed: {e}", exc_info=True)
        return False
