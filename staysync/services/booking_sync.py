"""
Pull sync: fetch bookings in an arrival window from Beds24 and push each one
through the same mapper/reconciler pipeline the webhooks use.

Each booking is committed on its own so one bad record does not roll back
the rest. Upstream and auth errors abort the run and reach the caller, which
owns backoff (scheduler or operator).
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy.orm import sessionmaker

from .beds24_client import Beds24Client, BookingFilter
from .booking_mapper import BookingMapper, extract_booking_id
from .exceptions import AuthExpired, AuthTransientFailure, ValidationError
from .notifications import GuestNotifier, send_invitation_once
from .reservation_reconciler import ReservationReconciler

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    window_start: date
    window_end: date
    fetched: int = 0
    created: int = 0
    updated: int = 0
    stale: int = 0
    failed: int = 0
    errors: List[Dict[str, str]] = field(default_factory=list)
    duration_ms: int = 0


class BookingSyncService:

    def __init__(
        self,
        session_factory: sessionmaker,
        client: Beds24Client,
        mapper: BookingMapper,
        reconciler: ReservationReconciler,
        notifier: Optional[GuestNotifier] = None,
    ):
        self.session_factory = session_factory
        self.client = client
        self.mapper = mapper
        self.reconciler = reconciler
        self.notifier = notifier or GuestNotifier()

    def sync_recent_bookings(self, days_back: int = 7, days_ahead: int = 30, today: Optional[date] = None) -> SyncResult:
        """
        Reconcile every booking arriving between today - days_back and
        today + days_ahead.

        Raises:
            AuthExpired: refresh token is dead, operator must re-authorize
            AuthTransientFailure, RateLimited, ServerError, UpstreamRejected
        """
        today = today or datetime.utcnow().date()
        result = SyncResult(
            window_start=today - timedelta(days=days_back),
            window_end=today + timedelta(days=days_ahead),
        )
        start_time = time.time()
        logger.info(f"Booking sync started for arrivals {result.window_start} .. {result.window_end}")

        try:
            bookings = self.client.get_bookings(BookingFilter(
                check_in_from=result.window_start.isoformat(),
                check_in_to=result.window_end.isoformat(),
            ))
        except AuthExpired:
            logger.critical("Booking sync aborted: refresh token exhausted, re-authorization required")
            raise
        except AuthTransientFailure:
            logger.error("Booking sync aborted by auth failure, token will self-heal on next refresh")
            raise

        result.fetched = len(bookings)
        for booking in bookings:
            self._sync_one(booking, result)

        result.duration_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"Booking sync finished: fetched={result.fetched} created={result.created} "
            f"updated={result.updated} stale={result.stale} failed={result.failed} ({result.duration_ms}ms)"
        )
        return result

    def _sync_one(self, booking: Dict, result: SyncResult) -> None:
        db = self.session_factory()
        try:
            mapped = self.mapper.map(db, booking)
            outcome = self.reconciler.upsert_from_mapped(db, mapped)
            db.commit()

            if outcome.action == "created":
                result.created += 1
                send_invitation_once(db, self.notifier, outcome.reservation)
            elif outcome.action == "updated":
                result.updated += 1
            elif outcome.action == "stale":
                result.stale += 1
        except ValidationError as e:
            db.rollback()
            result.failed += 1
            result.errors.append({"booking_id": str(extract_booking_id(booking)), "error": e.message})
            logger.warning(f"Skipping booking during sync: {e.message}")
        except Exception as e:
            db.rollback()
            result.failed += 1
            result.errors.append({"booking_id": str(extract_booking_id(booking)), "error": str(e)})
            logger.error(f"Failed to sync booking {extract_booking_id(booking)}: {e}", exc_info=True)
        finally:
            db.close()
