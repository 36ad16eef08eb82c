"""
Sync Scheduler

Background jobs run by APScheduler inside the API process:
- booking pull sync every SYNC_INTERVAL_MINUTES
- token keep-alive every TOKEN_KEEPALIVE_HOURS, so the refresh token is used
  before Beds24 retires it for inactivity

Jobs are plain functions, so AsyncIOScheduler runs them in its thread pool
and the event loop stays free for requests. Failures are logged and the next
run tries again.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .booking_sync import BookingSyncService
from .exceptions import AuthExpired, AuthTransientFailure, SyncError
from .token_manager import TokenManager

logger = logging.getLogger(__name__)


class SyncScheduler:

    def __init__(
        self,
        booking_sync: BookingSyncService,
        token_manager: TokenManager,
        interval_minutes: int = 60,
        keepalive_hours: int = 20,
        days_back: int = 7,
        days_ahead: int = 30,
        timezone: str = "Asia/Tokyo",
    ):
        self.booking_sync = booking_sync
        self.token_manager = token_manager
        self.interval_minutes = interval_minutes
        self.keepalive_hours = keepalive_hours
        self.days_back = days_back
        self.days_ahead = days_ahead
        self.timezone = timezone

        self._scheduler: Optional[AsyncIOScheduler] = None
        self.last_sync_time: Optional[datetime] = None
        self.last_sync_result: Optional[Dict[str, Any]] = None
        self.last_keepalive_time: Optional[datetime] = None

    # ==================
    # Jobs
    # ==================

    def run_booking_sync(self) -> Optional[Dict[str, Any]]:
        logger.info("Running scheduled booking sync job...")
        try:
            result = self.booking_sync.sync_recent_bookings(self.days_back, self.days_ahead)
        except SyncError as e:
            # AuthExpired / AuthTransientFailure already logged by the sync service
            if not isinstance(e, (AuthExpired, AuthTransientFailure)):
                logger.error(f"Scheduled booking sync failed ({e.code}): {e.message}")
            self.last_sync_result = {"success": False, "error": e.code}
            return None
        except Exception as e:
            logger.error(f"Scheduled booking sync job failed: {e}", exc_info=True)
            self.last_sync_result = {"success": False, "error": str(e)}
            return None

        self.last_sync_time = datetime.utcnow()
        self.last_sync_result = {
            "success": True,
            "fetched": result.fetched,
            "created": result.created,
            "updated": result.updated,
            "failed": result.failed,
        }
        return self.last_sync_result

    def run_token_keepalive(self) -> bool:
        try:
            self.token_manager.get_valid_access_token()
        except AuthExpired:
            logger.critical("Token keep-alive: refresh token exhausted, re-authorization required")
            return False
        except AuthTransientFailure as e:
            logger.warning(f"Token keep-alive failed ({e.message}), token will self-heal on next refresh")
            return False

        self.last_keepalive_time = datetime.utcnow()
        logger.info("Token keep-alive succeeded")
        return True

    # ==================
    # Lifecycle
    # ==================

    def start(self) -> bool:
        if self._scheduler is not None and self._scheduler.running:
            logger.warning("Sync scheduler is already running")
            return True

        try:
            self._scheduler = AsyncIOScheduler(timezone=self.timezone)
            self._scheduler.add_job(
                self.run_booking_sync,
                IntervalTrigger(minutes=self.interval_minutes, timezone=self.timezone),
                id="booking_sync",
                name=f"Booking sync every {self.interval_minutes} min",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
            self._scheduler.add_job(
                self.run_token_keepalive,
                IntervalTrigger(hours=self.keepalive_hours, timezone=self.timezone),
                id="token_keepalive",
                name=f"Token keep-alive every {self.keepalive_hours}h",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
            self._scheduler.start()
            logger.info(
                f"Sync scheduler started (sync every {self.interval_minutes} min, "
                f"keep-alive every {self.keepalive_hours}h, {self.timezone})"
            )
            return True
        except Exception as e:
            logger.error(f"Failed to start sync scheduler: {e}")
            return False

    def stop(self) -> bool:
        if self._scheduler is None or not self._scheduler.running:
            return True
        try:
            self._scheduler.shutdown(wait=False)
            logger.info("Sync scheduler stopped")
            return True
        except Exception as e:
            logger.error(f"Failed to stop sync scheduler: {e}")
            return False
        finally:
            self._scheduler = None

    def status(self) -> Dict[str, Any]:
        running = self._scheduler is not None and self._scheduler.running
        jobs = []
        if running:
            for job in self._scheduler.get_jobs():
                jobs.append({
                    "id": job.id,
                    "name": job.name,
                    "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
                })
        return {
            "running": running,
            "timezone": self.timezone,
            "jobs": jobs,
            "last_sync_time": self.last_sync_time.isoformat() if self.last_sync_time else None,
            "last_sync_result": self.last_sync_result,
            "last_keepalive_time": self.last_keepalive_time.isoformat() if self.last_keepalive_time else None,
        }
