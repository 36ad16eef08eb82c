"""
Script to pull recent bookings from Beds24 once.
Same code path as the scheduled job and POST /api/sync/bookings.

Usage: python run_sync.py [days_back] [days_ahead]
"""
import sys

from staysync.config import get_settings
from staysync.database import create_tables
from staysync.services.container import build_services
from staysync.services.exceptions import AuthExpired, SyncError
from staysync.utils.logging_config import setup_logging


def main():
    settings = get_settings()
    setup_logging(level=settings.log_level, json_format=False)

    days_back = int(sys.argv[1]) if len(sys.argv) > 1 else settings.sync_days_back
    days_ahead = int(sys.argv[2]) if len(sys.argv) > 2 else settings.sync_days_ahead

    services = build_services(settings)
    create_tables(services.engine)

    try:
        print("=" * 50)
        print(f"Syncing bookings: {days_back} days back, {days_ahead} days ahead")
        print("=" * 50)

        result = services.booking_sync.sync_recent_bookings(days_back, days_ahead)

        print(f"\nWindow:  {result.window_start} .. {result.window_end}")
        print(f"Fetched: {result.fetched}")
        print(f"Created: {result.created}")
        print(f"Updated: {result.updated}")
        print(f"Stale:   {result.stale}")
        print(f"Failed:  {result.failed}")
        for error in result.errors:
            print(f"  - {error['booking_id']}: {error['error']}")
        return 0 if result.failed == 0 else 1

    except AuthExpired:
        print("\nRefresh token exhausted. Issue a new one in Beds24 and run init_tokens.py.")
        return 2
    except SyncError as e:
        print(f"\nSync failed ({e.code}): {e.message}")
        if e.raw_error:
            print(f"Upstream said: {e.raw_error}")
        return 1
    finally:
        services.close()


if __name__ == "__main__":
    sys.exit(main())
