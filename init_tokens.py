"""
Store Beds24 credentials and check they work.

Overwrites the auth_credentials row with BEDS24_REFRESH_TOKEN (and
BEDS24_TOKEN if set), then makes one bookings call. Run it after issuing a
new refresh token in the Beds24 control panel.

Usage: python init_tokens.py [refresh_token]
"""
import sys

from staysync.config import get_settings
from staysync.database import create_tables
from staysync.services.beds24_client import BookingFilter
from staysync.services.container import build_services
from staysync.services.exceptions import SyncError
from staysync.utils.logging_config import setup_logging


def main():
    settings = get_settings()
    setup_logging(level=settings.log_level, json_format=False)

    refresh_token = sys.argv[1] if len(sys.argv) > 1 else settings.beds24_refresh_token
    if not refresh_token:
        print("No refresh token: pass one as an argument or set BEDS24_REFRESH_TOKEN")
        return 1

    services = build_services(settings)
    create_tables(services.engine)

    try:
        services.token_manager.initialize(refresh_token, settings.beds24_access_token or None)
        print("Credentials stored")

        token = services.token_manager.get_valid_access_token()
        print(f"Access token OK ({token[:8]}...)")

        bookings = services.client.get_bookings(BookingFilter(limit=1))
        print(f"Test call OK, {len(bookings)} booking(s) returned")

        status = services.token_manager.status()
        print(f"Token expires at {status['expires_at']} ({status['seconds_remaining']}s)")
        return 0

    except SyncError as e:
        print(f"Failed ({e.code}): {e.message}")
        if e.raw_error:
            print(f"Upstream said: {e.raw_error}")
        return 1
    finally:
        services.close()


if __name__ == "__main__":
    sys.exit(main())
