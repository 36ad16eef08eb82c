"""
Beds24 Token Manager

Owns the rotating access/refresh token pair stored in the auth_credentials
table. Tokens are refreshed proactively when they enter the buffer window and
reactively when the API answers 401/403.

Refresh is single-flighted: a process-local lock serializes callers inside one
worker and a row lock (PostgreSQL) serializes workers. Whoever gets the lock
second re-reads the row and reuses the token the first caller obtained, so a
superseded refresh token is never sent upstream.
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Dict, Any, Optional

import httpx
from sqlalchemy.orm import Session, sessionmaker

from ..models import AuthCredential, CREDENTIAL_ROW_ID
from ..utils.db_helpers import acquire_row_lock
from .exceptions import AuthExpired, AuthTransientFailure

logger = logging.getLogger(__name__)

# Used when the auth endpoint omits expiresIn
DEFAULT_TOKEN_LIFETIME_SECONDS = 24 * 3600

EXHAUSTED_MESSAGE = "Beds24 refresh token exhausted, re-authorization required"


class TokenManager:

    def __init__(
        self,
        session_factory: sessionmaker,
        http_client: httpx.Client,
        base_url: str,
        refresh_buffer: timedelta = timedelta(hours=4),
        now: Callable[[], datetime] = datetime.utcnow,
    ):
        self.session_factory = session_factory
        self.http = http_client
        self.base_url = base_url.rstrip("/")
        self.refresh_buffer = refresh_buffer
        self.now = now
        self._refresh_lock = threading.Lock()

    # ==================
    # Token access
    # ==================

    def is_token_expiring(self, expires_at: Optional[datetime]) -> bool:
        """True when expires_at is unknown or falls inside the buffer window"""
        if expires_at is None:
            return True
        return self.now() + self.refresh_buffer >= expires_at

    def get_valid_access_token(self) -> str:
        """Return a token that stays valid for at least the buffer window."""
        db = self.session_factory()
        try:
            cred = db.get(AuthCredential, CREDENTIAL_ROW_ID)
            if cred is None:
                raise AuthExpired("Beds24 credentials not initialized, run init_tokens.py")
            if cred.access_token and not self.is_token_expiring(cred.expires_at):
                return cred.access_token
            stale_token = cred.access_token or ""
        finally:
            db.close()

        logger.info("Beds24 access token missing or expiring, refreshing")
        return self.refresh(stale_token=stale_token)

    def refresh(self, stale_token: Optional[str] = None) -> str:
        """
        Exchange the stored refresh token for a new access token.

        Args:
            stale_token: The token the caller saw as unusable. If another
                caller has already replaced it with a valid one, that token is
                returned without a network call. None forces a refresh.

        Raises:
            AuthExpired: upstream rejected the refresh token (terminal)
            AuthTransientFailure: auth endpoint unreachable or 5xx
        """
        with self._refresh_lock:
            db = self.session_factory()
            try:
                cred = acquire_row_lock(db, AuthCredential, AuthCredential.id == CREDENTIAL_ROW_ID)
                if cred is None:
                    raise AuthExpired("Beds24 credentials not initialized, run init_tokens.py")

                if (
                    stale_token is not None
                    and cred.access_token
                    and cred.access_token != stale_token
                    and not self.is_token_expiring(cred.expires_at)
                ):
                    logger.debug("Token already refreshed by another caller")
                    return cred.access_token

                data = self._request_new_token(cred.refresh_token)

                cred.access_token = data["token"]
                if data.get("refreshToken"):
                    cred.refresh_token = data["refreshToken"]
                expires_in = int(data.get("expiresIn") or DEFAULT_TOKEN_LIFETIME_SECONDS)
                cred.expires_at = self.now() + timedelta(seconds=expires_in)
                cred.updated_at = self.now()
                db.commit()

                logger.info(f"Beds24 access token refreshed, expires at {cred.expires_at.isoformat()}")
                return cred.access_token
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()

    def _request_new_token(self, refresh_token: str) -> Dict[str, Any]:
        url = f"{self.base_url}/authentication/token"
        try:
            response = self.http.get(url, headers={"refreshToken": refresh_token})
        except httpx.HTTPError as e:
            logger.warning(f"Token refresh request failed: {e}, token will self-heal on next refresh")
            raise AuthTransientFailure("Token refresh request failed", raw_error=str(e))

        if response.status_code in (400, 401, 403):
            logger.error(f"{EXHAUSTED_MESSAGE} (status {response.status_code})")
            raise AuthExpired(EXHAUSTED_MESSAGE, raw_error=response.text)

        if response.status_code >= 300:
            logger.warning(
                f"Token refresh returned {response.status_code}, token will self-heal on next refresh"
            )
            raise AuthTransientFailure(
                f"Token refresh returned {response.status_code}", raw_error=response.text
            )

        try:
            data = response.json()
        except ValueError:
            raise AuthTransientFailure("Token refresh returned invalid JSON", raw_error=response.text)

        if not isinstance(data, dict) or not data.get("token"):
            raise AuthTransientFailure("Token refresh response has no token", raw_error=response.text)

        return data

    # ==================
    # Bootstrap & status
    # ==================

    def initialize(self, refresh_token: str, access_token: Optional[str] = None) -> AuthCredential:
        """
        Overwrite the stored credentials with operator-supplied tokens.

        With an access token the row is marked valid for 24h; without one the
        expiry is set in the past so the next use refreshes.
        """
        if not refresh_token:
            raise ValueError("refresh_token is required")

        now = self.now()
        db: Session = self.session_factory()
        try:
            cred = db.get(AuthCredential, CREDENTIAL_ROW_ID)
            if cred is None:
                cred = AuthCredential(id=CREDENTIAL_ROW_ID, refresh_token=refresh_token)
                db.add(cred)

            cred.refresh_token = refresh_token
            cred.access_token = access_token or None
            if access_token:
                cred.expires_at = now + timedelta(seconds=DEFAULT_TOKEN_LIFETIME_SECONDS)
            else:
                cred.expires_at = now - timedelta(seconds=1)
            cred.updated_at = now
            db.commit()
            db.refresh(cred)
            db.expunge(cred)
            logger.info("Beds24 credentials initialized")
            return cred
        finally:
            db.close()

    def ensure_initialized(self, refresh_token: str, access_token: Optional[str] = None) -> bool:
        """Seed the credential row from configuration if it does not exist yet."""
        db = self.session_factory()
        try:
            exists = db.get(AuthCredential, CREDENTIAL_ROW_ID) is not None
        finally:
            db.close()

        if exists:
            return False
        if not refresh_token:
            logger.warning("BEDS24_REFRESH_TOKEN not set, booking sync disabled until init_tokens.py is run")
            return False

        self.initialize(refresh_token, access_token)
        return True

    def status(self) -> Dict[str, Any]:
        db = self.session_factory()
        try:
            cred = db.get(AuthCredential, CREDENTIAL_ROW_ID)
            if cred is None:
                return {"initialized": False, "has_access_token": False, "expires_at": None,
                        "expiring": True, "seconds_remaining": None, "updated_at": None}

            remaining = None
            if cred.expires_at:
                remaining = int((cred.expires_at - self.now()).total_seconds())

            return {
                "initialized": True,
                "has_access_token": bool(cred.access_token),
                "expires_at": cred.expires_at,
                "expiring": self.is_token_expiring(cred.expires_at),
                "seconds_remaining": remaining,
                "updated_at": cred.updated_at,
            }
        finally:
            db.close()
