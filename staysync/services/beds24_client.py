"""
Beds24 API v2 Client

Thin wrapper over the Beds24 REST API that handles:
- Authentication via the "token" header (NOT Bearer), obtained from TokenManager
- Exactly one refresh-and-retry when the API answers 401/403
- Error classification into the sync error taxonomy, raw upstream text attached

Rate limits and 5xx are surfaced to the caller, never retried here.

Beds24 API Documentation: https://beds24.com/api/v2/
"""

import logging
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Any

import httpx

from ..utils.logging_config import request_id_var
from .exceptions import (
    AuthExpired,
    AuthFailed,
    AuthTransientFailure,
    NotFound,
    RateLimited,
    ServerError,
    UpstreamError,
    UpstreamRejected,
    ValidationError,
)
from .token_manager import TokenManager

logger = logging.getLogger(__name__)

AUTH_FAILURE_STATUSES = (401, 403)


@dataclass
class BookingFilter:
    """Query parameters for GET /bookings"""
    check_in_from: Optional[str] = None  # YYYY-MM-DD
    check_in_to: Optional[str] = None
    booking_id: Optional[str] = None
    limit: Optional[int] = None
    include_invoice: bool = False
    include_info_items: bool = True

    def to_params(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "includeInvoice": str(self.include_invoice).lower(),
            "includeInfoItems": str(self.include_info_items).lower(),
        }
        # Beds24 names the arrival window bounds checkIn/checkOut
        if self.check_in_from:
            params["checkIn"] = self.check_in_from
        if self.check_in_to:
            params["checkOut"] = self.check_in_to
        if self.booking_id:
            params["id"] = self.booking_id
        if self.limit:
            params["limit"] = self.limit
        return params


@dataclass
class MessageResult:
    """Outcome of a guest message send"""
    success: bool
    message_id: Optional[str] = None
    error_code: Optional[str] = None
    error: Optional[str] = None
    raw_error: Optional[str] = None


def classify_error(status_code: int, body: str) -> UpstreamError:
    """Map a non-2xx, non-auth response to an upstream error"""
    if status_code == 404:
        return NotFound("Resource not found", raw_error=body)
    if status_code == 429:
        return RateLimited("Too many requests", raw_error=body)
    if status_code >= 500:
        return ServerError(f"Beds24 server error: {status_code}", raw_error=body)
    return UpstreamRejected(f"Request rejected: {status_code}", raw_error=body)


class Beds24Client:
    """
    Client for the Beds24 booking source.

    Does not touch local storage; token persistence is TokenManager's job.
    """

    def __init__(self, http_client: httpx.Client, token_manager: TokenManager, base_url: str):
        self.http = http_client
        self.tokens = token_manager
        self.base_url = base_url.rstrip("/")

    def _get_headers(self, token: str) -> Dict[str, str]:
        headers = {
            "accept": "application/json",
            "token": token,
        }
        request_id = request_id_var.get()
        if request_id:
            headers["X-Request-ID"] = request_id
        return headers

    def request(
        self,
        method: str,
        endpoint: str,
        payload: Optional[Any] = None,
        params: Optional[Dict] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """
        Execute a request and return the decoded JSON body.

        On 401/403 the token is refreshed once and the request repeated. A
        second auth failure raises AuthTransientFailure.
        """
        url = f"{self.base_url}{endpoint}"
        token = self.tokens.get_valid_access_token()

        for attempt in range(2):
            request_headers = self._get_headers(token)
            if headers:
                request_headers.update(headers)

            start_time = time.time()
            try:
                response = self.http.request(method, url, headers=request_headers, json=payload, params=params)
            except httpx.HTTPError as e:
                logger.error(f"{method} {endpoint} failed: {e}")
                raise ServerError(f"Request to Beds24 failed: {e}", raw_error=str(e))

            duration_ms = int((time.time() - start_time) * 1000)
            logger.debug(f"{method} {endpoint} -> {response.status_code} ({duration_ms}ms)")

            if response.status_code in AUTH_FAILURE_STATUSES:
                if attempt == 0:
                    logger.info(f"{method} {endpoint} returned {response.status_code}, refreshing token and retrying")
                    token = self.tokens.refresh(stale_token=token)
                    continue
                logger.warning(
                    f"{method} {endpoint} still unauthorized after refresh, token will self-heal on next refresh"
                )
                raise AuthTransientFailure(
                    f"Beds24 rejected a freshly refreshed token ({response.status_code})",
                    raw_error=response.text,
                )

            if not response.is_success:
                error = classify_error(response.status_code, response.text)
                logger.warning(f"{method} {endpoint} -> {response.status_code} {error.code}")
                raise error

            if not response.content:
                return None
            try:
                return response.json()
            except ValueError:
                raise ServerError("Beds24 returned invalid JSON", raw_error=response.text[:1000])

    # ==================
    # Booking Operations
    # ==================

    def get_bookings(self, booking_filter: Optional[BookingFilter] = None) -> List[Dict]:
        """Get bookings matching the filter"""
        booking_filter = booking_filter or BookingFilter()
        data = self.request("GET", "/bookings", params=booking_filter.to_params())

        if isinstance(data, list):
            return data
        if isinstance(data, dict):
            for key in ("data", "bookings"):
                if isinstance(data.get(key), list):
                    return data[key]
        return []

    def get_booking(self, booking_id: str) -> Dict:
        """Get a specific booking by ID"""
        bookings = self.get_bookings(BookingFilter(booking_id=str(booking_id)))
        if not bookings:
            raise NotFound(f"Booking {booking_id} not found")
        return bookings[0]

    # ==================
    # Messaging
    # ==================

    def send_message(self, booking_id: str, text: str, idempotency_key: Optional[str] = None) -> MessageResult:
        """
        Send a message to the guest of a booking.

        Empty content fails fast with ValidationError before any call. Upstream
        failures come back as an unsuccessful MessageResult; AuthExpired is
        raised because it needs an operator.
        """
        message = (text or "").strip()
        if not message:
            raise ValidationError("Message text must not be empty")

        headers = {"X-Idempotency-Key": idempotency_key} if idempotency_key else None
        body = [{"bookingId": booking_id, "message": message}]

        try:
            data = self.request("POST", "/bookings/messages", payload=body, headers=headers)
        except AuthExpired:
            raise
        except AuthTransientFailure as e:
            return MessageResult(success=False, error_code=AuthFailed.code, error=e.message, raw_error=e.raw_error)
        except UpstreamError as e:
            return MessageResult(success=False, error_code=e.code, error=e.message, raw_error=e.raw_error)

        item = data[0] if isinstance(data, list) and data else data
        if not isinstance(item, dict):
            return MessageResult(success=False, error_code=UpstreamRejected.code,
                                 error="Unexpected response", raw_error=str(data))

        if item.get("success"):
            message_id = item.get("messageId") or item.get("id")
            logger.info(f"Message sent for booking {booking_id}")
            return MessageResult(success=True, message_id=str(message_id) if message_id is not None else None)

        errors = item.get("errors") or []
        raw = "; ".join(str(e.get("message", e)) if isinstance(e, dict) else str(e) for e in errors)
        logger.warning(f"Message for booking {booking_id} rejected: {raw}")
        return MessageResult(success=False, error_code=UpstreamRejected.code,
                             error="Message rejected", raw_error=raw or str(item))
