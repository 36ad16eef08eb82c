"""
Booking Mapper

Turns a Beds24 booking payload into a MappedBooking and resolves the
property -> room type -> room unit chain it references.

Beds24 has renamed booking fields across API versions and webhook formats,
so every canonical field is read through FIELD_ALIASES in priority order. The
table is the single place that knows the source vocabulary.

Placeholders are created with insert_or_get, which relies on the unique
constraint of each level, so two webhooks racing on the same unseen external
id end up on the same row.
"""

import logging
from dataclasses import dataclass, fields
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional, Tuple

from sqlalchemy.orm import Session

from ..models import (
    Property, RoomType, RoomUnit, ReservationStatus,
    PLACEHOLDER_ADDRESS, PLACEHOLDER_DESCRIPTION,
)
from ..utils.db_helpers import insert_or_get
from .exceptions import ValidationError

logger = logging.getLogger(__name__)


# Canonical field -> payload keys, highest priority first
FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "external_booking_id": ("id", "bookId", "bookingId"),
    "external_property_id": ("propertyId", "propId"),
    "external_room_type_id": ("roomId", "roomTypeId"),
    "external_unit_id": ("unitId", "room", "roomUnitId"),
    "property_name": ("propertyName",),
    "room_type_name": ("roomName", "roomTypeName"),
    "unit_name": ("unitName",),
    "guest_given_name": ("firstName",),
    "guest_family_name": ("lastName",),
    "guest_full_name": ("guestName", "name"),
    "guest_email": ("email", "guestEmail"),
    "guest_phone": ("phone", "mobile", "telephone"),
    "check_in_date": ("arrival", "checkIn", "checkInDate"),
    "check_out_date": ("departure", "checkOut", "checkOutDate"),
    "num_adults": ("numAdult", "adults"),
    "num_children": ("numChild", "children"),
    "total_amount": ("price", "total", "totalAmount"),
    "currency": ("currency",),
    "status": ("status",),
    "country": ("country2", "country"),
    "modified_at": ("modifiedTime", "modified"),
    "booking_source": ("referer", "channel"),
    "special_requests": ("comments", "notes"),
    "lang": ("lang",),
}

# Rough country -> currency heuristic for bookings without a currency
COUNTRY_CURRENCY = {
    "JP": "JPY", "US": "USD", "GB": "GBP", "AU": "AUD", "CA": "CAD",
    "KR": "KRW", "CN": "CNY", "TW": "TWD", "HK": "HKD", "SG": "SGD",
    "TH": "THB", "NZ": "NZD", "CH": "CHF",
}
for _eu in ("AT", "BE", "DE", "ES", "FI", "FR", "GR", "IE", "IT", "LU", "NL", "PT"):
    COUNTRY_CURRENCY[_eu] = "EUR"


@dataclass
class MappedBooking:
    """Canonical reservation fields taken from one payload. None means absent."""
    external_booking_id: str
    external_property_id: Optional[str] = None
    external_room_type_id: Optional[str] = None
    external_unit_id: Optional[str] = None
    property_name: Optional[str] = None
    room_type_name: Optional[str] = None
    unit_name: Optional[str] = None

    guest_given_name: Optional[str] = None
    guest_family_name: Optional[str] = None
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    lang: Optional[str] = None

    check_in_date: Optional[date] = None
    check_out_date: Optional[date] = None
    num_adults: Optional[int] = None
    num_children: Optional[int] = None
    num_guests: Optional[int] = None

    total_amount: Optional[Decimal] = None
    currency: Optional[str] = None
    status: Optional[str] = None
    booking_source: Optional[str] = None
    special_requests: Optional[str] = None
    source_modified_at: Optional[datetime] = None

    # Filled by resolve_hierarchy
    property_id: Optional[str] = None
    room_type_id: Optional[str] = None
    room_unit_id: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def booking_section(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Webhooks wrap the booking in {"booking": {...}}; the bookings API does not."""
    booking = payload.get("booking")
    if isinstance(booking, dict):
        return booking
    return payload


def _first(data: Dict[str, Any], canonical: str) -> Any:
    for key in FIELD_ALIASES[canonical]:
        value = data.get(key)
        if value is None:
            continue
        if isinstance(value, str):
            value = value.strip()
            if not value:
                continue
        return value
    return None


def _as_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value).strip() or None


def _as_int(value: Any, name: str) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring non-numeric {name}: {value!r}")
        return None


def _as_amount(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        logger.warning(f"Ignoring non-numeric amount: {value!r}")
        return None


def parse_date(value: Any) -> Optional[date]:
    """Parse a YYYY-MM-DD date, tolerating a time part"""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        logger.warning(f"Unparseable date: {value!r}")
        return None


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse an ISO timestamp or epoch seconds into naive UTC"""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc).replace(tzinfo=None)
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            logger.warning(f"Unparseable timestamp: {value!r}")
            return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def map_status(raw: Optional[str]) -> Optional[str]:
    """Map the upstream status vocabulary onto ours. None leaves status unchanged."""
    if raw is None:
        return None
    status = str(raw).strip().lower()
    if status in ("cancelled", "canceled"):
        return ReservationStatus.CANCELLED.value
    if status == "confirmed":
        return ReservationStatus.CONFIRMED.value
    return ReservationStatus.NEW.value


def extract_booking_id(payload: Dict[str, Any]) -> Optional[str]:
    if not isinstance(payload, dict):
        return None
    return _as_str(_first(booking_section(payload), "external_booking_id"))


def extract_modified_at(payload: Dict[str, Any]) -> Optional[datetime]:
    """Upstream modification time: the booking's modifiedTime, else the envelope body.timeStamp"""
    if not isinstance(payload, dict):
        return None
    modified = _first(booking_section(payload), "modified_at")
    if modified is None and isinstance(payload.get("body"), dict):
        modified = payload["body"].get("timeStamp")
    return parse_datetime(modified)


class BookingMapper:

    def __init__(self, default_currency: str = "JPY"):
        self.default_currency = default_currency

    def normalize(self, payload: Dict[str, Any]) -> MappedBooking:
        """
        Read one payload through FIELD_ALIASES.

        Raises:
            ValidationError: no booking id, no dates at all, or check-out
                before check-in
        """
        if not isinstance(payload, dict):
            raise ValidationError("Booking payload must be a JSON object")

        booking = booking_section(payload)
        raw = {name: _first(booking, name) for name in FIELD_ALIASES}

        booking_id = _as_str(raw["external_booking_id"])
        if not booking_id:
            raise ValidationError("Booking payload has no booking id")

        check_in = parse_date(raw["check_in_date"])
        check_out = parse_date(raw["check_out_date"])
        if check_in is None and check_out is None:
            raise ValidationError(f"Booking {booking_id} has neither check-in nor check-out date")
        if check_in and check_out and check_out < check_in:
            raise ValidationError(f"Booking {booking_id} checks out before it checks in")

        given = _as_str(raw["guest_given_name"])
        family = _as_str(raw["guest_family_name"])
        if given is None and family is None and raw["guest_full_name"]:
            parts = str(raw["guest_full_name"]).split(None, 1)
            given = parts[0]
            family = parts[1] if len(parts) > 1 else None

        adults = _as_int(raw["num_adults"], "numAdult")
        children = _as_int(raw["num_children"], "numChild")
        num_guests = None
        if adults is not None or children is not None:
            num_guests = max((adults or 0) + (children or 0), 1)

        email = _as_str(raw["guest_email"])

        return MappedBooking(
            external_booking_id=booking_id,
            external_property_id=_as_str(raw["external_property_id"]),
            external_room_type_id=_as_str(raw["external_room_type_id"]),
            external_unit_id=_as_str(raw["external_unit_id"]),
            property_name=_as_str(raw["property_name"]),
            room_type_name=_as_str(raw["room_type_name"]),
            unit_name=_as_str(raw["unit_name"]),
            guest_given_name=given,
            guest_family_name=family,
            guest_email=email.lower() if email else None,
            guest_phone=_as_str(raw["guest_phone"]),
            lang=_as_str(raw["lang"]),
            check_in_date=check_in,
            check_out_date=check_out,
            num_adults=adults,
            num_children=children,
            num_guests=num_guests,
            total_amount=_as_amount(raw["total_amount"]),
            currency=self.infer_currency(raw["currency"], raw["country"]),
            status=map_status(raw["status"]),
            booking_source=_as_str(raw["booking_source"]),
            special_requests=_as_str(raw["special_requests"]),
            source_modified_at=extract_modified_at(payload),
        )

    def infer_currency(self, currency: Any, country: Any) -> str:
        """Explicit currency, else country heuristic, else the configured default"""
        if currency:
            return str(currency).strip().upper()
        if country:
            inferred = COUNTRY_CURRENCY.get(str(country).strip().upper())
            if inferred:
                return inferred
        return self.default_currency

    # ==================
    # Hierarchy resolution
    # ==================

    def resolve_hierarchy(self, db: Session, mapped: MappedBooking) -> MappedBooking:
        """
        Fill property_id, room_type_id and room_unit_id, creating placeholders.

        Each level is scoped to the one above it; a missing level leaves
        everything below it unresolved.
        """
        mapped.property_id = mapped.room_type_id = mapped.room_unit_id = None
        if not mapped.external_property_id:
            return mapped

        prop, created = insert_or_get(
            db, Property,
            {"external_id": mapped.external_property_id},
            {
                "name": mapped.property_name or f"Property {mapped.external_property_id}",
                "address": PLACEHOLDER_ADDRESS,
                "description": PLACEHOLDER_DESCRIPTION,
                "requires_setup": True,
            },
        )
        if created:
            logger.warning(f"Created placeholder property for external id {mapped.external_property_id}, requires setup")
        mapped.property_id = prop.id

        if not mapped.external_room_type_id:
            return mapped

        room_type, created = insert_or_get(
            db, RoomType,
            {"property_id": prop.id, "external_id": mapped.external_room_type_id},
            {
                "name": mapped.room_type_name or f"Room {mapped.external_room_type_id}",
                "description": PLACEHOLDER_DESCRIPTION,
                "requires_setup": True,
            },
        )
        if created:
            logger.warning(f"Created placeholder room type for external id {mapped.external_room_type_id}, requires setup")
        mapped.room_type_id = room_type.id

        if not mapped.external_unit_id:
            return mapped

        unit, created = insert_or_get(
            db, RoomUnit,
            {"room_type_id": room_type.id, "external_id": mapped.external_unit_id},
            {
                "unit_number": mapped.unit_name or mapped.external_unit_id,
                "requires_setup": True,
            },
        )
        if created:
            logger.warning(f"Created placeholder room unit for external id {mapped.external_unit_id}, requires setup")
        mapped.room_unit_id = unit.id

        return mapped

    def map(self, db: Session, payload: Dict[str, Any]) -> MappedBooking:
        """normalize() then resolve_hierarchy()"""
        return self.resolve_hierarchy(db, self.normalize(payload))
