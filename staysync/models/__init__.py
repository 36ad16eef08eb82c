# Models package
from .auth_credential import AuthCredential, CREDENTIAL_ROW_ID
from .webhook_event import WebhookEvent
from .property import Property, RoomType, RoomUnit, PLACEHOLDER_ADDRESS, PLACEHOLDER_DESCRIPTION
from .reservation import Reservation, ReservationStatus

__all__ = [
    "AuthCredential", "CREDENTIAL_ROW_ID",
    "WebhookEvent",
    "Property", "RoomType", "RoomUnit", "PLACEHOLDER_ADDRESS", "PLACEHOLDER_DESCRIPTION",
    "Reservation", "ReservationStatus",
]
