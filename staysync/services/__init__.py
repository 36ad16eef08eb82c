# Services package
from .exceptions import (
    SyncError,
    ValidationError,
    AuthFailed,
    AuthExpired,
    AuthTransientFailure,
    UpstreamError,
    UpstreamRejected,
    RateLimited,
    NotFound,
    ServerError,
    WebhookProcessingError,
)
from .token_manager import TokenManager
from .beds24_client import Beds24Client, BookingFilter, MessageResult
from .booking_mapper import BookingMapper, MappedBooking, FIELD_ALIASES
from .reservation_reconciler import ReservationReconciler, ReconcileResult
from .webhook_ingestor import WebhookIngestor, WebhookResult
from .booking_sync import BookingSyncService, SyncResult
from .notifications import GuestNotifier
from .sync_scheduler import SyncScheduler
from .container import ServiceContainer, build_services
