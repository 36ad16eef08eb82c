"""
Service wiring.

build_services() constructs every service once at startup; main.py stores the
container on app.state and routers reach it through dependencies. Tests pass
their own session factory and httpx client.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

import httpx
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from ..config import Settings
from ..database import build_engine, build_session_factory
from .beds24_client import Beds24Client
from .booking_mapper import BookingMapper
from .booking_sync import BookingSyncService
from .notifications import GuestNotifier
from .reservation_reconciler import ReservationReconciler
from .sync_scheduler import SyncScheduler
from .token_manager import TokenManager
from .webhook_ingestor import WebhookIngestor


@dataclass
class ServiceContainer:
    settings: Settings
    engine: Engine
    session_factory: sessionmaker
    http_client: httpx.Client
    token_manager: TokenManager
    client: Beds24Client
    mapper: BookingMapper
    reconciler: ReservationReconciler
    notifier: GuestNotifier
    ingestor: WebhookIngestor
    booking_sync: BookingSyncService
    scheduler: SyncScheduler

    def close(self) -> None:
        self.scheduler.stop()
        self.http_client.close()


def build_services(
    settings: Settings,
    session_factory: Optional[sessionmaker] = None,
    http_client: Optional[httpx.Client] = None,
    notifier: Optional[GuestNotifier] = None,
) -> ServiceContainer:
    if session_factory is None:
        engine = build_engine(settings.database_url)
        session_factory = build_session_factory(engine)
    else:
        engine = session_factory.kw["bind"]

    if http_client is None:
        http_client = httpx.Client(timeout=settings.beds24_timeout_seconds)

    notifier = notifier or GuestNotifier()
    token_manager = TokenManager(
        session_factory,
        http_client,
        settings.beds24_base_url,
        refresh_buffer=timedelta(hours=settings.token_refresh_buffer_hours),
    )
    client = Beds24Client(http_client, token_manager, settings.beds24_base_url)
    mapper = BookingMapper(default_currency=settings.default_currency)
    reconciler = ReservationReconciler()
    ingestor = WebhookIngestor(
        session_factory,
        mapper,
        reconciler,
        notifier=notifier,
        webhook_secret=settings.beds24_webhook_secret,
    )
    booking_sync = BookingSyncService(session_factory, client, mapper, reconciler, notifier=notifier)
    scheduler = SyncScheduler(
        booking_sync,
        token_manager,
        interval_minutes=settings.sync_interval_minutes,
        keepalive_hours=settings.token_keepalive_hours,
        days_back=settings.sync_days_back,
        days_ahead=settings.sync_days_ahead,
        timezone=settings.scheduler_timezone,
    )

    return ServiceContainer(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        http_client=http_client,
        token_manager=token_manager,
        client=client,
        mapper=mapper,
        reconciler=reconciler,
        notifier=notifier,
        ingestor=ingestor,
        booking_sync=booking_sync,
        scheduler=scheduler,
    )
