import logging
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from .config import Settings, get_settings
from .database import create_tables
from .routers import health, reservations, sync, webhooks
from .services.container import ServiceContainer, build_services
from .utils.logging_config import clear_request_context, set_request_context, setup_logging

logger = logging.getLogger(__name__)


# Request ID Middleware
class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4())[:8])
        request.state.request_id = request_id
        set_request_context(request_id)
        try:
            response = await call_next(request)
        finally:
            clear_request_context()
        response.headers["X-Request-ID"] = request_id
        return response


def create_app(services: Optional[ServiceContainer] = None, settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the API.

    When services are passed in (tests), startup neither creates tables nor
    starts the scheduler; the caller owns that.
    """
    settings = settings or (services.settings if services else get_settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owns_services = services is None
        setup_logging(level=settings.log_level, json_format=settings.log_json)
        logger.info(f"Starting staysync ({settings.environment})")

        if owns_services:
            app.state.services = build_services(settings)
            container = app.state.services
            create_tables(container.engine)
            container.token_manager.ensure_initialized(
                settings.beds24_refresh_token,
                settings.beds24_access_token or None,
            )

            if settings.sync_enabled:
                container.scheduler.start()
            else:
                logger.info("Scheduled booking sync disabled (SYNC_ENABLED=false)")

        yield

        logger.info("Shutting down staysync...")
        if owns_services:
            app.state.services.close()

    app = FastAPI(
        title="staysync",
        description="Guest check-in backend: Beds24 booking sync",
        version="1.0.0",
        lifespan=lifespan,
    )
    if services is not None:
        app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(RequestIdMiddleware)

    app.include_router(webhooks.router)
    app.include_router(webhooks.ops_router)
    app.include_router(sync.router)
    app.include_router(reservations.router)
    app.include_router(reservations.checkin_router)
    app.include_router(health.router)

    @app.get("/")
    async def root():
        return {"service": "staysync", "docs": "/docs", "status": "running"}

    return app


app = create_app()
