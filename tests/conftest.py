"""
Shared fixtures: in-memory SQLite, a scripted Beds24 upstream behind
httpx.MockTransport, and a fully wired ServiceContainer.
"""

import json
import os
import sys

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from staysync import models  # noqa: F401,E402
from staysync.config import Settings  # noqa: E402
from staysync.database import Base, build_session_factory  # noqa: E402
from staysync.services.container import build_services  # noqa: E402


BASE_URL = "https://beds24.test/api/v2"
API_PREFIX = "/api/v2"


class FakeBeds24:
    """
    Scripted Beds24 API.

    Responses are queued per (method, path); the last queued response repeats.
    Every request is recorded for assertions.
    """

    def __init__(self):
        self.requests = []
        self.routes = {}

    def on(self, method: str, path: str, *responses):
        self.routes[(method.upper(), path)] = list(responses)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.startswith(API_PREFIX):
            path = path[len(API_PREFIX):]
        queue = self.routes.get((request.method, path))
        if not queue:
            return httpx.Response(404, json={"error": f"no route for {request.method} {path}"})
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if callable(response):
            return response(request)
        return response

    def calls(self, method: str, path: str) -> list:
        return [
            r for r in self.requests
            if r.method == method.upper() and r.url.path == API_PREFIX + path
        ]

    @staticmethod
    def json_body(request: httpx.Request):
        return json.loads(request.content)


def token_response(token="access-2", refresh_token=None, expires_in=86400):
    body = {"token": token, "expiresIn": expires_in}
    if refresh_token:
        body["refreshToken"] = refresh_token
    return httpx.Response(200, json=body)


def booking_payload(**overrides):
    """The webhook body used across tests; booking fields can be overridden"""
    booking = {
        "id": "B100",
        "propertyId": "P1",
        "roomId": "R1",
        "unitId": "U1",
        "firstName": "Jane",
        "lastName": "Doe",
        "email": "jane@x.com",
        "arrival": "2025-03-01",
        "departure": "2025-03-03",
        "numAdult": 2,
        "price": 200,
        "currency": "JPY",
    }
    booking.update(overrides)
    return {"event": "booking_new", "eventId": "evt-1", "booking": booking}


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def upstream():
    return FakeBeds24()


@pytest.fixture
def http_client(upstream):
    client = httpx.Client(transport=httpx.MockTransport(upstream.handler))
    yield client
    client.close()


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        DATABASE_URL="sqlite://",
        BEDS24_BASE_URL=BASE_URL,
        BEDS24_REFRESH_TOKEN="",
        BEDS24_TOKEN="",
        BEDS24_WEBHOOK_SECRET="",
        ADMIN_API_TOKEN="admin-secret",
        DEFAULT_CURRENCY="JPY",
        SYNC_ENABLED=False,
    )


@pytest.fixture
def services(settings, session_factory, http_client):
    container = build_services(settings, session_factory=session_factory, http_client=http_client)
    yield container
    container.scheduler.stop()


@pytest.fixture
def authorized(services):
    """Store a token pair that is valid for the next 24h"""
    services.token_manager.initialize("refresh-1", "access-1")
    return services
