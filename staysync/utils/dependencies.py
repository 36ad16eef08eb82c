"""FastAPI dependencies shared by the routers"""

import secrets
import uuid
from typing import Generator, Optional

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from ..services.container import ServiceContainer
from ..services.exceptions import SyncError


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def get_db(services: ServiceContainer = Depends(get_services)) -> Generator[Session, None, None]:
    """Yield a session for the request and close it afterwards"""
    db = services.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_request_id(request: Request) -> str:
    """Get request_id from request state or generate one"""
    return getattr(request.state, 'request_id', str(uuid.uuid4())[:8])


def require_admin_token(
    services: ServiceContainer = Depends(get_services),
    x_admin_token: Optional[str] = Header(None, alias="X-Admin-Token"),
) -> None:
    """Guard for the operator endpoints. Disabled (403) while ADMIN_API_TOKEN is unset."""
    expected = services.settings.admin_api_token
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin API is disabled, set ADMIN_API_TOKEN"
        )
    if not x_admin_token or not secrets.compare_digest(x_admin_token, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin token"
        )


def http_error(error: SyncError) -> HTTPException:
    """Translate a sync error into the HTTP response the routers return"""
    return HTTPException(status_code=error.status_code, detail=error.to_dict())
