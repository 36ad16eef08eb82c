"""Operator endpoints for the pull sync and the Beds24 token"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends

from ..schemas.sync import SyncRequest, SyncResponse, TokenStatusResponse
from ..services.container import ServiceContainer
from ..services.exceptions import SyncError
from ..utils.dependencies import get_services, http_error, require_admin_token

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/sync",
    tags=["Sync"],
    dependencies=[Depends(require_admin_token)],
)


@router.post("/bookings", response_model=SyncResponse)
def sync_bookings(
    body: Optional[SyncRequest] = None,
    services: ServiceContainer = Depends(get_services),
):
    """Pull bookings for the arrival window now instead of waiting for the scheduler"""
    body = body or SyncRequest(
        days_back=services.settings.sync_days_back,
        days_ahead=services.settings.sync_days_ahead,
    )
    try:
        result = services.booking_sync.sync_recent_bookings(body.days_back, body.days_ahead)
    except SyncError as e:
        raise http_error(e)
    return SyncResponse.model_validate(result)


@router.get("/token", response_model=TokenStatusResponse)
def token_status(services: ServiceContainer = Depends(get_services)):
    return TokenStatusResponse(**services.token_manager.status())


@router.post("/token/refresh", response_model=TokenStatusResponse)
def refresh_token(services: ServiceContainer = Depends(get_services)):
    try:
        services.token_manager.refresh()
    except SyncError as e:
        raise http_error(e)
    return TokenStatusResponse(**services.token_manager.status())


@router.get("/scheduler")
def scheduler_status(services: ServiceContainer = Depends(get_services)):
    return services.scheduler.status()
