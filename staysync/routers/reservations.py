"""
Reservation reads for the admin views and the guest check-in flow, plus
staff messages to the guest.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..schemas.reservation import (
    GuestReservationResponse,
    MessageCreate,
    MessageResponse,
    ReservationResponse,
)
from ..services.container import ServiceContainer
from ..services.exceptions import AuthExpired, ValidationError
from ..utils.dependencies import get_db, get_services, http_error, require_admin_token

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/reservations",
    tags=["Reservations"],
    dependencies=[Depends(require_admin_token)],
)
checkin_router = APIRouter(prefix="/api/checkin", tags=["Check-in"])


@router.get("/{reservation_id}", response_model=ReservationResponse)
def get_reservation(
    reservation_id: str,
    db: Session = Depends(get_db),
    services: ServiceContainer = Depends(get_services),
):
    reservation = services.reconciler.get(db, reservation_id)
    if reservation is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reservation not found")
    return reservation


@router.post("/{reservation_id}/messages", response_model=MessageResponse)
def send_guest_message(
    reservation_id: str,
    message: MessageCreate,
    db: Session = Depends(get_db),
    services: ServiceContainer = Depends(get_services),
):
    """
    Send a message to the guest through Beds24.

    Upstream rejections come back as success=false with the raw error; only an
    exhausted refresh token fails the request.
    """
    reservation = services.reconciler.get(db, reservation_id)
    if reservation is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reservation not found")

    try:
        result = services.client.send_message(
            reservation.external_booking_id,
            message.text,
            idempotency_key=message.idempotency_key,
        )
    except (ValidationError, AuthExpired) as e:
        raise http_error(e)

    return MessageResponse(
        success=result.success,
        message_id=result.message_id,
        error_code=result.error_code,
        error=result.error,
        raw_error=result.raw_error,
    )


@checkin_router.get("/{check_in_token}", response_model=GuestReservationResponse)
def get_reservation_for_guest(
    check_in_token: str,
    db: Session = Depends(get_db),
    services: ServiceContainer = Depends(get_services),
):
    reservation = services.reconciler.get_by_check_in_token(db, check_in_token)
    if reservation is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reservation not found")
    return reservation
