"""
Reservation Schemas

Two views of the same row: the admin view carries everything including the
check-in token, the guest view leaves out contact details, room ids and money.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field


class ReservationResponse(BaseModel):
    """Admin view of a reservation"""
    id: str
    external_booking_id: str
    check_in_token: str
    property_id: Optional[str]
    room_type_id: Optional[str]
    room_unit_id: Optional[str]
    guest_given_name: Optional[str]
    guest_family_name: Optional[str]
    guest_email: Optional[str]
    guest_phone: Optional[str]
    lang: Optional[str]
    check_in_date: Optional[date]
    check_out_date: Optional[date]
    num_guests: Optional[int]
    num_adults: Optional[int]
    num_children: Optional[int]
    total_amount: Optional[Decimal]
    currency: Optional[str]
    status: str
    booking_source: Optional[str]
    special_requests: Optional[str]
    source_modified_at: Optional[datetime]
    invitation_sent_at: Optional[datetime]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class GuestReservationResponse(BaseModel):
    """What the check-in flow may show the guest"""
    id: str
    guest_given_name: Optional[str]
    guest_family_name: Optional[str]
    check_in_date: Optional[date]
    check_out_date: Optional[date]
    num_guests: Optional[int]
    status: str
    lang: Optional[str]

    class Config:
        from_attributes = True


class MessageCreate(BaseModel):
    """Staff message to the guest, delivered through Beds24"""
    text: str = Field(..., max_length=5000)
    idempotency_key: Optional[str] = Field(default=None, max_length=128)


class MessageResponse(BaseModel):
    success: bool
    message_id: Optional[str] = None
    error_code: Optional[str] = None
    error: Optional[str] = None
    raw_error: Optional[str] = None
