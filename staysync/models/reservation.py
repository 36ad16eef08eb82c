import uuid
from datetime import datetime
from sqlalchemy import Column, String, Date, Numeric, Text, Integer, ForeignKey, DateTime, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from ..database import Base
import enum


class ReservationStatus(str, enum.Enum):
    NEW = "new"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class Reservation(Base):
    """
    Canonical reservation derived from a booking-source payload.

    external_booking_id is the upsert identity. id and check_in_token are
    assigned once at creation and never change, so guest links stay valid.
    Cancellation is a status, rows are never deleted.
    """
    __tablename__ = "reservations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    external_booking_id = Column(String(255), nullable=False)
    check_in_token = Column(String(64), nullable=False)

    # Room assignment
    property_id = Column(String(36), ForeignKey("properties.id", ondelete="SET NULL"), nullable=True)
    room_type_id = Column(String(36), ForeignKey("room_types.id", ondelete="SET NULL"), nullable=True)
    room_unit_id = Column(String(36), ForeignKey("room_units.id", ondelete="SET NULL"), nullable=True)

    # Guest contact
    guest_given_name = Column(String(100), nullable=True)
    guest_family_name = Column(String(100), nullable=True)
    guest_email = Column(String(255), nullable=True)
    guest_phone = Column(String(50), nullable=True)
    lang = Column(String(10), nullable=True)

    # Stay
    check_in_date = Column(Date, nullable=True)
    check_out_date = Column(Date, nullable=True)
    num_guests = Column(Integer, default=1)
    num_adults = Column(Integer, default=1)
    num_children = Column(Integer, default=0)

    # Money
    total_amount = Column(Numeric(12, 2), nullable=True)
    currency = Column(String(3), nullable=True)

    status = Column(String(20), default=ReservationStatus.NEW.value, nullable=False)
    booking_source = Column(String(100), nullable=True)  # OTA / referer
    special_requests = Column(Text, nullable=True)

    # Upstream modification time of the last applied payload
    source_modified_at = Column(DateTime, nullable=True)
    invitation_sent_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def guest_name(self) -> str:
        return " ".join(p for p in (self.guest_given_name, self.guest_family_name) if p)

    # Declared after guest_name: this attribute shadows the property builtin in the class body
    property = relationship("Property")
    room_type = relationship("RoomType")
    room_unit = relationship("RoomUnit")

    __table_args__ = (
        UniqueConstraint("external_booking_id", name="uq_reservations_external_booking_id"),
        UniqueConstraint("check_in_token", name="uq_reservations_check_in_token"),
        Index("ix_reservations_check_in_date", "check_in_date"),
        Index("ix_reservations_status", "status"),
    )

    def __repr__(self):
        return f"<Reservation {self.external_booking_id} {self.status}>"
