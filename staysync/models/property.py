"""
Property hierarchy: Property -> RoomType -> RoomUnit.

Rows are usually auto-created from booking payloads as placeholders that only
know their external id; staff complete the real-world details later in the
admin screens. Each level allows one row per external id within its parent.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Text, Integer, ForeignKey, DateTime, Boolean, UniqueConstraint
from sqlalchemy.orm import relationship
from ..database import Base


PLACEHOLDER_ADDRESS = "TBD - requires setup"
PLACEHOLDER_DESCRIPTION = "Auto-created from booking sync - requires setup"


class Property(Base):
    __tablename__ = "properties"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    external_id = Column(String(100), nullable=False)
    name = Column(String(255), nullable=False)
    address = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    requires_setup = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    room_types = relationship("RoomType", back_populates="property")

    __table_args__ = (
        UniqueConstraint("external_id", name="uq_properties_external_id"),
    )

    def __repr__(self):
        return f"<Property {self.name} ext={self.external_id}>"


class RoomType(Base):
    __tablename__ = "room_types"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    property_id = Column(String(36), ForeignKey("properties.id", ondelete="CASCADE"), nullable=False)
    external_id = Column(String(100), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    max_guests = Column(Integer, default=2)
    requires_setup = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    property = relationship("Property", back_populates="room_types")
    units = relationship("RoomUnit", back_populates="room_type")

    __table_args__ = (
        UniqueConstraint("property_id", "external_id", name="uq_room_types_property_external"),
    )

    def __repr__(self):
        return f"<RoomType {self.name} ext={self.external_id}>"


class RoomUnit(Base):
    __tablename__ = "room_units"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    room_type_id = Column(String(36), ForeignKey("room_types.id", ondelete="CASCADE"), nullable=False)
    external_id = Column(String(100), nullable=False)
    unit_number = Column(String(50), nullable=False)
    floor_number = Column(Integer, nullable=True)
    access_instructions = Column(Text, nullable=True)
    requires_setup = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    room_type = relationship("RoomType", back_populates="units")

    __table_args__ = (
        UniqueConstraint("room_type_id", "external_id", name="uq_room_units_type_external"),
    )

    def __repr__(self):
        return f"<RoomUnit {self.unit_number} ext={self.external_id}>"
