"""Beds24 access/refresh token pair (single row)"""
from datetime import datetime
from sqlalchemy import Column, Integer, Text, DateTime
from ..database import Base

# The table only ever holds this row; it is overwritten, never deleted
CREDENTIAL_ROW_ID = 1


class AuthCredential(Base):
    """
    Stores the rotating token pair for the external booking API.

    refresh_token is never null once the row exists. access_token and
    expires_at may be null or in the past, which forces a refresh on next use.
    """
    __tablename__ = "auth_credentials"

    id = Column(Integer, primary_key=True, default=CREDENTIAL_ROW_ID)
    access_token = Column(Text, nullable=True)
    refresh_token = Column(Text, nullable=False)
    expires_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<AuthCredential expires_at={self.expires_at}>"
