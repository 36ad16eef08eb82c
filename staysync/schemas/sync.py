"""Schemas for the manual sync and token ops endpoints"""

from datetime import date, datetime
from typing import Optional, List, Dict
from pydantic import BaseModel, Field


class SyncRequest(BaseModel):
    days_back: int = Field(default=7, ge=0, le=365)
    days_ahead: int = Field(default=30, ge=0, le=730)


class SyncResponse(BaseModel):
    window_start: date
    window_end: date
    fetched: int
    created: int
    updated: int
    stale: int
    failed: int
    errors: List[Dict[str, str]] = []
    duration_ms: int

    class Config:
        from_attributes = True


class TokenStatusResponse(BaseModel):
    initialized: bool
    has_access_token: bool
    expires_at: Optional[datetime]
    expiring: bool
    seconds_remaining: Optional[int]
    updated_at: Optional[datetime]
