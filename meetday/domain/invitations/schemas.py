"""Invitation domain schemas - Pydantic models for validation"""

import datetime as dt
import uuid
from typing import Optional

from pydantic import BaseModel, field_validator

from ...models import InvitationStatus


class CreateInvitationRequest(BaseModel):
    """Schema for proposing dates to a friend"""

    to_user_id: uuid.UUID
    # Kept as strings so malformed dates are reported as 400 invalid_date, not 422
    dates: list[str]


class CreatedInvitationResponse(BaseModel):
    id: uuid.UUID


class AcceptInvitationRequest(BaseModel):
    """Schema for accepting an invitation with one of the proposed dates"""

    selected_date: str


class InvitationDateResponse(BaseModel):
    id: uuid.UUID
    invitation_id: uuid.UUID
    date: dt.date

    class Config:
        from_attributes = True


class InvitationResponse(BaseModel):
    """Schema for invitation response"""

    id: uuid.UUID
    from_user_id: uuid.UUID
    to_user_id: uuid.UUID
    status: InvitationStatus
    selected_date: Optional[dt.date] = None
    created_at: dt.datetime
    dates: list[InvitationDateResponse]

    class Config:
        from_attributes = True

    @field_validator("created_at")
    @classmethod
    def ensure_timezone(cls, v):
        # SQLite drops tzinfo on the way back; stored values are always UTC
        if v.tzinfo is None:
            return v.replace(tzinfo=dt.timezone.utc)
        return v
