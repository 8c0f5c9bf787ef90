"""Calendar domain schemas"""

import datetime as dt
import enum
import uuid
from typing import Optional

from pydantic import BaseModel, Field


class InviteDirection(str, enum.Enum):
    """Side of a pending invitation, seen from the calendar owner"""

    INCOMING = "incoming"
    OUTGOING = "outgoing"


class BusydayResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    date: dt.date
    event_id: Optional[uuid.UUID] = None

    class Config:
        from_attributes = True


class PendingInviteResponse(BaseModel):
    invitation_id: uuid.UUID
    date: dt.date
    direction: InviteDirection


class CalendarResponse(BaseModel):
    """Schema for a user's calendar over an inclusive date range"""

    from_date: dt.date = Field(alias="from")
    to_date: dt.date = Field(alias="to")
    busy_days: list[BusydayResponse]
    pending_invites: list[PendingInviteResponse]
    past_events: list[dt.date]

    class Config:
        populate_by_name = True
