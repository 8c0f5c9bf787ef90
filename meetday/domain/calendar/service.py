"""Calendar service - Read-only aggregation of busy days and pending proposals"""

import logging
import uuid
from collections.abc import Callable
from datetime import date
from functools import cached_property
from typing import Optional

from sqlalchemy.orm import Session

from ...errors import Forbidden
from ...models import Busyday
from ...shared.validators import parse_date_range, today_utc
from ..friendships import FriendshipGate, SqlFriendshipGate
from ..invitations.repository import InvitationRepository
from .repository import BusydayRepository
from .schemas import (
    BusydayResponse,
    CalendarResponse,
    InviteDirection,
    PendingInviteResponse,
)

logger = logging.getLogger(__name__)


class CalendarView:
    """
    Calendar of one user over [start, end].

    Each projection queries on first access and is cached afterwards, so a
    caller that only needs busy days never loads pending invitations.
    """

    def __init__(self, db: Session, user_id: uuid.UUID, start: date, end: date, today: date):
        self.db = db
        self.user_id = user_id
        self.start = start
        self.end = end
        self.today = today

    @cached_property
    def busy_days(self) -> list[Busyday]:
        return BusydayRepository.get_busydays_in_range(self.db, self.user_id, self.start, self.end)

    @cached_property
    def past_events(self) -> list[date]:
        return [busyday.date for busyday in self.busy_days if busyday.date < self.today]

    @cached_property
    def pending_invites(self) -> list[PendingInviteResponse]:
        rows = InvitationRepository.get_pending_dates_in_range(
            self.db, self.user_id, self.start, self.end
        )
        return [
            PendingInviteResponse(
                invitation_id=invitation.id,
                date=proposed.date,
                direction=(
                    InviteDirection.INCOMING
                    if invitation.to_user_id == self.user_id
                    else InviteDirection.OUTGOING
                ),
            )
            for proposed, invitation in rows
        ]

    def to_response(self) -> CalendarResponse:
        return CalendarResponse(
            from_date=self.start,
            to_date=self.end,
            busy_days=[BusydayResponse.model_validate(busyday) for busyday in self.busy_days],
            pending_invites=self.pending_invites,
            past_events=self.past_events,
        )


class CalendarService:
    """Service layer for calendar reads"""

    def __init__(
        self,
        db: Session,
        friendships: Optional[FriendshipGate] = None,
        today: Callable[[], date] = today_utc,
    ):
        self.db = db
        self.busydays = BusydayRepository()
        self.friendships = friendships or SqlFriendshipGate(db)
        self.today = today

    def get_calendar(
        self,
        target_user_id: uuid.UUID,
        caller_id: uuid.UUID,
        start: Optional[str],
        end: Optional[str],
    ) -> CalendarView:
        """Calendar of target_user_id; visible to the user and their accepted friends"""
        if caller_id != target_user_id and not self.friendships.are_friends(
            caller_id, target_user_id
        ):
            logger.warning(f"⚠️ User {caller_id} denied calendar access to {target_user_id}")
            raise Forbidden("forbidden", "access denied")

        from_date, to_date = parse_date_range(start, end)
        return CalendarView(self.db, target_user_id, from_date, to_date, self.today())

    def get_my_busydays(
        self, caller_id: uuid.UUID, start: Optional[str], end: Optional[str]
    ) -> list[Busyday]:
        from_date, to_date = parse_date_range(start, end)
        return self.busydays.get_busydays_in_range(self.db, caller_id, from_date, to_date)
