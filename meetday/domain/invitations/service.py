"""Invitation service - Business logic for the invitation lifecycle

Create, accept, decline and cancel own every cross-entity rule:
- an invitation and its proposed dates are written together or not at all
- accepting sets the selected date and claims the day for both participants in one transaction
- a participant never holds two busy days on the same date
"""

import logging
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import date
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ...errors import ApiError, BadRequest, Conflict, Forbidden, InternalError, NotFound
from ...errors import map_integrity_error
from ...models import Invitation, InvitationStatus
from ...shared.validators import parse_iso_date, parse_proposed_dates, today_utc
from ..calendar.locks import hold_day_locks
from ..calendar.repository import BusydayRepository
from ..friendships import FriendshipGate, SqlFriendshipGate
from .repository import InvitationRepository

logger = logging.getLogger(__name__)


class InvitationService:
    """Service layer for invitation business logic"""

    def __init__(
        self,
        db: Session,
        friendships: Optional[FriendshipGate] = None,
        today: Callable[[], date] = today_utc,
    ):
        self.db = db
        self.repo = InvitationRepository()
        self.busydays = BusydayRepository()
        self.friendships = friendships or SqlFriendshipGate(db)
        self.today = today

    @contextmanager
    def _rollback_on_error(self) -> Iterator[None]:
        """Roll back on any failure and translate storage errors for the API"""
        try:
            yield
        except ApiError:
            self.db.rollback()
            raise
        except IntegrityError as e:
            self.db.rollback()
            raise map_integrity_error(e) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Storage failure: {type(e).__name__}: {e}")
            raise InternalError() from e

    # ========================================================================
    # MUTATIONS
    # ========================================================================

    def create_invitation(
        self, proposer_id: uuid.UUID, recipient_id: uuid.UUID, dates: list[str]
    ) -> uuid.UUID:
        """Propose dates to a friend. Returns the new invitation id."""
        if proposer_id == recipient_id:
            raise BadRequest("cannot_invite_self", "cannot invite yourself")

        proposed = parse_proposed_dates(dates, self.today())

        with self._rollback_on_error():
            # Checked in the same transaction as the insert
            if not self.friendships.are_friends(proposer_id, recipient_id):
                logger.warning(f"⚠️ User {proposer_id} tried to invite non-friend {recipient_id}")
                raise Forbidden("not_friends", "users are not friends")

            invitation = self.repo.create_invitation(self.db, proposer_id, recipient_id, proposed)
            invitation_id = invitation.id
            self.db.commit()

        logger.info(
            f"📨 Invitation {invitation_id} created: {proposer_id} -> {recipient_id} "
            f"({len(proposed)} date(s))"
        )
        return invitation_id

    def accept_invitation(
        self, invitation_id: uuid.UUID, acceptor_id: uuid.UUID, selected_date: str
    ) -> Invitation:
        """
        Accept a pending invitation on one of its proposed dates.

        The status change and both busy days commit together. Both (user, date)
        keys stay locked from the free-day check until commit, so a concurrent
        acceptance cannot double-book either participant. A unique violation
        that still slips through is reported as day_busy.
        """
        day = parse_iso_date(selected_date)

        with self._rollback_on_error():
            invitation = self.repo.get_pending_for_recipient(
                self.db, invitation_id, acceptor_id, lock=True
            )
            if not invitation:
                raise NotFound("invitation_not_found", "invitation not found")

            if not self.repo.has_proposed_date(self.db, invitation_id, day):
                raise BadRequest("date_not_proposed", "selected_date is not proposed")

            participants = (invitation.from_user_id, invitation.to_user_id)

        with hold_day_locks(self.db, [(user_id, day) for user_id in participants]):
            with self._rollback_on_error():
                for user_id in participants:
                    if self.busydays.is_day_busy(self.db, user_id, day):
                        logger.info(f"📅 Day {day} already busy for user {user_id}")
                        raise Conflict("day_busy", "selected day is already busy")

                self.repo.mark_accepted(self.db, invitation, day)
                for user_id in participants:
                    self.busydays.create_busyday(self.db, user_id, day, event_id=invitation_id)
                self.db.commit()

        logger.info(f"✅ Invitation {invitation_id} accepted for {day}")
        return self.repo.get_invitation(self.db, invitation_id)

    def decline_invitation(self, invitation_id: uuid.UUID, recipient_id: uuid.UUID) -> Invitation:
        """Decline a pending invitation. Resolved or foreign invitations are not found."""
        with self._rollback_on_error():
            invitation = self.repo.get_pending_for_recipient(
                self.db, invitation_id, recipient_id, lock=True
            )
            if not invitation:
                raise NotFound("invitation_not_found", "invitation not found")

            self.repo.mark_declined(self.db, invitation)
            self.db.commit()

        logger.info(f"🚫 Invitation {invitation_id} declined")
        return self.repo.get_invitation(self.db, invitation_id)

    def cancel_invitation(self, invitation_id: uuid.UUID, sender_id: uuid.UUID) -> None:
        """Withdraw a pending invitation, deleting it with its proposed dates"""
        with self._rollback_on_error():
            invitation = self.repo.get_pending_for_sender(self.db, invitation_id, sender_id)
            if not invitation:
                raise NotFound("invitation_not_found", "invitation not found")

            self.repo.delete_invitation(self.db, invitation)
            self.db.commit()

        logger.info(f"🗑️ Invitation {invitation_id} cancelled by sender")

    # ========================================================================
    # READS
    # ========================================================================

    def get_invitation(self, invitation_id: uuid.UUID, caller_id: uuid.UUID) -> Invitation:
        """Get one invitation; only its sender and recipient may see it"""
        invitation = self.repo.get_invitation(self.db, invitation_id)
        if not invitation:
            raise NotFound("invitation_not_found", "invitation not found")
        if caller_id not in (invitation.from_user_id, invitation.to_user_id):
            raise Forbidden()
        return invitation

    def list_incoming(
        self, user_id: uuid.UUID, status: Optional[InvitationStatus] = None
    ) -> list[Invitation]:
        return self.repo.list_for_recipient(self.db, user_id, status or InvitationStatus.PENDING)

    def list_outgoing(
        self, user_id: uuid.UUID, status: Optional[InvitationStatus] = None
    ) -> list[Invitation]:
        return self.repo.list_for_sender(self.db, user_id, status or InvitationStatus.PENDING)
