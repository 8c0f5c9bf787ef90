"""Invitation repository - Database operations for invitations and their proposed dates

Methods only add/flush. InvitationService owns the transaction and decides when to commit.
"""

import uuid
from datetime import date
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from ...models import Invitation, InvitationDate, InvitationStatus


class InvitationRepository:
    """Repository for invitation database operations"""

    @staticmethod
    def get_invitation(db: Session, invitation_id: uuid.UUID) -> Optional[Invitation]:
        return (
            db.query(Invitation)
            .options(selectinload(Invitation.dates))
            .filter(Invitation.id == invitation_id)
            .first()
        )

    @staticmethod
    def get_pending_for_recipient(
        db: Session, invitation_id: uuid.UUID, user_id: uuid.UUID, lock: bool = False
    ) -> Optional[Invitation]:
        """Pending invitation addressed to user_id. lock=True takes a row lock (FOR UPDATE)."""
        query = db.query(Invitation).filter(
            Invitation.id == invitation_id,
            Invitation.to_user_id == user_id,
            Invitation.status == InvitationStatus.PENDING,
        )
        if lock:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def get_pending_for_sender(
        db: Session, invitation_id: uuid.UUID, user_id: uuid.UUID
    ) -> Optional[Invitation]:
        return (
            db.query(Invitation)
            .filter(
                Invitation.id == invitation_id,
                Invitation.from_user_id == user_id,
                Invitation.status == InvitationStatus.PENDING,
            )
            .first()
        )

    @staticmethod
    def list_for_recipient(
        db: Session, user_id: uuid.UUID, status: InvitationStatus
    ) -> list[Invitation]:
        return (
            db.query(Invitation)
            .options(selectinload(Invitation.dates))
            .filter(Invitation.to_user_id == user_id, Invitation.status == status)
            .order_by(Invitation.created_at.desc())
            .all()
        )

    @staticmethod
    def list_for_sender(
        db: Session, user_id: uuid.UUID, status: InvitationStatus
    ) -> list[Invitation]:
        return (
            db.query(Invitation)
            .options(selectinload(Invitation.dates))
            .filter(Invitation.from_user_id == user_id, Invitation.status == status)
            .order_by(Invitation.created_at.desc())
            .all()
        )

    @staticmethod
    def create_invitation(
        db: Session, from_user_id: uuid.UUID, to_user_id: uuid.UUID, dates: list[date]
    ) -> Invitation:
        """Stage an invitation and its whole proposed-date set in the current transaction"""
        invitation = Invitation(
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            status=InvitationStatus.PENDING,
            selected_date=None,
        )
        invitation.dates = [InvitationDate(date=day) for day in dates]
        db.add(invitation)
        db.flush()
        return invitation

    @staticmethod
    def has_proposed_date(db: Session, invitation_id: uuid.UUID, day: date) -> bool:
        row = (
            db.query(InvitationDate.id)
            .filter(InvitationDate.invitation_id == invitation_id, InvitationDate.date == day)
            .first()
        )
        return row is not None

    @staticmethod
    def mark_accepted(db: Session, invitation: Invitation, day: date) -> Invitation:
        invitation.status = InvitationStatus.ACCEPTED
        invitation.selected_date = day
        db.flush()
        return invitation

    @staticmethod
    def mark_declined(db: Session, invitation: Invitation) -> Invitation:
        invitation.status = InvitationStatus.DECLINED
        db.flush()
        return invitation

    @staticmethod
    def delete_invitation(db: Session, invitation: Invitation) -> None:
        """Delete an invitation; its proposed dates go with it"""
        db.delete(invitation)
        db.flush()

    @staticmethod
    def get_pending_dates_in_range(
        db: Session, user_id: uuid.UUID, start: date, end: date
    ) -> list[tuple[InvitationDate, Invitation]]:
        """Proposed dates in [start, end] of pending invitations user_id sent or received"""
        return (
            db.query(InvitationDate, Invitation)
            .join(Invitation, InvitationDate.invitation_id == Invitation.id)
            .filter(
                Invitation.status == InvitationStatus.PENDING,
                or_(Invitation.from_user_id == user_id, Invitation.to_user_id == user_id),
                InvitationDate.date >= start,
                InvitationDate.date <= end,
            )
            .order_by(InvitationDate.date, Invitation.created_at)
            .all()
        )
