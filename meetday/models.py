import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    DDL,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
    Uuid,
    event,
)
from sqlalchemy.orm import relationship

from .database import Base

# Constraint names are matched by errors.map_integrity_error
BUSYDAY_UNIQUE_CONSTRAINT = "uq_busydays_user_date"
INVITATION_DATE_UNIQUE_CONSTRAINT = "uq_invitation_dates_invitation_date"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum_values(enum_cls) -> list[str]:
    """Persist enum values ('pending') rather than member names ('PENDING')"""
    return [member.value for member in enum_cls]


class InvitationStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class FriendshipStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    username = Column(String(64), unique=True, index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class Friendship(Base):
    """Accepted friendships gate invitations and calendar access. Owned by the friends service."""

    __tablename__ = "friendships"
    __table_args__ = (
        UniqueConstraint("user_id", "friend_id", name="uq_friendships_user_friend"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    friend_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    status = Column(
        Enum(FriendshipStatus, name="friendship_status", values_callable=_enum_values),
        default=FriendshipStatus.PENDING,
        nullable=False,
    )


class Invitation(Base):
    __tablename__ = "invitations"
    __table_args__ = (
        CheckConstraint("from_user_id <> to_user_id", name="ck_invitations_not_self"),
        # selected_date is present if and only if the invitation was accepted
        CheckConstraint(
            "(status = 'accepted' AND selected_date IS NOT NULL)"
            " OR (status <> 'accepted' AND selected_date IS NULL)",
            name="ck_invitations_selected_date_status",
        ),
        Index("idx_invitations_status", "status"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    from_user_id = Column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    to_user_id = Column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    status = Column(
        Enum(InvitationStatus, name="invitation_status", values_callable=_enum_values),
        default=InvitationStatus.PENDING,
        nullable=False,
    )
    selected_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    dates = relationship(
        "InvitationDate",
        back_populates="invitation",
        cascade="all, delete-orphan",
        order_by="InvitationDate.date",
    )


class InvitationDate(Base):
    __tablename__ = "invitation_dates"
    __table_args__ = (
        UniqueConstraint("invitation_id", "date", name=INVITATION_DATE_UNIQUE_CONSTRAINT),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    invitation_id = Column(
        Uuid, ForeignKey("invitations.id", ondelete="CASCADE"), index=True, nullable=False
    )
    date = Column(Date, nullable=False)

    invitation = relationship("Invitation", back_populates="dates")


class Busyday(Base):
    __tablename__ = "busydays"
    __table_args__ = (UniqueConstraint("user_id", "date", name=BUSYDAY_UNIQUE_CONSTRAINT),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    event_id = Column(Uuid, nullable=True)  # Opaque reference, the accepted invitation id


# PostgreSQL keeps a trigger that refuses invitations between non-friends.
# InvitationService.create checks the same thing inside its transaction on every backend.
_friendship_trigger_function = DDL(
    """
    CREATE OR REPLACE FUNCTION ensure_invitations_are_friends()
    RETURNS TRIGGER AS $$
    BEGIN
        IF NOT EXISTS (
            SELECT 1
            FROM friendships f
            WHERE (
                (f.user_id = NEW.from_user_id AND f.friend_id = NEW.to_user_id)
                OR
                (f.user_id = NEW.to_user_id AND f.friend_id = NEW.from_user_id)
            )
            AND f.status = 'accepted'
        ) THEN
            RAISE EXCEPTION 'Invitation requires accepted friendship between users';
        END IF;
        RETURN NEW;
    END;
    $$ LANGUAGE plpgsql;
    """
)
_friendship_trigger = DDL(
    """
    CREATE TRIGGER trg_invitations_require_friendship
    BEFORE INSERT ON invitations
    FOR EACH ROW EXECUTE FUNCTION ensure_invitations_are_friends();
    """
)

event.listen(
    Invitation.__table__,
    "after_create",
    _friendship_trigger_function.execute_if(dialect="postgresql"),
)
event.listen(
    Invitation.__table__, "after_create", _friendship_trigger.execute_if(dialect="postgresql")
)
