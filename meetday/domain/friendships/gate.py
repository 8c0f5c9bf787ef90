"""Friendship gate - answers whether two users share an accepted friendship"""

import uuid
from typing import Protocol

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from ...models import Friendship, FriendshipStatus


class FriendshipGate(Protocol):
    def are_friends(self, user_a: uuid.UUID, user_b: uuid.UUID) -> bool: ...


class SqlFriendshipGate:
    """Reads the friendships table. A row in either direction counts."""

    def __init__(self, db: Session):
        self.db = db

    def are_friends(self, user_a: uuid.UUID, user_b: uuid.UUID) -> bool:
        row = (
            self.db.query(Friendship.id)
            .filter(
                Friendship.status == FriendshipStatus.ACCEPTED,
                or_(
                    and_(Friendship.user_id == user_a, Friendship.friend_id == user_b),
                    and_(Friendship.user_id == user_b, Friendship.friend_id == user_a),
                ),
            )
            .first()
        )
        return row is not None
