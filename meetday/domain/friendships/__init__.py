"""
Friendships Domain

Read-only view of the friends service: the core only asks whether two users
are accepted friends. Friend-request CRUD lives elsewhere.
"""

from .gate import FriendshipGate, SqlFriendshipGate

__all__ = ["FriendshipGate", "SqlFriendshipGate"]
