"""
Per-(user, date) critical sections for claiming busy days.

Accepting an invitation checks that both participants are free and then inserts
their busy days. The check and the insert must not interleave with another
acceptance touching the same (user, date), so both keys are locked before the
check and held until the transaction ends.

PostgreSQL uses transaction-scoped advisory locks, which the server releases on
commit or rollback. Other backends fall back to a process-local lock registry,
released when the context exits. Callers must therefore commit or roll back
inside the `with` block.
"""

import hashlib
import logging
import threading
import uuid
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import date

from sqlalchemy import text
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

DayKey = tuple[uuid.UUID, date]

# key -> [lock, number of threads holding or waiting]
_local_locks: dict[DayKey, list] = {}
_registry_lock = threading.Lock()


def advisory_key(user_id: uuid.UUID, day: date) -> int:
    """Stable signed 64-bit key for pg_advisory_xact_lock"""
    digest = hashlib.blake2b(f"busyday:{user_id}:{day.isoformat()}".encode(), digest_size=8)
    return int.from_bytes(digest.digest(), "big", signed=True)


def _ordered(keys: Iterable[DayKey]) -> list[DayKey]:
    # A global order prevents deadlocks between two acceptances sharing a user
    return sorted(set(keys), key=lambda key: (str(key[0]), key[1]))


def _acquire_local(key: DayKey) -> None:
    with _registry_lock:
        entry = _local_locks.setdefault(key, [threading.Lock(), 0])
        entry[1] += 1
    entry[0].acquire()


def _release_local(key: DayKey) -> None:
    with _registry_lock:
        entry = _local_locks[key]
        entry[0].release()
        entry[1] -= 1
        if entry[1] == 0:
            del _local_locks[key]


@contextmanager
def hold_day_locks(db: Session, keys: Iterable[DayKey]) -> Iterator[None]:
    ordered = _ordered(keys)

    if db.get_bind().dialect.name == "postgresql":
        for user_id, day in ordered:
            db.execute(
                text("SELECT pg_advisory_xact_lock(:key)"), {"key": advisory_key(user_id, day)}
            )
        logger.debug(f"🔒 Advisory locks taken for {len(ordered)} day(s)")
        yield
        return

    acquired: list[DayKey] = []
    try:
        for key in ordered:
            _acquire_local(key)
            acquired.append(key)
        yield
    finally:
        for key in reversed(acquired):
            _release_local(key)
