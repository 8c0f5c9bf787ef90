"""Busyday repository - Database operations for exclusive (user, date) claims"""

import uuid
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Busyday


class BusydayRepository:
    """Repository for busyday database operations"""

    @staticmethod
    def get_busydays_in_range(
        db: Session, user_id: uuid.UUID, start: date, end: date
    ) -> list[Busyday]:
        """Busy days of a user in [start, end], earliest first"""
        return (
            db.query(Busyday)
            .filter(Busyday.user_id == user_id, Busyday.date >= start, Busyday.date <= end)
            .order_by(Busyday.date.asc())
            .all()
        )

    @staticmethod
    def is_day_busy(db: Session, user_id: uuid.UUID, day: date) -> bool:
        row = db.query(Busyday.id).filter(Busyday.user_id == user_id, Busyday.date == day).first()
        return row is not None

    @staticmethod
    def create_busyday(
        db: Session, user_id: uuid.UUID, day: date, event_id: Optional[uuid.UUID] = None
    ) -> Busyday:
        """Stage a claim; flushing surfaces a unique violation immediately"""
        busyday = Busyday(user_id=user_id, date=day, event_id=event_id)
        db.add(busyday)
        db.flush()
        return busyday
