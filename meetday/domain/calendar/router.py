"""Calendar router - FastAPI endpoints for calendar reads"""

import logging
import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from .schemas import BusydayResponse, CalendarResponse
from .service import CalendarService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Calendar"])


def get_calendar_service(db: Session = Depends(get_db)) -> CalendarService:
    """Dependency injection for CalendarService"""
    return CalendarService(db)


@router.get("/me/busydays", response_model=list[BusydayResponse])
def get_my_busydays(
    from_: str = Query(..., alias="from", description="YYYY-MM-DD"),
    to: str = Query(..., description="YYYY-MM-DD"),
    current_user: User = Depends(get_current_user),
    service: CalendarService = Depends(get_calendar_service),
):
    """Busy days of the current user in the range"""
    return service.get_my_busydays(current_user.id, from_, to)


@router.get("/{user_id}/calendar", response_model=CalendarResponse)
def get_user_calendar(
    user_id: uuid.UUID,
    from_: str = Query(..., alias="from", description="YYYY-MM-DD"),
    to: str = Query(..., description="YYYY-MM-DD"),
    current_user: User = Depends(get_current_user),
    service: CalendarService = Depends(get_calendar_service),
):
    """Busy days, pending proposals and past events of a user (self or accepted friend)"""
    view = service.get_calendar(user_id, current_user.id, from_, to)
    return view.to_response()


__all__ = ["router", "get_my_busydays", "get_user_calendar"]
