"""Invitation router - FastAPI endpoints for the invitation lifecycle"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...config import INVITATION_RATE_LIMIT, INVITATION_RATE_WINDOW_SECONDS
from ...database import get_db
from ...models import InvitationStatus, User
from ...rate_limiter import create_rate_limiter
from .schemas import (
    AcceptInvitationRequest,
    CreatedInvitationResponse,
    CreateInvitationRequest,
    InvitationResponse,
)
from .service import InvitationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/invitations", tags=["Invitations"])

invitation_rate_limit = create_rate_limiter(
    limit=INVITATION_RATE_LIMIT,
    window_seconds=INVITATION_RATE_WINDOW_SECONDS,
    key_prefix="invitations",
)


def get_invitation_service(db: Session = Depends(get_db)) -> InvitationService:
    """Dependency injection for InvitationService"""
    return InvitationService(db)


@router.post(
    "",
    response_model=CreatedInvitationResponse,
    status_code=201,
    dependencies=[Depends(invitation_rate_limit)],
)
def create_invitation(
    data: CreateInvitationRequest,
    current_user: User = Depends(get_current_user),
    service: InvitationService = Depends(get_invitation_service),
):
    """Propose dates to a friend; returns the new invitation id"""
    invitation_id = service.create_invitation(current_user.id, data.to_user_id, data.dates)
    return CreatedInvitationResponse(id=invitation_id)


@router.get("/incoming", response_model=list[InvitationResponse])
def get_incoming_invitations(
    status: Optional[InvitationStatus] = Query(None, description="Defaults to pending"),
    current_user: User = Depends(get_current_user),
    service: InvitationService = Depends(get_invitation_service),
):
    """Invitations addressed to the current user, newest first"""
    return service.list_incoming(current_user.id, status)


@router.get("/outgoing", response_model=list[InvitationResponse])
def get_outgoing_invitations(
    status: Optional[InvitationStatus] = Query(None, description="Defaults to pending"),
    current_user: User = Depends(get_current_user),
    service: InvitationService = Depends(get_invitation_service),
):
    """Invitations sent by the current user, newest first"""
    return service.list_outgoing(current_user.id, status)


@router.get("/{invitation_id}", response_model=InvitationResponse)
def get_invitation(
    invitation_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    service: InvitationService = Depends(get_invitation_service),
):
    """Invitation details, visible to its sender and recipient"""
    return service.get_invitation(invitation_id, current_user.id)


@router.post("/{invitation_id}/accept", response_model=InvitationResponse)
def accept_invitation(
    invitation_id: uuid.UUID,
    data: AcceptInvitationRequest,
    current_user: User = Depends(get_current_user),
    service: InvitationService = Depends(get_invitation_service),
):
    """Accept one proposed date; both users become busy that day"""
    return service.accept_invitation(invitation_id, current_user.id, data.selected_date)


@router.post("/{invitation_id}/decline", response_model=InvitationResponse)
def decline_invitation(
    invitation_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    service: InvitationService = Depends(get_invitation_service),
):
    return service.decline_invitation(invitation_id, current_user.id)


@router.post("/{invitation_id}/cancel", status_code=204)
def cancel_invitation(
    invitation_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    service: InvitationService = Depends(get_invitation_service),
):
    """Withdraw a pending invitation (sender only)"""
    service.cancel_invitation(invitation_id, current_user.id)
    return Response(status_code=204)


__all__ = [
    "router",
    "create_invitation",
    "get_incoming_invitations",
    "get_outgoing_invitations",
    "get_invitation",
    "accept_invitation",
    "decline_invitation",
    "cancel_invitation",
]
