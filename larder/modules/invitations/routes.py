from fastapi import APIRouter, Body, Depends
from larder.core.dependencies import get_current_user, get_user_directory
from larder.core.errors import ValidationError
from larder.core.user_directory import UserDirectory
from larder.database.supabase_client import get_supabase
from larder.modules.invitations.schemas import (
    AcceptInvitationRequest, AcceptInvitationResponse, CurrentUserInvitationsResponse,
    InvitationCreate, InvitationEnvelope, InvitationsListResponse
)
from larder.modules.invitations.service import InvitationService
from supabase import Client
from typing import Dict, Optional

router = APIRouter(tags=["invitations"])


def get_invitation_service(
    supabase: Client = Depends(get_supabase),
    directory: UserDirectory = Depends(get_user_directory),
) -> InvitationService:
    return InvitationService(supabase, directory)


@router.get("/households/{household_id}/invitations", response_model=InvitationsListResponse)
def list_invitations(
    household_id: str,
    user_data: Dict = Depends(get_current_user),
    service: InvitationService = Depends(get_invitation_service)
):
    """List pending invitations of a household (members only)"""
    return InvitationsListResponse(data=service.list_invitations(household_id, user_data["id"]))


@router.post("/households/{household_id}/invitations", response_model=InvitationEnvelope, status_code=201)
def create_invitation(
    household_id: str,
    invitation_data: InvitationCreate,
    user_data: Dict = Depends(get_current_user),
    service: InvitationService = Depends(get_invitation_service)
):
    """Invite an email address to the household (owner only)"""
    invitation = service.create_invitation(household_id, user_data["id"], invitation_data.invited_email)
    return InvitationEnvelope(invitation=invitation)


@router.delete("/households/{household_id}/invitations/{invitation_id}", status_code=204)
def cancel_invitation(
    household_id: str,
    invitation_id: str,
    user_data: Dict = Depends(get_current_user),
    service: InvitationService = Depends(get_invitation_service)
):
    """Cancel a pending invitation (owner only)"""
    service.cancel_invitation(household_id, invitation_id, user_data["id"])
    return None


@router.get("/invitations/current", response_model=CurrentUserInvitationsResponse)
def list_current_user_invitations(
    user_data: Dict = Depends(get_current_user),
    service: InvitationService = Depends(get_invitation_service)
):
    """Pending invitations addressed to the authenticated user's email"""
    return CurrentUserInvitationsResponse(data=service.list_current_user_invitations(user_data["id"]))


@router.patch("/invitations/{token}/accept", response_model=AcceptInvitationResponse)
def accept_invitation(
    token: str,
    body: Optional[AcceptInvitationRequest] = Body(default=None),
    user_data: Dict = Depends(get_current_user),
    service: InvitationService = Depends(get_invitation_service)
):
    """Accept an invitation by token"""
    if body is not None and body.token is not None and body.token != token:
        raise ValidationError(
            "Token in body does not match token in path",
            details=[{"field": "token", "message": "Token mismatch"}],
        )
    membership = service.accept_invitation(token, user_data["id"])
    return AcceptInvitationResponse(membership=membership)
