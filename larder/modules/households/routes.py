from fastapi import APIRouter, Depends
from larder.core.dependencies import get_current_user, get_user_directory
from larder.core.user_directory import UserDirectory
from larder.database.supabase_client import get_supabase
from larder.modules.households.schemas import (
    HouseholdCreate, HouseholdUpdate, HouseholdResponse, HouseholdListResponse,
    HouseholdWithMembersResponse, InviteMemberRequest, MembersListResponse
)
from larder.modules.households.service import HouseholdService
from larder.modules.invitations.schemas import InvitationEnvelope
from supabase import Client
from typing import Dict

router = APIRouter(prefix="/households", tags=["households"])


def get_household_service(
    supabase: Client = Depends(get_supabase),
    directory: UserDirectory = Depends(get_user_directory),
) -> HouseholdService:
    return HouseholdService(supabase, directory)


@router.get("", response_model=HouseholdListResponse)
def get_user_household(
    user_data: Dict = Depends(get_current_user),
    service: HouseholdService = Depends(get_household_service)
):
    """Current household of the user (empty list when unaffiliated)"""
    household = service.get_user_household(user_data["id"])
    return HouseholdListResponse(
        data=[household] if household else [],
        owned_household_id=service.get_owned_household_id(user_data["id"]),
    )


@router.post("", response_model=HouseholdResponse, status_code=201)
def create_household(
    household_data: HouseholdCreate,
    user_data: Dict = Depends(get_current_user),
    service: HouseholdService = Depends(get_household_service)
):
    """Create a household owned by the current user"""
    return service.create_household(user_data["id"], household_data.name)


@router.get("/{household_id}", response_model=HouseholdWithMembersResponse)
def get_household(
    household_id: str,
    user_data: Dict = Depends(get_current_user),
    service: HouseholdService = Depends(get_household_service)
):
    """Get household with its members (members only)"""
    return service.get_household(household_id, user_data["id"])


@router.patch("/{household_id}", response_model=HouseholdResponse)
def update_household(
    household_id: str,
    household_data: HouseholdUpdate,
    user_data: Dict = Depends(get_current_user),
    service: HouseholdService = Depends(get_household_service)
):
    """Rename household (owner only)"""
    return service.update_household(household_id, user_data["id"], household_data.name)


@router.delete("/{household_id}", status_code=204)
def delete_household(
    household_id: str,
    user_data: Dict = Depends(get_current_user),
    service: HouseholdService = Depends(get_household_service)
):
    """Delete household (owner only, no other members)"""
    service.delete_household(household_id, user_data["id"])
    return None


@router.get("/{household_id}/members", response_model=MembersListResponse)
def list_members(
    household_id: str,
    user_data: Dict = Depends(get_current_user),
    service: HouseholdService = Depends(get_household_service)
):
    """List household members (members only)"""
    return MembersListResponse(data=service.list_members(household_id, user_data["id"]))


@router.post("/{household_id}/members", response_model=InvitationEnvelope, status_code=201)
def invite_member(
    household_id: str,
    invite_data: InviteMemberRequest,
    user_data: Dict = Depends(get_current_user),
    service: HouseholdService = Depends(get_household_service)
):
    """Invite a member by email (owner only)"""
    invitation = service.invite_member(household_id, user_data["id"], invite_data.invited_email)
    return InvitationEnvelope(invitation=invitation)
