import logging
import secrets
from datetime import datetime, timedelta, timezone
from supabase import Client
from typing import Any, Dict, List

from larder.config.settings import settings
from larder.core import access
from larder.core.errors import (
    AlreadyMemberError, EmailMismatchError, HasOtherMembersError,
    HouseholdNotFoundError, InvitationAcceptanceError, InvitationAlreadyExistsError,
    InvitationAlreadyUsedError, InvitationExpiredError, InvitationNotFoundError,
    NotOwnerError, ServiceError
)
from larder.core.saga import Saga
from larder.core.user_directory import UserDirectory
from larder.modules.invitations.schemas import (
    InvitationResponse, InvitationWithHouseholdResponse, MembershipResponse
)

logger = logging.getLogger(__name__)


def parse_timestamp(value: Any) -> datetime:
    """Parse a timestamptz as returned by PostgREST into an aware datetime."""
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class InvitationService:
    def __init__(self, supabase: Client, directory: UserDirectory):
        self.supabase = supabase
        self.directory = directory

    def _require_owner(self, household_id: str, user_id: str) -> Dict[str, Any]:
        if not access.is_member(self.supabase, household_id, user_id):
            raise HouseholdNotFoundError()
        household = access.get_household_row(self.supabase, household_id)
        if not household:
            raise HouseholdNotFoundError()
        if household["owner_id"] != user_id:
            raise NotOwnerError()
        return household

    def _caller_email(self, user_id: str) -> str:
        email = self.directory.get_email(user_id)
        if not email:
            raise ServiceError(f"Unable to verify email for user {user_id}")
        return email.lower()

    def list_invitations(self, household_id: str, user_id: str) -> List[InvitationResponse]:
        """Pending invitations of a household, newest first. Expired rows are included."""
        if not access.is_member(self.supabase, household_id, user_id):
            raise HouseholdNotFoundError()
        result = self.supabase.table("household_invitations")\
            .select("*")\
            .eq("household_id", household_id)\
            .eq("status", "pending")\
            .order("created_at", desc=True)\
            .execute()
        return [InvitationResponse(**row) for row in result.data or []]

    def create_invitation(self, household_id: str, user_id: str, email: str) -> InvitationResponse:
        """Issue a single-use invitation token for ``email`` (owner only)"""
        self._require_owner(household_id, user_id)
        email = email.strip().lower()

        invited_user_id = self.directory.find_by_email(email)
        if invited_user_id and access.is_member(self.supabase, household_id, invited_user_id):
            raise AlreadyMemberError()

        existing = self.supabase.table("household_invitations")\
            .select("id")\
            .eq("household_id", household_id)\
            .eq("invited_email", email)\
            .eq("status", "pending")\
            .limit(1)\
            .execute()
        if existing.data:
            raise InvitationAlreadyExistsError()

        now = datetime.now(timezone.utc)
        result = self.supabase.table("household_invitations").insert({
            "household_id": household_id,
            "invited_email": email,
            "token": secrets.token_urlsafe(32),
            "status": "pending",
            "created_at": now.isoformat(),
            "expires_at": (now + timedelta(days=settings.invitation_ttl_days)).isoformat(),
        }).execute()
        if not result.data:
            raise ServiceError(f"Failed to create invitation for household {household_id}")

        logger.info(f"Invitation created for household {household_id}")
        return InvitationResponse(**result.data[0])

    def accept_invitation(self, token: str, user_id: str) -> MembershipResponse:
        """
        Join the invitation's household.

        Checks run in a fixed order, each with its own error: unknown token,
        already used, expired, email mismatch, already a member. The membership
        insert and the status flip form one saga so a failed flip removes the
        membership again.
        """
        invitation = access.first(
            self.supabase.table("household_invitations")
                .select("*")
                .eq("token", token)
                .limit(1)
                .execute()
        )
        if not invitation:
            raise InvitationNotFoundError()
        if invitation["status"] != "pending":
            raise InvitationAlreadyUsedError()
        if parse_timestamp(invitation["expires_at"]) < datetime.now(timezone.utc):
            raise InvitationExpiredError()
        if self._caller_email(user_id) != invitation["invited_email"].lower():
            raise EmailMismatchError()

        household_id = invitation["household_id"]
        if access.is_member(self.supabase, household_id, user_id):
            raise AlreadyMemberError()

        previous = access.get_membership(self.supabase, user_id)
        previous_household = None
        if previous and previous["household_id"] != household_id:
            previous_household = access.get_household_row(self.supabase, previous["household_id"])
            if (
                previous_household
                and previous_household["owner_id"] == user_id
                and access.count_members(self.supabase, previous_household["id"]) > 1
            ):
                raise HasOtherMembersError("Transfer or empty your current household before joining another")

        try:
            with Saga("accept_invitation") as saga:
                membership = saga.step(
                    "insert membership",
                    lambda: self._insert_membership(household_id, user_id),
                    lambda row: self.supabase.table("user_households")
                        .delete()
                        .eq("household_id", household_id)
                        .eq("user_id", user_id)
                        .execute(),
                )
                saga.step("mark accepted", lambda: self._mark_accepted(invitation["id"]))
        except Exception as e:
            raise InvitationAcceptanceError(f"Failed to accept invitation {invitation['id']}: {e}") from e

        logger.info(f"User {user_id} joined household {household_id}")

        if previous and previous["household_id"] != household_id:
            self._leave_previous_household(user_id, previous["household_id"], previous_household)

        return MembershipResponse(
            household_id=membership["household_id"],
            user_id=membership["user_id"],
            role="member",
            joined_at=membership["created_at"],
            created_at=membership["created_at"],
        )

    def _insert_membership(self, household_id: str, user_id: str) -> Dict[str, Any]:
        result = self.supabase.table("user_households").insert({
            "household_id": household_id,
            "user_id": user_id,
        }).execute()
        if not result.data:
            raise ServiceError("Membership insert returned no rows")
        return result.data[0]

    def _mark_accepted(self, invitation_id: str) -> None:
        result = self.supabase.table("household_invitations")\
            .update({"status": "accepted"})\
            .eq("id", invitation_id)\
            .execute()
        if not result.data:
            raise ServiceError(f"Invitation {invitation_id} status update affected no rows")

    def _leave_previous_household(self, user_id: str, household_id: str, household) -> None:
        try:
            self.supabase.table("user_households")\
                .delete()\
                .eq("household_id", household_id)\
                .eq("user_id", user_id)\
                .execute()
            if household and household["owner_id"] == user_id:
                # The owner was its only member; nothing is left to keep.
                self.supabase.table("households").delete().eq("id", household_id).execute()
                logger.info(f"Deleted abandoned household {household_id}")
        except Exception as e:
            logger.warning(f"Could not leave previous household {household_id} for {user_id}: {e}")

    def cancel_invitation(self, household_id: str, invitation_id: str, user_id: str) -> None:
        """Hard-delete a pending invitation (owner only)"""
        self._require_owner(household_id, user_id)
        invitation = access.first(
            self.supabase.table("household_invitations")
                .select("id")
                .eq("id", invitation_id)
                .eq("household_id", household_id)
                .limit(1)
                .execute()
        )
        if not invitation:
            raise InvitationNotFoundError()
        self.supabase.table("household_invitations").delete().eq("id", invitation_id).execute()

    def list_current_user_invitations(self, user_id: str) -> List[InvitationWithHouseholdResponse]:
        """Pending, unexpired invitations addressed to the caller, with household context"""
        email = self._caller_email(user_id)
        result = self.supabase.table("household_invitations")\
            .select("*")\
            .eq("invited_email", email)\
            .eq("status", "pending")\
            .gt("expires_at", datetime.now(timezone.utc).isoformat())\
            .order("created_at", desc=True)\
            .execute()

        invitations = []
        for row in result.data or []:
            household = access.get_household_row(self.supabase, row["household_id"])
            if not household:
                logger.warning(f"Invitation {row['id']} points at missing household {row['household_id']}")
                continue
            owner_email = self.directory.get_email(household["owner_id"]) or "Unknown"
            invitations.append(InvitationWithHouseholdResponse(
                **row,
                household_name=household["name"],
                owner_email=owner_email,
            ))
        return invitations
