import logging
from datetime import datetime, timezone
from supabase import Client
from typing import Any, Dict, List, Optional

from larder.core import access
from larder.core.errors import (
    AlreadyOwnerError, HasOtherMembersError, HouseholdCreationError,
    HouseholdNotFoundError, NotOwnerError, ServiceError
)
from larder.core.saga import Saga
from larder.core.user_directory import UserDirectory
from larder.modules.households.schemas import (
    HouseholdResponse, HouseholdWithMembersResponse, MemberResponse
)
from larder.modules.invitations.schemas import InvitationResponse
from larder.modules.invitations.service import InvitationService

logger = logging.getLogger(__name__)


class HouseholdService:
    def __init__(self, supabase: Client, directory: UserDirectory):
        self.supabase = supabase
        self.directory = directory

    def _insert(self, table: str, values: Dict[str, Any]) -> Dict[str, Any]:
        result = self.supabase.table(table).insert(values).execute()
        if not result.data:
            raise ServiceError(f"Insert into {table} returned no rows")
        return result.data[0]

    def get_user_household(self, user_id: str) -> Optional[HouseholdResponse]:
        """The caller's current household with a live member count, or None if unaffiliated"""
        membership = access.get_membership(self.supabase, user_id)
        if not membership:
            return None
        household = access.get_household_row(self.supabase, membership["household_id"])
        if not household:
            return None
        return HouseholdResponse(
            id=household["id"],
            name=household["name"],
            created_at=household["created_at"],
            owner_id=household["owner_id"],
            member_count=access.count_members(self.supabase, household["id"]),
        )

    def get_owned_household_id(self, user_id: str) -> Optional[str]:
        household = access.get_owned_household(self.supabase, user_id)
        return household["id"] if household else None

    def create_household(self, user_id: str, name: str) -> HouseholdResponse:
        """
        Create a household owned by the caller together with its pantry and shopping list.

        Every insert is a saga step; a failure undoes the completed steps newest
        first. A previous membership elsewhere is dropped only once the new
        household is fully provisioned.
        """
        if access.get_owned_household(self.supabase, user_id):
            raise AlreadyOwnerError()

        previous = access.get_membership(self.supabase, user_id)

        try:
            with Saga("create_household") as saga:
                household = saga.step(
                    "insert household",
                    lambda: self._insert("households", {"owner_id": user_id, "name": name}),
                    lambda row: self.supabase.table("households").delete().eq("id", row["id"]).execute(),
                )
                household_id = household["id"]
                saga.step(
                    "insert membership",
                    lambda: self._insert("user_households", {"household_id": household_id, "user_id": user_id}),
                    lambda row: self.supabase.table("user_households")
                        .delete()
                        .eq("household_id", household_id)
                        .eq("user_id", user_id)
                        .execute(),
                )
                saga.step(
                    "insert pantry",
                    lambda: self._insert("pantries", {"household_id": household_id}),
                    lambda row: self.supabase.table("pantries").delete().eq("id", row["id"]).execute(),
                )
                saga.step(
                    "insert shopping list",
                    lambda: self._insert("shopping_lists", {"household_id": household_id}),
                    lambda row: self.supabase.table("shopping_lists").delete().eq("id", row["id"]).execute(),
                )
        except Exception as e:
            raise HouseholdCreationError(f"Failed to create household for {user_id}: {e}") from e

        logger.info(f"Household {household_id} created by {user_id}")

        if previous and previous["household_id"] != household_id:
            try:
                self.supabase.table("user_households")\
                    .delete()\
                    .eq("household_id", previous["household_id"])\
                    .eq("user_id", user_id)\
                    .execute()
            except Exception as e:
                # The new household exists; the user can leave the old one later.
                logger.warning(f"Could not remove {user_id} from previous household {previous['household_id']}: {e}")

        return HouseholdResponse(
            id=household["id"],
            name=household["name"],
            created_at=household["created_at"],
            owner_id=user_id,
            member_count=1,
        )

    def _require_member(self, household_id: str, user_id: str) -> Dict[str, Any]:
        if not access.is_member(self.supabase, household_id, user_id):
            raise HouseholdNotFoundError()
        household = access.get_household_row(self.supabase, household_id)
        if not household:
            raise HouseholdNotFoundError()
        return household

    def _require_owner(self, household_id: str, user_id: str) -> Dict[str, Any]:
        household = self._require_member(household_id, user_id)
        if household["owner_id"] != user_id:
            raise NotOwnerError()
        return household

    def _members(self, household: Dict[str, Any]) -> List[MemberResponse]:
        result = self.supabase.table("user_households")\
            .select("user_id, created_at")\
            .eq("household_id", household["id"])\
            .order("created_at")\
            .execute()
        members = []
        for row in result.data or []:
            email = self.directory.get_email(row["user_id"])
            if not email:
                logger.warning(f"Skipping member {row['user_id']}: email lookup failed")
                continue
            members.append(MemberResponse(
                id=row["user_id"],
                email=email,
                role="owner" if row["user_id"] == household["owner_id"] else "member",
                joined_at=row.get("created_at"),
            ))
        return members

    def get_household(self, household_id: str, user_id: str) -> HouseholdWithMembersResponse:
        """Household details with members; NotFound for both absent and foreign households"""
        household = self._require_member(household_id, user_id)
        members = self._members(household)
        return HouseholdWithMembersResponse(
            id=household["id"],
            name=household["name"],
            created_at=household["created_at"],
            owner_id=household["owner_id"],
            member_count=access.count_members(self.supabase, household["id"]),
            members=members,
        )

    def update_household(self, household_id: str, user_id: str, name: str) -> HouseholdResponse:
        """Rename the household (owner only)"""
        self._require_owner(household_id, user_id)
        result = self.supabase.table("households")\
            .update({"name": name, "updated_at": datetime.now(timezone.utc).isoformat()})\
            .eq("id", household_id)\
            .execute()
        if not result.data:
            raise ServiceError(f"Failed to update household {household_id}")
        household = result.data[0]
        return HouseholdResponse(
            id=household["id"],
            name=household["name"],
            created_at=household["created_at"],
            owner_id=household["owner_id"],
            member_count=access.count_members(self.supabase, household_id),
        )

    def delete_household(self, household_id: str, user_id: str) -> None:
        """Delete a household whose only member is its owner; dependents cascade"""
        self._require_owner(household_id, user_id)
        if access.count_members(self.supabase, household_id) > 1:
            raise HasOtherMembersError()
        self.supabase.table("households").delete().eq("id", household_id).execute()
        logger.info(f"Household {household_id} deleted by {user_id}")

    def list_members(self, household_id: str, user_id: str) -> List[MemberResponse]:
        household = self._require_member(household_id, user_id)
        return self._members(household)

    def invite_member(self, household_id: str, user_id: str, email: str) -> InvitationResponse:
        """Legacy invite path; same rules as InvitationService.create_invitation"""
        return InvitationService(self.supabase, self.directory).create_invitation(household_id, user_id, email)
