import logging
from postgrest.exceptions import APIError
from supabase import Client
from typing import Any, Dict, Iterable, List

from larder.core import access
from larder.core.errors import (
    DuplicateItemError, EmptyUpdateError, HouseholdNotFoundError,
    ItemNotFoundError, PantryNotFoundError, ServiceError
)
from larder.modules.pantry.schemas import PantryItemInput, PantryItemResponse, PantryResponse

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"


def find_duplicate_names(existing_names: Iterable[str], new_names: Iterable[str]) -> List[str]:
    """
    Names from ``new_names`` that collide case-insensitively with an existing
    name or with an earlier name in the same batch. Each collision is reported
    once, in batch order.
    """
    taken = {name.lower() for name in existing_names}
    seen = set()
    duplicates = []
    reported = set()
    for name in new_names:
        key = name.lower()
        if (key in taken or key in seen) and key not in reported:
            duplicates.append(name)
            reported.add(key)
        seen.add(key)
    return duplicates


def is_unique_violation(error: Exception) -> bool:
    return isinstance(error, APIError) and error.code == UNIQUE_VIOLATION


class PantryService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def _pantry_for_household(self, household_id: str) -> Dict[str, Any]:
        pantry = access.first(
            self.supabase.table("pantries")
                .select("*")
                .eq("household_id", household_id)
                .limit(1)
                .execute()
        )
        if not pantry:
            raise PantryNotFoundError()
        return pantry

    def _require_pantry_access(self, pantry_id: str, user_id: str) -> Dict[str, Any]:
        pantry = access.first(
            self.supabase.table("pantries")
                .select("*")
                .eq("id", pantry_id)
                .limit(1)
                .execute()
        )
        if not pantry or not access.is_member(self.supabase, pantry["household_id"], user_id):
            raise PantryNotFoundError()
        return pantry

    def _items(self, pantry_id: str) -> List[PantryItemResponse]:
        result = self.supabase.table("pantry_items")\
            .select("*")\
            .eq("pantry_id", pantry_id)\
            .order("name")\
            .execute()
        return [PantryItemResponse(**row) for row in result.data or []]

    def get_pantry_by_household(self, household_id: str, user_id: str) -> PantryResponse:
        """Household pantry with all items sorted by name"""
        if not access.is_member(self.supabase, household_id, user_id):
            raise HouseholdNotFoundError()
        pantry = self._pantry_for_household(household_id)
        return PantryResponse(
            id=pantry["id"],
            household_id=pantry["household_id"],
            created_at=pantry["created_at"],
            items=self._items(pantry["id"]),
        )

    def add_items(self, household_id: str, user_id: str, items: List[PantryItemInput]) -> List[PantryItemResponse]:
        """Insert a batch of items; any case-insensitive name collision rejects the whole batch"""
        if not access.is_member(self.supabase, household_id, user_id):
            raise HouseholdNotFoundError()
        pantry = self._pantry_for_household(household_id)

        existing = self.supabase.table("pantry_items")\
            .select("name")\
            .eq("pantry_id", pantry["id"])\
            .execute()
        duplicates = find_duplicate_names(
            [row["name"] for row in existing.data or []],
            [item.name for item in items],
        )
        if duplicates:
            raise DuplicateItemError(duplicates)

        rows = [
            {"pantry_id": pantry["id"], "name": item.name, "quantity": item.quantity, "unit": item.unit}
            for item in items
        ]
        try:
            result = self.supabase.table("pantry_items").insert(rows).execute()
        except APIError as e:
            if is_unique_violation(e):
                raise DuplicateItemError([item.name for item in items])
            raise ServiceError(f"Failed to add pantry items: {e}") from e
        return [PantryItemResponse(**row) for row in result.data or []]

    def list_items(self, pantry_id: str, user_id: str) -> List[PantryItemResponse]:
        self._require_pantry_access(pantry_id, user_id)
        return self._items(pantry_id)

    def update_item(self, pantry_id: str, item_id: str, user_id: str, changes: Dict[str, Any]) -> PantryItemResponse:
        """Update quantity and/or unit. ``changes`` holds only the fields the caller sent."""
        self._require_pantry_access(pantry_id, user_id)
        update_data = {}
        if changes.get("quantity") is not None:
            update_data["quantity"] = changes["quantity"]
        if "unit" in changes:
            update_data["unit"] = changes["unit"]
        if not update_data:
            raise EmptyUpdateError("At least one field (quantity or unit) must be provided")

        result = self.supabase.table("pantry_items")\
            .update(update_data)\
            .eq("id", item_id)\
            .eq("pantry_id", pantry_id)\
            .execute()
        if not result.data:
            raise ItemNotFoundError()
        return PantryItemResponse(**result.data[0])

    def delete_item(self, pantry_id: str, item_id: str, user_id: str) -> None:
        self._require_pantry_access(pantry_id, user_id)
        result = self.supabase.table("pantry_items")\
            .delete()\
            .eq("id", item_id)\
            .eq("pantry_id", pantry_id)\
            .execute()
        if not result.data:
            raise ItemNotFoundError()
