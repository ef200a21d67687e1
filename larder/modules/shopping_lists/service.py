import logging
from postgrest.exceptions import APIError
from supabase import Client
from typing import Any, Dict, List, Optional

from larder.core import access
from larder.core.errors import (
    DuplicateItemError, EmptyUpdateError, HouseholdNotFoundError, ItemNotFoundError,
    LarderError, ServiceError, ShoppingListNotFoundError, TransferToPantryError
)
from larder.core.schemas import BulkSummary
from larder.modules.pantry.schemas import PantryItemResponse
from larder.modules.pantry.service import find_duplicate_names, is_unique_violation
from larder.modules.shopping_lists.schemas import (
    BulkDeleteResponse, BulkPurchaseResponse, FailedItem, ShoppingListItemInput,
    ShoppingListItemResponse, ShoppingListResponse, TransferredItem,
    UpdateShoppingListItemResponse
)

logger = logging.getLogger(__name__)

ITEM_NOT_FOUND = "Item not found"
ITEM_ALREADY_PURCHASED = "Item already purchased"
DELETE_AFTER_TRANSFER_FAILED = "Failed to delete from shopping list"
DATABASE_ERROR = "Database error"


class ShoppingListService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def _require_list_access(self, list_id: str, user_id: str) -> Dict[str, Any]:
        shopping_list = access.first(
            self.supabase.table("shopping_lists")
                .select("*")
                .eq("id", list_id)
                .limit(1)
                .execute()
        )
        if not shopping_list or not access.is_member(self.supabase, shopping_list["household_id"], user_id):
            raise ShoppingListNotFoundError()
        return shopping_list

    def _get_item(self, list_id: str, item_id: str) -> Optional[Dict[str, Any]]:
        return access.first(
            self.supabase.table("shopping_list_items")
                .select("*")
                .eq("id", item_id)
                .eq("shopping_list_id", list_id)
                .limit(1)
                .execute()
        )

    def _delete_item_row(self, list_id: str, item_id: str) -> bool:
        result = self.supabase.table("shopping_list_items")\
            .delete()\
            .eq("id", item_id)\
            .eq("shopping_list_id", list_id)\
            .execute()
        return bool(result.data)

    def get_or_create_shopping_list(self, household_id: str, user_id: str) -> ShoppingListResponse:
        """Household shopping list with items sorted by name; created on first access if missing"""
        if not access.is_member(self.supabase, household_id, user_id):
            raise HouseholdNotFoundError()
        shopping_list = access.first(
            self.supabase.table("shopping_lists")
                .select("*")
                .eq("household_id", household_id)
                .limit(1)
                .execute()
        )
        if not shopping_list:
            result = self.supabase.table("shopping_lists").insert({"household_id": household_id}).execute()
            if not result.data:
                raise ServiceError(f"Failed to create shopping list for household {household_id}")
            shopping_list = result.data[0]
            logger.info(f"Created shopping list for household {household_id}")
        return ShoppingListResponse(
            id=shopping_list["id"],
            household_id=shopping_list["household_id"],
            created_at=shopping_list["created_at"],
            items=self.list_items(shopping_list["id"], user_id),
        )

    def list_items(
        self,
        list_id: str,
        user_id: str,
        is_purchased: Optional[bool] = None,
        sort: str = "name"
    ) -> List[ShoppingListItemResponse]:
        self._require_list_access(list_id, user_id)
        query = self.supabase.table("shopping_list_items")\
            .select("*")\
            .eq("shopping_list_id", list_id)
        if is_purchased is not None:
            query = query.eq("is_purchased", is_purchased)
        if sort == "isPurchased":
            query = query.order("is_purchased").order("name")
        else:
            query = query.order("name")
        result = query.execute()
        return [ShoppingListItemResponse(**row) for row in result.data or []]

    def add_items(self, list_id: str, user_id: str, items: List[ShoppingListItemInput]) -> List[ShoppingListItemResponse]:
        """Insert a batch of items; any case-insensitive name collision rejects the whole batch"""
        self._require_list_access(list_id, user_id)
        existing = self.supabase.table("shopping_list_items")\
            .select("name")\
            .eq("shopping_list_id", list_id)\
            .execute()
        duplicates = find_duplicate_names(
            [row["name"] for row in existing.data or []],
            [item.name for item in items],
        )
        if duplicates:
            raise DuplicateItemError(duplicates)

        rows = [
            {
                "shopping_list_id": list_id,
                "name": item.name,
                "quantity": item.quantity,
                "unit": item.unit,
                "is_purchased": item.is_purchased,
            }
            for item in items
        ]
        try:
            result = self.supabase.table("shopping_list_items").insert(rows).execute()
        except APIError as e:
            if is_unique_violation(e):
                raise DuplicateItemError([item.name for item in items])
            raise ServiceError(f"Failed to add shopping list items: {e}") from e
        return [ShoppingListItemResponse(**row) for row in result.data or []]

    def transfer_to_pantry(self, household_id: str, item: Dict[str, Any]) -> PantryItemResponse:
        """
        Merge a purchased item into the household pantry.

        A pantry item with the same name (case-insensitive) gets the quantities
        summed; units are not reconciled. Otherwise a new pantry item is created.
        """
        try:
            pantry = access.first(
                self.supabase.table("pantries")
                    .select("id")
                    .eq("household_id", household_id)
                    .limit(1)
                    .execute()
            )
            if not pantry:
                raise TransferToPantryError(f"Pantry not found for household {household_id}")

            existing = self.supabase.table("pantry_items")\
                .select("*")\
                .eq("pantry_id", pantry["id"])\
                .execute()
            match = next(
                (row for row in existing.data or [] if row["name"].lower() == item["name"].lower()),
                None,
            )
            if match:
                result = self.supabase.table("pantry_items")\
                    .update({"quantity": float(match["quantity"]) + float(item["quantity"])})\
                    .eq("id", match["id"])\
                    .execute()
            else:
                result = self.supabase.table("pantry_items").insert({
                    "pantry_id": pantry["id"],
                    "name": item["name"],
                    "quantity": item["quantity"],
                    "unit": item.get("unit"),
                }).execute()
        except TransferToPantryError:
            raise
        except Exception as e:
            raise TransferToPantryError(f"Failed to transfer '{item['name']}' to pantry: {e}") from e

        if not result.data:
            raise TransferToPantryError(f"Pantry write for '{item['name']}' returned no rows")
        return PantryItemResponse(**result.data[0])

    def update_item(self, list_id: str, item_id: str, user_id: str, changes: Dict[str, Any]) -> UpdateShoppingListItemResponse:
        """
        Update quantity, unit or purchase state. ``changes`` holds only the fields
        the caller sent. Marking an item purchased moves it to the pantry.
        """
        shopping_list = self._require_list_access(list_id, user_id)
        update_data = {}
        if changes.get("quantity") is not None:
            update_data["quantity"] = changes["quantity"]
        if "unit" in changes:
            update_data["unit"] = changes["unit"]
        if changes.get("is_purchased") is not None:
            update_data["is_purchased"] = changes["is_purchased"]
        if not update_data:
            raise EmptyUpdateError()

        item = self._get_item(list_id, item_id)
        if not item:
            raise ItemNotFoundError()

        if update_data.get("is_purchased") is True:
            purchased = {**item, **update_data}
            pantry_item = self.transfer_to_pantry(shopping_list["household_id"], purchased)
            if not self._delete_item_row(list_id, item_id):
                raise ServiceError(f"Failed to delete item {item_id} from shopping list after transfer")
            return UpdateShoppingListItemResponse(
                item=ShoppingListItemResponse(**purchased),
                pantry_item=pantry_item,
            )

        result = self.supabase.table("shopping_list_items")\
            .update(update_data)\
            .eq("id", item_id)\
            .eq("shopping_list_id", list_id)\
            .execute()
        if not result.data:
            raise ItemNotFoundError()
        return UpdateShoppingListItemResponse(item=ShoppingListItemResponse(**result.data[0]))

    def delete_item(self, list_id: str, item_id: str, user_id: str) -> None:
        self._require_list_access(list_id, user_id)
        if not self._delete_item_row(list_id, item_id):
            raise ItemNotFoundError()

    def bulk_purchase(self, list_id: str, item_ids: List[str], user_id: str) -> BulkPurchaseResponse:
        """
        Purchase items one by one. A failing item is recorded with a reason and
        never stops the rest of the batch.
        """
        shopping_list = self._require_list_access(list_id, user_id)
        purchased: List[str] = []
        transferred: List[TransferredItem] = []
        failed: List[FailedItem] = []

        for item_id in item_ids:
            try:
                item = self._get_item(list_id, item_id)
            except Exception as e:
                logger.error(f"Bulk purchase lookup failed for {item_id}: {e}")
                failed.append(FailedItem(item_id=item_id, reason=DATABASE_ERROR))
                continue
            if not item:
                failed.append(FailedItem(item_id=item_id, reason=ITEM_NOT_FOUND))
                continue
            if item.get("is_purchased"):
                failed.append(FailedItem(item_id=item_id, reason=ITEM_ALREADY_PURCHASED))
                continue

            try:
                pantry_item = self.transfer_to_pantry(shopping_list["household_id"], item)
            except LarderError as e:
                logger.error(f"Bulk purchase transfer failed for {item_id}: {e.message}")
                failed.append(FailedItem(item_id=item_id, reason=e.message))
                continue

            try:
                deleted = self._delete_item_row(list_id, item_id)
            except Exception as e:
                logger.error(f"Bulk purchase delete failed for {item_id}: {e}")
                deleted = False
            if not deleted:
                failed.append(FailedItem(item_id=item_id, reason=DELETE_AFTER_TRANSFER_FAILED))
                continue

            purchased.append(item_id)
            transferred.append(TransferredItem(item_id=item_id, pantry_item_id=pantry_item.id))

        return BulkPurchaseResponse(
            purchased=purchased,
            transferred=transferred,
            failed=failed,
            summary=BulkSummary(total=len(item_ids), successful=len(purchased), failed=len(failed)),
        )

    def bulk_delete(self, list_id: str, item_ids: List[str], user_id: str) -> BulkDeleteResponse:
        """Delete items one by one, reporting per-item failures"""
        self._require_list_access(list_id, user_id)
        deleted: List[str] = []
        failed: List[FailedItem] = []

        for item_id in item_ids:
            try:
                item = self._get_item(list_id, item_id)
                if not item:
                    failed.append(FailedItem(item_id=item_id, reason=ITEM_NOT_FOUND))
                    continue
                if not self._delete_item_row(list_id, item_id):
                    failed.append(FailedItem(item_id=item_id, reason=ITEM_NOT_FOUND))
                    continue
            except Exception as e:
                logger.error(f"Bulk delete failed for {item_id}: {e}")
                failed.append(FailedItem(item_id=item_id, reason=DATABASE_ERROR))
                continue
            deleted.append(item_id)

        return BulkDeleteResponse(
            deleted=deleted,
            failed=failed,
            summary=BulkSummary(total=len(item_ids), successful=len(deleted), failed=len(failed)),
        )
