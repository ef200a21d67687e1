from fastapi import APIRouter, Depends, Query
from larder.core.dependencies import get_current_user
from larder.database.supabase_client import get_supabase
from larder.modules.shopping_lists.schemas import (
    AddShoppingListItemsRequest, BulkDeleteRequest, BulkDeleteResponse,
    BulkPurchaseRequest, BulkPurchaseResponse, ShoppingListItemUpdate,
    ShoppingListItemsResponse, ShoppingListResponse, UpdateShoppingListItemResponse
)
from larder.modules.shopping_lists.service import ShoppingListService
from supabase import Client
from typing import Dict, Literal, Optional

router = APIRouter(tags=["shopping-lists"])


def get_shopping_list_service(supabase: Client = Depends(get_supabase)) -> ShoppingListService:
    return ShoppingListService(supabase)


@router.get("/households/{household_id}/shopping-list", response_model=ShoppingListResponse)
def get_shopping_list(
    household_id: str,
    user_data: Dict = Depends(get_current_user),
    service: ShoppingListService = Depends(get_shopping_list_service)
):
    """Get (or lazily create) the household shopping list"""
    return service.get_or_create_shopping_list(household_id, user_data["id"])


@router.get("/shopping-lists/{list_id}/items", response_model=ShoppingListItemsResponse)
def list_shopping_list_items(
    list_id: str,
    is_purchased: Optional[bool] = Query(default=None, alias="isPurchased"),
    sort: Literal["name", "isPurchased"] = "name",
    user_data: Dict = Depends(get_current_user),
    service: ShoppingListService = Depends(get_shopping_list_service)
):
    """List shopping list items, optionally filtered by purchase state"""
    return ShoppingListItemsResponse(items=service.list_items(list_id, user_data["id"], is_purchased, sort))


@router.post("/shopping-lists/{list_id}/items", response_model=ShoppingListItemsResponse, status_code=201)
def add_shopping_list_items(
    list_id: str,
    request: AddShoppingListItemsRequest,
    user_data: Dict = Depends(get_current_user),
    service: ShoppingListService = Depends(get_shopping_list_service)
):
    """Add items to the shopping list (all or nothing)"""
    return ShoppingListItemsResponse(items=service.add_items(list_id, user_data["id"], request.items))


@router.post("/shopping-lists/{list_id}/items/bulk-purchase", response_model=BulkPurchaseResponse)
def bulk_purchase_items(
    list_id: str,
    request: BulkPurchaseRequest,
    user_data: Dict = Depends(get_current_user),
    service: ShoppingListService = Depends(get_shopping_list_service)
):
    """Purchase several items; check summary for per-item results"""
    return service.bulk_purchase(list_id, request.item_ids, user_data["id"])


@router.post("/shopping-lists/{list_id}/items/bulk-delete", response_model=BulkDeleteResponse)
def bulk_delete_items(
    list_id: str,
    request: BulkDeleteRequest,
    user_data: Dict = Depends(get_current_user),
    service: ShoppingListService = Depends(get_shopping_list_service)
):
    """Delete several items; check summary for per-item results"""
    return service.bulk_delete(list_id, request.item_ids, user_data["id"])


@router.patch("/shopping-lists/{list_id}/items/{item_id}", response_model=UpdateShoppingListItemResponse)
def update_shopping_list_item(
    list_id: str,
    item_id: str,
    item_data: ShoppingListItemUpdate,
    user_data: Dict = Depends(get_current_user),
    service: ShoppingListService = Depends(get_shopping_list_service)
):
    """Update an item; isPurchased=true moves it to the pantry"""
    return service.update_item(list_id, item_id, user_data["id"], item_data.model_dump(exclude_unset=True))


@router.delete("/shopping-lists/{list_id}/items/{item_id}", status_code=204)
def delete_shopping_list_item(
    list_id: str,
    item_id: str,
    user_data: Dict = Depends(get_current_user),
    service: ShoppingListService = Depends(get_shopping_list_service)
):
    """Delete a shopping list item"""
    service.delete_item(list_id, item_id, user_data["id"])
    return None
