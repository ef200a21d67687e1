from fastapi import APIRouter, Depends
from larder.core.dependencies import get_current_user
from larder.database.supabase_client import get_supabase
from larder.modules.pantry.schemas import (
    AddPantryItemsRequest, PantryItemResponse, PantryItemUpdate,
    PantryItemsResponse, PantryResponse
)
from larder.modules.pantry.service import PantryService
from supabase import Client
from typing import Dict

router = APIRouter(tags=["pantry"])


def get_pantry_service(supabase: Client = Depends(get_supabase)) -> PantryService:
    return PantryService(supabase)


@router.get("/households/{household_id}/pantry", response_model=PantryResponse)
def get_pantry(
    household_id: str,
    user_data: Dict = Depends(get_current_user),
    service: PantryService = Depends(get_pantry_service)
):
    """Get the household pantry with its items"""
    return service.get_pantry_by_household(household_id, user_data["id"])


@router.post("/households/{household_id}/pantry/items", response_model=PantryItemsResponse, status_code=201)
def add_pantry_items(
    household_id: str,
    request: AddPantryItemsRequest,
    user_data: Dict = Depends(get_current_user),
    service: PantryService = Depends(get_pantry_service)
):
    """Add items to the household pantry (all or nothing)"""
    return PantryItemsResponse(items=service.add_items(household_id, user_data["id"], request.items))


@router.get("/pantries/{pantry_id}/items", response_model=PantryItemsResponse)
def list_pantry_items(
    pantry_id: str,
    user_data: Dict = Depends(get_current_user),
    service: PantryService = Depends(get_pantry_service)
):
    """List pantry items"""
    return PantryItemsResponse(items=service.list_items(pantry_id, user_data["id"]))


@router.patch("/pantries/{pantry_id}/items/{item_id}", response_model=PantryItemResponse)
def update_pantry_item(
    pantry_id: str,
    item_id: str,
    item_data: PantryItemUpdate,
    user_data: Dict = Depends(get_current_user),
    service: PantryService = Depends(get_pantry_service)
):
    """Update quantity and/or unit of a pantry item"""
    return service.update_item(pantry_id, item_id, user_data["id"], item_data.model_dump(exclude_unset=True))


@router.delete("/pantries/{pantry_id}/items/{item_id}", status_code=204)
def delete_pantry_item(
    pantry_id: str,
    item_id: str,
    user_data: Dict = Depends(get_current_user),
    service: PantryService = Depends(get_pantry_service)
):
    """Delete a pantry item"""
    service.delete_item(pantry_id, item_id, user_data["id"])
    return None
