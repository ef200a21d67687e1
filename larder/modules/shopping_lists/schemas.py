from pydantic import Field, field_validator
from typing import Optional, List
from datetime import datetime

from larder.core.schemas import BulkSummary, CamelModel
from larder.modules.pantry.schemas import PantryItemResponse


def _strip_unit(value: Optional[str]) -> Optional[str]:
    return value.strip() if value is not None else None


class ShoppingListItemInput(CamelModel):
    name: str
    quantity: float = Field(default=1, ge=0)
    unit: Optional[str] = None
    is_purchased: bool = False

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Item name cannot be empty")
        return v

    @field_validator("unit")
    @classmethod
    def validate_unit(cls, v: Optional[str]) -> Optional[str]:
        return _strip_unit(v)


class AddShoppingListItemsRequest(CamelModel):
    items: List[ShoppingListItemInput] = Field(min_length=1, max_length=50)


class ShoppingListItemUpdate(CamelModel):
    quantity: Optional[float] = Field(default=None, ge=0)
    unit: Optional[str] = None
    is_purchased: Optional[bool] = None

    @field_validator("unit")
    @classmethod
    def validate_unit(cls, v: Optional[str]) -> Optional[str]:
        return _strip_unit(v)


class BulkPurchaseRequest(CamelModel):
    item_ids: List[str] = Field(min_length=1, max_length=50)


class BulkDeleteRequest(CamelModel):
    item_ids: List[str] = Field(min_length=1, max_length=100)


class ShoppingListItemResponse(CamelModel):
    id: str
    shopping_list_id: str
    name: str
    quantity: float
    unit: Optional[str] = None
    is_purchased: bool = False


class ShoppingListItemsResponse(CamelModel):
    items: List[ShoppingListItemResponse]


class ShoppingListResponse(CamelModel):
    id: str
    household_id: str
    created_at: datetime
    items: List[ShoppingListItemResponse] = []


class UpdateShoppingListItemResponse(CamelModel):
    item: ShoppingListItemResponse
    pantry_item: Optional[PantryItemResponse] = None


class TransferredItem(CamelModel):
    item_id: str
    pantry_item_id: str


class FailedItem(CamelModel):
    item_id: str
    reason: str


class BulkPurchaseResponse(CamelModel):
    purchased: List[str]
    transferred: List[TransferredItem]
    failed: List[FailedItem]
    summary: BulkSummary


class BulkDeleteResponse(CamelModel):
    deleted: List[str]
    failed: List[FailedItem]
    summary: BulkSummary
