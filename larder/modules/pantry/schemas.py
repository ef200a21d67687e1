from pydantic import Field, field_validator
from typing import Optional, List
from datetime import datetime

from larder.core.schemas import CamelModel


def _strip_unit(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    if len(value) > 20:
        raise ValueError("Unit must be at most 20 characters")
    return value


class PantryItemInput(CamelModel):
    name: str
    quantity: float = Field(default=1, gt=0)
    unit: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Item name is required")
        if len(v) > 100:
            raise ValueError("Item name must be at most 100 characters")
        return v

    @field_validator("unit")
    @classmethod
    def validate_unit(cls, v: Optional[str]) -> Optional[str]:
        return _strip_unit(v)


class AddPantryItemsRequest(CamelModel):
    items: List[PantryItemInput] = Field(min_length=1, max_length=50)


class PantryItemUpdate(CamelModel):
    quantity: Optional[float] = Field(default=None, gt=0)
    unit: Optional[str] = None

    @field_validator("unit")
    @classmethod
    def validate_unit(cls, v: Optional[str]) -> Optional[str]:
        return _strip_unit(v)


class PantryItemResponse(CamelModel):
    id: str
    pantry_id: str
    name: str
    quantity: float
    unit: Optional[str] = None


class PantryItemsResponse(CamelModel):
    items: List[PantryItemResponse]


class PantryResponse(CamelModel):
    id: str
    household_id: str
    created_at: datetime
    items: List[PantryItemResponse] = []
