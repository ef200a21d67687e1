from pydantic import Field, field_validator
from typing import Literal, Optional, List
from datetime import datetime

from larder.core.schemas import BulkSummary, CamelModel

MealType = Literal["breakfast", "lunch", "dinner"]
CreationMethod = Literal["manual", "ai_generated", "ai_generated_modified"]

MEAL_TYPES = ("breakfast", "lunch", "dinner")
SORT_FIELDS = {"createdAt": "created_at", "updatedAt": "updated_at", "title": "title"}


class Ingredient(CamelModel):
    name: str = Field(min_length=1)
    quantity: float = Field(gt=0)
    unit: Optional[str] = None


class RecipeCreate(CamelModel):
    title: str
    ingredients: List[Ingredient] = Field(min_length=1)
    instructions: str
    meal_type: Optional[MealType] = None
    prep_time: Optional[int] = Field(default=None, ge=0)
    cook_time: Optional[int] = Field(default=None, ge=0)
    creation_method: CreationMethod = "manual"

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 3:
            raise ValueError("Title must be at least 3 characters")
        if len(v) > 100:
            raise ValueError("Title must be at most 100 characters")
        return v

    @field_validator("instructions")
    @classmethod
    def validate_instructions(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Instructions are required")
        return v


class RecipeUpdate(RecipeCreate):
    # The stored creation method is kept (ai_generated becomes ai_generated_modified).
    creation_method: Optional[CreationMethod] = None


class RecipeResponse(CamelModel):
    id: str
    household_id: str
    title: str
    ingredients: List[Ingredient]
    instructions: str
    meal_type: Optional[str] = None
    prep_time: Optional[int] = None
    cook_time: Optional[int] = None
    creation_method: CreationMethod
    created_at: datetime
    updated_at: Optional[datetime] = None


class Pagination(CamelModel):
    page: int
    page_size: int
    total: int


class RecipesListResponse(CamelModel):
    data: List[RecipeResponse]
    pagination: Pagination


class BulkDeleteRecipesRequest(CamelModel):
    ids: List[str] = Field(min_length=1, max_length=50)


class FailedRecipe(CamelModel):
    id: str
    reason: str


class BulkDeleteRecipesResponse(CamelModel):
    deleted: List[str]
    failed: List[FailedRecipe]
    summary: BulkSummary


class GenerateRecipeRequest(CamelModel):
    hint: str = Field(min_length=1, max_length=200, pattern=r"^[^<>&]*$")
    use_pantry_items: bool


class GeneratedRecipe(CamelModel):
    """Shape the text-generation provider must return."""

    title: str = Field(min_length=1, max_length=200)
    ingredients: List[Ingredient] = Field(min_length=1)
    instructions: str = Field(min_length=10, max_length=5000)
    meal_type: Optional[str] = None
    prep_time: Optional[int] = Field(default=None, ge=0, le=1440)
    cook_time: Optional[int] = Field(default=None, ge=0, le=1440)


class RecipeDraft(CamelModel):
    household_id: str
    title: str
    ingredients: List[Ingredient]
    instructions: str
    meal_type: Optional[MealType] = None
    prep_time: Optional[int] = None
    cook_time: Optional[int] = None
    creation_method: CreationMethod = "ai_generated"


class GenerateRecipeResponse(CamelModel):
    recipe: RecipeDraft
    warnings: List[str] = []
