import logging
from datetime import datetime, timezone
from pydantic import ValidationError as PydanticValidationError
from supabase import Client
from typing import Any, Dict, List, Optional, Tuple

from larder.core import access
from larder.core.errors import (
    NoHouseholdError, RecipeNotFoundError, RecipeSchemaViolationError, ServiceError
)
from larder.core.schemas import BulkSummary
from larder.modules.recipes.openrouter_client import OpenRouterClient
from larder.modules.recipes.prompts import (
    RECIPE_GENERATION_SYSTEM_PROMPT, build_recipe_generation_prompt, recipe_response_format
)
from larder.modules.recipes.schemas import (
    BulkDeleteRecipesResponse, FailedRecipe, GeneratedRecipe, GenerateRecipeResponse,
    MEAL_TYPES, Pagination, RecipeCreate, RecipeDraft, RecipeResponse,
    RecipesListResponse, SORT_FIELDS
)

logger = logging.getLogger(__name__)


def parse_sort(sort: str) -> Tuple[str, bool]:
    """'-createdAt' -> ('created_at', True). Unknown fields fall back to created_at."""
    descending = sort.startswith("-")
    field = SORT_FIELDS.get(sort.lstrip("-+"), "created_at")
    return field, descending


class RecipeService:
    def __init__(self, supabase: Client, ai_client: Optional[OpenRouterClient] = None):
        self.supabase = supabase
        self.ai_client = ai_client

    def _household_id(self, user_id: str) -> str:
        household_id = access.get_user_household_id(self.supabase, user_id)
        if not household_id:
            raise NoHouseholdError()
        return household_id

    @staticmethod
    def _content(data: RecipeCreate) -> Dict[str, Any]:
        content = {
            "title": data.title,
            "ingredients": [i.model_dump(exclude_none=True) for i in data.ingredients],
            "instructions": data.instructions,
        }
        if data.meal_type is not None:
            content["meal_type"] = data.meal_type
        if data.prep_time is not None:
            content["prep_time"] = data.prep_time
        if data.cook_time is not None:
            content["cook_time"] = data.cook_time
        return content

    @staticmethod
    def _to_response(row: Dict[str, Any]) -> RecipeResponse:
        content = row.get("content") or {}
        return RecipeResponse(
            id=row["id"],
            household_id=row["household_id"],
            title=content.get("title", ""),
            ingredients=content.get("ingredients", []),
            instructions=content.get("instructions", ""),
            meal_type=content.get("meal_type"),
            prep_time=content.get("prep_time"),
            cook_time=content.get("cook_time"),
            creation_method=row["creation_method"],
            created_at=row["created_at"],
            updated_at=row.get("updated_at"),
        )

    def _get_row(self, household_id: str, recipe_id: str) -> Dict[str, Any]:
        row = access.first(
            self.supabase.table("recipes")
                .select("*")
                .eq("id", recipe_id)
                .eq("household_id", household_id)
                .limit(1)
                .execute()
        )
        if not row:
            raise RecipeNotFoundError()
        return row

    def create_recipe(self, user_id: str, data: RecipeCreate) -> RecipeResponse:
        household_id = self._household_id(user_id)
        result = self.supabase.table("recipes").insert({
            "household_id": household_id,
            "content": self._content(data),
            "creation_method": data.creation_method,
        }).execute()
        if not result.data:
            raise ServiceError("Failed to create recipe")
        return self._to_response(result.data[0])

    def get_recipe(self, user_id: str, recipe_id: str) -> RecipeResponse:
        return self._to_response(self._get_row(self._household_id(user_id), recipe_id))

    def update_recipe(self, user_id: str, recipe_id: str, data: RecipeCreate) -> RecipeResponse:
        """Replace recipe content. Editing an AI recipe marks it ai_generated_modified."""
        household_id = self._household_id(user_id)
        existing = self._get_row(household_id, recipe_id)
        creation_method = existing["creation_method"]
        if creation_method == "ai_generated":
            creation_method = "ai_generated_modified"

        result = self.supabase.table("recipes")\
            .update({
                "content": self._content(data),
                "creation_method": creation_method,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            })\
            .eq("id", recipe_id)\
            .eq("household_id", household_id)\
            .execute()
        if not result.data:
            raise RecipeNotFoundError()
        return self._to_response(result.data[0])

    def delete_recipe(self, user_id: str, recipe_id: str) -> None:
        household_id = self._household_id(user_id)
        result = self.supabase.table("recipes")\
            .delete()\
            .eq("id", recipe_id)\
            .eq("household_id", household_id)\
            .execute()
        if not result.data:
            raise RecipeNotFoundError()

    def list_recipes(
        self,
        user_id: str,
        search: Optional[str] = None,
        meal_type: Optional[str] = None,
        creation_method: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
        sort: str = "-createdAt",
    ) -> RecipesListResponse:
        """
        Household recipes filtered, sorted and paginated.

        Filters on the jsonb content (meal type, title and ingredient search)
        are applied after fetching the household's rows.
        """
        household_id = self._household_id(user_id)
        query = self.supabase.table("recipes").select("*").eq("household_id", household_id)
        if creation_method:
            query = query.eq("creation_method", creation_method)
        rows = query.execute().data or []

        recipes = [self._to_response(row) for row in rows]
        if meal_type:
            recipes = [r for r in recipes if r.meal_type == meal_type]
        if search:
            needle = search.strip().lower()
            recipes = [
                r for r in recipes
                if needle in r.title.lower() or any(needle in i.name.lower() for i in r.ingredients)
            ]

        field, descending = parse_sort(sort)
        if field == "title":
            recipes.sort(key=lambda r: r.title.lower(), reverse=descending)
        else:
            recipes.sort(key=lambda r: getattr(r, field) or r.created_at, reverse=descending)

        total = len(recipes)
        start = (page - 1) * page_size
        return RecipesListResponse(
            data=recipes[start:start + page_size],
            pagination=Pagination(page=page, page_size=page_size, total=total),
        )

    def bulk_delete_recipes(self, user_id: str, recipe_ids: List[str]) -> BulkDeleteRecipesResponse:
        household_id = self._household_id(user_id)
        deleted: List[str] = []
        failed: List[FailedRecipe] = []
        for recipe_id in recipe_ids:
            try:
                result = self.supabase.table("recipes")\
                    .delete()\
                    .eq("id", recipe_id)\
                    .eq("household_id", household_id)\
                    .execute()
            except Exception as e:
                logger.error(f"Bulk delete failed for recipe {recipe_id}: {e}")
                failed.append(FailedRecipe(id=recipe_id, reason="Database error"))
                continue
            if not result.data:
                failed.append(FailedRecipe(id=recipe_id, reason="Recipe not found"))
                continue
            deleted.append(recipe_id)
        return BulkDeleteRecipesResponse(
            deleted=deleted,
            failed=failed,
            summary=BulkSummary(total=len(recipe_ids), successful=len(deleted), failed=len(failed)),
        )

    def _pantry_items(self, household_id: str) -> List[Dict[str, Any]]:
        pantry = access.first(
            self.supabase.table("pantries")
                .select("id")
                .eq("household_id", household_id)
                .limit(1)
                .execute()
        )
        if not pantry:
            return []
        result = self.supabase.table("pantry_items")\
            .select("name, quantity, unit")\
            .eq("pantry_id", pantry["id"])\
            .order("name")\
            .execute()
        return result.data or []

    def generate_recipe(self, user_id: str, hint: str, use_pantry_items: bool) -> GenerateRecipeResponse:
        """
        Ask the text-generation provider for a recipe draft. The draft is not
        saved; clients save it through create_recipe with creationMethod
        ai_generated.
        """
        if self.ai_client is None:
            raise ServiceError("AI client not configured")
        household_id = self._household_id(user_id)
        warnings: List[str] = []

        pantry_items: List[Dict[str, Any]] = []
        if use_pantry_items:
            pantry_items = self._pantry_items(household_id)
            if not pantry_items:
                warnings.append("Your pantry is empty, so the recipe was generated from the hint only.")

        messages = [
            {"role": "system", "content": RECIPE_GENERATION_SYSTEM_PROMPT},
            {"role": "user", "content": build_recipe_generation_prompt(hint, pantry_items)},
        ]
        data = self.ai_client.generate_json(messages, recipe_response_format())

        try:
            generated = GeneratedRecipe.model_validate(data)
        except PydanticValidationError as e:
            raise RecipeSchemaViolationError(f"Generated recipe failed validation: {e}") from e

        meal_type = generated.meal_type.lower() if generated.meal_type else None
        if meal_type and meal_type not in MEAL_TYPES:
            warnings.append(f"Meal type '{generated.meal_type}' is not supported and was dropped.")
            meal_type = None

        logger.info(f"Generated recipe draft for household {household_id}")
        return GenerateRecipeResponse(
            recipe=RecipeDraft(
                household_id=household_id,
                title=generated.title,
                ingredients=generated.ingredients,
                instructions=generated.instructions,
                meal_type=meal_type,
                prep_time=generated.prep_time,
                cook_time=generated.cook_time,
                creation_method="ai_generated",
            ),
            warnings=warnings,
        )
