from fastapi import APIRouter, Depends, Query, Response
from larder.core.dependencies import get_ai_client, get_current_user
from larder.database.supabase_client import get_supabase
from larder.modules.recipes.openrouter_client import OpenRouterClient
from larder.modules.recipes.schemas import (
    BulkDeleteRecipesRequest, BulkDeleteRecipesResponse, CreationMethod,
    GenerateRecipeRequest, GenerateRecipeResponse, MealType, RecipeCreate,
    RecipeResponse, RecipeUpdate, RecipesListResponse
)
from larder.modules.recipes.service import RecipeService
from supabase import Client
from typing import Dict, Optional

router = APIRouter(prefix="/recipes", tags=["recipes"])


def get_recipe_service(supabase: Client = Depends(get_supabase)) -> RecipeService:
    return RecipeService(supabase)


def get_generation_service(
    supabase: Client = Depends(get_supabase),
    ai_client: OpenRouterClient = Depends(get_ai_client),
) -> RecipeService:
    return RecipeService(supabase, ai_client)


@router.get("", response_model=RecipesListResponse)
def list_recipes(
    search: Optional[str] = Query(default=None, max_length=200),
    meal_type: Optional[MealType] = Query(default=None, alias="mealType"),
    creation_method: Optional[CreationMethod] = Query(default=None, alias="creationMethod"),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100, alias="pageSize"),
    sort: str = "-createdAt",
    user_data: Dict = Depends(get_current_user),
    service: RecipeService = Depends(get_recipe_service)
):
    """List household recipes with search, filters and pagination"""
    return service.list_recipes(
        user_data["id"],
        search=search,
        meal_type=meal_type,
        creation_method=creation_method,
        page=page,
        page_size=page_size,
        sort=sort,
    )


@router.post("", response_model=RecipeResponse, status_code=201)
def create_recipe(
    recipe_data: RecipeCreate,
    response: Response,
    user_data: Dict = Depends(get_current_user),
    service: RecipeService = Depends(get_recipe_service)
):
    """Create a recipe in the user's household"""
    recipe = service.create_recipe(user_data["id"], recipe_data)
    response.headers["Location"] = f"/api/v1/recipes/{recipe.id}"
    return recipe


@router.delete("", response_model=BulkDeleteRecipesResponse)
def bulk_delete_recipes(
    request: BulkDeleteRecipesRequest,
    user_data: Dict = Depends(get_current_user),
    service: RecipeService = Depends(get_recipe_service)
):
    """Delete several recipes; check summary for per-recipe results"""
    return service.bulk_delete_recipes(user_data["id"], request.ids)


@router.post("/generate", response_model=GenerateRecipeResponse, status_code=202)
def generate_recipe(
    request: GenerateRecipeRequest,
    user_data: Dict = Depends(get_current_user),
    service: RecipeService = Depends(get_generation_service)
):
    """Generate an unsaved recipe draft with AI"""
    return service.generate_recipe(user_data["id"], request.hint, request.use_pantry_items)


@router.get("/{recipe_id}", response_model=RecipeResponse)
def get_recipe(
    recipe_id: str,
    user_data: Dict = Depends(get_current_user),
    service: RecipeService = Depends(get_recipe_service)
):
    """Get a recipe by ID"""
    return service.get_recipe(user_data["id"], recipe_id)


@router.put("/{recipe_id}", response_model=RecipeResponse)
def update_recipe(
    recipe_id: str,
    recipe_data: RecipeUpdate,
    user_data: Dict = Depends(get_current_user),
    service: RecipeService = Depends(get_recipe_service)
):
    """Replace a recipe"""
    return service.update_recipe(user_data["id"], recipe_id, recipe_data)


@router.delete("/{recipe_id}", status_code=204)
def delete_recipe(
    recipe_id: str,
    user_data: Dict = Depends(get_current_user),
    service: RecipeService = Depends(get_recipe_service)
):
    """Delete a recipe"""
    service.delete_recipe(user_data["id"], recipe_id)
    return None
