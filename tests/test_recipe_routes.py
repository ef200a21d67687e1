import pytest

from larder.core.dependencies import get_ai_client
from larder.main import app
from larder.modules.recipes.openrouter_client import OpenRouterNetworkError

RECIPE = {
    "title": "Pancakes",
    "ingredients": [{"name": "flour", "quantity": 200, "unit": "g"}, {"name": "egg", "quantity": 2}],
    "instructions": "Mix everything and fry.",
    "mealType": "breakfast",
    "prepTime": 5,
    "cookTime": 10,
}


@pytest.fixture
def household(client, alice, auth_headers):
    return client.post("/api/v1/households", json={"name": "Home"}, headers=auth_headers(alice)).json()


def test_create_recipe_sets_location(client, alice, auth_headers, household):
    response = client.post("/api/v1/recipes", json=RECIPE, headers=auth_headers(alice))

    assert response.status_code == 201
    body = response.json()
    assert response.headers["Location"] == f"/api/v1/recipes/{body['id']}"
    assert body["householdId"] == household["id"]
    assert body["creationMethod"] == "manual"
    assert body["mealType"] == "breakfast"


def test_recipe_without_household_is_forbidden(client, bob, auth_headers):
    response = client.post("/api/v1/recipes", json=RECIPE, headers=auth_headers(bob))

    assert response.status_code == 403
    assert response.json()["error"] == "NO_HOUSEHOLD"


def test_recipe_validation(client, alice, auth_headers, household):
    short_title = client.post("/api/v1/recipes", json={**RECIPE, "title": "ab"}, headers=auth_headers(alice))
    no_ingredients = client.post("/api/v1/recipes", json={**RECIPE, "ingredients": []}, headers=auth_headers(alice))
    bad_meal = client.post("/api/v1/recipes", json={**RECIPE, "mealType": "brunch"}, headers=auth_headers(alice))

    assert short_title.status_code == 400
    assert no_ingredients.status_code == 400
    assert bad_meal.status_code == 400


def test_get_update_delete_recipe(client, alice, auth_headers, household):
    created = client.post(
        "/api/v1/recipes", json={**RECIPE, "creationMethod": "ai_generated"}, headers=auth_headers(alice)
    ).json()
    url = f"/api/v1/recipes/{created['id']}"

    fetched = client.get(url, headers=auth_headers(alice))
    updated = client.put(url, json={**RECIPE, "title": "Fluffy Pancakes"}, headers=auth_headers(alice))
    deleted = client.delete(url, headers=auth_headers(alice))
    missing = client.get(url, headers=auth_headers(alice))

    assert fetched.json()["title"] == "Pancakes"
    assert updated.json()["title"] == "Fluffy Pancakes"
    assert updated.json()["creationMethod"] == "ai_generated_modified"
    assert deleted.status_code == 204
    assert missing.status_code == 404


def test_list_recipes_with_query(client, alice, auth_headers, household):
    client.post("/api/v1/recipes", json=RECIPE, headers=auth_headers(alice))
    client.post("/api/v1/recipes", json={**RECIPE, "title": "Steak Dinner", "mealType": "dinner"}, headers=auth_headers(alice))

    response = client.get(
        "/api/v1/recipes",
        params={"mealType": "dinner", "pageSize": 10, "sort": "title"},
        headers=auth_headers(alice),
    )

    body = response.json()
    assert [r["title"] for r in body["data"]] == ["Steak Dinner"]
    assert body["pagination"] == {"page": 1, "pageSize": 10, "total": 1}


def test_bulk_delete_recipes(client, alice, auth_headers, household):
    created = client.post("/api/v1/recipes", json=RECIPE, headers=auth_headers(alice)).json()

    response = client.request(
        "DELETE", "/api/v1/recipes", json={"ids": [created["id"], "missing"]}, headers=auth_headers(alice)
    )

    body = response.json()
    assert body["deleted"] == [created["id"]]
    assert body["failed"] == [{"id": "missing", "reason": "Recipe not found"}]
    assert body["summary"] == {"total": 2, "successful": 1, "failed": 1}


def test_generate_recipe_returns_draft(client, alice, auth_headers, household):
    response = client.post(
        "/api/v1/recipes/generate",
        json={"hint": "quick pasta", "usePantryItems": False},
        headers=auth_headers(alice),
    )

    assert response.status_code == 202
    body = response.json()
    assert body["recipe"]["title"] == "Tomato Pasta"
    assert body["recipe"]["creationMethod"] == "ai_generated"
    assert body["warnings"] == []


def test_generate_recipe_rejects_markup_in_hint(client, alice, auth_headers, household):
    response = client.post(
        "/api/v1/recipes/generate",
        json={"hint": "<script>", "usePantryItems": False},
        headers=auth_headers(alice),
    )

    assert response.status_code == 400


def test_generate_recipe_provider_failure_is_generic(client, ai_client, alice, auth_headers, household):
    ai_client.queue(OpenRouterNetworkError("connection refused"))

    response = client.post(
        "/api/v1/recipes/generate",
        json={"hint": "stew", "usePantryItems": False},
        headers=auth_headers(alice),
    )

    assert response.status_code == 500
    assert response.json() == {
        "error": "AI_UNAVAILABLE",
        "message": "Recipe generation failed. Please try again later.",
    }


def test_generate_recipe_schema_violation_code(client, ai_client, alice, auth_headers, household):
    ai_client.queue_recipe(instructions="short")

    response = client.post(
        "/api/v1/recipes/generate",
        json={"hint": "stew", "usePantryItems": False},
        headers=auth_headers(alice),
    )

    assert response.status_code == 500
    assert response.json()["error"] == "AI_SCHEMA_VIOLATION"


def test_generate_recipe_without_configured_client(client, alice, auth_headers, household):
    del app.dependency_overrides[get_ai_client]

    response = client.post(
        "/api/v1/recipes/generate",
        json={"hint": "stew", "usePantryItems": False},
        headers=auth_headers(alice),
    )

    assert response.status_code == 500
    assert response.json()["error"] == "INTERNAL_SERVER_ERROR"
