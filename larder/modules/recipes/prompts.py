"""
Prompts and the structured-output schema used for AI recipe generation.
"""

from typing import Any, Dict, Iterable, Optional

from larder.modules.recipes.schemas import GeneratedRecipe

RECIPE_GENERATION_SYSTEM_PROMPT = """You are an expert culinary assistant specializing in creating practical, delicious recipes. Your task is to generate recipes that are:

1. **Clear and actionable**: Instructions should be step-by-step and easy to follow
2. **Accurate**: Ingredient quantities should be realistic and precise
3. **Practical**: Recipes should be achievable for home cooks
4. **Complete**: Include all necessary ingredients and clear instructions

When generating a recipe:
- Use common, accessible ingredients
- Provide specific quantities with appropriate units (e.g., "2 cups", "500g", "1 tablespoon")
- Break down instructions into clear, numbered steps
- Include prep time and cook time when relevant
- Suggest a meal type (breakfast, lunch or dinner) when appropriate

Always return your response as valid JSON matching the required schema structure."""


def _format_pantry_item(item: Dict[str, Any]) -> str:
    quantity = item.get("quantity") or 0
    unit = item.get("unit")
    prefix = f"{float(quantity):g} " if quantity > 0 else ""
    unit_part = f"{unit} of " if unit else ""
    return f"- {prefix}{unit_part}{item['name']}"


def build_recipe_generation_prompt(hint: str, pantry_items: Optional[Iterable[Dict[str, Any]]] = None) -> str:
    prompt = f"Generate a recipe based on the following: {hint}"

    items = list(pantry_items or [])
    if items:
        items_list = "\n".join(_format_pantry_item(item) for item in items)
        prompt += (
            f"\n\nPlease prioritize using these available pantry items:\n{items_list}"
            "\n\nYou can suggest additional ingredients that are commonly available, "
            "but try to maximize the use of the provided pantry items."
        )

    prompt += (
        "\n\nReturn the recipe as a JSON object with the following structure:\n"
        "- title: A descriptive name for the recipe\n"
        "- ingredients: Array of objects with name, quantity (number), and optional unit\n"
        "- instructions: Step-by-step cooking instructions as a string\n"
        '- mealType: Optional meal type ("breakfast", "lunch" or "dinner")\n'
        "- prepTime: Optional preparation time in minutes\n"
        "- cookTime: Optional cooking time in minutes"
    )
    return prompt


def _inline_refs(node: Any, defs: Dict[str, Any]) -> Any:
    if isinstance(node, dict):
        if "$ref" in node:
            return _inline_refs(defs[node["$ref"].split("/")[-1]], defs)
        # "title" is dropped only as a string annotation; a "title" property is a dict.
        return {
            k: _inline_refs(v, defs)
            for k, v in node.items()
            if k != "$defs" and not (k == "title" and isinstance(v, str))
        }
    if isinstance(node, list):
        return [_inline_refs(v, defs) for v in node]
    return node


def _require_all(node: Any) -> None:
    # Strict structured output wants every property listed and no extras.
    if isinstance(node, dict):
        if isinstance(node.get("properties"), dict):
            node["required"] = list(node["properties"].keys())
            node["additionalProperties"] = False
            for child in node["properties"].values():
                _require_all(child)
        for key in ("items", "anyOf"):
            child = node.get(key)
            if isinstance(child, list):
                for c in child:
                    _require_all(c)
            elif child is not None:
                _require_all(child)


def recipe_json_schema() -> Dict[str, Any]:
    raw = GeneratedRecipe.model_json_schema(by_alias=True)
    schema = _inline_refs(raw, raw.get("$defs", {}))
    _require_all(schema)
    return schema


def recipe_response_format() -> Dict[str, Any]:
    return {
        "type": "json_schema",
        "json_schema": {
            "name": "recipe",
            "strict": True,
            "schema": recipe_json_schema(),
        },
    }
