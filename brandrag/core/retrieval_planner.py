"""Retrieval strategy planner.

Analyzes a query plus its intent classification to pick how to retrieve:
- Catalog browsing: many products, one chunk per SKU
- Comparison: comprehensive product data, one chunk per SKU
- Ingredient search: recipes boosted by the ingredients mentioned
- Filtered: recipe, support and single-product lookups
- Semantic: pure embedding similarity (default)

Pure and deterministic. Metadata categories are folded into the semantic query
rather than used as filters, since indexed metadata is not reliable.
"""

import re
from functools import lru_cache
from typing import Any

from pydantic import ValidationError

from brandrag.core.personalization_terms import term_pattern
from brandrag.core.schemas_retrieval import (
    CONTENT_TYPES,
    IntentClassification,
    PlanFilters,
    RetrievalPlan,
)

DEFAULT_BRAND = "vitamix"
DEFAULT_THRESHOLD = 0.70

COMMON_INGREDIENTS: tuple[str, ...] = (
    # Fruits
    "banana", "apple", "orange", "mango", "pineapple", "strawberry", "blueberry",
    "raspberry", "blackberry", "peach", "pear", "grape", "watermelon", "lemon",
    "lime", "avocado", "coconut", "cherry", "kiwi", "papaya", "acai", "date",
    # Vegetables
    "spinach", "kale", "carrot", "celery", "cucumber", "tomato", "beet", "ginger",
    "garlic", "onion", "pepper", "broccoli", "cauliflower", "zucchini", "squash",
    "sweet potato", "potato", "pumpkin", "corn",
    # Proteins & dairy
    "milk", "yogurt", "protein", "almond milk", "oat milk", "soy milk", "cheese",
    "cream", "butter", "egg", "chicken", "tofu",
    # Nuts & seeds
    "almond", "cashew", "walnut", "peanut", "chia", "flax", "hemp", "sunflower",
    # Other
    "oat", "honey", "maple", "chocolate", "cocoa", "coffee", "matcha", "vanilla",
    "cinnamon", "turmeric", "ice",
)

PRODUCT_CATEGORIES: dict[str, str] = {
    "blender": "blender",
    "mixer": "blender",
    "container": "container",
    "accessory": "accessory",
    "accessories": "accessory",
    "attachment": "accessory",
    "blade": "accessory",
    "cup": "container",
    "bowl": "container",
}

RECIPE_CATEGORIES: dict[str, str] = {
    "smoothie": "smoothie",
    "shake": "smoothie",
    "soup": "soup",
    "sauce": "sauce",
    "dip": "dip",
    "dessert": "dessert",
    "ice cream": "dessert",
    "sorbet": "dessert",
    "breakfast": "breakfast",
    "baby food": "baby food",
    "baby": "baby food",
    "juice": "juice",
    "cocktail": "cocktail",
    "drink": "drink",
    "nut butter": "nut butter",
    "peanut butter": "nut butter",
    "almond butter": "nut butter",
    "butter": "nut butter",
    "dough": "dough",
    "batter": "batter",
    "flour": "flour",
    "hummus": "dip",
    "pesto": "sauce",
    "salsa": "sauce",
    "puree": "puree",
}

SUPPORT_EXPANSIONS: dict[str, str] = {
    "noise": "grinding noise loud sound troubleshooting",
    "leak": "leaking dripping seal gasket troubleshooting",
    "won't turn on": "not turning on power issue troubleshooting",
    "doesn't start": "not starting power issue troubleshooting",
    "smoke": "smoking burning smell overheating troubleshooting",
    "smell": "burning smell odor troubleshooting",
    "stuck": "stuck jammed blade troubleshooting",
    "clean": "cleaning maintenance wash care",
    "warranty": "warranty coverage repair service",
}

QUERY_SYNONYMS: dict[str, str] = {
    "blender": "blenders",
    "smoothie": "smoothies",
    "soup": "soups",
    "recipe": "recipes",
    "clean": "cleaning",
}

_INGREDIENT_SPLIT = re.compile(r",\s*and\s+|,\s*|\s+and\s+")


@lru_cache(maxsize=16)
def _catalog_patterns(brand: str) -> tuple[re.Pattern[str], ...]:
    b = rf"(?:{re.escape(brand)}\s+)?"
    return tuple(
        re.compile(p, re.IGNORECASE)
        for p in (
            rf"\ball\s+(?:the\s+)?{b}(blenders?|products?|models?|containers?|accessories)",
            rf"show\s+(?:me\s+)?(?:all\s+)?(?:the\s+)?{b}(blenders?|products?|models?)",
            rf"list\s+(?:of\s+)?(?:all\s+)?{b}(blenders?|products?|models?)",
            r"what\s+(blenders?|products?|models?|options?)\s+(?:do\s+you\s+have|are\s+available)",
            rf"{b}(blenders?|products?)\s+(?:you\s+have|available|lineup|range|selection)",
            rf"browse\s+(?:all\s+)?{b}(blenders?|products?)",
            r"see\s+all\s+(blenders?|products?|models?)",
        )
    )


@lru_cache(maxsize=16)
def _comparison_patterns(brand: str) -> tuple[re.Pattern[str], ...]:
    b = rf"(?:{re.escape(brand)}\s+)?"
    name = re.escape(brand)
    return tuple(
        re.compile(p, re.IGNORECASE)
        for p in (
            rf"best\s+{b}(?:blender\s+)?(?:for\s+me|for\s+my)",
            rf"which\s+{b}(?:blender\s+)?(?:should|would|do\s+you)",
            r"help\s+me\s+(?:choose|pick|decide|select)",
            rf"recommend\s+(?:a\s+)?(?:{name}|blender)",
            rf"what\s+(?:{name}|blender)\s+(?:should\s+i|do\s+you\s+recommend)",
            rf"compare\s+{b}(?:blenders?|models?|all)",
            r"difference\s+between",
            r"\bvs\.?\s+|\bversus\b",
        )
    )


_INGREDIENT_PATTERNS = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"(?:with|using|containing|has|have)\s+([\w\s,]+?)(?:\s+recipes?|\s+smoothies?|\s+ideas?|$)",
        r"recipes?\s+(?:with|for|using)\s+([\w\s,]+)",
        r"([\w\s,]+?)\s+(?:recipes?|smoothies?|ideas?)",
    )
)


def _find_category(query: str, table: dict[str, str]) -> str | None:
    for term, category in table.items():
        if term_pattern(term).search(query):
            return category
    return None


def extract_product_category(query: str) -> str | None:
    return _find_category(query, PRODUCT_CATEGORIES)


def extract_recipe_category(query: str) -> str | None:
    return _find_category(query, RECIPE_CATEGORIES)


def extract_ingredients(query: str, extra: list[str] | None = None) -> list[str]:
    """
    Extract ingredients from a query ("with X and Y", "using X", "X recipes").

    Falls back to direct mentions of known ingredients when no explicit pattern
    yields one. Upstream-extracted ingredients are appended. Order is kept and
    duplicates removed.

    Args:
        query: Lower-cased query text
        extra: Ingredients already extracted by the intent classifier

    Returns:
        Ingredient terms, deduplicated
    """
    found: list[str] = []

    for pattern in _INGREDIENT_PATTERNS:
        match = pattern.search(query)
        if not match:
            continue
        for part in _INGREDIENT_SPLIT.split(match.group(1).lower()):
            candidate = part.strip()
            if candidate in COMMON_INGREDIENTS:
                found.append(candidate)

    if not found:
        for ingredient in COMMON_INGREDIENTS:
            if term_pattern(ingredient).search(query):
                found.append(ingredient)

    for ingredient in extra or []:
        cleaned = " ".join(ingredient.lower().split())
        if cleaned:
            found.append(cleaned)

    return list(dict.fromkeys(found))


def expand_support_query(query: str) -> str:
    """Append the first matching troubleshooting expansion."""
    lowered = query.lower()
    for term, expansion in SUPPORT_EXPANSIONS.items():
        if term in lowered:
            return f"{query} {expansion}"
    return query


def expand_query(query: str) -> str:
    """Append one synonym for the first recognized term, unless already present."""
    lowered = query.lower()
    for term, synonym in QUERY_SYNONYMS.items():
        if term in lowered:
            if synonym not in lowered:
                return f"{query} {synonym}"
            break
    return query


def _comparison_query(intent: IntentClassification, brand: str) -> str:
    products = intent.entities.products
    goals = intent.entities.goals

    if len(products) >= 2:
        return f"compare {' vs '.join(products)} {brand} blender features specifications"
    if goals:
        return f"best {brand} blender for {' '.join(goals)}"
    return f"{brand} blender comparison features specifications models"


def generic_plan(query: str, default_threshold: float = DEFAULT_THRESHOLD) -> RetrievalPlan:
    """Broad fallback plan for missing or malformed intents."""
    return RetrievalPlan(
        strategy="semantic",
        semantic_query=query,
        top_k=10,
        relevance_threshold=default_threshold,
        filters=PlanFilters(content_types=list(CONTENT_TYPES)),
        dedupe_mode="similarity",
        max_results=5,
        reasoning="Generic plan: intent missing or malformed.",
    )


def _parse_intent(intent: Any) -> IntentClassification | None:
    if isinstance(intent, IntentClassification):
        return intent
    if intent is None:
        return None
    try:
        return IntentClassification.model_validate(intent)
    except (ValidationError, TypeError, ValueError):
        return None


def plan_retrieval(
    query: str,
    intent: IntentClassification | dict | None,
    *,
    brand: str = DEFAULT_BRAND,
    default_threshold: float = DEFAULT_THRESHOLD,
) -> RetrievalPlan:
    """
    Analyze a query and plan the retrieval strategy.

    Patterns are checked in order: catalog, comparison, ingredient, recipe,
    support, single product, default semantic.

    Args:
        query: Raw user query
        intent: Intent classification (model or raw dict); malformed -> generic plan
        brand: Brand name used in rewritten semantic queries
        default_threshold: Relevance threshold for semantic plans

    Returns:
        Immutable RetrievalPlan
    """
    parsed = _parse_intent(intent)
    if parsed is None:
        return generic_plan(query, default_threshold)

    brand = brand.lower()
    lowered = query.lower()

    # Pattern 1: Catalog browsing ("all blenders", "show me products")
    is_catalog = any(p.search(lowered) for p in _catalog_patterns(brand)) or (
        parsed.layout_id == "category-browse" and not parsed.entities.products
    )
    if is_catalog:
        category = extract_product_category(lowered) or "blender"
        return RetrievalPlan(
            strategy="catalog",
            semantic_query=f"{brand} {category} products models",
            top_k=50,
            relevance_threshold=0.5,
            filters=PlanFilters(content_types=["product"]),
            dedupe_mode="by-sku",
            max_results=12,
            reasoning=f'Catalog query detected. Semantic search for "{category}" products, deduping by SKU.',
        )

    # Pattern 2: Comparison/recommendation ("best for me", "which should I")
    is_comparison = any(p.search(lowered) for p in _comparison_patterns(brand))
    if is_comparison or parsed.intent_type == "comparison":
        return RetrievalPlan(
            strategy="comprehensive",
            semantic_query=_comparison_query(parsed, brand),
            top_k=30,
            relevance_threshold=0.5,
            filters=PlanFilters(content_types=["product"]),
            dedupe_mode="by-sku",
            max_results=10,
            reasoning="Comparison query detected. Getting comprehensive product data for comparison.",
        )

    # Pattern 3: Ingredient-based recipe search ("what can I make with X")
    if parsed.intent_type == "recipe":
        ingredients = extract_ingredients(lowered, parsed.entities.ingredients)
        recipe_category = extract_recipe_category(lowered)

        if ingredients:
            suffix = f" {recipe_category}" if recipe_category else ""
            return RetrievalPlan(
                strategy="ingredient",
                semantic_query=f"{brand} recipes with {' and '.join(ingredients)}{suffix}",
                top_k=25,
                relevance_threshold=0.55,
                filters=PlanFilters(content_types=["recipe"]),
                dedupe_mode="by-url",
                max_results=8,
                boost_terms=ingredients,
                reasoning=(
                    f"Ingredient query detected. Searching for recipes with: {', '.join(ingredients)}. "
                    "Will boost results containing these ingredients."
                ),
            )

        # Pattern 4: Recipe with category constraints ("baby soup", "breakfast smoothie")
        return RetrievalPlan(
            strategy="filtered",
            semantic_query=f"{brand} {recipe_category} recipes {query}" if recipe_category else query,
            top_k=20,
            relevance_threshold=0.6,
            filters=PlanFilters(content_types=["recipe"]),
            dedupe_mode="by-url",
            max_results=8,
            reasoning=f'Recipe query with semantic search for "{recipe_category or "recipes"}".',
        )

    # Pattern 5: Support/troubleshooting
    if parsed.intent_type == "support":
        return RetrievalPlan(
            strategy="filtered",
            semantic_query=expand_support_query(query),
            top_k=15,
            relevance_threshold=0.65,
            filters=PlanFilters(content_types=["support", "product"]),
            dedupe_mode="similarity",
            max_results=6,
            reasoning="Support query. Searching support docs and product info.",
        )

    # Pattern 6: Single product info
    if parsed.intent_type == "product_info" and len(parsed.entities.products) == 1:
        product = parsed.entities.products[0]
        return RetrievalPlan(
            strategy="filtered",
            semantic_query=f"{product} {brand} blender features specifications",
            top_k=15,
            relevance_threshold=0.6,
            filters=PlanFilters(content_types=["product"]),
            dedupe_mode="similarity",
            max_results=5,
            reasoning=f'Single product query for "{product}".',
        )

    # Default: pure semantic search
    return RetrievalPlan(
        strategy="semantic",
        semantic_query=expand_query(query),
        top_k=10,
        relevance_threshold=default_threshold,
        filters=PlanFilters(content_types=list(parsed.content_types) or list(CONTENT_TYPES)),
        dedupe_mode="similarity",
        max_results=5,
        reasoning="Default semantic search.",
    )
