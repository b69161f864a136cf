"""Static lookup tables for personalization, plus the shared term matcher.

Tables are read-only (MappingProxyType of tuples/frozensets) and are loaded once
at import. Keys are normalized with ``normalize_key``.
"""

import re
from functools import lru_cache
from types import MappingProxyType


def normalize_key(value: str) -> str:
    """Lower-case a signal value and use hyphens between words: "Weight Loss" -> "weight-loss"."""
    return re.sub(r"[\s_]+", "-", value.strip().lower())


def normalize_term(value: str) -> str:
    """Lower-case and collapse whitespace. Hyphens are kept."""
    return " ".join(value.strip().lower().split())


def singularize(word: str) -> str:
    """Reduce a trailing English plural: berries -> berry, tomatoes -> tomato, carrots -> carrot."""
    if len(word) > 3 and word.endswith("ies"):
        return word[:-3] + "y"
    if word.endswith(("sses", "xes", "ches", "shes", "oes")):
        return word[:-2]
    if len(word) > 3 and word.endswith("s") and not word.endswith(("ss", "us", "is")):
        return word[:-1]
    return word


def _term_regex(term: str) -> str | None:
    words = [w for w in re.split(r"[\s-]+", term.strip().lower()) if w]
    if not words:
        return None

    last = singularize(words[-1])
    if len(last) > 1 and last.endswith("y") and last[-2] not in "aeiou":
        tail = re.escape(last[:-1]) + r"(?:y|ie|ies)"
    else:
        tail = re.escape(last) + r"(?:s|es)?"

    parts = [re.escape(w) for w in words[:-1]] + [tail]
    return r"\b" + r"[\s-]+".join(parts)


@lru_cache(maxsize=2048)
def term_pattern(term: str) -> re.Pattern[str]:
    """
    Compile a word-boundary, plural-tolerant, case-insensitive pattern for a term.

    "carrots" matches "carrot" and "carrots" but not "car rental" or "carrotized".
    Multi-word terms accept spaces or hyphens between words ("almond milk" also
    matches "almond-milk"). Only the last word is pluralized.
    """
    regex = _term_regex(term)
    if regex is None:
        # Never matches anything
        return re.compile(r"(?!x)x")
    return re.compile(regex + r"\b", re.IGNORECASE)


@lru_cache(maxsize=2048)
def free_label_pattern(term: str) -> re.Pattern[str]:
    """Match a "<term>-free" label ("dairy-free", "nut free", "peanuts-free"), never "free-range"."""
    regex = _term_regex(term)
    if regex is None:
        return re.compile(r"(?!x)x")
    return re.compile(regex + r"[\s-]+free\b(?![\s-]+range)", re.IGNORECASE)


def _frozen(table: dict) -> MappingProxyType:
    return MappingProxyType({key: tuple(values) for key, values in table.items()})


# =============================================================================
# Query augmentation (signal value -> search-helpful terms)
# =============================================================================

DIETARY_PREFERENCE_TERMS = _frozen({
    "vegan": ["vegan", "plant-based"],
    "vegetarian": ["vegetarian", "meatless"],
    "keto": ["keto", "low carb"],
    "paleo": ["paleo", "whole food"],
    "gluten-free": ["gluten free"],
    "dairy-free": ["dairy free"],
    "low-carb": ["low carb"],
    "whole30": ["whole30", "whole food"],
    "mediterranean": ["mediterranean"],
})

HEALTH_CONDITION_TERMS = _frozen({
    "diabetes": ["low sugar", "diabetic friendly"],
    "prediabetes": ["low sugar", "low glycemic"],
    "heart-health": ["heart healthy", "low sodium"],
    "high-blood-pressure": ["low sodium", "heart healthy"],
    "high-cholesterol": ["heart healthy", "low fat"],
    "celiac": ["gluten free"],
    "ibs": ["gentle", "low fodmap"],
    "acid-reflux": ["gentle", "low acid"],
    "pregnancy": ["nutrient rich", "pregnancy safe"],
    "kidney-disease": ["low sodium", "kidney friendly"],
})

HEALTH_GOAL_TERMS = _frozen({
    "weight-loss": ["low calorie", "light"],
    "muscle-gain": ["high protein"],
    "energy": ["energizing"],
    "immunity": ["immune boosting", "vitamin c"],
    "gut-health": ["fiber rich", "probiotic"],
    "detox": ["green", "cleansing"],
    "heart-health": ["heart healthy"],
    "better-sleep": ["calming"],
})

HEALTH_CONSIDERATION_TERMS = _frozen({
    "low-sodium": ["low sodium"],
    "low-sugar": ["low sugar"],
    "low-fat": ["low fat"],
    "high-fiber": ["high fiber"],
    "high-protein": ["high protein"],
    "anti-inflammatory": ["anti inflammatory"],
})

CONSTRAINT_TERMS = _frozen({
    "quick": ["quick", "fast", "easy"],
    "simple": ["simple", "easy"],
    "easy": ["easy", "simple"],
    "5-minute": ["quick", "5 minute"],
    "few-ingredients": ["simple", "few ingredients"],
    "budget": ["budget friendly", "affordable"],
    "make-ahead": ["make ahead"],
    "meal-prep": ["make ahead", "batch"],
    "no-cook": ["no cook", "raw"],
    "one-pot": ["one pot"],
})

SEASON_TERMS = _frozen({
    "summer": ["refreshing", "cold"],
    "winter": ["warm", "hearty"],
    "fall": ["warm", "autumn"],
    "autumn": ["warm", "autumn"],
    "spring": ["fresh", "light"],
    "holiday": ["festive"],
})

FITNESS_TERMS = _frozen({
    "pre-workout": ["energizing", "pre workout"],
    "post-workout": ["protein", "recovery"],
    "recovery": ["recovery", "anti inflammatory"],
    "endurance": ["electrolyte", "energizing"],
    "strength": ["high protein"],
    "hydration": ["hydrating", "electrolyte"],
})


# =============================================================================
# Conflict penalization (constraint/goal keyword -> conflicting phrases)
# =============================================================================

CONFLICT_PHRASES = _frozen({
    "quick": ["overnight", "slow-cooked", "slow cooked", "slow cooker", "marinate for hours", "all day"],
    "5-minute": ["overnight", "slow-cooked", "slow cooker", "marinate for hours"],
    "simple": ["multi-step", "sous vide", "tempering", "advanced technique", "laminated"],
    "easy": ["multi-step", "sous vide", "tempering", "advanced technique"],
    "no-cook": ["bake", "roast", "simmer", "saute"],
    "budget": ["saffron", "truffle", "wagyu", "caviar"],
    "weight-loss": ["creamy", "rich", "buttery", "decadent", "indulgent", "heavy cream", "deep fried"],
    "low-calorie": ["creamy", "rich", "buttery", "decadent", "indulgent"],
    "low-sodium": ["salty", "soy sauce", "cured", "bacon"],
    "low-sugar": ["sugary", "sweetened", "syrup", "frosting", "candy"],
    "low-fat": ["creamy", "buttery", "deep fried", "heavy cream"],
    "mild": ["spicy", "hot sauce", "habanero", "cayenne", "extra hot"],
    "no-spice": ["spicy", "hot sauce", "jalapeno", "habanero", "cayenne", "chili"],
    "beginner": ["advanced technique", "sous vide", "tempering", "expert"],
})


# =============================================================================
# Avoid-term expansion (safety filter)
# =============================================================================

ALLERGEN_CATEGORIES = MappingProxyType({
    "nuts": frozenset({
        "nut", "almond", "walnut", "pecan", "cashew", "pistachio", "hazelnut",
        "macadamia", "brazil nut", "pine nut", "praline",
    }),
    "peanuts": frozenset({"peanut", "groundnut"}),
    "dairy": frozenset({
        "dairy", "milk", "cream", "cheese", "butter", "buttermilk", "yogurt",
        "whey", "casein", "ghee", "kefir",
    }),
    "gluten": frozenset({
        "gluten", "wheat", "barley", "rye", "flour", "bread", "pasta", "couscous", "seitan",
    }),
    "eggs": frozenset({"egg", "mayonnaise", "meringue"}),
    "soy": frozenset({"soy", "tofu", "edamame", "tempeh", "miso"}),
    "shellfish": frozenset({
        "shellfish", "shrimp", "crab", "lobster", "prawn", "clam", "mussel", "oyster", "scallop",
    }),
    "fish": frozenset({"fish", "salmon", "tuna", "cod", "anchovy", "tilapia", "sardine"}),
    "sesame": frozenset({"sesame", "tahini"}),
})

# Alternate spellings of allergen categories, including "-free" preferences.
ALLERGEN_ALIASES = MappingProxyType({
    "nut": "nuts",
    "tree-nuts": "nuts",
    "tree-nut": "nuts",
    "nut-free": "nuts",
    "peanut": "peanuts",
    "peanut-free": "peanuts",
    "milk": "dairy",
    "lactose": "dairy",
    "dairy-free": "dairy",
    "lactose-free": "dairy",
    "wheat": "gluten",
    "gluten-free": "gluten",
    "egg": "eggs",
    "egg-free": "eggs",
    "soy-free": "soy",
    "soya": "soy",
    "shellfish-free": "shellfish",
    "fish-free": "fish",
    "sesame-free": "sesame",
})

_MEAT = (
    "meat", "chicken", "beef", "pork", "bacon", "ham", "turkey", "lamb", "sausage", "gelatin",
    "duck", "goose", "veal", "venison", "rabbit", "bison", "lard", "prosciutto", "pepperoni",
    "salami", "chorizo",
)

DIET_EXCLUSIONS = _frozen({
    "vegan": [*_MEAT, "fish", "shellfish", "milk", "cream", "cheese", "butter", "yogurt",
              "egg", "honey", "whey", "ghee", "casein"],
    "vegetarian": [*_MEAT, "fish", "shellfish", "anchovy"],
    "pescatarian": list(_MEAT),
    "keto": ["sugar", "flour", "bread", "pasta", "rice", "potato", "corn"],
    "low-carb": ["sugar", "flour", "bread", "pasta", "rice", "potato"],
    "paleo": ["grain", "wheat", "rice", "bread", "pasta", "legume", "bean", "dairy", "sugar"],
    "whole30": ["sugar", "grain", "dairy", "legume", "alcohol"],
})

RELIGIOUS_EXCLUSIONS = _frozen({
    "halal": ["pork", "bacon", "ham", "lard", "gelatin", "alcohol", "wine", "beer", "rum"],
    "kosher": ["pork", "bacon", "ham", "lard", "shellfish"],
    "no-alcohol": ["alcohol", "wine", "beer", "rum", "vodka", "whiskey", "bourbon", "tequila", "liqueur"],
    "hindu": ["beef"],
    "no-beef": ["beef"],
    "no-pork": ["pork", "bacon", "ham", "lard"],
})

# Plant-based substitutes masked only while testing the dairy word they contain.
SUBSTITUTE_PHRASES = _frozen({
    "milk": ["almond milk", "oat milk", "soy milk", "coconut milk", "rice milk",
             "cashew milk", "hemp milk", "plant milk", "plant-based milk"],
    "cream": ["coconut cream", "cashew cream", "vegan cream"],
    "butter": ["peanut butter", "almond butter", "cashew butter", "nut butter",
               "sunflower butter", "seed butter", "cocoa butter", "apple butter", "vegan butter"],
    "cheese": ["vegan cheese", "cashew cheese", "nut cheese", "plant-based cheese"],
    "yogurt": ["coconut yogurt", "soy yogurt", "almond yogurt", "oat yogurt", "vegan yogurt"],
})


# =============================================================================
# Ingredient normalization (boosting)
# =============================================================================

INGREDIENT_QUALIFIERS = frozenset({
    "ripe", "overripe", "leftover", "fresh", "frozen", "organic", "raw", "cooked",
    "chopped", "diced", "sliced", "dried", "canned", "large", "small",
})
