"""RAG quality harness: predefined personalization scenarios run against a retriever.

Each scenario runs as a recipe intent and checks avoid-term violations, whether
expected terms show up in the top results, and whether the query was augmented
with the expected terms.
"""

from dataclasses import dataclass, field
from datetime import timezone
from typing import Any

from pydantic import BaseModel, Field

from brandrag.core.context_filter import find_avoid_term
from brandrag.core.logging import get_logger
from brandrag.core.retrieval import Retriever
from brandrag.core.schemas_retrieval import IntentClassification, IntentEntities, UserContext

logger = get_logger(__name__)

TOP_N = 5


@dataclass(frozen=True)
class QualityScenario:
    id: str
    name: str
    improvement: str
    query: str
    user_context: dict[str, Any] = field(default_factory=dict)
    must_not_contain: tuple[str, ...] = ()
    should_boost: tuple[str, ...] = ()
    query_augmentation: tuple[str, ...] = ()


POSITIVE_BOOSTING = "Positive Boosting"
DIETARY_FILTERING = "Dietary Filtering"
QUERY_AUGMENTATION = "Query Augmentation"
CUISINE_BOOSTING = "Cuisine Boosting"
NEGATIVE_BOOSTING = "Negative Boosting"
RESULT_DIVERSITY = "Result Diversity"
CONFIDENCE = "Confidence Assessment"

IMPROVEMENTS: tuple[str, ...] = (
    POSITIVE_BOOSTING,
    DIETARY_FILTERING,
    QUERY_AUGMENTATION,
    CUISINE_BOOSTING,
    NEGATIVE_BOOSTING,
    RESULT_DIVERSITY,
    CONFIDENCE,
)

SCENARIOS: tuple[QualityScenario, ...] = (
    QualityScenario(
        id="boost-available",
        name="Boost by available ingredients",
        improvement=POSITIVE_BOOSTING,
        query="smoothie recipe",
        user_context={"available": ["banana", "spinach", "almond milk"]},
        should_boost=("banana", "spinach"),
    ),
    QualityScenario(
        id="boost-mustuse",
        name="Boost by must-use ingredients",
        improvement=POSITIVE_BOOSTING,
        query="breakfast recipe",
        user_context={"mustUse": ["ripe bananas"]},
        should_boost=("banana",),
    ),
    QualityScenario(
        id="filter-vegan",
        name="Vegan preference filters meat/dairy",
        improvement=DIETARY_FILTERING,
        query="smoothie recipe",
        user_context={"dietary": {"avoid": [], "preferences": ["vegan"]}},
        must_not_contain=("milk", "yogurt", "honey", "whey", "chicken", "beef"),
    ),
    QualityScenario(
        id="filter-keto",
        name="Keto preference filters high-carb",
        improvement=DIETARY_FILTERING,
        query="breakfast ideas",
        user_context={"dietary": {"avoid": [], "preferences": ["keto"]}},
        must_not_contain=("bread", "pasta", "rice", "sugar"),
    ),
    QualityScenario(
        id="filter-avoid",
        name="Explicit avoid terms filtered",
        improvement=DIETARY_FILTERING,
        query="soup recipe",
        user_context={"dietary": {"avoid": ["carrots", "celery"], "preferences": []}},
        must_not_contain=("carrot", "celery"),
    ),
    QualityScenario(
        id="augment-diabetes",
        name="Diabetes condition augments query",
        improvement=QUERY_AUGMENTATION,
        query="smoothie",
        user_context={"health": {"conditions": ["diabetes"], "goals": [], "considerations": []}},
        query_augmentation=("low sugar", "diabetic friendly"),
    ),
    QualityScenario(
        id="augment-quick",
        name="Quick constraint augments query",
        improvement=QUERY_AUGMENTATION,
        query="breakfast",
        user_context={"constraints": ["quick"]},
        query_augmentation=("quick", "fast", "easy"),
    ),
    QualityScenario(
        id="boost-cuisine",
        name="Cuisine preference boosts results",
        improvement=CUISINE_BOOSTING,
        query="soup recipe",
        user_context={"cultural": {"cuisine": ["thai", "asian"], "religious": [], "regional": []}},
        should_boost=("thai", "asian"),
    ),
    QualityScenario(
        id="penalize-conflicts-quick",
        name="Quick constraint activates conflict penalization",
        improvement=NEGATIVE_BOOSTING,
        query="quick breakfast recipe",
        user_context={"constraints": ["quick"]},
        should_boost=("breakfast",),
    ),
    QualityScenario(
        id="penalize-conflicts-simple",
        name="Simple constraint activates conflict penalization",
        improvement=NEGATIVE_BOOSTING,
        query="simple smoothie recipe",
        user_context={"constraints": ["simple"]},
        should_boost=("smoothie",),
    ),
    QualityScenario(
        id="diversity-sources",
        name="Results show source diversity",
        improvement=RESULT_DIVERSITY,
        query="healthy smoothie recipes",
        should_boost=("smoothie",),
    ),
    QualityScenario(
        id="quality-assessment",
        name="Quality assessment returns valid level",
        improvement=CONFIDENCE,
        query="vitamix smoothie recipe",
        should_boost=("smoothie", "vitamix"),
    ),
)


class UnknownScenarioError(LookupError):
    """No scenario matches the requested test id or improvement."""

    def __init__(self, test: str):
        super().__init__(f"No matching tests found for {test!r}")
        self.test = test
        self.available = [{"id": s.id, "name": s.name} for s in SCENARIOS]


# =============================================================================
# Report models
# =============================================================================


class Violation(BaseModel):
    type: str = "unwanted_term"
    term: str
    found_in: str


class BoostHit(BaseModel):
    term: str
    found_in_top: int
    positions: list[int] = Field(default_factory=list)


class AugmentationHit(BaseModel):
    term: str
    present: bool


class TopResult(BaseModel):
    title: str
    score: float
    snippet: str


class ScenarioDetails(BaseModel):
    query: str
    augmented_query: str
    total_results: int
    quality: str
    violations: list[Violation] = Field(default_factory=list)
    boost_hits: list[BoostHit] = Field(default_factory=list)
    augmentation_hits: list[AugmentationHit] = Field(default_factory=list)
    top_results: list[TopResult] | None = None


class ScenarioResult(BaseModel):
    id: str
    name: str
    improvement: str
    passed: bool
    details: ScenarioDetails


class QualitySummary(BaseModel):
    total: int
    passed: int
    failed: int
    pass_rate: str
    timestamp: str


class QualityReport(BaseModel):
    summary: QualitySummary
    by_improvement: dict[str, list[ScenarioResult]]
    results: list[ScenarioResult]


# =============================================================================
# Runner
# =============================================================================


def select_scenarios(test: str | None = None) -> list[QualityScenario]:
    """All scenarios, or those whose id equals `test` or whose improvement contains it."""
    if not test:
        return list(SCENARIOS)
    selected = [s for s in SCENARIOS if s.id == test or test.lower() in s.improvement.lower()]
    if not selected:
        raise UnknownScenarioError(test)
    return selected


def scenario_intent(scenario: QualityScenario, user_context: UserContext) -> IntentClassification:
    return IntentClassification(
        intent_type="recipe",
        confidence=0.9,
        layout_id="recipe-collection",
        content_types=["recipe"],
        entities=IntentEntities(user_context=user_context),
    )


async def run_scenario(retriever: Retriever, scenario: QualityScenario, *, verbose: bool = False) -> ScenarioResult:
    user_context = UserContext.model_validate(scenario.user_context)
    intent = scenario_intent(scenario, user_context)

    plan = retriever.plan(scenario.query, intent)
    augmented = retriever.augment(plan, user_context)
    context = await retriever.retrieve(scenario.query, intent, user_context)

    violations: list[Violation] = []
    for term in scenario.must_not_contain:
        for chunk in context.chunks:
            for text in (chunk.text, chunk.metadata.page_title):
                if find_avoid_term(text, {term}, allow_substitutes=retriever.tuning.allow_substitute_phrases):
                    violations.append(
                        Violation(term=term, found_in=chunk.metadata.page_title or chunk.metadata.source_url)
                    )
                    break

    boost_hits: list[BoostHit] = []
    for term in scenario.should_boost:
        needle = term.lower()
        positions = [i + 1 for i, c in enumerate(context.chunks) if needle in c.text.lower()]
        boost_hits.append(
            BoostHit(term=term, found_in_top=sum(1 for p in positions if p <= TOP_N), positions=positions[:TOP_N])
        )

    augmentation_hits = [
        AugmentationHit(term=term, present=term.lower() in augmented.lower())
        for term in scenario.query_augmentation
    ]

    passed = (
        not violations
        and (not boost_hits or any(h.found_in_top > 0 for h in boost_hits))
        and all(h.present for h in augmentation_hits)
    )

    top_results = None
    if verbose:
        top_results = [
            TopResult(title=c.metadata.page_title, score=round(c.score, 3), snippet=c.text[:150] + "...")
            for c in context.chunks[:TOP_N]
        ]

    return ScenarioResult(
        id=scenario.id,
        name=scenario.name,
        improvement=scenario.improvement,
        passed=passed,
        details=ScenarioDetails(
            query=scenario.query,
            augmented_query=augmented,
            total_results=len(context.chunks),
            quality=context.quality,
            violations=violations,
            boost_hits=boost_hits,
            augmentation_hits=augmentation_hits,
            top_results=top_results,
        ),
    )


async def run_quality_checks(
    retriever: Retriever,
    *,
    test: str | None = None,
    verbose: bool = False,
) -> QualityReport:
    """
    Run quality scenarios and summarize pass/fail by improvement.

    Args:
        retriever: Retriever under test
        test: Scenario id or improvement substring; None runs everything
        verbose: Include top results for each scenario

    Returns:
        QualityReport

    Raises:
        UnknownScenarioError: If `test` matches nothing
        RetrievalError: If an upstream call fails
    """
    scenarios = select_scenarios(test)
    results = [await run_scenario(retriever, s, verbose=verbose) for s in scenarios]

    passed = sum(1 for r in results if r.passed)
    logger.info(f"RAG quality checks: {passed}/{len(results)} passed")

    now = retriever.now_fn()
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    return QualityReport(
        summary=QualitySummary(
            total=len(results),
            passed=passed,
            failed=len(results) - passed,
            pass_rate=f"{round(passed / len(results) * 100)}%",
            timestamp=now.isoformat(),
        ),
        by_improvement={
            improvement: [r for r in results if r.improvement == improvement]
            for improvement in IMPROVEMENTS
            if any(r.improvement == improvement for r in results)
        },
        results=results,
    )
