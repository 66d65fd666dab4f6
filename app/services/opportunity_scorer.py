"""
Search Opportunity Scoring

Deterministic (no LLM) scoring of Search Console query rows. Each query is
categorized, scored and given an estimated click upside; the thresholded
pipeline keeps the queries worth targeting with new or improved content.

Categories (first match wins): how-to, color, product, general
"""
import math
from dataclasses import asdict, dataclass
from typing import Dict, Iterable, List

from app.config import get_settings
from app.connectors.search_console import MetricRow

# ---------------------------------------------------------------------------
# Category vocabularies
# ---------------------------------------------------------------------------

HOW_TO_KEYWORDS = ("how to", "guide", "tutorial", "instructions", "tips")

COLOR_KEYWORDS = (
    "indigo", "madder", "weld", "walnut",
    "blue", "red", "yellow", "brown", "green", "purple", "pink", "orange",
    "natural dye", "plant dye", "botanical dye",
)

PRODUCT_KEYWORDS = (
    "yarn", "wool", "fiber", "fibre", "skein",
    "hand dyed", "hand-dyed", "merino", "sock yarn",
)

# Summary order; also breaks ties for the top category
CATEGORIES = ("color", "how-to", "product", "general")


@dataclass(frozen=True)
class ScoringParameters:
    """Scoring constants.

    Neither value is fitted to data: 0.3 is a conservative niche-content CTR
    for position #1 and /10 scales position into a multiplier.
    """
    ctr_at_position_1: float = 0.3
    position_divisor: float = 10.0

    @classmethod
    def from_settings(cls) -> "ScoringParameters":
        settings = get_settings()
        return cls(
            ctr_at_position_1=settings.ctr_at_position_1,
            position_divisor=settings.position_divisor,
        )


@dataclass(frozen=True)
class OpportunityThresholds:
    min_impressions: int = 10
    max_ctr: float = 0.05
    min_position: float = 5
    limit: int = 50

    @classmethod
    def from_settings(cls) -> "OpportunityThresholds":
        settings = get_settings()
        return cls(
            min_impressions=settings.min_impressions,
            max_ctr=settings.max_ctr,
            min_position=settings.min_position,
            limit=settings.opportunity_limit,
        )


@dataclass(frozen=True)
class Opportunity:
    query: str
    category: str
    impressions: int
    clicks: int
    ctr: float
    position: float
    score: float
    estimated_potential: int

    def to_dict(self) -> Dict:
        return asdict(self)


DEFAULT_PARAMETERS = ScoringParameters()
DEFAULT_THRESHOLDS = OpportunityThresholds()


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


# ---------------------------------------------------------------------------
# Scoring primitives
# ---------------------------------------------------------------------------

def categorize_query(query: str) -> str:
    """Classify a query by case-insensitive keyword match"""
    q = query.lower()

    if q.startswith("how to") or any(k in q for k in HOW_TO_KEYWORDS):
        return "how-to"
    if any(k in q for k in COLOR_KEYWORDS):
        return "color"
    if any(k in q for k in PRODUCT_KEYWORDS):
        return "product"
    return "general"


def opportunity_score(
    impressions: float,
    ctr: float,
    position: float,
    params: ScoringParameters = DEFAULT_PARAMETERS,
) -> float:
    """
    impressions * (1 - ctr) * (position / divisor)

    Highest for visible, rarely-clicked, poorly-ranked queries.
    """
    return impressions * (1 - ctr) * (position / params.position_divisor)


def estimate_potential(
    impressions: float,
    clicks: float,
    position: float,
    params: ScoringParameters = DEFAULT_PARAMETERS,
) -> int:
    """
    Additional clicks if the query ranked #1.

    Not clamped: a negative value means the query already beats the
    position-1 estimate.
    """
    # Top-3 queries use the same position-1 CTR; their clicks already sit
    # close to it, so the upside comes out small
    return _round_half_up(impressions * params.ctr_at_position_1 - clicks)


def score_row(row: MetricRow, params: ScoringParameters = DEFAULT_PARAMETERS) -> Opportunity:
    query = row.key(0)
    return Opportunity(
        query=query,
        category=categorize_query(query),
        impressions=row.impressions,
        clicks=row.clicks,
        ctr=row.ctr,
        position=row.position,
        score=opportunity_score(row.impressions, row.ctr, row.position, params),
        estimated_potential=estimate_potential(row.impressions, row.clicks, row.position, params),
    )


def score_rows(rows: Iterable[MetricRow], params: ScoringParameters = DEFAULT_PARAMETERS) -> List[Opportunity]:
    """Score every row, preserving input order"""
    return [score_row(row, params) for row in rows]


def sort_by_score(opportunities: Iterable[Opportunity]) -> List[Opportunity]:
    """Score descending; ties go to the larger upside, then alphabetical query"""
    return sorted(opportunities, key=lambda o: (-o.score, -o.estimated_potential, o.query))


def passes_thresholds(opp: Opportunity, thresholds: OpportunityThresholds = DEFAULT_THRESHOLDS) -> bool:
    return (
        opp.impressions >= thresholds.min_impressions
        and opp.ctr < thresholds.max_ctr
        and opp.position > thresholds.min_position
        and opp.estimated_potential > 0
    )


def rank_opportunities(
    opportunities: Iterable[Opportunity],
    thresholds: OpportunityThresholds = DEFAULT_THRESHOLDS,
) -> List[Opportunity]:
    """Keep qualifying opportunities, best first, truncated to the limit"""
    kept = [o for o in opportunities if passes_thresholds(o, thresholds)]
    return sort_by_score(kept)[:thresholds.limit]


def find_opportunities(
    rows: Iterable[MetricRow],
    thresholds: OpportunityThresholds = DEFAULT_THRESHOLDS,
    params: ScoringParameters = DEFAULT_PARAMETERS,
) -> List[Opportunity]:
    return rank_opportunities(score_rows(rows, params), thresholds)


def summarize_opportunities(opportunities: List[Opportunity]) -> Dict:
    by_category = {c: 0 for c in CATEGORIES}
    for opp in opportunities:
        by_category[opp.category] += 1

    top_category = "general"
    if opportunities:
        top_category = max(CATEGORIES, key=lambda c: (by_category[c], -CATEGORIES.index(c)))

    return {
        "total_opportunities": len(opportunities),
        "by_category": by_category,
        "top_category": top_category,
    }
