"""
Period comparison for Search Console page metrics.

Builds the equal-length window immediately before a date range and diffs
per-entity metrics (keyed by blog slug) between the two windows.
"""
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from app.connectors.search_console import MetricRow
from app.utils.url_parsing import extract_blog_slug

# needs_attention thresholds
MIN_PREVIOUS_CLICKS = 10
MAX_RELATIVE_DECLINE = 0.2


def previous_period(start_date: date, end_date: date) -> Tuple[date, date]:
    """
    Equal-length window ending the day before start_date.

    Both ranges are inclusive: 2024-03-01..2024-03-31 (31 days) compares
    against 2024-01-30..2024-02-29.
    """
    if end_date < start_date:
        raise ValueError(f"end_date {end_date} is before start_date {start_date}")

    period_days = (end_date - start_date).days + 1
    previous_end = start_date - timedelta(days=1)
    previous_start = previous_end - timedelta(days=period_days - 1)
    return previous_start, previous_end


@dataclass(frozen=True)
class PeriodMetrics:
    clicks: int
    impressions: int
    ctr: float = 0.0
    position: float = 0.0


@dataclass(frozen=True)
class EntityComparison:
    """Current metrics for one entity plus, when available, the previous window's"""
    entity_id: str
    clicks: int
    impressions: int
    ctr: float
    position: float
    previous_clicks: Optional[int] = None
    previous_impressions: Optional[int] = None

    @property
    def has_comparison(self) -> bool:
        return self.previous_clicks is not None

    @property
    def clicks_change(self) -> Optional[int]:
        if self.previous_clicks is None:
            return None
        return self.clicks - self.previous_clicks

    @property
    def impressions_change(self) -> Optional[int]:
        if self.previous_impressions is None:
            return None
        return self.impressions - self.previous_impressions

    @property
    def needs_attention(self) -> bool:
        return needs_attention(self.clicks_change, self.previous_clicks)

    def comparison_fields(self) -> Dict:
        """Previous-window fields; empty when there is nothing to compare"""
        if not self.has_comparison:
            return {}
        return {
            "previous_clicks": self.previous_clicks,
            "previous_impressions": self.previous_impressions,
            "clicks_change": self.clicks_change,
            "impressions_change": self.impressions_change,
        }


def needs_attention(clicks_change: Optional[int], previous_clicks: Optional[int]) -> bool:
    """More than a 20% click decline from a base of at least 10 clicks"""
    if not clicks_change or not previous_clicks:
        return False
    return (
        clicks_change < 0
        and previous_clicks >= MIN_PREVIOUS_CLICKS
        and abs(clicks_change) / previous_clicks > MAX_RELATIVE_DECLINE
    )


def metrics_by_slug(rows: Iterable[MetricRow]) -> Dict[str, PeriodMetrics]:
    """
    Index page-dimension rows by blog slug.

    Non-blog URLs are skipped. When several URLs resolve to the same slug
    the first row wins (Search Console returns rows by clicks descending).
    """
    metrics: Dict[str, PeriodMetrics] = {}
    for row in rows:
        slug = extract_blog_slug(row.key(0))
        if not slug or slug in metrics:
            continue
        metrics[slug] = PeriodMetrics(
            clicks=row.clicks,
            impressions=row.impressions,
            ctr=row.ctr,
            position=row.position,
        )
    return metrics


def compare_periods(
    current: Dict[str, PeriodMetrics],
    previous: Optional[Dict[str, PeriodMetrics]] = None,
) -> Dict[str, EntityComparison]:
    """
    Diff current against previous metrics.

    Only entities in the current map are returned. Entities missing from
    the previous map carry no comparison rather than a zero baseline.
    """
    previous = previous or {}
    comparisons = {}
    for entity_id, metrics in current.items():
        before = previous.get(entity_id)
        comparisons[entity_id] = EntityComparison(
            entity_id=entity_id,
            clicks=metrics.clicks,
            impressions=metrics.impressions,
            ctr=metrics.ctr,
            position=metrics.position,
            previous_clicks=before.clicks if before else None,
            previous_impressions=before.impressions if before else None,
        )
    return comparisons


def declining_entities(comparisons: Iterable[EntityComparison], limit: int = 5) -> List[EntityComparison]:
    """Flagged entities, most-declined first"""
    flagged = [c for c in comparisons if c.needs_attention]
    flagged.sort(key=lambda c: (c.clicks_change, c.entity_id))
    return flagged[:limit]
