"""
SEO Opportunity Service

Request-scoped orchestration of the search opportunity pipeline:
token -> Search Console -> scoring -> cached or freshly generated
recommendations, plus the blog performance comparison dashboard.

Every outbound call is bounded by the configured request timeout.
"""
import asyncio
from datetime import date, datetime, timedelta
from typing import Callable, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from app.config import get_settings
from app.connectors.search_console import MetricRow, SearchAnalyticsQuery, SearchConsoleClient
from app.errors import NotConnected
from app.models.blog_post import BlogPost
from app.services.opportunity_scorer import (
    OpportunityThresholds,
    ScoringParameters,
    find_opportunities,
    score_rows,
    sort_by_score,
    summarize_opportunities,
)
from app.services.period_comparator import (
    PeriodMetrics,
    compare_periods,
    declining_entities,
    metrics_by_slug,
    previous_period,
)
from app.services.recommendation_cache import CachedRecommendations, RecommendationCache
from app.services.recommendation_generator import RECOMMENDATION_TYPES, Recommendation, RecommendationGenerator
from app.services.token_store import TokenStore
from app.utils.logger import log

settings = get_settings()


def summarize_recommendations(recommendations: List[Recommendation]) -> Dict:
    by_type = {t: 0 for t in RECOMMENDATION_TYPES}
    for rec in recommendations:
        by_type[rec.type] += 1

    top_priority = next((r for r in recommendations if r.priority == "high"), None)
    return {
        "total_recommendations": len(recommendations),
        "by_type": by_type,
        "top_priority": top_priority.to_dict() if top_priority else None,
    }


def aggregate_rows(rows: Sequence[MetricRow]) -> Dict:
    """Totals and simple averages across returned rows"""
    if not rows:
        return {"total_clicks": 0, "total_impressions": 0, "average_ctr": 0, "average_position": 0}
    return {
        "total_clicks": sum(r.clicks for r in rows),
        "total_impressions": sum(r.impressions for r in rows),
        "average_ctr": sum(r.ctr for r in rows) / len(rows),
        "average_position": sum(r.position for r in rows) / len(rows),
    }


class SEOOpportunityService:
    """Search opportunities, AI content suggestions and blog performance for one user"""

    def __init__(
        self,
        db: Session,
        token_store: TokenStore,
        analytics: SearchConsoleClient,
        generator: RecommendationGenerator,
        cache: RecommendationCache,
        thresholds: Optional[OpportunityThresholds] = None,
        params: Optional[ScoringParameters] = None,
        timeout: Optional[float] = None,
        today: Callable[[], date] = lambda: datetime.utcnow().date(),
    ):
        self.db = db
        self.token_store = token_store
        self.analytics = analytics
        self.generator = generator
        self.cache = cache
        self.thresholds = thresholds or OpportunityThresholds.from_settings()
        self.params = params or ScoringParameters.from_settings()
        self.timeout = timeout or settings.request_timeout_seconds
        self.today = today

    async def _bounded(self, coro):
        return await asyncio.wait_for(coro, timeout=self.timeout)

    def default_range(self, days: int) -> tuple:
        end = self.today()
        return end - timedelta(days=days), end

    async def _access_token(self, user_id: str) -> str:
        # Refresh completes and is committed before any analytics call
        return await self._bounded(self.token_store.get_valid_access_token(user_id))

    async def _query(self, access_token: str, site_url: str, request: SearchAnalyticsQuery) -> List[MetricRow]:
        return await self._bounded(self.analytics.query(access_token, site_url, request))

    # ── Connection ───────────────────────────────────────────

    def is_connected(self, user_id: str) -> bool:
        return self.token_store.is_connected(user_id)

    def disconnect(self, user_id: str) -> bool:
        return self.token_store.disconnect(user_id)

    async def list_sites(self, user_id: str) -> List[Dict]:
        token = await self._access_token(user_id)
        return await self._bounded(self.analytics.list_sites(token))

    # ── Raw analytics ────────────────────────────────────────

    async def get_analytics(self, user_id: str, site_url: str, request: SearchAnalyticsQuery) -> Dict:
        token = await self._access_token(user_id)
        rows = await self._query(token, site_url, request)
        return {
            "site_url": site_url,
            "date_range": {"start_date": str(request.start_date), "end_date": str(request.end_date)},
            "aggregated": aggregate_rows(rows),
            "rows": [
                {
                    "keys": list(r.dimension_keys),
                    "clicks": r.clicks,
                    "impressions": r.impressions,
                    "ctr": r.ctr,
                    "position": r.position,
                }
                for r in rows
            ],
            "total_rows": len(rows),
        }

    # ── Opportunities ────────────────────────────────────────

    async def get_opportunities(
        self,
        user_id: str,
        site_url: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        thresholds: Optional[OpportunityThresholds] = None,
    ) -> Dict:
        """Thresholded, ranked opportunities for the date range (default last 90 days)"""
        if start_date is None or end_date is None:
            default_start, default_end = self.default_range(settings.opportunity_lookback_days)
            start_date = start_date or default_start
            end_date = end_date or default_end

        token = await self._access_token(user_id)
        rows = await self._query(token, site_url, SearchAnalyticsQuery(
            start_date=start_date,
            end_date=end_date,
            dimensions=["query"],
            row_limit=settings.gsc_max_row_limit,
        ))

        opportunities = find_opportunities(rows, thresholds or self.thresholds, self.params)
        return {
            "opportunities": [o.to_dict() for o in opportunities],
            "summary": summarize_opportunities(opportunities),
            "date_range": {"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
        }

    # ── AI content suggestions ───────────────────────────────

    def _existing_titles(self, user_id: str) -> List[str]:
        rows = self.db.query(BlogPost.title).filter(BlogPost.user_id == user_id).all()
        return [r.title for r in rows if r.title]

    async def _generate_recommendations(self, user_id: str, site_url: str) -> CachedRecommendations:
        start_date, end_date = self.default_range(settings.opportunity_lookback_days)
        token = await self._access_token(user_id)
        rows = await self._query(token, site_url, SearchAnalyticsQuery(
            start_date=start_date,
            end_date=end_date,
            dimensions=["query"],
            row_limit=settings.gsc_max_row_limit,
        ))

        # Only queries with room to improve are worth a prompt slot
        candidates = sort_by_score(o for o in score_rows(rows, self.params) if o.estimated_potential > 0)
        existing_titles = self._existing_titles(user_id)

        try:
            recommendations = await self._bounded(self.generator.generate(candidates, existing_titles))
        except asyncio.TimeoutError:
            log.error(f"Recommendation generation timed out for user {user_id}, caching empty set")
            recommendations = []

        # Empty results are cached too, so a failing model isn't re-called on every load
        return self.cache.put(user_id, recommendations)

    async def get_content_suggestions(self, user_id: str, site_url: str, force_refresh: bool = False) -> Dict:
        """
        Cached recommendations, or a freshly generated set on a miss or
        when force_refresh is set. The cache write completes before return.
        """
        result = None if force_refresh else self.cache.get(user_id)
        from_cache = result is not None

        if result is None:
            log.info(f"Generating content suggestions for user {user_id} (force_refresh={force_refresh})")
            result = await self._generate_recommendations(user_id, site_url)

        return {
            "recommendations": [r.to_dict() for r in result.recommendations],
            "summary": summarize_recommendations(result.recommendations),
            "cached_at": result.cached_at.isoformat(),
            "expires_at": result.expires_at.isoformat(),
            "from_cache": from_cache,
        }

    # ── Blog performance ─────────────────────────────────────

    def _published_posts(self, user_id: str) -> List[BlogPost]:
        return (
            self.db.query(BlogPost)
            .filter(
                BlogPost.user_id == user_id,
                BlogPost.status == "published",
                BlogPost.slug.isnot(None),
                BlogPost.published_at.isnot(None),
            )
            .all()
        )

    async def get_blog_performance(
        self,
        user_id: str,
        site_url: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        compare_with_previous: bool = False,
    ) -> Dict:
        """Per-post Search Console metrics with an optional previous-period diff"""
        if start_date is None or end_date is None:
            default_start, default_end = self.default_range(settings.performance_lookback_days)
            start_date = start_date or default_start
            end_date = end_date or default_end

        prior = previous_period(start_date, end_date) if compare_with_previous else None
        token = await self._access_token(user_id)

        def page_query(start: date, end: date) -> SearchAnalyticsQuery:
            return SearchAnalyticsQuery(
                start_date=start,
                end_date=end,
                dimensions=["page"],
                row_limit=settings.gsc_max_row_limit,
            )

        # Both windows are required, so either failure fails the request
        fetches = [self._query(token, site_url, page_query(start_date, end_date))]
        if prior:
            fetches.append(self._query(token, site_url, page_query(*prior)))
        results = await asyncio.gather(*fetches)

        current_metrics = metrics_by_slug(results[0])
        previous_metrics = metrics_by_slug(results[1]) if prior else None

        posts = self._published_posts(user_id)
        empty = PeriodMetrics(clicks=0, impressions=0)
        comparisons = compare_periods(
            {p.slug: current_metrics.get(p.slug, empty) for p in posts},
            previous_metrics,
        )

        post_rows = []
        for post in posts:
            comparison = comparisons[post.slug]
            row = {
                "id": post.id,
                "title": post.title,
                "slug": post.slug,
                "status": post.status,
                "published_at": post.published_at.isoformat() if post.published_at else None,
                "url": f"{settings.blog_base_url.rstrip('/')}/{post.slug}",
                "clicks": comparison.clicks,
                "impressions": comparison.impressions,
                "ctr": comparison.ctr,
                "position": comparison.position,
            }
            row.update(comparison.comparison_fields())
            post_rows.append(row)
        post_rows.sort(key=lambda r: -r["clicks"])

        by_slug = {r["slug"]: r for r in post_rows}
        needs_attention = [by_slug[c.entity_id] for c in declining_entities(comparisons.values())]

        date_range = {"start_date": start_date.isoformat(), "end_date": end_date.isoformat()}
        if prior:
            date_range["previous_start_date"] = prior[0].isoformat()
            date_range["previous_end_date"] = prior[1].isoformat()

        return {
            "posts": post_rows,
            "top_performers": post_rows[:3],
            "needs_attention": needs_attention,
            "totals": self._blog_totals(post_rows),
            "date_range": date_range,
        }

    @staticmethod
    def _blog_totals(post_rows: List[Dict]) -> Dict:
        totals = {
            "clicks": sum(r["clicks"] for r in post_rows),
            "impressions": sum(r["impressions"] for r in post_rows),
            "average_ctr": 0,
            "average_position": 0,
        }

        with_clicks = [r for r in post_rows if r["clicks"] > 0]
        if with_clicks:
            totals["average_ctr"] = sum(r["ctr"] for r in with_clicks) / len(with_clicks)
            totals["average_position"] = sum(r["position"] for r in with_clicks) / len(with_clicks)

        compared = [r for r in post_rows if "previous_clicks" in r]
        if compared:
            previous_clicks = sum(r["previous_clicks"] for r in compared)
            previous_impressions = sum(r["previous_impressions"] for r in compared)
            totals["previous_clicks"] = previous_clicks
            totals["previous_impressions"] = previous_impressions
            if previous_clicks > 0:
                totals["clicks_change"] = totals["clicks"] - previous_clicks
            if previous_impressions > 0:
                totals["impressions_change"] = totals["impressions"] - previous_impressions
        return totals

    # ── Overview ─────────────────────────────────────────────

    async def get_overview(self, user_id: str, site_url: str) -> Dict:
        """
        Opportunities and content suggestions fetched concurrently.

        A failing section is reported in place; the request only fails when
        every section failed because the account isn't connected.
        """
        sections = {
            "opportunities": self.get_opportunities(user_id, site_url),
            "content_suggestions": self.get_content_suggestions(user_id, site_url),
        }
        results = await asyncio.gather(*sections.values(), return_exceptions=True)

        overview = {}
        failures = []
        for name, result in zip(sections, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, Exception):
                failures.append(result)
                log.error(f"SEO overview section '{name}' failed for user {user_id}: {str(result)}")
                overview[name] = {
                    "error": str(result) if not isinstance(result, asyncio.TimeoutError) else "Timed out",
                    "connected": not isinstance(result, NotConnected),
                }
            else:
                overview[name] = result

        if failures and len(failures) == len(sections) and all(isinstance(f, NotConnected) for f in failures):
            raise failures[0]
        return overview
