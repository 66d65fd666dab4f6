"""
SEO opportunity service orchestration tests.

Guards against:
1. The model being re-called while a cached set (even an empty one) is live
2. force_refresh serving stale cached recommendations
3. Blog posts without Search Console data dropping out of the dashboard
4. Previous-period diffs computed against the wrong window
5. Not-connected users getting partial data instead of a connect prompt
"""
import asyncio
from datetime import date, datetime, timedelta

import pytest

from app.errors import NotConnected, ProviderError
from app.models.blog_post import BlogPost
from app.services.recommendation_cache import RecommendationCache
from app.services.recommendation_generator import Recommendation
from app.services.seo_opportunity_service import SEOOpportunityService, aggregate_rows, summarize_recommendations
from tests.conftest import make_row
from tests.fakes import FakeAnalytics, FakeGenerator, FakeTokenStore

BLOG = "https://herbariumdyeworks.com/blogs/news"


def _rec(keyword, priority="medium"):
    return Recommendation(
        type="new_post",
        title=f"Write about {keyword}",
        target_keyword=keyword,
        confidence="medium",
        priority=priority,
    )


def _service(db, clock, token_store=None, analytics=None, generator=None, today=date(2024, 3, 31), timeout=None):
    return SEOOpportunityService(
        db=db,
        token_store=token_store or FakeTokenStore(),
        analytics=analytics or FakeAnalytics(),
        generator=generator or FakeGenerator(),
        cache=RecommendationCache(db, clock=clock),
        today=lambda: today,
        timeout=timeout,
    )


def _post(db, slug, title, status="published", user_id="user-1"):
    db.add(BlogPost(
        id=slug,
        user_id=user_id,
        title=title,
        slug=slug,
        status=status,
        published_at=datetime(2024, 1, 5) if status == "published" else None,
    ))
    db.commit()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def test_summarize_recommendations():
    summary = summarize_recommendations([_rec("a"), _rec("b", priority="high"), _rec("c", priority="high")])

    assert summary["total_recommendations"] == 3
    assert summary["by_type"]["new_post"] == 3
    assert summary["top_priority"]["target_keyword"] == "b"


def test_aggregate_rows():
    totals = aggregate_rows([make_row("a", 100, 10, 0.1, 4), make_row("b", 300, 20, 0.3, 8)])
    assert totals["total_clicks"] == 30
    assert totals["total_impressions"] == 400
    assert totals["average_ctr"] == pytest.approx(0.2)
    assert totals["average_position"] == pytest.approx(6.0)


# ---------------------------------------------------------------------------
# Opportunities
# ---------------------------------------------------------------------------

def test_opportunities_default_to_ninety_day_window(db, clock):
    analytics = FakeAnalytics(default_rows=[make_row("hand dyed sock yarn", 500, 10, 0.02, 8)])
    result = asyncio.run(_service(db, clock, analytics=analytics).get_opportunities("user-1", "sc-domain:x"))

    request = analytics.requests[0]
    assert request.end_date == date(2024, 3, 31)
    assert request.start_date == date(2024, 3, 31) - timedelta(days=90)
    assert request.row_limit == 1000
    assert result["opportunities"][0]["estimated_potential"] == 140
    assert result["summary"]["top_category"] == "product"


def test_not_connected_propagates(db, clock):
    service = _service(db, clock, token_store=FakeTokenStore(connected=False))
    with pytest.raises(NotConnected):
        asyncio.run(service.get_opportunities("user-1", "sc-domain:x"))


# ---------------------------------------------------------------------------
# Content suggestions
# ---------------------------------------------------------------------------

class TestContentSuggestions:

    def test_miss_generates_and_caches(self, db, clock):
        _post(db, "indigo-basics", "Indigo Basics")
        _post(db, "someone-else", "Other Author Post", user_id="user-2")
        analytics = FakeAnalytics(default_rows=[
            make_row("indigo vat", 900, 20, 0.022, 7.4),
            make_row("herbarium", 50, 40, 0.8, 1.0),
        ])
        generator = FakeGenerator([_rec("indigo vat", priority="high")])
        service = _service(db, clock, analytics=analytics, generator=generator)

        result = asyncio.run(service.get_content_suggestions("user-1", "sc-domain:x"))

        assert result["from_cache"] is False
        assert [r["target_keyword"] for r in result["recommendations"]] == ["indigo vat"]
        assert result["summary"]["top_priority"]["target_keyword"] == "indigo vat"

        opportunities, titles = generator.calls[0]
        assert [o.query for o in opportunities] == ["indigo vat"]
        assert titles == ["Indigo Basics"]

    def test_hit_skips_generation(self, db, clock):
        generator = FakeGenerator([_rec("madder")])
        analytics = FakeAnalytics(default_rows=[make_row("madder", 900, 20, 0.022, 7.4)])
        service = _service(db, clock, analytics=analytics, generator=generator)

        asyncio.run(service.get_content_suggestions("user-1", "sc-domain:x"))
        second = asyncio.run(service.get_content_suggestions("user-1", "sc-domain:x"))

        assert second["from_cache"] is True
        assert len(generator.calls) == 1

    def test_empty_result_is_cached(self, db, clock):
        generator = FakeGenerator([])
        service = _service(db, clock, generator=generator)

        asyncio.run(service.get_content_suggestions("user-1", "sc-domain:x"))
        second = asyncio.run(service.get_content_suggestions("user-1", "sc-domain:x"))

        assert second["recommendations"] == []
        assert second["from_cache"] is True
        assert len(generator.calls) == 1

    def test_force_refresh_regenerates(self, db, clock):
        generator = FakeGenerator([_rec("weld")])
        service = _service(db, clock, generator=generator)

        asyncio.run(service.get_content_suggestions("user-1", "sc-domain:x"))
        refreshed = asyncio.run(service.get_content_suggestions("user-1", "sc-domain:x", force_refresh=True))

        assert refreshed["from_cache"] is False
        assert len(generator.calls) == 2

    def test_slow_model_caches_empty_set(self, db, clock):
        generator = FakeGenerator([_rec("weld")], delay=5)
        analytics = FakeAnalytics(default_rows=[make_row("weld yellow", 900, 20, 0.022, 7.4)])
        service = _service(db, clock, analytics=analytics, generator=generator, timeout=0.05)

        first = asyncio.run(service.get_content_suggestions("user-1", "sc-domain:x"))
        second = asyncio.run(service.get_content_suggestions("user-1", "sc-domain:x"))

        assert first["recommendations"] == []
        assert first["from_cache"] is False
        assert second["from_cache"] is True
        assert len(generator.calls) == 1


# ---------------------------------------------------------------------------
# Blog performance
# ---------------------------------------------------------------------------

class TestBlogPerformance:

    def _analytics(self):
        current = [
            make_row(f"{BLOG}/indigo-vat", 2000, 50, 0.025, 6.1),
            make_row(f"{BLOG}/madder-reds", 800, 12, 0.015, 9.0),
            make_row("https://herbariumdyeworks.com/products/sock-yarn", 5000, 300, 0.06, 3.0),
        ]
        previous = [
            make_row(f"{BLOG}/indigo-vat", 1900, 48, 0.025, 6.3),
            make_row(f"{BLOG}/madder-reds", 900, 40, 0.044, 7.5),
        ]
        return FakeAnalytics(rows_by_window={
            ("page", date(2024, 3, 1)): current,
            ("page", date(2024, 1, 30)): previous,
        })

    def _seed_posts(self, db):
        _post(db, "indigo-vat", "Building an Indigo Vat")
        _post(db, "madder-reds", "Madder Root Reds")
        _post(db, "weld-yellows", "Weld Yellows")
        _post(db, "draft-post", "Unpublished Draft", status="draft")

    def test_posts_without_data_report_zero(self, db, clock):
        self._seed_posts(db)
        service = _service(db, clock, analytics=self._analytics())

        result = asyncio.run(service.get_blog_performance(
            "user-1", "sc-domain:x", start_date=date(2024, 3, 1), end_date=date(2024, 3, 31),
        ))

        posts = {p["slug"]: p for p in result["posts"]}
        assert set(posts) == {"indigo-vat", "madder-reds", "weld-yellows"}
        assert posts["weld-yellows"]["clicks"] == 0
        assert "previous_clicks" not in posts["indigo-vat"]
        assert [p["slug"] for p in result["top_performers"]] == ["indigo-vat", "madder-reds", "weld-yellows"]
        assert result["totals"]["clicks"] == 62
        assert result["needs_attention"] == []

    def test_previous_period_comparison(self, db, clock):
        self._seed_posts(db)
        analytics = self._analytics()
        service = _service(db, clock, analytics=analytics)

        result = asyncio.run(service.get_blog_performance(
            "user-1", "sc-domain:x",
            start_date=date(2024, 3, 1), end_date=date(2024, 3, 31),
            compare_with_previous=True,
        ))

        windows = sorted((r.start_date, r.end_date) for r in analytics.requests)
        assert windows == [(date(2024, 1, 30), date(2024, 2, 29)), (date(2024, 3, 1), date(2024, 3, 31))]

        posts = {p["slug"]: p for p in result["posts"]}
        assert posts["madder-reds"]["clicks_change"] == -28
        assert posts["indigo-vat"]["clicks_change"] == 2
        assert "clicks_change" not in posts["weld-yellows"]
        assert [p["slug"] for p in result["needs_attention"]] == ["madder-reds"]
        assert result["date_range"]["previous_end_date"] == "2024-02-29"
        assert result["totals"]["previous_clicks"] == 88

    def test_only_the_users_posts_are_listed(self, db, clock):
        self._seed_posts(db)
        _post(db, "walnut-browns", "Walnut Browns", user_id="user-2")
        service = _service(db, clock, analytics=self._analytics())

        result = asyncio.run(service.get_blog_performance(
            "user-1", "sc-domain:x", start_date=date(2024, 3, 1), end_date=date(2024, 3, 31),
        ))

        assert "walnut-browns" not in {p["slug"] for p in result["posts"]}

    def test_inverted_range_rejected(self, db, clock):
        service = _service(db, clock)
        with pytest.raises(ValueError):
            asyncio.run(service.get_blog_performance(
                "user-1", "sc-domain:x",
                start_date=date(2024, 3, 31), end_date=date(2024, 3, 1),
                compare_with_previous=True,
            ))


# ---------------------------------------------------------------------------
# Overview
# ---------------------------------------------------------------------------

def test_overview_all_sections_not_connected(db, clock):
    service = _service(db, clock, token_store=FakeTokenStore(connected=False))
    with pytest.raises(NotConnected):
        asyncio.run(service.get_overview("user-1", "sc-domain:x"))


def test_overview_returns_both_sections(db, clock):
    analytics = FakeAnalytics(default_rows=[make_row("indigo yarn", 500, 10, 0.02, 8)])
    service = _service(db, clock, analytics=analytics, generator=FakeGenerator([_rec("indigo yarn")]))

    overview = asyncio.run(service.get_overview("user-1", "sc-domain:x"))

    assert overview["opportunities"]["summary"]["top_category"] == "color"
    assert overview["content_suggestions"]["summary"]["total_recommendations"] == 1


def test_overview_failed_section_does_not_abort_the_other(db, clock):
    analytics = FakeAnalytics(default_rows=[make_row("indigo yarn", 500, 10, 0.02, 8)])
    generator = FakeGenerator(error=ProviderError("Anthropic", 529, "overloaded"))
    service = _service(db, clock, analytics=analytics, generator=generator)

    overview = asyncio.run(service.get_overview("user-1", "sc-domain:x"))

    assert [o["query"] for o in overview["opportunities"]["opportunities"]] == ["indigo yarn"]
    assert "overloaded" in overview["content_suggestions"]["error"]
    assert overview["content_suggestions"]["connected"] is True


def test_overview_reports_timed_out_sections(db, clock):
    service = _service(db, clock, analytics=FakeAnalytics(delay=5), timeout=0.05)

    overview = asyncio.run(service.get_overview("user-1", "sc-domain:x"))

    assert overview["opportunities"] == {"error": "Timed out", "connected": True}
    assert overview["content_suggestions"] == {"error": "Timed out", "connected": True}
