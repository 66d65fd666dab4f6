"""
SEO Opportunity API Endpoints

Google Search Console connection, raw analytics, scored search
opportunities, AI content suggestions and blog performance.
Answers: "What should I write next, and what is slipping?"
"""
import asyncio
import secrets
from datetime import date, datetime
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse

from app.api.deps import get_current_user_id, get_oauth_client, get_seo_service, get_token_store
from app.config import get_settings
from app.connectors.google_oauth import GoogleOAuthClient
from app.connectors.search_console import SearchAnalyticsQuery
from app.errors import NotConnected, OAuthConfigurationError, ProviderError
from app.services.opportunity_scorer import OpportunityThresholds
from app.services.recommendation_generator import RECOMMENDATION_TYPES
from app.services.seo_opportunity_service import SEOOpportunityService
from app.services.token_store import TokenStore
from app.utils.logger import log

router = APIRouter(prefix="/seo", tags=["seo"])

STATE_COOKIE = "gsc_oauth_state"


def _redirect_uri() -> str:
    return f"{get_settings().app_base_url.rstrip('/')}/seo/callback"


def _dashboard_redirect(**params) -> RedirectResponse:
    settings = get_settings()
    url = f"{settings.app_base_url.rstrip('/')}{settings.dashboard_path}?{urlencode(params)}"
    response = RedirectResponse(url=url, status_code=302)
    response.delete_cookie(STATE_COOKIE, path="/")
    return response


def _error_response(e: Exception, context: str) -> JSONResponse:
    """Map engine failures to HTTP responses"""
    if isinstance(e, NotConnected):
        return JSONResponse(
            status_code=403,
            content={"error": "Google Search Console not connected", "connected": False},
        )
    if isinstance(e, ProviderError):
        log.error(f"{context}: {str(e)}")
        return JSONResponse(status_code=502, content={"error": str(e)})
    if isinstance(e, asyncio.TimeoutError):
        log.error(f"{context}: timed out")
        return JSONResponse(status_code=504, content={"error": "Upstream request timed out"})
    if isinstance(e, ValueError):
        return JSONResponse(status_code=400, content={"error": str(e)})

    log.error(f"{context}: {str(e)}")
    raise HTTPException(status_code=500, detail=str(e))


# ── Connection ───────────────────────────────────────────

@router.get("/connect")
async def connect(
    user_id: str = Depends(get_current_user_id),
    oauth_client: GoogleOAuthClient = Depends(get_oauth_client),
):
    """Redirect to Google's consent screen for read-only Search Console access"""
    state = secrets.token_urlsafe(24)
    try:
        auth_url = oauth_client.build_auth_url(_redirect_uri(), state)
    except OAuthConfigurationError as e:
        log.error(f"Cannot start Search Console connect for user {user_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))

    response = RedirectResponse(url=auth_url, status_code=302)
    response.set_cookie(
        key=STATE_COOKIE,
        value=state,
        httponly=True,
        secure=get_settings().environment != "development",
        samesite="lax",
        max_age=600,
        path="/",
    )
    return response


@router.get("/callback")
async def oauth_callback(
    request: Request,
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    error_description: Optional[str] = Query(None),
    user_id: str = Depends(get_current_user_id),
    token_store: TokenStore = Depends(get_token_store),
):
    """Exchange the authorization code, store tokens and return to the dashboard"""
    if error:
        return _dashboard_redirect(error=error_description or error)
    if not code:
        return _dashboard_redirect(error="No authorization code received")

    expected_state = request.cookies.get(STATE_COOKIE)
    if expected_state and expected_state != state:
        log.warning(f"OAuth state mismatch for user {user_id}")
        return _dashboard_redirect(error="Invalid OAuth state")

    try:
        await token_store.complete_authorization(user_id, code, _redirect_uri())
    except Exception as e:
        log.error(f"Search Console connect failed for user {user_id}: {str(e)}")
        return _dashboard_redirect(error=str(e))

    return _dashboard_redirect(connected="true")


@router.get("/status")
async def connection_status(
    user_id: str = Depends(get_current_user_id),
    service: SEOOpportunityService = Depends(get_seo_service),
):
    """Whether the user has connected Google Search Console"""
    return {"connected": service.is_connected(user_id)}


@router.delete("/connection")
async def disconnect(
    user_id: str = Depends(get_current_user_id),
    service: SEOOpportunityService = Depends(get_seo_service),
):
    """Remove the stored Google grant"""
    service.disconnect(user_id)
    return {"success": True, "message": "Google Search Console disconnected"}


@router.get("/sites")
async def list_sites(
    user_id: str = Depends(get_current_user_id),
    service: SEOOpportunityService = Depends(get_seo_service),
):
    """Search Console properties the user can read"""
    try:
        return {"sites": await service.list_sites(user_id)}
    except Exception as e:
        return _error_response(e, "Error listing Search Console sites")


# ── Analytics ────────────────────────────────────────────

@router.get("/analytics")
async def get_analytics(
    site_url: str = Query(..., description="Search Console property, e.g. sc-domain:example.com"),
    start_date: Optional[date] = Query(None, description="YYYY-MM-DD, default 30 days ago"),
    end_date: Optional[date] = Query(None, description="YYYY-MM-DD, default today"),
    dimensions: str = Query("query", description="Comma-separated, at most 2"),
    row_limit: int = Query(25, description="Rows to return (capped at 1000)"),
    start_row: int = Query(0, description="Pagination offset"),
    user_id: str = Depends(get_current_user_id),
    service: SEOOpportunityService = Depends(get_seo_service),
):
    """Raw Search Analytics rows with aggregated totals"""
    default_start, default_end = service.default_range(get_settings().performance_lookback_days)
    request = SearchAnalyticsQuery(
        start_date=start_date or default_start,
        end_date=end_date or default_end,
        dimensions=[d.strip() for d in dimensions.split(",") if d.strip()],
        row_limit=row_limit,
        start_row=start_row,
    )
    try:
        return await service.get_analytics(user_id, site_url, request)
    except Exception as e:
        return _error_response(e, "Error fetching Search Console analytics")


@router.get("/opportunities")
async def get_opportunities(
    site_url: Optional[str] = Query(None, description="Defaults to the configured property"),
    start_date: Optional[date] = Query(None, description="YYYY-MM-DD, default 90 days ago"),
    end_date: Optional[date] = Query(None, description="YYYY-MM-DD, default today"),
    min_impressions: Optional[int] = Query(None, ge=0),
    max_ctr: Optional[float] = Query(None, ge=0, le=1),
    min_position: Optional[float] = Query(None, ge=0),
    user_id: str = Depends(get_current_user_id),
    service: SEOOpportunityService = Depends(get_seo_service),
):
    """
    Search opportunities

    Queries with enough impressions, weak CTR and room to climb, scored and
    categorized (color, how-to, product, general). Top 50 by score.
    """
    defaults = service.thresholds
    thresholds = OpportunityThresholds(
        min_impressions=defaults.min_impressions if min_impressions is None else min_impressions,
        max_ctr=defaults.max_ctr if max_ctr is None else max_ctr,
        min_position=defaults.min_position if min_position is None else min_position,
        limit=defaults.limit,
    )
    try:
        return await service.get_opportunities(
            user_id,
            site_url or get_settings().gsc_default_site_url,
            start_date=start_date,
            end_date=end_date,
            thresholds=thresholds,
        )
    except Exception as e:
        return _error_response(e, "Error computing SEO opportunities")


# ── AI content suggestions ───────────────────────────────

@router.get("/content-suggestions")
async def get_content_suggestions(
    refresh: bool = Query(False, description="Bypass the 7-day cache and regenerate"),
    site_url: Optional[str] = Query(None),
    user_id: str = Depends(get_current_user_id),
    service: SEOOpportunityService = Depends(get_seo_service),
):
    """
    AI content recommendations

    Served from cache for 7 days; ?refresh=true regenerates immediately.
    """
    try:
        return await service.get_content_suggestions(
            user_id,
            site_url or get_settings().gsc_default_site_url,
            force_refresh=refresh,
        )
    except NotConnected as e:
        return _error_response(e, "Error generating content suggestions")
    except Exception as e:
        log.error(f"Content suggestions error for user {user_id}: {str(e)}")
        now = datetime.utcnow().isoformat()
        return JSONResponse(
            status_code=500,
            content={
                "recommendations": [],
                "summary": {
                    "total_recommendations": 0,
                    "by_type": {t: 0 for t in RECOMMENDATION_TYPES},
                    "top_priority": None,
                },
                "cached_at": now,
                "expires_at": now,
                "error": "Content suggestions are temporarily unavailable",
            },
        )


# ── Blog performance ─────────────────────────────────────

@router.get("/blog-performance")
async def get_blog_performance(
    site_url: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None, description="YYYY-MM-DD, default 30 days ago"),
    end_date: Optional[date] = Query(None, description="YYYY-MM-DD, default today"),
    compare_with_previous: bool = Query(False, description="Diff against the preceding equal-length period"),
    user_id: str = Depends(get_current_user_id),
    service: SEOOpportunityService = Depends(get_seo_service),
):
    """
    Blog post search performance

    Per-post clicks/impressions, top performers, and posts whose clicks
    fell more than 20% against the previous period.
    """
    try:
        return await service.get_blog_performance(
            user_id,
            site_url or get_settings().gsc_default_site_url,
            start_date=start_date,
            end_date=end_date,
            compare_with_previous=compare_with_previous,
        )
    except Exception as e:
        return _error_response(e, "Error building blog performance")


@router.get("/overview")
async def get_overview(
    site_url: Optional[str] = Query(None),
    user_id: str = Depends(get_current_user_id),
    service: SEOOpportunityService = Depends(get_seo_service),
):
    """Opportunities and content suggestions in one call"""
    try:
        return await service.get_overview(user_id, site_url or get_settings().gsc_default_site_url)
    except Exception as e:
        return _error_response(e, "Error building SEO overview")
