"""FastAPI dependencies: current user and engine service wiring."""
from functools import lru_cache

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.connectors.google_oauth import GoogleOAuthClient
from app.connectors.search_console import SearchConsoleClient
from app.models.base import get_db
from app.services.llm_service import LLMService
from app.services.recommendation_cache import RecommendationCache
from app.services.recommendation_generator import RecommendationGenerator
from app.services.seo_opportunity_service import SEOOpportunityService
from app.services.token_store import TokenStore


def get_current_user_id(request: Request) -> str:
    """Dependency: raise 401 if no authenticated user on request."""
    user_id = getattr(request.state, "user_id", None)
    if not user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user_id


@lru_cache()
def get_llm_service() -> LLMService:
    """One LLM client per process, built from settings"""
    return LLMService()


def get_oauth_client() -> GoogleOAuthClient:
    return GoogleOAuthClient()


def get_token_store(
    db: Session = Depends(get_db),
    oauth_client: GoogleOAuthClient = Depends(get_oauth_client),
) -> TokenStore:
    return TokenStore(db, oauth_client)


def get_seo_service(
    db: Session = Depends(get_db),
    token_store: TokenStore = Depends(get_token_store),
    llm: LLMService = Depends(get_llm_service),
) -> SEOOpportunityService:
    return SEOOpportunityService(
        db=db,
        token_store=token_store,
        analytics=SearchConsoleClient(),
        generator=RecommendationGenerator(llm),
        cache=RecommendationCache(db),
    )
