"""Database models for the content opportunity engine"""

from app.models.google_token import GoogleToken

from app.models.recommendation_cache import (
    RecommendationCacheEntry,
    AIRecommendation
)

from app.models.blog_post import BlogPost

__all__ = [
    "GoogleToken",
    "RecommendationCacheEntry",
    "AIRecommendation",
    "BlogPost",
]
