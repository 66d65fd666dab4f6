"""
AI Recommendation Cache Models

A header row per user records when the current recommendation set was
generated and when it goes stale. An empty set is still a header row, so
"no recommendations" is cached like any other result.
"""
from sqlalchemy import Column, Integer, String, DateTime, Text, JSON, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime

from app.models.base import Base


class RecommendationCacheEntry(Base):
    """Current recommendation set for a user"""
    __tablename__ = "recommendation_cache_entries"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, unique=True, index=True, nullable=False)

    # Incremented on every replacement
    generation = Column(Integer, default=1, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    expires_at = Column(DateTime, index=True, nullable=False)

    recommendations = relationship(
        "AIRecommendation",
        back_populates="entry",
        order_by="AIRecommendation.position",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<RecommendationCacheEntry user={self.user_id} gen={self.generation} expires={self.expires_at}>"


class AIRecommendation(Base):
    """One generated content recommendation"""
    __tablename__ = "ai_recommendations"

    id = Column(String(36), primary_key=True)
    entry_id = Column(Integer, ForeignKey("recommendation_cache_entries.id", ondelete="CASCADE"), index=True, nullable=False)
    user_id = Column(String, index=True, nullable=False)
    position = Column(Integer, default=0, nullable=False)

    type = Column(String, nullable=False)
    # Types: new_post, optimize, quick_win, long_tail
    title = Column(String, nullable=False)
    target_keyword = Column(String, nullable=False)
    suggested_title = Column(String, nullable=True)
    explanation = Column(Text, nullable=False)
    estimated_opportunity = Column(Integer, default=0)
    # Impressions
    confidence = Column(String, nullable=False)
    priority = Column(String, nullable=False)
    related_queries = Column(JSON, nullable=True)
    existing_post_id = Column(String, nullable=True)

    entry = relationship("RecommendationCacheEntry", back_populates="recommendations")

    def __repr__(self):
        return f"<AIRecommendation {self.type} '{self.target_keyword}'>"
