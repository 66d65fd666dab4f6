"""
Recommendation Cache

Database-backed, per-user store of AI recommendations with a time-to-live.
Writes replace the user's previous set inside one transaction.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import get_settings
from app.models.recommendation_cache import AIRecommendation, RecommendationCacheEntry
from app.services.recommendation_generator import Recommendation
from app.utils.logger import log

settings = get_settings()


@dataclass
class CachedRecommendations:
    recommendations: List[Recommendation]
    cached_at: datetime
    expires_at: datetime
    generation: int = 1


def _to_row(rec: Recommendation, user_id: str, position: int) -> AIRecommendation:
    return AIRecommendation(
        id=rec.id,
        user_id=user_id,
        position=position,
        type=rec.type,
        title=rec.title,
        target_keyword=rec.target_keyword,
        suggested_title=rec.suggested_title,
        explanation=rec.explanation,
        estimated_opportunity=rec.estimated_opportunity,
        confidence=rec.confidence,
        priority=rec.priority,
        related_queries=list(rec.related_queries),
        existing_post_id=rec.existing_post_id,
    )


def _from_row(row: AIRecommendation) -> Recommendation:
    return Recommendation(
        id=row.id,
        type=row.type,
        title=row.title,
        target_keyword=row.target_keyword,
        suggested_title=row.suggested_title,
        explanation=row.explanation,
        estimated_opportunity=row.estimated_opportunity or 0,
        confidence=row.confidence,
        priority=row.priority,
        related_queries=row.related_queries or [],
        existing_post_id=row.existing_post_id,
    )


class RecommendationCache:
    """TTL cache of AI recommendations, one live set per user"""

    def __init__(
        self,
        db: Session,
        ttl: Optional[timedelta] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.db = db
        self.ttl = ttl or timedelta(days=settings.recommendation_ttl_days)
        self.clock = clock

    def get(self, user_id: str) -> Optional[CachedRecommendations]:
        """
        Live recommendations for the user, or None on a miss.

        Expired entries are never returned but are left in place until the
        next put overwrites them. An empty list is a hit.
        """
        entry = (
            self.db.query(RecommendationCacheEntry)
            .filter(
                RecommendationCacheEntry.user_id == user_id,
                RecommendationCacheEntry.expires_at > self.clock(),
            )
            .first()
        )
        if entry is None:
            log.debug(f"Recommendation cache miss for user {user_id}")
            return None

        log.debug(f"Recommendation cache hit for user {user_id} (generation {entry.generation})")
        return CachedRecommendations(
            recommendations=[_from_row(r) for r in entry.recommendations],
            cached_at=entry.created_at,
            expires_at=entry.expires_at,
            generation=entry.generation,
        )

    def put(self, user_id: str, recommendations: List[Recommendation]) -> CachedRecommendations:
        """
        Replace the user's cached set, committing once.

        On failure the transaction rolls back and the previous set stays
        visible.
        """
        try:
            return self._replace(user_id, recommendations)
        except IntegrityError:
            # A concurrent first write for this user won the insert
            log.warning(f"Concurrent recommendation cache write for user {user_id}, retrying as update")
            return self._replace(user_id, recommendations)

    def _replace(self, user_id: str, recommendations: List[Recommendation]) -> CachedRecommendations:
        now = self.clock()
        expires_at = now + self.ttl

        try:
            entry = (
                self.db.query(RecommendationCacheEntry)
                .filter(RecommendationCacheEntry.user_id == user_id)
                .first()
            )
            if entry is None:
                entry = RecommendationCacheEntry(user_id=user_id, generation=1)
                self.db.add(entry)
            else:
                entry.generation = (entry.generation or 0) + 1

            entry.created_at = now
            entry.expires_at = expires_at
            # delete-orphan cascade removes the previous rows in the same flush
            entry.recommendations = [
                _to_row(rec, user_id, i) for i, rec in enumerate(recommendations)
            ]
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            if not isinstance(e, IntegrityError):
                log.error(f"Failed to cache recommendations for user {user_id}: {str(e)}")
            raise

        log.info(
            f"Cached {len(recommendations)} recommendations for user {user_id} "
            f"(generation {entry.generation}, expires {expires_at.isoformat()})"
        )
        return CachedRecommendations(
            recommendations=list(recommendations),
            cached_at=now,
            expires_at=expires_at,
            generation=entry.generation,
        )

    def invalidate(self, user_id: str) -> bool:
        """Drop the user's cached set. Returns True if one existed."""
        entry = (
            self.db.query(RecommendationCacheEntry)
            .filter(RecommendationCacheEntry.user_id == user_id)
            .first()
        )
        if entry is None:
            return False

        self.db.delete(entry)
        self.db.commit()
        log.info(f"Invalidated recommendation cache for user {user_id}")
        return True
