"""
Google OAuth token storage

One row per user. Written on the initial grant and on every refresh.
"""
from sqlalchemy import Column, Integer, String, DateTime, Text
from datetime import datetime

from app.models.base import Base


class GoogleToken(Base):
    """Search Console access/refresh token pair for a user"""
    __tablename__ = "google_tokens"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, unique=True, index=True, nullable=False)

    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    scope = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<GoogleToken user={self.user_id} expires_at={self.expires_at}>"
