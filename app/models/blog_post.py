"""
Blog post records

Owned by the blog editor; the engine only reads titles (for gap detection)
and slugs (for matching Search Console page URLs).
"""
from sqlalchemy import Column, String, DateTime
from datetime import datetime

from app.models.base import Base


class BlogPost(Base):
    __tablename__ = "blog_posts"

    id = Column(String, primary_key=True)
    user_id = Column(String, index=True, nullable=True)
    title = Column(String, nullable=False)
    slug = Column(String, unique=True, nullable=True)
    status = Column(String, default="draft")
    # draft, review, published
    published_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
