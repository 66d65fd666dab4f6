"""
URL parsing utilities for matching Search Console pages to blog posts.
"""
from urllib.parse import urlparse, unquote
from typing import Optional

BLOG_PATH_PREFIX = ("blogs", "news")


def extract_blog_slug(url: Optional[str]) -> Optional[str]:
    """
    Extract the article slug from a storefront blog URL.

    Matches URLs like https://shop.example/blogs/news/<slug> and returns
    None for anything else (collections, products, other blogs).
    """
    if not url:
        return None

    try:
        parsed = urlparse(url)
    except ValueError:
        return None

    if not parsed.scheme or not parsed.netloc:
        return None

    parts = [p for p in parsed.path.split("/") if p]
    if len(parts) >= 3 and tuple(parts[:2]) == BLOG_PATH_PREFIX:
        return unquote(parts[2])
    return None
