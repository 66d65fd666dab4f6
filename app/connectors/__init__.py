"""External provider connectors"""

from app.connectors.google_oauth import GoogleOAuthClient, TokenGrant
from app.connectors.search_console import SearchConsoleClient, SearchAnalyticsQuery, MetricRow

__all__ = [
    "GoogleOAuthClient",
    "TokenGrant",
    "SearchConsoleClient",
    "SearchAnalyticsQuery",
    "MetricRow",
]
