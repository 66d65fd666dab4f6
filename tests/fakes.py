"""In-memory stand-ins for the token store, Google clients and generator."""
import asyncio

from app.connectors.google_oauth import TokenGrant
from app.errors import NotConnected


class FakeTokenStore:
    def __init__(self, connected=True):
        self.connected = connected

    async def get_valid_access_token(self, user_id):
        if not self.connected:
            raise NotConnected(user_id)
        return "access-token"

    def is_connected(self, user_id):
        return self.connected

    def disconnect(self, user_id):
        self.connected = False
        return True


class FakeAnalytics:
    """Returns rows keyed by (first dimension, start_date)"""

    def __init__(self, rows_by_window=None, default_rows=None, delay=0.0):
        self.rows_by_window = rows_by_window or {}
        self.default_rows = default_rows or []
        self.delay = delay
        self.requests = []

    async def query(self, access_token, site_url, request):
        request.to_body(1000)
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.rows_by_window.get((request.dimensions[0], request.start_date), self.default_rows)

    async def list_sites(self, access_token):
        return [{"site_url": "sc-domain:herbariumdyeworks.com", "permission_level": "siteOwner"}]


class FakeGenerator:
    def __init__(self, recommendations=None, error=None, delay=0.0):
        self.recommendations = recommendations or []
        self.error = error
        self.delay = delay
        self.calls = []

    async def generate(self, opportunities, existing_titles):
        self.calls.append((list(opportunities), list(existing_titles)))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return list(self.recommendations)


class FakeOAuthClient:
    def __init__(self, grant=None, error=None, delay=0.0):
        self.grant = grant or TokenGrant(access_token="refreshed-token", expires_in=3600)
        self.error = error
        self.delay = delay
        self.refresh_calls = []
        self.exchanged = []

    async def refresh(self, refresh_token):
        self.refresh_calls.append(refresh_token)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.grant

    async def exchange_code(self, code, redirect_uri):
        self.exchanged.append((code, redirect_uri))
        return self.grant
