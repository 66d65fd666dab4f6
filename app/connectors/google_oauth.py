"""
Google OAuth connector

Builds the Search Console consent URL and talks to Google's token endpoint
for authorization-code and refresh-token grants.
"""
import httpx
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urlencode

from app.config import get_settings
from app.errors import OAuthConfigurationError, ProviderError
from app.utils.logger import log

settings = get_settings()

# Read-only Search Console access
SEARCH_CONSOLE_SCOPE = "https://www.googleapis.com/auth/webmasters.readonly"


@dataclass(frozen=True)
class TokenGrant:
    """Token endpoint response"""
    access_token: str
    expires_in: int
    scope: Optional[str] = None
    refresh_token: Optional[str] = None
    token_type: str = "Bearer"

    @classmethod
    def from_response(cls, payload: Dict[str, Any]) -> "TokenGrant":
        return cls(
            access_token=payload["access_token"],
            expires_in=int(payload.get("expires_in", 3600)),
            scope=payload.get("scope"),
            # Google omits refresh_token on most refresh grants
            refresh_token=payload.get("refresh_token") or None,
            token_type=payload.get("token_type", "Bearer"),
        )


class GoogleOAuthClient:
    """Client for Google's OAuth 2.0 endpoints"""

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        token_endpoint: Optional[str] = None,
        auth_endpoint: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client_id = client_id if client_id is not None else settings.google_client_id
        self.client_secret = client_secret if client_secret is not None else settings.google_client_secret
        self.token_endpoint = token_endpoint or settings.google_token_endpoint
        self.auth_endpoint = auth_endpoint or settings.google_auth_endpoint
        self.timeout = timeout or settings.request_timeout_seconds
        self._transport = transport

    def build_auth_url(self, redirect_uri: str, state: Optional[str] = None) -> str:
        """Consent screen URL that yields an offline (refreshable) grant"""
        if not self.client_id:
            raise OAuthConfigurationError("GOOGLE_CLIENT_ID not configured")

        params = {
            "client_id": self.client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": SEARCH_CONSOLE_SCOPE,
            "access_type": "offline",
            # Forces the consent screen so Google issues a refresh token
            "prompt": "consent",
        }
        if state:
            params["state"] = state

        return f"{self.auth_endpoint}?{urlencode(params)}"

    async def exchange_code(self, code: str, redirect_uri: str) -> TokenGrant:
        """Exchange an authorization code for an access/refresh token pair"""
        return await self._token_request({
            "code": code,
            "redirect_uri": redirect_uri,
            "grant_type": "authorization_code",
        })

    async def refresh(self, refresh_token: str) -> TokenGrant:
        """Exchange a refresh token for a new access token"""
        return await self._token_request({
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        })

    async def _token_request(self, form: Dict[str, str]) -> TokenGrant:
        if not self.client_id or not self.client_secret:
            raise OAuthConfigurationError("Google OAuth credentials not configured")

        data = dict(form, client_id=self.client_id, client_secret=self.client_secret)

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(
                self.token_endpoint,
                data=data,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )

        if response.status_code >= 300:
            log.error(
                f"Google token endpoint rejected {form['grant_type']} grant: "
                f"{response.status_code} - {response.text[:300]}"
            )
            raise ProviderError("Google OAuth", response.status_code, response.text)

        return TokenGrant.from_response(response.json())
