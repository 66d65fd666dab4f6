"""
Typed failures raised by the token store, provider connectors and generator.

Handlers map these by type; nothing in the engine inspects message text.
"""
from typing import Optional


class EngineError(Exception):
    """Base class for engine failures"""


class NotConnected(EngineError):
    """No Search Console grant is stored for the user.

    The user needs to connect their account; retrying will not help.
    """

    def __init__(self, user_id: str, message: Optional[str] = None):
        self.user_id = user_id
        super().__init__(message or f"Google Search Console is not connected for user {user_id}")


class TokenRefreshFailed(NotConnected):
    """The provider rejected the stored refresh token"""

    def __init__(self, user_id: str, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(user_id, f"Failed to refresh access token ({status_code}): {body}")


class MissingRefreshToken(EngineError):
    """First-time token grant arrived without a refresh token"""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"No refresh token provided for new user {user_id}")


class ProviderError(EngineError):
    """Non-2xx response from an external provider"""

    def __init__(self, provider: str, status_code: int, body: str):
        self.provider = provider
        self.status_code = status_code
        self.body = body
        super().__init__(f"{provider} API error ({status_code}): {body}")


class OAuthConfigurationError(EngineError):
    """Google OAuth client credentials are not configured"""


class GenerationFailure(EngineError):
    """Model output could not be turned into recommendations"""
