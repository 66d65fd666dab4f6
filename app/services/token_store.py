"""
Token Store: keeps each user's Search Console OAuth grant usable.

Access tokens are refreshed shortly before they expire. Concurrent requests
for the same user share a single refresh through a per-user lock.
"""
import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from sqlalchemy.orm import Session

from app.config import get_settings
from app.connectors.google_oauth import GoogleOAuthClient, TokenGrant
from app.errors import MissingRefreshToken, NotConnected, ProviderError, TokenRefreshFailed
from app.models.google_token import GoogleToken
from app.utils.logger import log

settings = get_settings()


class RefreshLocks:
    """
    Per-user asyncio locks; one refresh call per user at a time.

    A user's lock is dropped once nobody holds it or waits on it.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    def __len__(self):
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, user_id: str):
        lock = self._locks.get(user_id)
        if lock is None:
            lock = self._locks[user_id] = asyncio.Lock()
        self._users[user_id] = self._users.get(user_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[user_id] -= 1
            if not self._users[user_id]:
                del self._users[user_id]
                del self._locks[user_id]


# Shared by every TokenStore in the process
default_refresh_locks = RefreshLocks()


def is_token_expired(expires_at: datetime, now: datetime, buffer_seconds: int) -> bool:
    """A token counts as expired once now is inside the safety buffer"""
    return now >= expires_at - timedelta(seconds=buffer_seconds)


class TokenStore:
    """Persists and refreshes Google OAuth tokens per user"""

    def __init__(
        self,
        db: Session,
        oauth_client: Optional[GoogleOAuthClient] = None,
        locks: Optional[RefreshLocks] = None,
        buffer_seconds: Optional[int] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.db = db
        self.oauth = oauth_client or GoogleOAuthClient()
        self.locks = locks or default_refresh_locks
        self.buffer_seconds = settings.token_expiry_buffer_seconds if buffer_seconds is None else buffer_seconds
        self.clock = clock

    def _load(self, user_id: str, fresh: bool = False) -> Optional[GoogleToken]:
        query = self.db.query(GoogleToken)
        if fresh:
            # Another request may have refreshed the row since we last read it
            query = query.populate_existing()
        return query.filter(GoogleToken.user_id == user_id).first()

    def is_connected(self, user_id: str) -> bool:
        return self._load(user_id) is not None

    def disconnect(self, user_id: str) -> bool:
        """Remove the user's grant. Returns True if one existed."""
        deleted = self.db.query(GoogleToken).filter(GoogleToken.user_id == user_id).delete()
        self.db.commit()
        if deleted:
            log.info(f"Disconnected Google Search Console for user {user_id}")
        return bool(deleted)

    def store_tokens(self, user_id: str, grant: TokenGrant) -> GoogleToken:
        """
        Upsert the user's token record.

        Existing records keep their refresh token when the grant has none.
        A first-time insert requires one.

        Raises:
            MissingRefreshToken: no record exists and the grant has no refresh token
        """
        now = self.clock()
        expires_at = now + timedelta(seconds=grant.expires_in)
        record = self._load(user_id)

        if record:
            record.access_token = grant.access_token
            record.refresh_token = grant.refresh_token or record.refresh_token
            record.expires_at = expires_at
            record.scope = grant.scope or record.scope
            record.updated_at = now
        else:
            if not grant.refresh_token:
                raise MissingRefreshToken(user_id)
            record = GoogleToken(
                user_id=user_id,
                access_token=grant.access_token,
                refresh_token=grant.refresh_token,
                expires_at=expires_at,
                scope=grant.scope,
                created_at=now,
                updated_at=now,
            )
            self.db.add(record)

        self.db.commit()
        return record

    async def complete_authorization(self, user_id: str, code: str, redirect_uri: str) -> GoogleToken:
        """Exchange the OAuth callback code and persist the grant"""
        grant = await self.oauth.exchange_code(code, redirect_uri)
        record = self.store_tokens(user_id, grant)
        log.info(f"Stored Google Search Console grant for user {user_id}")
        return record

    async def get_valid_access_token(self, user_id: str) -> str:
        """
        Return a usable access token, refreshing it first if needed.

        The refreshed token is committed before it is returned.

        Raises:
            NotConnected: the user has no stored grant
            TokenRefreshFailed: Google rejected the refresh token
        """
        record = self._load(user_id)
        if record is None:
            raise NotConnected(user_id)

        if not is_token_expired(record.expires_at, self.clock(), self.buffer_seconds):
            return record.access_token

        async with self.locks.hold(user_id):
            record = self._load(user_id, fresh=True)
            if record is None:
                raise NotConnected(user_id)

            if not is_token_expired(record.expires_at, self.clock(), self.buffer_seconds):
                # Refreshed by a concurrent request while we waited
                return record.access_token

            log.info(f"Refreshing Google access token for user {user_id}")
            try:
                grant = await self.oauth.refresh(record.refresh_token)
            except ProviderError as e:
                raise TokenRefreshFailed(user_id, e.status_code, e.body) from e

            self.store_tokens(user_id, grant)
            return grant.access_token
