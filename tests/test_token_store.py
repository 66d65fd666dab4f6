"""
Token store persistence and refresh tests.

Guards against:
1. Tokens used inside the 5-minute expiry buffer
2. Losing the refresh token when Google omits it on refresh
3. First-time grants stored without a refresh token
4. Concurrent requests issuing more than one refresh call per user
5. Provider rejections surfacing as generic errors instead of NotConnected
"""
import asyncio
from datetime import timedelta

import pytest

from app.connectors.google_oauth import TokenGrant
from app.errors import MissingRefreshToken, NotConnected, ProviderError, TokenRefreshFailed
from app.models.google_token import GoogleToken
from app.services.token_store import RefreshLocks, TokenStore, is_token_expired
from tests.fakes import FakeOAuthClient


def _store(db, clock, oauth=None):
    return TokenStore(db, oauth_client=oauth or FakeOAuthClient(), locks=RefreshLocks(), clock=clock)


def _seed(db, clock, expires_in):
    db.add(GoogleToken(
        user_id="user-1",
        access_token="stored-token",
        refresh_token="stored-refresh",
        expires_at=clock() + expires_in,
        created_at=clock(),
        updated_at=clock(),
    ))
    db.commit()


# ---------------------------------------------------------------------------
# Expiry buffer
# ---------------------------------------------------------------------------

def test_token_inside_buffer_is_expired(clock):
    assert is_token_expired(clock() + timedelta(minutes=4), clock(), 300)


def test_token_outside_buffer_is_valid(clock):
    assert not is_token_expired(clock() + timedelta(minutes=6), clock(), 300)


def test_valid_token_returned_without_refresh(db, clock):
    _seed(db, clock, timedelta(minutes=6))
    oauth = FakeOAuthClient()

    token = asyncio.run(_store(db, clock, oauth).get_valid_access_token("user-1"))

    assert token == "stored-token"
    assert oauth.refresh_calls == []


# ---------------------------------------------------------------------------
# Refresh
# ---------------------------------------------------------------------------

def test_expiring_token_is_refreshed_and_persisted(db, clock):
    _seed(db, clock, timedelta(minutes=4))
    oauth = FakeOAuthClient()

    token = asyncio.run(_store(db, clock, oauth).get_valid_access_token("user-1"))

    assert token == "refreshed-token"
    assert oauth.refresh_calls == ["stored-refresh"]

    record = db.query(GoogleToken).filter_by(user_id="user-1").one()
    assert record.access_token == "refreshed-token"
    assert record.refresh_token == "stored-refresh"
    assert record.expires_at == clock() + timedelta(seconds=3600)


def test_rotated_refresh_token_is_stored(db, clock):
    _seed(db, clock, timedelta(minutes=1))
    oauth = FakeOAuthClient(grant=TokenGrant(access_token="new", expires_in=3600, refresh_token="rotated"))

    asyncio.run(_store(db, clock, oauth).get_valid_access_token("user-1"))

    assert db.query(GoogleToken).filter_by(user_id="user-1").one().refresh_token == "rotated"


def test_rejected_refresh_raises_not_connected(db, clock):
    _seed(db, clock, timedelta(minutes=-10))
    oauth = FakeOAuthClient(error=ProviderError("Google OAuth", 400, '{"error": "invalid_grant"}'))

    with pytest.raises(TokenRefreshFailed) as exc_info:
        asyncio.run(_store(db, clock, oauth).get_valid_access_token("user-1"))

    assert isinstance(exc_info.value, NotConnected)
    assert exc_info.value.status_code == 400


def test_missing_user_is_not_connected(db, clock):
    with pytest.raises(NotConnected):
        asyncio.run(_store(db, clock).get_valid_access_token("nobody"))


def test_concurrent_requests_share_one_refresh(db, clock):
    _seed(db, clock, timedelta(minutes=2))
    oauth = FakeOAuthClient(delay=0.05)
    store = _store(db, clock, oauth)

    async def fetch_many():
        return await asyncio.gather(*(store.get_valid_access_token("user-1") for _ in range(5)))

    tokens = asyncio.run(fetch_many())

    assert tokens == ["refreshed-token"] * 5
    assert len(oauth.refresh_calls) == 1
    assert len(store.locks) == 0


def test_refresh_lock_is_released_after_failure(db, clock):
    _seed(db, clock, timedelta(minutes=2))
    store = _store(db, clock, FakeOAuthClient(error=ProviderError("Google OAuth", 400, "invalid_grant")))

    with pytest.raises(TokenRefreshFailed):
        asyncio.run(store.get_valid_access_token("user-1"))

    assert len(store.locks) == 0


# ---------------------------------------------------------------------------
# Storing grants
# ---------------------------------------------------------------------------

class TestStoreTokens:

    def test_first_grant_requires_refresh_token(self, db, clock):
        with pytest.raises(MissingRefreshToken):
            _store(db, clock).store_tokens("user-1", TokenGrant(access_token="a", expires_in=3600))

    def test_reconnect_keeps_existing_refresh_token(self, db, clock):
        _seed(db, clock, timedelta(hours=1))
        _store(db, clock).store_tokens("user-1", TokenGrant(access_token="again", expires_in=3600))

        record = db.query(GoogleToken).filter_by(user_id="user-1").one()
        assert record.access_token == "again"
        assert record.refresh_token == "stored-refresh"

    def test_complete_authorization_exchanges_code(self, db, clock):
        oauth = FakeOAuthClient(grant=TokenGrant(access_token="a", expires_in=3600, refresh_token="r"))
        store = _store(db, clock, oauth)

        asyncio.run(store.complete_authorization("user-1", "auth-code", "http://localhost:8000/seo/callback"))

        assert oauth.exchanged == [("auth-code", "http://localhost:8000/seo/callback")]
        assert store.is_connected("user-1")

    def test_disconnect(self, db, clock):
        _seed(db, clock, timedelta(hours=1))
        store = _store(db, clock)

        assert store.disconnect("user-1") is True
        assert not store.is_connected("user-1")
        assert store.disconnect("user-1") is False
