import base64
import json
from unittest.mock import AsyncMock, patch

import pytest

from app.core.errors import AuthenticationFailure, NotFoundError, TransientNetworkError
from app.models.driver import DriverRole
from app.services.auth_service import AuthService, _revoked_key, _token_key, token_lifetime_left

from conftest import FakeCache

ACCOUNT = {
    "uid": "D1",
    "email": "dan@example.com",
    "id_token": "id-token",
    "refresh_token": "refresh-token",
    "expires_in": 3600,
}


@pytest.fixture
def identity():
    client = AsyncMock()
    client.sign_in_with_password.return_value = dict(ACCOUNT)
    client.lookup.return_value = "D1"
    return client


@pytest.mark.asyncio
async def test_authenticate(db, users, identity):
    result = await AuthService(identity).authenticate(db, "dan@example.com", "secret")

    identity.sign_in_with_password.assert_awaited_once_with("dan@example.com", "secret")
    assert result.id_token == "id-token"
    assert result.role == DriverRole.DRIVER
    assert result.driver.id == "D1"
    assert result.driver.name == "Dan Driver"


@pytest.mark.asyncio
async def test_authenticate_master(db, users, identity):
    identity.sign_in_with_password.return_value = {**ACCOUNT, "uid": "M1", "email": "maya@example.com"}

    result = await AuthService(identity).authenticate(db, "maya@example.com", "secret")

    assert result.role == DriverRole.VEHICLE_MASTER


@pytest.mark.asyncio
async def test_authenticate_without_profile(db, users, identity):
    identity.sign_in_with_password.return_value = {**ACCOUNT, "uid": "stranger"}

    with pytest.raises(NotFoundError, match="User profile not found"):
        await AuthService(identity).authenticate(db, "who@example.com", "secret")


@pytest.mark.asyncio
async def test_authenticate_inactive_account(db, users, identity):
    users["D1"].is_active = False
    db.commit()

    with pytest.raises(AuthenticationFailure, match="inactive"):
        await AuthService(identity).authenticate(db, "dan@example.com", "secret")


@pytest.mark.asyncio
async def test_authenticate_without_role(db, users, identity):
    users["D1"].role = None
    db.commit()

    with pytest.raises(AuthenticationFailure, match="role"):
        await AuthService(identity).authenticate(db, "dan@example.com", "secret")


@pytest.mark.asyncio
async def test_provider_errors_propagate(db, users, identity):
    identity.sign_in_with_password.side_effect = TransientNetworkError("down")

    with pytest.raises(TransientNetworkError):
        await AuthService(identity).authenticate(db, "dan@example.com", "secret")


@pytest.mark.asyncio
async def test_current_identity(db, users, identity):
    ctx = await AuthService(identity).current_identity(db, "id-token")

    identity.lookup.assert_awaited_once_with("id-token")
    assert ctx.uid == "D1"
    assert ctx.name == "Dan Driver"
    assert ctx.role == DriverRole.DRIVER
    assert not ctx.is_master


def make_token(exp):
    payload = base64.urlsafe_b64encode(json.dumps({"sub": "D1", "exp": exp}).encode()).rstrip(b"=")
    return "header." + payload.decode() + ".signature"


@pytest.mark.asyncio
async def test_cache_ignored_when_caching_disabled(db, users, identity):
    cache = FakeCache()

    with patch("app.services.auth_service.settings.ENABLE_CACHING", False):
        service = AuthService(identity, cache=cache)
    await service.current_identity(db, "id-token")
    await service.current_identity(db, "id-token")

    assert identity.lookup.await_count == 2
    assert cache.values == {}


@pytest.mark.asyncio
async def test_cached_token_skips_lookup(db, users, identity):
    cache = FakeCache()
    cache.values[_token_key("id-token")] = {"uid": "D1"}

    with patch("app.services.auth_service.settings.ENABLE_CACHING", True):
        service = AuthService(identity, cache=cache)
    ctx = await service.current_identity(db, "id-token")

    assert ctx.uid == "D1"
    identity.lookup.assert_not_called()


@pytest.mark.asyncio
async def test_cache_miss_stores_uid(db, users, identity):
    cache = FakeCache()

    with patch("app.services.auth_service.settings.ENABLE_CACHING", True):
        service = AuthService(identity, cache=cache)
        await service.current_identity(db, "id-token")

    identity.lookup.assert_awaited_once()
    assert cache.values[_token_key("id-token")] == {"uid": "D1"}


@pytest.mark.asyncio
async def test_cached_profile_is_rechecked(db, users, identity):
    cache = FakeCache()
    cache.values[_token_key("id-token")] = {"uid": "D1"}
    users["D1"].is_active = False
    db.commit()

    with patch("app.services.auth_service.settings.ENABLE_CACHING", True):
        service = AuthService(identity, cache=cache)
    with pytest.raises(AuthenticationFailure):
        await service.current_identity(db, "id-token")


@pytest.mark.asyncio
@pytest.mark.parametrize("caching", [True, False])
async def test_signed_out_token_is_refused(db, users, identity, caching):
    cache = FakeCache()

    with patch("app.services.auth_service.settings.ENABLE_CACHING", caching):
        service = AuthService(identity, cache=cache)
        assert (await service.current_identity(db, "id-token")).uid == "D1"

        assert await service.sign_out("id-token") is True

        with pytest.raises(AuthenticationFailure, match="signed out"):
            await service.current_identity(db, "id-token")
    assert _token_key("id-token") not in cache.values
    assert identity.lookup.await_count == 1


@pytest.mark.asyncio
async def test_sign_out_lasts_as_long_as_the_token(identity):
    cache = FakeCache()
    token = make_token(exp=10_000_000_000)

    with patch("app.services.auth_service.time.time", return_value=10_000_000_000 - 1200):
        await AuthService(identity, cache=cache).sign_out(token)

    assert cache.ttls[_revoked_key(token)] == 1200


@pytest.mark.asyncio
async def test_sign_out_without_redis_is_client_side(db, users, identity):
    service = AuthService(identity)

    assert await service.sign_out("id-token") is False
    assert (await service.current_identity(db, "id-token")).uid == "D1"


@pytest.mark.asyncio
async def test_failed_revocation_is_reported(identity):
    service = AuthService(identity, cache=FakeCache(writable=False))

    assert await service.sign_out("id-token") is False


def test_token_lifetime_left():
    assert token_lifetime_left(make_token(exp=1000), now=400) == 600
    # Already expired tokens still get a short denylist entry
    assert token_lifetime_left(make_token(exp=1000), now=2000) == 1


@pytest.mark.parametrize("token", ["opaque-token", "a.not-base64!.c", "a." + base64.urlsafe_b64encode(b"{}").decode() + ".c"])
def test_unreadable_token_uses_default_lifetime(token):
    with patch("app.services.auth_service.settings.IDENTITY_TOKEN_TTL", 3600):
        assert token_lifetime_left(token) == 3600
