"""
Sign-in and session resolution on top of the identity provider.

The provider proves who the caller is; the `users` table says what they may
do. Both must agree before a SessionContext is handed to a controller.

Signing out puts the token on a Redis denylist until it would have expired
anyway. Without Redis there is nowhere shared to record that, so sign-out is
client-side only: the client discards the token, and the provider keeps
accepting it until it expires.
"""
import base64
import hashlib
import json
import logging
import time
from typing import Optional

from sqlalchemy.orm import Session

from app import crud
from app.core.cache import RedisClient
from app.core.config import settings
from app.core.errors import AuthenticationFailure, NotFoundError
from app.models.driver import Driver
from app.schemas.driver import Driver as DriverSchema
from app.schemas.session import SessionContext, SignInResult
from app.services.clients.identity import IdentityClient

logger = logging.getLogger(__name__)


def _digest(id_token: str) -> str:
    return hashlib.sha256(id_token.encode("utf-8")).hexdigest()


def _token_key(id_token: str) -> str:
    return "identity:" + _digest(id_token)


def _revoked_key(id_token: str) -> str:
    return "revoked:" + _digest(id_token)


def token_lifetime_left(id_token: str, now: Optional[float] = None) -> int:
    """Seconds until the token's `exp` claim, or the provider default if unreadable.

    The signature is not checked here; the provider does that on lookup.
    """
    now = time.time() if now is None else now
    try:
        payload = id_token.split(".")[1]
        claims = json.loads(base64.urlsafe_b64decode(payload + "=" * (-len(payload) % 4)))
        return max(int(claims["exp"] - now), 1)
    except (IndexError, KeyError, TypeError, ValueError):
        return settings.IDENTITY_TOKEN_TTL


class AuthService:
    def __init__(self, identity: IdentityClient, cache: Optional[RedisClient] = None):
        self.identity = identity
        # The denylist needs Redis whether or not lookups are cached
        self.redis = cache
        self.cache = cache if settings.ENABLE_CACHING else None

    def _load_profile(self, db: Session, uid: str) -> Driver:
        driver = crud.driver.get(db, id=uid)
        if not driver:
            raise NotFoundError("User profile not found")
        if not driver.role:
            raise AuthenticationFailure("User role not assigned")
        if not driver.is_active:
            raise AuthenticationFailure("User account is inactive")
        return driver

    async def authenticate(self, db: Session, email: str, password: str) -> SignInResult:
        """Sign in with the provider, then check the profile's role and status."""
        account = await self.identity.sign_in_with_password(email, password)
        driver = self._load_profile(db, account["uid"])
        logger.info("User %s signed in as %s", driver.id, driver.role.value)

        if self.cache is not None:
            await self.cache.set(_token_key(account["id_token"]), {"uid": driver.id}, expire=min(
                account["expires_in"], settings.CACHE_TTL
            ))

        return SignInResult(
            id_token=account["id_token"],
            refresh_token=account["refresh_token"],
            expires_in=account["expires_in"],
            role=driver.role,
            driver=DriverSchema.model_validate(driver),
        )

    async def current_identity(self, db: Session, id_token: str) -> SessionContext:
        """Resolve a bearer token to the caller's session context."""
        if self.redis is not None and await self.redis.get(_revoked_key(id_token)):
            raise AuthenticationFailure("Session has been signed out")

        uid = None
        if self.cache is not None:
            cached = await self.cache.get(_token_key(id_token))
            uid = cached.get("uid") if cached else None
        if uid is None:
            uid = await self.identity.lookup(id_token)
            if self.cache is not None:
                await self.cache.set(_token_key(id_token), {"uid": uid}, expire=settings.CACHE_TTL)

        driver = self._load_profile(db, uid)
        return SessionContext(uid=driver.id, name=driver.name, role=driver.role)

    async def sign_out(self, id_token: str) -> bool:
        """Revoke the token for the rest of its lifetime.

        Returns False when the revocation could not be recorded, in which case
        only the client forgetting the token ends the session.
        """
        if self.redis is None:
            logger.info("Session signed out on the client only; Redis is disabled")
            return False

        if self.cache is not None:
            await self.cache.delete(_token_key(id_token))
        revoked = await self.redis.set(
            _revoked_key(id_token), {"revoked": True}, expire=token_lifetime_left(id_token)
        )
        if not revoked:
            logger.warning("Could not record sign-out; token stays valid until it expires")
            return False
        logger.info("Session signed out")
        return True
