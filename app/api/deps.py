from functools import lru_cache
from typing import Generator, Optional

from fastapi import Depends, Query, WebSocketException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core import events
from app.core.cache import get_redis
from app.core.errors import AuthenticationFailure, ERROR_MESSAGES, FleetError, PermissionDenied
from app.db.session import SessionLocal
from app.schemas.session import SessionContext
from app.services.auth_service import AuthService
from app.services.clients.identity import IdentityClient

bearer_scheme = HTTPBearer(auto_error=False)

def get_db() -> Generator:
    """
    Dependency that provides a database session.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def get_session_factory():
    """Subscriptions open short-lived sessions of their own."""
    return SessionLocal

@lru_cache
def get_identity_client() -> IdentityClient:
    return IdentityClient()

def get_auth_service(identity: IdentityClient = Depends(get_identity_client)) -> AuthService:
    return AuthService(identity, cache=get_redis())

def get_change_feed() -> events.ChangeFeed:
    return events.get_change_feed()

async def get_session_context(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
) -> SessionContext:
    """
    Resolve the bearer token into the caller's session context.
    """
    if credentials is None:
        raise AuthenticationFailure("Not authenticated")
    return await auth.current_identity(db, credentials.credentials)

async def get_ws_session_context(
    token: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
) -> SessionContext:
    """
    WebSocket clients cannot set headers, so the token comes in the query string.
    """
    try:
        return await auth.current_identity(db, token)
    except FleetError as e:
        raise WebSocketException(code=status.WS_1008_POLICY_VIOLATION, reason=e.message)

def get_current_master(ctx: SessionContext = Depends(get_session_context)) -> SessionContext:
    if not ctx.is_master:
        raise PermissionDenied(ERROR_MESSAGES["PERMISSION_DENIED"])
    return ctx
