from fastapi import APIRouter, Depends, status
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from app import schemas
from app.api import deps
from app.services.auth_service import AuthService

router = APIRouter(prefix="/auth", tags=["auth"])

@router.post("/sign-in", response_model=schemas.SignInResult)
async def sign_in(
    credentials: schemas.SignInRequest,
    db: Session = Depends(deps.get_db),
    auth: AuthService = Depends(deps.get_auth_service),
):
    """
    Sign in with email and password; returns tokens plus the profile and role.
    """
    return await auth.authenticate(db, credentials.email, credentials.password)

@router.get("/me", response_model=schemas.SessionContext)
def current_identity(ctx: schemas.SessionContext = Depends(deps.get_session_context)):
    """
    Who the bearer token belongs to.
    """
    return ctx

@router.post("/sign-out", status_code=status.HTTP_204_NO_CONTENT)
async def sign_out(
    ctx: schemas.SessionContext = Depends(deps.get_session_context),
    credentials: HTTPAuthorizationCredentials = Depends(deps.bearer_scheme),
    auth: AuthService = Depends(deps.get_auth_service),
):
    """
    Revoke this token until it expires. Without Redis only the client can forget it.
    """
    await auth.sign_out(credentials.credentials)
