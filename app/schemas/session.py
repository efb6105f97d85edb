from pydantic import BaseModel, EmailStr, Field

from app.models.driver import DriverRole
from app.schemas.driver import Driver

class SessionContext(BaseModel):
    """The caller on whose behalf a controller operation runs."""
    uid: str
    name: str
    role: DriverRole

    @property
    def is_master(self) -> bool:
        return self.role == DriverRole.VEHICLE_MASTER

class SignInRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

class SignInResult(BaseModel):
    id_token: str
    refresh_token: str
    expires_in: int
    role: DriverRole
    driver: Driver
