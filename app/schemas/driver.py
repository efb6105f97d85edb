from pydantic import BaseModel, EmailStr, Field, field_validator
from datetime import datetime
from typing import Optional

from app.models.driver import DriverRole

class DriverBase(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    phone: str = Field("", max_length=20)
    role: DriverRole = DriverRole.DRIVER
    is_active: bool = True

    @field_validator('phone')
    def validate_phone(cls, v):
        if v and not v.lstrip("+").replace(" ", "").isdigit():
            raise ValueError("Phone number must contain only digits")
        return v

class DriverCreate(DriverBase):
    # Profiles are keyed by the identity-provider uid
    id: str = Field(..., min_length=1, max_length=128)

class DriverUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    role: Optional[DriverRole] = None
    is_active: Optional[bool] = None

    @field_validator('phone')
    def validate_phone(cls, v):
        if v and not v.lstrip("+").replace(" ", "").isdigit():
            raise ValueError("Phone number must contain only digits")
        return v

class PushTokenUpdate(BaseModel):
    fcm_token: Optional[str] = Field(None, max_length=512)

class Driver(BaseModel):
    id: str
    name: str
    email: str
    phone: str
    role: Optional[DriverRole] = None
    is_active: bool
    current_vehicle_id: Optional[str] = None
    fcm_token: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
