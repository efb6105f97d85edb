from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Optional

from app.models.vehicle_request import RequestStatus

class VehicleRequestCreate(BaseModel):
    vehicle_id: str = Field(..., min_length=1)
    destination: str = Field(..., max_length=200)
    reason: str = Field(..., max_length=1000)

    @field_validator('destination', 'reason')
    def strip_required(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Field must not be blank")
        return v

class VehicleRequest(BaseModel):
    id: str
    vehicle_id: str
    driver_id: str
    driver_name: str
    destination: str
    reason: str
    status: RequestStatus
    requested_at: datetime
    responded_at: Optional[datetime] = None
    responded_by: Optional[str] = None

    class Config:
        from_attributes = True
