from pydantic import BaseModel, Field, field_validator, model_validator
from datetime import datetime
from typing import Any, List, Optional

from app.models.vehicle import VehicleState

VEHICLE_STATUS_LABELS = {
    VehicleState.AVAILABLE: "Available",
    VehicleState.ASSIGNED: "Assigned",
    VehicleState.IN_TRANSIT: "In Transit",
    VehicleState.RETURNING: "Returning",
}

class VehicleTimestamps(BaseModel):
    assigned_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    reached_destination_at: Optional[datetime] = None
    returned_at: Optional[datetime] = None

class VehicleBase(BaseModel):
    warehouse: str = Field(..., min_length=1, max_length=200)
    current_location: str = Field("", max_length=200)

class VehicleCreate(VehicleBase):
    id: Optional[str] = Field(None, min_length=1, max_length=64)

class VehicleUpdate(BaseModel):
    warehouse: Optional[str] = Field(None, min_length=1, max_length=200)
    current_location: Optional[str] = Field(None, max_length=200)
    version: Optional[int] = Field(None, ge=1)

class AssignVehicle(BaseModel):
    driver_id: str = Field(..., min_length=1)
    destination: str = Field(..., min_length=1, max_length=200)

    @field_validator('destination')
    def strip_destination(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Destination is required")
        return v

class Vehicle(VehicleBase):
    id: str
    driver_id: Optional[str] = None
    driver_name: Optional[str] = None
    status: VehicleState
    destination: Optional[str] = None
    timestamps: VehicleTimestamps
    version: int
    created_at: datetime
    updated_at: datetime

    @model_validator(mode="before")
    @classmethod
    def collect_timestamps(cls, data: Any) -> Any:
        # ORM rows keep the timestamps flat; the API nests them
        if isinstance(data, dict):
            return data
        return {
            "id": data.id,
            "driver_id": data.driver_id,
            "driver_name": data.driver_name,
            "status": data.status,
            "current_location": data.current_location,
            "destination": data.destination,
            "warehouse": data.warehouse,
            "timestamps": {
                "assigned_at": data.assigned_at,
                "started_at": data.started_at,
                "reached_destination_at": data.reached_destination_at,
                "returned_at": data.returned_at,
            },
            "version": data.version,
            "created_at": data.created_at,
            "updated_at": data.updated_at,
        }

class DashboardStats(BaseModel):
    total_vehicles: int = 0
    available: int = 0
    assigned: int = 0
    in_transit: int = 0
    returning: int = 0
    pending_requests: int = 0

class TimelineStep(BaseModel):
    label: str
    location: str
    timestamp: Optional[datetime] = None
    status: str  # completed, active, pending
    minutes_left_estimate: Optional[int] = None
    time_left: Optional[str] = None
    is_estimate: bool = True

class Timeline(BaseModel):
    vehicle_id: str
    status: VehicleState
    status_label: str
    steps: List[TimelineStep]
