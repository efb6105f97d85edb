from pydantic import BaseModel
from datetime import datetime
from typing import Optional

class TripHistory(BaseModel):
    id: str
    vehicle_id: str
    driver_id: str
    driver_name: Optional[str] = None
    start_location: str
    destination: str
    start_time: datetime
    end_time: datetime
    duration: int  # minutes
    created_at: datetime

    class Config:
        from_attributes = True
