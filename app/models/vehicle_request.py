from sqlalchemy import Column, String, DateTime, Enum, Text
from app.db.base_class import Base
from datetime import datetime
import enum
import uuid

class RequestStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

class VehicleRequest(Base):
    __tablename__ = "vehicle_requests"

    id = Column(String, primary_key=True, index=True, default=lambda: uuid.uuid4().hex)
    vehicle_id = Column(String, nullable=False, index=True)
    driver_id = Column(String, nullable=False, index=True)
    driver_name = Column(String, nullable=False)
    destination = Column(String, nullable=False)
    reason = Column(Text, nullable=False)
    status = Column(Enum(RequestStatus), nullable=False, default=RequestStatus.PENDING, index=True)
    requested_at = Column(DateTime, default=datetime.utcnow, index=True)
    responded_at = Column(DateTime, nullable=True)
    responded_by = Column(String, nullable=True)

    def __repr__(self):
        return f"<VehicleRequest {self.id} {self.vehicle_id} ({self.status})>"
