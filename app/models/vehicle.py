from sqlalchemy import Column, String, DateTime, Integer, Enum
from app.db.base_class import Base
from datetime import datetime
import enum
import uuid

class VehicleState(str, enum.Enum):
    AVAILABLE = "AVAILABLE"
    ASSIGNED = "ASSIGNED"
    IN_TRANSIT = "IN_TRANSIT"
    RETURNING = "RETURNING"

class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(String, primary_key=True, index=True, default=lambda: uuid.uuid4().hex)
    driver_id = Column(String, nullable=True, index=True)
    driver_name = Column(String, nullable=True)
    status = Column(Enum(VehicleState), nullable=False, default=VehicleState.AVAILABLE, index=True)
    current_location = Column(String, nullable=False, default="")
    destination = Column(String, nullable=True)
    warehouse = Column(String, nullable=False)

    # Trip timestamps
    assigned_at = Column(DateTime, nullable=True)
    started_at = Column(DateTime, nullable=True)
    reached_destination_at = Column(DateTime, nullable=True)
    returned_at = Column(DateTime, nullable=True)

    # Bumped on every write; conditional updates compare against it
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, index=True)

    def __repr__(self):
        return f"<Vehicle {self.id} ({self.status})>"
