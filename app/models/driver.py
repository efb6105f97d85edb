from sqlalchemy import Column, String, DateTime, Boolean, Enum
from app.db.base_class import Base
from datetime import datetime
import enum

class DriverRole(str, enum.Enum):
    DRIVER = "DRIVER"
    VEHICLE_MASTER = "VEHICLE_MASTER"

class Driver(Base):
    __tablename__ = "users"

    # Identity-provider uid
    id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False)
    phone = Column(String, nullable=False, default="")
    email = Column(String, unique=True, nullable=False)
    role = Column(Enum(DriverRole), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    current_vehicle_id = Column(String, nullable=True, index=True)
    fcm_token = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Driver {self.name} ({self.role})>"
