from sqlalchemy import Column, String, DateTime, Integer
from app.db.base_class import Base
from datetime import datetime
import uuid

class TripHistory(Base):
    __tablename__ = "trip_history"

    id = Column(String, primary_key=True, index=True, default=lambda: uuid.uuid4().hex)
    vehicle_id = Column(String, nullable=False, index=True)
    driver_id = Column(String, nullable=False, index=True)
    driver_name = Column(String, nullable=True)
    start_location = Column(String, nullable=False, default="")
    destination = Column(String, nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    duration = Column(Integer, nullable=False)  # in minutes
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    def __repr__(self):
        return f"<TripHistory {self.vehicle_id} {self.duration}min>"
