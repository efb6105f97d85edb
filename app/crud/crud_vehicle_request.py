from typing import Any, Dict, Optional
from sqlalchemy import update
from sqlalchemy.orm import Session

from app.crud.base import CRUDBase
from app.models.vehicle_request import VehicleRequest, RequestStatus
from app.schemas.vehicle_request import VehicleRequestCreate

class CRUDVehicleRequest(CRUDBase[VehicleRequest, VehicleRequestCreate, VehicleRequestCreate]):
    def get_multi_by_status(
        self, db: Session, *, status: Optional[RequestStatus] = None, limit: int = 50
    ) -> list[VehicleRequest]:
        query = db.query(self.model)
        if status:
            query = query.filter(VehicleRequest.status == status)
        return query.order_by(VehicleRequest.requested_at.desc()).limit(limit).all()

    def get_multi_by_driver(
        self, db: Session, *, driver_id: str, status: Optional[RequestStatus] = None, limit: int = 50
    ) -> list[VehicleRequest]:
        query = db.query(self.model).filter(VehicleRequest.driver_id == driver_id)
        if status:
            query = query.filter(VehicleRequest.status == status)
        return query.order_by(VehicleRequest.requested_at.desc()).limit(limit).all()

    def count_pending(self, db: Session) -> int:
        return db.query(self.model).filter(VehicleRequest.status == RequestStatus.PENDING).count()

    def resolve_if_pending(
        self, db: Session, *, request_id: str, values: Dict[str, Any]
    ) -> bool:
        """Resolve a request only while it is still PENDING. Does not commit."""
        result = db.execute(
            update(VehicleRequest)
            .where(VehicleRequest.id == request_id, VehicleRequest.status == RequestStatus.PENDING)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

# Create a singleton instance
vehicle_request = CRUDVehicleRequest(VehicleRequest)
