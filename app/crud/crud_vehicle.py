from typing import Any, Dict, Optional
from datetime import datetime
from sqlalchemy import func, update
from sqlalchemy.orm import Session

from app.crud.base import CRUDBase
from app.models.vehicle import Vehicle, VehicleState
from app.schemas.vehicle import VehicleCreate, VehicleUpdate

class CRUDVehicle(CRUDBase[Vehicle, VehicleCreate, VehicleUpdate]):
    def get_multi_by_status(
        self, db: Session, *, status: Optional[VehicleState] = None, limit: int = 50
    ) -> list[Vehicle]:
        query = db.query(self.model)
        if status:
            query = query.filter(Vehicle.status == status)
        return query.order_by(Vehicle.updated_at.desc()).limit(limit).all()

    def get_by_driver(self, db: Session, *, driver_id: str) -> Optional[Vehicle]:
        return db.query(self.model).filter(Vehicle.driver_id == driver_id).first()

    def count_by_status(self, db: Session) -> Dict[VehicleState, int]:
        rows = db.query(Vehicle.status, func.count(Vehicle.id)).group_by(Vehicle.status).all()
        return {status: count for status, count in rows}

    def update_if(
        self,
        db: Session,
        *,
        vehicle_id: str,
        expected_status: VehicleState,
        expected_version: int,
        values: Dict[str, Any],
    ) -> bool:
        """Compare-and-swap write keyed on prior status and version.

        Returns False when another writer got there first. Does not commit.
        """
        result = db.execute(
            update(Vehicle)
            .where(
                Vehicle.id == vehicle_id,
                Vehicle.status == expected_status,
                Vehicle.version == expected_version,
            )
            .values(**values, version=Vehicle.version + 1, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

# Create a singleton instance
vehicle = CRUDVehicle(Vehicle)
