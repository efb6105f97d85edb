from typing import Any, Dict, Optional
from datetime import datetime
from sqlalchemy import update
from sqlalchemy.orm import Session

from app.crud.base import CRUDBase
from app.models.driver import Driver, DriverRole
from app.schemas.driver import DriverCreate, DriverUpdate

class CRUDDriver(CRUDBase[Driver, DriverCreate, DriverUpdate]):
    def get_by_email(self, db: Session, *, email: str) -> Optional[Driver]:
        return db.query(Driver).filter(Driver.email == email).first()

    def get_multi_available(
        self, db: Session, *, skip: int = 0, limit: int = 100
    ) -> list[Driver]:
        """Active drivers without a vehicle, i.e. assignment candidates."""
        return (
            db.query(self.model)
            .filter(
                Driver.role == DriverRole.DRIVER,
                Driver.is_active.is_(True),
                Driver.current_vehicle_id.is_(None),
            )
            .order_by(Driver.name)
            .offset(skip)
            .limit(limit)
            .all()
        )

    def set_current_vehicle_if(
        self, db: Session, *, driver_id: str, expected: Optional[str], vehicle_id: Optional[str]
    ) -> bool:
        """Point the driver at `vehicle_id` only if it still points at `expected`.

        Does not commit; the caller owns the transaction.
        """
        if expected is None:
            # Taking a vehicle also needs an active driver account
            conditions = [
                Driver.current_vehicle_id.is_(None),
                Driver.role == DriverRole.DRIVER,
                Driver.is_active.is_(True),
            ]
        else:
            conditions = [Driver.current_vehicle_id == expected]
        result = db.execute(
            update(Driver)
            .where(Driver.id == driver_id, *conditions)
            .values(current_vehicle_id=vehicle_id, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def update_if_unassigned(self, db: Session, *, driver_id: str, values: Dict[str, Any]) -> bool:
        """Apply `values` only while the driver holds no vehicle. Does not commit."""
        result = db.execute(
            update(Driver)
            .where(Driver.id == driver_id, Driver.current_vehicle_id.is_(None))
            .values(**values, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

# Create a singleton instance
driver = CRUDDriver(Driver)
