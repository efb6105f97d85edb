"""
Vehicle lifecycle transitions.

AVAILABLE -> ASSIGNED -> IN_TRANSIT -> RETURNING -> AVAILABLE

Every transition is a single conditional write keyed on the status and
version that were read. When the write matches no row the store has moved
on under us and the operation fails with StateConflict instead of
overwriting someone else's change.
"""
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app import crud
from app.core.errors import ERROR_MESSAGES, InvalidInput, NotFoundError, PermissionDenied, StateConflict
from app.models.driver import Driver, DriverRole
from app.models.vehicle import Vehicle, VehicleState
from app.schemas.session import SessionContext

logger = logging.getLogger(__name__)


def trip_duration_minutes(started_at: datetime, ended_at: datetime) -> int:
    """Whole minutes between start and end, floored."""
    return int((ended_at - started_at).total_seconds() // 60)


class VehicleLifecycle:
    """Applies lifecycle transitions to vehicles.

    Methods stage their writes in the given session. `assign_vehicle` with
    `commit=False` lets the request workflow fold the assignment into its own
    transaction; every other call commits on success and rolls back on
    failure.
    """

    def _require_master(self, ctx: SessionContext) -> None:
        if not ctx.is_master:
            raise PermissionDenied(ERROR_MESSAGES["PERMISSION_DENIED"])

    def _load_vehicle(self, db: Session, vehicle_id: str) -> Vehicle:
        vehicle = crud.vehicle.get(db, id=vehicle_id)
        if not vehicle:
            raise NotFoundError(ERROR_MESSAGES["VEHICLE_NOT_FOUND"])
        return vehicle

    def _require_operator(self, ctx: SessionContext, vehicle: Vehicle) -> None:
        if vehicle.driver_id != ctx.uid:
            raise PermissionDenied("Vehicle is not assigned to you")

    def _transition(
        self,
        db: Session,
        vehicle: Vehicle,
        expected: VehicleState,
        target: VehicleState,
        values: Dict[str, Any],
    ) -> None:
        if vehicle.status != expected:
            raise StateConflict(
                f"{ERROR_MESSAGES['INVALID_STATE_TRANSITION']}: "
                f"vehicle {vehicle.id} is {vehicle.status.value}, expected {expected.value}"
            )
        applied = crud.vehicle.update_if(
            db,
            vehicle_id=vehicle.id,
            expected_status=expected,
            expected_version=vehicle.version,
            values={"status": target, **values},
        )
        if not applied:
            logger.warning(
                "Conditional write lost for vehicle %s (%s -> %s, version %s)",
                vehicle.id, expected.value, target.value, vehicle.version,
            )
            raise StateConflict(f"Vehicle {vehicle.id} was modified by another user")

    def _finish(self, db: Session, vehicle_id: str) -> Vehicle:
        db.commit()
        return self._load_vehicle(db, vehicle_id)

    def assign_vehicle(
        self,
        db: Session,
        ctx: SessionContext,
        *,
        vehicle_id: str,
        driver_id: str,
        destination: str,
        now: Optional[datetime] = None,
        commit: bool = True,
    ) -> Vehicle:
        """AVAILABLE -> ASSIGNED for a driver that has no vehicle yet."""
        self._require_master(ctx)
        now = now or datetime.utcnow()
        destination = destination.strip()
        if not destination:
            raise InvalidInput("Destination is required")

        try:
            vehicle = self._load_vehicle(db, vehicle_id)
            driver: Optional[Driver] = crud.driver.get(db, id=driver_id)
            if not driver:
                raise NotFoundError("Driver profile not found")
            if not driver.is_active or driver.role != DriverRole.DRIVER:
                raise StateConflict(f"User {driver_id} cannot be assigned a vehicle")
            if driver.current_vehicle_id is not None:
                raise StateConflict(f"Driver {driver_id} already has vehicle {driver.current_vehicle_id}")

            self._transition(db, vehicle, VehicleState.AVAILABLE, VehicleState.ASSIGNED, {
                "driver_id": driver.id,
                "driver_name": driver.name,
                "destination": destination,
                "assigned_at": now,
                "started_at": None,
                "reached_destination_at": None,
                "returned_at": None,
            })
            if not crud.driver.set_current_vehicle_if(
                db, driver_id=driver.id, expected=None, vehicle_id=vehicle.id
            ):
                raise StateConflict(f"Driver {driver_id} was assigned another vehicle or deactivated")
        except Exception:
            db.rollback()
            raise

        logger.info("Vehicle %s assigned to %s (destination %s)", vehicle_id, driver_id, destination)
        if not commit:
            return vehicle
        return self._finish(db, vehicle_id)

    def start_trip(
        self, db: Session, ctx: SessionContext, *, vehicle_id: str, now: Optional[datetime] = None
    ) -> Vehicle:
        """ASSIGNED -> IN_TRANSIT, by the assigned driver."""
        now = now or datetime.utcnow()
        try:
            vehicle = self._load_vehicle(db, vehicle_id)
            self._require_operator(ctx, vehicle)
            self._transition(db, vehicle, VehicleState.ASSIGNED, VehicleState.IN_TRANSIT, {
                "started_at": now,
            })
        except Exception:
            db.rollback()
            raise
        logger.info("Trip started for vehicle %s by %s", vehicle_id, ctx.uid)
        return self._finish(db, vehicle_id)

    def start_return(
        self, db: Session, ctx: SessionContext, *, vehicle_id: str, now: Optional[datetime] = None
    ) -> Vehicle:
        """IN_TRANSIT -> RETURNING; records arrival at the destination."""
        now = now or datetime.utcnow()
        try:
            vehicle = self._load_vehicle(db, vehicle_id)
            self._require_operator(ctx, vehicle)
            self._transition(db, vehicle, VehicleState.IN_TRANSIT, VehicleState.RETURNING, {
                "reached_destination_at": now,
            })
        except Exception:
            db.rollback()
            raise
        logger.info("Vehicle %s returning to %s", vehicle_id, vehicle.warehouse)
        return self._finish(db, vehicle_id)

    def complete_trip(
        self, db: Session, ctx: SessionContext, *, vehicle_id: str, now: Optional[datetime] = None
    ) -> Vehicle:
        """RETURNING -> AVAILABLE, releasing the driver and logging the trip."""
        now = now or datetime.utcnow()
        try:
            vehicle = self._load_vehicle(db, vehicle_id)
            if not ctx.is_master:
                self._require_operator(ctx, vehicle)

            # Captured before the reset clears them
            driver_id = vehicle.driver_id
            trip = {
                "vehicle_id": vehicle.id,
                "driver_id": driver_id,
                "driver_name": vehicle.driver_name,
                "start_location": vehicle.current_location,
                "destination": vehicle.destination,
                "start_time": vehicle.started_at,
                "end_time": now,
            }

            self._transition(db, vehicle, VehicleState.RETURNING, VehicleState.AVAILABLE, {
                "driver_id": None,
                "driver_name": None,
                "destination": None,
                "assigned_at": None,
                "started_at": None,
                "returned_at": now,
            })
            if driver_id:
                crud.driver.set_current_vehicle_if(
                    db, driver_id=driver_id, expected=vehicle.id, vehicle_id=None
                )

            if trip["start_time"] and trip["driver_id"] and trip["destination"]:
                trip["duration"] = trip_duration_minutes(trip["start_time"], now)
                crud.trip_history.add(db, **trip)
            else:
                logger.warning("Vehicle %s completed without trip data; history not recorded", vehicle_id)
        except Exception:
            db.rollback()
            raise

        logger.info("Trip completed for vehicle %s", vehicle_id)
        return self._finish(db, vehicle_id)

    def update_details(
        self,
        db: Session,
        ctx: SessionContext,
        *,
        vehicle_id: str,
        values: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> Vehicle:
        """Edit warehouse or location without touching the status.

        Keyed on `expected_version` when the caller sends the version it saw,
        otherwise on the version read here.
        """
        self._require_master(ctx)
        try:
            vehicle = self._load_vehicle(db, vehicle_id)
            version = expected_version if expected_version is not None else vehicle.version
            if not crud.vehicle.update_if(
                db,
                vehicle_id=vehicle.id,
                expected_status=vehicle.status,
                expected_version=version,
                values=values,
            ):
                raise StateConflict(f"Vehicle {vehicle.id} was modified by another user")
        except Exception:
            db.rollback()
            raise
        logger.info("Vehicle %s details updated by %s", vehicle_id, ctx.uid)
        return self._finish(db, vehicle_id)


lifecycle = VehicleLifecycle()
