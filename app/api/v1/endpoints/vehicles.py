from typing import List, Optional
from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.orm import Session

from app import crud, schemas
from app.api import deps
from app.core import events
from app.core.config import settings
from app.core.errors import ERROR_MESSAGES, NotFoundError, StateConflict
from app.models.vehicle import VehicleState
from app.services import fleet_overview
from app.services.lifecycle import lifecycle

router = APIRouter(prefix="/vehicle", tags=["vehicle"])

def _publish(background_tasks: BackgroundTasks, feed: events.ChangeFeed, *changes: events.ChangeEvent):
    # Runs after the response, i.e. after the write has committed
    for change in changes:
        background_tasks.add_task(feed.publish, change)

def _get_or_404(db: Session, vehicle_id: str):
    vehicle = crud.vehicle.get(db, id=vehicle_id)
    if not vehicle:
        raise NotFoundError(ERROR_MESSAGES["VEHICLE_NOT_FOUND"])
    return vehicle

@router.get("", response_model=List[schemas.Vehicle])
def read_vehicles(
    db: Session = Depends(deps.get_db),
    ctx: schemas.SessionContext = Depends(deps.get_session_context),
    status: Optional[VehicleState] = None,
    limit: int = settings.VEHICLES_LIST_LIMIT,
):
    """
    Retrieve vehicles, most recently updated first, optionally filtered by status.
    """
    return crud.vehicle.get_multi_by_status(db, status=status, limit=limit)

@router.post("", response_model=schemas.Vehicle, status_code=status.HTTP_201_CREATED)
def create_vehicle(
    *,
    db: Session = Depends(deps.get_db),
    ctx: schemas.SessionContext = Depends(deps.get_current_master),
    feed: events.ChangeFeed = Depends(deps.get_change_feed),
    background_tasks: BackgroundTasks,
    vehicle_in: schemas.VehicleCreate,
):
    """
    Register a new vehicle at its home warehouse.
    """
    if vehicle_in.id and crud.vehicle.get(db, id=vehicle_in.id):
        raise StateConflict("A vehicle with this ID already exists in the system.")
    vehicle = crud.vehicle.create(db=db, obj_in=vehicle_in)
    _publish(background_tasks, feed, events.ChangeEvent(events.VEHICLES, vehicle.id))
    return vehicle

@router.get("/stats", response_model=schemas.DashboardStats)
def read_stats(
    db: Session = Depends(deps.get_db),
    ctx: schemas.SessionContext = Depends(deps.get_current_master),
):
    """
    Vehicle counts per status and the number of pending requests.
    """
    return fleet_overview.dashboard_stats(db)

@router.get("/mine", response_model=Optional[schemas.Vehicle])
def read_my_vehicle(
    db: Session = Depends(deps.get_db),
    ctx: schemas.SessionContext = Depends(deps.get_session_context),
):
    """
    The vehicle currently assigned to the caller, if any.
    """
    return crud.vehicle.get_by_driver(db, driver_id=ctx.uid)

@router.get("/{vehicle_id}", response_model=schemas.Vehicle)
def read_vehicle(
    vehicle_id: str,
    db: Session = Depends(deps.get_db),
    ctx: schemas.SessionContext = Depends(deps.get_session_context),
):
    """
    Get vehicle by ID.
    """
    return _get_or_404(db, vehicle_id)

@router.get("/{vehicle_id}/timeline", response_model=schemas.Timeline)
def read_vehicle_timeline(
    vehicle_id: str,
    db: Session = Depends(deps.get_db),
    ctx: schemas.SessionContext = Depends(deps.get_session_context),
):
    """
    Trip progress with estimated minutes left. Estimates are not guarantees.
    """
    return fleet_overview.build_timeline(_get_or_404(db, vehicle_id))

@router.get("/{vehicle_id}/trips", response_model=List[schemas.TripHistory])
def read_vehicle_trips(
    vehicle_id: str,
    db: Session = Depends(deps.get_db),
    ctx: schemas.SessionContext = Depends(deps.get_current_master),
    limit: int = settings.TRIP_HISTORY_LIMIT,
):
    """
    Completed trips for a vehicle, newest first.
    """
    _get_or_404(db, vehicle_id)
    return crud.trip_history.get_multi_by_vehicle(db, vehicle_id=vehicle_id, limit=limit)

@router.put("/{vehicle_id}", response_model=schemas.Vehicle)
def update_vehicle(
    *,
    db: Session = Depends(deps.get_db),
    ctx: schemas.SessionContext = Depends(deps.get_current_master),
    feed: events.ChangeFeed = Depends(deps.get_change_feed),
    background_tasks: BackgroundTasks,
    vehicle_id: str,
    vehicle_in: schemas.VehicleUpdate,
):
    """
    Update a vehicle's warehouse or location. Status only changes through the trip operations.
    Send the `version` you last saw to get a 409 instead of overwriting a newer change.
    """
    vehicle = lifecycle.update_details(
        db, ctx,
        vehicle_id=vehicle_id,
        values=vehicle_in.model_dump(exclude_unset=True, exclude={"version"}),
        expected_version=vehicle_in.version,
    )
    _publish(background_tasks, feed, events.ChangeEvent(events.VEHICLES, vehicle.id))
    return vehicle

@router.delete("/{vehicle_id}", response_model=schemas.Vehicle)
def delete_vehicle(
    *,
    db: Session = Depends(deps.get_db),
    ctx: schemas.SessionContext = Depends(deps.get_current_master),
    feed: events.ChangeFeed = Depends(deps.get_change_feed),
    background_tasks: BackgroundTasks,
    vehicle_id: str,
):
    """
    Delete a vehicle.
    """
    vehicle = _get_or_404(db, vehicle_id)

    # Check if vehicle is out on a trip
    if vehicle.status != VehicleState.AVAILABLE:
        raise StateConflict("Cannot delete a vehicle that is assigned or on a trip.")

    vehicle_out = schemas.Vehicle.model_validate(vehicle)
    crud.vehicle.remove(db=db, id=vehicle_id)
    _publish(background_tasks, feed, events.ChangeEvent(events.VEHICLES, vehicle_id))
    return vehicle_out

@router.post("/{vehicle_id}/assign", response_model=schemas.Vehicle)
def assign_vehicle(
    *,
    db: Session = Depends(deps.get_db),
    ctx: schemas.SessionContext = Depends(deps.get_current_master),
    feed: events.ChangeFeed = Depends(deps.get_change_feed),
    background_tasks: BackgroundTasks,
    vehicle_id: str,
    assignment: schemas.AssignVehicle,
):
    """
    Assign an AVAILABLE vehicle to a driver without a vehicle.
    """
    vehicle = lifecycle.assign_vehicle(
        db, ctx, vehicle_id=vehicle_id, driver_id=assignment.driver_id, destination=assignment.destination
    )
    _publish(
        background_tasks, feed,
        events.ChangeEvent(events.VEHICLES, vehicle_id),
        events.ChangeEvent(events.USERS, assignment.driver_id),
    )
    return vehicle

@router.post("/{vehicle_id}/start-trip", response_model=schemas.Vehicle)
def start_trip(
    *,
    db: Session = Depends(deps.get_db),
    ctx: schemas.SessionContext = Depends(deps.get_session_context),
    feed: events.ChangeFeed = Depends(deps.get_change_feed),
    background_tasks: BackgroundTasks,
    vehicle_id: str,
):
    """
    ASSIGNED -> IN_TRANSIT.
    """
    vehicle = lifecycle.start_trip(db, ctx, vehicle_id=vehicle_id)
    _publish(background_tasks, feed, events.ChangeEvent(events.VEHICLES, vehicle_id))
    return vehicle

@router.post("/{vehicle_id}/start-return", response_model=schemas.Vehicle)
def start_return(
    *,
    db: Session = Depends(deps.get_db),
    ctx: schemas.SessionContext = Depends(deps.get_session_context),
    feed: events.ChangeFeed = Depends(deps.get_change_feed),
    background_tasks: BackgroundTasks,
    vehicle_id: str,
):
    """
    IN_TRANSIT -> RETURNING.
    """
    vehicle = lifecycle.start_return(db, ctx, vehicle_id=vehicle_id)
    _publish(background_tasks, feed, events.ChangeEvent(events.VEHICLES, vehicle_id))
    return vehicle

@router.post("/{vehicle_id}/complete-trip", response_model=schemas.Vehicle)
def complete_trip(
    *,
    db: Session = Depends(deps.get_db),
    ctx: schemas.SessionContext = Depends(deps.get_session_context),
    feed: events.ChangeFeed = Depends(deps.get_change_feed),
    background_tasks: BackgroundTasks,
    vehicle_id: str,
):
    """
    RETURNING -> AVAILABLE, recording the trip in the history.
    """
    vehicle = lifecycle.complete_trip(db, ctx, vehicle_id=vehicle_id)
    _publish(
        background_tasks, feed,
        events.ChangeEvent(events.VEHICLES, vehicle_id),
        events.ChangeEvent(events.TRIP_HISTORY),
        events.ChangeEvent(events.USERS),
    )
    return vehicle
