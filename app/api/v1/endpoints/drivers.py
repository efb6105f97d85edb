from typing import List
from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.orm import Session

from app import crud, schemas
from app.api import deps
from app.core import events
from app.core.config import settings
from app.core.errors import NotFoundError, PermissionDenied, StateConflict

router = APIRouter(prefix="/driver", tags=["driver"])

# Changing these can make a driver unassignable
ACCOUNT_FIELDS = ("role", "is_active")

def _get_or_404(db: Session, driver_id: str):
    driver = crud.driver.get(db, id=driver_id)
    if not driver:
        raise NotFoundError("The driver with this ID does not exist in the system")
    return driver

@router.get("", response_model=List[schemas.Driver])
def read_drivers(
    db: Session = Depends(deps.get_db),
    ctx: schemas.SessionContext = Depends(deps.get_current_master),
    skip: int = 0,
    limit: int = 100,
):
    """
    Retrieve drivers.
    """
    return crud.driver.get_multi(db, skip=skip, limit=limit)

@router.post("", response_model=schemas.Driver, status_code=status.HTTP_201_CREATED)
def create_driver(
    *,
    db: Session = Depends(deps.get_db),
    ctx: schemas.SessionContext = Depends(deps.get_current_master),
    feed: events.ChangeFeed = Depends(deps.get_change_feed),
    background_tasks: BackgroundTasks,
    driver_in: schemas.DriverCreate,
):
    """
    Create the profile for an account that already exists at the identity provider.
    """
    if crud.driver.get(db, id=driver_in.id):
        raise StateConflict("A profile for this user already exists in the system.")
    if crud.driver.get_by_email(db, email=driver_in.email):
        raise StateConflict("The driver with this email already exists in the system.")

    driver = crud.driver.create(db=db, obj_in=driver_in)
    background_tasks.add_task(feed.publish, events.ChangeEvent(events.USERS, driver.id))
    return driver

@router.get("/available", response_model=List[schemas.Driver])
def read_available_drivers(
    db: Session = Depends(deps.get_db),
    ctx: schemas.SessionContext = Depends(deps.get_current_master),
    skip: int = 0,
    limit: int = 100,
):
    """
    Active drivers with no vehicle, i.e. who can be assigned one.
    """
    return crud.driver.get_multi_available(db, skip=skip, limit=limit)

@router.get("/me", response_model=schemas.Driver)
def read_me(
    db: Session = Depends(deps.get_db),
    ctx: schemas.SessionContext = Depends(deps.get_session_context),
):
    """
    The caller's own profile.
    """
    return _get_or_404(db, ctx.uid)

@router.put("/me/push-token", response_model=schemas.Driver)
def update_push_token(
    *,
    db: Session = Depends(deps.get_db),
    ctx: schemas.SessionContext = Depends(deps.get_session_context),
    token_in: schemas.PushTokenUpdate,
):
    """
    Store the caller's push-notification token.
    """
    driver = _get_or_404(db, ctx.uid)
    return crud.driver.update(db=db, db_obj=driver, obj_in={"fcm_token": token_in.fcm_token})

@router.get("/{driver_id}", response_model=schemas.Driver)
def read_driver(
    driver_id: str,
    db: Session = Depends(deps.get_db),
    ctx: schemas.SessionContext = Depends(deps.get_session_context),
):
    """
    Get driver by ID.
    """
    if driver_id != ctx.uid and not ctx.is_master:
        raise PermissionDenied("You can only view your own profile")
    return _get_or_404(db, driver_id)

@router.get("/{driver_id}/trips", response_model=List[schemas.TripHistory])
def read_driver_trips(
    driver_id: str,
    db: Session = Depends(deps.get_db),
    ctx: schemas.SessionContext = Depends(deps.get_session_context),
    limit: int = settings.TRIP_HISTORY_LIMIT,
):
    """
    A driver's completed trips, newest first.
    """
    if driver_id != ctx.uid and not ctx.is_master:
        raise PermissionDenied("You can only view your own trip history")
    return crud.trip_history.get_multi_by_driver(db, driver_id=driver_id, limit=limit)

@router.put("/{driver_id}", response_model=schemas.Driver)
def update_driver(
    *,
    db: Session = Depends(deps.get_db),
    ctx: schemas.SessionContext = Depends(deps.get_current_master),
    feed: events.ChangeFeed = Depends(deps.get_change_feed),
    background_tasks: BackgroundTasks,
    driver_id: str,
    driver_in: schemas.DriverUpdate,
):
    """
    Update a driver's profile, role or active flag.
    Role and active flag are locked while the driver holds a vehicle.
    """
    driver = _get_or_404(db, driver_id)
    changes = driver_in.model_dump(exclude_unset=True)
    if any(key in changes and changes[key] != getattr(driver, key) for key in ACCOUNT_FIELDS):
        if driver.current_vehicle_id is not None:
            raise StateConflict(
                f"Driver {driver_id} has vehicle {driver.current_vehicle_id}; complete the trip first"
            )
        if not crud.driver.update_if_unassigned(db, driver_id=driver.id, values=changes):
            db.rollback()
            raise StateConflict(f"Driver {driver_id} was assigned a vehicle")
        db.commit()
        db.refresh(driver)
    else:
        driver = crud.driver.update(db=db, db_obj=driver, obj_in=changes)
    background_tasks.add_task(feed.publish, events.ChangeEvent(events.USERS, driver.id))
    return driver
