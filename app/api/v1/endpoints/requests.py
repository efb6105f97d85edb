from typing import List, Optional
from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.orm import Session

from app import schemas
from app.api import deps
from app.core import events
from app.models.vehicle_request import RequestStatus
from app.services.request_workflow import workflow

router = APIRouter(prefix="/request", tags=["request"])

@router.get("", response_model=List[schemas.VehicleRequest])
def read_requests(
    db: Session = Depends(deps.get_db),
    ctx: schemas.SessionContext = Depends(deps.get_session_context),
    status: Optional[RequestStatus] = None,
):
    """
    Masters see all requests, drivers their own; newest first.
    """
    return workflow.list_requests(db, ctx, status=status)

@router.post("", response_model=schemas.VehicleRequest, status_code=status.HTTP_201_CREATED)
def create_request(
    *,
    db: Session = Depends(deps.get_db),
    ctx: schemas.SessionContext = Depends(deps.get_session_context),
    feed: events.ChangeFeed = Depends(deps.get_change_feed),
    background_tasks: BackgroundTasks,
    request_in: schemas.VehicleRequestCreate,
):
    """
    Ask for an available vehicle.
    """
    request = workflow.create_request(db, ctx, request_in)
    background_tasks.add_task(feed.publish, events.ChangeEvent(events.VEHICLE_REQUESTS, request.id))
    return request

@router.post("/{request_id}/approve", response_model=schemas.VehicleRequest)
def approve_request(
    *,
    db: Session = Depends(deps.get_db),
    ctx: schemas.SessionContext = Depends(deps.get_current_master),
    feed: events.ChangeFeed = Depends(deps.get_change_feed),
    background_tasks: BackgroundTasks,
    request_id: str,
):
    """
    Approve a pending request and assign its vehicle. Fails with 409 if the vehicle is gone.
    """
    request = workflow.approve_request(db, ctx, request_id)
    for change in (
        events.ChangeEvent(events.VEHICLE_REQUESTS, request.id),
        events.ChangeEvent(events.VEHICLES, request.vehicle_id),
        events.ChangeEvent(events.USERS, request.driver_id),
    ):
        background_tasks.add_task(feed.publish, change)
    return request

@router.post("/{request_id}/reject", response_model=schemas.VehicleRequest)
def reject_request(
    *,
    db: Session = Depends(deps.get_db),
    ctx: schemas.SessionContext = Depends(deps.get_current_master),
    feed: events.ChangeFeed = Depends(deps.get_change_feed),
    background_tasks: BackgroundTasks,
    request_id: str,
):
    """
    Reject a pending request.
    """
    request = workflow.reject_request(db, ctx, request_id)
    background_tasks.add_task(feed.publish, events.ChangeEvent(events.VEHICLE_REQUESTS, request.id))
    return request
