"""
Read-side helpers for dashboards: status counts and the trip timeline.

The minutes-left figures are rough fixed budgets minus elapsed time, not
predictions, and are always flagged as estimates.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from app import crud
from app.core.config import settings
from app.models.vehicle import Vehicle, VehicleState
from app.schemas.vehicle import DashboardStats, Timeline, TimelineStep, VEHICLE_STATUS_LABELS


def dashboard_stats(db: Session) -> DashboardStats:
    counts = crud.vehicle.count_by_status(db)
    return DashboardStats(
        total_vehicles=sum(counts.values()),
        available=counts.get(VehicleState.AVAILABLE, 0),
        assigned=counts.get(VehicleState.ASSIGNED, 0),
        in_transit=counts.get(VehicleState.IN_TRANSIT, 0),
        returning=counts.get(VehicleState.RETURNING, 0),
        pending_requests=crud.vehicle_request.count_pending(db),
    )


def estimate_minutes_left(since: datetime, budget: int, now: datetime) -> int:
    elapsed = int((now - since).total_seconds() // 60)
    return max(budget - elapsed, settings.MIN_ESTIMATE_MINUTES)


def _with_estimate(step: TimelineStep, minutes: int) -> TimelineStep:
    step.minutes_left_estimate = minutes
    step.time_left = f"~{minutes} min left (estimate)"
    return step


def build_timeline(vehicle: Vehicle, now: Optional[datetime] = None) -> Timeline:
    """Start at the warehouse, reach the destination, return to the warehouse."""
    now = now or datetime.utcnow()
    status = vehicle.status

    start = TimelineStep(
        label="Start",
        location=vehicle.warehouse,
        timestamp=vehicle.started_at,
        status="completed" if vehicle.started_at else "pending",
    )

    destination = TimelineStep(
        label="Destination",
        location=vehicle.destination or "Not set",
        timestamp=vehicle.reached_destination_at,
        status="pending",
    )
    if status == VehicleState.IN_TRANSIT:
        destination.status = "active"
        if vehicle.started_at and not vehicle.reached_destination_at:
            _with_estimate(destination, estimate_minutes_left(
                vehicle.started_at, settings.OUTBOUND_ESTIMATE_MINUTES, now
            ))
    elif status in (VehicleState.RETURNING, VehicleState.AVAILABLE):
        destination.status = "completed"

    ret = TimelineStep(
        label="Return",
        location=vehicle.warehouse,
        timestamp=vehicle.returned_at,
        status="pending",
    )
    if status == VehicleState.RETURNING:
        ret.status = "active"
        if vehicle.reached_destination_at and not vehicle.returned_at:
            _with_estimate(ret, estimate_minutes_left(
                vehicle.reached_destination_at, settings.RETURN_ESTIMATE_MINUTES, now
            ))
    elif status == VehicleState.AVAILABLE:
        ret.status = "completed"

    return Timeline(
        vehicle_id=vehicle.id,
        status=status,
        status_label=VEHICLE_STATUS_LABELS[status],
        steps=[start, destination, ret],
    )
