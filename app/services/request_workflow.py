"""
Driver vehicle requests: PENDING -> APPROVED | REJECTED.

Approval and the vehicle assignment it triggers commit together or not at
all, so a request is never APPROVED without its vehicle being ASSIGNED.
"""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from app import crud
from app.core.config import settings
from app.core.errors import ERROR_MESSAGES, NotFoundError, PermissionDenied, StateConflict
from app.models.driver import DriverRole
from app.models.vehicle import VehicleState
from app.models.vehicle_request import RequestStatus, VehicleRequest
from app.schemas.session import SessionContext
from app.schemas.vehicle_request import VehicleRequestCreate
from app.services.lifecycle import VehicleLifecycle, lifecycle as default_lifecycle

logger = logging.getLogger(__name__)


class RequestWorkflow:
    def __init__(self, lifecycle: VehicleLifecycle = default_lifecycle):
        self.lifecycle = lifecycle

    def _require_master(self, ctx: SessionContext) -> None:
        if not ctx.is_master:
            raise PermissionDenied(ERROR_MESSAGES["PERMISSION_DENIED"])

    def _load_request(self, db: Session, request_id: str) -> VehicleRequest:
        request = crud.vehicle_request.get(db, id=request_id)
        if not request:
            raise NotFoundError("Vehicle request not found")
        return request

    def create_request(
        self,
        db: Session,
        ctx: SessionContext,
        request_in: VehicleRequestCreate,
        *,
        now: Optional[datetime] = None,
    ) -> VehicleRequest:
        """Submit a request for a vehicle that is AVAILABLE right now.

        The availability check is advisory; approval re-checks it atomically.
        """
        if ctx.role != DriverRole.DRIVER:
            raise PermissionDenied("Only drivers can request vehicles")

        vehicle = crud.vehicle.get(db, id=request_in.vehicle_id)
        if not vehicle:
            raise NotFoundError(ERROR_MESSAGES["VEHICLE_NOT_FOUND"])
        if vehicle.status != VehicleState.AVAILABLE:
            raise StateConflict(f"Vehicle {vehicle.id} is not available")

        request = VehicleRequest(
            vehicle_id=vehicle.id,
            driver_id=ctx.uid,
            driver_name=ctx.name,
            destination=request_in.destination,
            reason=request_in.reason,
            status=RequestStatus.PENDING,
            requested_at=now or datetime.utcnow(),
        )
        db.add(request)
        db.commit()
        db.refresh(request)
        logger.info("Driver %s requested vehicle %s", ctx.uid, vehicle.id)
        return request

    def approve_request(
        self,
        db: Session,
        ctx: SessionContext,
        request_id: str,
        *,
        now: Optional[datetime] = None,
    ) -> VehicleRequest:
        """Approve a PENDING request and assign its vehicle in one transaction."""
        self._require_master(ctx)
        now = now or datetime.utcnow()
        try:
            request = self._load_request(db, request_id)
            if request.status != RequestStatus.PENDING:
                raise StateConflict(f"Request {request_id} is already {request.status.value}")

            if not crud.vehicle_request.resolve_if_pending(db, request_id=request_id, values={
                "status": RequestStatus.APPROVED,
                "responded_at": now,
                "responded_by": ctx.uid,
            }):
                raise StateConflict(f"Request {request_id} was resolved by another user")

            self.lifecycle.assign_vehicle(
                db,
                ctx,
                vehicle_id=request.vehicle_id,
                driver_id=request.driver_id,
                destination=request.destination,
                now=now,
                commit=False,
            )
            db.commit()
        except Exception:
            db.rollback()
            logger.warning("Approval of request %s failed; request left unchanged", request_id)
            raise

        logger.info("Request %s approved by %s", request_id, ctx.uid)
        return self._load_request(db, request_id)

    def reject_request(
        self,
        db: Session,
        ctx: SessionContext,
        request_id: str,
        *,
        now: Optional[datetime] = None,
    ) -> VehicleRequest:
        self._require_master(ctx)
        try:
            request = self._load_request(db, request_id)
            if request.status != RequestStatus.PENDING:
                raise StateConflict(f"Request {request_id} is already {request.status.value}")
            if not crud.vehicle_request.resolve_if_pending(db, request_id=request_id, values={
                "status": RequestStatus.REJECTED,
                "responded_at": now or datetime.utcnow(),
                "responded_by": ctx.uid,
            }):
                raise StateConflict(f"Request {request_id} was resolved by another user")
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info("Request %s rejected by %s", request_id, ctx.uid)
        return self._load_request(db, request_id)

    def list_requests(
        self,
        db: Session,
        ctx: SessionContext,
        *,
        status: Optional[RequestStatus] = None,
    ) -> List[VehicleRequest]:
        """Masters see every request; drivers only their own."""
        if ctx.is_master:
            return crud.vehicle_request.get_multi_by_status(
                db, status=status, limit=settings.REQUESTS_LIST_LIMIT
            )
        return crud.vehicle_request.get_multi_by_driver(
            db, driver_id=ctx.uid, status=status, limit=settings.REQUESTS_LIST_LIMIT
        )

    def pending_count(self, db: Session) -> int:
        return crud.vehicle_request.count_pending(db)


workflow = RequestWorkflow()
