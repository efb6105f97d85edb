from sqlalchemy.orm import Session

from app.models.trip_history import TripHistory

class CRUDTripHistory:
    """Trip history is append-only: there is no update or delete."""

    def __init__(self, model=TripHistory):
        self.model = model

    def add(self, db: Session, **fields) -> TripHistory:
        """Stage a new record in the caller's transaction."""
        db_obj = self.model(**fields)
        db.add(db_obj)
        return db_obj

    def get_multi_by_driver(
        self, db: Session, *, driver_id: str, limit: int = 20
    ) -> list[TripHistory]:
        return (
            db.query(self.model)
            .filter(TripHistory.driver_id == driver_id)
            .order_by(TripHistory.created_at.desc())
            .limit(limit)
            .all()
        )

    def get_multi_by_vehicle(
        self, db: Session, *, vehicle_id: str, limit: int = 20
    ) -> list[TripHistory]:
        return (
            db.query(self.model)
            .filter(TripHistory.vehicle_id == vehicle_id)
            .order_by(TripHistory.created_at.desc())
            .limit(limit)
            .all()
        )

# Create a singleton instance
trip_history = CRUDTripHistory()
