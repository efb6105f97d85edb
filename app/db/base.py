# Import all the models, so that Base has them before being
# imported by Alembic or used for create_all
from app.db.base_class import Base  # noqa
from app.models.driver import Driver  # noqa
from app.models.vehicle import Vehicle  # noqa
from app.models.vehicle_request import VehicleRequest  # noqa
from app.models.trip_history import TripHistory  # noqa
