from .base import CRUDBase
from .crud_driver import driver
from .crud_vehicle import vehicle
from .crud_vehicle_request import vehicle_request
from .crud_trip_history import trip_history

__all__ = [
    'CRUDBase',
    'driver',
    'vehicle',
    'vehicle_request',
    'trip_history',
]
