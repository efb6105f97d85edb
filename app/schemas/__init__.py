from .driver import Driver, DriverCreate, DriverUpdate, PushTokenUpdate, DriverRole
from .vehicle import (
    Vehicle, VehicleCreate, VehicleUpdate, VehicleTimestamps, VehicleState, AssignVehicle,
    DashboardStats, Timeline, TimelineStep, VEHICLE_STATUS_LABELS,
)
from .vehicle_request import VehicleRequest, VehicleRequestCreate, RequestStatus
from .trip_history import TripHistory
from .session import SessionContext, SignInRequest, SignInResult

__all__ = [
    'Driver', 'DriverCreate', 'DriverUpdate', 'PushTokenUpdate', 'DriverRole',
    'Vehicle', 'VehicleCreate', 'VehicleUpdate', 'VehicleTimestamps', 'VehicleState', 'AssignVehicle',
    'DashboardStats', 'Timeline', 'TimelineStep', 'VEHICLE_STATUS_LABELS',
    'VehicleRequest', 'VehicleRequestCreate', 'RequestStatus',
    'TripHistory',
    'SessionContext', 'SignInRequest', 'SignInResult',
]
