"""
Domain errors raised by the controllers and clients.

Each error carries the HTTP status it maps to so the API layer can
translate it without knowing about individual operations.
"""


class FleetError(Exception):
    """Base class for all fleet manager errors."""
    status_code = 500
    code = "internal_error"

    def __init__(self, message: str = "Something went wrong"):
        super().__init__(message)
        self.message = message


class AuthenticationFailure(FleetError):
    """Bad credentials, inactive account or missing role. Never retried."""
    status_code = 401
    code = "authentication_failed"


class PermissionDenied(FleetError):
    status_code = 403
    code = "permission_denied"


class NotFoundError(FleetError):
    """Profile, vehicle or request document is missing."""
    status_code = 404
    code = "not_found"


class StateConflict(FleetError):
    """The transition's precondition no longer holds in the store."""
    status_code = 409
    code = "state_conflict"


class TransientNetworkError(FleetError):
    """The upstream provider could not be reached."""
    status_code = 503
    code = "service_unavailable"


class InvalidInput(FleetError):
    """A value the caller supplied is unusable (blank destination and the like)."""
    status_code = 422
    code = "invalid_value"


class ConfigurationError(FleetError):
    """The server is missing required settings; not the caller's fault."""
    status_code = 500
    code = "configuration_error"


ERROR_MESSAGES = {
    "AUTH_FAILED": "Invalid email or password",
    "NETWORK_ERROR": "Network error. Please check your connection.",
    "PERMISSION_DENIED": "You do not have permission to perform this action",
    "VEHICLE_NOT_FOUND": "Vehicle not found",
    "INVALID_STATE_TRANSITION": "Invalid vehicle state transition",
}
