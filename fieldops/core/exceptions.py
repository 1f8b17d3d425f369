"""
Domain exceptions for field attendance and weapon custody.

Every error carries a stable ``kind`` (what the device shows and what clients
branch on) and the HTTP status the API layer answers with. None of them is
retried automatically; the caller decides whether to retry.
"""
from fastapi import status


class FieldOpsError(Exception):
    """Base class for all workflow, custody and access errors."""

    kind = "FieldOpsError"
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Field operation failed"

    def __init__(self, detail: str = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


# --- Geolocation (I/O, retryable by the user) ---


class GeolocationError(FieldOpsError):
    kind = "GeolocationError"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Could not obtain a position fix"


class GeolocationUnavailable(GeolocationError):
    kind = "GeolocationUnavailable"
    default_detail = "Position is unavailable on this device"


class GeolocationTimeout(GeolocationError):
    kind = "GeolocationTimeout"
    status_code = status.HTTP_504_GATEWAY_TIMEOUT
    default_detail = "Timed out waiting for a position fix"


class GeolocationDenied(GeolocationError):
    kind = "GeolocationDenied"
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Location permission was denied"


# --- Persistence ---


class PersistenceWriteFailed(FieldOpsError):
    kind = "PersistenceWriteFailed"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Could not save to the data store, please retry"


# --- Validation (state unchanged) ---


class ValidationError(FieldOpsError):
    kind = "ValidationError"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = "Invalid input"


class MissingJustification(ValidationError):
    kind = "ValidationMissingJustification"
    default_detail = "Ammunition is short: a justification note is required"


class DuplicateCheckIn(FieldOpsError):
    kind = "DuplicateCheckIn"
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Guard already has an open attendance record"


class NoOpenAttendanceRecord(FieldOpsError):
    kind = "NoOpenAttendanceRecord"
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Guard has no open attendance record"


class ConcurrentHandover(FieldOpsError):
    kind = "ConcurrentHandover"
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Weapon ammunition changed since this handover started"


class InvalidTransition(FieldOpsError):
    kind = "InvalidTransition"
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Action not allowed in the current state"


class LocationRequired(FieldOpsError):
    kind = "LocationRequired"
    status_code = status.HTTP_409_CONFLICT
    default_detail = "A fresh position fix is required"


# --- Access control ---


class AccessDenied(FieldOpsError):
    kind = "AccessDenied"
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Role is not allowed to perform this action"


class PasswordChangeRequired(AccessDenied):
    kind = "PasswordChangeRequired"
    default_detail = "Password must be changed before continuing"


class GuardNotFound(FieldOpsError):
    kind = "GuardNotFound"
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "No guard is linked to this account"


class GuardInactive(AccessDenied):
    kind = "GuardInactive"
    default_detail = "Guard is not active"
