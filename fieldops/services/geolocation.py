"""
Geolocation collaborator.

The guard's device owns the GPS. The backend sees a position either as a fix
the device posted or as the error the device's location API reported.
"""
import logging
from typing import Optional, Protocol

from fieldops.core.exceptions import (
    GeolocationDenied,
    GeolocationError,
    GeolocationTimeout,
    GeolocationUnavailable,
)
from fieldops.services.geofence import Coordinates

_log = logging.getLogger(__name__)

# Error codes as reported by browser/mobile location APIs
DEVICE_ERROR_KINDS = {
    "PERMISSION_DENIED": GeolocationDenied,
    "POSITION_UNAVAILABLE": GeolocationUnavailable,
    "TIMEOUT": GeolocationTimeout,
}


class GeolocationProvider(Protocol):
    async def get_current_position(self, timeout_seconds: float, high_accuracy: bool = True) -> Coordinates:
        """Return a fix or raise a GeolocationError subclass."""
        ...


def geolocation_error_for(code: str, message: Optional[str] = None) -> GeolocationError:
    """Map a device error code to the matching exception (unknown codes count as unavailable)."""
    error_cls = DEVICE_ERROR_KINDS.get(code.upper(), GeolocationUnavailable)
    return error_cls(message)


class DeviceReportedPosition:
    """
    A position (or failure) the device already resolved and posted with the request.
    """

    def __init__(self, coordinates: Optional[Coordinates] = None, error_code: Optional[str] = None,
                 error_message: Optional[str] = None):
        if coordinates is None and error_code is None:
            error_code = "POSITION_UNAVAILABLE"
        self.coordinates = coordinates
        self.error_code = error_code
        self.error_message = error_message

    async def get_current_position(self, timeout_seconds: float, high_accuracy: bool = True) -> Coordinates:
        if self.error_code is not None:
            _log.debug("device reported geolocation error %s", self.error_code)
            raise geolocation_error_for(self.error_code, self.error_message)
        return self.coordinates
