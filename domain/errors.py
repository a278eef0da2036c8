"""Error taxonomy for booking operations."""

from typing import Any, Dict, Optional


class BookingError(Exception):
    """Base class for every error the booking core raises on purpose."""

    code: str = "booking_error"
    retryable: bool = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Serializable payload for API responses and session errors."""
        return {
            "code": self.code,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }


class InputInvalidError(BookingError):
    """Malformed input or an unknown reference; rejected before writing."""

    code = "input_invalid"


class NotFoundError(InputInvalidError):
    """A referenced business, professional, service, client or appointment does not exist."""

    code = "not_found"


class SlotUnavailableError(BookingError):
    """The slot lost a race or is no longer free at commit time."""

    code = "slot_unavailable"
    retryable = True


class ClientLimitExceededError(BookingError):
    """The client already holds the maximum number of scheduled appointments."""

    code = "client_limit_exceeded"


class EntityInactiveError(BookingError):
    """The selected professional or service was disabled after selection."""

    code = "entity_inactive"


class DependencyUnavailableError(BookingError):
    """An external dependency could not be reached."""

    code = "dependency_unavailable"
    retryable = True


class StoreUnavailableError(DependencyUnavailableError):
    """The authoritative store failed; the operation can be retried."""

    code = "store_unavailable"


class NotificationUnavailableError(DependencyUnavailableError):
    """The notification subsystem failed; never surfaced to booking callers."""

    code = "notification_unavailable"
