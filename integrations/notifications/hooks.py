"""
Outbound notification hook.

The booking core announces confirmed and canceled reservations to an external
reminder subsystem. Delivery is fire-and-forget: hooks run on a worker pool
and their failures are logged, never raised to the booking caller.
"""
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Optional, Protocol

from core.config import settings
from domain.errors import NotificationUnavailableError
from domain.models import AppointmentRecord


logger = logging.getLogger(__name__)


class NotificationHook(Protocol):
    """Receiver of reservation events."""

    def on_reservation_confirmed(self, appointment: AppointmentRecord) -> None:
        ...

    def on_reservation_canceled(self, appointment_id: str) -> None:
        ...


class LoggingNotificationHook:
    """Hook that only logs; used when no reminder subsystem is configured."""

    def on_reservation_confirmed(self, appointment: AppointmentRecord) -> None:
        logger.info(
            f"Reminders requested for appointment {appointment.id}",
            extra={
                "professional_id": appointment.professional_id,
                "date": appointment.date.isoformat(),
                "start_time": appointment.start_time,
            },
        )

    def on_reservation_canceled(self, appointment_id: str) -> None:
        logger.info(f"Reminders retracted for appointment {appointment_id}")


class BackgroundNotifier:
    """Dispatches hook calls on a thread pool."""

    def __init__(self, hook: Optional[NotificationHook] = None, max_workers: Optional[int] = None):
        self.hook = hook or LoggingNotificationHook()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or settings.notification_workers,
            thread_name_prefix="booking-notify",
        )

    def reservation_confirmed(self, appointment: AppointmentRecord) -> Optional[Future]:
        return self._submit(self.hook.on_reservation_confirmed, appointment)

    def reservation_canceled(self, appointment_id: str) -> Optional[Future]:
        return self._submit(self.hook.on_reservation_canceled, appointment_id)

    def _submit(self, fn: Callable[..., None], *args: Any) -> Optional[Future]:
        try:
            return self._executor.submit(self._run, fn, *args)
        except RuntimeError as e:
            # Executor already shut down
            logger.warning(f"Notification dropped: {e}")
            return None

    @staticmethod
    def _run(fn: Callable[..., None], *args: Any) -> None:
        try:
            fn(*args)
        except Exception as e:
            error = NotificationUnavailableError(str(e), {"hook": getattr(fn, "__name__", repr(fn))})
            logger.error(f"Notification hook failed: {error.message}", extra=error.details, exc_info=True)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
