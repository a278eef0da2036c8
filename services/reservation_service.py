"""
Reservation Service.

Turns a chosen slot into a committed appointment, and cancels or moves
existing appointments.

Every write is serialized per ``(professional_id, date)``:
    1. a process-local keyed lock,
    2. a version check on the professional's day ledger row,
    3. a partial unique index on scheduled ``(professional_id, date, start_minute)``.
The slot is recomputed from live data inside the same transaction that
inserts the appointment; the list shown to the client is only a hint.

Reserves also hold a per-client lock, and the client limit is counted
again after the insert, so one client racing on two professionals or two
dates cannot go over the limit. Cancellation is a conditional update on
``status = scheduled``, so a cancel and a reschedule of the same
appointment cannot both succeed.
"""
import logging
import threading
from contextlib import ExitStack, contextmanager
from datetime import date, datetime
from typing import Callable, Dict, Hashable, Iterable, Iterator, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import sessionmaker

from core.config import settings
from core.logging import LogContext
from core.utils_datetime import format_hhmm, get_current_datetime
from db.models_sqlalchemy import Appointment
from db.repository import BookingRepository
from db.session import SessionLocal
from domain.enums import AppointmentStatus, AuditAction, BillingType
from domain.errors import (
    ClientLimitExceededError,
    InputInvalidError,
    NotFoundError,
    SlotUnavailableError,
    StoreUnavailableError,
)
from domain.models import AppointmentCreate, AppointmentRecord, BusinessInfo, ClientRecord, ServiceInfo
from integrations.notifications.hooks import BackgroundNotifier
from services.availability_service import compute_available_times, load_booking_context
from services.booking_validation import normalize_phone, parse_booking_time, phones_match


logger = logging.getLogger(__name__)


# Seconds a writer waits for another writer on the same professional/date
LOCK_TIMEOUT_SECONDS = 10.0


class KeyedLock:
    """One mutex per key, created on demand and dropped when unused."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, List] = {}

    @contextmanager
    def hold(self, key: Hashable, timeout: float = LOCK_TIMEOUT_SECONDS) -> Iterator[None]:
        """
        Hold the lock for ``key``.

        Raises:
            SlotUnavailableError: If the lock is not obtained within ``timeout``
        """
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            if not entry[0].acquire(timeout=timeout):
                raise SlotUnavailableError("Another booking is in progress for this day, try again")
            try:
                yield
            finally:
                entry[0].release()
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    @contextmanager
    def hold_all(self, keys: Iterable[Hashable], timeout: float = LOCK_TIMEOUT_SECONDS) -> Iterator[None]:
        """Hold the locks for every key, acquired in sorted key order."""
        with ExitStack() as stack:
            for key in sorted(set(keys), key=repr):
                stack.enter_context(self.hold(key, timeout))
            yield

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


@contextmanager
def translate_store_errors(action: str) -> Iterator[None]:
    """Map SQLAlchemy failures of a write to booking errors."""
    try:
        yield
    except IntegrityError as e:
        logger.warning(f"{action}: constraint rejected the write: {e.orig}")
        raise SlotUnavailableError("This time was just taken, choose another one") from e
    except OperationalError as e:
        logger.error(f"{action}: store unavailable: {e}")
        raise StoreUnavailableError("The booking store is unavailable, try again") from e


def client_active_limit(business: BusinessInfo) -> int:
    """Scheduled appointments a client may hold, falling back to the configured default."""
    return business.client_active_limit or settings.client_active_limit


def day_lock_key(professional_id: str, target: date) -> Tuple[str, str, str]:
    return ("day", professional_id, target.isoformat())


def client_lock_key(client_id: str) -> Tuple[str, str, str]:
    return ("client", client_id, "")


class ReservationService:
    """Atomic reserve, cancel and reschedule of appointments."""

    _locks = KeyedLock()

    def __init__(
        self,
        session_factory: Optional[sessionmaker] = None,
        notifier: Optional[BackgroundNotifier] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize ReservationService.

        Args:
            session_factory: Factory for store sessions (defaults to the app's)
            notifier: Dispatcher for reminder hooks
            clock: Time source for the availability re-check (defaults to the system clock)
        """
        self.session_factory = session_factory or SessionLocal
        self.notifier = notifier or BackgroundNotifier()
        self.clock = clock

    def _now(self, now: Optional[datetime]) -> Optional[datetime]:
        if now is not None:
            return now
        return self.clock() if self.clock else None

    # ------------------------------------------------------------------
    # Reserve
    # ------------------------------------------------------------------

    def reserve(self, command: AppointmentCreate, now: Optional[datetime] = None) -> AppointmentRecord:
        """
        Reserve a slot.

        Args:
            command: Business, client, service, professional, date and start time
            now: Current time, for tests; defaults to the clock

        Returns:
            The scheduled appointment

        Raises:
            NotFoundError: Unknown business, client, service or professional
            InputInvalidError: Professional does not perform the service, or
                the health plan cannot be used
            EntityInactiveError: Service or professional was disabled
            ClientLimitExceededError: Client already holds the allowed scheduled appointments
            SlotUnavailableError: The slot is no longer free
            StoreUnavailableError: The store failed; safe to retry
        """
        context = LogContext(
            logger,
            business_id=command.business_id,
            professional_id=command.professional_id,
            date=command.date.isoformat(),
            start_time=command.start_time,
        )

        keys = [day_lock_key(command.professional_id, command.date), client_lock_key(command.client_id)]
        with context, self._locks.hold_all(keys):
            with translate_store_errors("reserve"):
                with self.session_factory() as session, session.begin():
                    record = self._reserve_in(BookingRepository(session), command, self._now(now))

        context.log("info", f"Appointment {record.id} scheduled", client_id=record.client_id)
        self.notifier.reservation_confirmed(record)
        return record

    def _reserve_in(
        self,
        repository: BookingRepository,
        command: AppointmentCreate,
        now: Optional[datetime],
        editing: Optional[Appointment] = None,
        action: AuditAction = AuditAction.APPOINTMENT_CREATED,
    ) -> AppointmentRecord:
        business, professional, service = load_booking_context(
            repository, command.business_id, command.professional_id, command.service_id
        )

        client = repository.get_client(command.client_id)
        if client is None or client.business_id != business.id:
            raise NotFoundError(f"Client {command.client_id} not found", {"client_id": command.client_id})

        billing_type, health_plan_id = self._resolve_billing(business, service, client, command)

        editing_id = editing.id if editing is not None else None
        limit = client_active_limit(business)
        if repository.count_client_scheduled(client.id, exclude_id=editing_id) >= limit:
            raise ClientLimitExceededError(
                "Client already has a scheduled appointment",
                {"client_id": client.id, "limit": limit},
            )

        seen_version = repository.read_ledger_version(professional.id, command.date)
        moves_day = editing is not None and editing.date != command.date
        if moves_day:
            seen_old_version = repository.read_ledger_version(editing.professional_id, editing.date)

        times = compute_available_times(
            repository,
            business,
            professional,
            service,
            command.date,
            now=now,
            exclude_appointment_id=editing_id,
        )
        if command.start_time not in times:
            raise SlotUnavailableError(
                f"{command.start_time} on {command.date} is no longer available",
                {"date": command.date.isoformat(), "start_time": command.start_time},
            )

        if editing is not None:
            self._cancel_row(repository, editing, canceled_by="reschedule")

        row = repository.add_appointment(
            business_id=business.id,
            client_id=client.id,
            service_id=service.id,
            professional_id=professional.id,
            date=command.date,
            start_minute=command.start_minute,
            duration_minutes=service.duration_minutes,
            status=AppointmentStatus.SCHEDULED.value,
            billing_type=billing_type.value,
            health_plan_id=health_plan_id,
        )

        if repository.count_client_scheduled(client.id) > limit:
            raise ClientLimitExceededError(
                "Client already has a scheduled appointment",
                {"client_id": client.id, "limit": limit},
            )

        if not repository.bump_ledger_version(professional.id, command.date, seen_version):
            raise SlotUnavailableError("The schedule changed while booking, choose the time again")
        if moves_day and not repository.bump_ledger_version(
            editing.professional_id, editing.date, seen_old_version
        ):
            raise SlotUnavailableError("The schedule changed while moving the appointment, try again")

        details = {
            "professional_id": professional.id,
            "date": command.date.isoformat(),
            "start_time": command.start_time,
        }
        if editing_id is not None:
            details["previous_appointment_id"] = editing_id
        repository.add_audit(action.value, "appointment", row.id, actor=client.id, details=details)

        return AppointmentRecord.model_validate(row)

    @staticmethod
    def _resolve_billing(
        business: BusinessInfo,
        service: ServiceInfo,
        client: ClientRecord,
        command: AppointmentCreate,
    ) -> Tuple[BillingType, Optional[str]]:
        if command.billing_type == BillingType.PRIVATE:
            return BillingType.PRIVATE, None

        plan_id = command.health_plan_id or client.health_plan_id
        if not business.accepts_health_plans or plan_id is None:
            raise InputInvalidError("Health plan billing is not available", {"business_id": business.id})
        if plan_id not in {p.id for p in business.accepted_health_plans}:
            raise InputInvalidError("Health plan is not accepted by this business", {"health_plan_id": plan_id})
        if plan_id not in service.accepted_health_plan_ids:
            raise InputInvalidError(
                f"Service '{service.name}' is not covered by this health plan",
                {"health_plan_id": plan_id, "service_id": service.id},
            )
        return BillingType.HEALTH_PLAN, plan_id

    # ------------------------------------------------------------------
    # Cancel
    # ------------------------------------------------------------------

    def cancel(
        self,
        appointment_id: str,
        canceled_by: str = "client",
        client_phone: Optional[str] = None,
    ) -> AppointmentRecord:
        """
        Cancel a scheduled appointment. The row is kept with status canceled.

        Args:
            appointment_id: Appointment to cancel
            canceled_by: Who canceled (client, business, ...)
            client_phone: When given, must be the phone of the owning client

        Raises:
            NotFoundError: Unknown appointment
            InputInvalidError: Phone mismatch, or the appointment is not scheduled
            StoreUnavailableError: The store failed; safe to retry
        """
        current = self.get_appointment(appointment_id)
        key = day_lock_key(current.professional_id, current.date)

        with self._locks.hold(key), translate_store_errors("cancel"):
            with self.session_factory() as session, session.begin():
                repository = BookingRepository(session)
                row = self._load(repository, appointment_id)

                if client_phone is not None:
                    client = repository.get_client(row.client_id)
                    if client is None or not phones_match(client.phone, client_phone):
                        raise InputInvalidError(
                            "Appointment does not belong to this phone",
                            {"appointment_id": appointment_id},
                        )
                self._ensure_scheduled(row)

                seen_version = repository.read_ledger_version(row.professional_id, row.date)
                self._cancel_row(repository, row, canceled_by)
                if not repository.bump_ledger_version(row.professional_id, row.date, seen_version):
                    raise SlotUnavailableError("The schedule changed while canceling, try again")

                repository.add_audit(
                    AuditAction.APPOINTMENT_CANCELED.value,
                    "appointment",
                    row.id,
                    actor=canceled_by,
                )
                record = AppointmentRecord.model_validate(row)

        logger.info(f"Appointment {appointment_id} canceled by {canceled_by}")
        self.notifier.reservation_canceled(appointment_id)
        return record

    # ------------------------------------------------------------------
    # Reschedule
    # ------------------------------------------------------------------

    def reschedule(
        self,
        appointment_id: str,
        target: date,
        start_time: str,
        now: Optional[datetime] = None,
    ) -> AppointmentRecord:
        """
        Move an appointment: cancel it and reserve the new slot in one transaction.

        The appointment being moved does not block its own new slot and does
        not count against the client limit. If the new slot cannot be taken,
        the original appointment stays scheduled.

        Returns:
            The new scheduled appointment
        """
        start_minute = parse_booking_time(start_time)
        current = self.get_appointment(appointment_id)
        keys = [
            day_lock_key(current.professional_id, current.date),
            day_lock_key(current.professional_id, target),
            client_lock_key(current.client_id),
        ]

        with self._locks.hold_all(keys), translate_store_errors("reschedule"):
            with self.session_factory() as session, session.begin():
                repository = BookingRepository(session)
                row = self._load(repository, appointment_id)
                self._ensure_scheduled(row)

                command = AppointmentCreate(
                    business_id=row.business_id,
                    client_id=row.client_id,
                    service_id=row.service_id,
                    professional_id=row.professional_id,
                    date=target,
                    start_time=format_hhmm(start_minute),
                    billing_type=row.billing_type,
                    health_plan_id=row.health_plan_id,
                )
                record = self._reserve_in(
                    repository,
                    command,
                    self._now(now),
                    editing=row,
                    action=AuditAction.APPOINTMENT_RESCHEDULED,
                )

        logger.info(f"Appointment {appointment_id} moved to {record.id} on {target} {record.start_time}")
        self.notifier.reservation_canceled(appointment_id)
        self.notifier.reservation_confirmed(record)
        return record

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_active_appointments(self, business_id: str, phone: str) -> List[AppointmentRecord]:
        """Scheduled appointments of the client with ``phone``, earliest first."""
        normalized = normalize_phone(phone)
        try:
            with self.session_factory() as session:
                repository = BookingRepository(session)
                client = repository.get_client_by_phone(business_id, normalized)
                if client is None:
                    return []
                return repository.list_client_scheduled(client.id)
        except OperationalError as e:
            raise StoreUnavailableError("The booking store is unavailable, try again") from e

    def get_active_appointment(self, business_id: str, phone: str) -> Optional[AppointmentRecord]:
        """Earliest scheduled appointment of the client with ``phone``, or None."""
        scheduled = self.list_active_appointments(business_id, phone)
        return scheduled[0] if scheduled else None

    def get_appointment(self, appointment_id: str) -> AppointmentRecord:
        try:
            with self.session_factory() as session:
                row = self._load(BookingRepository(session), appointment_id)
                return AppointmentRecord.model_validate(row)
        except OperationalError as e:
            raise StoreUnavailableError("The booking store is unavailable, try again") from e

    # ------------------------------------------------------------------

    @staticmethod
    def _load(repository: BookingRepository, appointment_id: str) -> Appointment:
        row = repository.get_appointment(appointment_id)
        if row is None:
            raise NotFoundError(f"Appointment {appointment_id} not found", {"appointment_id": appointment_id})
        return row

    @staticmethod
    def _ensure_scheduled(row: Appointment) -> None:
        if row.status == AppointmentStatus.CANCELED.value:
            raise InputInvalidError("Appointment is already canceled", {"appointment_id": row.id})
        if row.status != AppointmentStatus.SCHEDULED.value:
            raise InputInvalidError(
                f"Appointment is {row.status} and can no longer change",
                {"appointment_id": row.id},
            )

    @staticmethod
    def _cancel_row(repository: BookingRepository, row: Appointment, canceled_by: str) -> None:
        canceled_at = get_current_datetime("UTC")
        if not repository.cancel_scheduled(row, canceled_by, canceled_at):
            raise InputInvalidError("Appointment is already canceled", {"appointment_id": row.id})
