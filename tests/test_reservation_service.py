"""Tests for reserving, canceling and rescheduling appointments."""
import threading
import pytest
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from db.models_sqlalchemy import Appointment, AuditLog, Business, Client, Service
from db.repository import BookingRepository
from domain.enums import AppointmentStatus, BillingType
from domain.errors import (
    ClientLimitExceededError,
    EntityInactiveError,
    InputInvalidError,
    NotFoundError,
    SlotUnavailableError,
)
from integrations.notifications.hooks import BackgroundNotifier
from services.reservation_service import KeyedLock, ReservationService


class FailingHook:
    """Notification hook whose subsystem is down."""

    def on_reservation_confirmed(self, appointment):
        raise ConnectionError("reminder service unreachable")

    def on_reservation_canceled(self, appointment_id):
        raise ConnectionError("reminder service unreachable")


def _scheduled(session_factory, professional_id):
    with session_factory() as session:
        stmt = select(Appointment).where(
            Appointment.professional_id == professional_id,
            Appointment.status == AppointmentStatus.SCHEDULED.value,
        )
        return list(session.scalars(stmt))


@pytest.mark.integration
class TestReserve:
    """Test reserving a slot."""

    def test_reserve_success(self, clinic, reservation_service, create_client, make_command, monday):
        """Test a free slot becomes a scheduled appointment."""
        client = create_client()

        appointment = reservation_service.reserve(make_command(client.id, "09:00"))

        assert appointment.id is not None
        assert appointment.status == AppointmentStatus.SCHEDULED
        assert appointment.date == monday
        assert appointment.start_time == "09:00"
        assert appointment.duration_minutes == 30
        assert appointment.billing_type == BillingType.PRIVATE
        assert appointment.client_id == client.id

    def test_reserve_writes_audit_entry(self, clinic, session_factory, reservation_service, create_client, make_command):
        """Test each reservation is recorded in the audit log."""
        client = create_client()
        appointment = reservation_service.reserve(make_command(client.id))

        with session_factory() as session:
            entries = list(session.scalars(select(AuditLog).where(AuditLog.entity_id == appointment.id)))

        assert [e.action for e in entries] == ["appointment_created"]
        assert entries[0].details["start_time"] == "09:00"

    def test_duration_snapshot(self, clinic, session_factory, reservation_service, create_client, make_command):
        """Test changing the service duration later keeps the booked duration."""
        client = create_client()
        appointment = reservation_service.reserve(make_command(client.id))

        with session_factory() as session, session.begin():
            session.get(Service, clinic["consulta_id"]).duration_minutes = 90

        stored = reservation_service.get_appointment(appointment.id)
        assert stored.duration_minutes == 30

    def test_taken_slot_rejected(self, clinic, reservation_service, create_client, make_command):
        """Test a second client cannot take a booked slot."""
        first = create_client(phone="11911111111")
        second = create_client(name="João Pereira", phone="11922222222")
        reservation_service.reserve(make_command(first.id, "09:00"))

        with pytest.raises(SlotUnavailableError) as exc_info:
            reservation_service.reserve(make_command(second.id, "09:00"))

        assert exc_info.value.retryable

    def test_overlapping_slot_rejected(self, clinic, reservation_service, create_client, make_command):
        """Test a 60 minute booking cannot overlap an existing 30 minute one."""
        first = create_client(phone="11911111111")
        second = create_client(name="João Pereira", phone="11922222222")
        reservation_service.reserve(make_command(first.id, "10:00"))

        with pytest.raises(SlotUnavailableError):
            reservation_service.reserve(make_command(second.id, "09:30", service_id=clinic["avaliacao_id"]))

    def test_slot_outside_hours_rejected(self, clinic, reservation_service, create_client, make_command):
        """Test a time the schedule does not offer is unavailable."""
        client = create_client()

        with pytest.raises(SlotUnavailableError):
            reservation_service.reserve(make_command(client.id, "12:00"))

    def test_started_slot_rejected(self, clinic, reservation_service, create_client, make_command, monday):
        """Test a slot already under way today cannot be reserved."""
        client = create_client()
        now = datetime(monday.year, monday.month, monday.day, 14, 10)

        with pytest.raises(SlotUnavailableError):
            reservation_service.reserve(make_command(client.id, "14:00"), now=now)

    def test_unknown_client(self, clinic, reservation_service, make_command):
        """Test an unknown client reference is not found."""
        with pytest.raises(NotFoundError):
            reservation_service.reserve(make_command("missing-client"))

    def test_client_of_other_business(self, clinic, session_factory, reservation_service, make_command):
        """Test a client registered with another business cannot book here."""
        with session_factory() as session, session.begin():
            session.add(Business(id="biz-other", name="Estúdio Vizinho", schedule={}))
            session.add(Client(id="client-other", business_id="biz-other", name="Paula Reis", phone="5511955554444"))

        with pytest.raises(NotFoundError):
            reservation_service.reserve(make_command("client-other", "10:00"))

        assert _scheduled(session_factory, clinic["ana_id"]) == []

    def test_inactive_service(self, clinic, reservation_service, create_client, make_command, set_status):
        """Test a service disabled after selection cannot be booked."""
        client = create_client()
        set_status(Service, clinic["consulta_id"], "inactive")

        with pytest.raises(EntityInactiveError):
            reservation_service.reserve(make_command(client.id))

    def test_health_plan_billing(self, clinic, reservation_service, create_client, make_command):
        """Test a covered service is billed to the client's plan."""
        client = create_client(health_plan_id=clinic["plan_id"])

        appointment = reservation_service.reserve(
            make_command(client.id, billing_type=BillingType.HEALTH_PLAN)
        )

        assert appointment.billing_type == BillingType.HEALTH_PLAN
        assert appointment.health_plan_id == clinic["plan_id"]

    def test_health_plan_not_covering_service(self, clinic, reservation_service, create_client, make_command):
        """Test plan billing is refused for a service the plan does not cover."""
        client = create_client(health_plan_id=clinic["plan_id"])

        with pytest.raises(InputInvalidError, match="not covered"):
            reservation_service.reserve(
                make_command(client.id, service_id=clinic["avaliacao_id"], billing_type=BillingType.HEALTH_PLAN)
            )


@pytest.mark.integration
class TestClientLimit:
    """Test the limit on scheduled appointments per client."""

    def test_second_appointment_rejected(self, clinic, reservation_service, create_client, make_command, monday):
        """Test a client holding one scheduled appointment cannot book another."""
        client = create_client()
        reservation_service.reserve(make_command(client.id, "09:00"))

        with pytest.raises(ClientLimitExceededError):
            reservation_service.reserve(make_command(client.id, "10:00", date=monday + timedelta(days=1)))

    def test_canceled_appointment_frees_limit(self, clinic, reservation_service, create_client, make_command):
        """Test canceling lets the client book again."""
        client = create_client()
        first = reservation_service.reserve(make_command(client.id, "09:00"))
        reservation_service.cancel(first.id)

        second = reservation_service.reserve(make_command(client.id, "10:00"))

        assert second.is_scheduled

    def test_business_limit_override(self, clinic, session_factory, reservation_service, create_client, make_command):
        """Test a business allowing two appointments accepts a second one."""
        with session_factory() as session, session.begin():
            session.get(Business, clinic["business_id"]).client_active_limit = 2
        client = create_client()
        reservation_service.reserve(make_command(client.id, "09:00"))

        second = reservation_service.reserve(make_command(client.id, "10:00"))

        assert second.is_scheduled
        with pytest.raises(ClientLimitExceededError):
            reservation_service.reserve(make_command(client.id, "11:00"))


@pytest.mark.integration
class TestConcurrency:
    """Test concurrent reservations of the same slot."""

    def test_one_winner_per_slot(self, clinic, session_factory, reservation_service, create_client, make_command):
        """Test N clients racing for one slot produce one appointment and N-1 conflicts."""
        attempts = 8
        clients = [create_client(name=f"Cliente {i}", phone=f"119{i:08d}") for i in range(attempts)]
        barrier = threading.Barrier(attempts)
        outcomes = []
        outcomes_lock = threading.Lock()

        def attempt(client_id):
            barrier.wait()
            try:
                result = reservation_service.reserve(make_command(client_id, "15:00"))
            except SlotUnavailableError as e:
                result = e
            with outcomes_lock:
                outcomes.append(result)

        threads = [threading.Thread(target=attempt, args=(c.id,)) for c in clients]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        winners = [o for o in outcomes if not isinstance(o, SlotUnavailableError)]
        assert len(outcomes) == attempts
        assert len(winners) == 1
        assert len(_scheduled(session_factory, clinic["ana_id"])) == 1

    def test_overlapping_durations_race(self, clinic, session_factory, reservation_service, create_client, make_command):
        """Test racing overlapping bookings never leave overlapping appointments."""
        first = create_client(phone="11911111111")
        second = create_client(name="João Pereira", phone="11922222222")
        commands = [
            make_command(first.id, "10:00", service_id=clinic["avaliacao_id"]),
            make_command(second.id, "10:30"),
        ]
        barrier = threading.Barrier(len(commands))

        def attempt(command):
            barrier.wait()
            try:
                reservation_service.reserve(command)
            except SlotUnavailableError:
                pass

        threads = [threading.Thread(target=attempt, args=(c,)) for c in commands]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        booked = _scheduled(session_factory, clinic["ana_id"])
        assert len(booked) == 1

    def test_one_client_racing_two_professionals(
        self, clinic, session_factory, reservation_service, create_client, make_command
    ):
        """Test a client booking Ana and Bruno at once ends with one appointment."""
        client = create_client()
        commands = [
            make_command(client.id, "10:00", professional_id=clinic["ana_id"]),
            make_command(client.id, "10:00", professional_id=clinic["bruno_id"]),
        ]
        barrier = threading.Barrier(len(commands))
        outcomes = []
        outcomes_lock = threading.Lock()

        def attempt(command):
            barrier.wait()
            try:
                result = reservation_service.reserve(command)
            except ClientLimitExceededError as e:
                result = e
            with outcomes_lock:
                outcomes.append(result)

        threads = [threading.Thread(target=attempt, args=(c,)) for c in commands]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        refused = [o for o in outcomes if isinstance(o, ClientLimitExceededError)]
        assert len(outcomes) == 2
        assert len(refused) == 1
        booked = _scheduled(session_factory, clinic["ana_id"]) + _scheduled(session_factory, clinic["bruno_id"])
        assert [a.client_id for a in booked] == [client.id]

    def test_limit_counted_again_after_insert(
        self, clinic, session_factory, reservation_service, create_client, make_command, monkeypatch
    ):
        """Test a stale limit read is caught before commit and nothing is written."""
        client = create_client()
        reservation_service.reserve(make_command(client.id, "10:00", professional_id=clinic["ana_id"]))

        count = BookingRepository.count_client_scheduled
        reads = []

        def stale_first_read(self, client_id, exclude_id=None):
            reads.append(client_id)
            if len(reads) == 1:
                return 0
            return count(self, client_id, exclude_id=exclude_id)

        monkeypatch.setattr(BookingRepository, "count_client_scheduled", stale_first_read)

        with pytest.raises(ClientLimitExceededError):
            reservation_service.reserve(make_command(client.id, "10:00", professional_id=clinic["bruno_id"]))

        assert _scheduled(session_factory, clinic["bruno_id"]) == []

    def test_cancel_and_reschedule_race(
        self, clinic, session_factory, reservation_service, create_client, make_command, monday
    ):
        """Test canceling and moving one appointment at once lets only one of them through."""
        client = create_client()
        original = reservation_service.reserve(make_command(client.id, "09:00"))
        barrier = threading.Barrier(2)
        outcomes = []
        outcomes_lock = threading.Lock()

        def attempt(action):
            barrier.wait()
            try:
                result = action()
            except InputInvalidError as e:
                result = e
            with outcomes_lock:
                outcomes.append(result)

        actions = [
            lambda: reservation_service.cancel(original.id),
            lambda: reservation_service.reschedule(original.id, monday + timedelta(days=1), "14:00"),
        ]
        threads = [threading.Thread(target=attempt, args=(a,)) for a in actions]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        succeeded = [o for o in outcomes if not isinstance(o, InputInvalidError)]
        assert len(outcomes) == 2
        assert len(succeeded) == 1
        with session_factory() as session:
            scheduled = list(session.scalars(
                select(Appointment).where(
                    Appointment.client_id == client.id,
                    Appointment.status == AppointmentStatus.SCHEDULED.value,
                )
            ))
        assert len(scheduled) == (0 if succeeded[0].id == original.id else 1)

    def test_stale_cancel_loses(self, clinic, session_factory, create_client, monday):
        """Test a writer that read the appointment as scheduled cannot cancel it twice."""
        client = create_client()
        with session_factory() as session, session.begin():
            row = BookingRepository(session).add_appointment(
                business_id=clinic["business_id"],
                client_id=client.id,
                service_id=clinic["consulta_id"],
                professional_id=clinic["ana_id"],
                date=monday,
                start_minute=540,
                duration_minutes=30,
            )
            appointment_id = row.id

        canceled_at = datetime(2030, 1, 6, 15, 0)
        with session_factory() as first, session_factory() as second:
            first_row = first.get(Appointment, appointment_id)
            second_row = second.get(Appointment, appointment_id)
            assert first_row.status == second_row.status == AppointmentStatus.SCHEDULED.value

            assert BookingRepository(first).cancel_scheduled(first_row, "client", canceled_at)
            first.commit()

            assert not BookingRepository(second).cancel_scheduled(second_row, "reschedule", canceled_at)
            second.rollback()

        assert _scheduled(session_factory, clinic["ana_id"]) == []

    def test_reschedule_to_other_day_advances_both_ledgers(
        self, clinic, session_factory, reservation_service, create_client, make_command, monday
    ):
        """Test moving to another day advances the old and the new day's ledger."""
        client = create_client()
        original = reservation_service.reserve(make_command(client.id, "09:00"))
        tuesday = monday + timedelta(days=1)
        with session_factory() as session, session.begin():
            repository = BookingRepository(session)
            before = (
                repository.read_ledger_version(clinic["ana_id"], monday),
                repository.read_ledger_version(clinic["ana_id"], tuesday),
            )

        reservation_service.reschedule(original.id, tuesday, "14:00")

        with session_factory() as session, session.begin():
            repository = BookingRepository(session)
            after = (
                repository.read_ledger_version(clinic["ana_id"], monday),
                repository.read_ledger_version(clinic["ana_id"], tuesday),
            )
        assert after == (before[0] + 1, before[1] + 1)

    def test_unique_index_rejects_duplicate_scheduled_slot(self, clinic, session_factory, create_client, monday):
        """Test the store itself refuses two scheduled appointments at one start."""
        first = create_client(phone="11911111111")
        second = create_client(name="João Pereira", phone="11922222222")
        fields = {
            "business_id": clinic["business_id"],
            "service_id": clinic["consulta_id"],
            "professional_id": clinic["ana_id"],
            "date": monday,
            "start_minute": 540,
            "duration_minutes": 30,
        }

        with session_factory() as session, session.begin():
            BookingRepository(session).add_appointment(client_id=first.id, **fields)

        with pytest.raises(IntegrityError):
            with session_factory() as session, session.begin():
                BookingRepository(session).add_appointment(client_id=second.id, **fields)

    def test_canceled_row_does_not_hold_slot_in_store(self, clinic, session_factory, create_client, monday):
        """Test the uniqueness only applies to scheduled appointments."""
        client = create_client()
        fields = {
            "business_id": clinic["business_id"],
            "client_id": client.id,
            "service_id": clinic["consulta_id"],
            "professional_id": clinic["ana_id"],
            "date": monday,
            "start_minute": 540,
            "duration_minutes": 30,
        }

        with session_factory() as session, session.begin():
            repository = BookingRepository(session)
            repository.add_appointment(status=AppointmentStatus.CANCELED.value, **fields)
            repository.add_appointment(**fields)

        assert len(_scheduled(session_factory, clinic["ana_id"])) == 1

    def test_stale_ledger_version_loses(self, clinic, session_factory, monday):
        """Test a writer holding an outdated ledger version cannot advance it."""
        with session_factory() as session, session.begin():
            repository = BookingRepository(session)
            seen = repository.read_ledger_version(clinic["ana_id"], monday)
            assert repository.bump_ledger_version(clinic["ana_id"], monday, seen)
            assert not repository.bump_ledger_version(clinic["ana_id"], monday, seen)

    def test_keyed_lock_released(self):
        """Test per-key locks are dropped once nobody holds them."""
        locks = KeyedLock()

        with locks.hold(("prof", "2030-01-07")):
            assert len(locks) == 1

        assert len(locks) == 0

    def test_keyed_lock_timeout(self):
        """Test waiting too long for a busy key is reported as a retryable conflict."""
        locks = KeyedLock()
        held = threading.Event()
        release = threading.Event()

        def holder():
            with locks.hold("key"):
                held.set()
                release.wait(5)

        thread = threading.Thread(target=holder)
        thread.start()
        held.wait(5)
        try:
            with pytest.raises(SlotUnavailableError):
                with locks.hold("key", timeout=0.05):
                    pass
        finally:
            release.set()
            thread.join()


@pytest.mark.integration
class TestCancel:
    """Test canceling appointments."""

    def test_cancel_frees_slot(self, clinic, availability_service, reservation_service, create_client, make_command, monday):
        """Test a canceled appointment's time is offered again."""
        client = create_client()
        appointment = reservation_service.reserve(make_command(client.id, "09:00"))
        before = availability_service.get_available_times(
            clinic["business_id"], clinic["ana_id"], clinic["consulta_id"], monday
        )

        canceled = reservation_service.cancel(appointment.id, client_phone="(11) 98765-4321")
        after = availability_service.get_available_times(
            clinic["business_id"], clinic["ana_id"], clinic["consulta_id"], monday
        )

        assert "09:00" not in before
        assert "09:00" in after
        assert canceled.status == AppointmentStatus.CANCELED
        assert canceled.canceled_by == "client"
        assert canceled.canceled_at is not None

    def test_cancel_keeps_record(self, clinic, reservation_service, create_client, make_command):
        """Test canceling keeps the appointment for history."""
        client = create_client()
        appointment = reservation_service.reserve(make_command(client.id))
        reservation_service.cancel(appointment.id, canceled_by="business")

        stored = reservation_service.get_appointment(appointment.id)

        assert stored.status == AppointmentStatus.CANCELED
        assert stored.canceled_by == "business"

    def test_cancel_twice(self, clinic, reservation_service, create_client, make_command):
        """Test canceling a canceled appointment is rejected."""
        client = create_client()
        appointment = reservation_service.reserve(make_command(client.id))
        reservation_service.cancel(appointment.id)

        with pytest.raises(InputInvalidError, match="already canceled"):
            reservation_service.cancel(appointment.id)

    def test_cancel_with_wrong_phone(self, clinic, reservation_service, create_client, make_command):
        """Test a client cannot cancel someone else's appointment."""
        client = create_client()
        appointment = reservation_service.reserve(make_command(client.id))

        with pytest.raises(InputInvalidError, match="does not belong"):
            reservation_service.cancel(appointment.id, client_phone="11900000000")

        assert reservation_service.get_appointment(appointment.id).is_scheduled

    def test_cancel_unknown(self, clinic, reservation_service):
        """Test canceling a missing appointment is not found."""
        with pytest.raises(NotFoundError):
            reservation_service.cancel("missing")


@pytest.mark.integration
class TestReschedule:
    """Test moving appointments."""

    def test_reschedule_moves_appointment(self, clinic, reservation_service, create_client, make_command, monday):
        """Test the old appointment is canceled and a new one scheduled."""
        client = create_client()
        original = reservation_service.reserve(make_command(client.id, "09:00"))

        moved = reservation_service.reschedule(original.id, monday + timedelta(days=1), "14:00")

        old = reservation_service.get_appointment(original.id)
        assert moved.id != original.id
        assert moved.is_scheduled
        assert moved.date == monday + timedelta(days=1)
        assert moved.start_time == "14:00"
        assert old.status == AppointmentStatus.CANCELED
        assert old.canceled_by == "reschedule"

    def test_reschedule_into_own_time(self, clinic, reservation_service, create_client, make_command, monday):
        """Test moving by half an hour may overlap the appointment being moved."""
        client = create_client()
        original = reservation_service.reserve(
            make_command(client.id, "09:00", service_id=clinic["avaliacao_id"])
        )

        moved = reservation_service.reschedule(original.id, monday, "09:30")

        assert moved.start_time == "09:30"
        assert moved.duration_minutes == 60

    def test_reschedule_to_same_slot(self, clinic, reservation_service, create_client, make_command, monday):
        """Test rescheduling onto the same start does not collide with itself."""
        client = create_client()
        original = reservation_service.reserve(make_command(client.id, "09:00"))

        moved = reservation_service.reschedule(original.id, monday, "09:00")

        assert moved.id != original.id
        assert moved.start_time == "09:00"

    def test_failed_reschedule_keeps_original(
        self, clinic, session_factory, reservation_service, create_client, make_command, monday
    ):
        """Test a taken target slot leaves the original appointment scheduled."""
        client = create_client()
        other = create_client(name="João Pereira", phone="11922222222")
        original = reservation_service.reserve(make_command(client.id, "09:00"))
        reservation_service.reserve(make_command(other.id, "11:00"))

        with pytest.raises(SlotUnavailableError):
            reservation_service.reschedule(original.id, monday, "11:00")

        assert reservation_service.get_appointment(original.id).is_scheduled
        assert len(_scheduled(session_factory, clinic["ana_id"])) == 2

    def test_reschedule_canceled(self, clinic, reservation_service, create_client, make_command, monday):
        """Test a canceled appointment cannot be moved."""
        client = create_client()
        original = reservation_service.reserve(make_command(client.id, "09:00"))
        reservation_service.cancel(original.id)

        with pytest.raises(InputInvalidError, match="already canceled"):
            reservation_service.reschedule(original.id, monday, "10:00")

    def test_reschedule_invalid_time(self, clinic, reservation_service, create_client, make_command, monday):
        """Test a malformed target time is invalid input."""
        client = create_client()
        original = reservation_service.reserve(make_command(client.id, "09:00"))

        with pytest.raises(InputInvalidError):
            reservation_service.reschedule(original.id, monday, "25:00")


@pytest.mark.integration
class TestQueries:
    """Test appointment lookups."""

    def test_active_appointment_by_phone(self, clinic, reservation_service, create_client, make_command):
        """Test the active appointment is found from any phone format."""
        client = create_client()
        appointment = reservation_service.reserve(make_command(client.id))

        active = reservation_service.get_active_appointment(clinic["business_id"], "+55 11 98765-4321")

        assert active.id == appointment.id

    def test_no_active_appointment(self, clinic, reservation_service, create_client):
        """Test clients without bookings have none."""
        create_client()

        assert reservation_service.get_active_appointment(clinic["business_id"], "11987654321") is None
        assert reservation_service.list_active_appointments(clinic["business_id"], "11900000000") == []


@pytest.mark.integration
class TestNotifications:
    """Test reservation notifications."""

    def test_confirm_and_cancel_notified(
        self, clinic, notifier, recording_hook, reservation_service, create_client, make_command
    ):
        """Test the hook hears about confirmed and canceled reservations."""
        client = create_client()
        appointment = reservation_service.reserve(make_command(client.id))
        reservation_service.cancel(appointment.id)

        notifier.shutdown(wait=True)

        assert recording_hook.confirmed == [appointment.id]
        assert recording_hook.canceled == [appointment.id]

    def test_reschedule_notified(
        self, clinic, notifier, recording_hook, reservation_service, create_client, make_command, monday
    ):
        """Test a move retracts the old reminders and requests new ones."""
        client = create_client()
        original = reservation_service.reserve(make_command(client.id, "09:00"))
        moved = reservation_service.reschedule(original.id, monday, "10:00")

        notifier.shutdown(wait=True)

        assert recording_hook.confirmed == [original.id, moved.id]
        assert recording_hook.canceled == [original.id]

    def test_failed_reservation_not_notified(
        self, clinic, notifier, recording_hook, reservation_service, create_client, make_command
    ):
        """Test nothing is announced when the reservation fails."""
        client = create_client()

        with pytest.raises(SlotUnavailableError):
            reservation_service.reserve(make_command(client.id, "12:00"))

        notifier.shutdown(wait=True)
        assert recording_hook.confirmed == []

    def test_hook_failure_does_not_fail_booking(self, clinic, session_factory, fixed_now, create_client, make_command):
        """Test an unreachable reminder subsystem never undoes a reservation."""
        failing = BackgroundNotifier(FailingHook(), max_workers=1)
        service = ReservationService(session_factory, failing, clock=lambda: fixed_now)
        client = create_client()

        appointment = service.reserve(make_command(client.id))
        service.cancel(appointment.id)
        failing.shutdown(wait=True)

        assert service.get_appointment(appointment.id).status == AppointmentStatus.CANCELED
