"""Pytest configuration and fixtures for booking core tests."""
import threading
from datetime import date, datetime

import pytest

from db.models_sqlalchemy import BlockedDateRange, Business, Professional, Service
from db.session import create_engine, create_session_factory, init_db
from domain.enums import BillingType, BusinessCategory, EntityStatus
from domain.models import AppointmentCreate, ClientUpsert
from graph.build_graph import create_booking_flow
from integrations.notifications.hooks import BackgroundNotifier
from services.availability_service import AvailabilityService
from services.client_service import ClientService
from services.reservation_service import ReservationService


BUSINESS_ID = "biz-clinica"
ANA_ID = "prof-ana"
BRUNO_ID = "prof-bruno"
CONSULTA_ID = "svc-consulta"
AVALIACAO_ID = "svc-avaliacao"
PLAN_ID = "plan-unimed"

WEEKDAY_HOURS = {
    "enabled": True,
    "intervals": [{"start": "09:00", "end": "12:00"}, {"start": "13:00", "end": "18:00"}],
}

CLINIC_SCHEDULE = {
    "days": {
        "monday": WEEKDAY_HOURS,
        "tuesday": WEEKDAY_HOURS,
        "wednesday": WEEKDAY_HOURS,
        "thursday": WEEKDAY_HOURS,
        "friday": WEEKDAY_HOURS,
        "saturday": {"enabled": True, "intervals": [{"start": "09:00", "end": "13:00"}]},
        "sunday": {"enabled": False, "intervals": []},
    }
}

# Bruno works shorter Mondays and never on Tuesdays
BRUNO_HOURS = {
    "days": {
        "monday": {"enabled": True, "intervals": [{"start": "10:00", "end": "16:00"}]},
        "tuesday": {"enabled": False, "intervals": []},
    }
}

# Monday 2030-01-07 is bookable; "now" is the Sunday before at noon
MONDAY = date(2030, 1, 7)
NOW = datetime(2030, 1, 6, 12, 0)

# 09:00-12:00 and 13:00-18:00 at 30 minute steps
MONDAY_30_MIN_TIMES = [
    "09:00", "09:30", "10:00", "10:30", "11:00", "11:30",
    "13:00", "13:30", "14:00", "14:30", "15:00", "15:30",
    "16:00", "16:30", "17:00", "17:30",
]


class RecordingHook:
    """Notification hook that remembers what it was told."""

    def __init__(self):
        self.confirmed = []
        self.canceled = []
        self._lock = threading.Lock()

    def on_reservation_confirmed(self, appointment):
        with self._lock:
            self.confirmed.append(appointment.id)

    def on_reservation_canceled(self, appointment_id):
        with self._lock:
            self.canceled.append(appointment_id)


@pytest.fixture(scope="function")
def db_engine(tmp_path):
    """File-backed SQLite engine, so worker threads share one database."""
    engine = create_engine(f"sqlite:///{tmp_path / 'booking.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest.fixture(scope="function")
def clinic(session_factory):
    """Seed a medical clinic with two professionals and two services."""
    with session_factory() as session, session.begin():
        session.add(
            Business(
                id=BUSINESS_ID,
                name="Clínica Bem Estar",
                category=BusinessCategory.MEDICAL_CLINIC.value,
                timezone="America/Sao_Paulo",
                schedule=CLINIC_SCHEDULE,
                accepted_health_plans=[{"id": PLAN_ID, "name": "Unimed"}],
            )
        )
        ana = Professional(id=ANA_ID, business_id=BUSINESS_ID, name="Ana Souza")
        bruno = Professional(id=BRUNO_ID, business_id=BUSINESS_ID, name="Bruno Lima", work_hours=BRUNO_HOURS)
        session.add_all([ana, bruno])
        session.add_all([
            Service(
                id=CONSULTA_ID,
                business_id=BUSINESS_ID,
                name="Consulta",
                duration_minutes=30,
                price=150.0,
                accepted_health_plan_ids=[PLAN_ID],
                professionals=[ana, bruno],
            ),
            Service(
                id=AVALIACAO_ID,
                business_id=BUSINESS_ID,
                name="Avaliação",
                duration_minutes=60,
                price=220.0,
                professionals=[ana],
            ),
        ])

    return {
        "business_id": BUSINESS_ID,
        "ana_id": ANA_ID,
        "bruno_id": BRUNO_ID,
        "consulta_id": CONSULTA_ID,
        "avaliacao_id": AVALIACAO_ID,
        "plan_id": PLAN_ID,
    }


@pytest.fixture(scope="function")
def monday():
    return MONDAY


@pytest.fixture(scope="function")
def monday_times():
    """Bookable 30 minute starts of an empty Monday."""
    return list(MONDAY_30_MIN_TIMES)


@pytest.fixture(scope="function")
def fixed_now():
    return NOW


@pytest.fixture(scope="function")
def recording_hook():
    return RecordingHook()


@pytest.fixture(scope="function")
def notifier(recording_hook):
    notifier = BackgroundNotifier(recording_hook, max_workers=1)
    yield notifier
    notifier.shutdown(wait=True)


@pytest.fixture(scope="function")
def availability_service(session_factory, fixed_now):
    return AvailabilityService(session_factory, clock=lambda: fixed_now)


@pytest.fixture(scope="function")
def client_service(session_factory):
    return ClientService(session_factory)


@pytest.fixture(scope="function")
def reservation_service(session_factory, notifier, fixed_now):
    return ReservationService(session_factory, notifier, clock=lambda: fixed_now)


@pytest.fixture(scope="function")
def booking_flow(session_factory, notifier, fixed_now):
    return create_booking_flow(session_factory, notifier, clock=lambda: fixed_now)


@pytest.fixture(scope="function")
def create_client(clinic, client_service):
    """Factory fixture to register a client of the clinic."""
    def _create(name="Maria Silva", phone="11987654321", **kwargs):
        return client_service.upsert(clinic["business_id"], ClientUpsert(name=name, phone=phone, **kwargs))
    return _create


@pytest.fixture(scope="function")
def make_command(clinic, monday):
    """Factory fixture for reservation commands with Ana's consultation on Monday."""
    def _make(client_id, start_time="09:00", **kwargs):
        data = {
            "business_id": clinic["business_id"],
            "client_id": client_id,
            "service_id": clinic["consulta_id"],
            "professional_id": clinic["ana_id"],
            "date": monday,
            "start_time": start_time,
            "billing_type": BillingType.PRIVATE,
        }
        data.update(kwargs)
        return AppointmentCreate(**data)
    return _make


@pytest.fixture(scope="function")
def add_block(clinic, session_factory):
    """Factory fixture to block a wall-clock range, business-wide by default."""
    def _add(start_at, end_at, professional_id=None, reason=None):
        with session_factory() as session, session.begin():
            session.add(
                BlockedDateRange(
                    business_id=clinic["business_id"],
                    professional_id=professional_id,
                    start_at=start_at,
                    end_at=end_at,
                    reason=reason,
                )
            )
    return _add


@pytest.fixture(scope="function")
def set_status(session_factory):
    """Factory fixture to enable or disable a service or professional."""
    def _set(model, entity_id, status):
        with session_factory() as session, session.begin():
            session.get(model, entity_id).status = EntityStatus(status).value
    return _set
