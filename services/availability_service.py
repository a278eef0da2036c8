"""
Availability facade.

Loads schedule, appointments and blocks for one professional and date and runs
them through the resolver, aggregator and generator. Results are advisory: the
reservation path recomputes them inside its own transaction at commit time.
"""
import logging
from datetime import date, datetime, timedelta
from typing import Callable, List, Optional, Tuple

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from core.config import settings
from core.utils_datetime import get_current_datetime, localize
from db.repository import BookingRepository
from db.session import SessionLocal
from domain.errors import EntityInactiveError, InputInvalidError, NotFoundError, StoreUnavailableError
from domain.models import BusinessInfo, ProfessionalInfo, ServiceInfo
from services.busy_time import collect_busy_ranges
from services.schedule_resolver import list_open_dates, resolve_open_intervals
from services.slot_generator import generate_slots


logger = logging.getLogger(__name__)


def load_business(repository: BookingRepository, business_id: str) -> BusinessInfo:
    business = repository.get_business(business_id)
    if business is None:
        raise NotFoundError(f"Business {business_id} not found", {"business_id": business_id})
    return business


def load_booking_context(
    repository: BookingRepository,
    business_id: str,
    professional_id: str,
    service_id: str,
) -> Tuple[BusinessInfo, ProfessionalInfo, ServiceInfo]:
    """
    Load and check the business, professional and service of a booking.

    Raises:
        NotFoundError: If any of them does not exist in the business
        EntityInactiveError: If the professional or service is disabled
        InputInvalidError: If the professional does not perform the service
    """
    business = load_business(repository, business_id)

    service = repository.get_service(business_id, service_id)
    if service is None:
        raise NotFoundError(f"Service {service_id} not found", {"service_id": service_id})

    professional = repository.get_professional(business_id, professional_id)
    if professional is None:
        raise NotFoundError(
            f"Professional {professional_id} not found",
            {"professional_id": professional_id},
        )

    if not service.is_active:
        raise EntityInactiveError(f"Service '{service.name}' is no longer available", {"service_id": service_id})
    if not professional.is_active:
        raise EntityInactiveError(
            f"Professional '{professional.name}' is no longer available",
            {"professional_id": professional_id},
        )
    if not service.can_be_performed_by(professional_id):
        raise InputInvalidError(
            f"Professional '{professional.name}' does not perform '{service.name}'",
            {"professional_id": professional_id, "service_id": service_id},
        )

    return business, professional, service


def granularity_for(business: BusinessInfo) -> int:
    """Slot step of a business, falling back to the configured default."""
    return business.slot_granularity_minutes or settings.slot_granularity_minutes


def compute_available_times(
    repository: BookingRepository,
    business: BusinessInfo,
    professional: ProfessionalInfo,
    service: ServiceInfo,
    target: date,
    now: Optional[datetime] = None,
    exclude_appointment_id: Optional[str] = None,
) -> List[str]:
    """
    Bookable start times for already-loaded entities.

    Args:
        repository: Repository bound to the caller's session
        business: Business the booking belongs to
        professional: Professional to book
        service: Service to book
        target: Calendar date in the business timezone
        now: Current time (defaults to the clock, in the business timezone)
        exclude_appointment_id: Appointment being edited; it does not count as busy

    Returns:
        Ascending ``HH:mm`` strings. Dates in the past or beyond the booking
        horizon yield an empty list.
    """
    now = localize(now, business.timezone) if now else get_current_datetime(business.timezone)
    today = now.date()
    if target < today or target > today + timedelta(days=settings.max_booking_horizon_days):
        return []

    open_intervals = resolve_open_intervals(business.schedule, professional.work_hours, target)
    if not open_intervals:
        return []

    busy = collect_busy_ranges(
        target,
        repository.list_scheduled_appointments(professional.id, target, exclude_id=exclude_appointment_id),
        business_blocks=repository.list_blocked_ranges(business.id, target),
        professional_blocks=repository.list_blocked_ranges(business.id, target, professional.id),
        tz_name=business.timezone,
    )

    return generate_slots(
        open_intervals,
        busy,
        duration=service.duration_minutes,
        granularity=granularity_for(business),
        now=now,
        target=target,
    )


class AvailabilityService:
    """Read-only availability and catalog queries for the booking flow."""

    def __init__(
        self,
        session_factory: Optional[sessionmaker] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.session_factory = session_factory or SessionLocal
        self.clock = clock

    def get_available_times(
        self,
        business_id: str,
        professional_id: str,
        service_id: str,
        target: date,
        now: Optional[datetime] = None,
        exclude_appointment_id: Optional[str] = None,
    ) -> List[str]:
        """Bookable start times for a professional, service and date."""
        try:
            with self.session_factory() as session:
                repository = BookingRepository(session)
                business, professional, service = load_booking_context(
                    repository, business_id, professional_id, service_id
                )
                times = compute_available_times(
                    repository,
                    business,
                    professional,
                    service,
                    target,
                    now=now or (self.clock() if self.clock else None),
                    exclude_appointment_id=exclude_appointment_id,
                )
        except OperationalError as e:
            logger.error(f"Store unavailable while computing availability: {e}")
            raise StoreUnavailableError("Could not load availability, try again") from e

        logger.debug(
            f"{len(times)} slots for professional {professional_id} on {target}",
            extra={"business_id": business_id, "service_id": service_id},
        )
        return times

    def get_open_dates(
        self,
        business_id: str,
        professional_id: str,
        start: date,
        days: Optional[int] = None,
    ) -> List[date]:
        """Dates from ``start`` on which the professional has working hours."""
        with self.session_factory() as session:
            repository = BookingRepository(session)
            business = load_business(repository, business_id)
            professional = repository.get_professional(business_id, professional_id)
            if professional is None:
                raise NotFoundError(
                    f"Professional {professional_id} not found",
                    {"professional_id": professional_id},
                )
        return list_open_dates(
            business.schedule,
            professional.work_hours,
            start,
            days if days is not None else settings.max_booking_horizon_days,
        )

    def get_business(self, business_id: str) -> BusinessInfo:
        with self.session_factory() as session:
            return load_business(BookingRepository(session), business_id)

    def list_services(self, business_id: str, health_plan_id: Optional[str] = None) -> List[ServiceInfo]:
        """Active services, optionally only those accepting ``health_plan_id``."""
        with self.session_factory() as session:
            repository = BookingRepository(session)
            load_business(repository, business_id)
            return repository.list_services(business_id, health_plan_id=health_plan_id)

    def list_professionals(self, business_id: str, service_id: str) -> List[ProfessionalInfo]:
        """Active professionals performing ``service_id``."""
        with self.session_factory() as session:
            repository = BookingRepository(session)
            if repository.get_service(business_id, service_id) is None:
                raise NotFoundError(f"Service {service_id} not found", {"service_id": service_id})
            return repository.list_professionals_for_service(business_id, service_id)
