"""Client-facing booking endpoints."""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field, field_validator

from apps.api.deps import get_availability_service, get_client_service, get_reservation_service
from core.utils_datetime import MINUTES_PER_DAY, format_hhmm, parse_hhmm
from domain.enums import BillingType
from domain.errors import NotFoundError
from domain.models import (
    AppointmentCancelRequest,
    AppointmentCreate,
    AppointmentRecord,
    AppointmentRescheduleRequest,
    AvailableTimesResponse,
    ClientRecord,
    ClientUpsert,
    ProfessionalInfo,
    ServiceInfo,
)
from services.availability_service import AvailabilityService
from services.client_service import ClientService
from services.reservation_service import ReservationService


router = APIRouter(prefix="/booking", tags=["booking"])


class AppointmentRequest(BaseModel):
    """Body of a reservation request; the business comes from the path."""

    client_id: str
    service_id: str
    professional_id: str
    date: date
    start_time: str = Field(..., description="Slot start as HH:mm")
    billing_type: BillingType = BillingType.PRIVATE
    health_plan_id: Optional[str] = None

    @field_validator("start_time")
    @classmethod
    def validate_start_time(cls, v: str) -> str:
        minutes = parse_hhmm(v)
        if minutes >= MINUTES_PER_DAY:
            raise ValueError("Start time must be within the day")
        return format_hhmm(minutes)


class AppointmentCreatedResponse(BaseModel):
    appointment_id: str
    appointment: AppointmentRecord


class OpenDatesResponse(BaseModel):
    dates: List[date]


def _appointment_in_business(
    reservations: ReservationService,
    business_id: str,
    appointment_id: str,
) -> AppointmentRecord:
    appointment = reservations.get_appointment(appointment_id)
    if appointment.business_id != business_id:
        raise NotFoundError(f"Appointment {appointment_id} not found", {"appointment_id": appointment_id})
    return appointment


# ============================================================================
# AVAILABILITY & CATALOG
# ============================================================================

@router.get("/{business_id}/available-times", response_model=AvailableTimesResponse)
def get_available_times(
    business_id: str,
    professional_id: str = Query(..., description="Professional to book"),
    service_id: str = Query(..., description="Service to book"),
    date: date = Query(..., description="Date in the business timezone (YYYY-MM-DD)"),
    availability: AvailabilityService = Depends(get_availability_service),
):
    """
    Bookable start times for a professional, service and date.

    An empty list is a normal answer. The times are a hint; the reservation
    itself re-checks the slot.
    """
    times = availability.get_available_times(business_id, professional_id, service_id, date)
    return AvailableTimesResponse(
        date=date,
        professional_id=professional_id,
        service_id=service_id,
        times=times,
    )


@router.get("/{business_id}/open-dates", response_model=OpenDatesResponse)
def get_open_dates(
    business_id: str,
    professional_id: str = Query(...),
    start: date = Query(..., description="First date to check"),
    days: int = Query(31, ge=1, le=366, description="Number of dates to check"),
    availability: AvailabilityService = Depends(get_availability_service),
):
    """Dates on which the professional works, for greying out a calendar."""
    return OpenDatesResponse(dates=availability.get_open_dates(business_id, professional_id, start, days))


@router.get("/{business_id}/services", response_model=List[ServiceInfo])
def list_services(
    business_id: str,
    health_plan_id: Optional[str] = Query(None, description="Only services accepting this plan"),
    availability: AvailabilityService = Depends(get_availability_service),
):
    return availability.list_services(business_id, health_plan_id=health_plan_id)


@router.get("/{business_id}/services/{service_id}/professionals", response_model=List[ProfessionalInfo])
def list_professionals(
    business_id: str,
    service_id: str,
    availability: AvailabilityService = Depends(get_availability_service),
):
    return availability.list_professionals(business_id, service_id)


# ============================================================================
# APPOINTMENTS
# ============================================================================

@router.post(
    "/{business_id}/appointments",
    response_model=AppointmentCreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_appointment(
    business_id: str,
    body: AppointmentRequest,
    reservations: ReservationService = Depends(get_reservation_service),
):
    """
    Reserve a slot.

    Errors:
        400 input_invalid, 404 not_found,
        409 slot_unavailable / client_limit_exceeded / entity_inactive,
        503 store_unavailable (retryable)
    """
    command = AppointmentCreate(business_id=business_id, **body.model_dump())
    record = reservations.reserve(command)
    return AppointmentCreatedResponse(appointment_id=record.id, appointment=record)


@router.post("/{business_id}/appointments/{appointment_id}/cancel", response_model=AppointmentRecord)
def cancel_appointment(
    business_id: str,
    appointment_id: str,
    body: AppointmentCancelRequest,
    reservations: ReservationService = Depends(get_reservation_service),
):
    """Cancel an appointment; the record is kept with status canceled."""
    _appointment_in_business(reservations, business_id, appointment_id)
    return reservations.cancel(appointment_id, canceled_by=body.canceled_by, client_phone=body.client_phone)


@router.post(
    "/{business_id}/appointments/{appointment_id}/reschedule",
    response_model=AppointmentCreatedResponse,
)
def reschedule_appointment(
    business_id: str,
    appointment_id: str,
    body: AppointmentRescheduleRequest,
    reservations: ReservationService = Depends(get_reservation_service),
):
    """Move an appointment to another slot atomically."""
    _appointment_in_business(reservations, business_id, appointment_id)
    record = reservations.reschedule(appointment_id, body.date, body.start_time)
    return AppointmentCreatedResponse(appointment_id=record.id, appointment=record)


@router.get("/{business_id}/active-appointment", response_model=Optional[AppointmentRecord])
def get_active_appointment(
    business_id: str,
    phone: str = Query(..., description="Client phone, any format"),
    reservations: ReservationService = Depends(get_reservation_service),
):
    """The client's scheduled appointment, or null."""
    return reservations.get_active_appointment(business_id, phone)


# ============================================================================
# CLIENTS
# ============================================================================

@router.post("/{business_id}/clients", response_model=ClientRecord)
def upsert_client(
    business_id: str,
    body: ClientUpsert,
    clients: ClientService = Depends(get_client_service),
):
    """Create the client, or refresh the one registered with the same phone."""
    return clients.upsert(business_id, body)


@router.get("/{business_id}/clients", response_model=ClientRecord)
def get_client_by_phone(
    business_id: str,
    phone: str = Query(...),
    clients: ClientService = Depends(get_client_service),
):
    client = clients.find_by_phone(business_id, phone)
    if client is None:
        raise NotFoundError("Client not found", {"business_id": business_id})
    return client
