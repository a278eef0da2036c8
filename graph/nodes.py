"""Transition functions of the booking lifecycle, one per step."""

import logging
from datetime import datetime, timezone
from typing import List

from pydantic import ValidationError

from domain.enums import BillingType, BookingStep
from domain.errors import (
    BookingError,
    ClientLimitExceededError,
    EntityInactiveError,
    InputInvalidError,
    SlotUnavailableError,
)
from domain.models import AppointmentCreate, AppointmentRecord, BusinessInfo, ClientUpsert
from services.availability_service import AvailabilityService
from services.booking_validation import normalize_phone, normalize_time
from services.client_service import ClientService
from services.reservation_service import ReservationService, client_active_limit
from .state import (
    BackEvent,
    BookingGraphState,
    BookingSession,
    CancelExistingEvent,
    ChooseAttendanceEvent,
    ConfirmEvent,
    EditExistingEvent,
    IdentifyEvent,
    SelectDateEvent,
    SelectProfessionalEvent,
    SelectServiceEvent,
    SelectTimeEvent,
    StartOverEvent,
    SubmitClientEvent,
)


logger = logging.getLogger(__name__)


def _update(session: BookingSession, **changes) -> dict:
    """Graph update carrying a copy of ``session`` with ``changes`` applied."""
    changes["updated_at"] = datetime.now(timezone.utc)
    return {"session": session.model_copy(update=changes)}


def _reject(state: BookingGraphState) -> None:
    kind = state.event.kind if state.event is not None else None
    raise InputInvalidError(
        f"Event '{kind}' is not valid at step '{state.session.step.value}'",
        {"step": state.session.step.value, "event": kind},
    )


class BookingNodes:
    """
    Step handlers for the booking graph.

    Every handler receives the session and one event, and returns the next
    session. Events a step does not accept raise InputInvalidError and leave
    the session untouched.
    """

    def __init__(
        self,
        availability: AvailabilityService,
        clients: ClientService,
        reservations: ReservationService,
    ):
        self.availability = availability
        self.clients = clients
        self.reservations = reservations

    def _active_at_limit(self, business: BusinessInfo, phone: str) -> List[AppointmentRecord]:
        """Scheduled appointments of the client when they reach the limit, else []."""
        active = self.reservations.list_active_appointments(business.id, phone)
        return active if len(active) >= client_active_limit(business) else []

    def _manage_existing(self, session: BookingSession, active: List[AppointmentRecord], **changes) -> dict:
        return _update(
            session,
            step=BookingStep.MANAGE_EXISTING,
            active_appointment_id=active[0].id,
            edit_mode=False,
            **changes,
        )

    # ========================================================================
    # IDENTIFY
    # ========================================================================

    def identify(self, state: BookingGraphState) -> dict:
        """Resolve the client by phone and route new or returning clients."""
        session, event = state.session, state.event
        if not isinstance(event, IdentifyEvent):
            _reject(state)

        phone = normalize_phone(event.phone)
        business = self.availability.get_business(session.business_id)
        client = self.clients.find_by_phone(session.business_id, phone)

        identity = {
            "phone": phone,
            "client_id": client.id if client else None,
            "client_name": client.name if client else None,
            "client_health_plan_id": client.health_plan_id if client else None,
            "last_error": None,
        }

        if client is not None:
            active = self._active_at_limit(business, phone)
            if active:
                logger.info(f"Client {client.id} has an active appointment, managing it")
                return self._manage_existing(session, active, **identity)

        return _update(session, step=BookingStep.CLIENT_FORM, **identity)

    # ========================================================================
    # CLIENT FORM
    # ========================================================================

    def client_form(self, state: BookingGraphState) -> dict:
        """Save the client and move on to attendance type or service choice."""
        session, event = state.session, state.event
        if isinstance(event, BackEvent):
            return {"session": session.restart()}
        if not isinstance(event, SubmitClientEvent):
            _reject(state)

        try:
            data = ClientUpsert(
                name=event.name,
                phone=session.phone,
                birth_date=event.birth_date,
                health_plan_id=event.health_plan_id,
            )
        except ValidationError as e:
            errors = e.errors(include_url=False, include_context=False, include_input=False)
            raise InputInvalidError("Client data is not valid", {"errors": errors}) from None

        client = self.clients.upsert(session.business_id, data)
        business = self.availability.get_business(session.business_id)

        identity = {
            "client_id": client.id,
            "client_name": client.name,
            "client_health_plan_id": client.health_plan_id,
            "last_error": None,
        }

        active = self._active_at_limit(business, session.phone)
        if active:
            return self._manage_existing(session, active, **identity)

        if business.accepts_health_plans and client.health_plan_id:
            return _update(session, step=BookingStep.ATTENDANCE_TYPE_SELECT, **identity)

        return _update(
            session,
            step=BookingStep.SERVICE_SELECT,
            billing_type=BillingType.PRIVATE,
            health_plan_id=None,
            attendance_selected=False,
            **identity,
        )

    # ========================================================================
    # MANAGE EXISTING
    # ========================================================================

    def manage_existing(self, state: BookingGraphState) -> dict:
        """Cancel the active appointment or start editing it."""
        session, event = state.session, state.event

        if isinstance(event, BackEvent):
            return {"session": session.restart()}

        if isinstance(event, CancelExistingEvent):
            self.reservations.cancel(
                session.active_appointment_id,
                canceled_by="client",
                client_phone=session.phone,
            )
            return {"session": session.restart(phone=session.phone)}

        if isinstance(event, EditExistingEvent):
            appointment = self.reservations.get_appointment(session.active_appointment_id)
            return _update(
                session,
                step=BookingStep.TIME_SELECT,
                edit_mode=True,
                service_id=appointment.service_id,
                professional_id=appointment.professional_id,
                billing_type=appointment.billing_type,
                health_plan_id=appointment.health_plan_id,
                booking_date=None,
                booking_time=None,
                available_times=[],
                last_error=None,
            )

        _reject(state)

    # ========================================================================
    # ATTENDANCE TYPE
    # ========================================================================

    def attendance_type_select(self, state: BookingGraphState) -> dict:
        """Choose private or health-plan billing."""
        session, event = state.session, state.event
        if isinstance(event, BackEvent):
            return _update(session, step=BookingStep.CLIENT_FORM)
        if not isinstance(event, ChooseAttendanceEvent):
            _reject(state)

        use_plan = event.billing_type == BillingType.HEALTH_PLAN
        return _update(
            session,
            step=BookingStep.SERVICE_SELECT,
            billing_type=event.billing_type,
            health_plan_id=session.client_health_plan_id if use_plan else None,
            attendance_selected=True,
            last_error=None,
        )

    # ========================================================================
    # SERVICE / PROFESSIONAL
    # ========================================================================

    def service_select(self, state: BookingGraphState) -> dict:
        session, event = state.session, state.event
        if isinstance(event, BackEvent):
            previous = BookingStep.ATTENDANCE_TYPE_SELECT if session.attendance_selected else BookingStep.CLIENT_FORM
            return _update(session, step=previous)
        if not isinstance(event, SelectServiceEvent):
            _reject(state)

        plan_filter = session.health_plan_id if session.billing_type == BillingType.HEALTH_PLAN else None
        offered = {s.id for s in self.availability.list_services(session.business_id, health_plan_id=plan_filter)}
        if event.service_id not in offered:
            raise InputInvalidError("Service is not available for booking", {"service_id": event.service_id})

        return _update(
            session,
            step=BookingStep.PROFESSIONAL_SELECT,
            service_id=event.service_id,
            professional_id=None,
            last_error=None,
        )

    def professional_select(self, state: BookingGraphState) -> dict:
        session, event = state.session, state.event
        if isinstance(event, BackEvent):
            return _update(session, step=BookingStep.SERVICE_SELECT)
        if not isinstance(event, SelectProfessionalEvent):
            _reject(state)

        offered = {p.id for p in self.availability.list_professionals(session.business_id, session.service_id)}
        if event.professional_id not in offered:
            raise InputInvalidError(
                "Professional does not perform this service",
                {"professional_id": event.professional_id},
            )

        return _update(
            session,
            step=BookingStep.TIME_SELECT,
            professional_id=event.professional_id,
            booking_date=None,
            booking_time=None,
            available_times=[],
            last_error=None,
        )

    # ========================================================================
    # TIME
    # ========================================================================

    def _times_for(self, session: BookingSession, target) -> List[str]:
        return self.availability.get_available_times(
            session.business_id,
            session.professional_id,
            session.service_id,
            target,
            exclude_appointment_id=session.active_appointment_id if session.edit_mode else None,
        )

    def time_select(self, state: BookingGraphState) -> dict:
        """Pick a date (loads its times), then a time (moves to confirmation)."""
        session, event = state.session, state.event

        if isinstance(event, BackEvent):
            if session.edit_mode:
                return _update(session, step=BookingStep.MANAGE_EXISTING, edit_mode=False)
            return _update(session, step=BookingStep.PROFESSIONAL_SELECT)

        if isinstance(event, SelectDateEvent):
            return _update(
                session,
                booking_date=event.date,
                booking_time=None,
                available_times=self._times_for(session, event.date),
                last_error=None,
            )

        if isinstance(event, SelectTimeEvent):
            if session.booking_date is None:
                raise InputInvalidError("Choose a date first", {"step": session.step.value})
            chosen = normalize_time(event.time)
            if chosen not in session.available_times:
                raise InputInvalidError(f"{chosen} is not an available time", {"time": chosen})
            return _update(session, step=BookingStep.CONFIRM, booking_time=chosen, last_error=None)

        _reject(state)

    # ========================================================================
    # CONFIRM
    # ========================================================================

    def confirm(self, state: BookingGraphState) -> dict:
        """
        Commit the reservation.

        Conflicts send the client back to re-select with the error attached:
        a lost slot to TIME_SELECT, a disabled service or professional to
        SERVICE_SELECT, a reached limit to MANAGE_EXISTING.
        """
        session, event = state.session, state.event
        if isinstance(event, BackEvent):
            return _update(session, step=BookingStep.TIME_SELECT, booking_time=None)
        if not isinstance(event, ConfirmEvent):
            _reject(state)

        try:
            if session.edit_mode:
                record = self.reservations.reschedule(
                    session.active_appointment_id,
                    session.booking_date,
                    session.booking_time,
                )
            else:
                record = self.reservations.reserve(
                    AppointmentCreate(
                        business_id=session.business_id,
                        client_id=session.client_id,
                        service_id=session.service_id,
                        professional_id=session.professional_id,
                        date=session.booking_date,
                        start_time=session.booking_time,
                        billing_type=session.billing_type,
                        health_plan_id=session.health_plan_id,
                    ),
                )
        except SlotUnavailableError as e:
            logger.info(f"Session {session.id} lost its slot: {e.message}")
            try:
                times = self._times_for(session, session.booking_date)
            except BookingError:
                times = []
            return _update(
                session,
                step=BookingStep.TIME_SELECT,
                booking_time=None,
                available_times=times,
                last_error=e.to_dict(),
            )
        except EntityInactiveError as e:
            if session.edit_mode:
                return _update(session, step=BookingStep.MANAGE_EXISTING, edit_mode=False, last_error=e.to_dict())
            return _update(
                session,
                step=BookingStep.SERVICE_SELECT,
                service_id=None,
                professional_id=None,
                booking_date=None,
                booking_time=None,
                available_times=[],
                last_error=e.to_dict(),
            )
        except ClientLimitExceededError as e:
            active = self.reservations.list_active_appointments(session.business_id, session.phone)
            if not active:
                raise
            return self._manage_existing(session, active, last_error=e.to_dict())

        return _update(
            session,
            step=BookingStep.COMPLETED,
            appointment_id=record.id,
            active_appointment_id=None,
            edit_mode=False,
            last_error=None,
        )

    # ========================================================================
    # COMPLETED
    # ========================================================================

    def completed(self, state: BookingGraphState) -> dict:
        session, event = state.session, state.event
        if isinstance(event, StartOverEvent):
            return {"session": session.restart(phone=session.phone)}
        if isinstance(event, BackEvent):
            raise InputInvalidError("The booking is complete; start over to book again", {"step": session.step.value})
        _reject(state)
