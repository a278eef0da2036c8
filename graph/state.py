"""State definitions for the booking lifecycle graph."""

from datetime import date, datetime, timezone
from typing import Annotated, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from domain.enums import BillingType, BookingStep


class BookingSession(BaseModel):
    """
    One client's pass through the booking flow.

    Held in memory only; abandoning a session releases nothing else.
    """

    id: str = Field(default_factory=lambda: uuid4().hex)
    business_id: str
    step: BookingStep = BookingStep.IDENTIFY

    # Identification
    phone: Optional[str] = None
    client_id: Optional[str] = None
    client_name: Optional[str] = None
    client_health_plan_id: Optional[str] = None

    # Existing appointment (limit reached)
    active_appointment_id: Optional[str] = None
    edit_mode: bool = False

    # Choices
    billing_type: BillingType = BillingType.PRIVATE
    health_plan_id: Optional[str] = None
    attendance_selected: bool = Field(
        default=False,
        description="Whether the flow went through the attendance type step"
    )
    service_id: Optional[str] = None
    professional_id: Optional[str] = None
    booking_date: Optional[date] = None
    booking_time: Optional[str] = None
    available_times: list[str] = Field(default_factory=list)

    # Outcome
    appointment_id: Optional[str] = None
    last_error: Optional[dict] = Field(
        default=None,
        description="Last booking error shown to the client"
    )

    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def restart(self, **fields) -> "BookingSession":
        """Fresh session at IDENTIFY for the same business, keeping the id."""
        return BookingSession(id=self.id, business_id=self.business_id, **fields)


# ============================================================================
# EVENTS
# ============================================================================

class IdentifyEvent(BaseModel):
    kind: Literal["identify"] = "identify"
    phone: str


class SubmitClientEvent(BaseModel):
    kind: Literal["submit_client"] = "submit_client"
    name: str
    birth_date: Optional[date] = None
    health_plan_id: Optional[str] = None


class CancelExistingEvent(BaseModel):
    kind: Literal["cancel_existing"] = "cancel_existing"


class EditExistingEvent(BaseModel):
    kind: Literal["edit_existing"] = "edit_existing"


class ChooseAttendanceEvent(BaseModel):
    kind: Literal["choose_attendance"] = "choose_attendance"
    billing_type: BillingType


class SelectServiceEvent(BaseModel):
    kind: Literal["select_service"] = "select_service"
    service_id: str


class SelectProfessionalEvent(BaseModel):
    kind: Literal["select_professional"] = "select_professional"
    professional_id: str


class SelectDateEvent(BaseModel):
    kind: Literal["select_date"] = "select_date"
    date: date


class SelectTimeEvent(BaseModel):
    kind: Literal["select_time"] = "select_time"
    time: str


class ConfirmEvent(BaseModel):
    kind: Literal["confirm"] = "confirm"


class BackEvent(BaseModel):
    kind: Literal["back"] = "back"


class StartOverEvent(BaseModel):
    kind: Literal["start_over"] = "start_over"


BookingEvent = Annotated[
    Union[
        IdentifyEvent,
        SubmitClientEvent,
        CancelExistingEvent,
        EditExistingEvent,
        ChooseAttendanceEvent,
        SelectServiceEvent,
        SelectProfessionalEvent,
        SelectDateEvent,
        SelectTimeEvent,
        ConfirmEvent,
        BackEvent,
        StartOverEvent,
    ],
    Field(discriminator="kind"),
]


class BookingGraphState(BaseModel):
    """Graph input and output: the session and the event applied to it."""

    session: BookingSession
    event: Optional[BookingEvent] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)
