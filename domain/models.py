"""Domain models using Pydantic v2 for the appointment booking core."""

from datetime import date, datetime
from typing import Dict, List, Optional, Any

from pydantic import BaseModel, Field, ConfigDict, computed_field, field_validator, model_validator

from core.utils_datetime import MINUTES_PER_DAY, format_hhmm, parse_hhmm
from .enums import (
    AppointmentStatus,
    BillingType,
    BusinessCategory,
    DayOfWeek,
    EntityStatus,
)


class WorkInterval(BaseModel):
    """Half-open ``[start, end)`` range of minutes within a day."""

    start: int = Field(..., ge=0, le=MINUTES_PER_DAY, description="Minute of day the interval opens")
    end: int = Field(..., ge=0, le=MINUTES_PER_DAY, description="Minute of day the interval closes (exclusive)")

    model_config = ConfigDict(frozen=True)

    @field_validator("start", "end", mode="before")
    @classmethod
    def parse_time_of_day(cls, v: Any) -> Any:
        """Accept ``HH:mm`` strings as well as minute counts."""
        if isinstance(v, str):
            return parse_hhmm(v)
        return v

    @model_validator(mode="after")
    def check_order(self) -> "WorkInterval":
        if self.start >= self.end:
            raise ValueError(
                f"Interval start {format_hhmm(self.start)} must be before end {format_hhmm(self.end)}"
            )
        return self

    def label(self) -> str:
        return f"{format_hhmm(self.start)}-{format_hhmm(self.end)}"


class DaySchedule(BaseModel):
    """Opening intervals for one weekday."""

    enabled: bool = True
    intervals: List[WorkInterval] = Field(default_factory=list)

    @field_validator("intervals")
    @classmethod
    def check_no_overlap(cls, v: List[WorkInterval]) -> List[WorkInterval]:
        """Sort intervals and reject overlapping ones."""
        ordered = sorted(v, key=lambda i: i.start)
        for previous, current in zip(ordered, ordered[1:]):
            if current.start < previous.end:
                raise ValueError(f"Intervals {previous.label()} and {current.label()} overlap")
        return ordered


class WeeklySchedule(BaseModel):
    """
    Weekly opening hours.

    A business schedule carries all seven days. A professional override may
    omit days, in which case the professional inherits the business hours.
    """

    days: Dict[DayOfWeek, DaySchedule] = Field(default_factory=dict)

    def for_date(self, target: date) -> Optional[DaySchedule]:
        """Schedule entry for the weekday of ``target``, if any."""
        return self.days.get(DayOfWeek.from_weekday(target.weekday()))


class HealthPlan(BaseModel):
    """Health plan accepted by a clinic."""

    id: str
    name: str


class BlockedRange(BaseModel):
    """Closed wall-clock range during which no slot is offered."""

    id: Optional[str] = None
    start_at: datetime
    end_at: datetime
    reason: Optional[str] = Field(None, max_length=255)
    professional_id: Optional[str] = Field(None, description="None for business-wide blocks")

    model_config = ConfigDict(from_attributes=True)

    @model_validator(mode="after")
    def check_order(self) -> "BlockedRange":
        if self.end_at < self.start_at:
            raise ValueError("Blocked range must end after it starts")
        return self


class BusinessInfo(BaseModel):
    """Business settings relevant to booking."""

    id: str
    name: str
    category: Optional[str] = None
    timezone: str
    schedule: WeeklySchedule
    accepted_health_plans: List[HealthPlan] = Field(default_factory=list)
    client_active_limit: Optional[int] = Field(None, ge=1)
    slot_granularity_minutes: Optional[int] = Field(None, ge=5, le=240)

    @property
    def accepts_health_plans(self) -> bool:
        """Clinic-category businesses with at least one accepted plan."""
        return BusinessCategory.is_clinic(self.category) and bool(self.accepted_health_plans)


class ServiceInfo(BaseModel):
    """Bookable service."""

    id: str
    name: str
    duration_minutes: int = Field(..., ge=1, le=MINUTES_PER_DAY)
    price: float = Field(default=0.0, ge=0)
    status: EntityStatus = EntityStatus.ACTIVE
    professional_ids: List[str] = Field(default_factory=list)
    accepted_health_plan_ids: List[str] = Field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return self.status == EntityStatus.ACTIVE

    def can_be_performed_by(self, professional_id: str) -> bool:
        return professional_id in self.professional_ids


class ProfessionalInfo(BaseModel):
    """Professional together with the schedule data the engine needs."""

    id: str
    name: str
    status: EntityStatus = EntityStatus.ACTIVE
    work_hours: Optional[WeeklySchedule] = None
    blocked_ranges: List[BlockedRange] = Field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return self.status == EntityStatus.ACTIVE


class ClientRecord(BaseModel):
    """Client identified by normalized phone."""

    id: str
    business_id: str
    name: str
    phone: str
    birth_date: Optional[date] = None
    health_plan_id: Optional[str] = None
    status: EntityStatus = EntityStatus.ACTIVE

    model_config = ConfigDict(from_attributes=True)


class ClientUpsert(BaseModel):
    """Data for creating or refreshing a client from the booking flow."""

    name: str = Field(..., min_length=1, max_length=100)
    phone: str = Field(..., min_length=8, max_length=20)
    birth_date: Optional[date] = None
    health_plan_id: Optional[str] = None

    model_config = ConfigDict(str_strip_whitespace=True)


class AppointmentCreate(BaseModel):
    """Request to reserve a slot."""

    business_id: str
    client_id: str
    service_id: str
    professional_id: str
    date: date
    start_time: str = Field(..., description="Slot start as HH:mm")
    billing_type: BillingType = BillingType.PRIVATE
    health_plan_id: Optional[str] = None

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("start_time")
    @classmethod
    def validate_start_time(cls, v: str) -> str:
        minutes = parse_hhmm(v)
        if minutes >= MINUTES_PER_DAY:
            raise ValueError("Start time must be within the day")
        return format_hhmm(minutes)

    @property
    def start_minute(self) -> int:
        return parse_hhmm(self.start_time)


class AppointmentRecord(BaseModel):
    """Complete appointment record from the store."""

    id: str
    business_id: str
    client_id: str
    service_id: str
    professional_id: str
    date: date
    start_minute: int
    duration_minutes: int
    status: AppointmentStatus
    billing_type: BillingType = BillingType.PRIVATE
    health_plan_id: Optional[str] = None
    created_at: Optional[datetime] = None
    canceled_at: Optional[datetime] = None
    canceled_by: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    @computed_field
    @property
    def start_time(self) -> str:
        return format_hhmm(self.start_minute)

    @property
    def end_minute(self) -> int:
        return self.start_minute + self.duration_minutes

    @property
    def is_scheduled(self) -> bool:
        return self.status == AppointmentStatus.SCHEDULED


class AvailableTimesResponse(BaseModel):
    """Bookable start times for one professional, service and date."""

    date: date
    professional_id: str
    service_id: str
    times: List[str]


class AppointmentCancelRequest(BaseModel):
    """Request to cancel an appointment."""

    client_phone: Optional[str] = Field(None, description="Required when the client cancels")
    canceled_by: str = Field(default="client", max_length=100)

    model_config = ConfigDict(str_strip_whitespace=True)


class AppointmentRescheduleRequest(BaseModel):
    """Request to move an appointment to another slot."""

    date: date
    start_time: str

    @field_validator("start_time")
    @classmethod
    def validate_start_time(cls, v: str) -> str:
        return format_hhmm(parse_hhmm(v))
