"""Domain layer for the booking core."""

from .enums import (
    AppointmentStatus,
    EntityStatus,
    DayOfWeek,
    BillingType,
    BusinessCategory,
    BookingStep,
    AuditAction,
)
from .errors import (
    BookingError,
    InputInvalidError,
    NotFoundError,
    SlotUnavailableError,
    ClientLimitExceededError,
    EntityInactiveError,
    DependencyUnavailableError,
    StoreUnavailableError,
    NotificationUnavailableError,
)
from .models import (
    WorkInterval,
    DaySchedule,
    WeeklySchedule,
    HealthPlan,
    BlockedRange,
    BusinessInfo,
    ServiceInfo,
    ProfessionalInfo,
    ClientRecord,
    ClientUpsert,
    AppointmentCreate,
    AppointmentRecord,
    AvailableTimesResponse,
    AppointmentCancelRequest,
    AppointmentRescheduleRequest,
)

__all__ = [
    # Enums
    "AppointmentStatus",
    "EntityStatus",
    "DayOfWeek",
    "BillingType",
    "BusinessCategory",
    "BookingStep",
    "AuditAction",
    # Errors
    "BookingError",
    "InputInvalidError",
    "NotFoundError",
    "SlotUnavailableError",
    "ClientLimitExceededError",
    "EntityInactiveError",
    "DependencyUnavailableError",
    "StoreUnavailableError",
    "NotificationUnavailableError",
    # Models
    "WorkInterval",
    "DaySchedule",
    "WeeklySchedule",
    "HealthPlan",
    "BlockedRange",
    "BusinessInfo",
    "ServiceInfo",
    "ProfessionalInfo",
    "ClientRecord",
    "ClientUpsert",
    "AppointmentCreate",
    "AppointmentRecord",
    "AvailableTimesResponse",
    "AppointmentCancelRequest",
    "AppointmentRescheduleRequest",
]
