"""Domain enums for the appointment booking core."""

from enum import Enum


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELED = "canceled"


class EntityStatus(str, Enum):
    """Active flag shared by services, professionals and clients."""

    ACTIVE = "active"
    INACTIVE = "inactive"


class DayOfWeek(str, Enum):
    """Days of the week, in ``date.weekday()`` order."""

    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @classmethod
    def from_weekday(cls, weekday: int) -> "DayOfWeek":
        """Map ``date.weekday()`` (Monday == 0) to a member."""
        return list(cls)[weekday]


class BillingType(str, Enum):
    """How an appointment is paid for at a clinic."""

    PRIVATE = "private"
    HEALTH_PLAN = "health_plan"


class BusinessCategory(str, Enum):
    """Business categories that enable health-plan billing."""

    PHYSIOTHERAPY_CLINIC = "ClinicaDeFisioterapia"
    MEDICAL_CLINIC = "ClinicaMedica"
    NUTRITION_CLINIC = "ClinicaNutricionista"
    DENTAL_CLINIC = "ClinicaOdontologica"
    PSYCHOLOGY_CLINIC = "ClinicaPsicologica"

    @classmethod
    def is_clinic(cls, category: str | None) -> bool:
        """Check whether ``category`` is one of the clinic categories."""
        if not category:
            return False
        return category in {member.value for member in cls}


class BookingStep(str, Enum):
    """Steps of the client-facing booking flow."""

    IDENTIFY = "identify"
    CLIENT_FORM = "client_form"
    MANAGE_EXISTING = "manage_existing"
    ATTENDANCE_TYPE_SELECT = "attendance_type_select"
    SERVICE_SELECT = "service_select"
    PROFESSIONAL_SELECT = "professional_select"
    TIME_SELECT = "time_select"
    CONFIRM = "confirm"
    COMPLETED = "completed"


class AuditAction(str, Enum):
    """Audit log action types."""

    APPOINTMENT_CREATED = "appointment_created"
    APPOINTMENT_CANCELED = "appointment_canceled"
    APPOINTMENT_RESCHEDULED = "appointment_rescheduled"
    CLIENT_CREATED = "client_created"
    CLIENT_UPDATED = "client_updated"
