"""
Repository over the booking tables.

Read methods return domain models; write methods flush but never commit.
Transaction boundaries belong to the calling service.
"""
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from domain.enums import AppointmentStatus, EntityStatus
from domain.models import (
    AppointmentRecord,
    BlockedRange,
    BusinessInfo,
    ClientRecord,
    HealthPlan,
    ProfessionalInfo,
    ServiceInfo,
    WeeklySchedule,
)
from .models_sqlalchemy import (
    Appointment,
    AuditLog,
    BlockedDateRange,
    Business,
    Client,
    Professional,
    ProfessionalDayLedger,
    Service,
)


class BookingRepository:
    """Data access for businesses, catalog, clients and appointments."""

    def __init__(self, session: Session):
        self.session = session

    # ------------------------------------------------------------------
    # Business and catalog
    # ------------------------------------------------------------------

    def get_business(self, business_id: str) -> Optional[BusinessInfo]:
        row = self.session.get(Business, business_id)
        if row is None:
            return None
        return BusinessInfo(
            id=row.id,
            name=row.name,
            category=row.category,
            timezone=row.timezone,
            schedule=WeeklySchedule.model_validate(row.schedule or {}),
            accepted_health_plans=[HealthPlan.model_validate(p) for p in row.accepted_health_plans or []],
            client_active_limit=row.client_active_limit,
            slot_granularity_minutes=row.slot_granularity_minutes,
        )

    def get_service(self, business_id: str, service_id: str) -> Optional[ServiceInfo]:
        row = self.session.get(Service, service_id)
        if row is None or row.business_id != business_id:
            return None
        return self._service_info(row)

    def list_services(
        self,
        business_id: str,
        health_plan_id: Optional[str] = None,
    ) -> List[ServiceInfo]:
        """
        Active services of a business, ordered by name.

        Args:
            business_id: Business identifier
            health_plan_id: When given, only services accepting this plan

        Returns:
            List of services
        """
        stmt = (
            select(Service)
            .where(Service.business_id == business_id, Service.status == EntityStatus.ACTIVE.value)
            .order_by(Service.name)
        )
        services = [self._service_info(row) for row in self.session.scalars(stmt)]
        if health_plan_id is not None:
            services = [s for s in services if health_plan_id in s.accepted_health_plan_ids]
        return services

    def get_professional(self, business_id: str, professional_id: str) -> Optional[ProfessionalInfo]:
        row = self.session.get(Professional, professional_id)
        if row is None or row.business_id != business_id:
            return None
        return self._professional_info(row)

    def list_professionals_for_service(self, business_id: str, service_id: str) -> List[ProfessionalInfo]:
        """Active professionals able to perform ``service_id``."""
        row = self.session.get(Service, service_id)
        if row is None or row.business_id != business_id:
            return []
        return [
            self._professional_info(p)
            for p in sorted(row.professionals, key=lambda p: p.name)
            if p.is_active
        ]

    def list_blocked_ranges(
        self,
        business_id: str,
        target: date,
        professional_id: Optional[str] = None,
    ) -> List[BlockedRange]:
        """
        Blocked ranges overlapping ``target``.

        Business-wide ranges when ``professional_id`` is None, otherwise
        the ranges of that professional only.
        """
        day_start = datetime.combine(target, time(0, 0))
        day_end = day_start + timedelta(days=1)
        stmt = select(BlockedDateRange).where(
            BlockedDateRange.business_id == business_id,
            BlockedDateRange.start_at < day_end,
            BlockedDateRange.end_at >= day_start,
        )
        if professional_id is None:
            stmt = stmt.where(BlockedDateRange.professional_id.is_(None))
        else:
            stmt = stmt.where(BlockedDateRange.professional_id == professional_id)
        return [BlockedRange.model_validate(row) for row in self.session.scalars(stmt)]

    # ------------------------------------------------------------------
    # Clients
    # ------------------------------------------------------------------

    def get_client(self, client_id: str) -> Optional[ClientRecord]:
        row = self.session.get(Client, client_id)
        return ClientRecord.model_validate(row) if row else None

    def get_client_by_phone(self, business_id: str, phone: str) -> Optional[ClientRecord]:
        stmt = select(Client).where(Client.business_id == business_id, Client.phone == phone)
        row = self.session.scalars(stmt).first()
        return ClientRecord.model_validate(row) if row else None

    def create_client(self, business_id: str, **fields: Any) -> ClientRecord:
        row = Client(business_id=business_id, **fields)
        self.session.add(row)
        self.session.flush()
        return ClientRecord.model_validate(row)

    def update_client(self, client_id: str, **fields: Any) -> ClientRecord:
        row = self.session.get(Client, client_id)
        for key, value in fields.items():
            setattr(row, key, value)
        self.session.flush()
        return ClientRecord.model_validate(row)

    # ------------------------------------------------------------------
    # Appointments
    # ------------------------------------------------------------------

    def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        return self.session.get(Appointment, appointment_id)

    def list_scheduled_appointments(
        self,
        professional_id: str,
        target: date,
        exclude_id: Optional[str] = None,
    ) -> List[AppointmentRecord]:
        """Scheduled appointments of a professional on ``target``."""
        stmt = (
            select(Appointment)
            .where(
                Appointment.professional_id == professional_id,
                Appointment.date == target,
                Appointment.status == AppointmentStatus.SCHEDULED.value,
            )
            .order_by(Appointment.start_minute)
        )
        if exclude_id is not None:
            stmt = stmt.where(Appointment.id != exclude_id)
        return [AppointmentRecord.model_validate(row) for row in self.session.scalars(stmt)]

    def list_client_scheduled(self, client_id: str) -> List[AppointmentRecord]:
        stmt = (
            select(Appointment)
            .where(
                Appointment.client_id == client_id,
                Appointment.status == AppointmentStatus.SCHEDULED.value,
            )
            .order_by(Appointment.date, Appointment.start_minute)
        )
        return [AppointmentRecord.model_validate(row) for row in self.session.scalars(stmt)]

    def count_client_scheduled(self, client_id: str, exclude_id: Optional[str] = None) -> int:
        stmt = select(func.count(Appointment.id)).where(
            Appointment.client_id == client_id,
            Appointment.status == AppointmentStatus.SCHEDULED.value,
        )
        if exclude_id is not None:
            stmt = stmt.where(Appointment.id != exclude_id)
        return self.session.scalar(stmt) or 0

    def add_appointment(self, **fields: Any) -> Appointment:
        row = Appointment(**fields)
        self.session.add(row)
        self.session.flush()
        return row

    def cancel_scheduled(self, row: Appointment, canceled_by: str, canceled_at: datetime) -> bool:
        """
        Mark ``row`` canceled unless another writer already moved it out of scheduled.

        Returns:
            False when the appointment was no longer scheduled
        """
        result = self.session.execute(
            update(Appointment)
            .where(
                Appointment.id == row.id,
                Appointment.status == AppointmentStatus.SCHEDULED.value,
            )
            .values(
                status=AppointmentStatus.CANCELED.value,
                canceled_at=canceled_at,
                canceled_by=canceled_by,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        self.session.refresh(row)
        return True

    # ------------------------------------------------------------------
    # Serialization point
    # ------------------------------------------------------------------

    def read_ledger_version(self, professional_id: str, target: date) -> int:
        """Current ledger version for the professional/date, creating the row at 0."""
        row = self.session.get(ProfessionalDayLedger, (professional_id, target))
        if row is None:
            row = ProfessionalDayLedger(professional_id=professional_id, date=target, version=0)
            self.session.add(row)
            self.session.flush()
        return row.version

    def bump_ledger_version(self, professional_id: str, target: date, seen_version: int) -> bool:
        """
        Advance the ledger if nobody else did since ``seen_version`` was read.

        Returns:
            False when a concurrent writer got there first
        """
        result = self.session.execute(
            update(ProfessionalDayLedger)
            .where(
                ProfessionalDayLedger.professional_id == professional_id,
                ProfessionalDayLedger.date == target,
                ProfessionalDayLedger.version == seen_version,
            )
            .values(version=ProfessionalDayLedger.version + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    # ------------------------------------------------------------------
    # Audit
    # ------------------------------------------------------------------

    def add_audit(
        self,
        action: str,
        entity_type: str,
        entity_id: str,
        actor: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.session.add(
            AuditLog(
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                actor=actor,
                details=details or {},
            )
        )

    # ------------------------------------------------------------------

    @staticmethod
    def _service_info(row: Service) -> ServiceInfo:
        return ServiceInfo(
            id=row.id,
            name=row.name,
            duration_minutes=row.duration_minutes,
            price=row.price,
            status=row.status,
            professional_ids=[p.id for p in row.professionals],
            accepted_health_plan_ids=list(row.accepted_health_plan_ids or []),
        )

    @staticmethod
    def _professional_info(row: Professional) -> ProfessionalInfo:
        return ProfessionalInfo(
            id=row.id,
            name=row.name,
            status=row.status,
            work_hours=WeeklySchedule.model_validate(row.work_hours) if row.work_hours else None,
        )
