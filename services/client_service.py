"""
Client registry.

Clients are identified by normalized phone within a business. A client is
created on the first booking attempt; later attempts reuse the record and may
refresh name, birth date and health plan.
"""
import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import sessionmaker

from db.repository import BookingRepository
from db.session import SessionLocal
from domain.enums import AuditAction
from domain.errors import InputInvalidError, NotFoundError, StoreUnavailableError
from domain.models import ClientRecord, ClientUpsert
from services.booking_validation import normalize_phone, sanitize_name, validate_birth_date


logger = logging.getLogger(__name__)


class ClientService:
    """Lookup and upsert of clients."""

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self.session_factory = session_factory or SessionLocal

    def find_by_phone(self, business_id: str, phone: str) -> Optional[ClientRecord]:
        """Client with this phone in the business, or None."""
        normalized = normalize_phone(phone)
        try:
            with self.session_factory() as session:
                return BookingRepository(session).get_client_by_phone(business_id, normalized)
        except OperationalError as e:
            raise StoreUnavailableError("Could not load client, try again") from e

    def get(self, client_id: str) -> ClientRecord:
        with self.session_factory() as session:
            client = BookingRepository(session).get_client(client_id)
        if client is None:
            raise NotFoundError(f"Client {client_id} not found", {"client_id": client_id})
        return client

    def upsert(self, business_id: str, data: ClientUpsert) -> ClientRecord:
        """
        Create the client or refresh the existing record for the same phone.

        Args:
            business_id: Business identifier
            data: Client fields from the form

        Returns:
            Stored client

        Raises:
            InputInvalidError: Bad phone, name, birth date or health plan
            NotFoundError: If the business does not exist
            StoreUnavailableError: If the store cannot be reached
        """
        phone = normalize_phone(data.phone)
        fields = {
            "name": sanitize_name(data.name),
            "birth_date": validate_birth_date(data.birth_date),
            "health_plan_id": data.health_plan_id,
        }

        try:
            return self._write(business_id, phone, fields)
        except IntegrityError:
            # Same phone registered concurrently; the retry takes the update path
            logger.info(f"Client {phone} created concurrently, updating instead")
            return self._write(business_id, phone, fields)
        except OperationalError as e:
            logger.error(f"Store unavailable while saving client: {e}")
            raise StoreUnavailableError("Could not save client, try again") from e

    def _write(self, business_id: str, phone: str, fields: dict) -> ClientRecord:
        with self.session_factory() as session, session.begin():
            repository = BookingRepository(session)
            business = repository.get_business(business_id)
            if business is None:
                raise NotFoundError(f"Business {business_id} not found", {"business_id": business_id})

            plan_id = fields["health_plan_id"]
            if plan_id is not None and plan_id not in {p.id for p in business.accepted_health_plans}:
                raise InputInvalidError(
                    "Health plan is not accepted by this business",
                    {"health_plan_id": plan_id},
                )

            existing = repository.get_client_by_phone(business_id, phone)
            if existing is None:
                client = repository.create_client(business_id, phone=phone, **fields)
                action = AuditAction.CLIENT_CREATED
            else:
                client = repository.update_client(existing.id, **fields)
                action = AuditAction.CLIENT_UPDATED

            repository.add_audit(action.value, "client", client.id, details={"phone": phone})

        logger.info(f"{action.value} {client.id}", extra={"business_id": business_id})
        return client
