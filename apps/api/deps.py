"""FastAPI dependencies: services wired at app creation."""

from fastapi import Request

from graph.build_graph import BookingFlow
from graph.session_store import SessionStore
from services.availability_service import AvailabilityService
from services.client_service import ClientService
from services.reservation_service import ReservationService


def get_availability_service(request: Request) -> AvailabilityService:
    return request.app.state.availability


def get_client_service(request: Request) -> ClientService:
    return request.app.state.clients


def get_reservation_service(request: Request) -> ReservationService:
    return request.app.state.reservations


def get_booking_flow(request: Request) -> BookingFlow:
    return request.app.state.booking_flow


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.session_store
