"""Booking session endpoints driving the lifecycle graph."""

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, status
from pydantic import BaseModel

from apps.api.deps import get_booking_flow, get_session_store
from graph.build_graph import BookingFlow
from graph.session_store import SessionStore
from graph.state import BookingSession


router = APIRouter(prefix="/sessions", tags=["sessions"])


class SessionCreateRequest(BaseModel):
    business_id: str


@router.post("", response_model=BookingSession, status_code=status.HTTP_201_CREATED)
def create_session(
    body: SessionCreateRequest,
    flow: BookingFlow = Depends(get_booking_flow),
    store: SessionStore = Depends(get_session_store),
):
    """Start a booking session at the identify step."""
    return store.save(flow.start(body.business_id))


@router.get("/{session_id}", response_model=BookingSession)
def get_session(
    session_id: str,
    store: SessionStore = Depends(get_session_store),
):
    return store.get(session_id)


@router.post("/{session_id}/events", response_model=BookingSession)
def post_event(
    session_id: str,
    event: Dict[str, Any] = Body(..., examples=[{"kind": "identify", "phone": "(11) 98765-4321"}]),
    flow: BookingFlow = Depends(get_booking_flow),
    store: SessionStore = Depends(get_session_store),
):
    """
    Apply one event to the session.

    A rejected event (400) leaves the stored session as it was.
    """
    session = store.get(session_id)
    return store.save(flow.handle(session, event))


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def abandon_session(
    session_id: str,
    store: SessionStore = Depends(get_session_store),
):
    """Drop the session; committed appointments are unaffected."""
    store.discard(session_id)
