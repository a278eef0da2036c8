"""LangGraph orchestration of the booking lifecycle."""

from .state import BookingSession, BookingGraphState
from .build_graph import BookingFlow, build_graph, create_booking_flow

__all__ = [
    "BookingSession",
    "BookingGraphState",
    "BookingFlow",
    "build_graph",
    "create_booking_flow",
]
