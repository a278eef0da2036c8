"""Build the LangGraph workflow for the booking lifecycle."""

import logging
from typing import Any, Optional, Union

from langgraph.graph import StateGraph, START, END
from pydantic import TypeAdapter, ValidationError

from domain.enums import BookingStep
from domain.errors import InputInvalidError
from .nodes import BookingNodes
from .state import BookingEvent, BookingGraphState, BookingSession


logger = logging.getLogger(__name__)

_event_adapter = TypeAdapter(BookingEvent)


# ============================================================================
# ROUTING
# ============================================================================

def route_by_step(state: BookingGraphState) -> str:
    """Send the event to the handler of the session's current step."""
    return state.session.step.value


# ============================================================================
# GRAPH BUILDER
# ============================================================================

def build_graph(nodes: BookingNodes):
    """
    Build and compile the booking workflow.

    Each invocation applies exactly one event: the entry point routes on the
    current step, the step's handler runs, and the graph ends.

    Args:
        nodes: Step handlers bound to their services

    Returns:
        Compiled graph ready for execution.
    """
    workflow = StateGraph(BookingGraphState)

    handlers = {
        BookingStep.IDENTIFY: nodes.identify,
        BookingStep.CLIENT_FORM: nodes.client_form,
        BookingStep.MANAGE_EXISTING: nodes.manage_existing,
        BookingStep.ATTENDANCE_TYPE_SELECT: nodes.attendance_type_select,
        BookingStep.SERVICE_SELECT: nodes.service_select,
        BookingStep.PROFESSIONAL_SELECT: nodes.professional_select,
        BookingStep.TIME_SELECT: nodes.time_select,
        BookingStep.CONFIRM: nodes.confirm,
        BookingStep.COMPLETED: nodes.completed,
    }

    for step, handler in handlers.items():
        workflow.add_node(step.value, handler)
        workflow.add_edge(step.value, END)

    workflow.add_conditional_edges(
        START,
        route_by_step,
        {step.value: step.value for step in handlers},
    )

    return workflow.compile()


class BookingFlow:
    """Runs booking sessions through the compiled graph."""

    def __init__(self, nodes: BookingNodes):
        self.nodes = nodes
        self.graph = build_graph(nodes)

    def start(self, business_id: str) -> BookingSession:
        """New session at IDENTIFY for an existing business."""
        self.nodes.availability.get_business(business_id)
        return BookingSession(business_id=business_id)

    def handle(self, session: BookingSession, event: Union[dict, Any]) -> BookingSession:
        """
        Apply one event to a session.

        Args:
            session: Current session; never modified
            event: Event model or its dict form (``{"kind": ..., ...}``)

        Returns:
            The next session

        Raises:
            InputInvalidError: If the event is malformed or not valid at the current step
            BookingError: Store failures and errors the flow surfaces verbatim
        """
        try:
            event = _event_adapter.validate_python(event)
        except ValidationError as e:
            errors = e.errors(include_url=False, include_context=False, include_input=False)
            raise InputInvalidError("Event is not valid", {"errors": errors}) from None

        result = self.graph.invoke({"session": session, "event": event})
        next_session = BookingSession.model_validate(result["session"])

        logger.debug(
            f"Session {session.id}: {session.step.value} --{event.kind}--> {next_session.step.value}"
        )
        return next_session


def create_booking_flow(
    session_factory=None,
    notifier=None,
    clock=None,
) -> BookingFlow:
    """Wire services, handlers and graph together."""
    from services.availability_service import AvailabilityService
    from services.client_service import ClientService
    from services.reservation_service import ReservationService

    nodes = BookingNodes(
        availability=AvailabilityService(session_factory, clock=clock),
        clients=ClientService(session_factory),
        reservations=ReservationService(session_factory, notifier, clock=clock),
    )
    return BookingFlow(nodes)
