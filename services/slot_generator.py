"""
Slot Generator.

Walks each open interval at a fixed granularity and keeps the start times
whose full service duration fits and is free.
"""
from datetime import date, datetime
from typing import Iterable, List, Optional

from core.utils_datetime import format_hhmm, minute_of_day
from services.interval_algebra import BusyTimeline, Interval


DEFAULT_GRANULARITY_MINUTES = 30


def generate_slots(
    open_intervals: Iterable[Interval],
    busy: BusyTimeline,
    duration: int,
    granularity: int = DEFAULT_GRANULARITY_MINUTES,
    now: Optional[datetime] = None,
    target: Optional[date] = None,
) -> List[str]:
    """
    Candidate start times for a service of ``duration`` minutes.

    For each open interval ``[s, e)`` every ``t = s, s + G, ...`` with
    ``t + duration <= e`` is considered. ``t`` is kept when ``[t, t + duration)``
    shares no minute with ``busy`` and, if ``target`` is the date of ``now``,
    when ``t`` is strictly later than ``now``. A slot never spans two
    intervals.

    Args:
        open_intervals: Open intervals of the day
        busy: Busy timeline of the professional for the day
        duration: Service duration in minutes
        granularity: Step between candidate starts
        now: Current time, already in the business timezone
        target: Date the slots are for

    Returns:
        Ascending ``HH:mm`` strings; empty when nothing is free
    """
    if duration <= 0 or granularity <= 0:
        return []

    now_minute = None
    if now is not None and target is not None and now.date() == target:
        now_minute = minute_of_day(now)

    starts = set()
    for interval in open_intervals:
        t = interval.start
        while t + duration <= interval.end:
            started = now_minute is not None and t <= now_minute
            if not started and not busy.overlaps(t, t + duration):
                starts.add(t)
            t += granularity

    return [format_hhmm(t) for t in sorted(starts)]
