"""
Schedule Resolver.

Combines business opening hours with an optional professional override into
the open intervals of one calendar date.
"""
import logging
from datetime import date, timedelta
from typing import List, Optional

from domain.models import DaySchedule, WeeklySchedule
from services.interval_algebra import Interval, intersect_all, merge


logger = logging.getLogger(__name__)


def day_intervals(day: DaySchedule) -> List[Interval]:
    """Intervals of an enabled day, sorted; empty for a disabled day."""
    if not day.enabled:
        return []
    return merge(Interval(i.start, i.end) for i in day.intervals)


def resolve_open_intervals(
    business_schedule: WeeklySchedule,
    professional_override: Optional[WeeklySchedule],
    target: date,
) -> List[Interval]:
    """
    Open intervals for ``target``.

    Rules, in order:
        1. Business closed that weekday -> nothing, whatever the override says.
        2. Override enabled for that weekday -> business hours intersected
           with the professional's hours.
        3. Override disabled for that weekday -> nothing.
        4. No override for that weekday -> business hours unchanged.

    Args:
        business_schedule: Weekly business hours
        professional_override: Professional's weekly hours, or None
        target: Calendar date (weekday taken from it)

    Returns:
        Sorted, non-overlapping intervals
    """
    business_day = business_schedule.for_date(target)
    if business_day is None or not business_day.enabled:
        return []

    business_intervals = day_intervals(business_day)

    override_day = professional_override.for_date(target) if professional_override else None
    if override_day is None:
        return business_intervals
    if not override_day.enabled:
        return []

    return merge(intersect_all(business_intervals, day_intervals(override_day)))


def list_open_dates(
    business_schedule: WeeklySchedule,
    professional_override: Optional[WeeklySchedule],
    start: date,
    days: int,
) -> List[date]:
    """
    Dates in ``[start, start + days)`` with at least one open interval.

    Used to grey out closed days in a date picker; booked slots and blocked
    ranges are not considered.
    """
    open_dates = []
    for offset in range(max(0, days)):
        target = start + timedelta(days=offset)
        if resolve_open_intervals(business_schedule, professional_override, target):
            open_dates.append(target)
    logger.debug(f"{len(open_dates)} open dates from {start} over {days} days")
    return open_dates
