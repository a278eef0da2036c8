"""
Busy-Time Aggregator.

Collects the minutes of a date made unavailable by scheduled appointments and
blocked date ranges.
"""
import math
from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional

from core.utils_datetime import MINUTES_PER_DAY, localize
from domain.models import AppointmentRecord, BlockedRange
from services.interval_algebra import BusyTimeline, Interval


def _wall_clock(value: datetime, tz_name: Optional[str]) -> datetime:
    """Naive wall-clock time in the business timezone."""
    if value.tzinfo is None:
        return value
    return localize(value, tz_name).replace(tzinfo=None)


def block_portion(block: BlockedRange, target: date, tz_name: Optional[str] = None) -> Optional[Interval]:
    """
    Part of a blocked range that falls on ``target``.

    Minutes run from the block start up to, not including, its end. Portions
    are clipped to the day; a block that spans the whole date occupies
    ``[0, 1440)``.
    """
    day_start = datetime.combine(target, time(0, 0))
    day_end = day_start + timedelta(days=1)
    start_at = _wall_clock(block.start_at, tz_name)
    end_at = _wall_clock(block.end_at, tz_name)

    if end_at < day_start or start_at >= day_end:
        return None

    start = 0 if start_at <= day_start else int((start_at - day_start).total_seconds() // 60)
    if end_at >= day_end:
        end = MINUTES_PER_DAY
    else:
        end = min(MINUTES_PER_DAY, math.ceil((end_at - day_start).total_seconds() / 60))

    if start >= end:
        return None
    return Interval(start, end)


def collect_busy_ranges(
    target: date,
    appointments: Iterable[AppointmentRecord],
    business_blocks: Iterable[BlockedRange] = (),
    professional_blocks: Iterable[BlockedRange] = (),
    tz_name: Optional[str] = None,
) -> BusyTimeline:
    """
    Busy timeline of a professional for ``target``.

    Args:
        target: Calendar date
        appointments: Appointments of the professional; only scheduled ones on
            ``target`` count, each as ``[start, start + duration_snapshot)``
        business_blocks: Business-wide blocked ranges
        professional_blocks: Blocked ranges of the professional
        tz_name: Business timezone, for blocks stored as aware datetimes

    Returns:
        BusyTimeline with merged intervals
    """
    busy = [
        Interval(a.start_minute, min(MINUTES_PER_DAY, a.end_minute))
        for a in appointments
        if a.is_scheduled and a.date == target
    ]

    for block in list(business_blocks) + list(professional_blocks):
        portion = block_portion(block, target, tz_name)
        if portion is not None:
            busy.append(portion)

    return BusyTimeline(busy)
