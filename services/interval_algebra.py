"""
Minute-of-day interval algebra.

Intervals are half-open ``[start, end)``. Ill-formed intervals (``start >= end``)
are silently dropped by every operation here.
"""
from bisect import bisect_left
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional


@dataclass(frozen=True, order=True)
class Interval:
    """Half-open range of minutes within a day."""
    start: int
    end: int

    @property
    def is_valid(self) -> bool:
        return self.start < self.end

    @property
    def length(self) -> int:
        return max(0, self.end - self.start)

    def overlaps(self, other: "Interval") -> bool:
        return self.start < other.end and other.start < self.end


def intersect(a: Interval, b: Interval) -> Optional[Interval]:
    """Intersection of two intervals, or None when it is empty."""
    start = max(a.start, b.start)
    end = min(a.end, b.end)
    if start >= end:
        return None
    return Interval(start, end)


def intersect_all(list_a: Iterable[Interval], list_b: Iterable[Interval]) -> List[Interval]:
    """
    Pairwise intersection of two interval lists.

    Every interval of ``list_a`` is intersected with every interval of
    ``list_b``; empty results are discarded.

    Returns:
        Intersections sorted by start
    """
    list_b = [b for b in list_b if b.is_valid]
    result = []
    for a in list_a:
        if not a.is_valid:
            continue
        for b in list_b:
            overlap = intersect(a, b)
            if overlap is not None:
                result.append(overlap)
    return sorted(result)


def merge(intervals: Iterable[Interval]) -> List[Interval]:
    """Sort intervals and coalesce the ones that overlap or touch."""
    merged: List[Interval] = []
    for interval in sorted(i for i in intervals if i.is_valid):
        if merged and interval.start <= merged[-1].end:
            last = merged[-1]
            merged[-1] = Interval(last.start, max(last.end, interval.end))
        else:
            merged.append(interval)
    return merged


class BusyTimeline:
    """
    Merged, sorted set of busy intervals for one day.

    Overlap and membership queries are a single binary search over the
    interval starts.
    """

    def __init__(self, intervals: Iterable[Interval] = ()):
        self._intervals = merge(intervals)
        self._starts = [i.start for i in self._intervals]

    def overlaps(self, start: int, end: int) -> bool:
        """Whether ``[start, end)`` shares at least one minute with a busy interval."""
        if start >= end:
            return False
        # Last busy interval starting before `end`; ends are sorted too
        idx = bisect_left(self._starts, end) - 1
        return idx >= 0 and self._intervals[idx].end > start

    def contains(self, minute: int) -> bool:
        """Whether ``minute`` is busy."""
        return self.overlaps(minute, minute + 1)

    @property
    def intervals(self) -> List[Interval]:
        return list(self._intervals)

    def __iter__(self) -> Iterator[Interval]:
        return iter(self._intervals)

    def __len__(self) -> int:
        return len(self._intervals)

    def __bool__(self) -> bool:
        return bool(self._intervals)
