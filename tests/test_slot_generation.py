"""Unit tests for schedule resolution, busy-time collection and slot generation."""
import pytest
from datetime import date, datetime

from domain.enums import AppointmentStatus
from domain.models import AppointmentRecord, BlockedRange, WeeklySchedule
from services.busy_time import block_portion, collect_busy_ranges
from services.interval_algebra import BusyTimeline, Interval
from services.schedule_resolver import list_open_dates, resolve_open_intervals
from services.slot_generator import generate_slots


MONDAY = date(2030, 1, 7)
TUESDAY = date(2030, 1, 8)
SUNDAY = date(2030, 1, 6)


def _schedule(days):
    return WeeklySchedule.model_validate({"days": days})


def _appointment(start_minute, duration, status=AppointmentStatus.SCHEDULED, target=MONDAY):
    return AppointmentRecord(
        id=f"apt-{start_minute}",
        business_id="biz",
        client_id="client",
        service_id="svc",
        professional_id="prof",
        date=target,
        start_minute=start_minute,
        duration_minutes=duration,
        status=status,
    )


@pytest.fixture
def business_schedule():
    weekday = {"enabled": True, "intervals": [{"start": "09:00", "end": "12:00"}, {"start": "13:00", "end": "18:00"}]}
    return _schedule({
        "monday": weekday,
        "tuesday": weekday,
        "sunday": {"enabled": False},
    })


@pytest.mark.unit
class TestScheduleResolver:
    """Test open intervals for a date."""

    def test_business_hours_without_override(self, business_schedule):
        """Test the business hours apply when the professional has no override."""
        intervals = resolve_open_intervals(business_schedule, None, MONDAY)

        assert intervals == [Interval(540, 720), Interval(780, 1080)]

    def test_business_closed_wins(self, business_schedule):
        """Test a closed business day yields nothing whatever the override says."""
        override = _schedule({"sunday": {"enabled": True, "intervals": [{"start": "08:00", "end": "20:00"}]}})

        assert resolve_open_intervals(business_schedule, override, SUNDAY) == []

    def test_missing_business_day_is_closed(self, business_schedule):
        """Test weekdays absent from the business schedule are closed."""
        assert resolve_open_intervals(business_schedule, None, date(2030, 1, 9)) == []

    def test_override_is_intersected(self, business_schedule):
        """Test the professional's hours narrow the business hours."""
        override = _schedule({"monday": {"enabled": True, "intervals": [{"start": "10:00", "end": "16:00"}]}})

        intervals = resolve_open_intervals(business_schedule, override, MONDAY)

        assert intervals == [Interval(600, 720), Interval(780, 960)]

    def test_override_disabled_day(self, business_schedule):
        """Test a disabled override day closes the professional's day."""
        override = _schedule({"tuesday": {"enabled": False}})

        assert resolve_open_intervals(business_schedule, override, TUESDAY) == []

    def test_override_missing_day_inherits(self, business_schedule):
        """Test a weekday the override omits falls back to business hours."""
        override = _schedule({"monday": {"enabled": False}})

        assert resolve_open_intervals(business_schedule, override, TUESDAY) == [
            Interval(540, 720),
            Interval(780, 1080),
        ]

    def test_override_outside_business_hours(self, business_schedule):
        """Test an override with no common minutes yields nothing."""
        override = _schedule({"monday": {"enabled": True, "intervals": [{"start": "19:00", "end": "22:00"}]}})

        assert resolve_open_intervals(business_schedule, override, MONDAY) == []

    def test_list_open_dates(self, business_schedule):
        """Test only dates with open intervals are listed."""
        assert list_open_dates(business_schedule, None, SUNDAY, 4) == [MONDAY, TUESDAY]


@pytest.mark.unit
class TestScheduleModels:
    """Test schedule validation."""

    def test_overlapping_intervals_rejected(self):
        """Test a day with overlapping intervals is invalid."""
        with pytest.raises(ValueError, match="overlap"):
            _schedule({"monday": {"intervals": [{"start": "09:00", "end": "12:00"}, {"start": "11:00", "end": "13:00"}]}})

    def test_inverted_interval_rejected(self):
        """Test an interval ending before it starts is invalid."""
        with pytest.raises(ValueError, match="must be before"):
            _schedule({"monday": {"intervals": [{"start": "12:00", "end": "09:00"}]}})

    def test_end_of_day(self):
        """Test 24:00 closes an interval at the end of the day."""
        schedule = _schedule({"monday": {"intervals": [{"start": "20:00", "end": "24:00"}]}})

        assert schedule.for_date(MONDAY).intervals[0].end == 1440


@pytest.mark.unit
class TestBusyTime:
    """Test collection of busy minutes."""

    def test_scheduled_appointments_only(self):
        """Test canceled appointments do not take time."""
        busy = collect_busy_ranges(
            MONDAY,
            [_appointment(600, 30), _appointment(660, 30, status=AppointmentStatus.CANCELED)],
        )

        assert busy.intervals == [Interval(600, 630)]

    def test_appointments_on_other_dates_ignored(self):
        """Test appointments of another date are not counted."""
        busy = collect_busy_ranges(MONDAY, [_appointment(600, 30, target=TUESDAY)])

        assert not busy

    def test_block_within_day(self):
        """Test a block occupies its minutes up to its end."""
        block = BlockedRange(start_at=datetime(2030, 1, 7, 12, 30), end_at=datetime(2030, 1, 7, 14, 0))

        assert block_portion(block, MONDAY) == Interval(750, 840)

    def test_multi_day_block_covers_whole_middle_day(self):
        """Test a block spanning several days occupies all of the days in between."""
        block = BlockedRange(start_at=datetime(2030, 1, 6, 20, 0), end_at=datetime(2030, 1, 8, 8, 0))

        assert block_portion(block, MONDAY) == Interval(0, 1440)
        assert block_portion(block, SUNDAY) == Interval(1200, 1440)
        assert block_portion(block, TUESDAY) == Interval(0, 480)

    def test_block_on_other_day(self):
        """Test a block elsewhere in the calendar contributes nothing."""
        block = BlockedRange(start_at=datetime(2030, 1, 8, 9, 0), end_at=datetime(2030, 1, 8, 10, 0))

        assert block_portion(block, MONDAY) is None

    def test_aware_block_converted_to_business_time(self):
        """Test blocks stored with a timezone are read as business wall-clock time."""
        # 15:00 UTC is 12:00 in Sao Paulo
        block = BlockedRange(
            start_at=datetime.fromisoformat("2030-01-07T15:00:00+00:00"),
            end_at=datetime.fromisoformat("2030-01-07T16:00:00+00:00"),
        )

        assert block_portion(block, MONDAY, "America/Sao_Paulo") == Interval(720, 780)

    def test_business_and_professional_blocks_combined(self):
        """Test both kinds of block are merged with appointments."""
        busy = collect_busy_ranges(
            MONDAY,
            [_appointment(540, 30)],
            business_blocks=[BlockedRange(start_at=datetime(2030, 1, 7, 9, 30), end_at=datetime(2030, 1, 7, 10, 0))],
            professional_blocks=[BlockedRange(start_at=datetime(2030, 1, 7, 16, 0), end_at=datetime(2030, 1, 7, 17, 0))],
        )

        assert busy.intervals == [Interval(540, 600), Interval(960, 1020)]


@pytest.mark.unit
class TestGenerateSlots:
    """Test candidate start generation."""

    MORNING = [Interval(540, 720)]

    def test_empty_day(self):
        """Test every step of the interval is offered when nothing is busy."""
        slots = generate_slots(self.MORNING, BusyTimeline(), duration=30, granularity=30)

        assert slots == ["09:00", "09:30", "10:00", "10:30", "11:00", "11:30"]

    def test_booked_slot_excluded(self):
        """Test a 30 minute booking at 10:00 removes overlapping 60 minute starts."""
        busy = BusyTimeline([Interval(600, 630)])

        slots = generate_slots(self.MORNING, busy, duration=60, granularity=30)

        assert slots == ["09:00", "10:30", "11:00"]

    def test_touching_busy_range_allowed(self):
        """Test a slot ending exactly when busy time starts is offered."""
        busy = BusyTimeline([Interval(600, 660)])

        slots = generate_slots(self.MORNING, busy, duration=60, granularity=30)

        assert "09:00" in slots
        assert "09:30" not in slots
        assert "11:00" in slots

    def test_slot_never_spans_a_gap(self):
        """Test a duration longer than each interval yields nothing even if their sum would fit."""
        intervals = [Interval(540, 600), Interval(660, 720)]

        assert generate_slots(intervals, BusyTimeline(), duration=90, granularity=30) == []

    def test_slot_must_end_inside_interval(self):
        """Test starts whose duration runs past the interval end are dropped."""
        slots = generate_slots([Interval(540, 660)], BusyTimeline(), duration=90, granularity=30)

        assert slots == ["09:00", "09:30"]

    def test_past_times_today_excluded(self):
        """Test at 14:10 the 14:00 slot is gone and 14:30 is offered."""
        now = datetime(2030, 1, 7, 14, 10)

        slots = generate_slots([Interval(780, 1080)], BusyTimeline(), 30, 30, now=now, target=MONDAY)

        assert "14:00" not in slots
        assert slots[0] == "14:30"

    def test_current_minute_excluded(self):
        """Test a slot starting exactly now is no longer offered."""
        now = datetime(2030, 1, 7, 14, 0)

        slots = generate_slots([Interval(780, 1080)], BusyTimeline(), 30, 30, now=now, target=MONDAY)

        assert slots[0] == "14:30"

    def test_now_on_other_day_ignored(self):
        """Test the current time only filters slots of the current date."""
        now = datetime(2030, 1, 6, 23, 0)

        slots = generate_slots(self.MORNING, BusyTimeline(), 30, 30, now=now, target=MONDAY)

        assert slots[0] == "09:00"

    def test_custom_granularity(self):
        """Test a 15 minute step offers quarter-hour starts."""
        slots = generate_slots([Interval(540, 600)], BusyTimeline(), duration=30, granularity=15)

        assert slots == ["09:00", "09:15", "09:30"]

    def test_non_positive_duration(self):
        """Test a zero duration produces nothing."""
        assert generate_slots(self.MORNING, BusyTimeline(), duration=0) == []
