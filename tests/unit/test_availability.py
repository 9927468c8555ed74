"""Tests for slot computation and day classification."""
from datetime import date, timedelta

import pytest

from medbook.availability import AvailabilityEngine, OverlapPolicy
from medbook.errors import ValidationError
from medbook.models import DayAvailability, WorkingHoursEntry


class TestClassifyDate:
    """Past dates, vacations and missing weekdays are unavailable."""

    def test_working_weekday_is_available(self, engine, monday, monday_hours):
        assert engine.classify_date(monday, monday_hours, []) == DayAvailability.AVAILABLE

    def test_today_is_available_when_working(self, monday, monday_hours):
        """Today counts as bookable (only strictly earlier dates are past)."""
        engine = AvailabilityEngine(clock=lambda: monday)
        assert engine.classify_date(monday, monday_hours, []) == DayAvailability.AVAILABLE

    def test_past_date_is_unavailable_regardless_of_hours(self, monday, monday_hours):
        engine = AvailabilityEngine(clock=lambda: monday + timedelta(days=1))
        assert engine.classify_date(monday, monday_hours, []) == DayAvailability.UNAVAILABLE

    def test_vacation_overrides_working_hours(self, engine, monday, monday_hours, make_vacation):
        vacations = [make_vacation(monday - timedelta(days=2), monday + timedelta(days=2), "Conference")]
        assert engine.classify_date(monday, monday_hours, vacations) == DayAvailability.UNAVAILABLE

    def test_vacation_bounds_are_inclusive(self, engine, monday, monday_hours, make_vacation):
        assert engine.classify_date(monday, monday_hours, [make_vacation(monday, monday + timedelta(days=7))]) \
            == DayAvailability.UNAVAILABLE
        assert engine.classify_date(monday, monday_hours, [make_vacation(monday - timedelta(days=7), monday)]) \
            == DayAvailability.UNAVAILABLE

    def test_vacation_ending_before_date_does_not_apply(self, engine, monday, monday_hours, make_vacation):
        vacations = [make_vacation(monday - timedelta(days=7), monday - timedelta(days=1))]
        assert engine.classify_date(monday, monday_hours, vacations) == DayAvailability.AVAILABLE

    def test_weekday_without_hours_is_unavailable(self, engine, monday, monday_hours):
        tuesday = monday + timedelta(days=1)
        assert engine.classify_date(tuesday, monday_hours, []) == DayAvailability.UNAVAILABLE

    def test_sunday_is_day_zero(self, engine):
        sunday = date(2026, 10, 18)
        hours = [WorkingHoursEntry(day_of_week=0, start_time="10:00", end_time="14:00")]
        assert engine.classify_date(sunday, hours, []) == DayAvailability.AVAILABLE

    def test_accepts_plain_dicts(self, engine, monday):
        hours = [{"day_of_week": 1, "start_time": "09:00", "end_time": "12:00"}]
        vacations = [{"start_date": "2026-10-19", "end_date": "2026-10-19"}]
        assert engine.classify_date(monday, hours, vacations) == DayAvailability.UNAVAILABLE

    def test_clock_is_used_when_today_omitted(self, monday, monday_hours):
        calls = []

        def clock():
            calls.append(1)
            return monday

        AvailabilityEngine(clock=clock).classify_date(monday, monday_hours, [])
        assert calls


class TestClassifyRange:

    def test_classifies_each_day_inclusive(self, engine, monday, monday_hours):
        days = engine.classify_range(monday - timedelta(days=1), monday + timedelta(days=1), monday_hours, [])

        assert days == [
            (monday - timedelta(days=1), DayAvailability.UNAVAILABLE),
            (monday, DayAvailability.AVAILABLE),
            (monday + timedelta(days=1), DayAvailability.UNAVAILABLE),
        ]

    def test_end_before_start_raises(self, engine, monday, monday_hours):
        with pytest.raises(ValidationError):
            engine.classify_range(monday, monday - timedelta(days=1), monday_hours, [])

    def test_next_monday_also_available(self, engine, monday, monday_hours):
        days = dict(engine.classify_range(monday, monday + timedelta(days=7), monday_hours, []))
        assert days[monday + timedelta(days=7)] == DayAvailability.AVAILABLE
        assert sum(1 for status in days.values() if status == DayAvailability.AVAILABLE) == 2


class TestComputeAvailableSlots:
    """Slot generation for a single date."""

    def test_monday_with_one_booking(self, engine, monday, monday_hours, make_appointment):
        """10:00 booked; 12:00 is the window end and never offered."""
        slots = engine.compute_available_slots(
            monday, monday_hours, [], [make_appointment("10:00", "10:30")]
        )

        assert slots == ["09:00", "09:30", "10:30", "11:00", "11:30"]

    def test_slots_stay_inside_window(self, engine, monday, monday_hours):
        slots = engine.compute_available_slots(monday, monday_hours, [], [])

        assert slots == ["09:00", "09:30", "10:00", "10:30", "11:00", "11:30"]
        assert all("09:00" <= slot < "12:00" for slot in slots)

    def test_partial_trailing_slot_is_dropped(self, engine, monday):
        hours = [WorkingHoursEntry(day_of_week=1, start_time="09:00", end_time="10:15")]

        assert engine.compute_available_slots(monday, hours, [], []) == ["09:00", "09:30"]

    def test_cancelled_appointment_does_not_block(self, engine, monday, monday_hours, make_appointment):
        slots = engine.compute_available_slots(
            monday, monday_hours, [], [make_appointment("10:00", "10:30", status="cancelled")]
        )

        assert "10:00" in slots

    def test_completed_appointment_blocks(self, engine, monday, monday_hours, make_appointment):
        slots = engine.compute_available_slots(
            monday, monday_hours, [], [make_appointment("10:00", "10:30", status="completed")]
        )

        assert "10:00" not in slots

    def test_long_appointment_blocks_every_covered_start(self, engine, monday, monday_hours, make_appointment):
        slots = engine.compute_available_slots(monday, monday_hours, [], [make_appointment("09:30", "10:30")])

        assert slots == ["09:00", "10:30", "11:00", "11:30"]

    def test_appointments_on_other_dates_are_ignored(self, engine, monday, monday_hours, make_appointment):
        other_day = make_appointment("10:00", "10:30", day=monday + timedelta(days=7))

        assert "10:00" in engine.compute_available_slots(monday, monday_hours, [], [other_day])

    def test_unavailable_day_has_no_slots(self, engine, monday, monday_hours, make_vacation):
        assert engine.compute_available_slots(monday, monday_hours, [make_vacation(monday, monday)], []) == []
        assert engine.compute_available_slots(monday + timedelta(days=1), monday_hours, [], []) == []

    def test_idempotent_and_ordered(self, engine, monday, monday_hours, make_appointment):
        appointments = [make_appointment("11:00", "11:30")]

        first = engine.compute_available_slots(monday, monday_hours, [], appointments)
        second = engine.compute_available_slots(monday, monday_hours, [], appointments)

        assert first == second
        assert first == sorted(first)

    def test_split_shifts_are_merged(self, engine, monday):
        hours = [
            WorkingHoursEntry(day_of_week=1, start_time="14:00", end_time="15:00"),
            WorkingHoursEntry(day_of_week=1, start_time="09:00", end_time="10:00"),
        ]

        assert engine.compute_available_slots(monday, hours, [], []) == ["09:00", "09:30", "14:00", "14:30"]

    def test_overlapping_windows_do_not_duplicate_slots(self, engine, monday):
        hours = [
            WorkingHoursEntry(day_of_week=1, start_time="09:00", end_time="10:30"),
            WorkingHoursEntry(day_of_week=1, start_time="10:00", end_time="11:00"),
        ]

        assert engine.compute_available_slots(monday, hours, [], []) == ["09:00", "09:30", "10:00", "10:30"]

    def test_window_until_midnight(self, engine, monday):
        hours = [WorkingHoursEntry(day_of_week=1, start_time="23:00", end_time="24:00")]

        assert engine.compute_available_slots(monday, hours, [], []) == ["23:00", "23:30"]

    def test_seconds_in_stored_times_are_accepted(self, engine, monday):
        hours = [{"day_of_week": 1, "start_time": "09:00:00", "end_time": "10:00:00"}]

        assert engine.compute_available_slots(monday, hours, [], []) == ["09:00", "09:30"]

    def test_malformed_time_raises(self, engine, monday):
        with pytest.raises(ValidationError):
            engine.compute_available_slots(monday, [{"day_of_week": 1, "start_time": "9am", "end_time": "12:00"}], [], [])

    def test_out_of_range_weekday_raises(self, engine, monday):
        with pytest.raises(ValidationError):
            engine.compute_available_slots(monday, [{"day_of_week": 7, "start_time": "09:00", "end_time": "12:00"}], [], [])


class TestOverlapPolicy:
    """Off-grid bookings: 10:15-10:45 against 30-minute slots."""

    def test_start_point_policy_keeps_10_00(self, monday, monday_hours, make_appointment):
        engine = AvailabilityEngine(overlap_policy=OverlapPolicy.START_POINT, clock=lambda: monday)

        slots = engine.compute_available_slots(monday, monday_hours, [], [make_appointment("10:15", "10:45")])

        assert "10:00" in slots
        assert "10:30" not in slots

    def test_interval_policy_excludes_any_overlap(self, monday, monday_hours, make_appointment):
        engine = AvailabilityEngine(overlap_policy=OverlapPolicy.INTERVAL, clock=lambda: monday)

        slots = engine.compute_available_slots(monday, monday_hours, [], [make_appointment("10:15", "10:45")])

        assert slots == ["09:00", "09:30", "11:00", "11:30"]

    def test_policies_agree_on_grid_aligned_bookings(self, monday, monday_hours, make_appointment):
        appointments = [make_appointment("10:00", "10:30")]
        start_point = AvailabilityEngine(overlap_policy="start_point", clock=lambda: monday)
        interval = AvailabilityEngine(overlap_policy="interval", clock=lambda: monday)

        assert start_point.compute_available_slots(monday, monday_hours, [], appointments) \
            == interval.compute_available_slots(monday, monday_hours, [], appointments)

    def test_unknown_policy_rejected(self):
        with pytest.raises(ValueError):
            AvailabilityEngine(overlap_policy="nearest")


class TestSlotRecheck:

    def test_free_slot(self, engine, monday, make_appointment):
        assert engine.is_slot_still_free("doc-1", monday, "10:00", [make_appointment("10:30", "11:00")])

    def test_taken_slot(self, engine, monday, make_appointment):
        assert not engine.is_slot_still_free("doc-1", monday, "10:00", [make_appointment("10:00", "10:30")])

    def test_cancelled_or_other_doctor_does_not_count(self, engine, monday, make_appointment):
        appointments = [
            make_appointment("10:00", "10:30", status="cancelled"),
            make_appointment("10:00", "10:30", doctor_id="doc-2"),
        ]

        assert engine.is_slot_still_free("doc-1", monday, "10:00", appointments)

    def test_records_without_doctor_id_count(self, engine, monday, monday_hours):
        """Recheck agrees with slot computation for records carrying no doctor."""
        existing = [{"date": "2026-10-19", "start_time": "10:00", "end_time": "10:30", "status": "scheduled"}]

        assert "10:00" not in engine.compute_available_slots(monday, monday_hours, [], existing)
        assert engine.is_slot_still_free("doc-1", monday, "10:00", existing) is False
        assert engine.is_slot_still_free("doc-1", monday, "10:30", existing) is True

    def test_slot_end(self, engine):
        assert engine.slot_end("09:30") == "10:00"
        assert engine.slot_end("23:30") == "24:00"

    def test_non_positive_slot_width_rejected(self):
        with pytest.raises(ValidationError):
            AvailabilityEngine(slot_minutes=0)
