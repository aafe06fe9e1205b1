from __future__ import annotations

from datetime import datetime, timezone

from slotengine.core.availability import (
    compute_sellable_slots,
    compute_sellable_slots_from_input,
    expand_recurring_to_utc_slots,
)
from slotengine.core.intervals import TimeRange, normalize_ranges
from slotengine.core.schemas import (
    AvailabilityOverride,
    BusyInterval,
    ExternalBusyBlock,
    RecurringAvailabilityWindow,
    TimeWindow,
)

# 2026-02-16 is a Monday (day_of_week=1).
MONDAY = TimeWindow(from_utc="2026-02-16T00:00:00Z", to_utc="2026-02-17T00:00:00Z")
MON_9_17 = RecurringAvailabilityWindow(day_of_week=1, start_time="09:00", end_time="17:00")


def _utc(day: int, hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 2, day, hour, minute, tzinfo=timezone.utc)


def _pairs(slots) -> list[tuple[datetime, datetime]]:
    return [(s.start_utc, s.end_utc) for s in slots]


def _compute(window=MONDAY, recurring=(), overrides=(), bookings=(), busy=(), **kwargs):
    return compute_sellable_slots(window, "UTC", list(recurring), list(overrides), list(bookings), list(busy), **kwargs)


def test_recurring_window_only_yields_single_slot():
    slots = _compute(recurring=[MON_9_17])
    assert _pairs(slots) == [(_utc(16, 9), _utc(16, 17))]


def test_block_override_splits_recurring_window():
    block = AvailabilityOverride(start_utc="2026-02-16T12:00:00Z", end_utc="2026-02-16T13:00:00Z", is_available=False)
    slots = _compute(recurring=[MON_9_17], overrides=[block])
    assert _pairs(slots) == [(_utc(16, 9), _utc(16, 12)), (_utc(16, 13), _utc(16, 17))]


def test_add_override_creates_time_without_recurring_input():
    add = AvailabilityOverride(start_utc="2026-02-16T10:00:00Z", end_utc="2026-02-16T11:00:00Z", is_available=True)
    slots = _compute(overrides=[add])
    assert _pairs(slots) == [(_utc(16, 10), _utc(16, 11))]


def test_occupying_booking_is_subtracted():
    booking = BusyInterval(start_time="2026-02-16T14:00:00Z", end_time="2026-02-16T15:00:00Z")
    slots = _compute(recurring=[MON_9_17], bookings=[booking])
    assert _pairs(slots) == [(_utc(16, 9), _utc(16, 14)), (_utc(16, 15), _utc(16, 17))]


def test_external_busy_block_is_subtracted():
    busy = ExternalBusyBlock(start_utc="2026-02-16T08:00:00Z", end_utc="2026-02-16T10:30:00Z")
    slots = _compute(recurring=[MON_9_17], busy=[busy])
    assert _pairs(slots) == [(_utc(16, 10, 30), _utc(16, 17))]


def test_block_fully_covering_slot_removes_it():
    busy = ExternalBusyBlock(start_utc="2026-02-16T08:00:00Z", end_utc="2026-02-16T18:00:00Z")
    assert _compute(recurring=[MON_9_17], busy=[busy]) == []


def test_block_override_beats_add_override_and_recurring_union():
    add = AvailabilityOverride(start_utc="2026-02-16T16:00:00Z", end_utc="2026-02-16T19:00:00Z", is_available=True)
    block = AvailabilityOverride(start_utc="2026-02-16T15:00:00Z", end_utc="2026-02-16T18:00:00Z", is_available=False)
    slots = _compute(recurring=[MON_9_17], overrides=[add, block])
    assert _pairs(slots) == [(_utc(16, 9), _utc(16, 15)), (_utc(16, 18), _utc(16, 19))]


def test_block_override_wins_regardless_of_override_order():
    add = AvailabilityOverride(start_utc="2026-02-16T16:00:00Z", end_utc="2026-02-16T19:00:00Z", is_available=True)
    block = AvailabilityOverride(start_utc="2026-02-16T15:00:00Z", end_utc="2026-02-16T18:00:00Z", is_available=False)
    expected = [(_utc(16, 9), _utc(16, 15)), (_utc(16, 18), _utc(16, 19))]

    assert _pairs(_compute(recurring=[MON_9_17], overrides=[add, block])) == expected
    assert _pairs(_compute(recurring=[MON_9_17], overrides=[block, add])) == expected


def test_add_override_inside_block_stays_blocked():
    block = AvailabilityOverride(start_utc="2026-02-16T09:00:00Z", end_utc="2026-02-16T17:00:00Z", is_available=False)
    add = AvailabilityOverride(start_utc="2026-02-16T10:00:00Z", end_utc="2026-02-16T11:00:00Z", is_available=True)
    assert _compute(recurring=[MON_9_17], overrides=[block, add]) == []


def test_add_override_adjacent_to_recurring_is_merged():
    add = AvailabilityOverride(start_utc="2026-02-16T17:00:00Z", end_utc="2026-02-16T18:00:00Z", is_available=True)
    slots = _compute(recurring=[MON_9_17], overrides=[add])
    assert _pairs(slots) == [(_utc(16, 9), _utc(16, 18))]


def test_overlapping_recurring_windows_are_merged():
    recurring = [
        MON_9_17,
        RecurringAvailabilityWindow(day_of_week=1, start_time="16:00", end_time="20:00"),
    ]
    assert _pairs(_compute(recurring=recurring)) == [(_utc(16, 9), _utc(16, 20))]


def test_inactive_recurring_window_is_ignored():
    inactive = RecurringAvailabilityWindow(day_of_week=1, start_time="09:00", end_time="17:00", is_active=False)
    assert _compute(recurring=[inactive]) == []


def test_recurring_window_with_end_before_start_is_dropped():
    bad = RecurringAvailabilityWindow(day_of_week=1, start_time="17:00", end_time="09:00")
    assert _compute(recurring=[bad]) == []


def test_expanded_slots_are_clipped_to_window():
    window = TimeWindow(from_utc="2026-02-16T10:00:00Z", to_utc="2026-02-16T12:00:00Z")
    assert _pairs(_compute(window=window, recurring=[MON_9_17])) == [(_utc(16, 10), _utc(16, 12))]


def test_add_override_is_not_clipped_to_window():
    window = TimeWindow(from_utc="2026-02-16T10:00:00Z", to_utc="2026-02-16T12:00:00Z")
    add = AvailabilityOverride(start_utc="2026-02-16T11:00:00Z", end_utc="2026-02-16T13:00:00Z", is_available=True)
    assert _pairs(_compute(window=window, overrides=[add])) == [(_utc(16, 11), _utc(16, 13))]


def test_multi_week_window_expands_every_matching_day():
    window = TimeWindow(from_utc="2026-02-15T00:00:00Z", to_utc="2026-03-01T00:00:00Z")
    slots = _compute(window=window, recurring=[MON_9_17])
    assert _pairs(slots) == [(_utc(16, 9), _utc(16, 17)), (_utc(23, 9), _utc(23, 17))]


def test_sunday_is_day_zero():
    sunday = RecurringAvailabilityWindow(day_of_week=0, start_time="10:00", end_time="12:00")
    window = TimeWindow(from_utc="2026-02-15T00:00:00Z", to_utc="2026-02-16T00:00:00Z")
    assert _pairs(_compute(window=window, recurring=[sunday])) == [(_utc(15, 10), _utc(15, 12))]


def test_seconds_and_end_of_day_times_are_supported():
    late = RecurringAvailabilityWindow(day_of_week=1, start_time="22:30:15", end_time="24:00")
    slots = _compute(recurring=[late])
    assert _pairs(slots) == [(datetime(2026, 2, 16, 22, 30, 15, tzinfo=timezone.utc), _utc(17, 0))]


def test_equal_or_reversed_window_yields_empty():
    same = TimeWindow(from_utc="2026-02-16T09:00:00Z", to_utc="2026-02-16T09:00:00Z")
    reversed_window = TimeWindow(from_utc="2026-02-17T00:00:00Z", to_utc="2026-02-16T00:00:00Z")
    add = AvailabilityOverride(start_utc="2026-02-16T10:00:00Z", end_utc="2026-02-16T11:00:00Z", is_available=True)
    assert _compute(window=same, recurring=[MON_9_17], overrides=[add]) == []
    assert _compute(window=reversed_window, recurring=[MON_9_17], overrides=[add]) == []


def test_malformed_window_yields_empty():
    window = TimeWindow(from_utc="not-a-date", to_utc="2026-02-17T00:00:00Z")
    assert _compute(window=window, recurring=[MON_9_17]) == []


def test_malformed_rows_contribute_nothing():
    bad_add = AvailabilityOverride(start_utc="garbage", end_utc="2026-02-16T20:00:00Z", is_available=True)
    bad_block = AvailabilityOverride(start_utc="2026-02-16T10:00:00Z", end_utc="??", is_available=False)
    bad_booking = BusyInterval(start_time="", end_time="2026-02-16T12:00:00Z")
    bad_busy = ExternalBusyBlock(start_utc="2026-02-16T13:00:00Z", end_utc="2026-02-16T12:00:00Z")
    bad_recurring = RecurringAvailabilityWindow(day_of_week=1, start_time="9am", end_time="17:00")

    slots = _compute(
        recurring=[MON_9_17, bad_recurring],
        overrides=[bad_add, bad_block],
        bookings=[bad_booking],
        busy=[bad_busy],
    )
    assert _pairs(slots) == [(_utc(16, 9), _utc(16, 17))]


def test_accepts_plain_dict_rows_and_datetimes():
    window = {"from_utc": _utc(16, 0), "to_utc": _utc(17, 0)}
    recurring = [{"day_of_week": 1, "start_time": "09:00", "end_time": "17:00", "is_active": True}]
    bookings = [{"start_time": _utc(16, 9), "end_time": _utc(16, 10)}]
    slots = compute_sellable_slots(window, "UTC", recurring, [], bookings, [])
    assert _pairs(slots) == [(_utc(16, 10), _utc(16, 17))]


def test_booking_fully_inside_window_never_intersects_output():
    bookings = [
        BusyInterval(start_time="2026-02-16T09:30:00Z", end_time="2026-02-16T10:00:00Z"),
        BusyInterval(start_time="2026-02-16T11:00:00Z", end_time="2026-02-16T13:00:00Z"),
        BusyInterval(start_time="2026-02-16T12:00:00Z", end_time="2026-02-16T14:00:00Z"),
    ]
    busy = [ExternalBusyBlock(start_utc="2026-02-16T16:45:00Z", end_utc="2026-02-16T17:30:00Z")]
    slots = _compute(recurring=[MON_9_17], bookings=bookings, busy=busy)

    taken = [TimeRange.from_values(b.start_time, b.end_time) for b in bookings]
    taken += [TimeRange.from_values(b.start_utc, b.end_utc) for b in busy]
    for s in slots:
        slot = TimeRange(s.start_utc, s.end_utc)
        assert not any(slot.overlaps(t) for t in taken)


def test_output_is_sorted_merged_and_a_fixed_point():
    recurring = [
        RecurringAvailabilityWindow(day_of_week=1, start_time="13:00", end_time="18:00"),
        RecurringAvailabilityWindow(day_of_week=1, start_time="08:00", end_time="10:00"),
        RecurringAvailabilityWindow(day_of_week=2, start_time="09:00", end_time="11:00"),
    ]
    adds = [
        AvailabilityOverride(start_utc="2026-02-16T10:00:00Z", end_utc="2026-02-16T11:00:00Z", is_available=True),
        AvailabilityOverride(start_utc="2026-02-16T20:00:00Z", end_utc="2026-02-16T21:00:00Z", is_available=True),
    ]
    window = TimeWindow(from_utc="2026-02-16T00:00:00Z", to_utc="2026-02-18T00:00:00Z")
    slots = _compute(window=window, recurring=recurring, overrides=adds)

    starts = [s.start_utc for s in slots]
    assert starts == sorted(starts)
    for a, b in zip(slots, slots[1:]):
        assert a.end_utc < b.start_utc

    ranges = [TimeRange(s.start_utc, s.end_utc) for s in slots]
    assert normalize_ranges(ranges) == ranges


def test_exclusion_reasons_do_not_change_slots():
    block = AvailabilityOverride(start_utc="2026-02-16T12:00:00Z", end_utc="2026-02-16T13:00:00Z", is_available=False)
    booking = BusyInterval(start_time="2026-02-16T14:00:00Z", end_time="2026-02-16T15:00:00Z")
    busy = ExternalBusyBlock(start_utc="2026-02-16T16:00:00Z", end_utc="2026-02-16T16:30:00Z")
    args = (MONDAY, "UTC", [MON_9_17], [block], [booking], [busy])

    plain = compute_sellable_slots_from_input(*args)
    debug = compute_sellable_slots_from_input(*args, include_exclusion_reasons=True)

    assert plain.slots == debug.slots
    assert plain.excluded_ranges == []
    assert [e.reason for e in debug.excluded_ranges] == [
        "availability_override_block",
        "booking",
        "external_calendar_busy",
    ]


def test_timezone_is_ignored_by_default():
    # Monday 09:00-17:00 stays on the UTC Monday even for a provider in New York.
    slots = compute_sellable_slots(MONDAY, "America/New_York", [MON_9_17], [], [], [])
    assert _pairs(slots) == [(_utc(16, 9), _utc(16, 17))]


def test_timezone_is_applied_when_enabled():
    window = TimeWindow(from_utc="2026-02-16T00:00:00Z", to_utc="2026-02-17T12:00:00Z")
    slots = compute_sellable_slots(window, "America/New_York", [MON_9_17], [], [], [], apply_timezone=True)
    # EST is UTC-5 in February.
    assert _pairs(slots) == [(_utc(16, 14), _utc(16, 22))]


def test_applied_timezone_moves_window_across_utc_midnight():
    late = RecurringAvailabilityWindow(day_of_week=1, start_time="20:00", end_time="23:00")
    window = TimeWindow(from_utc="2026-02-16T00:00:00Z", to_utc="2026-02-18T00:00:00Z")
    slots = compute_sellable_slots(window, "America/Los_Angeles", [late], [], [], [], apply_timezone=True)
    # Monday 20:00 PST is Tuesday 04:00 UTC.
    assert _pairs(slots) == [(_utc(17, 4), _utc(17, 7))]


def test_unknown_timezone_falls_back_to_utc():
    slots = compute_sellable_slots(MONDAY, "Mars/Olympus_Mons", [MON_9_17], [], [], [], apply_timezone=True)
    assert _pairs(slots) == [(_utc(16, 9), _utc(16, 17))]


def test_expand_recurring_to_utc_slots_merges_and_clips():
    recurring = [
        RecurringAvailabilityWindow(day_of_week=1, start_time="09:00", end_time="12:00"),
        RecurringAvailabilityWindow(day_of_week=1, start_time="12:00", end_time="14:00"),
    ]
    slots = expand_recurring_to_utc_slots(recurring, "2026-02-16T10:00:00Z", "2026-02-16T23:00:00Z")
    assert _pairs(slots) == [(_utc(16, 10), _utc(16, 14))]


def test_result_serialises_with_utc_suffix():
    slots = _compute(recurring=[MON_9_17])
    dumped = slots[0].model_dump(mode="json")
    assert dumped["start_utc"].startswith("2026-02-16T09:00:00")
    assert dumped["start_utc"].endswith("Z")
