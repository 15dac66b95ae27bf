from datetime import date, datetime

from workshop.domain.calendar import (
    compute_finish, is_working_day, next_working_instant, round_up_to_hour,
)

# 2025-03-07 is a Friday
FRIDAY = date(2025, 3, 7)


def test_weekend_is_not_a_working_day():
    assert is_working_day(FRIDAY)
    assert not is_working_day(date(2025, 3, 8))
    assert not is_working_day(date(2025, 3, 9))
    assert not is_working_day(date(2025, 3, 10), {date(2025, 3, 10)})


def test_finish_within_one_window():
    assert compute_finish(datetime(2025, 3, 3, 8, 0), 3) == datetime(2025, 3, 3, 11, 0)


def test_lunch_break_is_skipped():
    assert compute_finish(datetime(2025, 3, 3, 11, 30), 1) == datetime(2025, 3, 3, 13, 30)


def test_full_day_ends_at_close():
    assert compute_finish(datetime(2025, 3, 3, 8, 0), 8) == datetime(2025, 3, 3, 17, 0)
    assert compute_finish(datetime(2025, 3, 3, 8, 0), 9) == datetime(2025, 3, 4, 9, 0)


def test_friday_afternoon_rolls_over_weekend():
    assert compute_finish(datetime(2025, 3, 7, 16, 0), 2) == datetime(2025, 3, 10, 9, 0)


def test_holiday_monday_is_skipped():
    holidays = {date(2025, 3, 10)}
    assert compute_finish(datetime(2025, 3, 7, 16, 0), 2, holidays) == datetime(2025, 3, 11, 9, 0)


def test_holiday_list_accepts_any_iterable():
    holidays = [date(2025, 3, 10), date(2025, 3, 11)]
    assert compute_finish(datetime(2025, 3, 7, 16, 0), 2, holidays) == datetime(2025, 3, 12, 9, 0)


def test_zero_hours_returns_adjusted_start():
    # Saturday start moves to Monday opening
    assert compute_finish(datetime(2025, 3, 8, 10, 0), 0) == datetime(2025, 3, 10, 8, 0)
    assert compute_finish(datetime(2025, 3, 3, 12, 30), 0) == datetime(2025, 3, 3, 13, 0)
    assert compute_finish(datetime(2025, 3, 3, 6, 0), 0) == datetime(2025, 3, 3, 8, 0)


def test_negative_hours_count_as_zero():
    assert compute_finish(datetime(2025, 3, 3, 9, 0), -3) == datetime(2025, 3, 3, 9, 0)


def test_start_after_close_moves_to_next_morning():
    assert compute_finish(datetime(2025, 3, 3, 18, 0), 1) == datetime(2025, 3, 4, 9, 0)


def test_fractional_hours():
    assert compute_finish(datetime(2025, 3, 3, 8, 0), 1.5) == datetime(2025, 3, 3, 9, 30)


def test_next_working_instant_inside_window_is_unchanged():
    t = datetime(2025, 3, 3, 14, 15)
    assert next_working_instant(t) == t


def test_round_up_to_hour():
    assert round_up_to_hour(datetime(2025, 3, 3, 9, 30)) == datetime(2025, 3, 3, 10, 0)
    assert round_up_to_hour(datetime(2025, 3, 3, 9, 0)) == datetime(2025, 3, 3, 9, 0)
    assert round_up_to_hour(datetime(2025, 3, 3, 23, 1)) == datetime(2025, 3, 4, 0, 0)
