# backend/workshop/domain/calendar.py
"""
Business calendar: converts a labour-hour estimate into a wall-clock finish time.

Work windows are 08:00-12:00 and 13:00-17:00, Monday to Friday, except the
dates in the holiday set. The functions here are pure; callers re-run
`compute_finish` whenever start, hours or holidays change instead of patching
a previous result, since weekend and holiday skipping does not compose.
"""
from datetime import date, datetime, time, timedelta
from typing import AbstractSet, Iterable, Optional

WORKDAY_START = time(8, 0)
LUNCH_START = time(12, 0)
LUNCH_END = time(13, 0)
WORKDAY_END = time(17, 0)

ZERO = timedelta(0)


def _at(day: date, t: time, like: datetime) -> datetime:
    return datetime.combine(day, t, tzinfo=like.tzinfo)


def _holiday_set(holidays: Optional[Iterable[date]]) -> AbstractSet[date]:
    if not holidays:
        return frozenset()
    return holidays if isinstance(holidays, (set, frozenset)) else frozenset(holidays)


def is_working_day(day: date, holidays: AbstractSet[date] = frozenset()) -> bool:
    return day.weekday() < 5 and day not in holidays


def next_working_instant(t: datetime, holidays: AbstractSet[date] = frozenset()) -> datetime:
    """First instant >= t that lies inside a work window."""
    while True:
        day = t.date()
        if not is_working_day(day, holidays) or t.time() >= WORKDAY_END:
            t = _at(day + timedelta(days=1), WORKDAY_START, t)
            continue
        if t.time() < WORKDAY_START:
            return _at(day, WORKDAY_START, t)
        if LUNCH_START <= t.time() < LUNCH_END:
            return _at(day, LUNCH_END, t)
        return t


def _window_end(t: datetime) -> datetime:
    # t is already inside a window
    end = LUNCH_START if t.time() < LUNCH_START else WORKDAY_END
    return _at(t.date(), end, t)


def compute_finish(
    start: datetime,
    duration_hours: float,
    holidays: Optional[Iterable[date]] = None,
) -> datetime:
    """
    Finish instant of `duration_hours` of work beginning at `start`.

    A start outside the work windows is first moved to the next window
    boundary. Zero hours returns that adjusted start. Negative hours count as
    zero. Duration is rounded to whole seconds.
    """
    days_off = _holiday_set(holidays)
    remaining = timedelta(seconds=round(max(float(duration_hours or 0), 0.0) * 3600))

    current = next_working_instant(start, days_off)
    while remaining > ZERO:
        end = _window_end(current)
        available = end - current
        if remaining <= available:
            return current + remaining
        remaining -= available
        current = next_working_instant(end, days_off)
    return current


def round_up_to_hour(t: datetime) -> datetime:
    """Next full hour, or t itself when it is already on the hour."""
    if t.minute or t.second or t.microsecond:
        t = t.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)
    return t
