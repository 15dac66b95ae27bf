# backend/workshop/core/clock.py
"""
Wall clock of the workshop.

Timestamps are stored naive, in workshop local time, because the business
calendar (08:00-17:00, lunch 12:00-13:00) is defined on the local clock.
"""
from datetime import datetime
from zoneinfo import ZoneInfo

from .config import WORKSHOP_TZ


def now() -> datetime:
    return datetime.now(ZoneInfo(WORKSHOP_TZ)).replace(tzinfo=None, microsecond=0)
