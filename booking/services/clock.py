"""
clock.py
--------
The one place booking code reads the wall clock.

Anything that needs "now" (past-slot checks, the live "occupied now" badge,
room status) takes a clock argument; tests pass a FrozenClock.
Both clocks return naive local datetimes in the project TIME_ZONE, which is
what reservation date + time fields are compared against.
"""

from datetime import date, datetime

from django.utils import timezone


class SystemClock:
    def now(self) -> datetime:
        return timezone.localtime(timezone.now()).replace(tzinfo=None)

    def today(self) -> date:
        return self.now().date()


class FrozenClock(SystemClock):
    """Clock pinned to a fixed local datetime."""

    def __init__(self, at: datetime):
        if timezone.is_aware(at):
            at = timezone.localtime(at).replace(tzinfo=None)
        self.at = at

    def now(self) -> datetime:
        return self.at


def get_clock(clock=None):
    return clock if clock is not None else SystemClock()
