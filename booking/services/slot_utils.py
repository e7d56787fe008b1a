"""
slot_utils.py
-------------
Fixed daily time slots and the interval helpers shared by every availability
check (engine, booking manager, conflict guard).

Slots come from settings.BOOKING_TIME_SLOTS; they are configuration, never
stored in the database. Defaults to Morning 09:00-13:00 and Afternoon
14:00-18:00 when the setting is missing.
"""

from dataclasses import dataclass
from datetime import date, datetime, time

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

DEFAULT_TIME_SLOTS = (
    {"id": "morning", "label": "Morning", "start": "09:00", "end": "13:00"},
    {"id": "afternoon", "label": "Afternoon", "start": "14:00", "end": "18:00"},
)


@dataclass(frozen=True)
class TimeSlot:
    id: str
    label: str
    start: time
    end: time

    @property
    def hours(self) -> str:
        return f"{format_hhmm(self.start)}-{format_hhmm(self.end)}"

    @property
    def display_label(self) -> str:
        return f"{self.label} ({self.hours})"

    def starts_at(self, day: date) -> datetime:
        """Naive local datetime at which this slot begins on ``day``."""
        return datetime.combine(day, self.start)


def parse_hhmm(value) -> time:
    """
    Accept "HH:MM", "HH:MM:SS" or a time object.
    """
    if isinstance(value, time):
        return value
    parts = str(value).strip().split(":")
    if len(parts) not in (2, 3):
        raise ValueError(f"Invalid time {value!r}; expected HH:MM")
    h, m = int(parts[0]), int(parts[1])
    s = int(parts[2]) if len(parts) == 3 else 0
    return time(h, m, s)


def format_hhmm(value: time) -> str:
    return value.strftime("%H:%M")


def parse_iso_date(value) -> date:
    """
    'YYYY-MM-DD' (or a date) -> date. Datetime-like input is trimmed to its
    date part, so "2025-09-04T10:00" and "2025-09-04 10:00" both work.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raw = (value or "").strip()
    if "T" in raw:
        raw = raw.split("T", 1)[0].strip()
    elif " " in raw:
        raw = raw.split(" ", 1)[0].strip()
    return date.fromisoformat(raw)


def overlaps(a_start, a_end, b_start, b_end) -> bool:
    """
    Half-open interval overlap: [a_start, a_end) and [b_start, b_end).
    Back-to-back intervals (a_end == b_start) do not overlap.
    """
    return a_start < b_end and b_start < a_end


def build_time_slots(raw_slots) -> tuple:
    """
    Turn a list of {"id", "label", "start", "end"} dicts into TimeSlot objects.

    Raises:
        ImproperlyConfigured: bad times, empty windows, duplicate ids or
        overlapping slots.
    """
    slots = []
    seen_ids = set()
    for raw in raw_slots:
        try:
            slot = TimeSlot(
                id=str(raw["id"]),
                label=str(raw.get("label") or raw["id"]),
                start=parse_hhmm(raw["start"]),
                end=parse_hhmm(raw["end"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ImproperlyConfigured(f"Invalid time slot {raw!r}: {e}") from e

        if slot.end <= slot.start:
            raise ImproperlyConfigured(f"Time slot {slot.id!r} must end after it starts.")
        if slot.id in seen_ids:
            raise ImproperlyConfigured(f"Duplicate time slot id {slot.id!r}.")
        seen_ids.add(slot.id)
        slots.append(slot)

    ordered = sorted(slots, key=lambda s: s.start)
    for prev, nxt in zip(ordered, ordered[1:]):
        if overlaps(prev.start, prev.end, nxt.start, nxt.end):
            raise ImproperlyConfigured(f"Time slots {prev.id!r} and {nxt.id!r} overlap.")
    return tuple(slots)


def get_time_slots() -> tuple:
    """Configured slots, in configuration order."""
    raw = getattr(settings, "BOOKING_TIME_SLOTS", None) or DEFAULT_TIME_SLOTS
    return build_time_slots(raw)


def find_slot(slot_id, slots=None):
    if slots is None:
        slots = get_time_slots()
    for slot in slots:
        if slot.id == slot_id:
            return slot
    return None
