"""
availability_engine.py
----------------------
Computes a room's availability for one day by checking the fixed time slots
against:
1) the room's reservations for that day (double-booking prevention), and
2) an optional admin block on the room.

Rules:
- The caller passes reservations already filtered to the room and date; the
  engine does not re-filter by room/date, but it always drops reservations
  that are not ACTIVE (stale cancelled bookings cause false conflicts).
- Overlap is half-open: reservation_start < slot_end AND slot_start <
  reservation_end. A reservation ending at 09:00 leaves a 09:00 slot free.
- Any overlap, even partial, takes the whole slot (slots are atomic).
- A block makes every slot unavailable and its reason becomes the message.
- occupied_now is presentation-only ("in use right now" badge). It depends on
  the clock and never feeds into `available` or `status`.

Reservations may be model instances, dataclass records or plain dicts with
start_time/end_time/status (and date/purpose when available).
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

from .clock import get_clock
from .slot_utils import format_hhmm, overlaps, parse_hhmm, parse_iso_date

ACTIVE = "ACTIVE"
CANCELLED = "CANCELLED"

# Older booking services reported active reservations as "PRENOTATA".
ACTIVE_STATUSES = {"ACTIVE", "PRENOTATA"}


class AvailabilityStatus:
    FREE = "free"
    PARTIAL = "partial"
    FULL = "full"


class RoomState:
    AVAILABLE = "available"
    SOON = "soon"
    OCCUPIED = "occupied"
    BLOCKED = "blocked"


FULL_MESSAGE = "Room unavailable - all time slots occupied"


@dataclass(frozen=True)
class SlotAvailability:
    slot_id: str
    label: str
    available: bool
    occupied_now: bool = False

    def to_dict(self) -> dict:
        return {
            "slot_id": self.slot_id,
            "label": self.label,
            "available": self.available,
            "occupied_now": self.occupied_now,
        }


@dataclass(frozen=True)
class OccupiedPeriod:
    start: str
    end: str
    purpose: str
    reservation_id: object = None

    def to_dict(self) -> dict:
        return {
            "start": self.start,
            "end": self.end,
            "purpose": self.purpose,
            "reservation_id": self.reservation_id,
        }


@dataclass(frozen=True)
class RoomDayAvailability:
    status: str
    per_slot: List[SlotAvailability] = field(default_factory=list)
    message: Optional[str] = None
    occupied_periods: List[OccupiedPeriod] = field(default_factory=list)

    def slot(self, slot_id) -> Optional[SlotAvailability]:
        for entry in self.per_slot:
            if entry.slot_id == slot_id:
                return entry
        return None

    def is_available(self, slot_id) -> bool:
        entry = self.slot(slot_id)
        return bool(entry and entry.available)

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "message": self.message,
            "per_slot": [s.to_dict() for s in self.per_slot],
            "occupied_periods": [p.to_dict() for p in self.occupied_periods],
        }


@dataclass(frozen=True)
class RoomStatus:
    state: str
    current: object = None
    next: object = None
    hours_until: Optional[float] = None
    message: Optional[str] = None


# -------------------------
# Field access helpers
# -------------------------
def _get(obj, name, default=None):
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def is_active(reservation) -> bool:
    """Reservations with no status at all are treated as active."""
    status = _get(reservation, "status")
    if status is None:
        return True
    return str(status).upper() in ACTIVE_STATUSES


def room_block(room):
    """
    Return the block attached to `room`, or None.
    Accepts a rooms.Room, any object with a `block` attribute, or a dict with
    "blocked"/"block".
    """
    if room is None:
        return None
    if isinstance(room, dict):
        return room.get("blocked") or room.get("block")
    if hasattr(room, "current_block"):
        return room.current_block
    return getattr(room, "block", None)


def _interval(reservation):
    start = _get(reservation, "start_time")
    end = _get(reservation, "end_time")
    if not start or not end:
        return None
    return parse_hhmm(start), parse_hhmm(end)


def _local_span(reservation):
    """(start, end) as naive local datetimes, or None when the date is unknown."""
    raw_date = _get(reservation, "date")
    interval = _interval(reservation)
    if raw_date is None or interval is None:
        return None
    day = parse_iso_date(raw_date)
    return datetime.combine(day, interval[0]), datetime.combine(day, interval[1])


# -------------------------
# Day availability
# -------------------------
def compute_availability(slots, reservations, room=None, date=None, clock=None) -> RoomDayAvailability:
    """
    Per-slot availability plus an aggregate free/partial/full status.

    Args:
        slots: TimeSlot sequence (see slot_utils.get_time_slots()).
        reservations: reservations for this room on this date.
        room: Room (or dict) whose block, if any, takes every slot.
        date: the queried date; only needed for occupied_now.
        clock: injectable clock; only read when `date` is today.

    Returns:
        RoomDayAvailability
    """
    active = []
    for r in reservations or []:
        if not is_active(r):
            continue
        interval = _interval(r)
        if interval is None:
            continue
        active.append((r, interval))

    block = room_block(room)

    now = None
    if date is not None:
        current = get_clock(clock).now()
        if current.date() == parse_iso_date(date):
            now = current.time()

    per_slot = []
    for slot in slots:
        hits = [
            (start, end)
            for _r, (start, end) in active
            if overlaps(start, end, slot.start, slot.end)
        ]
        occupied_now = bool(
            now is not None and any(start <= now < end for start, end in hits)
        )
        per_slot.append(
            SlotAvailability(
                slot_id=slot.id,
                label=slot.display_label,
                available=block is None and not hits,
                occupied_now=occupied_now,
            )
        )

    occupied_periods = [
        OccupiedPeriod(
            start=format_hhmm(start),
            end=format_hhmm(end),
            purpose=_get(r, "purpose") or "Reservation",
            reservation_id=_get(r, "id"),
        )
        for r, (start, end) in sorted(active, key=lambda item: item[1][0])
    ]

    free_count = sum(1 for s in per_slot if s.available)
    if free_count == len(per_slot):
        status, message = AvailabilityStatus.FREE, None
    elif free_count == 0:
        status = AvailabilityStatus.FULL
        message = _get(block, "reason") if block is not None else FULL_MESSAGE
    else:
        status = AvailabilityStatus.PARTIAL
        taken = [s.label for s in per_slot if not s.available]
        message = f"Occupied slots: {', '.join(taken)}"

    return RoomDayAvailability(
        status=status,
        per_slot=per_slot,
        message=message,
        occupied_periods=occupied_periods,
    )


# -------------------------
# Live room status
# -------------------------
def room_status(reservations, room=None, clock=None, soon_threshold_hours: float = 2) -> RoomStatus:
    """
    Live status for room cards: blocked, occupied right now, booked soon, or
    available. Reservations need their date here (any day may be passed).
    """
    block = room_block(room)
    if block is not None:
        return RoomStatus(state=RoomState.BLOCKED, message=_get(block, "reason"))

    now = get_clock(clock).now()
    spans = []
    for r in reservations or []:
        if not is_active(r):
            continue
        span = _local_span(r)
        if span is not None:
            spans.append((span, r))

    for (start, end), r in spans:
        if start <= now < end:
            return RoomStatus(state=RoomState.OCCUPIED, current=r, message=f"Occupied until {format_hhmm(end.time())}")

    upcoming = sorted(
        ((start, r) for (start, _end), r in spans if start > now),
        key=lambda item: item[0],
    )
    if upcoming:
        start, nxt = upcoming[0]
        hours_until = (start - now) / timedelta(hours=1)
        if hours_until <= soon_threshold_hours:
            return RoomStatus(
                state=RoomState.SOON,
                next=nxt,
                hours_until=hours_until,
                message="Free (booked soon)",
            )
        return RoomStatus(state=RoomState.AVAILABLE, next=nxt, message="Available")

    return RoomStatus(state=RoomState.AVAILABLE, message="Available")


def booking_stats(reservations, clock=None) -> dict:
    """
    Count active reservations that are running now, upcoming, or completed.
    """
    now = get_clock(clock).now()
    stats = {"total": 0, "current": 0, "upcoming": 0, "completed": 0}
    for r in reservations or []:
        if not is_active(r):
            continue
        span = _local_span(r)
        if span is None:
            continue
        start, end = span
        stats["total"] += 1
        if start <= now < end:
            stats["current"] += 1
        elif start > now:
            stats["upcoming"] += 1
        else:
            stats["completed"] += 1
    return stats
