"""
room_search.py
--------------
Room browsing helpers that need reservations: "which rooms are free on this
day/slot" and the catalogue statistics shown above the room list.

Both go through the availability engine so the free/occupied answer is the
same one the booking dialog would give.
"""

from collections import defaultdict

from ..models import Reservation
from .availability_engine import AvailabilityStatus, RoomState, compute_availability, room_status
from .clock import get_clock
from .slot_utils import TimeSlot, format_hhmm


def custom_window(start, end) -> TimeSlot:
    """An ad-hoc slot for "free between start and end" searches."""
    return TimeSlot(id="window", label="Requested", start=start, end=end)


def _active_by_room(rooms, day):
    by_room = defaultdict(list)
    qs = Reservation.objects.filter(
        room__in=[room.pk for room in rooms],
        date=day,
        status=Reservation.ACTIVE,
    ).order_by("start_time")
    for r in qs:
        by_room[r.room_id].append(r)
    return by_room


def rooms_free_on(rooms, day, slots):
    """
    Keep the rooms where at least one of `slots` is free on `day`.
    Pass a single slot (or custom_window) to ask for that window exactly.
    Blocked rooms are never free.
    """
    rooms = list(rooms)
    by_room = _active_by_room(rooms, day)
    return [
        room for room in rooms
        if compute_availability(slots, by_room[room.pk], room=room).status != AvailabilityStatus.FULL
    ]


def room_statistics(rooms, clock=None) -> dict:
    """
    Counts for a set of rooms: live occupancy (right now), blocks, physical
    vs virtual, floors and capacity.
    """
    rooms = list(rooms)
    clock = get_clock(clock)
    by_room = _active_by_room(rooms, clock.today())

    states = [room_status(by_room[room.pk], room=room, clock=clock).state for room in rooms]
    total = len(rooms)
    occupied = states.count(RoomState.OCCUPIED)
    blocked = states.count(RoomState.BLOCKED)
    total_capacity = sum(room.capacity for room in rooms)

    return {
        "total": total,
        "occupied": occupied,
        "blocked": blocked,
        "available": total - occupied - blocked,
        "occupancy_rate": round(occupied * 100 / total) if total else 0,
        "physical": sum(1 for room in rooms if not room.is_virtual),
        "virtual": sum(1 for room in rooms if room.is_virtual),
        "floors": sorted({room.floor for room in rooms}),
        "total_capacity": total_capacity,
        "average_capacity": round(total_capacity / total) if total else 0,
        "as_of": f"{clock.today().isoformat()} {format_hhmm(clock.now().time())}",
    }
