# booking/views_calendar.py
#
# Purpose:
# - Week view of one room's availability at /api/reservations/week/.
# - Returns seven days (Monday..Sunday) each with the per-slot availability,
#   plus prev/next week start dates for navigation.
#
# Behavior:
# - Any authenticated user can read it (it exposes slot occupancy and
#   purposes, not owners).
# - Query params: ?room=ID&start=YYYY-MM-DD. start defaults to today; it is
#   always moved back to the Monday of its week.
# - Excludes reservations with status = "CANCELLED" so the grid reflects availability.
#
from datetime import timedelta

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response

from rooms.models import Room
from .models import Reservation
from .services.availability_engine import compute_availability
from .services.clock import get_clock
from .services.slot_utils import get_time_slots, parse_iso_date


def week_start_for(day):
    return day - timedelta(days=day.weekday())


@api_view(["GET"])
def room_week(request):
    """
    Weekly availability for a room.

    Query parameters:
      - room (int): room id (required)
      - start (YYYY-MM-DD): any day in the wanted week (defaults to today)

    Implementation details:
      - One query for the whole week, then reservations are grouped per date
        so the engine sees exactly one day at a time.
    """
    room_id = (request.query_params.get("room") or "").strip()
    if not room_id:
        return Response(
            {"detail": "Missing 'room'.", "code": "validation_failed"},
            status=status.HTTP_400_BAD_REQUEST,
        )

    start_raw = (request.query_params.get("start") or "").strip()
    try:
        day = parse_iso_date(start_raw) if start_raw else get_clock().today()
    except ValueError:
        return Response(
            {"detail": "Invalid date format. Use YYYY-MM-DD.", "code": "validation_failed"},
            status=status.HTTP_400_BAD_REQUEST,
        )

    room = get_object_or_404(Room, pk=room_id)
    monday = week_start_for(day)
    sunday = monday + timedelta(days=6)

    qs = (
        Reservation.objects
        .filter(room=room, date__gte=monday, date__lte=sunday, status=Reservation.ACTIVE)
        .order_by("date", "start_time")
    )
    days_map = {monday + timedelta(days=i): [] for i in range(7)}
    for r in qs:
        days_map[r.date].append(r)

    slots = get_time_slots()
    days = []
    for d, reservations in days_map.items():
        result = compute_availability(slots, reservations, room=room, date=d)
        days.append({
            "date": d.isoformat(),
            "weekday": d.strftime("%A"),
            "availability": result.to_dict(),
        })

    return Response({
        "room": room.pk,
        "room_name": room.name,
        "week_start": monday.isoformat(),
        "week_end": sunday.isoformat(),
        "prev_week": (monday - timedelta(days=7)).isoformat(),
        "next_week": (monday + timedelta(days=7)).isoformat(),
        "days": days,
    })
