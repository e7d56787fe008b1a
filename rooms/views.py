# rooms/views.py
#
# Purpose:
# - Room catalogue API, admin block/unblock, and the live room status card.
# - Browsing filters on the list: floor, capacity range, virtual, search,
#   ordering, and "free on date + slot" via the availability engine.
# - Permissions:
#   * Reads need an authenticated user; non-staff see active rooms only.
#   * Writes (CRUD, block, unblock) are staff-only.
#
# Notes for developers:
# - Blocking is a RoomBlock row; unblocking deletes it. The availability
#   engine treats a blocked room as unavailable for every slot.
#
import logging

from django.conf import settings
from django.db.models import Q
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import BasePermission
from rest_framework.response import Response

from booking.exceptions import BookingError, ValidationFailedError
from booking.models import Reservation
from booking.serializers import ReservationSerializer
from booking.services.availability_engine import booking_stats, room_status
from booking.services.clock import get_clock
from booking.services.room_search import custom_window, room_statistics, rooms_free_on
from booking.services.slot_utils import find_slot, get_time_slots, parse_hhmm, parse_iso_date
from .models import Room, RoomBlock
from .serializers import BlockRoomSerializer, RoomSerializer

logger = logging.getLogger(__name__)


# -------------------- Permissions --------------------
class IsStaffOrReadOnly(BasePermission):
    """
    Read: any authenticated user
    Write: staff only
    """
    def has_permission(self, request, view):
        user = request.user
        if not (user and user.is_authenticated):
            return False
        if request.method in ("GET", "HEAD", "OPTIONS"):
            return True
        return bool(user.is_staff)


# -------------------- Query params --------------------
ORDERING_FIELDS = ("name", "floor", "capacity")
TRUE_VALUES = ("true", "1", "yes")
FALSE_VALUES = ("false", "0", "no")


def _int_param(params, name):
    raw = (params.get(name) or "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationFailedError(f"'{name}' must be an integer.")


def filter_rooms(qs, params):
    """
    Apply the browsing filters from the query string:
    floor, min_capacity, max_capacity, is_virtual, search, ordering.
    """
    floor = _int_param(params, "floor")
    if floor is not None:
        qs = qs.filter(floor=floor)
    min_capacity = _int_param(params, "min_capacity")
    if min_capacity is not None:
        qs = qs.filter(capacity__gte=min_capacity)
    max_capacity = _int_param(params, "max_capacity")
    if max_capacity is not None:
        qs = qs.filter(capacity__lte=max_capacity)

    virtual_raw = (params.get("is_virtual") or "").strip().lower()
    if virtual_raw in TRUE_VALUES:
        qs = qs.filter(is_virtual=True)
    elif virtual_raw in FALSE_VALUES:
        qs = qs.filter(is_virtual=False)
    elif virtual_raw:
        raise ValidationFailedError("'is_virtual' must be true or false.")

    search = (params.get("search") or "").strip()
    if search:
        match = Q(name__icontains=search) | Q(description__icontains=search)
        if search.isdigit():
            match |= Q(pk=int(search))
        qs = qs.filter(match)

    ordering = (params.get("ordering") or "").strip()
    if ordering:
        if ordering.lstrip("-") not in ORDERING_FIELDS:
            raise ValidationFailedError(
                f"'ordering' must be one of: {', '.join(ORDERING_FIELDS)} (prefix '-' for descending)."
            )
        qs = qs.order_by(ordering, "name")
    return qs


def requested_slots(params):
    """
    Slots for the "available_on" filter: `slot=<id>`, or a custom
    `start=HH:MM&end=HH:MM` window, or every configured slot when neither
    is given (room free at some point that day).
    """
    slot_id = (params.get("slot") or "").strip()
    start_raw = (params.get("start") or "").strip()
    end_raw = (params.get("end") or "").strip()

    if slot_id:
        slot = find_slot(slot_id)
        if slot is None:
            raise ValidationFailedError(f"Unknown slot '{slot_id}'.")
        return [slot]
    if start_raw or end_raw:
        try:
            start, end = parse_hhmm(start_raw), parse_hhmm(end_raw)
        except ValueError:
            raise ValidationFailedError("'start' and 'end' must both be HH:MM.")
        if start >= end:
            raise ValidationFailedError("'start' must be before 'end'.")
        return [custom_window(start, end)]
    return list(get_time_slots())


# -------------------- ViewSets --------------------
class RoomViewSet(viewsets.ModelViewSet):
    """
    - GET/POST           /api/rooms/
    - GET/PATCH/DELETE   /api/rooms/{id}/
    - POST               /api/rooms/{id}/block/      {reason}
    - POST               /api/rooms/{id}/unblock/
    - GET                /api/rooms/{id}/status/
    - GET                /api/rooms/stats/

    List and stats accept ?floor, min_capacity, max_capacity, is_virtual,
    search, ordering. The list also takes ?available_on=YYYY-MM-DD with an
    optional slot=<id> or start=HH:MM&end=HH:MM.
    """
    serializer_class = RoomSerializer
    permission_classes = [IsStaffOrReadOnly]

    def get_queryset(self):
        """
        Staff can see all rooms; everyone else sees only active rooms.
        """
        user = self.request.user
        qs = Room.objects.select_related("block").order_by("floor", "name")
        if user.is_staff:
            return qs
        return qs.filter(active=True)

    def list(self, request, *args, **kwargs):
        params = request.query_params
        try:
            rooms = filter_rooms(self.get_queryset(), params)
            day_raw = (params.get("available_on") or "").strip()
            if day_raw:
                try:
                    day = parse_iso_date(day_raw)
                except ValueError:
                    raise ValidationFailedError("Invalid date format. Use YYYY-MM-DD.")
                rooms = rooms_free_on(rooms, day, requested_slots(params))
        except BookingError as e:
            return Response(e.as_dict(), status=e.status_code)

        return Response(self.get_serializer(rooms, many=True).data)

    @action(detail=False, methods=["get"])
    def stats(self, request):
        """
        Catalogue summary for the rooms matching the list filters:
        occupied now, blocked, available, physical/virtual, floors, capacity.
        """
        try:
            rooms = filter_rooms(self.get_queryset(), request.query_params)
        except BookingError as e:
            return Response(e.as_dict(), status=e.status_code)
        return Response(room_statistics(rooms, clock=get_clock()))

    @action(detail=True, methods=["post"])
    def block(self, request, pk=None):
        room = self.get_object()
        if room.is_blocked:
            return Response(
                {"detail": "This room is already blocked.", "code": "validation_failed"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        serializer = BlockRoomSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        RoomBlock.objects.create(
            room=room,
            reason=serializer.validated_data["reason"],
            blocked_by=request.user,
        )
        logger.info("Room %s blocked by %s", room.pk, request.user.get_username())

        room = self.get_queryset().get(pk=room.pk)
        return Response(RoomSerializer(room).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"])
    def unblock(self, request, pk=None):
        room = self.get_object()
        block = room.current_block
        if block is None:
            return Response(
                {"detail": "This room is not blocked.", "code": "validation_failed"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        block.delete()
        logger.info("Room %s unblocked by %s", room.pk, request.user.get_username())

        room = self.get_queryset().get(pk=room.pk)
        return Response(RoomSerializer(room).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["get"], url_path="status")
    def live_status(self, request, pk=None):
        """
        Live state for the room card: blocked / occupied / soon / available,
        with today's current or next reservation and the room's booking stats.
        """
        room = self.get_object()
        clock = get_clock()
        active = list(Reservation.objects.filter(room=room, status=Reservation.ACTIVE))
        today = [r for r in active if r.date == clock.today()]

        result = room_status(
            today,
            room=room,
            clock=clock,
            soon_threshold_hours=getattr(settings, "BOOKING_SOON_THRESHOLD_HOURS", 2),
        )
        return Response({
            "room": room.pk,
            "state": result.state,
            "message": result.message,
            "current": ReservationSerializer(result.current).data if result.current else None,
            "next": ReservationSerializer(result.next).data if result.next else None,
            "hours_until": result.hours_until,
            "stats": booking_stats(active, clock=clock),
        })
