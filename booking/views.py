# booking/views.py
#
# Purpose:
# - Reservation API: list/retrieve, create and edit through the conflict guard,
#   cancel (soft delete), and day availability for a room.
# - Permissions:
#   * Every endpoint requires an authenticated user (auth is Django's).
#   * Users see and change only their own reservations; staff see all.
#
# Error contract:
# - Booking failures are returned as {"detail": "...", "code": "..."} with the
#   failure's HTTP status, e.g. 409 + "slot_unavailable" when the room was
#   taken, 400 + "past_date" for an elapsed slot, 503 + "transient_failure"
#   (with "attempts") when retries ran out.
# - DELETE is not exposed; use POST /api/reservations/{id}/cancel/.
#
import logging

from django.shortcuts import get_object_or_404
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import BasePermission, IsAuthenticated
from rest_framework.response import Response

from rooms.models import Room
from .exceptions import BookingError
from .models import Reservation
from .serializers import (
    BookingRequestSerializer,
    BookingUpdateSerializer,
    CancelSerializer,
    ReservationSerializer,
    slot_for_times,
    slot_payload,
)
from .services.availability_engine import compute_availability
from .services.booking_manager import BookingManager
from .services.conflict_guard import BookingRequest, ConflictGuard
from .services.gateways import LocalBookingGateway
from .services.retry_policy import RetryPolicy
from .services.slot_utils import get_time_slots, parse_iso_date

logger = logging.getLogger(__name__)


def error_response(error: BookingError) -> Response:
    logger.info("Booking rejected: %s (%s)", error.code, error.message)
    return Response(error.as_dict(), status=error.status_code)


def build_guard(gateway: LocalBookingGateway) -> ConflictGuard:
    """
    One guard (and so one in-flight registry) per request; cross-request
    exclusion is the BookingManager's row lock + overlap check.
    """
    return ConflictGuard(
        fetch_reservations=gateway.fetch_reservations,
        fetch_room=gateway.fetch_room,
        retry_policy=RetryPolicy.from_settings(),
    )


# -------------------- Permissions --------------------
class IsOwnerOrStaff(BasePermission):
    """
    Object access: the reservation's owner, or staff.
    """
    def has_object_permission(self, request, view, obj):
        user = request.user
        return bool(user and (user.is_staff or obj.owner_id == user.id))


# -------------------- ViewSets --------------------
class ReservationViewSet(viewsets.ModelViewSet):
    """
    Endpoints:
    - GET    /api/reservations/                     list (filters: room, date, status)
    - POST   /api/reservations/                     create {room, date, slot, purpose}
    - PATCH  /api/reservations/{id}/                edit {date?, slot?, purpose?}
    - POST   /api/reservations/{id}/cancel/         cancel {reason?}
    - GET    /api/reservations/availability/       ?room=ID&date=YYYY-MM-DD
    - GET    /api/reservations/slots/               configured time slots
    """
    serializer_class = ReservationSerializer
    permission_classes = [IsAuthenticated, IsOwnerOrStaff]
    http_method_names = ["get", "post", "patch", "head", "options"]
    manager = BookingManager()

    def get_queryset(self):
        user = self.request.user
        qs = Reservation.objects.select_related("room", "owner").order_by("date", "start_time")
        if not user.is_staff:
            qs = qs.filter(owner=user)

        params = self.request.query_params
        room_id = (params.get("room") or "").strip()
        if room_id:
            qs = qs.filter(room_id=room_id)
        date_raw = (params.get("date") or "").strip()
        if date_raw:
            try:
                qs = qs.filter(date=parse_iso_date(date_raw))
            except ValueError:
                return qs.none()
        status_raw = (params.get("status") or "").strip().upper()
        if status_raw:
            qs = qs.filter(status=status_raw)
        return qs

    def create(self, request, *args, **kwargs):
        """
        Book one fixed slot of a room.
        - Requires: room (PK), date (YYYY-MM-DD), slot (slot id).
        - Optional: purpose.
        The conflict guard runs its local checks, then BookingManager decides.
        """
        serializer = BookingRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        gateway = LocalBookingGateway(request.user, manager=self.manager)
        booking_request = BookingRequest(
            room_id=data["room"].pk,
            date=data["date"],
            slot_id=data["slot"],
            purpose=data.get("purpose", ""),
        )
        try:
            reservation = build_guard(gateway).attempt_booking(booking_request, gateway.submit_booking)
        except BookingError as e:
            return error_response(e)

        out = ReservationSerializer(reservation)
        headers = self.get_success_headers(out.data)
        return Response(out.data, status=status.HTTP_201_CREATED, headers=headers)

    def partial_update(self, request, *args, **kwargs):
        """
        Move a reservation to another date and/or slot, or change its purpose.
        Missing date/slot keep the current ones.
        """
        reservation = self.get_object()
        if not reservation.is_active:
            return Response(
                {"detail": "A cancelled reservation cannot be edited.", "code": "validation_failed"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        serializer = BookingUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        slot_id = data.get("slot")
        if not slot_id:
            current = slot_for_times(reservation.start_time, reservation.end_time)
            if current is None:
                return Response(
                    {"detail": "Choose a time slot for this reservation.", "code": "validation_failed"},
                    status=status.HTTP_400_BAD_REQUEST,
                )
            slot_id = current.id

        gateway = LocalBookingGateway(request.user, manager=self.manager)
        booking_request = BookingRequest(
            room_id=reservation.room_id,
            date=data.get("date", reservation.date),
            slot_id=slot_id,
            purpose=data.get("purpose", reservation.purpose),
            reservation_id=reservation.pk,
        )
        try:
            reservation = build_guard(gateway).attempt_booking(booking_request, gateway.submit_booking)
        except BookingError as e:
            return error_response(e)

        return Response(ReservationSerializer(reservation).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        """
        Cancel a reservation (owner or staff). The row stays, with status CANCELLED.
        """
        reservation = self.get_object()
        serializer = CancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            self.manager.cancel_reservation(reservation, reason=serializer.validated_data.get("reason", ""))
        except ValueError as e:
            return Response({"detail": str(e), "code": "validation_failed"}, status=status.HTTP_400_BAD_REQUEST)

        return Response(ReservationSerializer(reservation).data, status=status.HTTP_200_OK)

    @action(detail=False, methods=["get"], url_path="availability")
    def availability(self, request):
        """
        GET /api/reservations/availability/?room=ID&date=YYYY-MM-DD
        Also accepts inputs that include time; we trim to the date part.
        """
        room_id = (request.query_params.get("room") or "").strip()
        date_raw = (request.query_params.get("date") or "").strip()

        if not room_id or not date_raw:
            return Response(
                {"detail": "Missing 'room' or 'date'.", "code": "validation_failed"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        try:
            day = parse_iso_date(date_raw)
        except ValueError:
            return Response(
                {"detail": "Invalid date format. Use YYYY-MM-DD.", "code": "validation_failed"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        room = get_object_or_404(Room, pk=room_id)
        gateway = LocalBookingGateway(request.user)
        reservations = gateway.fetch_reservations(room.pk, day)

        result = compute_availability(get_time_slots(), reservations, room=room, date=day)
        data = result.to_dict()
        data.update({"room": room.pk, "date": day.isoformat()})
        return Response(data)

    @action(detail=False, methods=["get"], url_path="slots")
    def slots(self, request):
        return Response({"slots": slot_payload()})
