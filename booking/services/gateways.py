"""
gateways.py
-----------
ORM-backed implementation of the three data contracts the conflict guard and
the availability engine are driven through:

    fetch_reservations(room_id, date) -> reservations on exactly that date
    fetch_room(room_id)               -> Room (with its block, if any)
    submit_booking(payload)           -> Reservation, or raises SlotConflictError

booking.client.BookingApiClient offers the same three calls over HTTP.
"""

from rooms.models import Room
from ..exceptions import ValidationFailedError
from ..models import Reservation
from .booking_manager import BookingManager
from .slot_utils import parse_hhmm, parse_iso_date


class LocalBookingGateway:
    def __init__(self, user, manager=None):
        self.user = user
        self.manager = manager or BookingManager()

    def fetch_reservations(self, room_id, date):
        return list(
            Reservation.objects.filter(
                room_id=room_id,
                date=parse_iso_date(date),
                status=Reservation.ACTIVE,
            ).order_by("start_time")
        )

    def fetch_room(self, room_id):
        try:
            return Room.objects.get(pk=room_id)
        except Room.DoesNotExist:
            raise ValidationFailedError(f"Room {room_id} does not exist.")

    def submit_booking(self, payload: dict):
        try:
            date = parse_iso_date(payload["date"])
            start_time = parse_hhmm(payload["start"])
            end_time = parse_hhmm(payload["end"])
        except (KeyError, ValueError) as e:
            raise ValidationFailedError(f"Invalid booking payload: {e}")

        purpose = payload.get("purpose", "")
        reservation_id = payload.get("reservation_id")

        if reservation_id is not None:
            try:
                reservation = Reservation.objects.get(pk=reservation_id)
            except Reservation.DoesNotExist:
                raise ValidationFailedError(f"Reservation {reservation_id} does not exist.")
            return self.manager.update_reservation(
                reservation,
                date=date,
                start_time=start_time,
                end_time=end_time,
                purpose=purpose,
            )

        room = self.fetch_room(payload.get("room_id"))
        return self.manager.create_reservation(
            owner=self.user,
            room=room,
            date=date,
            start_time=start_time,
            end_time=end_time,
            purpose=purpose,
        )
