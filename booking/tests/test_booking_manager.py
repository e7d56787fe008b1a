# booking/tests/test_booking_manager.py

from datetime import date, time

from django.contrib.auth.models import User
from django.test import TestCase

from booking.exceptions import SlotConflictError, ValidationFailedError
from booking.models import Reservation
from booking.services.booking_manager import BookingManager
from booking.services.gateways import LocalBookingGateway
from rooms.models import Room, RoomBlock

DAY = date(2099, 9, 4)


class BookingManagerTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="anna", password="testpass123")
        self.room = Room.objects.create(name="Sala Riunioni 1", floor=1, capacity=12)
        self.manager = BookingManager()

    def book(self, start, end, day=DAY, **kwargs):
        return self.manager.create_reservation(
            owner=self.user, room=self.room, date=day, start_time=start, end_time=end, **kwargs
        )

    def test_create_reservation(self):
        r = self.book(time(9), time(13), purpose="Sprint planning")
        self.assertEqual(r.status, Reservation.ACTIVE)
        self.assertEqual(r.purpose, "Sprint planning")
        self.assertEqual(Reservation.objects.count(), 1)

    def test_overlap_is_rejected(self):
        self.book(time(9), time(13))
        with self.assertRaises(SlotConflictError):
            self.book(time(12), time(14))
        self.assertEqual(Reservation.objects.count(), 1)

    def test_back_to_back_is_allowed(self):
        self.book(time(9), time(13))
        self.book(time(13), time(14))
        self.assertEqual(Reservation.objects.count(), 2)

    def test_other_day_or_room_is_allowed(self):
        self.book(time(9), time(13))
        self.book(time(9), time(13), day=date(2099, 9, 5))
        other = Room.objects.create(name="Focus Room", floor=2, capacity=2)
        self.manager.create_reservation(self.user, other, DAY, time(9), time(13))
        self.assertEqual(Reservation.objects.count(), 3)

    def test_cancelled_reservation_frees_the_slot(self):
        r = self.book(time(9), time(13))
        self.manager.cancel_reservation(r, reason="Meeting moved")
        r.refresh_from_db()
        self.assertEqual(r.status, Reservation.CANCELLED)
        self.assertEqual(r.cancellation_reason, "Meeting moved")
        self.assertIsNotNone(r.cancellation_time)
        self.book(time(9), time(13))

    def test_cancel_twice_fails(self):
        r = self.book(time(9), time(13))
        self.manager.cancel_reservation(r)
        with self.assertRaises(ValueError):
            self.manager.cancel_reservation(r)

    def test_blocked_room_is_rejected(self):
        RoomBlock.objects.create(room=self.room, reason="Maintenance")
        with self.assertRaises(SlotConflictError) as ctx:
            self.book(time(9), time(13))
        self.assertIn("Maintenance", ctx.exception.message)

    def test_end_before_start_is_rejected(self):
        with self.assertRaises(ValidationFailedError):
            self.book(time(13), time(9))

    def test_update_moves_reservation(self):
        r = self.book(time(9), time(13))
        self.manager.update_reservation(r, start_time=time(14), end_time=time(18))
        r.refresh_from_db()
        self.assertEqual(r.start_time, time(14))

    def test_update_does_not_conflict_with_itself(self):
        r = self.book(time(9), time(13))
        self.manager.update_reservation(r, purpose="Renamed")
        r.refresh_from_db()
        self.assertEqual(r.purpose, "Renamed")

    def test_update_into_taken_window_fails(self):
        self.book(time(14), time(18))
        r = self.book(time(9), time(13))
        with self.assertRaises(SlotConflictError):
            self.manager.update_reservation(r, start_time=time(14), end_time=time(18))

    def test_update_cancelled_fails(self):
        r = self.book(time(9), time(13))
        self.manager.cancel_reservation(r)
        with self.assertRaises(ValidationFailedError):
            self.manager.update_reservation(r, purpose="x")


class LocalBookingGatewayTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="marco", password="testpass123")
        self.room = Room.objects.create(name="Aula Formazione", floor=2, capacity=25)
        self.gateway = LocalBookingGateway(self.user)

    def test_submit_and_fetch(self):
        r = self.gateway.submit_booking(
            {"room_id": self.room.pk, "date": "2099-09-04", "start": "09:00", "end": "13:00", "purpose": "Training"}
        )
        self.assertEqual(r.owner, self.user)
        self.assertEqual([x.pk for x in self.gateway.fetch_reservations(self.room.pk, "2099-09-04")], [r.pk])
        self.assertEqual(self.gateway.fetch_reservations(self.room.pk, "2099-09-05"), [])

    def test_fetch_excludes_cancelled(self):
        r = self.gateway.submit_booking(
            {"room_id": self.room.pk, "date": "2099-09-04", "start": "09:00", "end": "13:00"}
        )
        BookingManager().cancel_reservation(r)
        self.assertEqual(self.gateway.fetch_reservations(self.room.pk, DAY), [])

    def test_submit_with_reservation_id_updates(self):
        r = self.gateway.submit_booking(
            {"room_id": self.room.pk, "date": "2099-09-04", "start": "09:00", "end": "13:00"}
        )
        moved = self.gateway.submit_booking(
            {"room_id": self.room.pk, "date": "2099-09-05", "start": "14:00", "end": "18:00", "reservation_id": r.pk}
        )
        self.assertEqual(moved.pk, r.pk)
        self.assertEqual(moved.date, date(2099, 9, 5))
        self.assertEqual(Reservation.objects.count(), 1)

    def test_unknown_room(self):
        with self.assertRaises(ValidationFailedError):
            self.gateway.fetch_room(9999)

    def test_bad_payload(self):
        with self.assertRaises(ValidationFailedError):
            self.gateway.submit_booking({"room_id": self.room.pk, "date": "soon", "start": "09:00", "end": "13:00"})
