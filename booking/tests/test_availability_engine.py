# booking/tests/test_availability_engine.py

from datetime import date, datetime, time

from django.test import SimpleTestCase

from booking.services.availability_engine import (
    FULL_MESSAGE,
    AvailabilityStatus,
    RoomState,
    booking_stats,
    compute_availability,
    is_active,
    room_status,
)
from booking.services.clock import FrozenClock
from booking.services.slot_utils import build_time_slots

SLOTS = build_time_slots([
    {"id": "morning", "label": "Morning", "start": "09:00", "end": "13:00"},
    {"id": "afternoon", "label": "Afternoon", "start": "14:00", "end": "18:00"},
])


def reservation(start, end, status="ACTIVE", day="2025-09-04", purpose="", pk=None):
    return {
        "id": pk,
        "date": day,
        "start_time": start,
        "end_time": end,
        "status": status,
        "purpose": purpose,
    }


class ComputeAvailabilityTests(SimpleTestCase):
    def test_no_reservations_is_free(self):
        result = compute_availability(SLOTS, [])
        self.assertEqual(result.status, AvailabilityStatus.FREE)
        self.assertIsNone(result.message)
        self.assertTrue(all(s.available for s in result.per_slot))
        self.assertEqual([s.slot_id for s in result.per_slot], ["morning", "afternoon"])

    def test_partial_when_one_slot_taken(self):
        result = compute_availability(SLOTS, [reservation("10:00", "11:00")])
        self.assertEqual(result.status, AvailabilityStatus.PARTIAL)
        self.assertFalse(result.is_available("morning"))
        self.assertTrue(result.is_available("afternoon"))
        self.assertEqual(result.message, "Occupied slots: Morning (09:00-13:00)")

    def test_full_when_every_slot_taken(self):
        result = compute_availability(
            SLOTS,
            [reservation("09:00", "13:00"), reservation("14:00", "18:00")],
        )
        self.assertEqual(result.status, AvailabilityStatus.FULL)
        self.assertEqual(result.message, FULL_MESSAGE)

    def test_partial_overlap_takes_whole_slot(self):
        # 12:30-14:30 touches both slots
        result = compute_availability(SLOTS, [reservation("12:30", "14:30")])
        self.assertEqual(result.status, AvailabilityStatus.FULL)

    def test_back_to_back_reservation_does_not_overlap(self):
        # Ends exactly when the afternoon starts, starts exactly when morning ends
        result = compute_availability(
            SLOTS,
            [reservation("08:00", "09:00"), reservation("13:00", "14:00"), reservation("18:00", "19:00")],
        )
        self.assertEqual(result.status, AvailabilityStatus.FREE)

    def test_cancelled_reservations_are_ignored(self):
        result = compute_availability(SLOTS, [reservation("09:00", "13:00", status="CANCELLED")])
        self.assertEqual(result.status, AvailabilityStatus.FREE)
        self.assertEqual(result.occupied_periods, [])

    def test_missing_status_counts_as_active(self):
        r = reservation("09:00", "13:00")
        del r["status"]
        self.assertTrue(is_active(r))
        self.assertFalse(compute_availability(SLOTS, [r]).is_available("morning"))

    def test_legacy_status_counts_as_active(self):
        self.assertTrue(is_active({"status": "prenotata"}))
        self.assertFalse(is_active({"status": "cancelled"}))

    def test_blocked_room_is_full_with_reason(self):
        room = {"id": 1, "blocked": {"reason": "Maintenance"}}
        result = compute_availability(SLOTS, [], room=room)
        self.assertEqual(result.status, AvailabilityStatus.FULL)
        self.assertEqual(result.message, "Maintenance")
        self.assertFalse(any(s.available for s in result.per_slot))

    def test_occupied_periods_sorted_by_start(self):
        result = compute_availability(
            SLOTS,
            [
                reservation("15:00", "16:00", purpose="Review", pk=2),
                reservation("09:30", "10:00", pk=1),
            ],
        )
        self.assertEqual(
            [p.to_dict() for p in result.occupied_periods],
            [
                {"start": "09:30", "end": "10:00", "purpose": "Reservation", "reservation_id": 1},
                {"start": "15:00", "end": "16:00", "purpose": "Review", "reservation_id": 2},
            ],
        )

    def test_occupied_now_only_on_queried_today(self):
        clock = FrozenClock(datetime(2025, 9, 4, 10, 15))
        reservations = [reservation("10:00", "11:00")]

        today = compute_availability(SLOTS, reservations, date=date(2025, 9, 4), clock=clock)
        self.assertTrue(today.slot("morning").occupied_now)
        self.assertFalse(today.slot("afternoon").occupied_now)

        other_day = compute_availability(SLOTS, reservations, date=date(2025, 9, 5), clock=clock)
        self.assertFalse(other_day.slot("morning").occupied_now)

    def test_occupied_now_does_not_change_status(self):
        clock = FrozenClock(datetime(2025, 9, 4, 10, 15))
        with_clock = compute_availability(SLOTS, [reservation("10:00", "11:00")], date="2025-09-04", clock=clock)
        without = compute_availability(SLOTS, [reservation("10:00", "11:00")])
        self.assertEqual(with_clock.status, without.status)
        self.assertEqual(
            [s.available for s in with_clock.per_slot],
            [s.available for s in without.per_slot],
        )

    def test_accepts_time_objects(self):
        r = {"start_time": time(14, 0), "end_time": time(15, 0), "status": "ACTIVE"}
        result = compute_availability(SLOTS, [r])
        self.assertFalse(result.is_available("afternoon"))

    def test_to_dict_shape(self):
        data = compute_availability(SLOTS, []).to_dict()
        self.assertEqual(set(data), {"status", "message", "per_slot", "occupied_periods"})
        self.assertEqual(data["per_slot"][0]["label"], "Morning (09:00-13:00)")


class RoomStatusTests(SimpleTestCase):
    def setUp(self):
        self.clock = FrozenClock(datetime(2025, 9, 4, 10, 0))

    def test_blocked_wins(self):
        result = room_status(
            [reservation("09:00", "11:00")],
            room={"blocked": {"reason": "Painting"}},
            clock=self.clock,
        )
        self.assertEqual(result.state, RoomState.BLOCKED)
        self.assertEqual(result.message, "Painting")

    def test_occupied_now(self):
        current = reservation("09:00", "11:00")
        result = room_status([current], clock=self.clock)
        self.assertEqual(result.state, RoomState.OCCUPIED)
        self.assertIs(result.current, current)
        self.assertEqual(result.message, "Occupied until 11:00")

    def test_soon_within_threshold(self):
        nxt = reservation("11:30", "12:00")
        result = room_status([nxt], clock=self.clock, soon_threshold_hours=2)
        self.assertEqual(result.state, RoomState.SOON)
        self.assertIs(result.next, nxt)
        self.assertAlmostEqual(result.hours_until, 1.5)

    def test_available_when_next_is_far(self):
        result = room_status([reservation("15:00", "16:00")], clock=self.clock)
        self.assertEqual(result.state, RoomState.AVAILABLE)
        self.assertIsNotNone(result.next)

    def test_available_when_empty(self):
        self.assertEqual(room_status([], clock=self.clock).state, RoomState.AVAILABLE)


class BookingStatsTests(SimpleTestCase):
    def test_counts(self):
        clock = FrozenClock(datetime(2025, 9, 4, 10, 0))
        stats = booking_stats(
            [
                reservation("09:00", "11:00"),                      # current
                reservation("14:00", "15:00"),                      # upcoming
                reservation("09:00", "10:00", day="2025-09-03"),    # completed
                reservation("09:00", "13:00", status="CANCELLED"),  # ignored
            ],
            clock=clock,
        )
        self.assertEqual(stats, {"total": 3, "current": 1, "upcoming": 1, "completed": 1})


class EdgeCaseTests(SimpleTestCase):
    def test_empty_slot_list_is_free(self):
        result = compute_availability([], [reservation("09:00", "13:00")])
        self.assertEqual(result.status, AvailabilityStatus.FREE)
        self.assertEqual(result.per_slot, [])

    def test_one_minute_overlap_takes_the_slot(self):
        result = compute_availability(SLOTS, [reservation("08:30", "09:01")])
        self.assertFalse(result.is_available("morning"))

    def test_blocked_room_with_no_reservations(self):
        result = compute_availability(SLOTS, [], room={"blocked": {"reason": "Closed"}})
        self.assertEqual(result.status, AvailabilityStatus.FULL)

    def test_identical_inputs_give_identical_output(self):
        reservations = [reservation("10:00", "11:00"), reservation("14:00", "15:00", status="CANCELLED")]
        self.assertEqual(
            compute_availability(SLOTS, reservations),
            compute_availability(SLOTS, reservations),
        )
