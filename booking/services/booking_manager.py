"""
booking_manager.py
------------------
Coordinates reservation creation, editing and cancellation. This is the
authoritative side of "submit a booking": whatever the client believed about
availability, the check here decides.

Notes:
- Overlap uses the same half-open rule as the availability engine
  (existing_start < new_end AND new_start < existing_end), done in the DB.
- The room row is locked (select_for_update) for the duration of the
  transaction, so two concurrent submissions for one room are serialized.
- Cancelling only flips status to CANCELLED (soft delete).
"""

import logging

from django.db import transaction
from django.utils import timezone

from rooms.models import Room
from ..exceptions import SlotConflictError, ValidationFailedError
from ..models import Reservation

logger = logging.getLogger(__name__)


class BookingManager:
    def _lock_room(self, room_id) -> Room:
        return Room.objects.select_for_update().get(pk=room_id)

    def _check_times(self, start_time, end_time):
        if end_time <= start_time:
            raise ValidationFailedError("End time must be after start time.")

    def _conflicts(self, room, date, start_time, end_time, exclude_id=None):
        qs = Reservation.objects.filter(
            room=room,
            date=date,
            status=Reservation.ACTIVE,
            start_time__lt=end_time,  # starts before the new window ends
            end_time__gt=start_time,  # ends after the new window starts
        )
        if exclude_id is not None:
            qs = qs.exclude(pk=exclude_id)
        return qs

    def _ensure_free(self, room, date, start_time, end_time, exclude_id=None):
        block = room.current_block
        if block is not None:
            raise SlotConflictError(f"Room is blocked: {block.reason}")
        if self._conflicts(room, date, start_time, end_time, exclude_id).exists():
            raise SlotConflictError(
                "The room is no longer available at the requested time; someone else booked it."
            )

    @transaction.atomic
    def create_reservation(self, owner, room, date, start_time, end_time, purpose=""):
        """
        Create a reservation after checking for overlap.

        Args:
            owner: auth User making the reservation
            room: rooms.Room instance (or its pk)
            date: datetime.date
            start_time / end_time: datetime.time
            purpose: optional string

        Raises:
            ValidationFailedError: end_time is not after start_time.
            SlotConflictError: room blocked or window overlaps an active reservation.
        """
        self._check_times(start_time, end_time)
        room = self._lock_room(getattr(room, "pk", room))
        self._ensure_free(room, date, start_time, end_time)

        reservation = Reservation.objects.create(
            room=room,
            owner=owner,
            date=date,
            start_time=start_time,
            end_time=end_time,
            purpose=purpose or "",
        )
        logger.info("Reservation %s created for room %s on %s", reservation.pk, room.pk, date)
        return reservation

    @transaction.atomic
    def update_reservation(self, reservation, date=None, start_time=None, end_time=None, purpose=None):
        """
        Move/edit an active reservation. Unspecified fields keep their value.
        The reservation itself is ignored by the overlap check.
        """
        if not reservation.is_active:
            raise ValidationFailedError("A cancelled reservation cannot be edited.")

        new_date = date if date is not None else reservation.date
        new_start = start_time if start_time is not None else reservation.start_time
        new_end = end_time if end_time is not None else reservation.end_time
        self._check_times(new_start, new_end)

        room = self._lock_room(reservation.room_id)
        self._ensure_free(room, new_date, new_start, new_end, exclude_id=reservation.pk)

        reservation.date = new_date
        reservation.start_time = new_start
        reservation.end_time = new_end
        if purpose is not None:
            reservation.purpose = purpose
        reservation.save(update_fields=["date", "start_time", "end_time", "purpose", "updated_at"])
        logger.info("Reservation %s updated", reservation.pk)
        return reservation

    @transaction.atomic
    def cancel_reservation(self, reservation, reason="") -> bool:
        """
        Soft-delete: mark CANCELLED and stamp cancellation_time.
        """
        if reservation.status == Reservation.CANCELLED:
            raise ValueError("This reservation is already cancelled.")

        reservation.status = Reservation.CANCELLED
        reservation.cancellation_time = timezone.now()
        if reason:
            reservation.cancellation_reason = reason
        reservation.save(update_fields=["status", "cancellation_time", "cancellation_reason", "updated_at"])
        logger.info("Reservation %s cancelled", reservation.pk)
        return True
