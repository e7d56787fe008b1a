# booking/models.py
#
# Purpose:
# - Reservation: one room, one local date, one [start_time, end_time) window.
#
# Design highlights:
# - date is a plain DateField and the times are TimeFields: availability
#   compares local dates exactly ("YYYY-MM-DD"), never timezone-shifted.
# - status is uppercase "ACTIVE" or "CANCELLED". Cancelling is a soft delete;
#   only ACTIVE reservations take part in availability.
# - cancellation_time / cancellation_reason record who-cancelled context.
#
# Notes for developers:
# - Overlap prevention is NOT a DB constraint (SQLite has no exclusion
#   constraints). BookingManager checks overlaps inside a transaction while
#   holding a row lock on the room.
#
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models


class Reservation(models.Model):
    """
    A booking of a room for a time window on a given day.
    """
    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED"
    STATUS_CHOICES = [
        (ACTIVE, "Active"),
        (CANCELLED, "Cancelled"),
    ]

    room = models.ForeignKey("rooms.Room", on_delete=models.CASCADE, related_name="reservations")
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="reservations",
    )
    date = models.DateField()
    start_time = models.TimeField()
    end_time = models.TimeField()
    purpose = models.TextField(blank=True)
    status = models.CharField(
        max_length=10,
        choices=STATUS_CHOICES,
        default=ACTIVE,
        help_text="Reservation lifecycle status",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    cancellation_time = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the reservation was cancelled (if applicable).",
    )
    cancellation_reason = models.TextField(blank=True)

    class Meta:
        ordering = ["date", "start_time"]
        indexes = [
            models.Index(fields=["room", "date", "status"], name="booking_room_date_status_idx"),
        ]

    def __str__(self):
        return (
            f"{self.room} on {self.date:%Y-%m-%d} "
            f"{self.start_time:%H:%M}-{self.end_time:%H:%M} ({self.status})"
        )

    @property
    def is_active(self) -> bool:
        return self.status == self.ACTIVE

    def clean(self):
        if self.start_time and self.end_time and self.end_time <= self.start_time:
            raise ValidationError("End time must be after start time.")
