# rooms/models.py
#
# Purpose:
# - Room catalogue and the optional admin block attached to a room.
#
# Design highlights:
# - Room: name is unique; "active" hides a room from regular users.
# - RoomBlock: one-to-one with Room. The row existing IS the block; removing
#   the row unblocks the room. Only staff create/delete blocks (API or admin).
#   A blocked room is unavailable for every slot, whatever its reservations.
#
from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models


class Room(models.Model):
    """
    A bookable room (physical or virtual).
    """
    name = models.CharField(max_length=200, unique=True)
    floor = models.IntegerField(default=0)
    capacity = models.PositiveIntegerField(
        validators=[MinValueValidator(1)]  # a room seats at least one person
    )
    description = models.TextField(blank=True)
    is_virtual = models.BooleanField(default=False)
    active = models.BooleanField(default=True)

    class Meta:
        ordering = ["floor", "name"]

    def __str__(self):
        return f"{self.name} (floor {self.floor})"

    @property
    def is_blocked(self) -> bool:
        return self.current_block is not None

    @property
    def current_block(self):
        """Return the RoomBlock or None (reverse one-to-one raises when missing)."""
        try:
            return self.block
        except RoomBlock.DoesNotExist:
            return None


class RoomBlock(models.Model):
    """
    Admin block on a room (maintenance, event set-up, ...).
    """
    room = models.OneToOneField(Room, on_delete=models.CASCADE, related_name="block")
    reason = models.CharField(max_length=255)
    blocked_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="room_blocks",
    )
    blocked_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.room.name} blocked: {self.reason}"
