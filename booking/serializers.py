from rest_framework import serializers

from rooms.models import Room
from .models import Reservation
from .services.slot_utils import format_hhmm, get_time_slots


class ReservationSerializer(serializers.ModelSerializer):
    room_name = serializers.CharField(source="room.name", read_only=True)
    owner = serializers.CharField(source="owner.get_username", read_only=True)

    class Meta:
        model = Reservation
        fields = [
            "id",
            "room",
            "room_name",
            "owner",
            "date",
            "start_time",
            "end_time",
            "purpose",
            "status",
            "created_at",
            "updated_at",
            "cancellation_time",
            "cancellation_reason",
        ]
        read_only_fields = fields


class BookingRequestSerializer(serializers.Serializer):
    """
    Input for creating a reservation: a room, a day and one of the fixed slots.
    """
    room = serializers.PrimaryKeyRelatedField(queryset=Room.objects.all())
    date = serializers.DateField()
    slot = serializers.CharField()
    purpose = serializers.CharField(required=False, allow_blank=True, default="")

    def validate_room(self, room):
        if not room.active:
            raise serializers.ValidationError("This room is not currently available.")
        return room


class BookingUpdateSerializer(serializers.Serializer):
    """
    Input for editing: any of date/slot/purpose. Missing date or slot keep the
    reservation's current values (resolved in the view).
    """
    date = serializers.DateField(required=False)
    slot = serializers.CharField(required=False)
    purpose = serializers.CharField(required=False, allow_blank=True)


class CancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")


def slot_for_times(start_time, end_time):
    """Return the configured slot exactly matching a reservation, or None."""
    for slot in get_time_slots():
        if slot.start == start_time and slot.end == end_time:
            return slot
    return None


def slot_payload():
    return [
        {"id": s.id, "label": s.label, "start": format_hhmm(s.start), "end": format_hhmm(s.end)}
        for s in get_time_slots()
    ]
