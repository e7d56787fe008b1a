from rest_framework import serializers

from .models import Room, RoomBlock


class RoomBlockSerializer(serializers.ModelSerializer):
    blocked_by = serializers.CharField(source="blocked_by.get_username", read_only=True, default=None)

    class Meta:
        model = RoomBlock
        fields = ["reason", "blocked_by", "blocked_at"]
        read_only_fields = ["blocked_by", "blocked_at"]


class RoomSerializer(serializers.ModelSerializer):
    is_blocked = serializers.BooleanField(read_only=True)
    block = serializers.SerializerMethodField()

    class Meta:
        model = Room
        fields = [
            "id",
            "name",
            "floor",
            "capacity",
            "description",
            "is_virtual",
            "active",
            "is_blocked",
            "block",
        ]

    def get_block(self, obj):
        block = obj.current_block
        return RoomBlockSerializer(block).data if block is not None else None


class BlockRoomSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=255)

    def validate_reason(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("A reason is required to block a room.")
        return value
