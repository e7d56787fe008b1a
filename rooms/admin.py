from django.contrib import admin
from .models import Room, RoomBlock


@admin.register(Room)
class RoomAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "floor", "capacity", "is_virtual", "active")
    list_filter = ("floor", "is_virtual", "active")
    search_fields = ("name",)
    list_editable = ("capacity", "active")


@admin.register(RoomBlock)
class RoomBlockAdmin(admin.ModelAdmin):
    list_display = ("room", "reason", "blocked_by", "blocked_at")
    search_fields = ("room__name", "reason")
