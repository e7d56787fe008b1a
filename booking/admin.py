from django.contrib import admin

from .models import Reservation


@admin.register(Reservation)
class ReservationAdmin(admin.ModelAdmin):
    list_display = ("id", "room", "owner", "date", "start_time", "end_time", "status")
    list_filter = ("status", "room", "date")
    search_fields = ("room__name", "owner__username", "purpose")
    date_hierarchy = "date"
    readonly_fields = ("created_at", "updated_at", "cancellation_time")
