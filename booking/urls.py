# booking/urls.py
#
# Purpose:
# - Expose the reservation REST API via DRF router:
#     * /api/reservations/                     list / create
#     * /api/reservations/{id}/                retrieve / PATCH edit
#     * /api/reservations/{id}/cancel/         POST cancel
#     * /api/reservations/availability/        GET day availability
#     * /api/reservations/slots/               GET configured slots
# - Week calendar: GET /api/reservations/week/?room=ID&start=YYYY-MM-DD
#
# Notes for developers:
# - The week path is listed before the router so "week" is never read as a
#   reservation id.

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import ReservationViewSet
from .views_calendar import room_week

router = DefaultRouter()
router.register(r"reservations", ReservationViewSet, basename="reservation")

urlpatterns = [
    path("reservations/week/", room_week, name="reservation-week"),
    path("", include(router.urls)),
]
