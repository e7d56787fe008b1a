# rooms/urls.py
#
# Purpose:
# - /api/rooms/ CRUD plus block, unblock and status actions (DRF router).

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import RoomViewSet

router = DefaultRouter()
router.register(r"rooms", RoomViewSet, basename="room")

urlpatterns = [
    path("", include(router.urls)),
]
