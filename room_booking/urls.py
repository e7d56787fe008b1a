# room_booking/urls.py
#
# Purpose:
# - Project URL router.
# - Keeps every JSON API under /api/ so the admin site has its own URL space.
#
from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    # Django admin (rooms, blocks, reservations)
    path("admin/", admin.site.urls),

    # =====
    # API's
    # =====
    path("api/", include("rooms.urls")),
    path("api/", include("booking.urls")),
]

# Static files in DEBUG (dev only). In production, serve via web server / CDN.
if settings.DEBUG:
    urlpatterns += static(settings.STATIC_URL, document_root=settings.STATIC_ROOT)
