# catcafe/urls.py
#
# Purpose:
# - Project URL router.
# - All JSON APIs live under /api/ via the DRF router in booking/urls.py.
#
from django.contrib import admin
from django.urls import path, include
from django.conf import settings
from django.conf.urls.static import static


urlpatterns = [
    # Django admin (room catalogue, bookings, balances)
    path("admin/", admin.site.urls),

    # =====
    # API's
    # =====
    path("api/", include("booking.urls")),
]

# Uploaded receipts in DEBUG (dev only). In production, serve via web server / storage bucket.
if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
