# booking/urls.py
#
# Purpose:
# - Expose the booking REST API via DRF router (mounted under /api/ by
#   catcafe/urls.py).
#
# Notes for developers:
# - Extra booking endpoints (start-options, end-options, cancel, upload-receipt,
#   confirm, admin-cancel, reschedule, cancellation-stats, cancellation-policy)
#   are @action routes on BookingViewSet, so the router generates them.
# - balance/ is a ViewSet without a model; basename is required.

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import BalanceViewSet, BookingViewSet, RoomViewSet

# --------------------------
# DRF Router registrations
# --------------------------
router = DefaultRouter()
router.register(r"rooms", RoomViewSet, basename="room")
router.register(r"bookings", BookingViewSet, basename="booking")
router.register(r"balance", BalanceViewSet, basename="balance")

urlpatterns = [
    path("", include(router.urls)),
]
