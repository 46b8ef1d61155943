"""URL routing for bulk bookings."""

from __future__ import annotations

from django.urls import include, path  # type: ignore
from rest_framework.routers import DefaultRouter  # type: ignore

from .views import ChunkViewSet, SubBookingViewSet

router = DefaultRouter()
router.register(r"chunks", ChunkViewSet, basename="chunk")
router.register(r"assignments", SubBookingViewSet, basename="assignment")

urlpatterns = [
    path("", include(router.urls)),
]
