"""URL declarations for the dashboard."""

from __future__ import annotations

from django.urls import path  # type: ignore

from .views import DashboardSummaryView

urlpatterns = [
    path("summary/", DashboardSummaryView.as_view(), name="dashboard-summary"),
]
