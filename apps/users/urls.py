"""URL declarations for the users app."""

from __future__ import annotations

from django.urls import path  # type: ignore

from .views import CustomerDirectoryView, MeView

urlpatterns = [
    path("me/", MeView.as_view(), name="user-me"),
    path("customers/", CustomerDirectoryView.as_view(), name="customer-directory"),
]
