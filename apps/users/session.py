"""Explicit session context for authenticated API calls.

Instead of reading "who is calling" from ambient request state all over
the place, views build a ``SessionContext`` once (on login, or when a
request is authenticated with an access token) and pass it down to the
services. Logout tears the context down by blacklisting the refresh
token, after which no new access tokens can be minted for that session.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from django.utils import timezone  # type: ignore
from rest_framework import exceptions, permissions  # type: ignore
from rest_framework_simplejwt.exceptions import TokenError  # type: ignore
from rest_framework_simplejwt.tokens import RefreshToken  # type: ignore

from .models import CustomUser


@dataclass(frozen=True)
class SessionContext:
    """Identity of the caller, resolved once per request."""

    user_id: int
    email: str
    role: str
    is_staff: bool = False
    started_at: datetime = field(default_factory=timezone.now)

    @classmethod
    def for_user(cls, user: CustomUser) -> "SessionContext":
        return cls(
            user_id=user.pk,
            email=user.email,
            role=user.role,
            is_staff=bool(user.is_staff or user.is_superuser),
        )

    @classmethod
    def from_request(cls, request) -> "SessionContext":
        """Build (and cache on the request) the context for an authenticated call."""
        cached = getattr(request, "_session_context", None)
        if cached is not None:
            return cached
        user = getattr(request, "user", None)
        if user is None or not user.is_authenticated:
            raise exceptions.NotAuthenticated()
        context = cls.for_user(user)
        request._session_context = context
        return context

    @property
    def is_coordinator(self) -> bool:
        return self.role == CustomUser.RoleChoices.COORDINATOR

    @property
    def is_admin(self) -> bool:
        return self.is_staff or self.role == CustomUser.RoleChoices.ADMIN

    def can_manage(self, owner_id: int) -> bool:
        """Coordinators manage their own chunks; admins manage everything."""
        return self.is_admin or owner_id == self.user_id


def open_session(user: CustomUser) -> tuple[SessionContext, dict[str, str]]:
    """Start a session on login: returns the context and a fresh token pair."""
    refresh = RefreshToken.for_user(user)
    refresh["role"] = user.role
    user.touch_last_activity()
    return SessionContext.for_user(user), {"refresh": str(refresh), "access": str(refresh.access_token)}


def close_session(refresh_token: str) -> None:
    """Tear a session down on logout by blacklisting its refresh token."""
    try:
        RefreshToken(refresh_token).blacklist()
    except TokenError as exc:
        raise exceptions.ValidationError({"refresh": [str(exc)]}) from exc


class IsCoordinator(permissions.BasePermission):
    """Only event coordinators (and platform admins) may allocate capacity."""

    message = "Only event coordinators can manage bulk bookings."

    def has_permission(self, request, view) -> bool:  # type: ignore
        user = request.user
        if not user or not user.is_authenticated:
            return False
        context = SessionContext.from_request(request)
        return context.is_coordinator or context.is_admin
