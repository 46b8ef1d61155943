from __future__ import annotations

import pytest
from rest_framework import exceptions
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken
from rest_framework_simplejwt.tokens import RefreshToken

from apps.users.models import User
from apps.users.session import SessionContext, close_session, open_session

pytestmark = pytest.mark.django_db


@pytest.fixture
def coordinator():
    return User.objects.create_user(
        email="events@example.com", password="StrongPass123", role=User.RoleChoices.COORDINATOR
    )


def test_open_session_carries_role(coordinator):
    context, tokens = open_session(coordinator)

    assert context.user_id == coordinator.pk
    assert context.is_coordinator
    assert not context.is_admin
    assert RefreshToken(tokens["refresh"])["role"] == "coordinator"


def test_close_session_blacklists_token(coordinator):
    _, tokens = open_session(coordinator)

    close_session(tokens["refresh"])

    assert BlacklistedToken.objects.filter(token__user=coordinator).exists()
    with pytest.raises(exceptions.ValidationError):
        close_session(tokens["refresh"])


def test_can_manage():
    coordinator = SessionContext(user_id=1, email="a@example.com", role="coordinator")
    staff = SessionContext(user_id=2, email="b@example.com", role="customer", is_staff=True)

    assert coordinator.can_manage(1)
    assert not coordinator.can_manage(2)
    assert staff.is_admin
    assert staff.can_manage(1)


def test_from_request_requires_authentication():
    class Anonymous:
        is_authenticated = False

    class Request:
        user = Anonymous()

    with pytest.raises(exceptions.NotAuthenticated):
        SessionContext.from_request(Request())
