"""Builders shared by the bulk booking tests."""

from __future__ import annotations

from datetime import date, timedelta
from itertools import count

from apps.users.models import CustomUser

from ..services import ChunkInventory

_sequence = count(1)


def make_user(role=CustomUser.RoleChoices.CUSTOMER, **extra) -> CustomUser:
    n = next(_sequence)
    extra.setdefault("email", f"{role}{n}@example.com")
    extra.setdefault("username", f"{role.title()} {n}")
    return CustomUser.objects.create_user(password="StrongPass123", role=role, **extra)


def make_coordinator(**extra) -> CustomUser:
    return make_user(CustomUser.RoleChoices.COORDINATOR, **extra)


def make_customer(**extra) -> CustomUser:
    return make_user(CustomUser.RoleChoices.CUSTOMER, **extra)


def make_chunk(owner, *, total_spots=10, valid_from: date, valid_to: date | None = None, inventory=None, **extra):
    inventory = inventory or ChunkInventory(today=lambda: valid_from)
    extra.setdefault("parking_name", "North Garage")
    extra.setdefault("chunk_name", "Conference week")
    extra.setdefault("company", "Acme Events")
    return inventory.create_chunk(
        owner_id=owner.pk,
        total_spots=total_spots,
        valid_from=valid_from,
        valid_to=valid_to or valid_from + timedelta(days=30),
        **extra,
    )
