from datetime import date, timedelta

import pytest

from apps.bulk_bookings.application.command_handlers import Allocator
from apps.bulk_bookings.services import ChunkInventory

from .helpers import make_chunk, make_coordinator, make_customer

TODAY = date(2025, 6, 1)


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def inventory():
    return ChunkInventory(today=lambda: TODAY)


@pytest.fixture
def allocator(inventory):
    return Allocator(inventory=inventory)


@pytest.fixture
def coordinator(db):
    return make_coordinator(company="Acme Events")


@pytest.fixture
def customer(db):
    return make_customer(first_name="Dana", last_name="Lee", username="")


@pytest.fixture
def chunk(coordinator, inventory):
    """10 spots valid for June 2025."""
    return make_chunk(
        coordinator,
        total_spots=10,
        valid_from=TODAY,
        valid_to=TODAY + timedelta(days=29),
        inventory=inventory,
    )
