"""
Bulk Booking Domain Events

Published by the unit of work after the allocation transaction commits.
The audit log subscribes to all of them.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from shared.domain.base import DomainEvent


# ===== Chunk events =====

@dataclass(kw_only=True)
class ChunkPurchased(DomainEvent):
    """A coordinator bought a new capacity chunk"""
    chunk_id: int
    owner_id: int
    total_spots: int
    valid_from: date
    valid_to: date


@dataclass(kw_only=True)
class SpotsAllocated(DomainEvent):
    """Spots of a chunk were handed to a sub-booking"""
    chunk_id: int
    sub_booking_id: int
    spots: int
    available_spots: int


@dataclass(kw_only=True)
class SpotsReleased(DomainEvent):
    """Spots went back to the chunk"""
    chunk_id: int
    sub_booking_id: int
    spots: int
    available_spots: int


@dataclass(kw_only=True)
class ChunkStatusChanged(DomainEvent):
    """Active <-> Full, or anything -> Expired"""
    chunk_id: int
    old_status: str
    new_status: str


# ===== Sub-booking events =====

@dataclass(kw_only=True)
class AssignmentCreated(DomainEvent):
    sub_booking_id: int
    chunk_id: int
    customer_id: int
    assigned_spots: int


@dataclass(kw_only=True)
class AssignmentUpdated(DomainEvent):
    sub_booking_id: int
    chunk_id: int
    old_assigned_spots: int
    new_assigned_spots: int


@dataclass(kw_only=True)
class AssignmentDeleted(DomainEvent):
    sub_booking_id: int
    chunk_id: int
    released_spots: int


@dataclass(kw_only=True)
class AssignmentStatusChanged(DomainEvent):
    """Active <-> Suspended, or Active/Suspended -> Expired"""
    sub_booking_id: int
    chunk_id: int
    old_status: str
    new_status: str


@dataclass(kw_only=True)
class UsageRecorded(DomainEvent):
    sub_booking_id: int
    hours: Decimal
