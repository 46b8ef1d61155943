"""
Chunk Capacity Aggregate

The consistency boundary for one purchased chunk. Every change to the
number of spots in use goes through this aggregate while the chunk row is
locked, so the counters can never drift from the active sub-bookings.

Strategy (Defense in Depth):
1. Domain validation: allocate()/release() keep 0 <= used <= total
2. Guarded UPDATE: the counter only moves if enough spots are still free
3. Database constraints: CHECK used_spots <= total_spots and friends
4. Pessimistic locking: SELECT FOR UPDATE on the chunk row
"""

from dataclasses import dataclass
from datetime import date
from enum import Enum

from shared.domain.base import Aggregate
from shared.domain.value_objects import ValidityWindow

from apps.bulk_bookings.domain.events import ChunkStatusChanged, SpotsAllocated, SpotsReleased
from apps.bulk_bookings.exceptions import ConflictError, ValidationError


class ChunkStatus(str, Enum):
    ACTIVE = "active"
    FULL = "full"
    EXPIRED = "expired"


@dataclass(eq=False, kw_only=True)
class ChunkCapacity(Aggregate):
    """
    Chunk Capacity Aggregate Root

    Key invariants:
    - 0 <= used_spots <= total_spots
    - available_spots == total_spots - used_spots
    - Expired is terminal; Full and Active follow available_spots

    Usage:
        chunk, capacity = inventory.lock(chunk_id)
        capacity.allocate(sub_booking.id, 3)
        inventory.apply_delta(capacity, 3)
    """

    owner_id: int
    total_spots: int
    used_spots: int = 0
    window: ValidityWindow
    status: ChunkStatus = ChunkStatus.ACTIVE

    @property
    def available_spots(self) -> int:
        return self.total_spots - self.used_spots

    @property
    def is_expired(self) -> bool:
        return self.status == ChunkStatus.EXPIRED

    def can_allocate(self, spots: int) -> bool:
        return not self.is_expired and 0 < spots <= self.available_spots

    def ensure_open(self, today: date):
        """Reject allocations against a chunk that has expired or whose window has passed"""
        if self.is_expired or self.window.has_lapsed(today):
            raise ValidationError(
                "bulk_booking",
                f"Bulk booking {self.id} has expired",
                chunk_id=self.id,
            )

    def allocate(self, sub_booking_id: int, spots: int):
        """
        Hand ``spots`` of this chunk to a sub-booking

        Raises:
            ValidationError: spots not positive or more than are available
        """
        if spots < 1:
            raise ValidationError(
                "assigned_spots", "At least one spot must be assigned",
                chunk_id=self.id, sub_booking_id=sub_booking_id,
            )
        if spots > self.available_spots:
            raise ValidationError(
                "assigned_spots",
                f"Cannot assign more than {self.available_spots} available spots",
                chunk_id=self.id, sub_booking_id=sub_booking_id,
            )

        self.used_spots += spots
        self.add_event(SpotsAllocated(
            aggregate_id=self.id,
            chunk_id=self.id,
            sub_booking_id=sub_booking_id,
            spots=spots,
            available_spots=self.available_spots,
        ))
        self._refresh_status()

    def release(self, sub_booking_id: int, spots: int):
        """
        Give ``spots`` back to the chunk

        Raises:
            ConflictError: the chunk has fewer spots in use than are being released
        """
        if spots < 1:
            return
        if spots > self.used_spots:
            raise ConflictError(
                f"Cannot release {spots} spots, only {self.used_spots} are in use",
                chunk_id=self.id, sub_booking_id=sub_booking_id,
            )

        self.used_spots -= spots
        self.add_event(SpotsReleased(
            aggregate_id=self.id,
            chunk_id=self.id,
            sub_booking_id=sub_booking_id,
            spots=spots,
            available_spots=self.available_spots,
        ))
        self._refresh_status()

    def reconcile(self, active_spots: int, today: date):
        """
        Reset the counters from the sum of active sub-bookings

        Raises:
            ConflictError: the active sub-bookings hold more than the chunk has
        """
        if active_spots > self.total_spots:
            raise ConflictError(
                f"Active assignments hold {active_spots} of {self.total_spots} spots",
                chunk_id=self.id,
            )
        self.used_spots = active_spots
        self._refresh_status(today)

    def _refresh_status(self, today: date | None = None):
        if self.is_expired or (today is not None and self.window.has_lapsed(today)):
            new_status = ChunkStatus.EXPIRED
        elif self.available_spots == 0:
            new_status = ChunkStatus.FULL
        else:
            new_status = ChunkStatus.ACTIVE

        if new_status != self.status:
            self.add_event(ChunkStatusChanged(
                aggregate_id=self.id,
                chunk_id=self.id,
                old_status=self.status.value,
                new_status=new_status.value,
            ))
            self.status = new_status

    def __str__(self):
        return f"ChunkCapacity(chunk={self.id}, used={self.used_spots}/{self.total_spots}, {self.status.value})"
