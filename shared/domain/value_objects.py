"""
Common Value Objects

- ValidityWindow: an inclusive range of calendar days during which a
  capacity pool or one of its slices may be used
"""

from dataclasses import dataclass
from datetime import date

from shared.domain.base import ValueObject


@dataclass(frozen=True)
class ValidityWindow(ValueObject):
    """
    Validity window value object

    Both ends are inclusive: a window from the 1st to the 1st is one valid
    day. Construction does not reject inverted windows because callers need
    to report *which* rule was broken; use ``is_well_formed`` for that.
    """
    valid_from: date
    valid_to: date

    @property
    def is_well_formed(self) -> bool:
        return self.valid_from <= self.valid_to

    def contains(self, other: 'ValidityWindow') -> bool:
        """
        Check that ``other`` lies entirely inside this window

        Examples:
            - Window(1, 10) contains Window(1, 10) -> True
            - Window(1, 10) contains Window(3, 11) -> False
        """
        if not isinstance(other, ValidityWindow):
            raise TypeError("Can only check containment of another ValidityWindow")
        return self.valid_from <= other.valid_from and other.valid_to <= self.valid_to

    def includes(self, day: date) -> bool:
        return self.valid_from <= day <= self.valid_to

    def has_lapsed(self, today: date) -> bool:
        """True once the last valid day is behind us"""
        return self.valid_to < today

    def __len__(self) -> int:
        """Number of valid days (inclusive on both ends)"""
        if not self.is_well_formed:
            return 0
        return (self.valid_to - self.valid_from).days + 1

    def __str__(self):
        return f"{self.valid_from.strftime('%d.%m.%Y')} - {self.valid_to.strftime('%d.%m.%Y')}"

    def __repr__(self):
        return f"ValidityWindow({self.valid_from}, {self.valid_to})"
