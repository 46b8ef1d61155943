"""
Assignment Policy

All presence and range checks for a sub-booking's spot count and dates
live here, in the order they are reported to the caller.
"""

from datetime import date

from shared.domain.value_objects import ValidityWindow

from apps.bulk_bookings.exceptions import ValidationError


class AssignmentPolicy:
    """
    Validates a requested assignment against one chunk

    ``available`` is the capacity the request may use: the chunk's free
    spots, plus the spots the sub-booking already holds when it is being
    edited.
    """

    def check(
        self,
        *,
        chunk_window: ValidityWindow,
        available: int,
        assigned_spots: int | None,
        valid_from: date | None,
        valid_to: date | None,
        chunk_id=None,
        sub_booking_id=None,
    ) -> ValidityWindow:
        ids = {"chunk_id": chunk_id, "sub_booking_id": sub_booking_id}

        if assigned_spots is None:
            raise ValidationError("assigned_spots", "This field is required.", **ids)
        if assigned_spots < 1:
            raise ValidationError("assigned_spots", "At least one spot must be assigned", **ids)
        if assigned_spots > available:
            raise ValidationError(
                "assigned_spots",
                f"Cannot assign more than {available} available spots",
                **ids,
            )

        if valid_from is None:
            raise ValidationError("valid_from", "This field is required.", **ids)
        if valid_to is None:
            raise ValidationError("valid_to", "This field is required.", **ids)

        window = ValidityWindow(valid_from, valid_to)
        if not window.is_well_formed:
            raise ValidationError("valid_to", "End date must not be before start date", **ids)

        if not chunk_window.contains(window):
            field = "valid_from" if valid_from < chunk_window.valid_from else "valid_to"
            raise ValidationError(
                field,
                f"Assignment dates must be within the bulk booking period ({chunk_window})",
                **ids,
            )

        return window

    def check_notes(self, notes) -> str:
        """Normalise optional free text; absent notes are stored as an empty string"""
        if notes is None:
            return ""
        return str(notes).strip()
