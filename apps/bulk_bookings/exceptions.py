"""Errors raised by the allocation engine.

They carry the chunk and sub-booking ids involved so that every rejected
mutation can be written to the audit log. The API layer maps them to
HTTP responses in ``config.exceptions.api_exception_handler``.
"""

from __future__ import annotations


class AllocationError(Exception):
    """Base class for allocation engine errors."""

    status_code = 400
    default_code = "allocation_error"

    def __init__(self, message: str, *, chunk_id=None, sub_booking_id=None):
        super().__init__(message)
        self.message = message
        self.chunk_id = chunk_id
        self.sub_booking_id = sub_booking_id

    def audit_fields(self) -> dict:
        return {
            "error": self.default_code,
            "chunk_id": self.chunk_id,
            "sub_booking_id": self.sub_booking_id,
        }


class ValidationError(AllocationError):
    """Client-correctable input problem; nothing was changed."""

    default_code = "invalid"

    def __init__(self, field: str, message: str, **ids):
        super().__init__(message, **ids)
        self.field = field

    def audit_fields(self) -> dict:
        return {**super().audit_fields(), "field": self.field}


class NotFoundError(AllocationError):
    """Referenced chunk, sub-booking or customer does not exist."""

    status_code = 404
    default_code = "not_found"


class PermissionDeniedError(AllocationError):
    """Chunk or sub-booking belongs to another coordinator."""

    status_code = 403
    default_code = "permission_denied"


class ConflictError(AllocationError):
    """The guarded commit lost against a concurrent allocation."""

    status_code = 409
    default_code = "capacity_conflict"

    def __init__(self, message: str = "Spots no longer available. Refresh and retry.", **ids):
        super().__init__(message, **ids)


class AllocationBusyError(AllocationError):
    """The chunk lock could not be acquired in time; the caller may retry by hand."""

    status_code = 503
    default_code = "chunk_busy"

    def __init__(self, message: str = "The bulk booking is busy. Please retry.", **ids):
        super().__init__(message, **ids)
