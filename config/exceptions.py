"""DRF exception handler.

Maps allocation engine errors to HTTP responses; anything else goes
through DRF's default handler.
"""

from __future__ import annotations

import logging

from django.urls import NoReverseMatch  # type: ignore
from rest_framework import status  # type: ignore
from rest_framework.response import Response  # type: ignore
from rest_framework.reverse import reverse  # type: ignore
from rest_framework.views import exception_handler  # type: ignore

from apps.bulk_bookings.exceptions import (
    AllocationBusyError,
    AllocationError,
    ConflictError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def _refetch_url(chunk_id, request):
    if chunk_id is None:
        return None
    try:
        return reverse("chunk-detail", kwargs={"pk": chunk_id}, request=request)
    except NoReverseMatch:
        return None


def allocation_error_response(exc: AllocationError, request=None) -> Response:
    if isinstance(exc, ValidationError):
        return Response({exc.field: [exc.message]}, status=status.HTTP_400_BAD_REQUEST)

    body = {"detail": exc.message, "code": exc.default_code}
    headers = None
    if isinstance(exc, ConflictError):
        body["refetch"] = _refetch_url(exc.chunk_id, request)
    elif isinstance(exc, AllocationBusyError):
        body["retryable"] = "manual"
        headers = {"Retry-After": "1"}
    return Response(body, status=exc.status_code, headers=headers)


def api_exception_handler(exc, context):
    if isinstance(exc, AllocationError):
        request = context.get("request")
        logger.warning(
            f"{request.method if request else ''} {request.path if request else ''} "
            f"rejected ({exc.default_code}): {exc.message} "
            f"[chunk={exc.chunk_id} sub_booking={exc.sub_booking_id}]"
        )
        return allocation_error_response(exc, request)
    return exception_handler(exc, context)
