"""API views for the transaction log.

Read only: rows are written by the purchase flow, never by clients.
"""

from __future__ import annotations

from rest_framework import viewsets  # type: ignore

from apps.users.session import IsCoordinator, SessionContext

from .serializers import TransactionSerializer
from .services import transactions_for_coordinator


class TransactionViewSet(viewsets.ReadOnlyModelViewSet):
    """Transactions of the current coordinator; ``?days=`` limits the window."""

    serializer_class = TransactionSerializer
    permission_classes = [IsCoordinator]

    def get_queryset(self):  # type: ignore
        context = SessionContext.from_request(self.request)
        try:
            days = int(self.request.query_params.get("days", 0))
        except (TypeError, ValueError):
            days = 0
        owner_id = None if context.is_admin else context.user_id
        return transactions_for_coordinator(owner_id, days=days or None)
