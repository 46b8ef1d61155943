"""API view for the coordinator dashboard."""

from __future__ import annotations

from rest_framework.response import Response  # type: ignore
from rest_framework.views import APIView  # type: ignore

from apps.users.session import IsCoordinator, SessionContext

from .services import DashboardAggregator


class DashboardSummaryView(APIView):
    """Summary metrics, sections and alerts for the current coordinator.

    Admins may look at another coordinator with ``?coordinator=<id>``.
    """

    permission_classes = [IsCoordinator]
    aggregator_class = DashboardAggregator

    def get(self, request, format=None):  # type: ignore
        context = SessionContext.from_request(request)
        coordinator_id = context.user_id
        requested = request.query_params.get("coordinator")
        if requested and context.is_admin:
            try:
                coordinator_id = int(requested)
            except (TypeError, ValueError):
                return Response({"coordinator": ["A valid integer is required."]}, status=400)

        return Response(self.aggregator_class().get_summary(coordinator_id))
