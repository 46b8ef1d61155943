"""API views for bulk bookings.

Mutations are dispatched as commands through the message bus; the
exception handler in ``config.exceptions`` turns allocation errors into
400/403/404/409/503 responses.
"""

from __future__ import annotations

from django_filters.rest_framework import DjangoFilterBackend  # type: ignore
from rest_framework import mixins, status, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.response import Response  # type: ignore

from apps.users.session import IsCoordinator, SessionContext
from shared.application.message_bus import message_bus

from .application.command_handlers import (
    CreateAssignmentCommand,
    DeleteAssignmentCommand,
    ReinstateAssignmentCommand,
    SuspendAssignmentCommand,
    UpdateAssignmentCommand,
)
from .domain.references import Unresolved
from .exceptions import ValidationError
from .filters import SubBookingFilterSet
from .models import BulkBookingChunk, SubBooking
from .serializers import (
    AccessCodeSerializer,
    AssignmentCreateSerializer,
    AssignmentUpdateSerializer,
    ChunkCreateSerializer,
    ChunkSerializer,
    RecordUsageSerializer,
    SubBookingSerializer,
)
from .services import ChunkInventory
from .usage import UsageTracker

IDEMPOTENCY_HEADER = "Idempotency-Key"


class ChunkViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """Purchased chunks of the current coordinator."""

    serializer_class = ChunkSerializer
    permission_classes = [IsCoordinator]
    lookup_value_regex = r"\d+"
    inventory_class = ChunkInventory

    def get_inventory(self) -> ChunkInventory:
        return self.inventory_class()

    def get_queryset(self):  # type: ignore
        context = SessionContext.from_request(self.request)
        owner_id = context.user_id
        if context.is_admin:
            requested = self.request.query_params.get("owner")
            if not requested:
                return BulkBookingChunk.objects.select_related("owner").order_by("-purchase_date", "-pk")
            try:
                owner_id = int(requested)
            except (TypeError, ValueError):
                return BulkBookingChunk.objects.none()
        return self.get_inventory().list_for_owner(owner_id).select_related("owner")

    def create(self, request, *args, **kwargs):  # type: ignore
        context = SessionContext.from_request(request)
        serializer = ChunkCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        chunk = self.get_inventory().create_chunk(owner_id=context.user_id, **serializer.validated_data)
        data = ChunkSerializer(chunk, context=self.get_serializer_context()).data
        return Response(data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=["get"])
    def available(self, request):  # type: ignore
        context = SessionContext.from_request(request)
        chunks = self.get_inventory().list_available(context.user_id)
        return Response(self.get_serializer(chunks, many=True).data)

    @action(detail=False, methods=["post"], url_path="resolve-code")
    def resolve_code(self, request):  # type: ignore
        context = SessionContext.from_request(request)
        serializer = AccessCodeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        chunk = self.get_inventory().resolve_access_code(serializer.validated_data["code"])
        if not context.can_manage(chunk.owner_id):
            return Response({"detail": "No bulk booking matches this access code"}, status=status.HTTP_404_NOT_FOUND)
        return Response(self.get_serializer(chunk).data)


class SubBookingViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """Assignments of chunk capacity to customers."""

    serializer_class = SubBookingSerializer
    permission_classes = [IsCoordinator]
    lookup_value_regex = r"\d+"
    filter_backends = [DjangoFilterBackend]
    filterset_class = SubBookingFilterSet
    http_method_names = ["get", "post", "patch", "delete", "head", "options"]

    def get_queryset(self):  # type: ignore
        context = SessionContext.from_request(self.request)
        qs = SubBooking.objects.select_related("bulk_booking", "customer", "owner")
        if context.is_admin:
            return qs
        return qs.owned_by(context.user_id)

    def get_serializer_context(self):  # type: ignore
        context = super().get_serializer_context()
        context["expand_chunk"] = self.request.query_params.get("expand") == "chunk"
        return context

    def _respond(self, sub_booking: SubBooking, status_code=status.HTTP_200_OK) -> Response:
        sub_booking = self.get_queryset().filter(pk=sub_booking.pk).first() or sub_booking
        data = SubBookingSerializer(sub_booking, context=self.get_serializer_context()).data
        return Response(data, status=status_code)

    def create(self, request, *args, **kwargs):  # type: ignore
        context = SessionContext.from_request(request)
        serializer = AssignmentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        idempotency_key = (request.headers.get(IDEMPOTENCY_HEADER) or "").strip() or None
        if idempotency_key and len(idempotency_key) > 64:
            raise ValidationError("idempotency_key", "Idempotency key must be at most 64 characters")

        sub_booking = message_bus.handle_command(CreateAssignmentCommand(
            bulk_booking=Unresolved(data["bulk_booking"]),
            owner_id=context.user_id,
            customer_id=data["customer"],
            assigned_spots=data.get("assigned_spots"),
            valid_from=data.get("valid_from"),
            valid_to=data.get("valid_to"),
            notes=data.get("notes"),
            idempotency_key=idempotency_key,
            allow_any_owner=context.is_admin,
        ))
        return self._respond(sub_booking, status.HTTP_201_CREATED)

    def partial_update(self, request, *args, **kwargs):  # type: ignore
        context = SessionContext.from_request(request)
        serializer = AssignmentUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        sub_booking = message_bus.handle_command(UpdateAssignmentCommand(
            sub_booking_id=int(kwargs["pk"]),
            owner_id=context.user_id,
            assigned_spots=data.get("assigned_spots"),
            valid_from=data.get("valid_from"),
            valid_to=data.get("valid_to"),
            notes=data.get("notes"),
            customer_id=data.get("customer"),
            allow_any_owner=context.is_admin,
        ))
        return self._respond(sub_booking)

    def destroy(self, request, *args, **kwargs):  # type: ignore
        context = SessionContext.from_request(request)
        message_bus.handle_command(DeleteAssignmentCommand(
            sub_booking_id=int(kwargs["pk"]),
            owner_id=context.user_id,
            allow_any_owner=context.is_admin,
        ))
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["post"])
    def suspend(self, request, pk=None):  # type: ignore
        context = SessionContext.from_request(request)
        sub_booking = message_bus.handle_command(SuspendAssignmentCommand(
            sub_booking_id=int(pk),
            owner_id=context.user_id,
            allow_any_owner=context.is_admin,
        ))
        return self._respond(sub_booking)

    @action(detail=True, methods=["post"])
    def reinstate(self, request, pk=None):  # type: ignore
        context = SessionContext.from_request(request)
        sub_booking = message_bus.handle_command(ReinstateAssignmentCommand(
            sub_booking_id=int(pk),
            owner_id=context.user_id,
            allow_any_owner=context.is_admin,
        ))
        return self._respond(sub_booking)

    @action(detail=True, methods=["post"], url_path="record-usage")
    def record_usage(self, request, pk=None):  # type: ignore
        sub_booking = self.get_object()
        serializer = RecordUsageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        sub_booking = UsageTracker().record_usage(sub_booking.pk, serializer.validated_data["hours"])
        return self._respond(sub_booking)
