"""User API views."""

from __future__ import annotations

from django.contrib.auth import get_user_model  # type: ignore
from django.db.models import Q  # type: ignore
from rest_framework import generics, permissions  # type: ignore
from rest_framework.response import Response  # type: ignore
from rest_framework.views import APIView  # type: ignore

from .serializers import CustomerSerializer, UserSerializer
from .session import IsCoordinator

User = get_user_model()


class MeView(APIView):
    """Profile of the current user."""

    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):  # type: ignore
        return Response(UserSerializer(request.user).data)


class CustomerDirectoryView(generics.ListAPIView):
    """Customer directory used by coordinators when assigning spots.

    Supports ``?search=`` over name and email.
    """

    serializer_class = CustomerSerializer
    permission_classes = [IsCoordinator]

    def get_queryset(self):  # type: ignore
        qs = User.objects.customers().order_by("email")
        term = (self.request.query_params.get("search") or "").strip()
        if term:
            qs = qs.filter(
                Q(email__icontains=term)
                | Q(username__icontains=term)
                | Q(first_name__icontains=term)
                | Q(last_name__icontains=term)
            )
        return qs
