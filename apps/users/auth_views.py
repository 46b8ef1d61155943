"""Views for authentication flows (login, token refresh, logout)."""

from __future__ import annotations

import logging

from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .auth_serializers import LoginSerializer, LogoutSerializer
from .serializers import UserSerializer
from .session import SessionContext, close_session, open_session

logger = logging.getLogger(__name__)


class LoginView(APIView):
    permission_classes = [AllowAny]

    def post(self, request):  # type: ignore
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.validated_data["user"]
        context, tokens = open_session(user)
        logger.info(f"Session opened for user {context.user_id} ({context.role})")
        data = {
            "user": UserSerializer(user).data,
            "tokens": tokens,
        }
        return Response(data, status=status.HTTP_200_OK)


class LogoutView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):  # type: ignore
        serializer = LogoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        context = SessionContext.from_request(request)
        close_session(serializer.validated_data["refresh"])
        logger.info(f"Session closed for user {context.user_id}")
        return Response(status=status.HTTP_205_RESET_CONTENT)
