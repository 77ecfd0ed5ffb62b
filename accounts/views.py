"""API views for registration, login and the current identity."""
from __future__ import annotations

import logging

from rest_framework import status
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.exceptions import APIException, NotFound
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response

from .models import User
from .serializers import LoginSerializer, RegisterSerializer, UserSerializer, UserSummarySerializer
from .tokens import issue_token

logger = logging.getLogger(__name__)


class InvalidCredentials(APIException):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Invalid credentials"
    default_code = "invalid_credentials"


@api_view(["POST"])
@authentication_classes([])
@permission_classes([AllowAny])
def register(request: Request) -> Response:
    serializer = RegisterSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    user = serializer.save()
    logger.info("Registered user %s with role %s", user.pk, user.role)

    return Response(
        {
            "success": True,
            "token": issue_token(user),
            "user": UserSummarySerializer(user).data,
        },
        status=status.HTTP_201_CREATED,
    )


@api_view(["POST"])
@authentication_classes([])
@permission_classes([AllowAny])
def login(request: Request) -> Response:
    serializer = LoginSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    credentials = serializer.validated_data

    user = User.objects.get_by_email(credentials["email"])
    if user is None or not user.check_password(credentials["password"]):
        logger.warning("Failed login for %s", credentials["email"])
        raise InvalidCredentials()

    logger.info("User %s logged in", user.pk)
    return Response(
        {
            "success": True,
            "token": issue_token(user),
            "user": UserSummarySerializer(user).data,
        }
    )


@api_view(["GET"])
def me(request: Request) -> Response:
    """Return the stored record behind the caller's token."""

    try:
        user = User.objects.filter(pk=request.user.id).first()
    except ValueError:
        user = None
    if user is None:
        raise NotFound("User not found")
    return Response({"success": True, "user": UserSerializer(user).data})
