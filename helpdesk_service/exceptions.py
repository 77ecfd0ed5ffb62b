"""Render every API failure as ``{"success": false, "error": "..."}``."""
from __future__ import annotations

import logging
from typing import Any, Iterator, Optional

from django.conf import settings
from django.http import JsonResponse
from rest_framework import status
from rest_framework.exceptions import NotAuthenticated
from rest_framework.response import Response
from rest_framework.views import exception_handler, set_rollback

from accounts.authentication import NO_TOKEN_MESSAGE

logger = logging.getLogger(__name__)


def _messages(detail: Any) -> Iterator[str]:
    if isinstance(detail, dict):
        for field, value in detail.items():
            for message in _messages(value):
                if field in {"non_field_errors", "detail"}:
                    yield message
                else:
                    yield f"{field}: {message}"
    elif isinstance(detail, (list, tuple)):
        for item in detail:
            yield from _messages(item)
    else:
        yield str(detail)


def envelope_exception_handler(exc: Exception, context: dict) -> Optional[Response]:
    response = exception_handler(exc, context)

    if response is None:
        view = context.get("view")
        logger.error("Unhandled error in %s", type(view).__name__ if view else "view", exc_info=exc)
        set_rollback()
        message = str(exc) if settings.DEBUG else "Internal server error"
        return Response(
            {"success": False, "error": message or "Internal server error"},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    if isinstance(exc, NotAuthenticated):
        error = NO_TOKEN_MESSAGE
    else:
        error = "; ".join(_messages(response.data)) or "Request failed"
    response.data = {"success": False, "error": error}
    return response


def not_found(request, exception=None) -> JsonResponse:
    """JSON replacement for Django's HTML 404 page."""

    return JsonResponse({"success": False, "error": "Route not found"}, status=404)


def server_error(request) -> JsonResponse:
    return JsonResponse({"success": False, "error": "Internal server error"}, status=500)
