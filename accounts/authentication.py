"""Bearer token authentication for the REST API."""
from __future__ import annotations

import dataclasses
import logging
from typing import Optional, Tuple

from django.conf import settings
from rest_framework import exceptions
from rest_framework.authentication import BaseAuthentication, get_authorization_header
from rest_framework.request import Request

from .models import User
from .tokens import InvalidToken, TokenIdentity, verify_token

logger = logging.getLogger(__name__)

NO_TOKEN_MESSAGE = "Not authorized: no token provided"
INVALID_TOKEN_MESSAGE = "Not authorized: invalid token"


class BearerTokenAuthentication(BaseAuthentication):
    """Authenticate ``Authorization: Bearer <token>`` headers.

    A request without the header, or whose header uses another scheme, is left
    unauthenticated; the ``IsAuthenticated`` default permission then rejects it
    with 401. A ``Bearer`` header carrying a bad token fails immediately.
    """

    keyword = "Bearer"

    def authenticate(self, request: Request) -> Optional[Tuple[TokenIdentity, str]]:
        parts = get_authorization_header(request).split()
        if not parts or parts[0].decode("latin-1") != self.keyword:
            return None
        if len(parts) != 2:
            raise exceptions.AuthenticationFailed(INVALID_TOKEN_MESSAGE)

        try:
            token = parts[1].decode("utf-8")
            identity = verify_token(token)
        except (UnicodeError, InvalidToken) as exc:
            logger.warning("Rejected bearer token: %s", exc)
            raise exceptions.AuthenticationFailed(INVALID_TOKEN_MESSAGE) from exc

        if settings.HELPDESK_REVALIDATE_ROLE:
            identity = self._revalidate(identity)
        return identity, token

    def _revalidate(self, identity: TokenIdentity) -> TokenIdentity:
        try:
            role = User.objects.filter(pk=identity.id).values_list("role", flat=True).first()
        except ValueError:
            role = None
        if role is None:
            logger.warning("Token presented for missing user %s", identity.id)
            raise exceptions.AuthenticationFailed("Not authorized: user no longer exists")
        if role != identity.role:
            logger.info("Role of user %s changed from %s to %s", identity.id, identity.role, role)
            identity = dataclasses.replace(identity, role=role)
        return identity

    def authenticate_header(self, request: Request) -> str:
        return self.keyword
