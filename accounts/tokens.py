"""Issue and verify the signed identity tokens handed out at login.

A token carries ``{id, email, role}`` plus ``iat``/``exp`` claims. Nothing is
stored server side: whoever presents a valid, unexpired token is trusted to be
that identity for the duration of one request.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from jose import JWTError, jwt

_LIFETIME_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$")
_LIFETIME_UNITS = {"": "seconds", "s": "seconds", "m": "minutes", "h": "hours", "d": "days"}


class InvalidToken(Exception):
    """Raised when a token is malformed, forged or expired."""


@dataclass(frozen=True)
class TokenIdentity:
    """The caller as asserted by a verified token."""

    id: str
    email: str
    role: str

    is_authenticated = True

    def as_claims(self) -> Dict[str, Any]:
        return {"id": self.id, "email": self.email, "role": self.role}


def parse_lifetime(value: Any) -> timedelta:
    """Turn ``3600``, ``"45m"``, ``"24h"`` or ``"7d"`` into a timedelta."""

    if isinstance(value, timedelta):
        return value
    match = _LIFETIME_RE.match(str(value))
    if match is None:
        raise ImproperlyConfigured(f"Invalid JWT_EXPIRE value: {value!r}")
    amount, unit = match.groups()
    return timedelta(**{_LIFETIME_UNITS[unit]: int(amount)})


def issue_token(user, expires_in: Optional[timedelta] = None) -> str:
    identity = TokenIdentity(id=str(user.pk), email=user.email, role=user.role)
    now = datetime.now(timezone.utc)
    lifetime = expires_in if expires_in is not None else parse_lifetime(settings.JWT_EXPIRE)
    claims = identity.as_claims()
    claims.update({"iat": now, "exp": now + lifetime})
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str) -> TokenIdentity:
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except JWTError as exc:
        raise InvalidToken(str(exc)) from exc

    try:
        return TokenIdentity(
            id=str(payload["id"]),
            email=str(payload["email"]),
            role=str(payload["role"]),
        )
    except KeyError as exc:
        raise InvalidToken(f"Token is missing the {exc.args[0]!r} claim") from exc
