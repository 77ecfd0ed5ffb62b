"""Role based permissions."""
from __future__ import annotations

from typing import Type

from rest_framework.permissions import BasePermission


def HasRole(*roles: str) -> Type[BasePermission]:
    """Build a permission class admitting only callers whose role is in ``roles``.

    Usage: ``permission_classes = [IsAuthenticated, HasRole(User.MANAGER)]``
    """

    allowed = frozenset(roles)

    class _HasRole(BasePermission):
        def has_permission(self, request, view) -> bool:
            role = getattr(request.user, "role", None)
            if role in allowed:
                return True
            self.message = f"Role {role} is not authorized to access this route"
            return False

    _HasRole.__name__ = f"HasRole[{','.join(sorted(allowed))}]"
    return _HasRole
