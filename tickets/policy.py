"""Who may see and change which tickets.

Every role-dependent rule of the ticket API lives in the two tables below so it
can be read, and tested, in one place. Views only ask questions of this module.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Mapping, Optional

from django.db.models import QuerySet

from accounts.models import User

from .models import Ticket

BASIC_FIELDS: FrozenSet[str] = frozenset({"title", "description"})
TRIAGE_FIELDS: FrozenSet[str] = BASIC_FIELDS | {"status", "priority", "category"}


@dataclass(frozen=True)
class TicketPolicy:
    own_tickets_only: bool
    editable_fields: FrozenSet[str]


POLICIES: Dict[str, TicketPolicy] = {
    User.CONSULTANT: TicketPolicy(own_tickets_only=True, editable_fields=BASIC_FIELDS),
    User.MANAGER: TicketPolicy(own_tickets_only=False, editable_fields=TRIAGE_FIELDS),
    User.DEV: TicketPolicy(own_tickets_only=False, editable_fields=TRIAGE_FIELDS),
}

# Unknown roles are treated like the most restricted one.
DEFAULT_POLICY = POLICIES[User.CONSULTANT]

# Operations that are closed to some roles altogether; enforced by the router
# level permission before any ticket is loaded.
ACTION_ROLES: Dict[str, FrozenSet[str]] = {
    "assign": frozenset({User.MANAGER, User.DEV}),
    "destroy": frozenset({User.MANAGER}),
}


def policy_for(role: Optional[str]) -> TicketPolicy:
    return POLICIES.get(role or "", DEFAULT_POLICY)


def roles_for_action(action: Optional[str]) -> Optional[FrozenSet[str]]:
    return ACTION_ROLES.get(action or "")


def is_owner(ticket: Ticket, identity) -> bool:
    # Both sides go through str() so int and str ids compare equal.
    return str(ticket.created_by_id) == str(identity.id)


def can_view(ticket: Ticket, identity) -> bool:
    return not policy_for(identity.role).own_tickets_only or is_owner(ticket, identity)


def can_edit(ticket: Ticket, identity) -> bool:
    return can_view(ticket, identity)


def scope_queryset(queryset: QuerySet, identity) -> QuerySet:
    """Restrict ``queryset`` to the tickets ``identity`` is allowed to list."""

    if policy_for(identity.role).own_tickets_only:
        return queryset.filter(created_by_id=identity.id)
    return queryset


def editable_changes(identity, data: Mapping[str, Any]) -> Dict[str, Any]:
    """Keep only the fields of ``data`` the caller's role may change."""

    allowed = policy_for(identity.role).editable_fields
    return {field: value for field, value in data.items() if field in allowed}
