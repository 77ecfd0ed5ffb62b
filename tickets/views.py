"""API views for managing tickets."""
from __future__ import annotations

import logging
from typing import Dict

from django.conf import settings
from django.db.models import Count
from django.http import Http404
from rest_framework import status, viewsets
from rest_framework.decorators import action, api_view, authentication_classes, permission_classes
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response

from accounts.models import User
from accounts.permissions import HasRole

from . import policy
from .models import Ticket
from .serializers import (
    TicketAssignSerializer,
    TicketCreateSerializer,
    TicketSerializer,
    TicketUpdateSerializer,
)

logger = logging.getLogger(__name__)


class TicketViewSet(viewsets.GenericViewSet):
    queryset = Ticket.objects.select_related("created_by", "assigned_to")
    serializer_class = TicketSerializer
    query_filters = ("status", "priority", "category")

    def get_permissions(self):  # type: ignore[override]
        permissions = super().get_permissions()
        roles = policy.roles_for_action(self.action)
        if roles:
            permissions.append(HasRole(*roles)())
        return permissions

    def get_object(self) -> Ticket:  # type: ignore[override]
        try:
            return super().get_object()
        except Http404 as exc:
            raise NotFound("Ticket not found") from exc

    def _reload(self, ticket: Ticket) -> Ticket:
        return self.get_queryset().get(pk=ticket.pk)

    def list(self, request: Request, *args, **kwargs) -> Response:
        queryset = policy.scope_queryset(self.get_queryset(), request.user)
        for field in self.query_filters:
            value = request.query_params.get(field)
            if value:
                queryset = queryset.filter(**{field: value})

        tickets = self.get_serializer(queryset, many=True).data
        return Response({"success": True, "count": len(tickets), "tickets": tickets})

    def create(self, request: Request, *args, **kwargs) -> Response:
        serializer = TicketCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        ticket = serializer.save(created_by_id=request.user.id)
        logger.info("Ticket %s created by user %s", ticket.pk, request.user.id)

        data = self.get_serializer(self._reload(ticket)).data
        return Response({"success": True, "ticket": data}, status=status.HTTP_201_CREATED)

    def retrieve(self, request: Request, *args, **kwargs) -> Response:
        ticket = self.get_object()
        if not policy.can_view(ticket, request.user):
            raise PermissionDenied("Not authorized to view this ticket")
        return Response({"success": True, "ticket": self.get_serializer(ticket).data})

    def update(self, request: Request, *args, **kwargs) -> Response:
        ticket = self.get_object()
        if not policy.can_edit(ticket, request.user):
            raise PermissionDenied("Not authorized to update this ticket")
        if not isinstance(request.data, dict):
            raise ValidationError("Expected a JSON object")

        changes = policy.editable_changes(request.user, request.data)
        serializer = TicketUpdateSerializer(ticket, data=changes, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()

        data = self.get_serializer(self._reload(ticket)).data
        return Response({"success": True, "ticket": data})

    def destroy(self, request: Request, *args, **kwargs) -> Response:
        ticket = self.get_object()
        ticket_id = self.kwargs[self.lookup_field]
        ticket.delete()
        logger.info("Ticket %s deleted by user %s", ticket_id, request.user.id)
        return Response({"success": True, "message": "Ticket deleted", "ticketId": ticket_id})

    @action(detail=True, methods=["put"], url_path="assign")
    def assign(self, request: Request, *args, **kwargs) -> Response:
        """Hand a ticket to a user. Role checks happen in get_permissions().

        Unknown assignee ids are rejected with 400. With
        HELPDESK_VALIDATE_ASSIGNEE off the id is stored as given, even when no
        such user exists, and the ticket renders ``assignedTo`` as null.
        """

        serializer = TicketAssignSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        assignee_id = serializer.validated_data["assignedTo"]

        ticket = self.get_object()
        if settings.HELPDESK_VALIDATE_ASSIGNEE and not User.objects.filter(pk=assignee_id).exists():
            raise ValidationError("assignedTo does not reference an existing user")

        ticket.assigned_to_id = assignee_id
        ticket.save(update_fields=["assigned_to", "updated_at"])
        logger.info("Ticket %s assigned to user %s by %s", ticket.pk, assignee_id, request.user.id)

        data = self.get_serializer(self._reload(ticket)).data
        return Response({"success": True, "ticket": data})

    @action(detail=False, methods=["get"], url_path="stats")
    def stats(self, request: Request, *args, **kwargs) -> Response:
        """Count tickets per status across the whole store."""

        totals: Dict[str, int] = {value: 0 for value, _ in Ticket.STATUS_CHOICES}
        for entry in Ticket.objects.values("status").order_by().annotate(total=Count("id")):
            status_value = entry.get("status")
            if status_value in totals:
                totals[status_value] = int(entry.get("total", 0))
        return Response({"success": True, "stats": totals})


@api_view(["GET"])
@authentication_classes([])
@permission_classes([AllowAny])
def health(request: Request) -> Response:  # type: ignore[override]
    """Readiness endpoint for orchestration tooling."""

    return Response({"status": "ok"})
