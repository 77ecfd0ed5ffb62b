"""Serializers for ticket entities."""
from __future__ import annotations

from typing import Any, Dict, Optional

from rest_framework import serializers
from rest_framework.settings import api_settings

from accounts.models import User
from accounts.serializers import UserSummarySerializer

from .models import Ticket


class TicketSerializer(serializers.ModelSerializer):
    createdBy = UserSummarySerializer(source="created_by", read_only=True)
    assignedTo = serializers.SerializerMethodField()
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)

    class Meta:
        model = Ticket
        fields = [
            "id",
            "title",
            "description",
            "status",
            "priority",
            "category",
            "createdBy",
            "assignedTo",
            "createdAt",
            "updatedAt",
        ]

    def get_assignedTo(self, ticket: Ticket) -> Optional[Dict[str, Any]]:
        # A dangling reference renders as null.
        try:
            assignee = ticket.assigned_to
        except User.DoesNotExist:
            return None
        if assignee is None:
            return None
        return UserSummarySerializer(assignee).data


class TicketCreateSerializer(serializers.ModelSerializer):
    class Meta:
        model = Ticket
        fields = ["title", "description", "priority", "category"]


class TicketUpdateSerializer(serializers.ModelSerializer):
    class Meta:
        model = Ticket
        fields = ["title", "description", "status", "priority", "category"]


class TicketAssignSerializer(serializers.Serializer):
    assignedTo = serializers.IntegerField(min_value=1)

    def to_internal_value(self, data: Any) -> Dict[str, Any]:  # type: ignore[override]
        """Treat blank values the same as a missing assignee."""

        if isinstance(data, dict) and data.get("assignedTo") in ("", None):
            raise serializers.ValidationError(
                {api_settings.NON_FIELD_ERRORS_KEY: ["assignedTo is required"]}
            )
        return super().to_internal_value(data)
