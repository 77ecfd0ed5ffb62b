"""Database models for the ticket service."""
from __future__ import annotations

from django.db import models


class Ticket(models.Model):
    """A support ticket raised by a user."""

    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"

    STATUS_CHOICES = [
        (OPEN, "Open"),
        (IN_PROGRESS, "In Progress"),
        (RESOLVED, "Resolved"),
        (CLOSED, "Closed"),
    ]

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    PRIORITY_CHOICES = [
        (LOW, "Low"),
        (MEDIUM, "Medium"),
        (HIGH, "High"),
    ]

    BUG = "bug"
    FEATURE = "feature"
    SUPPORT = "support"
    QUESTION = "question"

    CATEGORY_CHOICES = [
        (BUG, "Bug"),
        (FEATURE, "Feature"),
        (SUPPORT, "Support"),
        (QUESTION, "Question"),
    ]

    title = models.CharField(max_length=255)
    description = models.TextField()
    status = models.CharField(max_length=32, choices=STATUS_CHOICES, default=OPEN)
    priority = models.CharField(max_length=16, choices=PRIORITY_CHOICES, default=MEDIUM)
    category = models.CharField(max_length=16, choices=CATEGORY_CHOICES, default=SUPPORT)
    created_by = models.ForeignKey(
        "accounts.User",
        on_delete=models.CASCADE,
        related_name="created_tickets",
        editable=False,
    )
    # No database constraint: the assignee may be stored unvalidated when
    # HELPDESK_VALIDATE_ASSIGNEE is off.
    assigned_to = models.ForeignKey(
        "accounts.User",
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        related_name="assigned_tickets",
        null=True,
        blank=True,
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self) -> str:
        return f"{self.title} ({self.status})"

    def save(self, *args, **kwargs) -> None:
        self.title = (self.title or "").strip()
        super().save(*args, **kwargs)
