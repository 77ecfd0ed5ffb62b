"""Tests for the ticket API and its access policy."""
from __future__ import annotations

from datetime import timedelta

from django.test import SimpleTestCase, TestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework.test import APIClient

from accounts.models import User
from accounts.tokens import TokenIdentity, issue_token

from . import policy
from .models import Ticket


class TicketApiTestCase(TestCase):
    def setUp(self) -> None:
        self.client = APIClient()
        self.consultant = User.objects.create_user(
            name="Alice", email="alice@x.com", password="secret1", role=User.CONSULTANT
        )
        self.other_consultant = User.objects.create_user(
            name="Oscar", email="oscar@x.com", password="secret1", role=User.CONSULTANT
        )
        self.manager = User.objects.create_user(
            name="Maya", email="maya@x.com", password="secret1", role=User.MANAGER
        )
        self.dev = User.objects.create_user(
            name="Dan", email="dan@x.com", password="secret1", role=User.DEV
        )

    def login_as(self, user: User) -> None:
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {issue_token(user)}")

    def make_ticket(self, creator: User, **kwargs) -> Ticket:
        kwargs.setdefault("title", "Printer jam")
        kwargs.setdefault("description", "Paper stuck on floor 2")
        return Ticket.objects.create(created_by=creator, **kwargs)


class CreateTicketTests(TicketApiTestCase):
    def test_consultant_creates_open_ticket(self) -> None:
        self.login_as(self.consultant)
        response = self.client.post(
            reverse("ticket-list"), {"title": "Bug A", "description": "desc"}, format="json"
        )
        self.assertEqual(response.status_code, 201)
        ticket = response.data["ticket"]
        self.assertEqual(ticket["status"], Ticket.OPEN)
        self.assertEqual(ticket["priority"], Ticket.MEDIUM)
        self.assertEqual(ticket["category"], Ticket.SUPPORT)
        self.assertEqual(ticket["createdBy"]["id"], self.consultant.pk)
        self.assertIsNone(ticket["assignedTo"])

    def test_creator_cannot_be_spoofed(self) -> None:
        self.login_as(self.consultant)
        payload = {
            "title": "Bug B",
            "description": "desc",
            "createdBy": self.manager.pk,
            "status": Ticket.CLOSED,
            "assignedTo": self.dev.pk,
        }
        response = self.client.post(reverse("ticket-list"), payload, format="json")
        self.assertEqual(response.status_code, 201)

        ticket = Ticket.objects.get(pk=response.data["ticket"]["id"])
        self.assertEqual(ticket.created_by_id, self.consultant.pk)
        self.assertEqual(ticket.status, Ticket.OPEN)
        self.assertIsNone(ticket.assigned_to_id)

    def test_title_and_description_are_required(self) -> None:
        self.login_as(self.consultant)
        response = self.client.post(reverse("ticket-list"), {"priority": "high"}, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.data["success"])
        self.assertIn("title", response.data["error"])
        self.assertIn("description", response.data["error"])
        self.assertFalse(Ticket.objects.exists())

    def test_title_is_trimmed(self) -> None:
        self.login_as(self.consultant)
        response = self.client.post(
            reverse("ticket-list"),
            {"title": "  VPN down  ", "description": "desc", "category": "bug"},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["ticket"]["title"], "VPN down")
        self.assertEqual(response.data["ticket"]["category"], Ticket.BUG)

    def test_requires_authentication(self) -> None:
        response = self.client.post(
            reverse("ticket-list"), {"title": "x", "description": "y"}, format="json"
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data["error"], "Not authorized: no token provided")


class ListTicketTests(TicketApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.own = self.make_ticket(self.consultant, title="Mine", status=Ticket.OPEN)
        self.foreign = self.make_ticket(self.other_consultant, title="Theirs", status=Ticket.RESOLVED)
        self.managers = self.make_ticket(self.manager, title="Ops", priority=Ticket.HIGH)

    def test_consultant_sees_only_own_tickets(self) -> None:
        self.login_as(self.consultant)
        response = self.client.get(
            reverse("ticket-list"), {"createdBy": self.other_consultant.pk}
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["count"], 1)
        self.assertEqual(
            {ticket["createdBy"]["id"] for ticket in response.data["tickets"]},
            {self.consultant.pk},
        )

    def test_consultant_filters_stay_scoped(self) -> None:
        self.login_as(self.consultant)
        response = self.client.get(reverse("ticket-list"), {"status": Ticket.RESOLVED})
        self.assertEqual(response.data["count"], 0)

    def test_manager_and_dev_see_everything(self) -> None:
        for user in (self.manager, self.dev):
            self.login_as(user)
            response = self.client.get(reverse("ticket-list"))
            self.assertEqual(response.status_code, 200)
            self.assertEqual(response.data["count"], 3)

    def test_optional_filters(self) -> None:
        self.login_as(self.manager)
        response = self.client.get(reverse("ticket-list"), {"priority": Ticket.HIGH})
        self.assertEqual([t["title"] for t in response.data["tickets"]], ["Ops"])

        response = self.client.get(
            reverse("ticket-list"), {"status": Ticket.OPEN, "category": Ticket.SUPPORT}
        )
        self.assertEqual(response.data["count"], 2)

    def test_newest_first_with_resolved_references(self) -> None:
        now = timezone.now()
        Ticket.objects.filter(pk=self.own.pk).update(created_at=now - timedelta(days=2))
        Ticket.objects.filter(pk=self.foreign.pk).update(created_at=now)
        Ticket.objects.filter(pk=self.managers.pk).update(created_at=now - timedelta(days=1))

        self.login_as(self.dev)
        response = self.client.get(reverse("ticket-list"))
        self.assertEqual(
            [t["title"] for t in response.data["tickets"]], ["Theirs", "Ops", "Mine"]
        )
        self.assertEqual(
            response.data["tickets"][0]["createdBy"],
            {
                "id": self.other_consultant.pk,
                "name": "Oscar",
                "email": "oscar@x.com",
                "role": User.CONSULTANT,
            },
        )


class RetrieveTicketTests(TicketApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.ticket = self.make_ticket(self.consultant)

    def test_owner_can_read(self) -> None:
        self.login_as(self.consultant)
        response = self.client.get(reverse("ticket-detail", args=[self.ticket.pk]))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["ticket"]["id"], self.ticket.pk)

    def test_other_consultant_is_forbidden(self) -> None:
        self.login_as(self.other_consultant)
        response = self.client.get(reverse("ticket-detail", args=[self.ticket.pk]))
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.data["error"], "Not authorized to view this ticket")

    def test_manager_can_read_any(self) -> None:
        self.login_as(self.manager)
        response = self.client.get(reverse("ticket-detail", args=[self.ticket.pk]))
        self.assertEqual(response.status_code, 200)

    def test_missing_and_malformed_ids_are_not_found(self) -> None:
        self.login_as(self.manager)
        for ticket_id in (self.ticket.pk + 100, "not-an-id"):
            response = self.client.get(reverse("ticket-detail", args=[ticket_id]))
            self.assertEqual(response.status_code, 404)
            self.assertEqual(response.data, {"success": False, "error": "Ticket not found"})


class UpdateTicketTests(TicketApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.ticket = self.make_ticket(self.consultant, title="Old title")

    def test_consultant_cannot_update_foreign_ticket(self) -> None:
        self.login_as(self.other_consultant)
        response = self.client.put(
            reverse("ticket-detail", args=[self.ticket.pk]), {"title": "Hijacked"}, format="json"
        )
        self.assertEqual(response.status_code, 403)
        self.ticket.refresh_from_db()
        self.assertEqual(self.ticket.title, "Old title")

    def test_consultant_status_change_is_ignored(self) -> None:
        self.login_as(self.consultant)
        response = self.client.put(
            reverse("ticket-detail", args=[self.ticket.pk]),
            {"title": "New title", "description": "More detail", "status": Ticket.CLOSED},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.ticket.refresh_from_db()
        self.assertEqual(self.ticket.title, "New title")
        self.assertEqual(self.ticket.description, "More detail")
        self.assertEqual(self.ticket.status, Ticket.OPEN)

    def test_manager_changes_triage_fields(self) -> None:
        self.login_as(self.manager)
        response = self.client.put(
            reverse("ticket-detail", args=[self.ticket.pk]),
            {"status": Ticket.IN_PROGRESS, "priority": Ticket.HIGH, "category": Ticket.BUG},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["ticket"]["status"], Ticket.IN_PROGRESS)
        self.assertEqual(response.data["ticket"]["priority"], Ticket.HIGH)
        self.assertEqual(response.data["ticket"]["category"], Ticket.BUG)
        self.assertEqual(response.data["ticket"]["title"], "Old title")

    def test_update_never_touches_assignee_or_creator(self) -> None:
        self.login_as(self.dev)
        response = self.client.put(
            reverse("ticket-detail", args=[self.ticket.pk]),
            {"assignedTo": self.dev.pk, "createdBy": self.dev.pk, "priority": Ticket.LOW},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.ticket.refresh_from_db()
        self.assertIsNone(self.ticket.assigned_to_id)
        self.assertEqual(self.ticket.created_by_id, self.consultant.pk)
        self.assertEqual(self.ticket.priority, Ticket.LOW)

    def test_invalid_values_are_rejected(self) -> None:
        self.login_as(self.manager)
        response = self.client.put(
            reverse("ticket-detail", args=[self.ticket.pk]), {"status": "done"}, format="json"
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("status", response.data["error"])

    def test_repeated_update_is_idempotent(self) -> None:
        self.login_as(self.manager)
        url = reverse("ticket-detail", args=[self.ticket.pk])
        payload = {"title": "Same", "status": Ticket.RESOLVED}

        first = self.client.put(url, payload, format="json")
        second = self.client.put(url, payload, format="json")
        self.assertEqual(first.status_code, 200)
        self.assertEqual(second.status_code, 200)
        for key in ("title", "description", "status", "priority", "category"):
            self.assertEqual(first.data["ticket"][key], second.data["ticket"][key])

    def test_missing_ticket(self) -> None:
        self.login_as(self.manager)
        response = self.client.put(
            reverse("ticket-detail", args=[self.ticket.pk + 100]), {"title": "x"}, format="json"
        )
        self.assertEqual(response.status_code, 404)


class AssignTicketTests(TicketApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.ticket = self.make_ticket(self.consultant, title="Bug A")

    def test_manager_assigns_to_dev(self) -> None:
        self.login_as(self.manager)
        response = self.client.put(
            reverse("ticket-assign", args=[self.ticket.pk]),
            {"assignedTo": str(self.dev.pk)},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.data["ticket"]["assignedTo"],
            {"id": self.dev.pk, "name": "Dan", "email": "dan@x.com", "role": User.DEV},
        )

    def test_dev_may_assign(self) -> None:
        self.login_as(self.dev)
        response = self.client.put(
            reverse("ticket-assign", args=[self.ticket.pk]),
            {"assignedTo": self.manager.pk},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.ticket.refresh_from_db()
        self.assertEqual(self.ticket.assigned_to_id, self.manager.pk)

    def test_consultant_may_not_assign(self) -> None:
        self.login_as(self.consultant)
        response = self.client.put(
            reverse("ticket-assign", args=[self.ticket.pk]),
            {"assignedTo": self.dev.pk},
            format="json",
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(
            response.data["error"], "Role consultant is not authorized to access this route"
        )

    def test_assignee_is_required(self) -> None:
        self.login_as(self.manager)
        for body in ({}, {"assignedTo": ""}, {"assignedTo": None}):
            with self.subTest(body=body):
                response = self.client.put(
                    reverse("ticket-assign", args=[self.ticket.pk]), body, format="json"
                )
                self.assertEqual(response.status_code, 400)
                self.assertEqual(
                    response.data, {"success": False, "error": "assignedTo is required"}
                )
        self.ticket.refresh_from_db()
        self.assertIsNone(self.ticket.assigned_to_id)

    def test_missing_ticket(self) -> None:
        self.login_as(self.manager)
        response = self.client.put(
            reverse("ticket-assign", args=[self.ticket.pk + 100]),
            {"assignedTo": self.dev.pk},
            format="json",
        )
        self.assertEqual(response.status_code, 404)

    def test_unknown_assignee_is_rejected(self) -> None:
        self.login_as(self.manager)
        response = self.client.put(
            reverse("ticket-assign", args=[self.ticket.pk]), {"assignedTo": 9999}, format="json"
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["error"], "assignedTo does not reference an existing user")

    @override_settings(HELPDESK_VALIDATE_ASSIGNEE=False)
    def test_unknown_assignee_is_stored_when_validation_is_off(self) -> None:
        self.login_as(self.manager)
        response = self.client.put(
            reverse("ticket-assign", args=[self.ticket.pk]), {"assignedTo": 9999}, format="json"
        )
        self.assertEqual(response.status_code, 200)
        self.assertIsNone(response.data["ticket"]["assignedTo"])
        self.ticket.refresh_from_db()
        self.assertEqual(self.ticket.assigned_to_id, 9999)


class DeleteTicketTests(TicketApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.ticket = self.make_ticket(self.consultant)

    def test_consultant_and_dev_may_not_delete(self) -> None:
        for user in (self.consultant, self.dev):
            self.login_as(user)
            response = self.client.delete(reverse("ticket-detail", args=[self.ticket.pk]))
            self.assertEqual(response.status_code, 403)
        self.assertTrue(Ticket.objects.filter(pk=self.ticket.pk).exists())

    def test_manager_deletes(self) -> None:
        self.login_as(self.manager)
        response = self.client.delete(reverse("ticket-detail", args=[self.ticket.pk]))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.data,
            {"success": True, "message": "Ticket deleted", "ticketId": str(self.ticket.pk)},
        )
        self.assertFalse(Ticket.objects.exists())

    def test_missing_ticket(self) -> None:
        self.login_as(self.manager)
        response = self.client.delete(reverse("ticket-detail", args=[self.ticket.pk + 100]))
        self.assertEqual(response.status_code, 404)

    @override_settings(HELPDESK_REVALIDATE_ROLE=True)
    def test_demoted_manager_token_loses_delete_when_revalidating(self) -> None:
        self.login_as(self.manager)
        User.objects.filter(pk=self.manager.pk).update(role=User.CONSULTANT)

        response = self.client.delete(reverse("ticket-detail", args=[self.ticket.pk]))
        self.assertEqual(response.status_code, 403)
        self.assertTrue(Ticket.objects.filter(pk=self.ticket.pk).exists())

    def test_demoted_manager_token_keeps_role_by_default(self) -> None:
        self.login_as(self.manager)
        User.objects.filter(pk=self.manager.pk).update(role=User.CONSULTANT)

        response = self.client.delete(reverse("ticket-detail", args=[self.ticket.pk]))
        self.assertEqual(response.status_code, 200)


class TicketStatsTests(TicketApiTestCase):
    def test_counts_are_zero_filled(self) -> None:
        self.make_ticket(self.consultant, status=Ticket.OPEN)
        self.make_ticket(self.manager, status=Ticket.OPEN)
        self.make_ticket(self.dev, status=Ticket.RESOLVED)

        self.login_as(self.manager)
        response = self.client.get(reverse("ticket-stats"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.data["stats"],
            {"open": 2, "in_progress": 0, "resolved": 1, "closed": 0},
        )

    def test_consultant_stats_are_not_scoped(self) -> None:
        # Unlike the list endpoint, stats count every ticket in the store.
        self.make_ticket(self.other_consultant, status=Ticket.CLOSED)
        self.make_ticket(self.manager, status=Ticket.IN_PROGRESS)

        self.login_as(self.consultant)
        response = self.client.get(reverse("ticket-stats"))
        self.assertEqual(
            response.data["stats"],
            {"open": 0, "in_progress": 1, "resolved": 0, "closed": 1},
        )

    def test_stats_route_is_not_shadowed_by_detail(self) -> None:
        self.login_as(self.consultant)
        response = self.client.get("/api/tickets/stats")
        self.assertEqual(response.status_code, 200)
        self.assertIn("stats", response.data)


class ServiceEndpointTests(TestCase):
    def test_health(self) -> None:
        response = APIClient().get(reverse("ticket-health"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok"})

    def test_unknown_route_uses_json_envelope(self) -> None:
        response = APIClient().get("/api/nowhere")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["success"], False)


class TicketPolicyTests(SimpleTestCase):
    consultant = TokenIdentity(id="7", email="c@x.com", role=User.CONSULTANT)
    manager = TokenIdentity(id="8", email="m@x.com", role=User.MANAGER)
    dev = TokenIdentity(id="9", email="d@x.com", role=User.DEV)

    def test_ownership_compares_canonical_ids(self) -> None:
        ticket = Ticket(created_by_id=7)
        self.assertTrue(policy.is_owner(ticket, self.consultant))
        self.assertFalse(policy.is_owner(Ticket(created_by_id=70), self.consultant))

    def test_visibility(self) -> None:
        foreign = Ticket(created_by_id=1)
        self.assertFalse(policy.can_view(foreign, self.consultant))
        self.assertTrue(policy.can_view(foreign, self.manager))
        self.assertTrue(policy.can_edit(foreign, self.dev))

    def test_editable_changes_follow_role(self) -> None:
        body = {"title": "t", "status": "closed", "assignedTo": 3, "createdBy": 1}
        self.assertEqual(policy.editable_changes(self.consultant, body), {"title": "t"})
        self.assertEqual(
            policy.editable_changes(self.manager, body), {"title": "t", "status": "closed"}
        )

    def test_unknown_role_gets_most_restricted_policy(self) -> None:
        self.assertEqual(policy.policy_for("auditor"), policy.POLICIES[User.CONSULTANT])

    def test_restricted_actions(self) -> None:
        self.assertEqual(policy.roles_for_action("destroy"), frozenset({User.MANAGER}))
        self.assertEqual(policy.roles_for_action("assign"), frozenset({User.MANAGER, User.DEV}))
        self.assertIsNone(policy.roles_for_action("list"))
