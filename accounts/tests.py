"""Tests for registration, login and bearer token authentication."""
from __future__ import annotations

from datetime import timedelta

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.test import SimpleTestCase, TestCase
from django.urls import reverse
from jose import jwt
from rest_framework.test import APIClient, APIRequestFactory

from .models import User
from .permissions import HasRole
from .tokens import InvalidToken, TokenIdentity, issue_token, parse_lifetime, verify_token


class RegisterApiTests(TestCase):
    def setUp(self) -> None:
        self.client = APIClient()

    def test_register_returns_token_and_user(self) -> None:
        payload = {
            "name": "Alice",
            "email": "a@x.com",
            "password": "secret1",
            "role": "consultant",
        }
        response = self.client.post(reverse("auth-register"), payload, format="json")
        self.assertEqual(response.status_code, 201)
        self.assertTrue(response.data["success"])
        self.assertIn("token", response.data)
        self.assertEqual(response.data["user"]["email"], "a@x.com")
        self.assertEqual(response.data["user"]["role"], "consultant")
        self.assertNotIn("password", response.data["user"])

        user = User.objects.get(email="a@x.com")
        self.assertNotEqual(user.password, "secret1")
        self.assertTrue(user.check_password("secret1"))

    def test_register_defaults_role_and_lowercases_email(self) -> None:
        payload = {"name": "  Bob ", "email": "Bob@Example.COM", "password": "secret1"}
        response = self.client.post(reverse("auth-register"), payload, format="json")
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["user"]["email"], "bob@example.com")
        self.assertEqual(response.data["user"]["role"], User.CONSULTANT)
        self.assertEqual(response.data["user"]["name"], "Bob")

    def test_duplicate_email_is_rejected_without_token(self) -> None:
        User.objects.create_user(name="Alice", email="a@x.com", password="secret1")
        payload = {"name": "Other", "email": "A@x.com", "password": "secret2"}

        response = self.client.post(reverse("auth-register"), payload, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.data["success"])
        self.assertIn("Email already in use", response.data["error"])
        self.assertNotIn("token", response.data)
        self.assertEqual(User.objects.count(), 1)

    def test_register_validates_input(self) -> None:
        response = self.client.post(
            reverse("auth-register"),
            {"name": "Carl", "email": "c@x.com", "password": "123", "role": "admin"},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("password", response.data["error"])
        self.assertIn("role", response.data["error"])
        self.assertFalse(User.objects.exists())


class LoginApiTests(TestCase):
    def setUp(self) -> None:
        self.client = APIClient()
        self.user = User.objects.create_user(
            name="Alice", email="a@x.com", password="secret1", role=User.CONSULTANT
        )

    def test_login_token_decodes_to_stored_identity(self) -> None:
        response = self.client.post(
            reverse("auth-login"), {"email": "a@x.com", "password": "secret1"}, format="json"
        )
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data["success"])

        identity = verify_token(response.data["token"])
        self.assertEqual(identity.id, str(self.user.pk))
        self.assertEqual(identity.email, "a@x.com")
        self.assertEqual(identity.role, "consultant")
        self.assertEqual(response.data["user"]["id"], self.user.pk)

    def test_login_email_is_case_insensitive(self) -> None:
        response = self.client.post(
            reverse("auth-login"), {"email": "A@X.COM", "password": "secret1"}, format="json"
        )
        self.assertEqual(response.status_code, 200)

    def test_wrong_password_is_unauthorized(self) -> None:
        response = self.client.post(
            reverse("auth-login"), {"email": "a@x.com", "password": "nope"}, format="json"
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data, {"success": False, "error": "Invalid credentials"})

    def test_unknown_email_is_unauthorized(self) -> None:
        response = self.client.post(
            reverse("auth-login"), {"email": "ghost@x.com", "password": "secret1"}, format="json"
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data["error"], "Invalid credentials")

    def test_missing_credentials_are_invalid_input(self) -> None:
        response = self.client.post(reverse("auth-login"), {"email": "a@x.com"}, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["error"], "Email and password are required")


class MeApiTests(TestCase):
    def setUp(self) -> None:
        self.client = APIClient()
        self.user = User.objects.create_user(
            name="Maya", email="maya@x.com", password="secret1", role=User.MANAGER
        )

    def test_me_returns_current_user(self) -> None:
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {issue_token(self.user)}")
        response = self.client.get(reverse("auth-me"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["user"]["id"], self.user.pk)
        self.assertEqual(response.data["user"]["role"], User.MANAGER)
        self.assertNotIn("password", response.data["user"])

    def test_missing_token_is_unauthenticated(self) -> None:
        response = self.client.get(reverse("auth-me"))
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data["error"], "Not authorized: no token provided")
        self.assertEqual(response["WWW-Authenticate"], "Bearer")

    def test_header_without_bearer_prefix_is_rejected(self) -> None:
        self.client.credentials(HTTP_AUTHORIZATION=f"Token {issue_token(self.user)}")
        response = self.client.get(reverse("auth-me"))
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data["error"], "Not authorized: no token provided")

    def test_malformed_token_is_rejected(self) -> None:
        self.client.credentials(HTTP_AUTHORIZATION="Bearer not-a-jwt")
        response = self.client.get(reverse("auth-me"))
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data["error"], "Not authorized: invalid token")

    def test_expired_token_is_rejected(self) -> None:
        token = issue_token(self.user, expires_in=timedelta(seconds=-30))
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
        response = self.client.get(reverse("auth-me"))
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data["error"], "Not authorized: invalid token")

    def test_token_signed_with_other_key_is_rejected(self) -> None:
        forged = jwt.encode(
            {"id": str(self.user.pk), "email": self.user.email, "role": "manager"},
            "someone-elses-secret",
            algorithm="HS256",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {forged}")
        response = self.client.get(reverse("auth-me"))
        self.assertEqual(response.status_code, 401)


class TokenTests(TestCase):
    def test_round_trip_claims(self) -> None:
        user = User.objects.create_user(
            name="Dee", email="dee@x.com", password="secret1", role=User.DEV
        )
        identity = verify_token(issue_token(user))
        self.assertEqual(identity, TokenIdentity(id=str(user.pk), email="dee@x.com", role="dev"))
        self.assertTrue(identity.is_authenticated)

    def test_missing_claim_is_invalid(self) -> None:
        token = jwt.encode({"id": "1", "email": "x@x.com"}, settings.JWT_SECRET, algorithm="HS256")
        with self.assertRaises(InvalidToken):
            verify_token(token)


class ParseLifetimeTests(SimpleTestCase):
    def test_units(self) -> None:
        self.assertEqual(parse_lifetime("7d"), timedelta(days=7))
        self.assertEqual(parse_lifetime("24h"), timedelta(hours=24))
        self.assertEqual(parse_lifetime("30m"), timedelta(minutes=30))
        self.assertEqual(parse_lifetime("45s"), timedelta(seconds=45))
        self.assertEqual(parse_lifetime(3600), timedelta(hours=1))

    def test_garbage_is_a_configuration_error(self) -> None:
        with self.assertRaises(ImproperlyConfigured):
            parse_lifetime("one week")


class HasRoleTests(SimpleTestCase):
    def setUp(self) -> None:
        self.request = APIRequestFactory().get("/")

    def test_allows_listed_role(self) -> None:
        self.request.user = TokenIdentity(id="1", email="m@x.com", role="manager")
        permission = HasRole("manager")()
        self.assertTrue(permission.has_permission(self.request, view=None))

    def test_denies_other_roles_and_reports_the_role(self) -> None:
        self.request.user = TokenIdentity(id="2", email="c@x.com", role="consultant")
        permission = HasRole("manager", "dev")()
        self.assertFalse(permission.has_permission(self.request, view=None))
        self.assertEqual(permission.message, "Role consultant is not authorized to access this route")
