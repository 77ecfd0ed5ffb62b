"""Database models for helpdesk identities."""
from __future__ import annotations

from django.contrib.auth.hashers import check_password, make_password
from django.db import models


class UserManager(models.Manager):
    def create_user(
        self,
        *,
        name: str,
        email: str,
        password: str,
        role: str | None = None,
    ) -> "User":
        user = self.model(name=name, email=email)
        if role:
            user.role = role
        user.set_password(password)
        user.save()
        return user

    def get_by_email(self, email: str) -> "User | None":
        return self.filter(email=User.normalize_email(email)).first()


class User(models.Model):
    """A person allowed to raise or work on tickets."""

    CONSULTANT = "consultant"
    MANAGER = "manager"
    DEV = "dev"

    ROLE_CHOICES = [
        (CONSULTANT, "Consultant"),
        (MANAGER, "Manager"),
        (DEV, "Developer"),
    ]

    name = models.CharField(max_length=255)
    email = models.EmailField(unique=True)
    # Salted hash; set through set_password() only.
    password = models.CharField(max_length=128)
    role = models.CharField(max_length=32, choices=ROLE_CHOICES, default=CONSULTANT)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = UserManager()

    class Meta:
        ordering = ["name", "email"]

    def __str__(self) -> str:
        return f"{self.name} <{self.email}>"

    @staticmethod
    def normalize_email(email: str) -> str:
        return (email or "").strip().lower()

    def set_password(self, raw_password: str) -> None:
        self.password = make_password(raw_password)

    def check_password(self, raw_password: str) -> bool:
        return check_password(raw_password, self.password)

    def save(self, *args, **kwargs) -> None:
        self.name = (self.name or "").strip()
        self.email = self.normalize_email(self.email)
        super().save(*args, **kwargs)
