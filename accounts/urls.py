"""Route registration for authentication endpoints."""
from __future__ import annotations

from django.urls import path

from .views import login, me, register

urlpatterns = [
    path("auth/register", register, name="auth-register"),
    path("auth/login", login, name="auth-login"),
    path("auth/me", me, name="auth-me"),
]
