"""Serializers for identity records."""
from __future__ import annotations

from typing import Any, Dict

from django.db import IntegrityError, transaction
from rest_framework import serializers

from .models import User


class UserSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ["id", "name", "email", "role"]


class UserSerializer(serializers.ModelSerializer):
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)

    class Meta:
        model = User
        fields = ["id", "name", "email", "role", "createdAt", "updatedAt"]


class RegisterSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    email = serializers.EmailField()
    password = serializers.CharField(min_length=6, write_only=True, trim_whitespace=False)
    role = serializers.ChoiceField(choices=User.ROLE_CHOICES, required=False)

    def validate_email(self, value: str) -> str:
        email = User.normalize_email(value)
        if User.objects.filter(email=email).exists():
            raise serializers.ValidationError("Email already in use")
        return email

    def create(self, validated_data: Dict[str, Any]) -> User:
        try:
            with transaction.atomic():
                return User.objects.create_user(**validated_data)
        except IntegrityError as exc:
            raise serializers.ValidationError({"email": "Email already in use"}) from exc


class LoginSerializer(serializers.Serializer):
    email = serializers.CharField(required=False, allow_blank=True)
    password = serializers.CharField(required=False, allow_blank=True, trim_whitespace=False)

    def validate(self, attrs: Dict[str, Any]) -> Dict[str, Any]:
        if not attrs.get("email") or not attrs.get("password"):
            raise serializers.ValidationError("Email and password are required")
        return attrs
