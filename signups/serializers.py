"""Request serializers for the signup endpoints.

Shape checks run here, before any service call touches the database.
"""

from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import serializers
from users.models import User, normalize_email
from users.serializers import OtpCodeField

ZID_PATTERN = r"^z[0-9]{7}$"


class RegisterSerializer(serializers.Serializer):
    """Registration input.

    Enforces Django's password validators and that `confirmPassword`
    matches `password`.
    """

    fullName = serializers.CharField(max_length=200)
    zid = serializers.RegexField(
        ZID_PATTERN, error_messages={"invalid": "Use the zID format (e.g., z1234567)"}
    )
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=8, trim_whitespace=False)
    confirmPassword = serializers.CharField(write_only=True, trim_whitespace=False)

    def to_internal_value(self, data):
        if hasattr(data, "get") and isinstance(data.get("zid"), str):
            data = data.copy()
            data["zid"] = data["zid"].strip().lower()
        return super().to_internal_value(data)

    def validate_email(self, value: str) -> str:
        return normalize_email(value)

    def validate(self, attrs):
        if attrs["password"] != attrs["confirmPassword"]:
            raise serializers.ValidationError({"confirmPassword": ["Passwords do not match"]})
        candidate = User(email=attrs["email"], full_name=attrs["fullName"])
        try:
            validate_password(attrs["password"], user=candidate)
        except DjangoValidationError as exc:
            raise serializers.ValidationError({"password": list(exc.messages)})
        return attrs


class ResumeTokenSerializer(serializers.Serializer):
    resumeToken = serializers.CharField()


class VerifyOtpSerializer(ResumeTokenSerializer):
    otp = OtpCodeField()


class PendingEmailSerializer(ResumeTokenSerializer):
    newEmail = serializers.EmailField()
