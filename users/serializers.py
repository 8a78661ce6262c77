"""Request serializers for login and the email-change flow.

Field names are camelCase to match the JSON contract of the clients.
"""

import re

from common import otp
from rest_framework import serializers


class OtpCodeField(serializers.CharField):
    """Numeric code whose length follows the `OTP_LENGTH` setting."""

    def to_internal_value(self, data):
        value = super().to_internal_value(data)
        if not re.match(otp.code_pattern(), value):
            raise serializers.ValidationError(f"OTP must be {otp.code_length()} digits")
        return value


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, trim_whitespace=False)


class EmailChangeRequestSerializer(serializers.Serializer):
    """Target address plus the caller's current password for re-authentication."""

    newEmail = serializers.EmailField()
    currentPassword = serializers.CharField(write_only=True, min_length=8, trim_whitespace=False)

    def validate_newEmail(self, value: str) -> str:
        value = value.strip().lower()
        user = self.context.get("user")
        if user is not None and value == user.email:
            raise serializers.ValidationError("New email must be different from current email.")
        return value


class VerifyEmailChangeSerializer(serializers.Serializer):
    otp = OtpCodeField()
