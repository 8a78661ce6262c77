"""Credential checks for member login."""

from common.choices import AccountStatus
from common.exceptions import ServiceError
from django.contrib.auth.hashers import check_password
from rest_framework import status
from signups.models import Signup

from .models import User, normalize_email


def authenticate_member(email: str, password: str) -> User:
    """Return the active account for `email` if `password` matches.

    A matching signup that never reached ACTIVE yields ``ACCOUNT_NOT_VERIFIED``
    so the client can steer the user back to verification; everything else is
    reported as ``INVALID_CREDENTIALS`` without revealing which part was wrong.
    """
    email = normalize_email(email)
    user = User.objects.filter(email=email).first()
    if user is not None and user.is_active and user.check_password(password):
        return user

    if user is None:
        signup = (
            Signup.objects.filter(email=email)
            .exclude(status=AccountStatus.ACTIVE)
            .order_by("-created_at")
            .first()
        )
        if signup is not None and check_password(password, signup.password_hash):
            raise ServiceError(
                "ACCOUNT_NOT_VERIFIED",
                status_code=status.HTTP_403_FORBIDDEN,
                details={"status": signup.status},
            )
    raise ServiceError("INVALID_CREDENTIALS", status_code=status.HTTP_401_UNAUTHORIZED)
