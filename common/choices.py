"""Shared enumerations and choices used across apps."""

from django.db import models


class AccountStatus(models.TextChoices):
    """Lifecycle statuses for signup records.

    Purge is a deletion, not a status.
    """

    PENDING_VERIFICATION = "PENDING_VERIFICATION", "Pending verification"
    ACTIVE = "ACTIVE", "Active"
    EXPIRED = "EXPIRED", "Expired"


# Allowed (from, to) status pairs; anything else is rejected.
ACCOUNT_TRANSITIONS = frozenset(
    {
        (AccountStatus.PENDING_VERIFICATION, AccountStatus.ACTIVE),
        (AccountStatus.PENDING_VERIFICATION, AccountStatus.EXPIRED),
    }
)


class OtpOutcome(models.TextChoices):
    """Result of checking a supplied one-time code against a challenge."""

    OK = "OK", "OK"
    EXPIRED = "EXPIRED", "Expired"
    INVALID = "INVALID", "Invalid"
    LOCKED = "LOCKED", "Locked"


class ResendOutcome(models.TextChoices):
    """Result of asking for a fresh one-time code."""

    OK = "OK", "OK"
    COOLDOWN = "COOLDOWN", "Cooldown"
    RESEND_LIMIT = "RESEND_LIMIT", "Resend limit"


class LogoutOutcome(models.TextChoices):
    """Result of a logout attempt with a refresh token."""

    LOGGED_OUT = "LOGGED_OUT", "Logged out"
    ALREADY_INVALIDATED = "ALREADY_INVALIDATED", "Already invalidated"
    NOT_AUTHENTICATED = "NOT_AUTHENTICATED", "Not authenticated"
