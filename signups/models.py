"""Signup lifecycle models.

A `Signup` is one registration attempt. It starts in PENDING_VERIFICATION,
moves to ACTIVE once its email is verified (and a `users.User` with the same
id is created), or to EXPIRED when left unverified for too long. EXPIRED rows
are kept for audit until the purge job deletes them together with their
dependent `SignupOtp` and `ResumeToken` rows.
"""

import uuid

from common.choices import ACCOUNT_TRANSITIONS, AccountStatus
from common.models import OtpChallenge, TimeStampedModel
from django.db import models
from django.db.models import Q
from django.utils import timezone
from users.models import normalize_email, zid_validator


class InvalidTransition(Exception):
    """Raised when a status change is not in the transition table."""


class Signup(TimeStampedModel):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    full_name = models.CharField(max_length=200)
    email = models.EmailField()
    zid = models.CharField(max_length=8, validators=[zid_validator])
    password_hash = models.CharField(max_length=128)
    status = models.CharField(
        max_length=24, choices=AccountStatus.choices, default=AccountStatus.PENDING_VERIFICATION
    )
    email_verified_at = models.DateTimeField(null=True, blank=True)
    resume_token_hash = models.CharField(max_length=64, null=True, blank=True)
    resume_token_expires_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["email"],
                condition=Q(status=AccountStatus.PENDING_VERIFICATION),
                name="uniq_pending_signup_email",
            ),
            models.UniqueConstraint(
                fields=["zid"],
                condition=Q(status=AccountStatus.PENDING_VERIFICATION),
                name="uniq_pending_signup_zid",
            ),
        ]
        indexes = [
            models.Index(fields=["status", "created_at"], name="signup_status_created_idx"),
            models.Index(fields=["status", "updated_at"], name="signup_status_updated_idx"),
        ]

    def save(self, *args, **kwargs):
        if self.email:
            self.email = normalize_email(self.email)
        if self.zid:
            self.zid = self.zid.strip().lower()
        super().save(*args, **kwargs)

    @property
    def is_pending(self) -> bool:
        return self.status == AccountStatus.PENDING_VERIFICATION

    def transition_to(self, new_status: str, *, now=None) -> None:
        """Move to `new_status` and clear the fields that state no longer needs.

        Does not save. Raises `InvalidTransition` for moves outside the
        transition table.
        """
        if (self.status, new_status) not in ACCOUNT_TRANSITIONS:
            raise InvalidTransition(f"{self.status} -> {new_status}")
        now = now or timezone.now()
        self.status = new_status
        self.resume_token_hash = None
        self.resume_token_expires_at = None
        if new_status == AccountStatus.ACTIVE:
            self.email_verified_at = now
        else:
            self.email_verified_at = None

    def __str__(self) -> str:  # pragma: no cover
        return f"Signup<{self.email}:{self.status}>"


class SignupOtp(OtpChallenge):
    """Email verification challenge of a pending signup."""

    signup = models.OneToOneField(Signup, on_delete=models.CASCADE, related_name="otp")

    def __str__(self) -> str:  # pragma: no cover
        return f"SignupOtp<{self.signup_id}>"


class ResumeToken(models.Model):
    """One issued resume token; only its sha256 digest is stored."""

    signup = models.ForeignKey(Signup, on_delete=models.CASCADE, related_name="resume_tokens")
    token_hash = models.CharField(max_length=64, unique=True)
    expires_at = models.DateTimeField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [models.Index(fields=["expires_at"], name="resume_token_expires_idx")]

    def __str__(self) -> str:  # pragma: no cover
        return f"ResumeToken<{self.signup_id}>"
