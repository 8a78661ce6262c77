"""Account models for active members.

`User` is the long-lived profile that a verified signup graduates into. It
shares its primary key with the originating `signups.Signup` row, logs in by
email, and carries the refresh-token version counter. `PendingEmailChange`
holds at most one in-flight email change per user.
"""

import uuid

from common.models import OtpChallenge
from django.contrib.auth.models import AbstractBaseUser, BaseUserManager, PermissionsMixin
from django.core.validators import RegexValidator
from django.db import models
from django.utils import timezone

zid_validator = RegexValidator(r"^z[0-9]{7}$", message="Use the zID format (e.g., z1234567)")


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


class UserManager(BaseUserManager):
    use_in_migrations = True

    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError("Users must have an email address")
        user = self.model(email=normalize_email(email), **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        return self.create_user(email, password, **extra_fields)


class User(AbstractBaseUser, PermissionsMixin):
    """Active member account.

    Fields:
    - email: login email, unique at the database level (normalized).
    - zid: institutional identifier, unique among accounts.
    - token_version: stamped into every refresh token; bumping it revokes
      all refresh tokens issued before the bump.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    email = models.EmailField(unique=True)
    zid = models.CharField(max_length=8, unique=True, null=True, blank=True, validators=[zid_validator])
    full_name = models.CharField(max_length=200, blank=True)
    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False)
    token_version = models.PositiveIntegerField(default=1)
    date_joined = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    objects = UserManager()

    USERNAME_FIELD = "email"
    EMAIL_FIELD = "email"
    REQUIRED_FIELDS: list[str] = []

    class Meta:
        ordering = ["-date_joined"]

    def save(self, *args, **kwargs):
        """Normalize email before persisting so uniqueness checks are reliable."""
        if self.email:
            self.email = normalize_email(self.email)
        super().save(*args, **kwargs)

    def __str__(self) -> str:  # pragma: no cover
        return self.email


class PendingEmailChange(OtpChallenge):
    """An authenticated user's request to move their login to `new_email`.

    Creating a new request replaces any existing one for the same user.
    """

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name="pending_email_change")
    new_email = models.EmailField()

    class Meta:
        indexes = [
            models.Index(fields=["new_email"], name="users_pending_new_email_idx"),
        ]

    def save(self, *args, **kwargs):
        if self.new_email:
            self.new_email = normalize_email(self.new_email)
        super().save(*args, **kwargs)

    def __str__(self) -> str:  # pragma: no cover
        return f"PendingEmailChange<{self.user_id}> -> {self.new_email}"
