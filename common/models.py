"""Abstract model bases shared by the signup and account apps."""

from django.db import models


class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class OtpChallenge(TimeStampedModel):
    """Stored state of one outstanding one-time code.

    Only the keyed hash of the code is persisted. `attempts` counts failed
    verifications since the last send; `locked_at` is set once the attempt
    ceiling is reached and is cleared only by sending a fresh code.
    `resend_count` counts sends on the calendar day of `last_sent_at`.
    """

    otp_hash = models.CharField(max_length=64)
    expires_at = models.DateTimeField()
    attempts = models.PositiveSmallIntegerField(default=0)
    locked_at = models.DateTimeField(null=True, blank=True)
    last_sent_at = models.DateTimeField()
    resend_count = models.PositiveSmallIntegerField(default=0)

    # Fields the OTP engine writes on every state change
    CHALLENGE_FIELDS = ["otp_hash", "expires_at", "attempts", "locked_at", "last_sent_at", "resend_count", "updated_at"]

    class Meta:
        abstract = True

    @property
    def is_locked(self) -> bool:
        return self.locked_at is not None
