"""One-time code engine shared by signup verification and email change.

Every function here operates on a concrete `OtpChallenge` row that the caller
has loaded with `select_for_update()` inside `transaction.atomic()`, so two
concurrent requests against the same challenge are serialized by the database
and attempt increments are never lost.

Plaintext codes leave this module only as return values meant for delivery;
they are never logged or persisted.
"""

import hashlib
import hmac
import secrets
from dataclasses import dataclass
from datetime import timedelta

from django.conf import settings
from django.utils import timezone

from .choices import OtpOutcome, ResendOutcome
from .models import OtpChallenge


@dataclass(frozen=True)
class VerifyResult:
    outcome: OtpOutcome
    attempts: int

    @property
    def ok(self) -> bool:
        return self.outcome == OtpOutcome.OK


@dataclass(frozen=True)
class ResendResult:
    outcome: ResendOutcome
    code: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome == ResendOutcome.OK


def ttl_seconds() -> int:
    return int(getattr(settings, "OTP_TTL_SECONDS", 600))


def code_length() -> int:
    return int(getattr(settings, "OTP_LENGTH", 6))


def code_pattern() -> str:
    return rf"^[0-9]{{{code_length()}}}$"


def generate_code() -> str:
    """Return a cryptographically random fixed-length numeric code."""
    return "".join(secrets.choice("0123456789") for _ in range(code_length()))


def hash_code(code: str) -> str:
    """Deterministic keyed digest of a code, suitable for storage and lookup."""
    key = settings.SECRET_KEY.encode()
    return hmac.new(key, code.encode(), hashlib.sha256).hexdigest()


def codes_match(code: str, digest: str) -> bool:
    """Compare a supplied code with a stored digest in constant time."""
    if not code or not digest:
        return False
    return hmac.compare_digest(hash_code(code), digest)


def prepare(challenge: OtpChallenge, *, now=None) -> str:
    """Fill a new or replaced challenge with a fresh code without saving it.

    Resets attempts and the lock. A challenge that already sent a code today
    keeps that day's count plus this send, so replacing it does not reset the
    daily resend cap. Returns the plaintext code for delivery.
    """
    now = now or timezone.now()
    resend_count = 0
    if challenge.last_sent_at is not None and timezone.localdate(challenge.last_sent_at) == timezone.localdate(now):
        resend_count = int(challenge.resend_count) + 1
    code = generate_code()
    challenge.otp_hash = hash_code(code)
    challenge.expires_at = now + timedelta(seconds=ttl_seconds())
    challenge.attempts = 0
    challenge.locked_at = None
    challenge.last_sent_at = now
    challenge.resend_count = resend_count
    return code


def issue(challenge: OtpChallenge, *, now=None) -> str:
    """Start a challenge over with a fresh code and persist it."""
    code = prepare(challenge, now=now)
    challenge.save()
    return code


def verify(challenge: OtpChallenge, code: str, *, now=None) -> VerifyResult:
    """Check `code` against the challenge and record a failed attempt.

    Order: locked, then expired, then hash comparison. A mismatch increments
    the attempt counter and locks the challenge once the ceiling is reached.
    On `OK` nothing is written; the caller consumes the challenge.
    """
    now = now or timezone.now()
    if challenge.locked_at is not None:
        return VerifyResult(OtpOutcome.LOCKED, challenge.attempts)
    if now >= challenge.expires_at:
        return VerifyResult(OtpOutcome.EXPIRED, challenge.attempts)
    if codes_match(code, challenge.otp_hash):
        return VerifyResult(OtpOutcome.OK, challenge.attempts)

    challenge.attempts = int(challenge.attempts) + 1
    max_attempts = int(getattr(settings, "OTP_MAX_ATTEMPTS", 5))
    if challenge.attempts >= max_attempts:
        challenge.locked_at = now
    challenge.save(update_fields=["attempts", "locked_at", "updated_at"])
    if challenge.locked_at is not None:
        return VerifyResult(OtpOutcome.LOCKED, challenge.attempts)
    return VerifyResult(OtpOutcome.INVALID, challenge.attempts)


def sends_today(challenge: OtpChallenge, *, now=None) -> int:
    """Resend count attributable to the current calendar day."""
    now = now or timezone.now()
    if challenge.last_sent_at is None:
        return 0
    if timezone.localdate(challenge.last_sent_at) != timezone.localdate(now):
        return 0
    return int(challenge.resend_count)


def resend(challenge: OtpChallenge, *, now=None) -> ResendResult:
    """Replace the code if the daily cap and the cooldown allow it.

    A fresh code resets attempts to zero, clears any lock, bumps the resend
    counter and restarts the expiry window.
    """
    now = now or timezone.now()
    cap = int(getattr(settings, "OTP_DAILY_RESEND_CAP", 5))
    cooldown = timedelta(seconds=int(getattr(settings, "OTP_RESEND_COOLDOWN_SECONDS", 60)))

    count_today = sends_today(challenge, now=now)
    if count_today >= cap:
        return ResendResult(ResendOutcome.RESEND_LIMIT)
    if challenge.last_sent_at is not None and now - challenge.last_sent_at < cooldown:
        return ResendResult(ResendOutcome.COOLDOWN)

    code = generate_code()
    challenge.otp_hash = hash_code(code)
    challenge.expires_at = now + timedelta(seconds=ttl_seconds())
    challenge.attempts = 0
    challenge.locked_at = None
    challenge.last_sent_at = now
    challenge.resend_count = count_today + 1
    challenge.save(update_fields=OtpChallenge.CHALLENGE_FIELDS)
    return ResendResult(ResendOutcome.OK, code)
