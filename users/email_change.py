"""Authenticated email change: request, verify, resend, cancel.

State per user: no row (NONE), a `PendingEmailChange` row (REQUESTED), and
the row's removal on verification, cancellation, or replacement. A locked
challenge stays locked until a resend issues a fresh code.

Failed verification attempts are committed before the corresponding
`ServiceError` is raised, so the attempt counter survives the error response.
"""

import logging
from dataclasses import dataclass

from common import otp
from common.choices import OtpOutcome, ResendOutcome
from common.emails import EMAIL_CHANGE_SUBJECT, send_otp_email
from common.exceptions import ServiceError
from common.masking import mask_email
from django.db import IntegrityError, transaction
from rest_framework import status
from signups.models import Signup

from . import sessions
from .models import PendingEmailChange, User, normalize_email

logger = logging.getLogger("ignite.email_change")


@dataclass(frozen=True)
class ChangeRequested:
    email_masked: str
    expires_in_seconds: int


@dataclass(frozen=True)
class ChangeVerified:
    user: User
    new_email: str
    access_token: str
    refresh_token: str


def _email_taken(email: str, *, exclude_user_id=None) -> bool:
    qs = User.objects.filter(email=email, is_active=True)
    if exclude_user_id is not None:
        qs = qs.exclude(pk=exclude_user_id)
    return qs.exists()


def _email_exists() -> ServiceError:
    return ServiceError("EMAIL_EXISTS", status_code=status.HTTP_409_CONFLICT, details="Given email is already used")


def _no_pending() -> ServiceError:
    return ServiceError("NO_PENDING_EMAIL_CHANGE", status_code=status.HTTP_404_NOT_FOUND)


def request_email_change(*, user: User, new_email: str, current_password: str) -> ChangeRequested:
    """Start (or restart) an email change for `user` and send a code to `new_email`."""
    new_email = normalize_email(new_email)
    if not user.check_password(current_password):
        logger.info("email_change.bad_password", extra={"event": "email_change.bad_password", "user_id": str(user.pk)})
        raise ServiceError("VALIDATION_ERROR", details="Incorrect password")
    if _email_taken(new_email):
        raise _email_exists()

    with transaction.atomic():
        # Serialize concurrent requests for the same user on the owner row
        User.objects.select_for_update().filter(pk=user.pk).exists()
        pending = PendingEmailChange.objects.filter(user=user).first() or PendingEmailChange(user=user)
        pending.new_email = new_email
        code = otp.issue(pending)

    send_otp_email(to=new_email, full_name=user.full_name, code=code, subject=EMAIL_CHANGE_SUBJECT)
    logger.info("email_change.requested", extra={"event": "email_change.requested", "user_id": str(user.pk)})
    return ChangeRequested(email_masked=mask_email(new_email), expires_in_seconds=otp.ttl_seconds())


def _apply_new_email(user: User, new_email: str) -> bool:
    """Move the account to `new_email` and revoke its sessions; False on conflict."""
    if _email_taken(new_email, exclude_user_id=user.pk):
        return False
    try:
        with transaction.atomic():
            User.objects.filter(pk=user.pk).update(email=new_email)
            Signup.objects.filter(pk=user.pk).update(email=new_email)
            sessions.invalidate(user.pk)
    except IntegrityError:
        return False
    return True


def verify_email_change(*, user: User, code: str) -> ChangeVerified:
    """Apply the pending email change if `code` matches.

    On success the user's email (and their signup record's) is replaced, the
    pending row is removed, every existing refresh token is revoked, and a new
    session is issued for the caller.
    """
    applied = False
    with transaction.atomic():
        pending = PendingEmailChange.objects.select_for_update().filter(user=user).first()
        if pending is None:
            raise _no_pending()
        result = otp.verify(pending, code)
        if result.ok:
            applied = _apply_new_email(user, pending.new_email)
            pending.delete()

    if result.outcome == OtpOutcome.LOCKED:
        logger.info("email_change.locked", extra={"event": "email_change.locked", "user_id": str(user.pk)})
        raise ServiceError("OTP_LOCKED", status_code=status.HTTP_423_LOCKED)
    if result.outcome == OtpOutcome.EXPIRED:
        raise ServiceError("OTP_EXPIRED")
    if result.outcome == OtpOutcome.INVALID:
        raise ServiceError("OTP_INVALID", details={"otp_attempts": result.attempts})
    if not applied:
        raise _email_exists()

    user.refresh_from_db()
    logger.info("email_change.completed", extra={"event": "email_change.completed", "user_id": str(user.pk)})
    return ChangeVerified(
        user=user,
        new_email=user.email,
        access_token=sessions.issue_access_token(user),
        refresh_token=sessions.issue_refresh_token(user),
    )


def resend_email_change_otp(*, user: User) -> int:
    """Send a fresh code for the pending change; returns its lifetime in seconds."""
    with transaction.atomic():
        pending = PendingEmailChange.objects.select_for_update().filter(user=user).first()
        if pending is None:
            raise _no_pending()
        result = otp.resend(pending)

    if result.outcome == ResendOutcome.COOLDOWN:
        raise ServiceError("OTP_COOLDOWN", status_code=status.HTTP_429_TOO_MANY_REQUESTS)
    if result.outcome == ResendOutcome.RESEND_LIMIT:
        raise ServiceError("OTP_RESEND_LIMIT", status_code=status.HTTP_429_TOO_MANY_REQUESTS)

    send_otp_email(to=pending.new_email, full_name=user.full_name, code=result.code, subject=EMAIL_CHANGE_SUBJECT)
    logger.info("email_change.otp_resent", extra={"event": "email_change.otp_resent", "user_id": str(user.pk)})
    return otp.ttl_seconds()


def cancel_email_change(*, user: User) -> None:
    """Drop the pending change if any; cancelling nothing is not an error."""
    deleted, _ = PendingEmailChange.objects.filter(user=user).delete()
    logger.info(
        "email_change.cancelled",
        extra={"event": "email_change.cancelled", "user_id": str(user.pk), "had_pending": bool(deleted)},
    )
