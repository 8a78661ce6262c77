"""Scheduled sweeps over stale signups.

Both jobs are idempotent and safe to run alongside user requests and
overlapping runs of themselves: rows are claimed with
`select_for_update(skip_locked=True)` and every write re-filters on status.

- `expire_stale_signups`: PENDING_VERIFICATION older than the expiry window
  becomes EXPIRED. Removing the now useless OTP rows is best effort.
- `purge_expired_accounts`: EXPIRED rows untouched for the purge window are
  deleted together with their dependents, dependents first. Any failure
  aborts the whole run.
"""

import logging
from datetime import timedelta

from common.choices import AccountStatus
from django.conf import settings
from django.db import DatabaseError, transaction
from django.utils import timezone

from .models import ResumeToken, Signup, SignupOtp

logger = logging.getLogger("ignite.jobs")


def _expire_cutoff(now):
    return now - timedelta(days=int(getattr(settings, "SIGNUP_EXPIRE_AFTER_DAYS", 7)))


def _purge_cutoff(now):
    return now - timedelta(days=int(getattr(settings, "SIGNUP_PURGE_AFTER_DAYS", 15)))


def _delete_signup_otps(signup_ids) -> int:
    deleted, _ = SignupOtp.objects.filter(signup_id__in=signup_ids).delete()
    return deleted


def _delete_resume_tokens(signup_ids) -> int:
    deleted, _ = ResumeToken.objects.filter(signup_id__in=signup_ids).delete()
    return deleted


def _delete_signups(signup_ids) -> int:
    deleted, _ = Signup.objects.filter(pk__in=signup_ids, status=AccountStatus.EXPIRED).delete()
    return deleted


def expire_stale_signups(*, now=None) -> dict:
    """Expire pending signups created before the cutoff.

    Returns ``{"expired_count": int, "user_ids": [str, ...]}``.
    """
    now = now or timezone.now()
    cutoff = _expire_cutoff(now)

    with transaction.atomic():
        ids = list(
            Signup.objects.select_for_update(skip_locked=True)
            .filter(status=AccountStatus.PENDING_VERIFICATION, created_at__lt=cutoff)
            .values_list("id", flat=True)
        )
        if not ids:
            logger.info("expire_stale_signups.noop", extra={"event": "expire_stale_signups.noop"})
            return {"expired_count": 0, "user_ids": []}
        # Same field changes as Signup.transition_to(EXPIRED), applied in bulk
        expired = Signup.objects.filter(pk__in=ids, status=AccountStatus.PENDING_VERIFICATION).update(
            status=AccountStatus.EXPIRED,
            email_verified_at=None,
            resume_token_hash=None,
            resume_token_expires_at=None,
            updated_at=now,
        )

    user_ids = [str(pk) for pk in ids]
    try:
        _delete_signup_otps(ids)
    except DatabaseError:
        logger.exception(
            "expire_stale_signups.otp_cleanup_failed",
            extra={"event": "expire_stale_signups.otp_cleanup_failed", "count": len(ids)},
        )

    logger.info(
        "expire_stale_signups.done",
        extra={"event": "expire_stale_signups.done", "expired_count": expired},
    )
    return {"expired_count": expired, "user_ids": user_ids}


def get_expired_accounts_purge_count(*, now=None) -> int:
    """How many signups the next purge run would delete."""
    now = now or timezone.now()
    return Signup.objects.filter(status=AccountStatus.EXPIRED, updated_at__lt=_purge_cutoff(now)).count()


def purge_expired_accounts(*, now=None) -> dict:
    """Delete long-expired signups and everything hanging off them.

    Order: OTP rows, then resume tokens, then the signups. Errors propagate
    and roll the whole run back, so a parent is never deleted without its
    dependents. Returns ``{"purged_count": int, "user_ids": [str, ...]}``.
    """
    now = now or timezone.now()
    cutoff = _purge_cutoff(now)

    with transaction.atomic():
        ids = list(
            Signup.objects.select_for_update(skip_locked=True)
            .filter(status=AccountStatus.EXPIRED, updated_at__lt=cutoff)
            .values_list("id", flat=True)
        )
        if not ids:
            logger.info("purge_expired_accounts.noop", extra={"event": "purge_expired_accounts.noop"})
            return {"purged_count": 0, "user_ids": []}
        _delete_signup_otps(ids)
        _delete_resume_tokens(ids)
        purged = _delete_signups(ids)

    logger.info(
        "purge_expired_accounts.done",
        extra={"event": "purge_expired_accounts.done", "purged_count": purged},
    )
    return {"purged_count": purged, "user_ids": [str(pk) for pk in ids]}
