"""Resume tokens: opaque, hashed at rest, valid for a short window.

A new token is minted every time a pending signup is looked up again; older
unexpired tokens keep resolving to the same signup until they expire or the
signup leaves PENDING_VERIFICATION.
"""

import hashlib
import secrets
from datetime import timedelta

from django.conf import settings
from django.utils import timezone

from .models import ResumeToken, Signup

TOKEN_PREFIX = "res_"


def hash_resume_token(raw: str) -> str:
    return hashlib.sha256(raw.encode()).hexdigest()


def resume_token_ttl() -> timedelta:
    return timedelta(minutes=int(getattr(settings, "RESUME_TOKEN_TTL_MINUTES", 30)))


def issue_resume_token(signup: Signup, *, now=None) -> str:
    """Mint a token for `signup`, record it, and return the plaintext value."""
    now = now or timezone.now()
    raw = TOKEN_PREFIX + secrets.token_urlsafe(32)
    digest = hash_resume_token(raw)
    expires_at = now + resume_token_ttl()
    ResumeToken.objects.create(signup=signup, token_hash=digest, expires_at=expires_at)
    Signup.objects.filter(pk=signup.pk).update(
        resume_token_hash=digest, resume_token_expires_at=expires_at, updated_at=now
    )
    signup.resume_token_hash = digest
    signup.resume_token_expires_at = expires_at
    return raw


def resolve_resume_token(raw: str | None, *, now=None, for_update: bool = False) -> Signup | None:
    """Return the signup behind an unexpired token, or None.

    With `for_update` the signup row is locked; call inside `transaction.atomic()`.
    """
    if not raw or not raw.startswith(TOKEN_PREFIX):
        return None
    now = now or timezone.now()
    token = (
        ResumeToken.objects.filter(token_hash=hash_resume_token(raw), expires_at__gt=now)
        .only("signup_id")
        .first()
    )
    if token is None:
        return None
    qs = Signup.objects.select_for_update() if for_update else Signup.objects.all()
    return qs.filter(pk=token.signup_id).first()


def revoke_resume_tokens(signup: Signup) -> int:
    deleted, _ = ResumeToken.objects.filter(signup=signup).delete()
    return deleted
