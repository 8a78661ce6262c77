"""Signup lifecycle: register, verify, resend, correct the pending email.

Every operation that touches an OTP challenge locks the signup row and the
challenge row with `select_for_update()` inside `transaction.atomic()`.
Outcomes that end the request with an error are computed inside the
transaction and raised after it commits, so failed attempts are persisted.
Verification emails are sent once the transaction has committed.
"""

import logging
from dataclasses import dataclass

from common import otp
from common.choices import AccountStatus, OtpOutcome, ResendOutcome
from common.emails import send_otp_email
from common.exceptions import ServiceError
from django.contrib.auth.hashers import make_password
from django.db import IntegrityError, transaction
from rest_framework import status
from users.models import User, normalize_email

from .models import Signup, SignupOtp
from .tokens import issue_resume_token, resolve_resume_token, revoke_resume_tokens

logger = logging.getLogger("ignite.signups")


@dataclass(frozen=True)
class Registered:
    signup: Signup
    resume_token: str


def _conflict(code: str, **kwargs) -> ServiceError:
    return ServiceError(code, status_code=status.HTTP_409_CONFLICT, **kwargs)


def _pending_exists(signup: Signup) -> ServiceError:
    """Conflict carrying a freshly minted resume token for the existing row."""
    token = issue_resume_token(signup)
    logger.info("registration.pending_exists", extra={"event": "registration.pending_exists", "user_id": str(signup.pk)})
    return _conflict("PENDING_VERIFICATION_EXISTS", extra={"resumeToken": token})


def _raise_for_pending(*, email: str, zid: str) -> None:
    """Raise the conflict for a pending signup that already holds `email` or `zid`.

    A pending row holding the email under another zID is someone else's
    signup: ``ZID_MISMATCH``, and no resume token for it leaves the server.
    """
    by_email = Signup.objects.filter(email=email, status=AccountStatus.PENDING_VERIFICATION).first()
    if by_email is not None:
        if by_email.zid != zid:
            logger.info(
                "registration.zid_mismatch", extra={"event": "registration.zid_mismatch", "user_id": str(by_email.pk)}
            )
            raise _conflict("ZID_MISMATCH")
        raise _pending_exists(by_email)
    by_zid = Signup.objects.filter(zid=zid, status=AccountStatus.PENDING_VERIFICATION).first()
    if by_zid is not None:
        raise _pending_exists(by_zid)


def register_signup(*, full_name: str, zid: str, email: str, password: str) -> Registered:
    """Create a pending signup, or point the caller at the one that already exists.

    Precedence: an active account owning the email (``EMAIL_EXISTS``), then the
    zID (``ZID_EXISTS``), then a pending signup holding the email under another
    zID (``ZID_MISMATCH``), then a pending signup with the same email or zID
    (``PENDING_VERIFICATION_EXISTS`` with a new resume token for that row).
    """
    email = normalize_email(email)
    zid = zid.strip().lower()

    if User.objects.filter(email=email, is_active=True).exists():
        raise _conflict("EMAIL_EXISTS")
    if User.objects.filter(zid=zid, is_active=True).exists():
        raise _conflict("ZID_EXISTS")

    _raise_for_pending(email=email, zid=zid)

    try:
        with transaction.atomic():
            signup = Signup.objects.create(
                full_name=full_name.strip(),
                email=email,
                zid=zid,
                password_hash=make_password(password),
            )
            code = otp.issue(SignupOtp(signup=signup))
            token = issue_resume_token(signup)
    except IntegrityError:
        # A concurrent registration won the partial unique constraint
        _raise_for_pending(email=email, zid=zid)
        raise

    send_otp_email(to=signup.email, full_name=signup.full_name, code=code)
    logger.info("registration.created", extra={"event": "registration.created", "user_id": str(signup.pk)})
    return Registered(signup=signup, resume_token=token)


def _load_pending(resume_token: str | None) -> Signup:
    """Resolve and lock the pending signup behind a resume token."""
    signup = resolve_resume_token(resume_token, for_update=True)
    if signup is None:
        raise ServiceError("RESUME_TOKEN_INVALID", status_code=status.HTTP_401_UNAUTHORIZED)
    if signup.status == AccountStatus.ACTIVE:
        raise _conflict("ALREADY_VERIFIED")
    if signup.status != AccountStatus.PENDING_VERIFICATION:
        raise ServiceError("PENDING_NOT_FOUND", status_code=status.HTTP_404_NOT_FOUND)
    return signup


def _pending_not_found() -> ServiceError:
    return ServiceError("PENDING_NOT_FOUND", status_code=status.HTTP_404_NOT_FOUND)


def _activate(signup: Signup) -> User:
    """Promote a verified signup to an active account with the same id."""
    if User.objects.filter(email=signup.email).exists():
        raise _conflict("EMAIL_EXISTS")
    if User.objects.filter(zid=signup.zid).exists():
        raise _conflict("ZID_EXISTS")
    signup.transition_to(AccountStatus.ACTIVE)
    signup.save()
    user = User(id=signup.pk, email=signup.email, zid=signup.zid, full_name=signup.full_name)
    user.password = signup.password_hash
    user.save(force_insert=True)
    SignupOtp.objects.filter(signup=signup).delete()
    revoke_resume_tokens(signup)
    return user


def verify_signup(*, resume_token: str, code: str) -> User:
    """Check the signup code and, on success, activate the account."""
    with transaction.atomic():
        signup = _load_pending(resume_token)
        challenge = SignupOtp.objects.select_for_update().filter(signup=signup).first()
        if challenge is None:
            raise _pending_not_found()
        result = otp.verify(challenge, code)
        user = _activate(signup) if result.ok else None

    if result.outcome == OtpOutcome.LOCKED:
        logger.info("registration.otp_locked", extra={"event": "registration.otp_locked", "user_id": str(signup.pk)})
        raise ServiceError("OTP_LOCKED", status_code=status.HTTP_423_LOCKED)
    if result.outcome == OtpOutcome.EXPIRED:
        raise ServiceError("OTP_EXPIRED")
    if result.outcome == OtpOutcome.INVALID:
        raise ServiceError("OTP_INVALID", details={"otp_attempts": result.attempts})

    logger.info("registration.verified", extra={"event": "registration.verified", "user_id": str(user.pk)})
    return user


def resend_signup_otp(*, resume_token: str) -> int:
    """Send a fresh signup code; returns its lifetime in seconds."""
    with transaction.atomic():
        signup = _load_pending(resume_token)
        challenge = SignupOtp.objects.select_for_update().filter(signup=signup).first()
        if challenge is None:
            raise _pending_not_found()
        result = otp.resend(challenge)

    if result.outcome == ResendOutcome.COOLDOWN:
        raise ServiceError("OTP_COOLDOWN", status_code=status.HTTP_429_TOO_MANY_REQUESTS)
    if result.outcome == ResendOutcome.RESEND_LIMIT:
        raise ServiceError("OTP_RESEND_LIMIT", status_code=status.HTTP_429_TOO_MANY_REQUESTS)

    send_otp_email(to=signup.email, full_name=signup.full_name, code=result.code)
    logger.info("registration.otp_resent", extra={"event": "registration.otp_resent", "user_id": str(signup.pk)})
    return otp.ttl_seconds()


def change_pending_email(*, resume_token: str, new_email: str) -> str:
    """Correct the email of a pending signup before it is verified.

    Every earlier resume token and the current code are revoked; a new code
    goes to the new address and counts toward the day's resend cap. Returns
    the new resume token.
    """
    new_email = normalize_email(new_email)
    if User.objects.filter(email=new_email, is_active=True).exists():
        raise _conflict("EMAIL_EXISTS")

    try:
        with transaction.atomic():
            signup = _load_pending(resume_token)
            if (
                Signup.objects.filter(email=new_email, status=AccountStatus.PENDING_VERIFICATION)
                .exclude(pk=signup.pk)
                .exists()
            ):
                raise _conflict("EMAIL_EXISTS")
            signup.email = new_email
            signup.save(update_fields=["email", "updated_at"])
            revoke_resume_tokens(signup)
            challenge = SignupOtp.objects.select_for_update().filter(signup=signup).first()
            code = otp.issue(challenge or SignupOtp(signup=signup))
            token = issue_resume_token(signup)
    except IntegrityError:
        raise _conflict("EMAIL_EXISTS")

    send_otp_email(to=new_email, full_name=signup.full_name, code=code)
    logger.info("registration.email_changed", extra={"event": "registration.email_changed", "user_id": str(signup.pk)})
    return token
