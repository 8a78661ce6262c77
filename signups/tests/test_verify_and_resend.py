import datetime as dt
import re

import pytest
from common.choices import AccountStatus
from common.otp import hash_code
from django.conf import settings
from django.utils import timezone
from rest_framework.test import APIClient
from signups.models import ResumeToken, Signup, SignupOtp
from signups.tests.factories import SignupFactory, SignupOtpFactory
from signups.tokens import issue_resume_token
from users import sessions
from users.models import User
from users.tests.factories import KNOWN_CODE, PASSWORD, UserFactory

VERIFY_URL = "/api/v1/auth/verify-otp/"
RESEND_URL = "/api/v1/auth/resend-otp/"
PENDING_EMAIL_URL = "/api/v1/auth/pending/email/"
LOGIN_URL = "/api/v1/auth/login/"


def _code_from(message) -> str:
    return re.search(r"\b(\d{6})\b", message.body).group(1)


@pytest.fixture
def pending():
    """A pending signup with a known code and a live resume token."""
    challenge = SignupOtpFactory()
    return challenge.signup, issue_resume_token(challenge.signup)


@pytest.mark.django_db
def test_verify_activates_account_and_starts_session(pending):
    signup, token = pending
    resp = APIClient().post(VERIFY_URL, {"resumeToken": token, "otp": KNOWN_CODE}, format="json")
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["userId"] == str(signup.pk)
    assert body["accessToken"]
    assert settings.REFRESH_COOKIE_NAME in resp.cookies

    signup.refresh_from_db()
    assert signup.status == AccountStatus.ACTIVE
    assert signup.email_verified_at is not None
    assert signup.resume_token_hash is None
    assert not SignupOtp.objects.filter(signup=signup).exists()
    assert not ResumeToken.objects.filter(signup=signup).exists()

    user = User.objects.get(pk=signup.pk)
    assert user.email == signup.email
    assert user.zid == signup.zid
    assert user.token_version == 1
    assert user.check_password(PASSWORD)

    login = APIClient().post(LOGIN_URL, {"email": signup.email, "password": PASSWORD}, format="json")
    assert login.status_code == 200


@pytest.mark.django_db
def test_verify_with_unknown_token():
    resp = APIClient().post(VERIFY_URL, {"resumeToken": "res_unknown", "otp": KNOWN_CODE}, format="json")
    assert resp.status_code == 401
    assert resp.json() == {"code": "RESUME_TOKEN_INVALID"}


@pytest.mark.django_db
def test_verify_with_expired_token(pending):
    signup, token = pending
    ResumeToken.objects.filter(signup=signup).update(expires_at=timezone.now() - dt.timedelta(seconds=1))
    resp = APIClient().post(VERIFY_URL, {"resumeToken": token, "otp": KNOWN_CODE}, format="json")
    assert resp.status_code == 401


@pytest.mark.django_db
def test_verify_expired_signup_is_pending_not_found(pending):
    signup, token = pending
    Signup.objects.filter(pk=signup.pk).update(status=AccountStatus.EXPIRED)
    resp = APIClient().post(VERIFY_URL, {"resumeToken": token, "otp": KNOWN_CODE}, format="json")
    assert resp.status_code == 404
    assert resp.json()["code"] == "PENDING_NOT_FOUND"


@pytest.mark.django_db
def test_verify_already_active_signup(pending):
    signup, token = pending
    Signup.objects.filter(pk=signup.pk).update(status=AccountStatus.ACTIVE)
    resp = APIClient().post(VERIFY_URL, {"resumeToken": token, "otp": KNOWN_CODE}, format="json")
    assert resp.status_code == 409
    assert resp.json()["code"] == "ALREADY_VERIFIED"


@pytest.mark.django_db
def test_five_wrong_codes_lock_the_signup_even_for_the_right_code(pending):
    signup, token = pending
    client = APIClient()
    for expected in range(1, 5):
        resp = client.post(VERIFY_URL, {"resumeToken": token, "otp": "000000"}, format="json")
        assert resp.status_code == 400
        assert resp.json() == {"code": "OTP_INVALID", "details": {"otp_attempts": expected}}

    resp = client.post(VERIFY_URL, {"resumeToken": token, "otp": "000000"}, format="json")
    assert resp.status_code == 423
    resp = client.post(VERIFY_URL, {"resumeToken": token, "otp": KNOWN_CODE}, format="json")
    assert resp.status_code == 423
    assert resp.json()["code"] == "OTP_LOCKED"

    signup.refresh_from_db()
    assert signup.status == AccountStatus.PENDING_VERIFICATION
    assert not User.objects.filter(pk=signup.pk).exists()


@pytest.mark.django_db
def test_verify_expired_code(pending):
    signup, token = pending
    SignupOtp.objects.filter(signup=signup).update(expires_at=timezone.now() - dt.timedelta(seconds=1))
    resp = APIClient().post(VERIFY_URL, {"resumeToken": token, "otp": KNOWN_CODE}, format="json")
    assert resp.status_code == 400
    assert resp.json()["code"] == "OTP_EXPIRED"


@pytest.mark.django_db
def test_verify_conflicts_if_email_was_claimed_by_active_account(pending):
    signup, token = pending
    UserFactory(email=signup.email)
    resp = APIClient().post(VERIFY_URL, {"resumeToken": token, "otp": KNOWN_CODE}, format="json")
    assert resp.status_code == 409
    assert resp.json()["code"] == "EMAIL_EXISTS"
    signup.refresh_from_db()
    assert signup.status == AccountStatus.PENDING_VERIFICATION


@pytest.mark.django_db
def test_resend_cooldown_then_fresh_code_unlocks(pending, mailoutbox):
    signup, token = pending
    SignupOtp.objects.filter(signup=signup).update(attempts=5, locked_at=timezone.now())
    client = APIClient()

    resp = client.post(RESEND_URL, {"resumeToken": token}, format="json")
    assert resp.status_code == 429
    assert resp.json()["code"] == "OTP_COOLDOWN"

    SignupOtp.objects.filter(signup=signup).update(last_sent_at=timezone.now() - dt.timedelta(seconds=60))
    resp = client.post(RESEND_URL, {"resumeToken": token}, format="json")
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "expiresInSeconds": 600}
    assert len(mailoutbox) == 1
    assert mailoutbox[0].to == [signup.email]

    challenge = SignupOtp.objects.get(signup=signup)
    assert challenge.attempts == 0
    assert challenge.locked_at is None
    assert challenge.resend_count == 1

    code = _code_from(mailoutbox[0])
    assert challenge.otp_hash == hash_code(code)
    resp = client.post(VERIFY_URL, {"resumeToken": token, "otp": code}, format="json")
    assert resp.status_code == 200


@pytest.mark.django_db
def test_resend_cap_reported_even_inside_cooldown(pending):
    signup, token = pending
    SignupOtp.objects.filter(signup=signup).update(resend_count=5)
    resp = APIClient().post(RESEND_URL, {"resumeToken": token}, format="json")
    assert resp.status_code == 429
    assert resp.json()["code"] == "OTP_RESEND_LIMIT"


@pytest.mark.django_db
def test_resend_requires_resume_token():
    resp = APIClient().post(RESEND_URL, {}, format="json")
    assert resp.status_code == 400
    assert resp.json()["code"] == "VALIDATION_ERROR"


@pytest.mark.django_db
def test_pending_email_change_moves_signup_and_revokes_old_tokens(pending, mailoutbox):
    signup, token = pending
    client = APIClient()
    resp = client.patch(PENDING_EMAIL_URL, {"resumeToken": token, "newEmail": "Fixed@X.com"}, format="json")
    assert resp.status_code == 200
    new_token = resp.json()["resumeToken"]
    assert new_token != token

    signup.refresh_from_db()
    assert signup.email == "fixed@x.com"
    assert mailoutbox[-1].to == ["fixed@x.com"]

    resp = client.post(VERIFY_URL, {"resumeToken": token, "otp": KNOWN_CODE}, format="json")
    assert resp.status_code == 401

    code = _code_from(mailoutbox[-1])
    resp = client.post(VERIFY_URL, {"resumeToken": new_token, "otp": code}, format="json")
    assert resp.status_code == 200
    assert User.objects.get(pk=signup.pk).email == "fixed@x.com"


@pytest.mark.django_db
def test_pending_email_change_rejects_active_email(pending):
    _, token = pending
    UserFactory(email="owner@x.com")
    resp = APIClient().patch(PENDING_EMAIL_URL, {"resumeToken": token, "newEmail": "owner@x.com"}, format="json")
    assert resp.status_code == 409
    assert resp.json()["code"] == "EMAIL_EXISTS"


@pytest.mark.django_db
def test_pending_email_change_rejects_email_of_another_pending_signup(pending):
    _, token = pending
    SignupFactory(email="queued@x.com")
    resp = APIClient().patch(PENDING_EMAIL_URL, {"resumeToken": token, "newEmail": "queued@x.com"}, format="json")
    assert resp.status_code == 409
    assert resp.json()["code"] == "EMAIL_EXISTS"


@pytest.mark.django_db
def test_refresh_token_from_verification_is_current(pending):
    signup, token = pending
    resp = APIClient().post(VERIFY_URL, {"resumeToken": token, "otp": KNOWN_CODE}, format="json")
    raw = resp.cookies[settings.REFRESH_COOKIE_NAME].value
    user, _ = sessions.refresh_access_token(raw)
    assert user.pk == signup.pk
