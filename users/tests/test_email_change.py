import datetime as dt
import re

import pytest
from common.otp import hash_code
from django.conf import settings
from django.test import override_settings
from django.utils import timezone
from rest_framework.test import APIClient
from signups.models import Signup
from signups.tests.factories import SignupFactory
from users import sessions
from users.models import PendingEmailChange
from users.serializers import VerifyEmailChangeSerializer
from users.tests.factories import KNOWN_CODE, PASSWORD, PendingEmailChangeFactory, UserFactory

REQUEST_URL = "/api/v1/user/email/change-request/"
VERIFY_URL = "/api/v1/user/email/verify-change/"
RESEND_URL = "/api/v1/user/email/resend-otp/"
CANCEL_URL = "/api/v1/user/email/cancel-change/"


def _client_for(user):
    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {sessions.issue_access_token(user)}")
    return client


def _code_from(message) -> str:
    return re.search(r"\b(\d{6})\b", message.body).group(1)


@pytest.mark.django_db
def test_request_sends_code_to_new_address(mailoutbox):
    user = UserFactory()
    resp = _client_for(user).post(
        REQUEST_URL, {"newEmail": "John.Doe@unsw.edu.au", "currentPassword": PASSWORD}, format="json"
    )
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "emailMasked": "j******e@u*******.au", "expiresInSeconds": 600}

    pending = PendingEmailChange.objects.get(user=user)
    assert pending.new_email == "john.doe@unsw.edu.au"
    assert len(mailoutbox) == 1
    assert mailoutbox[0].to == ["john.doe@unsw.edu.au"]
    assert pending.otp_hash == hash_code(_code_from(mailoutbox[0]))


@pytest.mark.django_db
def test_request_with_wrong_password_is_validation_error():
    user = UserFactory()
    resp = _client_for(user).post(
        REQUEST_URL, {"newEmail": "new@example.com", "currentPassword": "WrongPass999"}, format="json"
    )
    assert resp.status_code == 400
    assert resp.json() == {"code": "VALIDATION_ERROR", "details": "Incorrect password"}
    assert not PendingEmailChange.objects.filter(user=user).exists()


@pytest.mark.django_db
def test_request_for_email_owned_by_active_user_conflicts():
    other = UserFactory()
    user = UserFactory()
    resp = _client_for(user).post(REQUEST_URL, {"newEmail": other.email, "currentPassword": PASSWORD}, format="json")
    assert resp.status_code == 409
    assert resp.json()["code"] == "EMAIL_EXISTS"


@pytest.mark.django_db
def test_new_request_replaces_existing_one():
    user = UserFactory()
    PendingEmailChangeFactory(user=user, new_email="first@example.com", attempts=3)
    client = _client_for(user)
    resp = client.post(REQUEST_URL, {"newEmail": "second@example.com", "currentPassword": PASSWORD}, format="json")
    assert resp.status_code == 200

    assert PendingEmailChange.objects.filter(user=user).count() == 1
    pending = PendingEmailChange.objects.get(user=user)
    assert pending.new_email == "second@example.com"
    assert pending.attempts == 0


@pytest.mark.django_db
def test_request_requires_bearer_token():
    resp = APIClient().post(REQUEST_URL, {"newEmail": "x@example.com", "currentPassword": PASSWORD}, format="json")
    assert resp.status_code == 401
    assert resp.json()["code"] == "NOT_AUTHENTICATED"


@pytest.mark.django_db
def test_token_for_deleted_user_is_user_not_found():
    user = UserFactory()
    client = _client_for(user)
    user.delete()
    resp = client.post(REQUEST_URL, {"newEmail": "x@example.com", "currentPassword": PASSWORD}, format="json")
    assert resp.status_code == 404
    assert resp.json()["code"] == "USER_NOT_FOUND"


@pytest.mark.django_db
def test_wrong_codes_count_up_then_lock():
    user = UserFactory()
    pending = PendingEmailChangeFactory(user=user)
    client = _client_for(user)

    for expected in range(1, 5):
        resp = client.post(VERIFY_URL, {"otp": "000000"}, format="json")
        assert resp.status_code == 400
        assert resp.json() == {"code": "OTP_INVALID", "details": {"otp_attempts": expected}}

    resp = client.post(VERIFY_URL, {"otp": "000000"}, format="json")
    assert resp.status_code == 423
    assert resp.json()["code"] == "OTP_LOCKED"
    pending.refresh_from_db()
    assert pending.locked_at is not None

    resp = client.post(VERIFY_URL, {"otp": KNOWN_CODE}, format="json")
    assert resp.status_code == 423


@pytest.mark.django_db
def test_verify_with_expired_code():
    user = UserFactory()
    PendingEmailChangeFactory(user=user, expires_at=timezone.now() - dt.timedelta(seconds=1))
    resp = _client_for(user).post(VERIFY_URL, {"otp": KNOWN_CODE}, format="json")
    assert resp.status_code == 400
    assert resp.json()["code"] == "OTP_EXPIRED"


@pytest.mark.django_db
def test_verify_without_pending_change():
    user = UserFactory()
    resp = _client_for(user).post(VERIFY_URL, {"otp": KNOWN_CODE}, format="json")
    assert resp.status_code == 404
    assert resp.json()["code"] == "NO_PENDING_EMAIL_CHANGE"


@pytest.mark.django_db
def test_verify_rejects_non_numeric_code():
    user = UserFactory()
    PendingEmailChangeFactory(user=user)
    resp = _client_for(user).post(VERIFY_URL, {"otp": "12ab56"}, format="json")
    assert resp.status_code == 400
    assert resp.json()["code"] == "VALIDATION_ERROR"


@pytest.mark.django_db
def test_successful_verify_updates_email_and_revokes_old_sessions():
    user = UserFactory()
    SignupFactory(id=user.pk, email=user.email, zid=user.zid, status="ACTIVE")
    old_refresh = sessions.issue_refresh_token(user)
    PendingEmailChangeFactory(user=user, new_email="moved@example.com")

    client = _client_for(user)
    resp = client.post(VERIFY_URL, {"otp": KNOWN_CODE}, format="json")
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["message"] == "Email updated successfully"
    assert body["newAccessToken"]

    user.refresh_from_db()
    assert user.email == "moved@example.com"
    assert user.token_version == 2
    assert Signup.objects.get(pk=user.pk).email == "moved@example.com"
    assert not PendingEmailChange.objects.filter(user=user).exists()

    with pytest.raises(sessions.InvalidSession):
        sessions.refresh_access_token(old_refresh)
    new_refresh = resp.cookies[settings.REFRESH_COOKIE_NAME].value
    refreshed_user, _ = sessions.refresh_access_token(new_refresh)
    assert refreshed_user.pk == user.pk


@pytest.mark.django_db
def test_verify_conflicts_when_target_email_was_taken_meanwhile():
    user = UserFactory()
    PendingEmailChangeFactory(user=user, new_email="contested@example.com")
    UserFactory(email="contested@example.com")

    resp = _client_for(user).post(VERIFY_URL, {"otp": KNOWN_CODE}, format="json")
    assert resp.status_code == 409
    assert resp.json()["code"] == "EMAIL_EXISTS"
    user.refresh_from_db()
    assert user.token_version == 1


@pytest.mark.django_db
def test_resend_respects_cooldown_and_unlocks_after_it(mailoutbox):
    user = UserFactory()
    pending = PendingEmailChangeFactory(user=user, attempts=5, locked_at=timezone.now())
    client = _client_for(user)

    resp = client.post(RESEND_URL)
    assert resp.status_code == 429
    assert resp.json()["code"] == "OTP_COOLDOWN"

    PendingEmailChange.objects.filter(pk=pending.pk).update(last_sent_at=timezone.now() - dt.timedelta(seconds=61))
    resp = client.post(RESEND_URL)
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "expiresInSeconds": 600}

    pending.refresh_from_db()
    assert pending.attempts == 0
    assert pending.locked_at is None
    assert len(mailoutbox) == 1

    resp = client.post(VERIFY_URL, {"otp": _code_from(mailoutbox[0])}, format="json")
    assert resp.status_code == 200


@pytest.mark.django_db
def test_resend_daily_cap():
    user = UserFactory()
    PendingEmailChangeFactory(user=user, resend_count=5, last_sent_at=timezone.now() - dt.timedelta(minutes=5))
    resp = _client_for(user).post(RESEND_URL)
    assert resp.status_code == 429
    assert resp.json()["code"] == "OTP_RESEND_LIMIT"


@pytest.mark.django_db
def test_resend_without_pending_change():
    resp = _client_for(UserFactory()).post(RESEND_URL)
    assert resp.status_code == 404
    assert resp.json()["code"] == "NO_PENDING_EMAIL_CHANGE"


@pytest.mark.django_db
def test_cancel_is_idempotent():
    user = UserFactory()
    PendingEmailChangeFactory(user=user)
    client = _client_for(user)
    for _ in range(2):
        resp = client.delete(CANCEL_URL)
        assert resp.status_code == 200
        assert resp.json() == {"success": True}
    assert not PendingEmailChange.objects.filter(user=user).exists()


@pytest.mark.django_db
def test_cancel_requires_authentication():
    resp = APIClient().delete(CANCEL_URL)
    assert resp.status_code == 401
    assert resp.json()["code"] == "NOT_AUTHENTICATED"


@pytest.mark.django_db
def test_repeated_requests_do_not_reset_the_daily_resend_cap():
    user = UserFactory()
    PendingEmailChangeFactory(user=user, resend_count=5)
    client = _client_for(user)
    resp = client.post(REQUEST_URL, {"newEmail": "again@example.com", "currentPassword": PASSWORD}, format="json")
    assert resp.status_code == 200
    assert PendingEmailChange.objects.get(user=user).resend_count == 6

    PendingEmailChange.objects.filter(user=user).update(last_sent_at=timezone.now() - dt.timedelta(minutes=2))
    resp = client.post(RESEND_URL)
    assert resp.status_code == 429
    assert resp.json()["code"] == "OTP_RESEND_LIMIT"


@override_settings(OTP_LENGTH=8)
def test_code_field_follows_configured_length():
    assert VerifyEmailChangeSerializer(data={"otp": "12345678"}).is_valid()
    serializer = VerifyEmailChangeSerializer(data={"otp": "123456"})
    assert not serializer.is_valid()
    assert serializer.errors["otp"] == ["OTP must be 8 digits"]
