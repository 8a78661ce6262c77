import os
import subprocess
import sys

import pytest
from common.exceptions import ServiceError, api_exception_handler
from django.conf import settings
from rest_framework import exceptions, status


def test_service_error_body_with_details_and_extra():
    exc = ServiceError(
        "PENDING_VERIFICATION_EXISTS",
        status_code=status.HTTP_409_CONFLICT,
        details={"field": "email"},
        extra={"resumeToken": "res_abc"},
    )
    resp = api_exception_handler(exc, {})
    assert resp.status_code == 409
    assert resp.data == {"code": "PENDING_VERIFICATION_EXISTS", "details": {"field": "email"}, "resumeToken": "res_abc"}


def test_service_error_defaults_to_400_without_details():
    resp = api_exception_handler(ServiceError("OTP_EXPIRED"), {})
    assert resp.status_code == 400
    assert resp.data == {"code": "OTP_EXPIRED"}


def test_validation_error_maps_to_validation_code():
    resp = api_exception_handler(exceptions.ValidationError({"email": ["Enter a valid email address."]}), {})
    assert resp.status_code == 400
    assert resp.data["code"] == "VALIDATION_ERROR"
    assert resp.data["details"]["email"] == ["Enter a valid email address."]


def test_not_authenticated_maps_to_401_code():
    resp = api_exception_handler(exceptions.NotAuthenticated(), {})
    assert resp.data["code"] == "NOT_AUTHENTICATED"
    assert "details" in resp.data


def test_throttled_exposes_retry_after():
    resp = api_exception_handler(exceptions.Throttled(wait=42), {})
    assert resp.status_code == 429
    assert resp.data == {"code": "TOO_MANY_REQUESTS", "details": {"retryAfter": 42}}
    assert resp["Retry-After"] == "42"


def test_unexpected_exception_is_masked_as_internal(caplog):
    with caplog.at_level("ERROR", logger="ignite.errors"):
        resp = api_exception_handler(RuntimeError("connection string with secrets"), {})
    assert resp.status_code == 500
    assert resp.data == {"code": "INTERNAL"}
    assert "secrets" not in str(resp.data)
    assert any(r.message == "unhandled_exception" for r in caplog.records)



@pytest.mark.parametrize("first", ["common.exceptions", "rest_framework.views", "users.authentication"])
def test_handler_and_authentication_import_in_any_order(first):
    script = (
        "import django; django.setup(); "
        f"import {first}; "
        "import common.exceptions; "
        "from rest_framework.views import APIView; "
        "print(type(APIView().get_authenticators()[0]).__name__)"
    )
    env = {**os.environ, "DJANGO_SETTINGS_MODULE": "config.settings.test"}
    result = subprocess.run(
        [sys.executable, "-c", script], cwd=settings.BASE_DIR, env=env, capture_output=True, text=True, timeout=60
    )
    assert result.returncode == 0, result.stderr
    assert result.stdout.strip() == "AccessTokenAuthentication"
