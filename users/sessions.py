"""Session tokens and refresh-token versioning.

Access tokens are short-lived bearer JWTs. Refresh tokens live in an HttpOnly
cookie and embed the user's `token_version` at issuance; a refresh token is
honoured only while that snapshot equals the stored counter. Incrementing the
counter is the only invalidation mechanism, so it is done with a single
`F()` update that every instance observes.
"""

import logging
from dataclasses import dataclass

from common.choices import LogoutOutcome
from django.conf import settings
from django.db.models import F
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.settings import api_settings as jwt_settings
from rest_framework_simplejwt.tokens import AccessToken, RefreshToken

from .models import User

logger = logging.getLogger("ignite.sessions")

TOKEN_VERSION_CLAIM = "token_version"
COOKIE_EPOCH = "Thu, 01 Jan 1970 00:00:00 GMT"


class InvalidSession(Exception):
    """Raised when a refresh token cannot be honoured."""


@dataclass(frozen=True)
class RefreshClaims:
    user_id: str
    token_version: int


def access_token_lifetime_seconds() -> int:
    return int(jwt_settings.ACCESS_TOKEN_LIFETIME.total_seconds())


def issue_access_token(user: User) -> str:
    return str(AccessToken.for_user(user))


def issue_refresh_token(user: User, token_version: int | None = None) -> str:
    """Issue a refresh token that embeds the given (or current) version."""
    token = RefreshToken.for_user(user)
    token[TOKEN_VERSION_CLAIM] = int(user.token_version if token_version is None else token_version)
    return str(token)


def invalidate(user_id) -> None:
    """Revoke every outstanding refresh token of the user."""
    User.objects.filter(pk=user_id).update(token_version=F("token_version") + 1)
    logger.info("session.invalidated", extra={"event": "session.invalidated", "user_id": str(user_id)})


def current_version(user_id) -> int | None:
    return User.objects.filter(pk=user_id, is_active=True).values_list("token_version", flat=True).first()


def read_refresh_token(raw: str | None) -> RefreshClaims:
    """Verify signature, expiry and shape of a refresh token.

    Does not consult the stored counter; see `is_current`.
    """
    if not raw:
        raise InvalidSession("missing")
    try:
        token = RefreshToken(raw)
    except TokenError as exc:
        raise InvalidSession("invalid") from exc
    user_id = token.get(jwt_settings.USER_ID_CLAIM)
    version = token.get(TOKEN_VERSION_CLAIM)
    if not user_id or not isinstance(version, int) or version < 1:
        raise InvalidSession("malformed")
    return RefreshClaims(user_id=str(user_id), token_version=version)


def is_current(user_id, token_version: int) -> bool:
    return current_version(user_id) == token_version


def refresh_access_token(raw: str | None) -> tuple[User, str]:
    """Exchange a current refresh token for a new access token."""
    claims = read_refresh_token(raw)
    user = User.objects.filter(pk=claims.user_id, is_active=True).first()
    if user is None or user.token_version != claims.token_version:
        raise InvalidSession("stale")
    return user, issue_access_token(user)


def logout(raw: str | None) -> LogoutOutcome:
    """Revoke the sessions behind a refresh token.

    A token that verifies cryptographically but was already revoked still
    counts as a successful logout.
    """
    try:
        claims = read_refresh_token(raw)
    except InvalidSession:
        return LogoutOutcome.NOT_AUTHENTICATED
    if not is_current(claims.user_id, claims.token_version):
        return LogoutOutcome.ALREADY_INVALIDATED
    invalidate(claims.user_id)
    return LogoutOutcome.LOGGED_OUT


def set_refresh_cookie(response, token: str) -> None:
    response.set_cookie(
        settings.REFRESH_COOKIE_NAME,
        token,
        max_age=int(jwt_settings.REFRESH_TOKEN_LIFETIME.total_seconds()),
        path="/",
        secure=bool(settings.REFRESH_COOKIE_SECURE),
        httponly=True,
        samesite="Lax",
    )


def clear_refresh_cookie(response) -> None:
    response.set_cookie(
        settings.REFRESH_COOKIE_NAME,
        "",
        expires=COOKIE_EPOCH,
        path="/",
        secure=bool(settings.REFRESH_COOKIE_SECURE),
        httponly=True,
        samesite="Lax",
    )


def start_session(response, user: User) -> str:
    """Set a fresh refresh cookie on `response` and return a new access token."""
    set_refresh_cookie(response, issue_refresh_token(user))
    return issue_access_token(user)
