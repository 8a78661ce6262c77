"""Bearer access-token authentication for account endpoints.

Loaded by DRF while `rest_framework.views` is still importing, so this module
must not import anything that imports DRF views (`common.exceptions` included).
"""

from rest_framework.exceptions import AuthenticationFailed, NotFound
from rest_framework_simplejwt.authentication import JWTAuthentication


class UserNotFound(NotFound):
    default_detail = "User not found"
    default_code = "user_not_found"


def _failure_code(exc: AuthenticationFailed) -> str | None:
    # simplejwt wraps its detail as {"detail": ..., "code": ...}
    if isinstance(exc.detail, dict):
        code = exc.detail.get("code")
        return str(code) if code is not None else None
    codes = exc.get_codes()
    return codes if isinstance(codes, str) else None


class AccessTokenAuthentication(JWTAuthentication):
    """simplejwt authentication that reports a vanished account as 404.

    A well-formed access token whose user no longer exists maps to
    ``USER_NOT_FOUND`` rather than a generic authentication failure.
    """

    def get_user(self, validated_token):
        try:
            return super().get_user(validated_token)
        except AuthenticationFailed as exc:
            if _failure_code(exc) == "user_not_found":
                raise UserNotFound()
            raise
