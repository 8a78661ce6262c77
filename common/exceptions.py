"""Service-layer error type and the DRF exception handler.

Every error response body has the shape ``{"code": STRING, "details"?: ANY}``.
"""

import logging

from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger("ignite.errors")


class ServiceError(Exception):
    """Expected domain failure that ends the current request.

    `code` is the stable machine-readable error code sent to clients,
    `status_code` the HTTP status it maps to. Anything in `extra` is merged
    into the top level of the body (e.g. a freshly minted resume token).
    """

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, code: str, *, status_code: int | None = None, details=None, extra: dict | None = None):
        super().__init__(code)
        self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.details = details
        self.extra = extra or {}

    def as_body(self) -> dict:
        body = {"code": self.code}
        if self.details is not None:
            body["details"] = self.details
        body.update(self.extra)
        return body


def _code_for(exc: exceptions.APIException) -> str:
    if isinstance(exc, exceptions.ValidationError):
        return "VALIDATION_ERROR"
    if isinstance(exc, (exceptions.NotAuthenticated, exceptions.AuthenticationFailed)):
        return "NOT_AUTHENTICATED"
    if isinstance(exc, exceptions.Throttled):
        return "TOO_MANY_REQUESTS"
    if isinstance(exc, exceptions.ParseError):
        return "VALIDATION_ERROR"
    code = getattr(exc, "default_code", "error")
    return str(code).upper()


def api_exception_handler(exc, context):
    """Render service errors, DRF errors and unexpected failures uniformly.

    Unexpected exceptions (store errors included) are logged with their
    traceback and surfaced as a generic 500 ``INTERNAL`` body.
    """
    view = context.get("view")
    view_name = view.__class__.__name__ if view is not None else None

    if isinstance(exc, ServiceError):
        return Response(exc.as_body(), status=exc.status_code)

    response = exception_handler(exc, context)
    if response is None:
        logger.error(
            "unhandled_exception",
            exc_info=(type(exc), exc, exc.__traceback__),
            extra={"event": "unhandled_exception", "view": view_name},
        )
        return Response({"code": "INTERNAL"}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    body = {"code": _code_for(exc)}
    data = response.data
    if isinstance(exc, exceptions.Throttled):
        data = {"retryAfter": int(exc.wait)} if exc.wait is not None else None
    elif isinstance(data, dict) and set(data) == {"detail"}:
        data = data["detail"]
    if data is not None:
        body["details"] = data
    response.data = body
    return response
