"""Registration rate limit keyed by (client address, email).

Reads its rate from Django settings at request time, so tests using
override_settings reliably affect it, and records the window state on the
request so the view can expose ``X-RateLimit-*`` headers on every response.
"""

import math

from django.conf import settings
from rest_framework.throttling import ScopedRateThrottle
from users.models import normalize_email


class RegistrationRateThrottle(ScopedRateThrottle):
    def get_rate(self):
        rf = getattr(settings, "REST_FRAMEWORK", {})
        rates = rf.get("DEFAULT_THROTTLE_RATES", {})
        return rates.get(self.scope)

    def get_cache_key(self, request, view):
        email = ""
        if hasattr(request.data, "get"):
            email = normalize_email(str(request.data.get("email") or ""))
        ident = f"{self.get_ident(request)}:{email}"
        return self.cache_format % {"scope": self.scope, "ident": ident}

    def allow_request(self, request, view):
        allowed = super().allow_request(request, view)
        if self.rate is not None and getattr(self, "key", None) is not None:
            request.rate_limit = self.window_state()
        return allowed

    def window_state(self) -> dict:
        """Limit, remaining requests and reset time (unix seconds) of the current window."""
        if self.history:
            reset_at = self.history[-1] + self.duration
        else:
            reset_at = self.now + self.duration
        return {
            "limit": self.num_requests,
            "remaining": max(0, self.num_requests - len(self.history)),
            "reset": math.ceil(reset_at),
        }


class RateLimitHeadersMixin:
    """Copy the throttle window recorded on the request into response headers."""

    def finalize_response(self, request, response, *args, **kwargs):
        response = super().finalize_response(request, response, *args, **kwargs)
        state = getattr(request, "rate_limit", None)
        if state:
            response["X-RateLimit-Limit"] = str(state["limit"])
            response["X-RateLimit-Remaining"] = str(state["remaining"])
            response["X-RateLimit-Reset"] = str(state["reset"])
        return response
