import logging

logger = logging.getLogger("auth")


def client_ip(request) -> str | None:
    """Best-effort client address, preferring the first X-Forwarded-For hop."""
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return request.META.get("REMOTE_ADDR")


def log_auth_event(action: str, request, user=None, status: str = "success", extra: dict | None = None):
    """Emit a structured auth event with action, user id, ip, and status.

    Never pass codes, passwords, or raw tokens in `extra`.
    """
    payload = {
        "action": action,
        "ip": client_ip(request),
        "status": status,
    }
    if user is not None:
        user_id = getattr(user, "id", None)
        payload["user_id"] = str(user_id) if user_id is not None else None
    if extra:
        payload.update(extra)
    logger.info(payload)
