"""Django app configuration for shared building blocks."""

from django.apps import AppConfig


class CommonConfig(AppConfig):
    """Registers the abstract bases so they resolve to a known app label."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "common"
