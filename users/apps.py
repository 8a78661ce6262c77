"""Django app configuration for the users app."""

from django.apps import AppConfig


class UsersConfig(AppConfig):
    """Member accounts, sessions and the email-change flow."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "users"
