"""Admin registrations for member accounts and pending email changes."""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import PendingEmailChange, User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Email-based variant of Django's `UserAdmin`."""

    list_display = ("email", "zid", "full_name", "is_active", "is_staff", "token_version", "date_joined")
    list_filter = ("is_staff", "is_superuser", "is_active", "groups")
    search_fields = ("email", "zid", "full_name")
    ordering = ("-date_joined",)
    readonly_fields = ("last_login", "date_joined", "token_version")

    fieldsets = (
        (None, {"fields": ("email", "password")}),
        ("Profile", {"fields": ("full_name", "zid")}),
        ("Sessions", {"fields": ("token_version",)}),
        (
            "Permissions",
            {"fields": ("is_active", "is_staff", "is_superuser", "groups", "user_permissions")},
        ),
        ("Important dates", {"fields": ("last_login", "date_joined")}),
    )

    add_fieldsets = (
        (
            None,
            {
                "classes": ("wide",),
                "fields": ("email", "full_name", "password1", "password2"),
            },
        ),
    )

    filter_horizontal = ("groups", "user_permissions")


@admin.register(PendingEmailChange)
class PendingEmailChangeAdmin(admin.ModelAdmin):
    list_display = ("user", "new_email", "attempts", "locked_at", "expires_at", "resend_count")
    search_fields = ("user__email", "new_email")
    readonly_fields = ("otp_hash", "created_at", "updated_at")
