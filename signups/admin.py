from django.contrib import admin

from .models import ResumeToken, Signup, SignupOtp


class SignupOtpInline(admin.StackedInline):
    model = SignupOtp
    extra = 0
    readonly_fields = ("otp_hash", "expires_at", "attempts", "locked_at", "last_sent_at", "resend_count")
    can_delete = False


@admin.register(Signup)
class SignupAdmin(admin.ModelAdmin):
    list_display = ("email", "zid", "full_name", "status", "email_verified_at", "created_at", "updated_at")
    list_filter = ("status",)
    search_fields = ("email", "zid", "full_name")
    ordering = ("-created_at",)
    readonly_fields = ("password_hash", "resume_token_hash", "resume_token_expires_at", "created_at", "updated_at")
    inlines = [SignupOtpInline]


@admin.register(ResumeToken)
class ResumeTokenAdmin(admin.ModelAdmin):
    list_display = ("signup", "expires_at", "created_at")
    readonly_fields = ("token_hash",)
