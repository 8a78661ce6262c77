"""Signup routes grouped under /api/v1/auth/."""

from django.urls import path

from .views import PendingEmailView, RegisterView, ResendOtpView, VerifyOtpView

urlpatterns = [
    path("register/", RegisterView.as_view(), name="register"),
    path("verify-otp/", VerifyOtpView.as_view(), name="verify_otp"),
    path("resend-otp/", ResendOtpView.as_view(), name="resend_otp"),
    path("pending/email/", PendingEmailView.as_view(), name="pending_email"),
]
