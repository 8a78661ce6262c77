"""Session and account routes under /api/v1/."""

from django.urls import path

from .views import (
    EmailChangeCancelView,
    EmailChangeRequestView,
    EmailChangeResendView,
    EmailChangeVerifyView,
    LoginView,
    LogoutView,
    RefreshView,
)

urlpatterns = [
    path("auth/login/", LoginView.as_view(), name="login"),
    path("auth/refresh/", RefreshView.as_view(), name="token_refresh"),
    path("auth/logout/", LogoutView.as_view(), name="logout"),
    path("user/email/change-request/", EmailChangeRequestView.as_view(), name="email_change_request"),
    path("user/email/verify-change/", EmailChangeVerifyView.as_view(), name="email_change_verify"),
    path("user/email/resend-otp/", EmailChangeResendView.as_view(), name="email_change_resend"),
    path("user/email/cancel-change/", EmailChangeCancelView.as_view(), name="email_change_cancel"),
]
