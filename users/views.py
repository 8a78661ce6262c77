"""Users app API views.

Endpoints include:
- auth/login: exchange email and password for an access token and refresh cookie.
- auth/refresh: mint a new access token from a current refresh cookie.
- auth/logout: revoke every refresh token of the user and clear the cookie.
- user/email/change-request: start an email change (password re-entry, OTP to new address).
- user/email/verify-change: confirm the change with the OTP; all other sessions end.
- user/email/resend-otp: send a fresh OTP for the pending change.
- user/email/cancel-change: drop the pending change (idempotent).
"""

from common.choices import LogoutOutcome
from common.exceptions import ServiceError
from django.conf import settings
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from . import email_change, sessions
from .logging import log_auth_event
from .serializers import EmailChangeRequestSerializer, LoginSerializer, VerifyEmailChangeSerializer
from .services import authenticate_member


class LoginView(APIView):
    authentication_classes: list = []
    permission_classes = [AllowAny]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "login"

    @extend_schema(
        summary="Log in with email and password",
        description=(
            "Returns a short-lived access token and sets the refresh token as an HttpOnly cookie.\n\n"
            "Errors: 401 INVALID_CREDENTIALS, 403 ACCOUNT_NOT_VERIFIED when the signup was never verified."
        ),
        tags=["Auth"],
        request=LoginSerializer,
        responses={
            200: OpenApiResponse(description="Logged in"),
            401: OpenApiResponse(description="Invalid credentials"),
            403: OpenApiResponse(description="Account not verified"),
        },
    )
    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            user = authenticate_member(serializer.validated_data["email"], serializer.validated_data["password"])
        except ServiceError as exc:
            log_auth_event("login", request, status=exc.code.lower())
            raise
        response = Response(status=status.HTTP_200_OK)
        access = sessions.start_session(response, user)
        response.data = {
            "success": True,
            "userId": str(user.pk),
            "accessToken": access,
            "expiresIn": sessions.access_token_lifetime_seconds(),
        }
        log_auth_event("login", request, user=user)
        return response


class RefreshView(APIView):
    authentication_classes: list = []
    permission_classes = [AllowAny]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "token_refresh"

    @extend_schema(
        summary="Refresh the access token",
        description="Reads the refresh cookie. Errors: 401 NOT_AUTHENTICATED when it is missing, invalid or revoked.",
        tags=["Auth"],
        request=None,
        responses={200: OpenApiResponse(description="New access token"), 401: OpenApiResponse(description="Unauthorized")},
    )
    def post(self, request):
        raw = request.COOKIES.get(settings.REFRESH_COOKIE_NAME)
        try:
            user, access = sessions.refresh_access_token(raw)
        except sessions.InvalidSession as exc:
            log_auth_event("token_refresh", request, status=str(exc))
            raise ServiceError("NOT_AUTHENTICATED", status_code=status.HTTP_401_UNAUTHORIZED)
        log_auth_event("token_refresh", request, user=user)
        return Response(
            {"success": True, "accessToken": access, "expiresIn": sessions.access_token_lifetime_seconds()}
        )


class LogoutView(APIView):
    """Logout by refresh cookie.

    A refresh token that still verifies but was already revoked is treated as
    a successful logout, so repeated calls keep returning success.
    """

    authentication_classes: list = []
    permission_classes = [AllowAny]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "logout"

    @extend_schema(
        summary="Log out",
        description="Revokes every refresh token of the user and clears the cookie.",
        tags=["Auth"],
        request=None,
        responses={200: OpenApiResponse(description="Logged out"), 401: OpenApiResponse(description="Unauthorized")},
    )
    def post(self, request):
        raw = request.COOKIES.get(settings.REFRESH_COOKIE_NAME)
        outcome = sessions.logout(raw)
        if outcome == LogoutOutcome.NOT_AUTHENTICATED:
            log_auth_event("logout", request, status="not_authenticated")
            response = Response({"code": "NOT_AUTHENTICATED"}, status=status.HTTP_401_UNAUTHORIZED)
        else:
            log_auth_event("logout", request, status=outcome.lower())
            response = Response({"success": True})
        sessions.clear_refresh_cookie(response)
        return response


class EmailChangeRequestView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "email_change"

    @extend_schema(
        summary="Request an email change",
        description=(
            "Requires the current password. Sends a one-time code to the new address.\n\n"
            "Errors: 400 VALIDATION_ERROR (bad email or wrong password), 404 USER_NOT_FOUND, 409 EMAIL_EXISTS."
        ),
        tags=["User Email"],
        request=EmailChangeRequestSerializer,
        responses={200: OpenApiResponse(description="Code sent")},
    )
    def post(self, request):
        serializer = EmailChangeRequestSerializer(data=request.data, context={"user": request.user})
        serializer.is_valid(raise_exception=True)
        try:
            result = email_change.request_email_change(
                user=request.user,
                new_email=serializer.validated_data["newEmail"],
                current_password=serializer.validated_data["currentPassword"],
            )
        except ServiceError as exc:
            log_auth_event("email_change_request", request, user=request.user, status=exc.code.lower())
            raise
        log_auth_event("email_change_request", request, user=request.user, status="sent")
        return Response(
            {"success": True, "emailMasked": result.email_masked, "expiresInSeconds": result.expires_in_seconds}
        )


class EmailChangeVerifyView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "email_change"

    @extend_schema(
        summary="Verify an email change",
        description=(
            "Applies the pending email change. All previously issued refresh tokens are revoked; the caller "
            "receives a new access token and refresh cookie.\n\n"
            "Errors: 400 OTP_EXPIRED / OTP_INVALID / VALIDATION_ERROR, 404 NO_PENDING_EMAIL_CHANGE, "
            "409 EMAIL_EXISTS, 423 OTP_LOCKED."
        ),
        tags=["User Email"],
        request=VerifyEmailChangeSerializer,
        responses={200: OpenApiResponse(description="Email updated")},
    )
    def post(self, request):
        serializer = VerifyEmailChangeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            result = email_change.verify_email_change(user=request.user, code=serializer.validated_data["otp"])
        except ServiceError as exc:
            log_auth_event("email_change_verify", request, user=request.user, status=exc.code.lower())
            raise
        response = Response(
            {"success": True, "message": "Email updated successfully", "newAccessToken": result.access_token}
        )
        sessions.set_refresh_cookie(response, result.refresh_token)
        log_auth_event("email_change_verify", request, user=result.user)
        return response


class EmailChangeResendView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "email_change"

    @extend_schema(
        summary="Resend the email change code",
        description="Errors: 404 NO_PENDING_EMAIL_CHANGE, 429 OTP_COOLDOWN / OTP_RESEND_LIMIT.",
        tags=["User Email"],
        request=None,
        responses={200: OpenApiResponse(description="Code re-sent")},
    )
    def post(self, request):
        try:
            expires_in = email_change.resend_email_change_otp(user=request.user)
        except ServiceError as exc:
            log_auth_event("email_change_resend", request, user=request.user, status=exc.code.lower())
            raise
        log_auth_event("email_change_resend", request, user=request.user, status="sent")
        return Response({"success": True, "expiresInSeconds": expires_in})


class EmailChangeCancelView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "email_change"

    @extend_schema(
        summary="Cancel the pending email change",
        tags=["User Email"],
        request=None,
        responses={200: OpenApiResponse(description="Cancelled")},
    )
    def delete(self, request):
        email_change.cancel_email_change(user=request.user)
        log_auth_event("email_change_cancel", request, user=request.user)
        return Response({"success": True})
