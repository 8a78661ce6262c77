"""Signup API views.

Endpoints include:
- register: create a pending signup and send the verification code.
- verify-otp: verify the code, activate the account and start a session.
- resend-otp: send a fresh verification code.
- pending/email: correct the email of a pending signup.
"""

from common.exceptions import ServiceError
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView
from users import sessions
from users.logging import log_auth_event

from . import services
from .serializers import PendingEmailSerializer, RegisterSerializer, ResumeTokenSerializer, VerifyOtpSerializer
from .throttling import RateLimitHeadersMixin, RegistrationRateThrottle


class PublicSignupView(APIView):
    """Base for signup endpoints: no authentication, scoped throttling."""

    authentication_classes: list = []
    permission_classes = [AllowAny]
    throttle_classes = [ScopedRateThrottle]


class RegisterView(RateLimitHeadersMixin, PublicSignupView):
    throttle_classes = [RegistrationRateThrottle]
    throttle_scope = "register"

    @extend_schema(
        summary="Register",
        description=(
            "Creates a pending signup and emails a verification code. Rate limited per client address and "
            "email; every response carries X-RateLimit-Limit/Remaining/Reset.\n\n"
            "Errors: 400 VALIDATION_ERROR, 409 EMAIL_EXISTS / ZID_EXISTS / ZID_MISMATCH / PENDING_VERIFICATION_EXISTS "
            "(with a new resumeToken), 429 TOO_MANY_REQUESTS."
        ),
        tags=["Auth"],
        request=RegisterSerializer,
        responses={
            201: OpenApiResponse(description="Signup created"),
            409: OpenApiResponse(description="Conflict"),
            429: OpenApiResponse(description="Too many requests"),
        },
    )
    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        if not serializer.is_valid():
            log_auth_event("register", request, status="invalid")
            return Response(
                {"code": "VALIDATION_ERROR", "details": serializer.errors}, status=status.HTTP_400_BAD_REQUEST
            )
        data = serializer.validated_data
        try:
            result = services.register_signup(
                full_name=data["fullName"], zid=data["zid"], email=data["email"], password=data["password"]
            )
        except ServiceError as exc:
            log_auth_event("register", request, status=exc.code.lower())
            raise
        log_auth_event("register", request, user=result.signup)
        return Response(
            {"success": True, "userId": str(result.signup.pk), "resumeToken": result.resume_token},
            status=status.HTTP_201_CREATED,
        )


class VerifyOtpView(PublicSignupView):
    throttle_scope = "verify_otp"

    @extend_schema(
        summary="Verify signup code",
        description=(
            "Activates the account and starts a session (access token plus refresh cookie).\n\n"
            "Errors: 400 OTP_EXPIRED / OTP_INVALID / VALIDATION_ERROR, 401 RESUME_TOKEN_INVALID, "
            "404 PENDING_NOT_FOUND, 409 ALREADY_VERIFIED, 423 OTP_LOCKED."
        ),
        tags=["Auth"],
        request=VerifyOtpSerializer,
        responses={200: OpenApiResponse(description="Account verified")},
    )
    def post(self, request):
        serializer = VerifyOtpSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            user = services.verify_signup(
                resume_token=serializer.validated_data["resumeToken"], code=serializer.validated_data["otp"]
            )
        except ServiceError as exc:
            log_auth_event("verify_otp", request, status=exc.code.lower())
            raise
        response = Response(status=status.HTTP_200_OK)
        access = sessions.start_session(response, user)
        response.data = {
            "success": True,
            "message": "Account verified successfully",
            "userId": str(user.pk),
            "accessToken": access,
            "expiresIn": sessions.access_token_lifetime_seconds(),
        }
        log_auth_event("verify_otp", request, user=user)
        return response


class ResendOtpView(PublicSignupView):
    throttle_scope = "resend_otp"

    @extend_schema(
        summary="Resend signup code",
        description=(
            "Errors: 401 RESUME_TOKEN_INVALID, 404 PENDING_NOT_FOUND, 409 ALREADY_VERIFIED, "
            "429 OTP_COOLDOWN / OTP_RESEND_LIMIT."
        ),
        tags=["Auth"],
        request=ResumeTokenSerializer,
        responses={200: OpenApiResponse(description="Code re-sent")},
    )
    def post(self, request):
        serializer = ResumeTokenSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            expires_in = services.resend_signup_otp(resume_token=serializer.validated_data["resumeToken"])
        except ServiceError as exc:
            log_auth_event("resend_otp", request, status=exc.code.lower())
            raise
        log_auth_event("resend_otp", request, status="sent")
        return Response({"success": True, "expiresInSeconds": expires_in})


class PendingEmailView(PublicSignupView):
    throttle_scope = "pending_email"

    @extend_schema(
        summary="Correct the email of a pending signup",
        description=(
            "Revokes earlier resume tokens and codes, sends a new code to the new address and returns a new "
            "resume token.\n\n"
            "Errors: 401 RESUME_TOKEN_INVALID, 404 PENDING_NOT_FOUND, 409 EMAIL_EXISTS / ALREADY_VERIFIED."
        ),
        tags=["Auth"],
        request=PendingEmailSerializer,
        responses={200: OpenApiResponse(description="Email updated")},
    )
    def patch(self, request):
        serializer = PendingEmailSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            token = services.change_pending_email(
                resume_token=serializer.validated_data["resumeToken"],
                new_email=serializer.validated_data["newEmail"],
            )
        except ServiceError as exc:
            log_auth_event("pending_email", request, status=exc.code.lower())
            raise
        log_auth_event("pending_email", request)
        return Response({"success": True, "resumeToken": token})
