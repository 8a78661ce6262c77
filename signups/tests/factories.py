import datetime as dt

import factory
from common.choices import AccountStatus
from common.otp import hash_code
from django.contrib.auth.hashers import make_password
from django.utils import timezone
from factory import Faker
from factory.django import DjangoModelFactory
from signups.models import Signup, SignupOtp
from users.tests.factories import KNOWN_CODE, PASSWORD


class SignupFactory(DjangoModelFactory):
    class Meta:
        model = Signup

    full_name = Faker("name")
    email = factory.Sequence(lambda n: f"signup{n}@example.com")
    zid = factory.Sequence(lambda n: f"z{5000000 + n:07d}")
    password_hash = factory.LazyFunction(lambda: make_password(PASSWORD))
    status = AccountStatus.PENDING_VERIFICATION


class SignupOtpFactory(DjangoModelFactory):
    """Signup challenge whose code is `KNOWN_CODE`, sent just now."""

    class Meta:
        model = SignupOtp

    signup = factory.SubFactory(SignupFactory)
    otp_hash = factory.LazyFunction(lambda: hash_code(KNOWN_CODE))
    expires_at = factory.LazyFunction(lambda: timezone.now() + dt.timedelta(minutes=10))
    last_sent_at = factory.LazyFunction(timezone.now)
    attempts = 0
    resend_count = 0
