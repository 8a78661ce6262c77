import uuid

import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies: list = []

    operations = [
        migrations.CreateModel(
            name="Signup",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("full_name", models.CharField(max_length=200)),
                ("email", models.EmailField(max_length=254)),
                (
                    "zid",
                    models.CharField(
                        max_length=8,
                        validators=[
                            django.core.validators.RegexValidator(
                                "^z[0-9]{7}$", message="Use the zID format (e.g., z1234567)"
                            )
                        ],
                    ),
                ),
                ("password_hash", models.CharField(max_length=128)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("PENDING_VERIFICATION", "Pending verification"),
                            ("ACTIVE", "Active"),
                            ("EXPIRED", "Expired"),
                        ],
                        default="PENDING_VERIFICATION",
                        max_length=24,
                    ),
                ),
                ("email_verified_at", models.DateTimeField(blank=True, null=True)),
                ("resume_token_hash", models.CharField(blank=True, max_length=64, null=True)),
                ("resume_token_expires_at", models.DateTimeField(blank=True, null=True)),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "created_at"], name="signup_status_created_idx"),
                    models.Index(fields=["status", "updated_at"], name="signup_status_updated_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("status", "PENDING_VERIFICATION")),
                        fields=("email",),
                        name="uniq_pending_signup_email",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("status", "PENDING_VERIFICATION")),
                        fields=("zid",),
                        name="uniq_pending_signup_zid",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="SignupOtp",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("otp_hash", models.CharField(max_length=64)),
                ("expires_at", models.DateTimeField()),
                ("attempts", models.PositiveSmallIntegerField(default=0)),
                ("locked_at", models.DateTimeField(blank=True, null=True)),
                ("last_sent_at", models.DateTimeField()),
                ("resend_count", models.PositiveSmallIntegerField(default=0)),
                (
                    "signup",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="otp",
                        to="signups.signup",
                    ),
                ),
            ],
            options={
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="ResumeToken",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("token_hash", models.CharField(max_length=64, unique=True)),
                ("expires_at", models.DateTimeField()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "signup",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="resume_tokens",
                        to="signups.signup",
                    ),
                ),
            ],
            options={
                "indexes": [models.Index(fields=["expires_at"], name="resume_token_expires_idx")],
            },
        ),
    ]
