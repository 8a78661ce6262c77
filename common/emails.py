"""Outgoing one-time code emails.

Rendered inline and delivered with Django's `send_mail`, so the configured
EMAIL_BACKEND decides whether they reach SMTP or the console.
"""

from django.conf import settings
from django.core.mail import send_mail
from django.utils.html import escape

SIGNUP_SUBJECT = "Your Ignite verification code"
EMAIL_CHANGE_SUBJECT = "Confirm your new Ignite email"


def render_otp_email(full_name: str, code: str) -> tuple[str, str]:
    """Return (plain text, html) bodies for a verification code email."""
    minutes = int(getattr(settings, "OTP_TTL_SECONDS", 600)) // 60
    name = full_name or "there"
    text = (
        f"Hi {name},\n\n"
        f"Your one-time verification code is: {code}\n\n"
        f"This code expires in {minutes} minutes. If you didn't request this, you can ignore the email."
    )
    html = f"""
  <div style="font-family: system-ui, Arial, sans-serif; max-width: 520px;">
    <h2>Verify your email</h2>
    <p>Hi {escape(name)},</p>
    <p>Your one-time verification code is:</p>
    <div style="font-size: 28px; font-weight: 700; letter-spacing: 4px; margin: 12px 0;">{code}</div>
    <p>This code expires in {minutes} minutes. If you didn't request this, you can ignore the email.</p>
    <hr style="border:none;border-top:1px solid #eee;margin:24px 0;" />
    <p style="color:#777;font-size:12px;">Sent by Ignite</p>
  </div>"""
    return text, html


def send_otp_email(*, to: str, full_name: str, code: str, subject: str = SIGNUP_SUBJECT) -> None:
    """Deliver a one-time code to `to`."""
    text, html = render_otp_email(full_name, code)
    send_mail(
        subject=subject,
        message=text,
        from_email=None,
        recipient_list=[to],
        html_message=html,
    )
