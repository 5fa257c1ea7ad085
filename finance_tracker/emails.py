"""
emails.py
---------
Templated transactional email with a local retry loop.

When SMTP_HOST is not configured messages are written to the log instead
of being sent, which keeps development and test runs self-contained.
"""

import smtplib
import time
from dataclasses import dataclass
from email.message import EmailMessage

from finance_tracker import config
from finance_tracker.logger import get_logger

logger = get_logger(__name__)


class EmailDeliveryError(Exception):
    pass


@dataclass
class RenderedEmail:
    to: str
    subject: str
    html: str
    text: str


def _layout(title: str, body: str) -> str:
    return (
        "<!DOCTYPE html><html><body style=\"font-family: Arial, sans-serif; color: #333\">"
        f"<h2>{title}</h2>{body}"
        f"<p style=\"color: #888; font-size: 12px\">{config.APP_NAME}</p>"
        "</body></html>"
    )


# ----------------------
# Templates
# ----------------------

def verification_email(to: str, first_name: str, token: str) -> RenderedEmail:
    link = f"{config.CLIENT_BASE_URL}/verify-email?token={token}"
    text = (
        f"Hi {first_name},\n\nPlease confirm your email address for {config.APP_NAME}:\n{link}\n\n"
        f"This link expires in {config.EMAIL_VERIFICATION_HOURS} hours."
    )
    html = _layout(
        "Verify your email",
        f"<p>Hi {first_name},</p><p>Please confirm your email address.</p>"
        f"<p><a href=\"{link}\">Verify email</a></p>"
        f"<p>This link expires in {config.EMAIL_VERIFICATION_HOURS} hours.</p>",
    )
    return RenderedEmail(to, f"Verify your email for {config.APP_NAME}", html, text)


def password_reset_email(to: str, first_name: str, token: str) -> RenderedEmail:
    link = f"{config.CLIENT_BASE_URL}/reset-password?token={token}"
    text = (
        f"Hi {first_name},\n\nReset your password here:\n{link}\n\n"
        "This link expires in 1 hour. If you did not request a reset you can ignore this email."
    )
    html = _layout(
        "Reset your password",
        f"<p>Hi {first_name},</p><p><a href=\"{link}\">Reset password</a></p>"
        "<p>This link expires in 1 hour. If you did not request a reset you can ignore this email.</p>",
    )
    return RenderedEmail(to, f"Reset your {config.APP_NAME} password", html, text)


def otp_email(to: str, first_name: str, code: str) -> RenderedEmail:
    text = (
        f"Hi {first_name},\n\nYour login code is {code}.\n\n"
        f"It expires in {config.OTP_EXPIRE_MINUTES} minutes."
    )
    html = _layout(
        "Your login code",
        f"<p>Hi {first_name},</p><p style=\"font-size: 24px; letter-spacing: 4px\"><b>{code}</b></p>"
        f"<p>It expires in {config.OTP_EXPIRE_MINUTES} minutes.</p>",
    )
    return RenderedEmail(to, f"Your {config.APP_NAME} login code", html, text)


def welcome_email(to: str, first_name: str) -> RenderedEmail:
    login_url = f"{config.CLIENT_BASE_URL}/login"
    dashboard_url = f"{config.CLIENT_BASE_URL}/dashboard"
    text = (
        f"Hi {first_name},\n\nYour account is verified. Sign in at {login_url} "
        f"and head to {dashboard_url} to start tracking."
    )
    html = _layout(
        f"Welcome to {config.APP_NAME}",
        f"<p>Hi {first_name},</p><p>Your account is verified.</p>"
        f"<p><a href=\"{login_url}\">Sign in</a> or go to your <a href=\"{dashboard_url}\">dashboard</a>.</p>",
    )
    return RenderedEmail(to, f"Welcome to {config.APP_NAME}", html, text)


# ----------------------
# Delivery
# ----------------------

def _deliver(email: RenderedEmail) -> None:
    if not config.SMTP_HOST:
        logger.info(f"[console email] to={email.to} subject={email.subject!r}\n{email.text}")
        return

    message = EmailMessage()
    message["From"] = config.EMAIL_FROM
    message["To"] = email.to
    message["Reply-To"] = config.EMAIL_REPLY_TO
    message["Subject"] = email.subject
    message.set_content(email.text)
    message.add_alternative(email.html, subtype="html")

    with smtplib.SMTP(config.SMTP_HOST, config.SMTP_PORT, timeout=10) as smtp:
        smtp.ehlo()
        if smtp.has_extn("starttls"):
            smtp.starttls()
            smtp.ehlo()
        if config.SMTP_USER:
            smtp.login(config.SMTP_USER, config.SMTP_PASS)
        smtp.send_message(message)


def send_email(email: RenderedEmail) -> None:
    """
    Deliver an email, retrying transient failures.

    Args:
        email: The rendered message.

    Raises:
        EmailDeliveryError: when every attempt failed.
    """
    last_error = None
    for attempt in range(1, config.EMAIL_MAX_RETRIES + 1):
        try:
            _deliver(email)
            logger.info(f"Email '{email.subject}' sent to {email.to}")
            return
        except (smtplib.SMTPException, OSError) as e:
            last_error = e
            logger.warning(f"Email attempt {attempt}/{config.EMAIL_MAX_RETRIES} to {email.to} failed: {e}")
            if attempt < config.EMAIL_MAX_RETRIES:
                time.sleep(config.EMAIL_RETRY_DELAY_SECONDS)
    raise EmailDeliveryError(f"Could not deliver email to {email.to}: {last_error}")


def send_in_background(email: RenderedEmail) -> None:
    """BackgroundTasks entry point; failures are logged, never raised."""
    try:
        send_email(email)
    except EmailDeliveryError as e:
        logger.error(str(e))
