"""
Email delivery via Resend.
Templates are written in MJML and compiled to responsive HTML before sending.
"""

import asyncio
import logging
from io import StringIO
from typing import Optional, Union

import resend
from mjml import mjml_to_html

from .config import EMAIL_FROM_ADDRESS, RESEND_API_KEY
from .email_templates import (
    appointment_confirmed_client_template,
    inquiry_received_template,
    new_appointment_consultant_template,
    password_reset_template,
)

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


class EmailDeliveryError(Exception):
    pass


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    try:
        result = mjml_to_html(StringIO(mjml_content))
    except Exception as e:
        logger.error(f"MJML compilation error: {e}")
        raise EmailDeliveryError(f"Failed to compile MJML template: {e}") from e

    # mjml_to_html returns a dict-like result with "html" and "errors" keys
    errors = result.get("errors") if isinstance(result, dict) else getattr(result, "errors", None)
    if errors:
        logger.warning(f"MJML compilation warnings: {errors}")
    if isinstance(result, dict):
        return result.get("html", "")
    return getattr(result, "html", str(result))


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    mjml_content: str,
    from_address: Optional[str] = None,
) -> dict:
    """
    Send an email through Resend.

    Args:
        to: Recipient email(s)
        subject: Email subject line
        mjml_content: MJML template content (will be compiled to HTML)
        from_address: Optional custom from address

    Returns:
        Resend response dict
    """
    if not RESEND_API_KEY:
        logger.error("❌ No email service configured - RESEND_API_KEY missing")
        raise EmailDeliveryError("Email service not configured")

    html_content = compile_mjml_to_html(mjml_content)
    recipients = [to] if isinstance(to, str) else to

    email_data = {
        "from": from_address or EMAIL_FROM_ADDRESS,
        "to": recipients,
        "subject": subject,
        "html": html_content,
    }

    try:
        logger.info(f"📧 Sending email via Resend to: {recipients}")
        # resend is synchronous; keep it off the event loop
        response = await asyncio.to_thread(resend.Emails.send, email_data)
    except Exception as e:
        logger.error(f"❌ Email send error to {recipients}: {e}")
        raise EmailDeliveryError(f"Failed to send email: {e}") from e

    logger.info(f"✅ Email sent successfully via Resend: {response}")
    return response


# ============================================
# Pre-built emails for workflow events
# ============================================


async def send_inquiry_received_email(to: str, client_name: str, appointment_date: str, appointment_time: str) -> dict:
    return await send_email(
        to=to,
        subject="We've received your consultation request",
        mjml_content=inquiry_received_template(client_name, appointment_date, appointment_time),
    )


async def send_appointment_confirmed_to_client(
    to: str,
    client_name: str,
    consultant_name: str,
    appointment_date: str,
    appointment_time: str,
    meeting_link: str,
    temporary_password: str,
) -> dict:
    """Client confirmation carrying the one-time credentials of the new account"""
    return await send_email(
        to=to,
        subject="Your consultation is confirmed",
        mjml_content=appointment_confirmed_client_template(
            client_name=client_name,
            consultant_name=consultant_name,
            appointment_date=appointment_date,
            appointment_time=appointment_time,
            meeting_link=meeting_link,
            login_email=to,
            temporary_password=temporary_password,
        ),
    )


async def send_new_appointment_to_consultant(
    to: str,
    consultant_name: str,
    client_name: str,
    client_email: str,
    appointment_date: str,
    appointment_time: str,
    meeting_link: str,
) -> dict:
    return await send_email(
        to=to,
        subject=f"New appointment: {client_name}",
        mjml_content=new_appointment_consultant_template(
            consultant_name=consultant_name,
            client_name=client_name,
            client_email=client_email,
            appointment_date=appointment_date,
            appointment_time=appointment_time,
            meeting_link=meeting_link,
        ),
    )


async def send_password_reset_email(to: str, reset_link: str) -> dict:
    return await send_email(
        to=to,
        subject="Reset your password",
        mjml_content=password_reset_template(reset_link),
    )
