"""
MJML email templates for the FNA advisory service.
All templates share get_base_template(); user-supplied values are HTML-escaped.
"""

from html import escape
from typing import Optional

from .config import FRONTEND_URL

THEME = {
    "primary": "#2563eb",
    "primary_dark": "#1d4ed8",
    "primary_light": "#dbeafe",
    "background": "#f8fafc",
    "card_bg": "#ffffff",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
    "success": "#16a34a",
    "warning": "#f59e0b",
}

BRAND_NAME = "FNA Advisory"


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section padding="20px 0">
          <mj-column>
            <mj-button
              href="{cta_url}"
              background-color="{THEME['primary']}"
              color="#ffffff"
              font-weight="600"
              border-radius="8px"
              padding="18px 40px"
              font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', 'Noto Sans TC', Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="{THEME['card_bg']}" padding="32px 40px 0 40px">
          <mj-column>
            <mj-text font-size="20px" font-weight="700" color="{THEME['primary_dark']}" padding="0 0 24px 0">
              {BRAND_NAME}
            </mj-text>
            <mj-divider border-color="{THEME['border']}" border-width="1px" padding="0 0 32px 0" />
          </mj-column>
        </mj-section>

        <mj-section background-color="{THEME['card_bg']}" padding="0 40px 48px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" line-height="1.3" padding="0 0 16px 0">
              {title}
            </mj-text>

            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="#94a3b8" padding="0">
              {BRAND_NAME} - this is an automated message, please do not reply.
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def _detail_row(label: str, value: str) -> str:
    return f"""
    <mj-text padding="4px 0" color="{THEME['text_primary']}">
      <strong>{label}:</strong> {value}
    </mj-text>
    """


def inquiry_received_template(client_name: str, appointment_date: str, appointment_time: str) -> str:
    """Acknowledgement sent to the prospect right after they submit an inquiry"""
    content = f"""
    <mj-text>
      Hi {escape(client_name)},
    </mj-text>

    <mj-text>
      Thank you for your interest in a financial needs analysis. We have received your request
      and a consultant will confirm your appointment shortly.
    </mj-text>

    <mj-text align="center" font-size="16px" color="{THEME['text_primary']}" padding="20px 0">
      📅 {appointment_date} &nbsp; ⏰ {appointment_time}
    </mj-text>
    """

    return get_base_template(
        title="We've Received Your Request",
        preview_text="Your consultation request has been received",
        content_sections=content,
    )


def appointment_confirmed_client_template(
    client_name: str,
    consultant_name: str,
    appointment_date: str,
    appointment_time: str,
    meeting_link: str,
    login_email: str,
    temporary_password: str,
) -> str:
    """Confirmation for the client, including the credentials of the account created for them"""
    content = f"""
    <mj-text>
      Hi {escape(client_name)},
    </mj-text>

    <mj-text>
      Your consultation with <strong>{escape(consultant_name)}</strong> is confirmed.
    </mj-text>

    <mj-text align="center" font-size="18px" font-weight="600" color="{THEME['success']}" padding="20px 0 8px 0">
      ✓ Appointment Confirmed
    </mj-text>
    <mj-text align="center" font-size="16px" color="{THEME['text_primary']}" padding="0 0 20px 0">
      📅 {appointment_date} &nbsp; ⏰ {appointment_time}
    </mj-text>

    {_detail_row("Meeting link", f'<a href="{meeting_link}" style="color: {THEME["primary"]};">{meeting_link}</a>')}

    <mj-text padding="24px 0 8px 0" font-weight="600" color="{THEME['text_primary']}">
      Your account
    </mj-text>
    {_detail_row("Email", escape(login_email))}
    {_detail_row("Temporary password", f"<code>{escape(temporary_password)}</code>")}

    <mj-text font-size="14px" color="{THEME['warning']}" padding="16px 0 0 0">
      Please sign in and change your password after your first login.
    </mj-text>
    """

    return get_base_template(
        title="Your Appointment is Confirmed 🎉",
        preview_text=f"Consultation confirmed for {appointment_date}",
        content_sections=content,
        cta_url=f"{FRONTEND_URL}/auth",
        cta_label="Sign In",
    )


def new_appointment_consultant_template(
    consultant_name: str,
    client_name: str,
    client_email: str,
    appointment_date: str,
    appointment_time: str,
    meeting_link: str,
) -> str:
    """Notification for the consultant who accepted an inquiry"""
    content = f"""
    <mj-text>
      Hi {escape(consultant_name)},
    </mj-text>

    <mj-text>
      You accepted a consultation request. The client's account has been created.
    </mj-text>

    {_detail_row("Client", escape(client_name))}
    {_detail_row("Email", escape(client_email))}
    {_detail_row("Date", appointment_date)}
    {_detail_row("Time", appointment_time)}
    {_detail_row("Meeting link", f'<a href="{meeting_link}" style="color: {THEME["primary"]};">{meeting_link}</a>')}
    """

    return get_base_template(
        title="New Appointment Scheduled",
        preview_text=f"Appointment with {escape(client_name)} on {appointment_date}",
        content_sections=content,
        cta_url=f"{FRONTEND_URL}/consultant/dashboard",
        cta_label="Open Dashboard",
    )


def password_reset_template(reset_link: str) -> str:
    content = """
    <mj-text>
      We received a request to reset your password. Click the button below to choose a new one.
    </mj-text>

    <mj-text font-size="14px" color="#64748b">
      If you didn't request this, you can safely ignore this email.
    </mj-text>
    """

    return get_base_template(
        title="Reset Your Password",
        preview_text=f"Reset your {BRAND_NAME} password",
        content_sections=content,
        cta_url=reset_link,
        cta_label="Reset Password",
    )
