"""
Transactional email through the Resend HTTP API.
"""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol

import requests

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"
REQUEST_TIMEOUT_SECONDS = 15

ACCOUNT_DELETION_SUBJECT = "Account Deletion Confirmation - PalmCosmic"

_ACCOUNT_DELETION_TEMPLATE = """
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px; background: linear-gradient(135deg, #667eea 0%, #764ba2 100%); color: white;">
  <div style="background: rgba(255, 255, 255, 0.1); border-radius: 15px; padding: 30px;">
    <h1 style="margin: 0 0 20px 0; font-size: 28px; text-align: center;">&#127775; PalmCosmic</h1>
    <h2 style="margin: 0 0 20px 0; font-size: 24px; text-align: center;">Account Deletion Confirmation</h2>
    <p style="font-size: 18px; line-height: 1.6;">Hello {display_name},</p>
    <p style="font-size: 16px; line-height: 1.6;">
      This email confirms that your PalmCosmic account has been successfully deleted.
      All your personal data, palm scan records, and account information have been
      permanently removed from our systems.
    </p>
    <div style="background: rgba(255, 255, 255, 0.2); padding: 20px; border-radius: 10px; margin: 25px 0;">
      <h3 style="margin: 0 0 15px 0; font-size: 18px;">What was deleted:</h3>
      <ul style="margin: 0; padding-left: 20px; line-height: 1.8;">
        <li>Your profile information</li>
        <li>All palm scan records and analysis results</li>
        <li>Your blog posts, comments and likes</li>
        <li>Your Astrobot conversations</li>
        <li>Any uploaded profile pictures</li>
      </ul>
    </div>
    <p style="font-size: 16px; line-height: 1.6;">
      If you decide to use PalmCosmic again in the future, you'll need to create a new account from scratch.
    </p>
    <p style="font-size: 16px; line-height: 1.6;">
      Thank you for using PalmCosmic. We're sorry to see you go and hope you had a
      positive experience with our palm reading service.
    </p>
    <p style="font-size: 14px; text-align: center; opacity: 0.8;">
      This is an automated confirmation email. Please do not reply to this message.
    </p>
  </div>
</div>
"""


class EmailDeliveryError(Exception):
    pass


class EmailSender(Protocol):
    def send(self, to: str, subject: str, html_body: str) -> None:
        ...


@dataclass
class InMemoryEmailSender:
    """Collects messages instead of sending them."""

    sent: list[dict] = field(default_factory=list)

    def send(self, to: str, subject: str, html_body: str) -> None:
        self.sent.append({"to": to, "subject": subject, "html": html_body})


@dataclass
class ResendEmailSender:
    api_key: str
    sender: str

    def send(self, to: str, subject: str, html_body: str) -> None:
        try:
            response = requests.post(
                RESEND_API_URL,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={
                    "from": self.sender,
                    "to": [to],
                    "subject": subject,
                    "html": html_body,
                },
                timeout=REQUEST_TIMEOUT_SECONDS,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise EmailDeliveryError(f"Failed to send email to {to}") from e
        logger.info("Email '%s' sent to %s", subject, to)


def display_name(email: str, full_name: Optional[str] = None) -> str:
    return full_name or (email or "").split("@")[0]


def render_account_deletion_email(email: str, full_name: Optional[str] = None) -> str:
    return _ACCOUNT_DELETION_TEMPLATE.format(
        display_name=html.escape(display_name(email, full_name))
    )


def send_account_deletion_email(
    sender: EmailSender, email: str, full_name: Optional[str] = None
) -> bool:
    """Sends the deletion confirmation. Delivery failures are logged, not raised."""
    if not email:
        return False
    try:
        sender.send(
            email,
            ACCOUNT_DELETION_SUBJECT,
            render_account_deletion_email(email, full_name),
        )
    except EmailDeliveryError:
        logger.exception("Account deletion email failed")
        return False
    return True
