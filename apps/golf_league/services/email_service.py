"""
Email transport using SendGrid for RSVP messages.
"""

import os
import logging
from dataclasses import dataclass
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail, Email, To, Content
from dotenv import load_dotenv
from golf_league.services import settings_service
from golf_league.services.errors import TransportUnavailableError

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


# SendGrid Configuration
SENDGRID_API_KEY = os.getenv("SENDGRID_API_KEY")
SENDGRID_FROM_EMAIL = os.getenv("SENDGRID_FROM_EMAIL", "noreply@golfleague.app")
SENDGRID_FROM_NAME = os.getenv("SENDGRID_FROM_NAME", "Golf League")
ENABLE_EMAIL = settings_service.get_bool_env("ENABLE_EMAIL", default=True)


@dataclass
class TransportResult:
    """Outcome of handing one message to a provider."""

    success: bool
    external_id: Optional[str] = None
    error: Optional[str] = None


async def is_enabled(session: Optional[AsyncSession] = None) -> bool:
    """
    Check if email is enabled, checking database first.

    Args:
        session: Optional database session for checking database settings

    Returns:
        True if email is enabled, False otherwise
    """
    try:
        return await settings_service.get_bool_setting(
            session, "enable_email", env_var="ENABLE_EMAIL", default=True
        )
    except Exception as e:
        logger.warning(f"Error getting ENABLE_EMAIL from settings, using default: {e}")
        return ENABLE_EMAIL


async def send_email(
    to: str,
    subject: str,
    body: str,
    session: Optional[AsyncSession] = None,
) -> TransportResult:
    """
    Send a plain-text email via SendGrid.

    Args:
        to: Recipient address
        subject: Subject line
        body: Plain-text body
        session: Optional database session for checking database settings

    Returns:
        TransportResult with the SendGrid message id on success

    Raises:
        TransportUnavailableError: If email is disabled or SendGrid is not configured
    """
    if not await is_enabled(session):
        raise TransportUnavailableError("Email sending is disabled")

    if not SENDGRID_API_KEY:
        raise TransportUnavailableError("SENDGRID_API_KEY not configured")

    try:
        message = Mail(
            from_email=Email(SENDGRID_FROM_EMAIL, SENDGRID_FROM_NAME),
            to_emails=To(to),
            subject=subject,
            plain_text_content=Content("text/plain", body),
        )

        sg = SendGridAPIClient(SENDGRID_API_KEY)
        response = sg.send(message)

        if response.status_code >= 200 and response.status_code < 300:
            external_id = None
            if response.headers:
                external_id = response.headers.get("X-Message-Id")
            logger.info(f"RSVP email sent to {to}")
            return TransportResult(success=True, external_id=external_id)

        logger.error(f"SendGrid returned status {response.status_code}: {response.body}")
        return TransportResult(success=False, error=f"SendGrid returned status {response.status_code}")

    except Exception as e:
        logger.error(f"Failed to send email to {to}: {str(e)}")
        return TransportResult(success=False, error=str(e))
