"""
SMS transport using Twilio for RSVP messages.
"""

import os
import logging
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from twilio.rest import Client
from twilio.base.exceptions import TwilioRestException
from dotenv import load_dotenv
from golf_league.services import auth_service, settings_service
from golf_league.services.email_service import TransportResult
from golf_league.services.errors import TransportUnavailableError

load_dotenv()

logger = logging.getLogger(__name__)

# Twilio Configuration
TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN")
TWILIO_PHONE_NUMBER = os.getenv("TWILIO_PHONE_NUMBER")
ENABLE_SMS = settings_service.get_bool_env("ENABLE_SMS", default=True)


async def is_enabled(session: Optional[AsyncSession] = None) -> bool:
    """Check if SMS is enabled, checking database first."""
    try:
        return await settings_service.get_bool_setting(
            session, "enable_sms", env_var="ENABLE_SMS", default=True
        )
    except Exception as e:
        logger.warning(f"Error getting ENABLE_SMS from settings, using default: {e}")
        return ENABLE_SMS


def _get_client() -> Client:
    return Client(TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN)


async def send_sms(
    to: str,
    body: str,
    session: Optional[AsyncSession] = None,
) -> TransportResult:
    """
    Send an SMS via Twilio.

    The recipient is normalised to E.164 (US default region) before sending.

    Raises:
        TransportUnavailableError: If SMS is disabled or Twilio is not configured
    """
    if not await is_enabled(session):
        raise TransportUnavailableError("SMS sending is disabled")

    if not (TWILIO_ACCOUNT_SID and TWILIO_AUTH_TOKEN and TWILIO_PHONE_NUMBER):
        raise TransportUnavailableError("Twilio credentials not configured")

    try:
        to_number = auth_service.normalize_phone_number(to)
    except ValueError as e:
        return TransportResult(success=False, error=str(e))

    try:
        message = _get_client().messages.create(
            body=body,
            from_=TWILIO_PHONE_NUMBER,
            to=to_number,
        )
        logger.info(f"RSVP SMS sent, sid={message.sid}")
        return TransportResult(success=True, external_id=message.sid)
    except TwilioRestException as e:
        logger.error(f"Twilio error sending SMS: {e.msg}")
        return TransportResult(success=False, error=e.msg)
    except Exception as e:
        logger.error(f"Failed to send SMS: {str(e)}")
        return TransportResult(success=False, error=str(e))
