"""
RSVP messaging pipeline.

Messages are queued as "pending" rows, then dispatched one at a time with a
fixed pause between sends. Players answer through a tokenised link; the first
answer is recorded and every later use of the token reports the existing
answer without changing anything.
"""

import os
import re
import asyncio
import logging
from typing import Callable, Dict, List, Optional, Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from dotenv import load_dotenv
from golf_league.database import db
from golf_league.database.models import (
    Event, EventPlayer, EventPlayerStatus, Player,
    RsvpTemplate, RsvpMessage, TemplateChannel, MessageChannel, MessageStatus,
)
from golf_league.services import email_service, sms_service, settings_service, event_access
from golf_league.services.errors import NotFoundError, TransportUnavailableError
from golf_league.utils.constants import DEFAULT_RSVP_SEND_DELAY_SECONDS, RSVP_RESPONSES
from golf_league.utils.datetime_utils import utcnow, format_event_date, format_tee_time

load_dotenv()

logger = logging.getLogger(__name__)

APP_URL = os.getenv("APP_URL", "http://localhost:8000").rstrip("/")
DEFAULT_EMAIL_SUBJECT = "Golf Event RSVP"
NO_CONTACT_MESSAGE = "No valid contact information for selected players."
TEMPLATE_VARIABLES = ("player_name", "event_date", "course_name", "first_tee_time", "holes", "rsvp_link")

# Delivery status moves forward only; pending is never re-entered
ALLOWED_STATUS_TRANSITIONS = {
    MessageStatus.PENDING: {MessageStatus.SENT, MessageStatus.FAILED},
    MessageStatus.SENT: {MessageStatus.DELIVERED, MessageStatus.BOUNCED, MessageStatus.FAILED},
    MessageStatus.DELIVERED: set(),
    MessageStatus.FAILED: set(),
    MessageStatus.BOUNCED: set(),
}

RESULT_SUCCESS = "success"
RESULT_ALREADY_RESPONDED = "already_responded"
RESULT_INVALID = "invalid"
RESULT_ERROR = "error"


#
# Templates
#

def render_template(text: str, variables: Dict[str, str]) -> str:
    """Replace each literal {{name}} with its value. No escaping; values are not re-scanned."""
    if not variables:
        return text
    pattern = re.compile("|".join(re.escape("{{" + key + "}}") for key in variables))
    return pattern.sub(lambda match: str(variables[match.group(0)[2:-2]]), text)


def rsvp_link(token: str) -> str:
    return f"{APP_URL}/rsvp/{token}"


def build_template_variables(event: Event, player: Player, token: str) -> Dict[str, str]:
    return {
        "player_name": player.name or "Player",
        "event_date": format_event_date(event.date),
        "course_name": event.course_name or "",
        "first_tee_time": format_tee_time(event.first_tee_time),
        "holes": str(event.holes or 18),
        "rsvp_link": rsvp_link(token),
    }


def template_to_dict(template: RsvpTemplate) -> Dict:
    return {
        "id": template.id,
        "name": template.name,
        "channel": template.channel.value,
        "subject": template.subject,
        "body": template.body,
        "is_default": template.is_default,
        "created_at": template.created_at.isoformat() if template.created_at else None,
    }


def _validate_template_fields(name: Optional[str], channel: TemplateChannel, subject: Optional[str], body: Optional[str]):
    if not name or not name.strip():
        raise ValueError("Template name is required")
    if not body or not body.strip():
        raise ValueError("Template body is required")
    if channel != TemplateChannel.SMS and not (subject or "").strip():
        raise ValueError("Subject is required for email templates")


def _parse_template_channel(value) -> TemplateChannel:
    try:
        return TemplateChannel(value)
    except ValueError:
        raise ValueError(f"Invalid channel '{value}'. Must be one of: email, sms, both")


async def _clear_other_defaults(session: AsyncSession, channel: TemplateChannel, keep_id: Optional[int]) -> None:
    result = await session.execute(
        select(RsvpTemplate).where(RsvpTemplate.channel == channel, RsvpTemplate.is_default.is_(True))
    )
    for template in result.scalars().all():
        if template.id != keep_id:
            template.is_default = False


async def list_templates(session: AsyncSession) -> List[Dict]:
    """Templates with defaults first, then by name."""
    result = await session.execute(
        select(RsvpTemplate).order_by(RsvpTemplate.is_default.desc(), RsvpTemplate.name.asc())
    )
    return [template_to_dict(t) for t in result.scalars().all()]


async def get_default_template(session: AsyncSession, channel) -> Optional[Dict]:
    """Default template for a channel, falling back to a default "both" template."""
    channel = _parse_template_channel(channel)
    for candidate in (channel, TemplateChannel.BOTH):
        result = await session.execute(
            select(RsvpTemplate)
            .where(RsvpTemplate.channel == candidate, RsvpTemplate.is_default.is_(True))
            .limit(1)
        )
        template = result.scalar_one_or_none()
        if template:
            return template_to_dict(template)
    return None


async def create_template(
    session: AsyncSession,
    name: str,
    channel,
    body: str,
    subject: Optional[str] = None,
    is_default: bool = False,
) -> Dict:
    """Create a template. SMS-only templates never store a subject."""
    channel = _parse_template_channel(channel)
    _validate_template_fields(name, channel, subject, body)
    template = RsvpTemplate(
        name=name.strip(),
        channel=channel,
        subject=None if channel == TemplateChannel.SMS else subject.strip(),
        body=body,
        is_default=is_default,
    )
    session.add(template)
    await session.flush()
    if is_default:
        await _clear_other_defaults(session, channel, template.id)
    await session.commit()
    await session.refresh(template)
    return template_to_dict(template)


async def update_template(session: AsyncSession, template_id: int, **fields) -> Dict:
    template = await session.get(RsvpTemplate, template_id)
    if template is None:
        raise NotFoundError("Template not found")

    channel = _parse_template_channel(fields.get("channel", template.channel))
    name = fields.get("name", template.name)
    body = fields.get("body", template.body)
    subject = fields.get("subject", template.subject)
    _validate_template_fields(name, channel, subject, body)

    template.name = name.strip()
    template.channel = channel
    template.body = body
    template.subject = None if channel == TemplateChannel.SMS else subject.strip()
    if "is_default" in fields:
        template.is_default = bool(fields["is_default"])
    if template.is_default:
        await _clear_other_defaults(session, channel, template.id)
    await session.commit()
    await session.refresh(template)
    return template_to_dict(template)


async def delete_template(session: AsyncSession, template_id: int) -> bool:
    """Delete a template that no message refers to."""
    template = await session.get(RsvpTemplate, template_id)
    if template is None:
        return False
    used = await session.execute(
        select(func.count()).select_from(RsvpMessage).where(RsvpMessage.template_id == template_id)
    )
    if used.scalar() > 0:
        raise ValueError("Template has been used for sent messages and cannot be deleted")
    await session.delete(template)
    await session.commit()
    return True


#
# Queue and dispatch
#

def _channels_for(channel: TemplateChannel) -> List[MessageChannel]:
    if channel == TemplateChannel.BOTH:
        return [MessageChannel.EMAIL, MessageChannel.SMS]
    return [MessageChannel(channel.value)]


async def queue_messages(
    session: AsyncSession,
    event_id: int,
    event_player_ids: Sequence[int],
    template_id: int,
    channel,
) -> List[int]:
    """
    Create one pending message per selected player and channel.

    Players without the contact field a channel needs are skipped for that
    channel. Each message carries the player's RSVP token.

    Returns:
        Ids of the queued messages

    Raises:
        ValueError: No players selected, unknown template, or nothing to send
    """
    channel = _parse_template_channel(channel)
    if not event_player_ids:
        raise ValueError("No players selected")
    template = await session.get(RsvpTemplate, template_id)
    if template is None:
        raise ValueError("Please select a template")
    await event_access.get_event(session, event_id)

    result = await session.execute(
        select(EventPlayer, Player)
        .join(Player, Player.id == EventPlayer.player_id)
        .where(EventPlayer.event_id == event_id, EventPlayer.id.in_(list(event_player_ids)))
        .order_by(EventPlayer.id.asc())
    )

    messages = []
    for event_player, player in result.all():
        for message_channel in _channels_for(channel):
            recipient = player.email if message_channel == MessageChannel.EMAIL else player.phone
            if not recipient or not recipient.strip():
                continue
            messages.append(RsvpMessage(
                event_player_id=event_player.id,
                template_id=template.id,
                channel=message_channel,
                recipient=recipient.strip(),
                status=MessageStatus.PENDING,
                response_token=event_player.rsvp_token,
            ))

    if not messages:
        raise ValueError(NO_CONTACT_MESSAGE)

    session.add_all(messages)
    await session.commit()
    logger.info(f"Queued {len(messages)} RSVP message(s) for event {event_id}")
    return [m.id for m in messages]


async def get_send_delay(session: Optional[AsyncSession] = None) -> float:
    return await settings_service.get_float_setting(
        session,
        "rsvp_send_delay_seconds",
        env_var="RSVP_SEND_DELAY_SECONDS",
        default=DEFAULT_RSVP_SEND_DELAY_SECONDS,
    )


async def _send_one(session: AsyncSession, message: RsvpMessage, template: RsvpTemplate, variables: Dict[str, str]):
    body = render_template(template.body, variables)
    if message.channel == MessageChannel.EMAIL:
        subject = render_template(template.subject, variables) if template.subject else DEFAULT_EMAIL_SUBJECT
        return await email_service.send_email(message.recipient, subject, body, session=session)
    return await sms_service.send_sms(message.recipient, body, session=session)


async def dispatch_messages(
    message_ids: Sequence[int],
    delay_seconds: Optional[float] = None,
    session_factory: Optional[Callable] = None,
) -> Dict:
    """
    Send pending messages one at a time, pausing between sends.

    A provider error marks the message failed; an unavailable transport
    leaves it pending. Nothing is retried.

    Returns:
        {"sent": n, "failed": n, "skipped": n, "errors": [...]}
    """
    factory = session_factory or db.AsyncSessionLocal
    results = {"sent": 0, "failed": 0, "skipped": 0, "errors": []}
    if not message_ids:
        return results

    async with factory() as session:
        if delay_seconds is None:
            delay_seconds = await get_send_delay(session)

        rows = await session.execute(
            select(RsvpMessage, RsvpTemplate, EventPlayer, Player, Event)
            .outerjoin(RsvpTemplate, RsvpTemplate.id == RsvpMessage.template_id)
            .join(EventPlayer, EventPlayer.id == RsvpMessage.event_player_id)
            .join(Player, Player.id == EventPlayer.player_id)
            .join(Event, Event.id == EventPlayer.event_id)
            .where(RsvpMessage.id.in_(list(message_ids)), RsvpMessage.status == MessageStatus.PENDING)
            .order_by(RsvpMessage.id.asc())
        )

        for i, (message, template, event_player, player, event) in enumerate(rows.all()):
            if i > 0 and delay_seconds:
                await asyncio.sleep(delay_seconds)

            if template is None:
                message.status = MessageStatus.FAILED
                message.error_message = "Missing template"
                results["failed"] += 1
                results["errors"].append(f"Message {message.id}: Missing template")
                await session.commit()
                continue

            variables = build_template_variables(event, player, message.response_token)
            try:
                outcome = await _send_one(session, message, template, variables)
            except TransportUnavailableError as e:
                logger.warning(f"Message {message.id} left pending: {e}")
                results["skipped"] += 1
                results["errors"].append(f"Message {message.id}: {e}")
                continue

            if outcome.success:
                now = utcnow()
                message.status = MessageStatus.SENT
                message.sent_at = now
                message.external_id = outcome.external_id
                message.error_message = None
                event_player.invite_sent_at = now
                results["sent"] += 1
            else:
                message.status = MessageStatus.FAILED
                message.error_message = outcome.error
                results["failed"] += 1
                results["errors"].append(f"Message {message.id}: {outcome.error}")
            await session.commit()

    logger.info(
        f"RSVP dispatch finished: {results['sent']} sent, {results['failed']} failed, {results['skipped']} skipped"
    )
    return results


async def dispatch_in_background(message_ids: Sequence[int]) -> None:
    """Background task entry point; dispatch problems are logged, never raised."""
    try:
        await dispatch_messages(message_ids)
    except Exception as e:
        logger.error(f"RSVP dispatch failed, messages remain pending: {e}", exc_info=True)


async def record_delivery_status(session: AsyncSession, message_id: int, status) -> Dict:
    """
    Apply provider delivery feedback to a message.

    Raises:
        ValueError: If the transition is not allowed (e.g. back to pending)
    """
    try:
        new_status = MessageStatus(status)
    except ValueError:
        raise ValueError(f"Invalid message status '{status}'")
    message = await session.get(RsvpMessage, message_id)
    if message is None:
        raise NotFoundError("Message not found")
    if new_status not in ALLOWED_STATUS_TRANSITIONS[message.status]:
        raise ValueError(f"Cannot change message status from {message.status.value} to {new_status.value}")
    message.status = new_status
    if new_status == MessageStatus.SENT and message.sent_at is None:
        message.sent_at = utcnow()
    await session.commit()
    return message_to_dict(message)


def message_to_dict(message: RsvpMessage, player_name: Optional[str] = None) -> Dict:
    return {
        "id": message.id,
        "event_player_id": message.event_player_id,
        "template_id": message.template_id,
        "player_name": player_name,
        "channel": message.channel.value,
        "recipient": message.recipient,
        "status": message.status.value,
        "external_id": message.external_id,
        "sent_at": message.sent_at.isoformat() if message.sent_at else None,
        "responded_at": message.responded_at.isoformat() if message.responded_at else None,
        "error_message": message.error_message,
        "created_at": message.created_at.isoformat() if message.created_at else None,
    }


async def get_message_history(session: AsyncSession, event_id: int) -> List[Dict]:
    """Messages for an event, newest first."""
    result = await session.execute(
        select(RsvpMessage, Player.name)
        .join(EventPlayer, EventPlayer.id == RsvpMessage.event_player_id)
        .join(Player, Player.id == EventPlayer.player_id)
        .where(EventPlayer.event_id == event_id)
        .order_by(RsvpMessage.created_at.desc(), RsvpMessage.id.desc())
    )
    return [message_to_dict(m, name) for m, name in result.all()]


#
# Inbound responses
#

def _event_details(event: Event) -> Dict:
    return {
        "course": event.course_name,
        "date": format_event_date(event.date, include_year=True),
        "teeTime": format_tee_time(event.first_tee_time),
        "holes": event.holes,
    }


async def resolve_rsvp(session: AsyncSession, token: Optional[str], response: Optional[str]) -> Dict:
    """
    Record a player's answer to an RSVP link.

    Returns a dict with "result" of success, already_responded, invalid or
    error. Only success changes anything; a token that has been used before
    returns the player's current status.
    """
    if not token or not response:
        return {"result": RESULT_ERROR, "message": "Missing token or response parameter"}
    if response not in RSVP_RESPONSES:
        return {"result": RESULT_ERROR, "message": "Invalid response. Must be 'yes' or 'no'"}

    found = await session.execute(
        select(EventPlayer, Player, Event)
        .join(Player, Player.id == EventPlayer.player_id)
        .join(Event, Event.id == EventPlayer.event_id)
        .where(EventPlayer.rsvp_token == token)
    )
    row = found.one_or_none()
    if row is None:
        logger.info("RSVP token lookup found no match")
        return {
            "result": RESULT_INVALID,
            "message": "This RSVP link is invalid or has expired. Please contact the event organizer.",
        }

    event_player, player, event = row
    details = _event_details(event)

    if event_player.responded_at is not None:
        return {
            "result": RESULT_ALREADY_RESPONDED,
            "status": event_player.status.value,
            "playerName": player.name,
            "message": (
                f"Hi {player.name}! You've already responded to this invite. "
                f"Your current status is: {event_player.status.value.upper()}."
            ),
            "eventDetails": details,
        }

    if event.is_locked:
        return {
            "result": RESULT_ERROR,
            "playerName": player.name,
            "message": "This event is locked. Please contact the event organizer.",
            "eventDetails": details,
        }

    try:
        now = utcnow()
        new_status = EventPlayerStatus(response)
        if event_access.leaves_tee_sheet(event_player.status, new_status):
            await event_access.release_slots(session, event.id, [event_player.player_id])
        event_player.status = new_status
        event_player.responded_at = now
        messages = await session.execute(
            select(RsvpMessage).where(RsvpMessage.event_player_id == event_player.id)
        )
        for message in messages.scalars().all():
            if message.responded_at is None:
                message.responded_at = now
        await session.commit()
    except Exception as e:
        await session.rollback()
        logger.error(f"Failed to record RSVP for event player {event_player.id}: {e}")
        return {"result": RESULT_ERROR, "message": "Failed to update your response"}

    logger.info(f"RSVP recorded for event player {event_player.id}: {response}")
    if response == "yes":
        message = f"Thanks {player.name}! We've got you down for the event. See you on the course!"
    else:
        message = f"Thanks for letting us know, {player.name}. Hope to see you at a future event!"
    return {
        "result": RESULT_SUCCESS,
        "status": response,
        "playerName": player.name,
        "message": message,
        "eventDetails": details,
    }
