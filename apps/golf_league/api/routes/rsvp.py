"""RSVP route handlers: templates, sending invites, message history and schedules."""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from golf_league.api.routes import service_error
from golf_league.database.db import get_db_session
from golf_league.services import rsvp_service, rsvp_schedule_service
from golf_league.api.auth_dependencies import RequestContext, require_admin
from golf_league.models.schemas import (
    CreateRsvpScheduleRequest,
    MessageStatusRequest,
    RsvpTemplateRequest,
    SendRsvpRequest,
    UpdateRsvpTemplateRequest,
)

logger = logging.getLogger(__name__)
router = APIRouter()


# Templates


@router.get("/api/rsvp/templates")
async def list_templates(
    context: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Templates with defaults first."""
    try:
        return await rsvp_service.list_templates(session)
    except Exception as e:
        raise service_error(e, "listing templates")


@router.get("/api/rsvp/templates/variables")
async def list_template_variables(context: RequestContext = Depends(require_admin)):
    """Placeholders a template body or subject may use, as {{name}}."""
    return {"variables": list(rsvp_service.TEMPLATE_VARIABLES)}


@router.get("/api/rsvp/templates/default")
async def get_default_template(
    channel: str,
    context: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        template = await rsvp_service.get_default_template(session, channel)
        if template is None:
            raise HTTPException(status_code=404, detail="No default template for this channel")
        return template
    except HTTPException:
        raise
    except Exception as e:
        raise service_error(e, "getting default template")


@router.post("/api/rsvp/templates")
async def create_template(
    request: RsvpTemplateRequest,
    context: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await rsvp_service.create_template(
            session,
            name=request.name,
            channel=request.channel,
            body=request.body,
            subject=request.subject,
            is_default=request.is_default,
        )
    except Exception as e:
        raise service_error(e, "creating template")


@router.put("/api/rsvp/templates/{template_id}")
async def update_template(
    template_id: int,
    request: UpdateRsvpTemplateRequest,
    context: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await rsvp_service.update_template(
            session, template_id, **request.model_dump(exclude_unset=True)
        )
    except Exception as e:
        raise service_error(e, "updating template")


@router.delete("/api/rsvp/templates/{template_id}")
async def delete_template(
    template_id: int,
    context: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        if not await rsvp_service.delete_template(session, template_id):
            raise HTTPException(status_code=404, detail="Template not found")
        return {"success": True}
    except HTTPException:
        raise
    except Exception as e:
        raise service_error(e, "deleting template")


# Sending


@router.post("/api/events/{event_id}/rsvp/send")
async def send_rsvps(
    event_id: int,
    request: SendRsvpRequest,
    background_tasks: BackgroundTasks,
    context: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Queue RSVP messages and send them in the background (admin).

    Returns as soon as the messages are queued; progress shows up in the
    message history.
    """
    try:
        message_ids = await rsvp_service.queue_messages(
            session, event_id, request.event_player_ids, request.template_id, request.channel
        )
        background_tasks.add_task(rsvp_service.dispatch_in_background, message_ids)
        logger.info(f"{context.user_id} queued {len(message_ids)} RSVP message(s) for event {event_id}")
        return {"success": True, "queued": len(message_ids), "message_ids": message_ids}
    except Exception as e:
        raise service_error(e, "sending RSVPs")


@router.get("/api/events/{event_id}/rsvp/messages")
async def get_message_history(
    event_id: int,
    context: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Messages for the event, newest first."""
    try:
        return await rsvp_service.get_message_history(session, event_id)
    except Exception as e:
        raise service_error(e, "loading message history")


@router.put("/api/rsvp/messages/{message_id}/status")
async def record_delivery_status(
    message_id: int,
    request: MessageStatusRequest,
    context: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Apply delivery feedback (sent, delivered, failed, bounced) to a message."""
    try:
        return await rsvp_service.record_delivery_status(session, message_id, request.status)
    except Exception as e:
        raise service_error(e, "updating message status")


# Schedules


@router.get("/api/events/{event_id}/rsvp/schedules")
async def list_schedules(
    event_id: int,
    context: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await rsvp_schedule_service.list_schedules(session, event_id)
    except Exception as e:
        raise service_error(e, "listing schedules")


@router.post("/api/events/{event_id}/rsvp/schedules")
async def create_schedule(
    event_id: int,
    request: CreateRsvpScheduleRequest,
    context: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Schedule an RSVP send to invited players who have not been sent one (admin)."""
    try:
        return await rsvp_schedule_service.create_schedule(
            session,
            event_id,
            request.template_id,
            request.channel,
            request.scheduled_for,
            created_by=context.user_id,
        )
    except Exception as e:
        raise service_error(e, "creating schedule")


@router.delete("/api/rsvp/schedules/{schedule_id}")
async def delete_schedule(
    schedule_id: int,
    context: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        await rsvp_schedule_service.delete_schedule(session, schedule_id)
        return {"success": True}
    except Exception as e:
        raise service_error(e, "deleting schedule")
