"""Event route handlers: create, edit, lock and delete events."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from golf_league.api.routes import service_error
from golf_league.database.db import get_db_session
from golf_league.services import event_service
from golf_league.api.auth_dependencies import RequestContext, require_admin, require_user
from golf_league.models.schemas import CreateEventRequest, UpdateEventRequest, EventLockRequest

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/events")
async def list_events(
    upcoming: bool = False,
    context: RequestContext = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """List events newest first, or upcoming events soonest first."""
    try:
        return await event_service.list_events(session, upcoming_only=upcoming)
    except Exception as e:
        raise service_error(e, "listing events")


@router.post("/api/events")
async def create_event(
    request: CreateEventRequest,
    context: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Create an event (admin).

    Groups are generated and the active roster is invited. If a later step
    fails the response names it; the steps before it are kept.
    """
    try:
        event = await event_service.create_event(session, **request.model_dump())
        logger.info(f"Event {event['id']} created by {context.user_id}")
        return event
    except Exception as e:
        raise service_error(e, "creating event")


@router.get("/api/events/{event_id}")
async def get_event(
    event_id: int,
    context: RequestContext = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Get an event with per-status player counts."""
    try:
        return await event_service.get_event(session, event_id)
    except Exception as e:
        raise service_error(e, "getting event")


@router.put("/api/events/{event_id}")
async def update_event(
    event_id: int,
    request: UpdateEventRequest,
    context: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Update event fields (admin). Existing groups are not regenerated."""
    try:
        return await event_service.update_event(session, event_id, **request.model_dump(exclude_unset=True))
    except Exception as e:
        raise service_error(e, "updating event")


@router.delete("/api/events/{event_id}")
async def delete_event(
    event_id: int,
    context: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Delete an event and everything attached to it (admin)."""
    try:
        deleted = await event_service.delete_event(session, event_id)
        if not deleted:
            raise HTTPException(status_code=404, detail="Event not found")
        return {"success": True}
    except HTTPException:
        raise
    except Exception as e:
        raise service_error(e, "deleting event")


@router.put("/api/events/{event_id}/lock")
async def set_event_lock(
    event_id: int,
    request: EventLockRequest,
    context: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Lock or unlock an event (admin). A locked event refuses roster and tee sheet changes."""
    try:
        return await event_service.set_event_lock(session, event_id, request.locked)
    except Exception as e:
        raise service_error(e, "locking event")
