"""Event roster route handlers: who is in an event and their RSVP status."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from golf_league.api.routes import service_error
from golf_league.database.db import get_db_session
from golf_league.services import roster_service
from golf_league.api.auth_dependencies import RequestContext, require_admin, require_user
from golf_league.models.schemas import (
    AddEventPlayerRequest,
    BulkStatusRequest,
    UpdateEventPlayerStatusRequest,
)

logger = logging.getLogger(__name__)
router = APIRouter()


def _status_payload(event_player) -> dict:
    return {
        "id": event_player.id,
        "event_id": event_player.event_id,
        "player_id": event_player.player_id,
        "status": event_player.status.value,
        "note": event_player.note,
    }


@router.get("/api/events/{event_id}/players")
async def list_event_players(
    event_id: int,
    status: Optional[str] = None,
    sort_by: str = "status",
    context: RequestContext = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """
    List the event's players.

    Query: status filters to one status; sort_by is "status" (default) or "name".
    Contact fields are only included for admins.
    """
    try:
        return await roster_service.list_event_players(
            session, event_id, status=status, sort_by=sort_by, include_contact=context.is_admin
        )
    except Exception as e:
        raise service_error(e, "listing event players")


@router.get("/api/events/{event_id}/players/counts")
async def get_roster_counts(
    event_id: int,
    context: RequestContext = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await roster_service.get_roster_counts(session, event_id)
    except Exception as e:
        raise service_error(e, "counting event players")


@router.post("/api/events/{event_id}/players")
async def add_event_player(
    event_id: int,
    request: AddEventPlayerRequest,
    context: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Add one player to the event (admin)."""
    try:
        event_player = await roster_service.add_player(session, event_id, request.player_id, request.status)
        return _status_payload(event_player)
    except Exception as e:
        raise service_error(e, "adding player to event")


@router.put("/api/event-players/{event_player_id}/status")
async def update_event_player_status(
    event_player_id: int,
    request: UpdateEventPlayerStatusRequest,
    context: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Set a player's status (admin).
    Setting "yes" when the event is full returns 409 and leaves the status unchanged.
    """
    try:
        event_player = await roster_service.update_player_status(
            session, event_player_id, request.status, note=request.note
        )
        return _status_payload(event_player)
    except Exception as e:
        raise service_error(e, "updating player status")


@router.put("/api/events/{event_id}/players/status")
async def bulk_update_status(
    event_id: int,
    request: BulkStatusRequest,
    context: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Set one status for several players (admin). Not capacity checked."""
    try:
        updated = await roster_service.bulk_update_status(
            session, event_id, request.event_player_ids, request.status
        )
        return {"success": True, "updated": updated}
    except Exception as e:
        raise service_error(e, "updating player statuses")


@router.delete("/api/event-players/{event_player_id}")
async def remove_event_player(
    event_player_id: int,
    context: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Remove a player from the event along with their slot and RSVP messages (admin)."""
    try:
        await roster_service.remove_player(session, event_player_id)
        return {"success": True}
    except Exception as e:
        raise service_error(e, "removing player from event")


@router.post("/api/events/{event_id}/players/from-previous")
async def add_from_previous_event(
    event_id: int,
    context: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Copy the confirmed players of the most recent other event as "yes" (admin)."""
    try:
        added = await roster_service.add_from_previous_event(session, event_id)
        return {"success": True, "added": added}
    except Exception as e:
        raise service_error(e, "adding players from previous event")


@router.post("/api/events/{event_id}/players/active-roster")
async def add_active_roster(
    event_id: int,
    context: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Invite every active player not already in the event (admin)."""
    try:
        added = await roster_service.add_active_roster(session, event_id)
        return {"success": True, "added": added}
    except Exception as e:
        raise service_error(e, "adding active roster")


@router.post("/api/events/{event_id}/players/promote")
async def promote_confirmed_players(
    event_id: int,
    context: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Move every "yes" player to "playing" (admin)."""
    try:
        promoted = await roster_service.promote_confirmed_players(session, event_id)
        return {"success": True, "promoted": promoted}
    except Exception as e:
        raise service_error(e, "promoting players")
