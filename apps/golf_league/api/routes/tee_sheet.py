"""Tee sheet route handlers: groups and slot assignments."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from golf_league.api.routes import service_error
from golf_league.database.db import get_db_session
from golf_league.services import assignment_service, group_service
from golf_league.api.auth_dependencies import RequestContext, require_admin, require_user
from golf_league.models.schemas import MovePlayerRequest, UpdateGroupTeeTimeRequest

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/events/{event_id}/tee-sheet")
async def get_tee_sheet(
    event_id: int,
    context: RequestContext = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Groups with their slots, each player's score to beat and the group score to beat."""
    try:
        return {
            "groups": await group_service.get_tee_sheet(session, event_id),
            "unassigned": await assignment_service.get_unassigned_players(session, event_id),
        }
    except Exception as e:
        raise service_error(e, "loading tee sheet")


@router.post("/api/events/{event_id}/tee-sheet/auto-assign")
async def auto_assign(
    event_id: int,
    context: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Clear all slots and fill groups in order with the playing players (admin)."""
    try:
        return await assignment_service.auto_assign(session, event_id)
    except Exception as e:
        raise service_error(e, "auto-assigning players")


@router.put("/api/events/{event_id}/tee-sheet/assignments")
async def move_player(
    event_id: int,
    request: MovePlayerRequest,
    context: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Put a player in a slot (admin).
    Their previous slot is cleared and anyone in the target slot becomes unassigned.
    """
    try:
        return await assignment_service.move_player(
            session, event_id, request.player_id, request.group_id, request.position
        )
    except Exception as e:
        raise service_error(e, "moving player")


@router.delete("/api/events/{event_id}/tee-sheet/assignments/{player_id}")
async def remove_from_slot(
    event_id: int,
    player_id: int,
    context: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        removed = await assignment_service.remove_from_slot(session, event_id, player_id)
        if not removed:
            raise HTTPException(status_code=404, detail="Player has no slot in this event")
        return {"success": True}
    except HTTPException:
        raise
    except Exception as e:
        raise service_error(e, "removing player from slot")


@router.put("/api/groups/{group_id}/tee-time")
async def update_group_tee_time(
    group_id: int,
    request: UpdateGroupTeeTimeRequest,
    context: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Change one group's tee time (admin)."""
    try:
        return await group_service.update_group_tee_time(session, group_id, request.tee_time)
    except Exception as e:
        raise service_error(e, "updating tee time")
