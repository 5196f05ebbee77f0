"""Player route handlers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from golf_league.api.routes import service_error
from golf_league.database.db import get_db_session
from golf_league.services import data_service
from golf_league.api.auth_dependencies import RequestContext, get_request_context_optional, require_admin
from golf_league.models.schemas import PlayerRequest, UpdatePlayerRequest

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/players")
async def list_players(
    active_only: bool = False,
    context: Optional[RequestContext] = Depends(get_request_context_optional),
    session: AsyncSession = Depends(get_db_session),
):
    """List players (public). Email and phone are only returned to admins."""
    try:
        include_contact = context is not None and context.is_admin
        return await data_service.list_players(session, active_only=active_only, include_contact=include_contact)
    except Exception as e:
        raise service_error(e, "listing players")


@router.get("/api/players/{player_id}")
async def get_player(
    player_id: int,
    context: Optional[RequestContext] = Depends(get_request_context_optional),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        include_contact = context is not None and context.is_admin
        player = await data_service.get_player(session, player_id, include_contact=include_contact)
        if not player:
            raise HTTPException(status_code=404, detail="Player not found")
        return player
    except HTTPException:
        raise
    except Exception as e:
        raise service_error(e, "getting player")


@router.post("/api/players")
async def create_player(
    request: PlayerRequest,
    context: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await data_service.create_player(session, **request.model_dump())
    except Exception as e:
        raise service_error(e, "creating player")


@router.put("/api/players/{player_id}")
async def update_player(
    player_id: int,
    request: UpdatePlayerRequest,
    context: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await data_service.update_player(session, player_id, **request.model_dump(exclude_unset=True))
    except Exception as e:
        raise service_error(e, "updating player")


@router.delete("/api/players/{player_id}")
async def delete_player(
    player_id: int,
    context: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Delete a player with no event history (admin)."""
    try:
        if not await data_service.delete_player(session, player_id):
            raise HTTPException(status_code=404, detail="Player not found")
        return {"success": True}
    except HTTPException:
        raise
    except Exception as e:
        raise service_error(e, "deleting player")
