"""Player team route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from golf_league.api.routes import service_error
from golf_league.database.db import get_db_session
from golf_league.services import data_service
from golf_league.api.auth_dependencies import RequestContext, require_admin, require_user
from golf_league.models.schemas import TeamRequest, UpdateTeamRequest

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/teams")
async def list_teams(
    active_only: bool = False,
    context: RequestContext = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await data_service.list_teams(session, active_only=active_only)
    except Exception as e:
        raise service_error(e, "listing teams")


@router.post("/api/teams")
async def create_team(
    request: TeamRequest,
    context: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Create a team (admin). Body may include member_ids."""
    try:
        return await data_service.create_team(session, **request.model_dump())
    except Exception as e:
        raise service_error(e, "creating team")


@router.put("/api/teams/{team_id}")
async def update_team(
    team_id: int,
    request: UpdateTeamRequest,
    context: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Update a team (admin). Passing member_ids replaces the member set."""
    try:
        return await data_service.update_team(session, team_id, **request.model_dump(exclude_unset=True))
    except Exception as e:
        raise service_error(e, "updating team")


@router.delete("/api/teams/{team_id}")
async def delete_team(
    team_id: int,
    context: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        if not await data_service.delete_team(session, team_id):
            raise HTTPException(status_code=404, detail="Team not found")
        return {"success": True}
    except HTTPException:
        raise
    except Exception as e:
        raise service_error(e, "deleting team")
