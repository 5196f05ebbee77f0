"""Scoring and statistics route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from golf_league.api.routes import service_error
from golf_league.database.db import get_db_session
from golf_league.services import scoring_service
from golf_league.api.auth_dependencies import RequestContext, require_scorer_or_admin, require_user
from golf_league.models.schemas import SaveScoresRequest, UpdateScoreRequest

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/events/{event_id}/scores")
async def get_event_scores(
    event_id: int,
    context: RequestContext = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await scoring_service.get_event_scores(session, event_id)
    except Exception as e:
        raise service_error(e, "getting event scores")


@router.post("/api/events/{event_id}/scores")
async def save_event_scores(
    event_id: int,
    request: SaveScoresRequest,
    context: RequestContext = Depends(require_scorer_or_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Save points for playing players (scorer or admin).
    Body: {scores: [{player_id, points, notes?}]}
    """
    try:
        return await scoring_service.save_event_scores(
            session, event_id, [entry.model_dump() for entry in request.scores]
        )
    except Exception as e:
        raise service_error(e, "saving scores")


@router.put("/api/scores/{score_id}")
async def update_round_score(
    score_id: int,
    request: UpdateScoreRequest,
    context: RequestContext = Depends(require_scorer_or_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await scoring_service.update_round_score(session, score_id, request.points, request.notes)
    except Exception as e:
        raise service_error(e, "updating score")


@router.delete("/api/scores/{score_id}")
async def delete_round_score(
    score_id: int,
    context: RequestContext = Depends(require_scorer_or_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        if not await scoring_service.delete_round_score(session, score_id):
            raise HTTPException(status_code=404, detail="Score not found")
        return {"success": True}
    except HTTPException:
        raise
    except Exception as e:
        raise service_error(e, "deleting score")


@router.get("/api/stats/players")
async def get_player_statistics(
    context: RequestContext = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Leaderboard ranked by six-round rolling average. Fails whole if any player's stats fail."""
    try:
        return await scoring_service.get_player_statistics(session)
    except Exception as e:
        raise service_error(e, "loading player statistics")


@router.get("/api/stats/teams")
async def get_team_standings(
    context: RequestContext = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await scoring_service.get_team_standings(session)
    except Exception as e:
        raise service_error(e, "loading team standings")


@router.get("/api/stats/leader")
async def get_points_leader(
    context: RequestContext = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return {"leader": await scoring_service.get_points_leader(session)}
    except Exception as e:
        raise service_error(e, "loading points leader")


@router.get("/api/players/{player_id}/scores")
async def get_player_score_history(
    player_id: int,
    context: RequestContext = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await scoring_service.get_player_score_history(session, player_id)
    except Exception as e:
        raise service_error(e, "loading player scores")
