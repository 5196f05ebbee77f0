"""
Scoring aggregator: rolling averages, score to beat, rankings and round scores.

A player's average is the mean of their ROLLING_WINDOW most recently created
round scores. Until a player has a full window of rounds their score to beat
is shown as "New".
"""

import asyncio
import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, delete
from golf_league.database import db
from golf_league.database.models import (
    Player, PlayerTeam, PlayerTeamMember, Event, EventPlayer, EventPlayerStatus, RoundScore,
)
from golf_league.services.errors import AggregateFetchError, NotFoundError
from golf_league.utils.constants import ROLLING_WINDOW, NEW_PLAYER_LABEL

logger = logging.getLogger(__name__)


@dataclass
class PlayerAverage:
    """Rolling average for one player. rounds_played counts all rounds, not just the window."""

    player_id: int
    average: float = 0.0
    rounds_played: int = 0
    last_points: Optional[float] = None

    @property
    def is_new(self) -> bool:
        return self.rounds_played < ROLLING_WINDOW


@dataclass
class FanOutResult:
    """Outcome of a concurrent per-player fetch.

    Partial results are never returned as if they were complete: callers use
    unwrap(), which raises when any sub-fetch failed.
    """

    results: Dict[int, PlayerAverage] = field(default_factory=dict)
    errors: Dict[int, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    def unwrap(self) -> Dict[int, PlayerAverage]:
        if self.errors:
            raise AggregateFetchError(sorted(self.errors), self.errors)
        return self.results


def round_half_up(value: float) -> int:
    """Round to the nearest integer, .5 away from zero for positive values (7.5 -> 8)."""
    return int(math.floor(value + 0.5))


def compute_player_average(
    player_id: int,
    recent_points: Sequence[float],
    rounds_played: Optional[int] = None,
) -> PlayerAverage:
    """
    Average the most recent points for a player.

    Args:
        player_id: Player id
        recent_points: Points ordered newest first; only the first ROLLING_WINDOW are used
        rounds_played: Total rounds on record (defaults to len(recent_points))
    """
    window = list(recent_points)[:ROLLING_WINDOW]
    total_rounds = len(recent_points) if rounds_played is None else rounds_played
    if not window:
        return PlayerAverage(player_id=player_id, average=0.0, rounds_played=total_rounds)
    return PlayerAverage(
        player_id=player_id,
        average=sum(window) / len(window),
        rounds_played=total_rounds,
        last_points=window[0],
    )


def score_to_beat(stat: PlayerAverage) -> str:
    """Returns "New" until the player has a full window of rounds, else the rounded average."""
    if stat.rounds_played < ROLLING_WINDOW:
        return NEW_PLAYER_LABEL
    return str(round_half_up(stat.average))


def group_score_to_beat(members: Sequence[PlayerAverage]) -> Optional[int]:
    """
    Score to beat for a group: rounded mean of members' raw averages.

    Returns None for an empty group or when any member is still "New".
    """
    if not members or any(m.is_new for m in members):
        return None
    return round_half_up(sum(m.average for m in members) / len(members))


def rank_players(stats: Sequence[PlayerAverage]) -> List[PlayerAverage]:
    """Sort by average descending. Ties keep their input order."""
    return sorted(stats, key=lambda s: s.average, reverse=True)


async def get_player_average(session: AsyncSession, player_id: int) -> PlayerAverage:
    """Fetch the most recent round scores for a player and average them."""
    result = await session.execute(
        select(RoundScore.points)
        .where(RoundScore.player_id == player_id)
        .order_by(RoundScore.created_at.desc(), RoundScore.id.desc())
        .limit(ROLLING_WINDOW)
    )
    recent_points = list(result.scalars().all())
    count_result = await session.execute(
        select(func.count()).select_from(RoundScore).where(RoundScore.player_id == player_id)
    )
    return compute_player_average(player_id, recent_points, count_result.scalar() or 0)


async def get_player_averages(
    player_ids: Sequence[int],
    session_factory: Optional[Callable] = None,
) -> FanOutResult:
    """
    Fetch rolling averages for many players concurrently.

    Each player is loaded on its own session so the sub-queries can run in
    parallel. Failures are collected per player rather than raised.
    """
    factory = session_factory or db.AsyncSessionLocal
    unique_ids = list(dict.fromkeys(player_ids))

    async def _fetch(player_id: int) -> PlayerAverage:
        async with factory() as session:
            return await get_player_average(session, player_id)

    outcomes = await asyncio.gather(*(_fetch(pid) for pid in unique_ids), return_exceptions=True)

    fan_out = FanOutResult()
    for player_id, outcome in zip(unique_ids, outcomes):
        if isinstance(outcome, BaseException):
            logger.error(f"Failed to load average for player {player_id}: {outcome}")
            fan_out.errors[player_id] = str(outcome)
        else:
            fan_out.results[player_id] = outcome
    return fan_out


async def get_player_statistics(session: AsyncSession, session_factory: Optional[Callable] = None) -> List[Dict]:
    """
    Leaderboard for all active players.

    Returns:
        Players ranked by rolling average with rank, score to beat and team info
    """
    result = await session.execute(
        select(Player, PlayerTeam)
        .outerjoin(PlayerTeam, Player.default_team_id == PlayerTeam.id)
        .where(Player.is_active.is_(True))
        .order_by(Player.name.asc())
    )
    rows = result.all()
    averages = (await get_player_averages([p.id for p, _ in rows], session_factory)).unwrap()

    by_id = {p.id: (p, team) for p, team in rows}
    ranked = rank_players([averages[p.id] for p, _ in rows])
    stats = []
    for rank, stat in enumerate(ranked, start=1):
        player, team = by_id[stat.player_id]
        stats.append({
            "rank": rank,
            "player_id": player.id,
            "name": player.name,
            "team_id": team.id if team else None,
            "team_name": team.name if team else None,
            "team_color": team.color if team else None,
            "average": round(stat.average, 2),
            "rounds_played": stat.rounds_played,
            "last_points": stat.last_points,
            "score_to_beat": score_to_beat(stat),
        })
    return stats


async def get_team_standings(session: AsyncSession, session_factory: Optional[Callable] = None) -> List[Dict]:
    """
    Team standings: each team's average is the mean of its members' rolling
    averages, with members who have no rounds counting as 0.
    """
    teams_result = await session.execute(
        select(PlayerTeam).where(PlayerTeam.is_active.is_(True)).order_by(PlayerTeam.name.asc())
    )
    teams = teams_result.scalars().all()

    members_result = await session.execute(
        select(PlayerTeamMember.team_id, Player.id, Player.name)
        .join(Player, Player.id == PlayerTeamMember.player_id)
        .order_by(PlayerTeamMember.id.asc())
    )
    members_by_team: Dict[int, List] = {}
    for team_id, player_id, name in members_result.all():
        members_by_team.setdefault(team_id, []).append((player_id, name))

    all_ids = [pid for members in members_by_team.values() for pid, _ in members]
    averages = (await get_player_averages(all_ids, session_factory)).unwrap()

    standings = []
    for team in teams:
        members = members_by_team.get(team.id, [])
        member_stats = [
            {
                "player_id": pid,
                "name": name,
                "average": round(averages[pid].average, 2),
                "rounds_played": averages[pid].rounds_played,
            }
            for pid, name in members
        ]
        team_average = (
            sum(averages[pid].average for pid, _ in members) / len(members) if members else 0.0
        )
        standings.append({
            "team_id": team.id,
            "name": team.name,
            "color": team.color,
            "member_count": len(members),
            "average": round(team_average, 2),
            "members": sorted(member_stats, key=lambda m: m["average"], reverse=True),
        })

    standings.sort(key=lambda s: s["average"], reverse=True)
    return standings


async def get_points_leader(session: AsyncSession, session_factory: Optional[Callable] = None) -> Optional[Dict]:
    """Player with the highest rolling average among those with at least one round."""
    stats = await get_player_statistics(session, session_factory)
    played = [s for s in stats if s["rounds_played"] > 0]
    return played[0] if played else None


#
# Round scores
#

def _score_to_dict(score: RoundScore, player_name: Optional[str] = None) -> Dict:
    return {
        "id": score.id,
        "event_id": score.event_id,
        "player_id": score.player_id,
        "player_name": player_name,
        "points": score.points,
        "notes": score.notes,
        "created_at": score.created_at.isoformat() if score.created_at else None,
    }


async def save_event_scores(session: AsyncSession, event_id: int, scores: List[Dict]) -> List[Dict]:
    """
    Save points for an event, one score per player.

    Existing scores are updated in place and keep their created_at, so
    re-scoring an old event does not change which rounds are most recent.
    Only players with status "playing" in the event can be scored. Scores may
    be entered after an event is locked.

    Args:
        scores: [{"player_id": 1, "points": 18.5, "notes": None}, ...]
    """
    if not scores:
        raise ValueError("No scores to save")

    event = await session.get(Event, event_id)
    if event is None:
        raise NotFoundError("Event not found")

    playing_result = await session.execute(
        select(EventPlayer.player_id).where(
            EventPlayer.event_id == event_id,
            EventPlayer.status == EventPlayerStatus.PLAYING,
        )
    )
    playing_ids = set(playing_result.scalars().all())

    existing_result = await session.execute(select(RoundScore).where(RoundScore.event_id == event_id))
    existing = {s.player_id: s for s in existing_result.scalars().all()}

    for entry in scores:
        player_id = entry["player_id"]
        if player_id not in playing_ids:
            raise ValueError(f"Player {player_id} is not playing in this event")
        points = entry.get("points")
        if points is None:
            continue
        row = existing.get(player_id)
        if row:
            row.points = float(points)
            row.notes = entry.get("notes")
        else:
            row = RoundScore(
                event_id=event_id,
                player_id=player_id,
                points=float(points),
                notes=entry.get("notes"),
            )
            session.add(row)
            existing[player_id] = row

    await session.commit()
    logger.info(f"Saved {len(scores)} score(s) for event {event_id}")
    return await get_event_scores(session, event_id)


async def get_event_scores(session: AsyncSession, event_id: int) -> List[Dict]:
    result = await session.execute(
        select(RoundScore, Player.name)
        .join(Player, Player.id == RoundScore.player_id)
        .where(RoundScore.event_id == event_id)
        .order_by(RoundScore.points.desc(), Player.name.asc())
    )
    return [_score_to_dict(score, name) for score, name in result.all()]


async def get_player_score_history(session: AsyncSession, player_id: int) -> Dict:
    """All round scores for a player, most recent event first, with the rolling average."""
    player = await session.get(Player, player_id)
    if player is None:
        raise NotFoundError("Player not found")

    result = await session.execute(
        select(RoundScore, Event)
        .join(Event, Event.id == RoundScore.event_id)
        .where(RoundScore.player_id == player_id)
        .order_by(Event.date.desc(), RoundScore.created_at.desc())
    )
    rounds = [
        {
            **_score_to_dict(score, player.name),
            "event_date": event.date.isoformat(),
            "course_name": event.course_name,
        }
        for score, event in result.all()
    ]
    stat = await get_player_average(session, player_id)
    return {
        "player_id": player.id,
        "name": player.name,
        "average": round(stat.average, 2),
        "rounds_played": stat.rounds_played,
        "score_to_beat": score_to_beat(stat),
        "rounds": rounds,
    }


async def update_round_score(
    session: AsyncSession,
    score_id: int,
    points: float,
    notes: Optional[str] = None,
) -> Dict:
    score = await session.get(RoundScore, score_id)
    if score is None:
        raise NotFoundError("Score not found")
    score.points = float(points)
    score.notes = notes
    await session.commit()
    await session.refresh(score)
    return _score_to_dict(score)


async def delete_round_score(session: AsyncSession, score_id: int) -> bool:
    result = await session.execute(delete(RoundScore).where(RoundScore.id == score_id))
    await session.commit()
    return result.rowcount > 0
