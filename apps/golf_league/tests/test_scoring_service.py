"""
Tests for the scoring aggregator: rolling averages, score to beat, rankings,
fan-out statistics and round score entry.
"""

import pytest
import pytest_asyncio
from datetime import date, datetime, timedelta

import pytz

from golf_league.database.models import EventPlayer, EventPlayerStatus, PlayerTeam, PlayerTeamMember, RoundScore
from golf_league.services import scoring_service
from golf_league.services.errors import AggregateFetchError, NotFoundError
from golf_league.services.scoring_service import PlayerAverage


BASE_TIME = datetime(2025, 1, 1, 12, 0, tzinfo=pytz.UTC)


async def _add_rounds(db_session, make_event, player, points_oldest_first):
    """One event per round; created_at increases with each round."""
    for i, points in enumerate(points_oldest_first):
        event_row = await make_event(event_date=date(2025, 1, 1) + timedelta(days=7 * i))
        db_session.add(RoundScore(
            event_id=event_row.id,
            player_id=player.id,
            points=points,
            created_at=BASE_TIME + timedelta(days=7 * i),
        ))
    await db_session.commit()


class TestPureHelpers:
    """Rounding, score to beat and ranking without a database."""

    def test_round_half_up(self):
        assert scoring_service.round_half_up(7.5) == 8
        assert scoring_service.round_half_up(7.49) == 7
        assert scoring_service.round_half_up(18.0) == 18

    def test_compute_average_uses_six_most_recent(self):
        # Newest first: the trailing 100 is outside the window
        stat = scoring_service.compute_player_average(1, [10, 20, 30, 10, 20, 30, 100])
        assert stat.average == 20
        assert stat.rounds_played == 7
        assert stat.last_points == 10

    def test_compute_average_no_rounds(self):
        stat = scoring_service.compute_player_average(1, [])
        assert stat.average == 0.0
        assert stat.rounds_played == 0
        assert stat.last_points is None

    def test_score_to_beat_new_player(self):
        stat = PlayerAverage(player_id=1, average=25.0, rounds_played=5)
        assert scoring_service.score_to_beat(stat) == "New"

    def test_score_to_beat_rounded_average(self):
        stat = PlayerAverage(player_id=1, average=17.5, rounds_played=6)
        assert scoring_service.score_to_beat(stat) == "18"

    def test_group_score_to_beat(self):
        members = [
            PlayerAverage(player_id=1, average=17.5, rounds_played=6),
            PlayerAverage(player_id=2, average=20.0, rounds_played=9),
        ]
        # Mean of raw averages (18.75) rounded once
        assert scoring_service.group_score_to_beat(members) == 19

    def test_group_score_to_beat_none_when_any_member_new(self):
        members = [
            PlayerAverage(player_id=1, average=17.5, rounds_played=6),
            PlayerAverage(player_id=2, average=20.0, rounds_played=2),
        ]
        assert scoring_service.group_score_to_beat(members) is None

    def test_group_score_to_beat_none_for_empty_group(self):
        assert scoring_service.group_score_to_beat([]) is None

    def test_rank_players_ties_keep_input_order(self):
        stats = [
            PlayerAverage(player_id=1, average=10.0),
            PlayerAverage(player_id=2, average=20.0),
            PlayerAverage(player_id=3, average=10.0),
        ]
        ranked = scoring_service.rank_players(stats)
        assert [s.player_id for s in ranked] == [2, 1, 3]


@pytest.mark.asyncio
async def test_get_player_average_uses_most_recent_rounds(db_session, make_players, make_event):
    """Only the six newest rounds count, regardless of insertion order of ids."""
    (player,) = await make_players(1)
    await _add_rounds(db_session, make_event, player, [100, 10, 20, 30, 10, 20, 30])

    stat = await scoring_service.get_player_average(db_session, player.id)
    assert stat.average == 20
    assert stat.rounds_played == 7
    assert stat.last_points == 30
    assert scoring_service.score_to_beat(stat) == "20"


@pytest.mark.asyncio
async def test_get_player_average_new_player(db_session, make_players, make_event):
    (player,) = await make_players(1)
    await _add_rounds(db_session, make_event, player, [15, 16, 17])

    stat = await scoring_service.get_player_average(db_session, player.id)
    assert stat.rounds_played == 3
    assert scoring_service.score_to_beat(stat) == "New"


@pytest.mark.asyncio
async def test_player_statistics_ranked(db_session, make_players, make_event):
    low, high = await make_players(2)
    await _add_rounds(db_session, make_event, low, [10] * 6)
    await _add_rounds(db_session, make_event, high, [30] * 6)

    stats = await scoring_service.get_player_statistics(db_session)
    assert [s["player_id"] for s in stats] == [high.id, low.id]
    assert stats[0]["rank"] == 1
    assert stats[0]["score_to_beat"] == "30"


@pytest.mark.asyncio
async def test_player_statistics_fail_whole_when_one_fetch_fails(db_session, make_players, monkeypatch):
    """A failed per-player fetch fails the whole aggregate instead of returning a partial list."""
    players = await make_players(3)
    original = scoring_service.get_player_average

    async def flaky(session, player_id):
        if player_id == players[1].id:
            raise RuntimeError("connection reset")
        return await original(session, player_id)

    monkeypatch.setattr(scoring_service, "get_player_average", flaky)

    with pytest.raises(AggregateFetchError) as exc_info:
        await scoring_service.get_player_statistics(db_session)
    assert exc_info.value.failed_keys == [players[1].id]


@pytest.mark.asyncio
async def test_fan_out_result_collects_errors(db_session, make_players, monkeypatch):
    players = await make_players(2)

    async def broken(session, player_id):
        raise RuntimeError("boom")

    monkeypatch.setattr(scoring_service, "get_player_average", broken)
    fan_out = await scoring_service.get_player_averages([p.id for p in players])
    assert not fan_out.ok
    assert set(fan_out.errors) == {p.id for p in players}


@pytest.mark.asyncio
async def test_team_standings_members_without_rounds_count_zero(db_session, make_players, make_event):
    scorer, rookie = await make_players(2)
    await _add_rounds(db_session, make_event, scorer, [20] * 6)
    team = PlayerTeam(name="Eagles")
    db_session.add(team)
    await db_session.flush()
    db_session.add_all([
        PlayerTeamMember(team_id=team.id, player_id=scorer.id),
        PlayerTeamMember(team_id=team.id, player_id=rookie.id),
    ])
    await db_session.commit()

    standings = await scoring_service.get_team_standings(db_session)
    assert len(standings) == 1
    assert standings[0]["average"] == 10.0
    assert standings[0]["member_count"] == 2


@pytest.mark.asyncio
async def test_points_leader(db_session, make_players, make_event):
    players = await make_players(2)
    assert await scoring_service.get_points_leader(db_session) is None

    await _add_rounds(db_session, make_event, players[1], [12])
    leader = await scoring_service.get_points_leader(db_session)
    assert leader["player_id"] == players[1].id


class TestSaveEventScores:
    """Round score entry."""

    @pytest_asyncio.fixture
    async def scored_event(self, db_session, make_players, make_event):
        event_row = await make_event()
        players = await make_players(3)
        db_session.add_all([
            EventPlayer(event_id=event_row.id, player_id=players[0].id, status=EventPlayerStatus.PLAYING),
            EventPlayer(event_id=event_row.id, player_id=players[1].id, status=EventPlayerStatus.PLAYING),
            EventPlayer(event_id=event_row.id, player_id=players[2].id, status=EventPlayerStatus.YES),
        ])
        await db_session.commit()
        return event_row, players

    @pytest.mark.asyncio
    async def test_save_scores(self, db_session, scored_event):
        event_row, players = scored_event
        saved = await scoring_service.save_event_scores(db_session, event_row.id, [
            {"player_id": players[0].id, "points": 18.5},
            {"player_id": players[1].id, "points": 21},
        ])
        assert [s["points"] for s in saved] == [21.0, 18.5]

    @pytest.mark.asyncio
    async def test_resave_updates_in_place(self, db_session, scored_event):
        event_row, players = scored_event
        await scoring_service.save_event_scores(db_session, event_row.id, [{"player_id": players[0].id, "points": 10}])
        saved = await scoring_service.save_event_scores(
            db_session, event_row.id, [{"player_id": players[0].id, "points": 12, "notes": "corrected"}]
        )
        assert len(saved) == 1
        assert saved[0]["points"] == 12.0
        assert saved[0]["notes"] == "corrected"

    @pytest.mark.asyncio
    async def test_rejects_players_not_playing(self, db_session, scored_event):
        event_row, players = scored_event
        with pytest.raises(ValueError, match="not playing"):
            await scoring_service.save_event_scores(db_session, event_row.id, [{"player_id": players[2].id, "points": 5}])

    @pytest.mark.asyncio
    async def test_rejects_empty_input(self, db_session, scored_event):
        event_row, _ = scored_event
        with pytest.raises(ValueError, match="No scores to save"):
            await scoring_service.save_event_scores(db_session, event_row.id, [])

    @pytest.mark.asyncio
    async def test_missing_event(self, db_session):
        with pytest.raises(NotFoundError):
            await scoring_service.save_event_scores(db_session, 999, [{"player_id": 1, "points": 5}])

    @pytest.mark.asyncio
    async def test_update_and_delete_round_score(self, db_session, scored_event):
        event_row, players = scored_event
        saved = await scoring_service.save_event_scores(db_session, event_row.id, [{"player_id": players[0].id, "points": 10}])
        score_id = saved[0]["id"]

        updated = await scoring_service.update_round_score(db_session, score_id, 14)
        assert updated["points"] == 14.0

        assert await scoring_service.delete_round_score(db_session, score_id) is True
        assert await scoring_service.get_event_scores(db_session, event_row.id) == []
