"""
Tests for the assignment engine: auto-assign, moving players between slots,
displacement and lock enforcement.
"""

import pytest
import pytest_asyncio
from sqlalchemy import select

from golf_league.database.models import EventPlayer, EventPlayerStatus, GroupAssignment
from golf_league.services import assignment_service, group_service
from golf_league.services.errors import EventLockedError, NotFoundError


@pytest_asyncio.fixture
async def tee_sheet(db_session, make_event, make_players):
    """Event with 2 foursomes and 5 playing players, nobody assigned."""
    event_row = await make_event(max_players=8, slots_per_group=4)
    groups = await group_service.generate_groups(db_session, event_row)
    players = await make_players(5)
    db_session.add_all([
        EventPlayer(event_id=event_row.id, player_id=p.id, status=EventPlayerStatus.PLAYING) for p in players
    ])
    await db_session.commit()
    return event_row, groups, players


async def _assignments(db_session, player_id=None):
    query = select(GroupAssignment)
    if player_id is not None:
        query = query.where(GroupAssignment.player_id == player_id)
    return (await db_session.execute(query)).scalars().all()


@pytest.mark.asyncio
async def test_auto_assign_fills_groups_in_order(db_session, tee_sheet):
    event_row, groups, players = tee_sheet
    result = await assignment_service.auto_assign(db_session, event_row.id)
    assert result == {"assigned": 5, "unassigned": 0}

    placed = {(a.group_id, a.position): a.player_id for a in await _assignments(db_session)}
    assert placed[(groups[0].id, 1)] == players[0].id
    assert placed[(groups[0].id, 4)] == players[3].id
    assert placed[(groups[1].id, 1)] == players[4].id


@pytest.mark.asyncio
async def test_auto_assign_overflow_stays_unassigned(db_session, make_event, make_players):
    event_row = await make_event(max_players=4, slots_per_group=4)
    await group_service.generate_groups(db_session, event_row)
    players = await make_players(6)
    db_session.add_all([
        EventPlayer(event_id=event_row.id, player_id=p.id, status=EventPlayerStatus.PLAYING) for p in players
    ])
    await db_session.commit()

    result = await assignment_service.auto_assign(db_session, event_row.id)
    assert result == {"assigned": 4, "unassigned": 2}
    unassigned = await assignment_service.get_unassigned_players(db_session, event_row.id)
    assert [p["player_id"] for p in unassigned] == [players[4].id, players[5].id]


@pytest.mark.asyncio
async def test_move_leaves_exactly_one_assignment(db_session, tee_sheet):
    event_row, groups, players = tee_sheet
    player = players[0]
    await assignment_service.move_player(db_session, event_row.id, player.id, groups[0].id, 1)
    await assignment_service.move_player(db_session, event_row.id, player.id, groups[1].id, 3)
    await assignment_service.move_player(db_session, event_row.id, player.id, groups[1].id, 2)

    rows = await _assignments(db_session, player.id)
    assert len(rows) == 1
    assert (rows[0].group_id, rows[0].position) == (groups[1].id, 2)


@pytest.mark.asyncio
async def test_move_displaces_occupant(db_session, tee_sheet):
    event_row, groups, players = tee_sheet
    first, second = players[0], players[1]
    await assignment_service.move_player(db_session, event_row.id, first.id, groups[0].id, 1)

    result = await assignment_service.move_player(db_session, event_row.id, second.id, groups[0].id, 1)
    assert result["displaced_player_id"] == first.id

    assert await _assignments(db_session, first.id) == []
    unassigned_ids = [p["player_id"] for p in await assignment_service.get_unassigned_players(db_session, event_row.id)]
    assert first.id in unassigned_ids
    assert second.id not in unassigned_ids


@pytest.mark.asyncio
async def test_move_into_own_slot_is_stable(db_session, tee_sheet):
    event_row, groups, players = tee_sheet
    await assignment_service.move_player(db_session, event_row.id, players[0].id, groups[0].id, 1)
    result = await assignment_service.move_player(db_session, event_row.id, players[0].id, groups[0].id, 1)
    assert result["displaced_player_id"] is None
    assert len(await _assignments(db_session, players[0].id)) == 1


@pytest.mark.asyncio
async def test_move_on_locked_event_changes_nothing(db_session, tee_sheet):
    event_row, groups, players = tee_sheet
    await assignment_service.move_player(db_session, event_row.id, players[0].id, groups[0].id, 1)
    event_row.is_locked = True
    await db_session.commit()

    with pytest.raises(EventLockedError):
        await assignment_service.move_player(db_session, event_row.id, players[0].id, groups[1].id, 1)

    rows = await _assignments(db_session, players[0].id)
    assert [(r.group_id, r.position) for r in rows] == [(groups[0].id, 1)]


@pytest.mark.asyncio
async def test_move_validations(db_session, tee_sheet, make_event, make_players):
    event_row, groups, players = tee_sheet

    with pytest.raises(ValueError, match="Position must be between"):
        await assignment_service.move_player(db_session, event_row.id, players[0].id, groups[0].id, 5)

    other_event = await make_event()
    other_groups = await group_service.generate_groups(db_session, other_event)
    await db_session.commit()
    with pytest.raises(ValueError, match="does not belong"):
        await assignment_service.move_player(db_session, event_row.id, players[0].id, other_groups[0].id, 1)

    (outsider,) = await make_players(1, prefix="Outsider")
    with pytest.raises(NotFoundError):
        await assignment_service.move_player(db_session, event_row.id, outsider.id, groups[0].id, 1)


@pytest.mark.asyncio
async def test_only_playing_players_can_be_assigned(db_session, tee_sheet, make_players):
    event_row, groups, _ = tee_sheet
    (confirmed,) = await make_players(1, prefix="Confirmed")
    db_session.add(EventPlayer(event_id=event_row.id, player_id=confirmed.id, status=EventPlayerStatus.YES))
    await db_session.commit()

    with pytest.raises(ValueError, match="playing"):
        await assignment_service.move_player(db_session, event_row.id, confirmed.id, groups[0].id, 1)


@pytest.mark.asyncio
async def test_remove_from_slot(db_session, tee_sheet):
    event_row, groups, players = tee_sheet
    await assignment_service.move_player(db_session, event_row.id, players[0].id, groups[0].id, 2)
    assert await assignment_service.remove_from_slot(db_session, event_row.id, players[0].id) is True
    assert await assignment_service.remove_from_slot(db_session, event_row.id, players[0].id) is False
