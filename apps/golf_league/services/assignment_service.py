"""
Assignment engine: placing "playing" players into group slots.

A player holds at most one slot per event. Moving a player always removes
their previous slot first; a player already sitting in the target slot is
displaced and becomes unassigned. Concurrent edits are last-write-wins.
"""

import logging
from typing import Dict, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete
from golf_league.database.models import EventPlayer, EventPlayerStatus, Group, GroupAssignment, Player
from golf_league.services import event_access, group_service
from golf_league.services.errors import NotFoundError

logger = logging.getLogger(__name__)


def _event_group_ids(event_id: int):
    return select(Group.id).where(Group.event_id == event_id)


async def _playing_player_ids(session: AsyncSession, event_id: int) -> List[int]:
    """Players with status "playing", in roster insertion order."""
    result = await session.execute(
        select(EventPlayer.player_id)
        .where(EventPlayer.event_id == event_id, EventPlayer.status == EventPlayerStatus.PLAYING)
        .order_by(EventPlayer.id.asc())
    )
    return list(result.scalars().all())


async def auto_assign(session: AsyncSession, event_id: int) -> Dict:
    """
    Clear the event's assignments and fill groups in order.

    Groups are filled by index and positions 1..slots_per_group in order;
    players left over once every slot is full stay unassigned.
    """
    event = await event_access.get_unlocked_event(session, event_id)
    groups = await group_service.list_groups(session, event_id)
    player_ids = await _playing_player_ids(session, event_id)

    await session.execute(delete(GroupAssignment).where(GroupAssignment.group_id.in_(_event_group_ids(event_id))))

    remaining = iter(player_ids)
    assigned = 0
    done = False
    for group in groups:
        for position in range(1, event.slots_per_group + 1):
            player_id = next(remaining, None)
            if player_id is None:
                done = True
                break
            session.add(GroupAssignment(group_id=group.id, player_id=player_id, position=position))
            assigned += 1
        if done:
            break

    await session.commit()
    logger.info(f"Auto-assigned {assigned} of {len(player_ids)} playing player(s) for event {event_id}")
    return {"assigned": assigned, "unassigned": len(player_ids) - assigned}


async def move_player(
    session: AsyncSession,
    event_id: int,
    player_id: int,
    group_id: int,
    position: int,
) -> Dict:
    """
    Put a player in a specific slot.

    The player's existing slot in this event is cleared first. Anyone in the
    target slot is removed from it.

    Raises:
        EventLockedError: If the event is locked (nothing changes)
        ValueError: If the group, position or player is not valid for this event
    """
    event = await event_access.get_unlocked_event(session, event_id)
    group = await event_access.get_group(session, group_id)
    if group.event_id != event_id:
        raise ValueError("Group does not belong to this event")
    if position < 1 or position > event.slots_per_group:
        raise ValueError(f"Position must be between 1 and {event.slots_per_group}")

    status_result = await session.execute(
        select(EventPlayer.status).where(EventPlayer.event_id == event_id, EventPlayer.player_id == player_id)
    )
    status = status_result.scalar_one_or_none()
    if status is None:
        raise NotFoundError("Player is not in this event")
    if status != EventPlayerStatus.PLAYING:
        raise ValueError("Only players with status 'playing' can be assigned to a group")

    # Single slot per player per event
    await session.execute(
        delete(GroupAssignment).where(
            GroupAssignment.group_id.in_(_event_group_ids(event_id)),
            GroupAssignment.player_id == player_id,
        )
    )
    occupant = await session.execute(
        select(GroupAssignment.player_id)
        .where(GroupAssignment.group_id == group_id, GroupAssignment.position == position)
    )
    displaced_player_id = occupant.scalar_one_or_none()
    if displaced_player_id is not None:
        await session.execute(
            delete(GroupAssignment)
            .where(GroupAssignment.group_id == group_id, GroupAssignment.position == position)
        )

    session.add(GroupAssignment(group_id=group_id, player_id=player_id, position=position))
    await session.commit()

    return {
        "player_id": player_id,
        "group_id": group_id,
        "position": position,
        "displaced_player_id": displaced_player_id,
    }


async def remove_from_slot(session: AsyncSession, event_id: int, player_id: int) -> bool:
    """Clear a player's slot in the event. Returns False if they had none."""
    await event_access.get_unlocked_event(session, event_id)
    result = await session.execute(
        delete(GroupAssignment).where(
            GroupAssignment.group_id.in_(_event_group_ids(event_id)),
            GroupAssignment.player_id == player_id,
        )
    )
    await session.commit()
    return result.rowcount > 0


async def get_unassigned_players(session: AsyncSession, event_id: int) -> List[Dict]:
    """Players with status "playing" who have no slot. Always read fresh."""
    await event_access.get_event(session, event_id)
    assigned = select(GroupAssignment.player_id).where(GroupAssignment.group_id.in_(_event_group_ids(event_id)))
    result = await session.execute(
        select(Player)
        .join(EventPlayer, EventPlayer.player_id == Player.id)
        .where(
            EventPlayer.event_id == event_id,
            EventPlayer.status == EventPlayerStatus.PLAYING,
            Player.id.not_in(assigned),
        )
        .order_by(EventPlayer.id.asc())
    )
    return [{"player_id": p.id, "player_name": p.name} for p in result.scalars().all()]
