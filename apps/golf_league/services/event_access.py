"""
Event lookup and lock enforcement shared by the mutating services.
"""

from typing import Iterable
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession
from golf_league.database.models import Event, Group, GroupAssignment, EventPlayer, EventPlayerStatus
from golf_league.services.errors import NotFoundError, EventLockedError


async def get_event(session: AsyncSession, event_id: int) -> Event:
    """Load an event or raise NotFoundError."""
    event = await session.get(Event, event_id)
    if event is None:
        raise NotFoundError("Event not found")
    return event


async def get_unlocked_event(session: AsyncSession, event_id: int) -> Event:
    """Load an event for mutation; raises EventLockedError if it is locked."""
    event = await get_event(session, event_id)
    if event.is_locked:
        raise EventLockedError(event.id)
    return event


async def get_group(session: AsyncSession, group_id: int) -> Group:
    group = await session.get(Group, group_id)
    if group is None:
        raise NotFoundError("Group not found")
    return group


async def get_event_player(session: AsyncSession, event_player_id: int) -> EventPlayer:
    event_player = await session.get(EventPlayer, event_player_id)
    if event_player is None:
        raise NotFoundError("Event player not found")
    return event_player


async def release_slots(session: AsyncSession, event_id: int, player_ids: Iterable[int]) -> None:
    """Delete the players' tee sheet assignments in this event. Does not commit."""
    player_ids = list(player_ids)
    if not player_ids:
        return
    group_ids = select(Group.id).where(Group.event_id == event_id)
    await session.execute(
        delete(GroupAssignment).where(
            GroupAssignment.group_id.in_(group_ids),
            GroupAssignment.player_id.in_(player_ids),
        )
    )


def leaves_tee_sheet(old_status: EventPlayerStatus, new_status: EventPlayerStatus) -> bool:
    """Only "playing" players hold slots; moving off it frees the slot."""
    return old_status == EventPlayerStatus.PLAYING and new_status != EventPlayerStatus.PLAYING
