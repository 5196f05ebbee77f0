"""
Roster manager: event players and their RSVP status.

Status values are invited, yes, no, waitlist and playing. Setting a single
player to "yes" is capped at the event's max_players; bulk updates are not
capped. Every mutation is refused while the event is locked.
"""

import logging
from typing import Dict, List, Optional, Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, func
from golf_league.database.models import (
    Event, EventPlayer, EventPlayerStatus, Player, RsvpMessage,
)
from golf_league.services import event_access
from golf_league.services.errors import CapacityError, NotFoundError

logger = logging.getLogger(__name__)

CAPACITY_MESSAGE = "Max players reached. Consider setting status to waitlist."

# Default roster ordering: confirmed players first, players already placed last
STATUS_SORT_RANK = {
    EventPlayerStatus.YES: 1,
    EventPlayerStatus.INVITED: 2,
    EventPlayerStatus.WAITLIST: 3,
    EventPlayerStatus.NO: 4,
    EventPlayerStatus.PLAYING: 5,
}


def parse_status(value) -> EventPlayerStatus:
    """Coerce a status string; raises ValueError for anything outside the closed set."""
    if isinstance(value, EventPlayerStatus):
        return value
    try:
        return EventPlayerStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in EventPlayerStatus)
        raise ValueError(f"Invalid status '{value}'. Must be one of: {allowed}")


def event_player_to_dict(event_player: EventPlayer, player: Player, include_contact: bool = True) -> Dict:
    data = {
        "id": event_player.id,
        "event_id": event_player.event_id,
        "player_id": player.id,
        "player_name": player.name,
        "status": event_player.status.value,
        "note": event_player.note,
        "invite_sent_at": event_player.invite_sent_at.isoformat() if event_player.invite_sent_at else None,
        "responded_at": event_player.responded_at.isoformat() if event_player.responded_at else None,
    }
    if include_contact:
        data["email"] = player.email
        data["phone"] = player.phone
    return data


async def count_by_status(session: AsyncSession, event_id: int, status: EventPlayerStatus) -> int:
    result = await session.execute(
        select(func.count()).select_from(EventPlayer).where(
            EventPlayer.event_id == event_id,
            EventPlayer.status == status,
        )
    )
    return result.scalar() or 0


async def list_event_players(
    session: AsyncSession,
    event_id: int,
    status: Optional[str] = None,
    sort_by: str = "status",
    include_contact: bool = True,
) -> List[Dict]:
    """
    Event players, optionally filtered to one status.

    sort_by "status" orders yes, invited, waitlist, no, playing then by name;
    "name" orders by name only.
    """
    await event_access.get_event(session, event_id)
    query = (
        select(EventPlayer, Player)
        .join(Player, Player.id == EventPlayer.player_id)
        .where(EventPlayer.event_id == event_id)
    )
    if status is not None:
        query = query.where(EventPlayer.status == parse_status(status))
    result = await session.execute(query)
    rows = result.all()

    if sort_by == "name":
        rows.sort(key=lambda r: r[1].name.lower())
    else:
        rows.sort(key=lambda r: (STATUS_SORT_RANK[r[0].status], r[1].name.lower()))
    return [event_player_to_dict(ep, p, include_contact) for ep, p in rows]


async def get_roster_counts(session: AsyncSession, event_id: int) -> Dict:
    """Counts per status plus capacity."""
    event = await event_access.get_event(session, event_id)
    result = await session.execute(
        select(EventPlayer.status, func.count())
        .where(EventPlayer.event_id == event_id)
        .group_by(EventPlayer.status)
    )
    counts = {s.value: 0 for s in EventPlayerStatus}
    for status, count in result.all():
        counts[status.value if isinstance(status, EventPlayerStatus) else status] = count
    return {
        "event_id": event_id,
        "max_players": event.max_players,
        "counts": counts,
        "total": sum(counts.values()),
        "spots_remaining": max(event.max_players - counts[EventPlayerStatus.YES.value], 0),
    }


async def import_active_roster(session: AsyncSession, event_id: int) -> int:
    """
    Add every active player to a new event as invited.

    All rows are inserted in one commit; on failure nothing is inserted.
    """
    result = await session.execute(
        select(Player.id).where(Player.is_active.is_(True)).order_by(Player.name.asc())
    )
    player_ids = list(result.scalars().all())
    try:
        session.add_all([
            EventPlayer(event_id=event_id, player_id=pid, status=EventPlayerStatus.INVITED)
            for pid in player_ids
        ])
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    return len(player_ids)


async def update_player_status(
    session: AsyncSession,
    event_player_id: int,
    status,
    note: Optional[str] = None,
) -> EventPlayer:
    """
    Set one event player's status.

    Raises:
        CapacityError: If status is "yes" and the event already has max_players at "yes"
        EventLockedError: If the event is locked
    """
    new_status = parse_status(status)
    event_player = await event_access.get_event_player(session, event_player_id)
    event = await event_access.get_unlocked_event(session, event_player.event_id)

    if new_status == EventPlayerStatus.YES and event_player.status != EventPlayerStatus.YES:
        yes_count = await count_by_status(session, event.id, EventPlayerStatus.YES)
        if yes_count >= event.max_players:
            raise CapacityError(CAPACITY_MESSAGE)

    if event_access.leaves_tee_sheet(event_player.status, new_status):
        await event_access.release_slots(session, event.id, [event_player.player_id])
    event_player.status = new_status
    if note is not None:
        event_player.note = note
    await session.commit()
    logger.info(f"Event player {event_player_id} status set to {new_status.value}")
    return event_player


async def bulk_update_status(
    session: AsyncSession,
    event_id: int,
    event_player_ids: Sequence[int],
    status,
) -> int:
    """
    Set the same status for several event players.

    Not capacity checked: confirming a batch may take "yes" past max_players.
    """
    new_status = parse_status(status)
    if not event_player_ids:
        raise ValueError("No players selected")
    await event_access.get_unlocked_event(session, event_id)

    result = await session.execute(
        select(EventPlayer).where(EventPlayer.id.in_(list(event_player_ids)))
    )
    rows = result.scalars().all()
    if len(rows) != len(set(event_player_ids)) or any(ep.event_id != event_id for ep in rows):
        raise ValueError("Some selected players are not part of this event")

    leaving = [ep.player_id for ep in rows if event_access.leaves_tee_sheet(ep.status, new_status)]
    await event_access.release_slots(session, event_id, leaving)
    for event_player in rows:
        event_player.status = new_status
    await session.commit()
    logger.info(f"Set {len(rows)} player(s) to {new_status.value} for event {event_id}")
    return len(rows)


async def add_player(
    session: AsyncSession,
    event_id: int,
    player_id: int,
    status=EventPlayerStatus.INVITED,
) -> EventPlayer:
    """Add a single player to an event."""
    new_status = parse_status(status)
    event = await event_access.get_unlocked_event(session, event_id)
    player = await session.get(Player, player_id)
    if player is None:
        raise NotFoundError("Player not found")

    existing = await session.execute(
        select(EventPlayer.id).where(EventPlayer.event_id == event_id, EventPlayer.player_id == player_id)
    )
    if existing.scalar_one_or_none() is not None:
        raise ValueError("Player is already in this event")

    if new_status == EventPlayerStatus.YES:
        if await count_by_status(session, event.id, EventPlayerStatus.YES) >= event.max_players:
            raise CapacityError(CAPACITY_MESSAGE)

    event_player = EventPlayer(event_id=event_id, player_id=player_id, status=new_status)
    session.add(event_player)
    await session.commit()
    await session.refresh(event_player)
    return event_player


async def remove_player(session: AsyncSession, event_player_id: int) -> bool:
    """
    Remove a player from an event with their slot assignment and RSVP messages.
    """
    event_player = await event_access.get_event_player(session, event_player_id)
    await event_access.get_unlocked_event(session, event_player.event_id)

    await event_access.release_slots(session, event_player.event_id, [event_player.player_id])
    await session.execute(delete(RsvpMessage).where(RsvpMessage.event_player_id == event_player.id))
    await session.delete(event_player)
    await session.commit()
    return True


async def _existing_player_ids(session: AsyncSession, event_id: int) -> set:
    result = await session.execute(select(EventPlayer.player_id).where(EventPlayer.event_id == event_id))
    return set(result.scalars().all())


async def add_from_previous_event(session: AsyncSession, event_id: int) -> int:
    """
    Copy the confirmed ("yes") players of the most recent other event into this
    event as "yes". Players already in this event are skipped.
    """
    await event_access.get_unlocked_event(session, event_id)

    previous_result = await session.execute(
        select(Event)
        .where(Event.id != event_id)
        .order_by(Event.date.desc(), Event.id.desc())
        .limit(1)
    )
    previous = previous_result.scalar_one_or_none()
    if previous is None:
        raise ValueError("No previous events found")

    source_result = await session.execute(
        select(EventPlayer.player_id)
        .where(EventPlayer.event_id == previous.id, EventPlayer.status == EventPlayerStatus.YES)
        .order_by(EventPlayer.id.asc())
    )
    existing = await _existing_player_ids(session, event_id)
    to_add = [pid for pid in source_result.scalars().all() if pid not in existing]
    if not to_add:
        raise ValueError("All players from last event are already in this event")

    session.add_all([
        EventPlayer(event_id=event_id, player_id=pid, status=EventPlayerStatus.YES) for pid in to_add
    ])
    await session.commit()
    logger.info(f"Added {len(to_add)} player(s) to event {event_id} from event {previous.id}")
    return len(to_add)


async def add_active_roster(session: AsyncSession, event_id: int) -> int:
    """Invite every active player not already in the event."""
    await event_access.get_unlocked_event(session, event_id)
    result = await session.execute(
        select(Player.id).where(Player.is_active.is_(True)).order_by(Player.name.asc())
    )
    existing = await _existing_player_ids(session, event_id)
    to_add = [pid for pid in result.scalars().all() if pid not in existing]
    if not to_add:
        raise ValueError("All active players are already in this event")

    session.add_all([
        EventPlayer(event_id=event_id, player_id=pid, status=EventPlayerStatus.INVITED) for pid in to_add
    ])
    await session.commit()
    return len(to_add)


async def promote_confirmed_players(session: AsyncSession, event_id: int) -> int:
    """Move every "yes" player to "playing" so they can be placed on the tee sheet."""
    await event_access.get_unlocked_event(session, event_id)
    result = await session.execute(
        select(EventPlayer).where(
            EventPlayer.event_id == event_id,
            EventPlayer.status == EventPlayerStatus.YES,
        )
    )
    rows = result.scalars().all()
    if not rows:
        raise ValueError("No players have RSVP'd yes")
    for event_player in rows:
        event_player.status = EventPlayerStatus.PLAYING
    await session.commit()
    return len(rows)
