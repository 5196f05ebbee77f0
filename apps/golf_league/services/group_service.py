"""
Group generator and tee sheet.

An event gets ceil(max_players / slots_per_group) groups when it is created.
Group i (1-based) tees off at first_tee_time + (i - 1) * tee_interval_minutes.
Groups are not regenerated when the event's parameters are edited later.
"""

import logging
import math
from typing import Dict, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from golf_league.database.models import Event, Group, GroupAssignment, Player
from golf_league.services import event_access, scoring_service
from golf_league.utils.constants import MINUTES_PER_DAY
from golf_league.utils.datetime_utils import parse_clock_time, format_clock_time, format_tee_time

logger = logging.getLogger(__name__)


def group_count(max_players: int, slots_per_group: int) -> int:
    """Number of groups needed so every player has a slot."""
    if max_players < 1:
        raise ValueError("max_players must be at least 1")
    if slots_per_group < 1:
        raise ValueError("slots_per_group must be at least 1")
    return math.ceil(max_players / slots_per_group)


def compute_tee_times(first_tee_time: str, interval_minutes: int, count: int) -> List[str]:
    """
    Tee times for `count` groups starting at first_tee_time.

    Raises:
        ValueError: If the time is malformed or the last group would tee off
            at or after midnight
    """
    if interval_minutes < 1:
        raise ValueError("Tee interval must be at least 1 minute")
    start = parse_clock_time(first_tee_time)
    last = start + (count - 1) * interval_minutes
    if last >= MINUTES_PER_DAY:
        raise ValueError(
            f"Last group would tee off after midnight ({count} groups every {interval_minutes} minutes "
            f"from {first_tee_time}). Use an earlier first tee time or a shorter interval."
        )
    return [format_clock_time(start + i * interval_minutes) for i in range(count)]


def build_groups(event: Event) -> List[Group]:
    """Unsaved Group rows for a newly created event, indices 1..N."""
    count = group_count(event.max_players, event.slots_per_group)
    tee_times = compute_tee_times(event.first_tee_time, event.tee_interval_minutes, count)
    return [
        Group(event_id=event.id, group_index=i, tee_time=tee_time)
        for i, tee_time in enumerate(tee_times, start=1)
    ]


async def generate_groups(session: AsyncSession, event: Event) -> List[Group]:
    """Insert the groups for an event in one batch."""
    groups = build_groups(event)
    session.add_all(groups)
    await session.flush()
    logger.info(f"Generated {len(groups)} group(s) for event {event.id}")
    return groups


async def list_groups(session: AsyncSession, event_id: int) -> List[Group]:
    result = await session.execute(
        select(Group).where(Group.event_id == event_id).order_by(Group.group_index.asc())
    )
    return list(result.scalars().all())


def _group_to_dict(group: Group) -> Dict:
    return {
        "id": group.id,
        "event_id": group.event_id,
        "group_index": group.group_index,
        "tee_time": group.tee_time,
        "tee_time_display": format_tee_time(group.tee_time),
    }


async def update_group_tee_time(session: AsyncSession, group_id: int, tee_time: str) -> Dict:
    """Change one group's tee time. Refused on a locked event."""
    group = await event_access.get_group(session, group_id)
    await event_access.get_unlocked_event(session, group.event_id)
    group.tee_time = format_clock_time(parse_clock_time(tee_time))
    await session.commit()
    return _group_to_dict(group)


async def get_tee_sheet(session: AsyncSession, event_id: int) -> List[Dict]:
    """
    Groups in index order with every slot (empty ones included) and the
    group's score to beat.
    """
    event = await event_access.get_event(session, event_id)
    groups = await list_groups(session, event_id)

    result = await session.execute(
        select(GroupAssignment, Player)
        .join(Player, Player.id == GroupAssignment.player_id)
        .join(Group, Group.id == GroupAssignment.group_id)
        .where(Group.event_id == event_id)
    )
    by_slot = {(a.group_id, a.position): player for a, player in result.all()}

    assigned_ids = [p.id for p in by_slot.values()]
    averages = {}
    if assigned_ids:
        averages = {pid: await scoring_service.get_player_average(session, pid) for pid in assigned_ids}

    sheet = []
    for group in groups:
        slots = []
        members = []
        for position in range(1, event.slots_per_group + 1):
            player = by_slot.get((group.id, position))
            slot = {"position": position, "player_id": None, "player_name": None, "score_to_beat": None}
            if player is not None:
                stat = averages[player.id]
                members.append(stat)
                slot.update(
                    player_id=player.id,
                    player_name=player.name,
                    score_to_beat=scoring_service.score_to_beat(stat),
                )
            slots.append(slot)
        sheet.append({
            **_group_to_dict(group),
            "slots": slots,
            "score_to_beat": scoring_service.group_score_to_beat(members),
        })
    return sheet
