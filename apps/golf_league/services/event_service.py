"""
Event orchestrator: create, edit, delete and lock events.

Create and delete run as ordered lists of steps. Each step commits before the
next one starts; when a step fails the remaining steps are skipped and a
CascadeStepError names the step. Steps that already ran are not undone.
"""

import logging
from datetime import date
from typing import Awaitable, Callable, Dict, List, Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, func
from golf_league.database.models import (
    Course, Event, EventPlayer, EventPlayerStatus, Group, GroupAssignment,
    RoundScore, RsvpMessage, RsvpSchedule,
)
from golf_league.services import event_access, group_service, roster_service
from golf_league.services.errors import CascadeStepError, NotFoundError
from golf_league.utils.constants import (
    VALID_HOLES, MIN_SLOTS_PER_GROUP, MAX_SLOTS_PER_GROUP,
    DEFAULT_HOLES, DEFAULT_SLOTS_PER_GROUP, DEFAULT_TEE_INTERVAL_MINUTES,
)
from golf_league.utils.datetime_utils import parse_clock_time, format_clock_time, format_tee_time

logger = logging.getLogger(__name__)

EVENT_FIELDS = (
    "date", "course_id", "course_name", "first_tee_time", "holes",
    "slots_per_group", "max_players", "tee_interval_minutes", "notes",
)

Step = Tuple[str, Callable[[AsyncSession, int], Awaitable[None]]]


def _event_group_ids(event_id: int):
    return select(Group.id).where(Group.event_id == event_id)


def _event_player_ids(event_id: int):
    return select(EventPlayer.id).where(EventPlayer.event_id == event_id)


async def _delete_group_assignments(session: AsyncSession, event_id: int) -> None:
    await session.execute(delete(GroupAssignment).where(GroupAssignment.group_id.in_(_event_group_ids(event_id))))


async def _delete_groups(session: AsyncSession, event_id: int) -> None:
    await session.execute(delete(Group).where(Group.event_id == event_id))


async def _delete_rsvp_messages(session: AsyncSession, event_id: int) -> None:
    await session.execute(delete(RsvpMessage).where(RsvpMessage.event_player_id.in_(_event_player_ids(event_id))))


async def _delete_event_players(session: AsyncSession, event_id: int) -> None:
    await session.execute(delete(EventPlayer).where(EventPlayer.event_id == event_id))


async def _delete_round_scores(session: AsyncSession, event_id: int) -> None:
    await session.execute(delete(RoundScore).where(RoundScore.event_id == event_id))


async def _delete_rsvp_schedules(session: AsyncSession, event_id: int) -> None:
    await session.execute(delete(RsvpSchedule).where(RsvpSchedule.event_id == event_id))


async def _delete_event_row(session: AsyncSession, event_id: int) -> None:
    await session.execute(delete(Event).where(Event.id == event_id))


# Dependency order: rows referencing an event's groups or players go first
EVENT_DELETE_STEPS: List[Step] = [
    ("group assignments", _delete_group_assignments),
    ("groups", _delete_groups),
    ("rsvp messages", _delete_rsvp_messages),
    ("event players", _delete_event_players),
    ("round scores", _delete_round_scores),
    ("rsvp schedules", _delete_rsvp_schedules),
    ("event", _delete_event_row),
]


async def _run_step(session: AsyncSession, name: str, action: Callable[[], Awaitable]):
    try:
        outcome = await action()
        await session.commit()
        return outcome
    except CascadeStepError:
        raise
    except Exception as e:
        await session.rollback()
        logger.error(f"Event step '{name}' failed: {e}")
        raise CascadeStepError(name, str(e)) from e


def event_to_dict(event: Event, player_counts: Optional[Dict[str, int]] = None) -> Dict:
    data = {
        "id": event.id,
        "date": event.date.isoformat() if event.date else None,
        "course_id": event.course_id,
        "course_name": event.course_name,
        "first_tee_time": event.first_tee_time,
        "first_tee_time_display": format_tee_time(event.first_tee_time),
        "holes": event.holes,
        "slots_per_group": event.slots_per_group,
        "max_players": event.max_players,
        "tee_interval_minutes": event.tee_interval_minutes,
        "is_locked": event.is_locked,
        "notes": event.notes,
        "created_at": event.created_at.isoformat() if event.created_at else None,
    }
    if player_counts is not None:
        data["player_counts"] = player_counts
    return data


def _validate_event_values(values: Dict) -> Dict:
    """Normalise and check event fields; raises ValueError."""
    cleaned = dict(values)
    if "date" in cleaned and isinstance(cleaned["date"], str):
        try:
            cleaned["date"] = date.fromisoformat(cleaned["date"])
        except ValueError:
            raise ValueError(f"Invalid date '{values['date']}'. Expected YYYY-MM-DD")
    if "first_tee_time" in cleaned:
        cleaned["first_tee_time"] = format_clock_time(parse_clock_time(cleaned["first_tee_time"]))
    if "holes" in cleaned and cleaned["holes"] not in VALID_HOLES:
        raise ValueError("Holes must be 9 or 18")
    if "slots_per_group" in cleaned and not (
        MIN_SLOTS_PER_GROUP <= cleaned["slots_per_group"] <= MAX_SLOTS_PER_GROUP
    ):
        raise ValueError(f"Slots per group must be between {MIN_SLOTS_PER_GROUP} and {MAX_SLOTS_PER_GROUP}")
    if "max_players" in cleaned and cleaned["max_players"] < 1:
        raise ValueError("Max players must be at least 1")
    if "tee_interval_minutes" in cleaned and cleaned["tee_interval_minutes"] < 1:
        raise ValueError("Tee interval must be at least 1 minute")
    return cleaned


async def _resolve_course_name(session: AsyncSession, values: Dict) -> None:
    """Fill course_name from course_id when a course is picked."""
    course_id = values.get("course_id")
    if course_id is not None:
        course = await session.get(Course, course_id)
        if course is None:
            raise NotFoundError("Course not found")
        if not values.get("course_name"):
            values["course_name"] = course.name
    if "course_name" in values and not (values["course_name"] or "").strip():
        raise ValueError("Course is required")


async def create_event(session: AsyncSession, **fields) -> Dict:
    """
    Create an event, generate its groups and invite the active roster.

    Validation errors are raised before anything is written. After that each
    step commits on its own; a failure raises CascadeStepError and earlier
    steps stay in place.
    """
    values = _validate_event_values(
        {k: v for k, v in fields.items() if k in EVENT_FIELDS and v is not None}
    )
    for required in ("date", "first_tee_time", "max_players"):
        if values.get(required) is None:
            raise ValueError(f"{required} is required")
    await _resolve_course_name(session, values)
    if not values.get("course_name"):
        raise ValueError("Course is required")

    values.setdefault("holes", DEFAULT_HOLES)
    values.setdefault("slots_per_group", DEFAULT_SLOTS_PER_GROUP)
    values.setdefault("tee_interval_minutes", DEFAULT_TEE_INTERVAL_MINUTES)
    values = _validate_event_values(values)

    # Tee times must fit before midnight; checked here so nothing is written
    group_service.compute_tee_times(
        values["first_tee_time"],
        values["tee_interval_minutes"],
        group_service.group_count(values["max_players"], values["slots_per_group"]),
    )
    event = Event(**values)

    async def _insert_event():
        session.add(event)
        await session.flush()

    await _run_step(session, "event", _insert_event)
    groups = await _run_step(session, "groups", lambda: group_service.generate_groups(session, event))

    # import_active_roster commits/rolls back itself
    try:
        invited = await roster_service.import_active_roster(session, event.id)
    except Exception as e:
        logger.error(f"Event step 'roster' failed for event {event.id}: {e}")
        raise CascadeStepError("roster", str(e)) from e

    logger.info(f"Created event {event.id} with {len(groups)} group(s) and {invited} invited player(s)")
    return event_to_dict(event)


async def update_event(session: AsyncSession, event_id: int, **fields) -> Dict:
    """
    Update event fields. Groups and roster are left as they are, so changing
    max_players or tee settings does not regenerate groups.
    """
    event = await event_access.get_unlocked_event(session, event_id)
    values = _validate_event_values({k: v for k, v in fields.items() if k in EVENT_FIELDS})
    if "course_id" in values or "course_name" in values:
        await _resolve_course_name(session, values)
    for key, value in values.items():
        setattr(event, key, value)
    await session.commit()
    await session.refresh(event)
    return event_to_dict(event)


async def delete_event(session: AsyncSession, event_id: int) -> bool:
    """
    Delete an event and everything that references it, in dependency order.

    Returns:
        False if the event does not exist

    Raises:
        CascadeStepError: naming the first step that failed
    """
    event = await session.get(Event, event_id)
    if event is None:
        return False

    for name, step in EVENT_DELETE_STEPS:
        await _run_step(session, name, lambda step=step: step(session, event_id))
    logger.info(f"Deleted event {event_id}")
    return True


async def set_event_lock(session: AsyncSession, event_id: int, locked: bool) -> Dict:
    event = await event_access.get_event(session, event_id)
    event.is_locked = bool(locked)
    await session.commit()
    logger.info(f"Event {event_id} {'locked' if locked else 'unlocked'}")
    return event_to_dict(event)


async def _player_counts(session: AsyncSession, event_ids: List[int]) -> Dict[int, Dict[str, int]]:
    counts: Dict[int, Dict[str, int]] = {eid: {s.value: 0 for s in EventPlayerStatus} for eid in event_ids}
    if not event_ids:
        return counts
    result = await session.execute(
        select(EventPlayer.event_id, EventPlayer.status, func.count())
        .where(EventPlayer.event_id.in_(event_ids))
        .group_by(EventPlayer.event_id, EventPlayer.status)
    )
    for event_id, status, count in result.all():
        counts[event_id][status.value] = count
    return counts


async def get_event(session: AsyncSession, event_id: int) -> Dict:
    event = await event_access.get_event(session, event_id)
    counts = await _player_counts(session, [event.id])
    return event_to_dict(event, counts[event.id])


async def list_events(
    session: AsyncSession,
    upcoming_only: bool = False,
    today: Optional[date] = None,
) -> List[Dict]:
    """Events newest first, or upcoming events soonest first."""
    query = select(Event)
    if upcoming_only:
        query = query.where(Event.date >= (today or date.today())).order_by(Event.date.asc(), Event.id.asc())
    else:
        query = query.order_by(Event.date.desc(), Event.id.desc())
    result = await session.execute(query)
    events = result.scalars().all()
    counts = await _player_counts(session, [e.id for e in events])
    return [event_to_dict(e, counts[e.id]) for e in events]
