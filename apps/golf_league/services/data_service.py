"""
Data service layer for reference data.
Handles CRUD operations for players, teams, courses, tee boxes, settings and user roles.
"""

from typing import List, Dict, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, func
from golf_league.database.models import (
    Player, PlayerTeam, PlayerTeamMember, EventPlayer,
    Course, CourseTee, CourseHole, TeeBox,
    Setting, UserRole, UserRoleType,
)
from golf_league.services.errors import NotFoundError

PLAYER_FIELDS = ("name", "email", "phone", "handicap", "notes", "is_active", "default_team_id", "tee_box_id")
TEAM_FIELDS = ("name", "description", "color", "is_active")
COURSE_FIELDS = ("name", "address", "phone", "notes")
TEE_BOX_FIELDS = ("name", "color", "typical_yardage", "sort_order", "is_active")


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def _clean_optional(value: Optional[str]) -> Optional[str]:
    """Blank strings from forms are stored as NULL."""
    if value is None:
        return None
    value = value.strip()
    return value or None


#
# Players
#

def player_to_dict(player: Player, include_contact: bool = True) -> Dict:
    data = {
        "id": player.id,
        "name": player.name,
        "handicap": player.handicap,
        "is_active": player.is_active,
        "default_team_id": player.default_team_id,
        "tee_box_id": player.tee_box_id,
        "created_at": _iso(player.created_at),
        "updated_at": _iso(player.updated_at),
    }
    if include_contact:
        data["email"] = player.email
        data["phone"] = player.phone
        data["notes"] = player.notes
    return data


async def list_players(
    session: AsyncSession,
    active_only: bool = False,
    include_contact: bool = True,
) -> List[Dict]:
    """List players ordered by name. Contact fields are omitted for the public view."""
    query = select(Player).order_by(Player.name.asc())
    if active_only:
        query = query.where(Player.is_active.is_(True))
    result = await session.execute(query)
    return [player_to_dict(p, include_contact) for p in result.scalars().all()]


async def get_player(session: AsyncSession, player_id: int, include_contact: bool = True) -> Optional[Dict]:
    player = await session.get(Player, player_id)
    return player_to_dict(player, include_contact) if player else None


async def create_player(session: AsyncSession, name: str, **fields) -> Dict:
    """Create a player."""
    if not name or not name.strip():
        raise ValueError("Player name is required")
    values = {k: v for k, v in fields.items() if k in PLAYER_FIELDS and k != "name"}
    for key in ("email", "phone", "notes"):
        if key in values:
            values[key] = _clean_optional(values[key])
    player = Player(name=name.strip(), **values)
    session.add(player)
    await session.commit()
    await session.refresh(player)
    return player_to_dict(player)


async def update_player(session: AsyncSession, player_id: int, **fields) -> Dict:
    """Update a player. Only the given fields are changed."""
    update_values = {k: v for k, v in fields.items() if k in PLAYER_FIELDS}
    for key in ("email", "phone", "notes"):
        if key in update_values:
            update_values[key] = _clean_optional(update_values[key])
    if "name" in update_values and not (update_values["name"] or "").strip():
        raise ValueError("Player name is required")

    player = await session.get(Player, player_id)
    if not player:
        raise NotFoundError("Player not found")
    for key, value in update_values.items():
        setattr(player, key, value)
    await session.commit()
    await session.refresh(player)
    return player_to_dict(player)


async def delete_player(session: AsyncSession, player_id: int) -> bool:
    """Delete a player. Players with event history must be deactivated instead."""
    history = await session.execute(
        select(func.count()).select_from(EventPlayer).where(EventPlayer.player_id == player_id)
    )
    if history.scalar() > 0:
        raise ValueError("Player has event history. Mark the player inactive instead.")
    await session.execute(delete(PlayerTeamMember).where(PlayerTeamMember.player_id == player_id))
    result = await session.execute(delete(Player).where(Player.id == player_id))
    await session.commit()
    return result.rowcount > 0


#
# Player teams
#

async def _team_member_ids(session: AsyncSession, team_id: int) -> List[int]:
    result = await session.execute(
        select(PlayerTeamMember.player_id)
        .where(PlayerTeamMember.team_id == team_id)
        .order_by(PlayerTeamMember.id.asc())
    )
    return list(result.scalars().all())


async def _team_to_dict(session: AsyncSession, team: PlayerTeam) -> Dict:
    return {
        "id": team.id,
        "name": team.name,
        "description": team.description,
        "color": team.color,
        "is_active": team.is_active,
        "member_ids": await _team_member_ids(session, team.id),
        "created_at": _iso(team.created_at),
    }


async def list_teams(session: AsyncSession, active_only: bool = False) -> List[Dict]:
    query = select(PlayerTeam).order_by(PlayerTeam.name.asc())
    if active_only:
        query = query.where(PlayerTeam.is_active.is_(True))
    result = await session.execute(query)
    return [await _team_to_dict(session, t) for t in result.scalars().all()]


async def _replace_team_members(session: AsyncSession, team_id: int, member_ids: List[int]) -> None:
    await session.execute(delete(PlayerTeamMember).where(PlayerTeamMember.team_id == team_id))
    seen = set()
    for player_id in member_ids:
        if player_id in seen:
            continue
        seen.add(player_id)
        session.add(PlayerTeamMember(team_id=team_id, player_id=player_id))


async def create_team(
    session: AsyncSession,
    name: str,
    member_ids: Optional[List[int]] = None,
    **fields,
) -> Dict:
    """Create a team and its member set."""
    if not name or not name.strip():
        raise ValueError("Team name is required")
    values = {k: v for k, v in fields.items() if k in TEAM_FIELDS and k != "name"}
    team = PlayerTeam(name=name.strip(), **values)
    session.add(team)
    await session.flush()
    if member_ids:
        await _replace_team_members(session, team.id, member_ids)
    await session.commit()
    await session.refresh(team)
    return await _team_to_dict(session, team)


async def update_team(
    session: AsyncSession,
    team_id: int,
    member_ids: Optional[List[int]] = None,
    **fields,
) -> Dict:
    """Update a team. When member_ids is given the member set is replaced."""
    team = await session.get(PlayerTeam, team_id)
    if not team:
        raise NotFoundError("Team not found")
    for key, value in fields.items():
        if key in TEAM_FIELDS:
            setattr(team, key, value)
    if member_ids is not None:
        await _replace_team_members(session, team_id, member_ids)
    await session.commit()
    await session.refresh(team)
    return await _team_to_dict(session, team)


async def delete_team(session: AsyncSession, team_id: int) -> bool:
    await session.execute(delete(PlayerTeamMember).where(PlayerTeamMember.team_id == team_id))
    await session.execute(
        update(Player).where(Player.default_team_id == team_id).values(default_team_id=None)
    )
    result = await session.execute(delete(PlayerTeam).where(PlayerTeam.id == team_id))
    await session.commit()
    return result.rowcount > 0


#
# Courses
#

async def _course_to_dict(session: AsyncSession, course: Course) -> Dict:
    tees = await session.execute(
        select(CourseTee).where(CourseTee.course_id == course.id).order_by(CourseTee.sort_order.asc())
    )
    holes = await session.execute(
        select(CourseHole).where(CourseHole.course_id == course.id).order_by(CourseHole.hole_number.asc())
    )
    return {
        "id": course.id,
        "name": course.name,
        "address": course.address,
        "phone": course.phone,
        "notes": course.notes,
        "tees": [
            {
                "id": t.id,
                "name": t.name,
                "color": t.color,
                "total_yardage": t.total_yardage,
                "slope_rating": t.slope_rating,
                "course_rating": t.course_rating,
                "sort_order": t.sort_order,
            }
            for t in tees.scalars().all()
        ],
        "holes": [
            {
                "hole_number": h.hole_number,
                "par": h.par,
                "handicap_index": h.handicap_index,
                "is_ctp_hole": h.is_ctp_hole,
            }
            for h in holes.scalars().all()
        ],
        "created_at": _iso(course.created_at),
    }


async def list_courses(session: AsyncSession) -> List[Dict]:
    result = await session.execute(select(Course).order_by(Course.name.asc()))
    return [await _course_to_dict(session, c) for c in result.scalars().all()]


async def get_course(session: AsyncSession, course_id: int) -> Optional[Dict]:
    course = await session.get(Course, course_id)
    return await _course_to_dict(session, course) if course else None


async def create_course(session: AsyncSession, name: str, **fields) -> Dict:
    """Create a course."""
    if not name or not name.strip():
        raise ValueError("Course name is required")
    values = {k: _clean_optional(v) for k, v in fields.items() if k in COURSE_FIELDS and k != "name"}
    course = Course(name=name.strip(), **values)
    session.add(course)
    await session.commit()
    await session.refresh(course)
    return await _course_to_dict(session, course)


async def update_course(session: AsyncSession, course_id: int, **fields) -> Dict:
    course = await session.get(Course, course_id)
    if not course:
        raise NotFoundError("Course not found")
    for key, value in fields.items():
        if key in COURSE_FIELDS:
            setattr(course, key, value.strip() if key == "name" and value else _clean_optional(value))
    if not course.name:
        raise ValueError("Course name is required")
    await session.commit()
    await session.refresh(course)
    return await _course_to_dict(session, course)


async def delete_course(session: AsyncSession, course_id: int) -> bool:
    """Delete a course with its tees and holes. Events keep their course_name."""
    await session.execute(delete(CourseTee).where(CourseTee.course_id == course_id))
    await session.execute(delete(CourseHole).where(CourseHole.course_id == course_id))
    result = await session.execute(delete(Course).where(Course.id == course_id))
    await session.commit()
    return result.rowcount > 0


async def replace_course_holes(session: AsyncSession, course_id: int, holes: List[Dict]) -> Dict:
    """
    Replace the hole set of a course.

    Args:
        holes: [{"hole_number": 1, "par": 4, "handicap_index": 7, "is_ctp_hole": False}, ...]
    """
    course = await session.get(Course, course_id)
    if not course:
        raise NotFoundError("Course not found")
    numbers = [h["hole_number"] for h in holes]
    if len(numbers) != len(set(numbers)):
        raise ValueError("Duplicate hole numbers")
    if any(n < 1 or n > 18 for n in numbers):
        raise ValueError("Hole numbers must be between 1 and 18")

    await session.execute(delete(CourseHole).where(CourseHole.course_id == course_id))
    for hole in holes:
        session.add(CourseHole(
            course_id=course_id,
            hole_number=hole["hole_number"],
            par=hole.get("par", 4),
            handicap_index=hole.get("handicap_index"),
            is_ctp_hole=hole.get("is_ctp_hole", False),
        ))
    await session.commit()
    return await _course_to_dict(session, course)


async def replace_course_tees(session: AsyncSession, course_id: int, tees: List[Dict]) -> Dict:
    """Replace the tee sets of a course, keeping the given order as sort_order."""
    course = await session.get(Course, course_id)
    if not course:
        raise NotFoundError("Course not found")
    await session.execute(delete(CourseTee).where(CourseTee.course_id == course_id))
    for i, tee in enumerate(tees):
        if not (tee.get("name") or "").strip():
            raise ValueError("Tee name is required")
        session.add(CourseTee(
            course_id=course_id,
            name=tee["name"].strip(),
            color=tee.get("color"),
            total_yardage=tee.get("total_yardage"),
            slope_rating=tee.get("slope_rating"),
            course_rating=tee.get("course_rating"),
            sort_order=tee.get("sort_order", i),
        ))
    await session.commit()
    return await _course_to_dict(session, course)


#
# Tee boxes
#

def _tee_box_to_dict(tee_box: TeeBox) -> Dict:
    return {
        "id": tee_box.id,
        "name": tee_box.name,
        "color": tee_box.color,
        "typical_yardage": tee_box.typical_yardage,
        "sort_order": tee_box.sort_order,
        "is_active": tee_box.is_active,
    }


async def list_tee_boxes(session: AsyncSession) -> List[Dict]:
    result = await session.execute(select(TeeBox).order_by(TeeBox.sort_order.asc(), TeeBox.name.asc()))
    return [_tee_box_to_dict(t) for t in result.scalars().all()]


async def create_tee_box(session: AsyncSession, name: str, **fields) -> Dict:
    if not name or not name.strip():
        raise ValueError("Tee box name is required")
    values = {k: v for k, v in fields.items() if k in TEE_BOX_FIELDS and k != "name"}
    tee_box = TeeBox(name=name.strip(), **values)
    session.add(tee_box)
    await session.commit()
    await session.refresh(tee_box)
    return _tee_box_to_dict(tee_box)


async def update_tee_box(session: AsyncSession, tee_box_id: int, **fields) -> Dict:
    tee_box = await session.get(TeeBox, tee_box_id)
    if not tee_box:
        raise NotFoundError("Tee box not found")
    for key, value in fields.items():
        if key in TEE_BOX_FIELDS:
            setattr(tee_box, key, value)
    await session.commit()
    await session.refresh(tee_box)
    return _tee_box_to_dict(tee_box)


async def delete_tee_box(session: AsyncSession, tee_box_id: int) -> bool:
    await session.execute(update(Player).where(Player.tee_box_id == tee_box_id).values(tee_box_id=None))
    result = await session.execute(delete(TeeBox).where(TeeBox.id == tee_box_id))
    await session.commit()
    return result.rowcount > 0


#
# Settings
#

async def get_setting(session: AsyncSession, key: str) -> Optional[str]:
    """
    Get a setting value.

    Args:
        session: Database session
        key: Setting key

    Returns:
        Setting value or None if not found
    """
    result = await session.execute(
        select(Setting).where(Setting.key == key)
    )
    setting = result.scalar_one_or_none()
    return setting.value if setting else None


async def set_setting(session: AsyncSession, key: str, value: str) -> None:
    """
    Set a setting value (upsert).

    Args:
        session: Database session
        key: Setting key
        value: Setting value
    """
    setting = await session.get(Setting, key)
    if setting:
        setting.value = value
    else:
        session.add(Setting(key=key, value=value))
    await session.commit()


async def list_settings(session: AsyncSession) -> Dict[str, str]:
    result = await session.execute(select(Setting).order_by(Setting.key.asc()))
    return {s.key: s.value for s in result.scalars().all()}


#
# User roles
#

async def get_user_roles(session: AsyncSession, user_id: str) -> List[str]:
    result = await session.execute(select(UserRole.role).where(UserRole.user_id == user_id))
    return [r.value if isinstance(r, UserRoleType) else r for r in result.scalars().all()]


async def grant_role(session: AsyncSession, user_id: str, role: str) -> None:
    """Grant a role to a user (no-op if already granted)."""
    role_type = UserRoleType(role)
    existing = await session.execute(
        select(func.count()).select_from(UserRole).where(
            UserRole.user_id == user_id, UserRole.role == role_type
        )
    )
    if existing.scalar() == 0:
        session.add(UserRole(user_id=user_id, role=role_type))
        await session.commit()


async def revoke_role(session: AsyncSession, user_id: str, role: str) -> bool:
    result = await session.execute(
        delete(UserRole).where(UserRole.user_id == user_id, UserRole.role == UserRoleType(role))
    )
    await session.commit()
    return result.rowcount > 0
