"""
SQLAlchemy ORM models for the golf league operations system.
"""

import enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    Float,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from golf_league.database.db import Base
from golf_league.utils.datetime_utils import utcnow
from golf_league.utils.tokens import generate_rsvp_token


class EventPlayerStatus(str, enum.Enum):
    """Event player status enum."""

    INVITED = "invited"
    YES = "yes"
    NO = "no"
    WAITLIST = "waitlist"
    PLAYING = "playing"


class TemplateChannel(str, enum.Enum):
    """Channels an RSVP template can be used for."""

    EMAIL = "email"
    SMS = "sms"
    BOTH = "both"


class MessageChannel(str, enum.Enum):
    """Channel a single RSVP message is sent over."""

    EMAIL = "email"
    SMS = "sms"


class MessageStatus(str, enum.Enum):
    """RSVP message delivery status enum."""

    PENDING = "pending"
    SENT = "sent"
    DELIVERED = "delivered"
    FAILED = "failed"
    BOUNCED = "bounced"


class UserRoleType(str, enum.Enum):
    """Application roles."""

    ADMIN = "admin"
    SCORER = "scorer"


def _enum_values(enum_cls):
    return [e.value for e in enum_cls]


# Shared by templates and schedules so the database type is declared once
TEMPLATE_CHANNEL_ENUM = Enum(TemplateChannel, values_callable=_enum_values, name="rsvp_template_channel")


class TeeBox(Base):
    """League-wide tee box definitions (e.g. Blue, White, Red)."""

    __tablename__ = "tee_boxes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False, unique=True)
    color = Column(String, nullable=True)
    typical_yardage = Column(Integer, nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class PlayerTeam(Base):
    """Teams players belong to for standings."""

    __tablename__ = "player_teams"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    color = Column(String, nullable=True)  # Hex colour used for display
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Player(Base):
    """League players."""

    __tablename__ = "players"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    handicap = Column(Float, nullable=True)
    notes = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    default_team_id = Column(Integer, ForeignKey("player_teams.id", ondelete="SET NULL"), nullable=True)
    tee_box_id = Column(Integer, ForeignKey("tee_boxes.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    default_team = relationship("PlayerTeam", foreign_keys=[default_team_id])
    tee_box = relationship("TeeBox", foreign_keys=[tee_box_id])

    __table_args__ = (
        Index("idx_players_name", "name"),
        Index("idx_players_is_active", "is_active"),
    )


class PlayerTeamMember(Base):
    """Join table for team membership."""

    __tablename__ = "player_team_members"

    id = Column(Integer, primary_key=True, autoincrement=True)
    team_id = Column(Integer, ForeignKey("player_teams.id", ondelete="CASCADE"), nullable=False)
    player_id = Column(Integer, ForeignKey("players.id", ondelete="CASCADE"), nullable=False)
    joined_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("team_id", "player_id", name="uq_player_team_members_team_player"),
        Index("idx_player_team_members_team", "team_id"),
        Index("idx_player_team_members_player", "player_id"),
    )


class Course(Base):
    """Golf courses events are played on."""

    __tablename__ = "courses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    address = Column(Text, nullable=True)
    phone = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    tees = relationship(
        "CourseTee", back_populates="course", cascade="all, delete-orphan", order_by="CourseTee.sort_order"
    )
    holes = relationship(
        "CourseHole", back_populates="course", cascade="all, delete-orphan", order_by="CourseHole.hole_number"
    )


class CourseTee(Base):
    """Tee sets available at a course."""

    __tablename__ = "course_tees"

    id = Column(Integer, primary_key=True, autoincrement=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    name = Column(String, nullable=False)
    color = Column(String, nullable=True)
    total_yardage = Column(Integer, nullable=True)
    slope_rating = Column(Float, nullable=True)
    course_rating = Column(Float, nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    course = relationship("Course", back_populates="tees")

    __table_args__ = (Index("idx_course_tees_course", "course_id"),)


class CourseHole(Base):
    """Per-hole data for a course."""

    __tablename__ = "course_holes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    hole_number = Column(Integer, nullable=False)
    par = Column(Integer, nullable=False, default=4)
    handicap_index = Column(Integer, nullable=True)
    is_ctp_hole = Column(Boolean, nullable=False, default=False)  # Closest-to-the-pin hole

    course = relationship("Course", back_populates="holes")

    __table_args__ = (
        UniqueConstraint("course_id", "hole_number", name="uq_course_holes_course_hole"),
        CheckConstraint("hole_number >= 1 AND hole_number <= 18", name="ck_course_holes_hole_number"),
    )


class Event(Base):
    """A scheduled round of league play."""

    __tablename__ = "events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    date = Column(Date, nullable=False)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="SET NULL"), nullable=True)
    course_name = Column(String, nullable=False)  # Denormalised display name
    first_tee_time = Column(String(5), nullable=False)  # "HH:MM"
    holes = Column(Integer, nullable=False, default=18)
    slots_per_group = Column(Integer, nullable=False, default=4)
    max_players = Column(Integer, nullable=False)
    tee_interval_minutes = Column(Integer, nullable=False, default=10)
    is_locked = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    course = relationship("Course", foreign_keys=[course_id])

    __table_args__ = (
        CheckConstraint("holes IN (9, 18)", name="ck_events_holes"),
        CheckConstraint("slots_per_group >= 2 AND slots_per_group <= 4", name="ck_events_slots_per_group"),
        CheckConstraint("max_players >= 1", name="ck_events_max_players"),
        CheckConstraint("tee_interval_minutes >= 1", name="ck_events_tee_interval"),
        Index("idx_events_date", "date"),
    )


class Group(Base):
    """Tee-time group within an event."""

    __tablename__ = "groups"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False)
    group_index = Column(Integer, nullable=False)  # 1-based
    tee_time = Column(String(5), nullable=False)  # "HH:MM"
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("event_id", "group_index", name="uq_groups_event_index"),
        Index("idx_groups_event", "event_id"),
    )


class GroupAssignment(Base):
    """Player placed in a numbered slot of a group."""

    __tablename__ = "group_assignments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    group_id = Column(Integer, ForeignKey("groups.id"), nullable=False)
    player_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    position = Column(Integer, nullable=False)  # 1..slots_per_group
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("group_id", "position", name="uq_group_assignments_group_position"),
        Index("idx_group_assignments_group", "group_id"),
        Index("idx_group_assignments_player", "player_id"),
    )


class EventPlayer(Base):
    """A player's participation record for one event."""

    __tablename__ = "event_players"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False)
    player_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    status = Column(
        Enum(EventPlayerStatus, values_callable=_enum_values, name="event_player_status"),
        default=EventPlayerStatus.INVITED,
        nullable=False,
    )
    note = Column(Text, nullable=True)
    rsvp_token = Column(String, nullable=False, unique=True, default=generate_rsvp_token)
    invite_sent_at = Column(DateTime(timezone=True), nullable=True)
    responded_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    player = relationship("Player", foreign_keys=[player_id])

    __table_args__ = (
        UniqueConstraint("event_id", "player_id", name="uq_event_players_event_player"),
        Index("idx_event_players_event", "event_id"),
        Index("idx_event_players_status", "status"),
    )


class RoundScore(Base):
    """Points a player earned at one event."""

    __tablename__ = "round_scores"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False)
    player_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    points = Column(Float, nullable=False)
    notes = Column(Text, nullable=True)
    # Python-side default so rows inserted in one request still order deterministically
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("event_id", "player_id", name="uq_round_scores_event_player"),
        Index("idx_round_scores_player_created", "player_id", "created_at"),
    )


class RsvpTemplate(Base):
    """Reusable RSVP message body with {{variable}} placeholders."""

    __tablename__ = "rsvp_templates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    channel = Column(TEMPLATE_CHANNEL_ENUM, nullable=False)
    subject = Column(String, nullable=True)  # Always NULL for sms-only templates
    body = Column(Text, nullable=False)
    is_default = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class RsvpMessage(Base):
    """One outbound RSVP message to one recipient over one channel."""

    __tablename__ = "rsvp_messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_player_id = Column(Integer, ForeignKey("event_players.id"), nullable=False)
    template_id = Column(Integer, ForeignKey("rsvp_templates.id"), nullable=True)
    channel = Column(
        Enum(MessageChannel, values_callable=_enum_values, name="rsvp_message_channel"),
        nullable=False,
    )
    recipient = Column(String, nullable=False)
    status = Column(
        Enum(MessageStatus, values_callable=_enum_values, name="rsvp_message_status"),
        default=MessageStatus.PENDING,
        nullable=False,
    )
    response_token = Column(String, nullable=False)
    external_id = Column(String, nullable=True)  # Provider message id
    sent_at = Column(DateTime(timezone=True), nullable=True)
    responded_at = Column(DateTime(timezone=True), nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_rsvp_messages_event_player", "event_player_id"),
        Index("idx_rsvp_messages_status", "status"),
        Index("idx_rsvp_messages_token", "response_token"),
    )


class RsvpSchedule(Base):
    """A deferred RSVP send for an event."""

    __tablename__ = "rsvp_schedules"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False)
    template_id = Column(Integer, ForeignKey("rsvp_templates.id"), nullable=False)
    channel = Column(TEMPLATE_CHANNEL_ENUM, nullable=False)
    scheduled_for = Column(DateTime(timezone=True), nullable=False)  # UTC
    created_by = Column(String, nullable=True)  # Identity provider user id
    sent_at = Column(DateTime(timezone=True), nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_rsvp_schedules_due", "sent_at", "scheduled_for"),
    )


class UserRole(Base):
    """Role granted to an identity-provider user."""

    __tablename__ = "user_roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False)
    role = Column(
        Enum(UserRoleType, values_callable=_enum_values, name="user_role_type"),
        nullable=False,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),
        Index("idx_user_roles_user", "user_id"),
    )


class Setting(Base):
    """Application configuration."""

    __tablename__ = "settings"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
