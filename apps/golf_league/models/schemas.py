"""
Pydantic models for API request/response validation.
"""

from datetime import date as Date, datetime
from typing import Optional, List, Literal
from pydantic import BaseModel, Field, ConfigDict, model_validator


EventPlayerStatusValue = Literal["invited", "yes", "no", "waitlist", "playing"]
TemplateChannelValue = Literal["email", "sms", "both"]


# Event schemas


class CreateEventRequest(BaseModel):
    """Request to create an event. Groups and the invited roster are created with it."""

    date: Date
    course_id: Optional[int] = None
    course_name: Optional[str] = None
    first_tee_time: str = Field(description="HH:MM, 24-hour")
    holes: int = 18
    slots_per_group: int = Field(default=4, ge=2, le=4)
    max_players: int = Field(ge=1)
    tee_interval_minutes: int = Field(default=10, ge=1)
    notes: Optional[str] = None

    @model_validator(mode="after")
    def validate_course(self):
        """Either a saved course or a course name is needed."""
        if self.course_id is None and not (self.course_name or "").strip():
            raise ValueError("Either course_id or course_name must be provided")
        return self


class UpdateEventRequest(BaseModel):
    """Request to update event fields. Groups are not regenerated."""

    date: Optional[Date] = None
    course_id: Optional[int] = None
    course_name: Optional[str] = None
    first_tee_time: Optional[str] = None
    holes: Optional[int] = None
    slots_per_group: Optional[int] = Field(default=None, ge=2, le=4)
    max_players: Optional[int] = Field(default=None, ge=1)
    tee_interval_minutes: Optional[int] = Field(default=None, ge=1)
    notes: Optional[str] = None


class EventLockRequest(BaseModel):
    locked: bool


# Roster schemas


class AddEventPlayerRequest(BaseModel):
    player_id: int
    status: EventPlayerStatusValue = "invited"


class UpdateEventPlayerStatusRequest(BaseModel):
    status: EventPlayerStatusValue
    note: Optional[str] = None


class BulkStatusRequest(BaseModel):
    """Apply one status to several event players (not capacity checked)."""

    event_player_ids: List[int] = Field(min_length=1)
    status: EventPlayerStatusValue


# Tee sheet schemas


class MovePlayerRequest(BaseModel):
    player_id: int
    group_id: int
    position: int = Field(ge=1)


class UpdateGroupTeeTimeRequest(BaseModel):
    tee_time: str = Field(description="HH:MM, 24-hour")


# Scoring schemas


class ScoreEntry(BaseModel):
    player_id: int
    points: Optional[float] = None
    notes: Optional[str] = None


class SaveScoresRequest(BaseModel):
    scores: List[ScoreEntry]


class UpdateScoreRequest(BaseModel):
    points: float
    notes: Optional[str] = None


# RSVP schemas


class RsvpTemplateRequest(BaseModel):
    """Create an RSVP template. The subject is dropped for sms-only templates."""

    name: str
    channel: TemplateChannelValue
    subject: Optional[str] = None
    body: str
    is_default: bool = False

    @model_validator(mode="after")
    def validate_subject(self):
        if self.channel != "sms" and not (self.subject or "").strip():
            raise ValueError("Subject is required for email templates")
        return self


class UpdateRsvpTemplateRequest(BaseModel):
    name: Optional[str] = None
    channel: Optional[TemplateChannelValue] = None
    subject: Optional[str] = None
    body: Optional[str] = None
    is_default: Optional[bool] = None


class SendRsvpRequest(BaseModel):
    """Queue RSVP messages for selected event players; sending happens in the background."""

    event_player_ids: List[int] = Field(min_length=1)
    template_id: int
    channel: TemplateChannelValue


class MessageStatusRequest(BaseModel):
    status: Literal["sent", "delivered", "failed", "bounced"]


class CreateRsvpScheduleRequest(BaseModel):
    template_id: int
    channel: TemplateChannelValue
    scheduled_for: datetime


class PublicRsvpRequest(BaseModel):
    """Programmatic RSVP response."""

    token: str
    response: str


class RsvpEventDetails(BaseModel):
    course: Optional[str] = None
    date: str
    teeTime: str
    holes: int


class PublicRsvpResponse(BaseModel):
    result: Literal["success", "already_responded", "invalid", "error"]
    status: Optional[str] = None
    playerName: Optional[str] = None
    message: str
    eventDetails: Optional[RsvpEventDetails] = None


# Reference data schemas


class PlayerRequest(BaseModel):
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    handicap: Optional[float] = None
    notes: Optional[str] = None
    is_active: bool = True
    default_team_id: Optional[int] = None
    tee_box_id: Optional[int] = None


class UpdatePlayerRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    handicap: Optional[float] = None
    notes: Optional[str] = None
    is_active: Optional[bool] = None
    default_team_id: Optional[int] = None
    tee_box_id: Optional[int] = None


class TeamRequest(BaseModel):
    name: str
    description: Optional[str] = None
    color: Optional[str] = None
    is_active: bool = True
    member_ids: Optional[List[int]] = None


class UpdateTeamRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    color: Optional[str] = None
    is_active: Optional[bool] = None
    member_ids: Optional[List[int]] = None


class CourseRequest(BaseModel):
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None


class UpdateCourseRequest(BaseModel):
    name: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None


class CourseHoleEntry(BaseModel):
    hole_number: int = Field(ge=1, le=18)
    par: int = Field(default=4, ge=3, le=6)
    handicap_index: Optional[int] = Field(default=None, ge=1, le=18)
    is_ctp_hole: bool = False


class CourseHolesRequest(BaseModel):
    holes: List[CourseHoleEntry]


class CourseTeeEntry(BaseModel):
    name: str
    color: Optional[str] = None
    total_yardage: Optional[int] = None
    slope_rating: Optional[float] = None
    course_rating: Optional[float] = None


class CourseTeesRequest(BaseModel):
    tees: List[CourseTeeEntry]


class TeeBoxRequest(BaseModel):
    name: str
    color: Optional[str] = None
    typical_yardage: Optional[int] = None
    sort_order: int = 0
    is_active: bool = True


class UpdateTeeBoxRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    color: Optional[str] = None
    typical_yardage: Optional[int] = None
    sort_order: Optional[int] = None
    is_active: Optional[bool] = None


class SettingRequest(BaseModel):
    value: str


class UserRoleRequest(BaseModel):
    user_id: str
    role: Literal["admin", "scorer"]
