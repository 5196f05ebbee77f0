"""001_initial_schema

Revision ID: 001
Revises: 
Create Date: 2026-10-19 09:00:00.000000

Creates the full golf league schema from the current models:
- Reference tables: tee_boxes, player_teams, players, player_team_members,
  courses, course_tees, course_holes
- Event tables: events, groups, group_assignments, event_players, round_scores
- RSVP tables: rsvp_templates, rsvp_messages, rsvp_schedules
- Supporting tables: user_roles, settings
- All enum types and indexes
"""
from typing import Sequence, Union

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tables from scratch."""
    # Import models to register them with Base.metadata
    from golf_league.database.db import Base
    from golf_league.database import models  # noqa: F401

    bind = op.get_bind()
    Base.metadata.create_all(bind=bind, checkfirst=True)


def downgrade() -> None:
    """Drop all tables."""
    from golf_league.database.db import Base
    from golf_league.database import models  # noqa: F401

    bind = op.get_bind()
    Base.metadata.drop_all(bind=bind, checkfirst=True)
