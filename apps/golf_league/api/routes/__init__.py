"""
API routes - combined router from all domain modules.

Shared infrastructure (limiter, error mapping) lives here; every sub-router
imports what it needs from this package.
"""

import os
import logging

from fastapi import APIRouter, HTTPException
from slowapi import Limiter
from slowapi.util import get_remote_address

from golf_league.services.errors import (
    AggregateFetchError,
    CapacityError,
    CascadeStepError,
    EventLockedError,
    NotFoundError,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Shared rate limiter
# ---------------------------------------------------------------------------
IS_TEST_ENV = os.getenv("ENV", "").lower() == "test"
if IS_TEST_ENV:
    limiter = Limiter(key_func=get_remote_address)

    def no_op_limit(*args, **kwargs):
        """No-op decorator for test mode - doesn't apply any rate limiting."""
        def decorator(func):
            return func
        return decorator

    limiter.limit = lambda *args, **kwargs: no_op_limit()
else:
    limiter = Limiter(key_func=get_remote_address)


# ---------------------------------------------------------------------------
# Shared error mapping
# ---------------------------------------------------------------------------
def service_error(e: Exception, action: str) -> HTTPException:
    """
    Map a service exception to the HTTP error the API returns.

    Args:
        e: Exception raised by a service call
        action: What the route was doing, e.g. "creating event"
    """
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, (CapacityError, EventLockedError)):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, ValueError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, (CascadeStepError, AggregateFetchError)):
        logger.error(f"Error {action}: {e}")
        return HTTPException(status_code=500, detail=str(e))
    logger.error(f"Error {action}: {e}", exc_info=True)
    return HTTPException(status_code=500, detail=f"Error {action}: {str(e)}")


# ---------------------------------------------------------------------------
# Import sub-routers and combine
# ---------------------------------------------------------------------------
from golf_league.api.routes.events import router as events_router
from golf_league.api.routes.roster import router as roster_router
from golf_league.api.routes.tee_sheet import router as tee_sheet_router
from golf_league.api.routes.scores import router as scores_router
from golf_league.api.routes.rsvp import router as rsvp_router
from golf_league.api.routes.players import router as players_router
from golf_league.api.routes.teams import router as teams_router
from golf_league.api.routes.courses import router as courses_router
from golf_league.api.routes.admin import router as admin_router

router = APIRouter()
router.include_router(events_router)
router.include_router(roster_router)
router.include_router(tee_sheet_router)
router.include_router(scores_router)
router.include_router(rsvp_router)
router.include_router(players_router)
router.include_router(teams_router)
router.include_router(courses_router)
router.include_router(admin_router)
