"""Health, settings, and user role route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from golf_league.api.routes import service_error
from golf_league.database.db import get_db_session
from golf_league.services import data_service, email_service, settings_service, sms_service
from golf_league.api.auth_dependencies import RequestContext, require_admin, require_user
from golf_league.models.schemas import SettingRequest, UserRoleRequest

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/health")
async def health_check(session: AsyncSession = Depends(get_db_session)):
    """
    Health check endpoint.

    Returns:
        dict: Service status
    """
    try:
        await session.execute(text("SELECT 1"))
        return {"status": "healthy", "message": "API is running"}
    except Exception as e:
        return {"status": "unhealthy", "message": f"Error: {str(e)}"}


@router.get("/api/me")
async def get_me(context: RequestContext = Depends(require_user)):
    """The caller's user id and role."""
    return {"user_id": context.user_id, "role": context.role}


@router.get("/api/admin/settings")
async def list_settings(
    context: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Effective settings plus whether each message transport is enabled."""
    try:
        return {
            "settings": await settings_service.get_effective_settings(session),
            "email_enabled": await email_service.is_enabled(session),
            "sms_enabled": await sms_service.is_enabled(session),
        }
    except Exception as e:
        raise service_error(e, "listing settings")


@router.put("/api/admin/settings/{key}")
async def set_setting(
    key: str,
    request: SettingRequest,
    context: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Set a runtime setting (admin).
    Known keys: enable_email, enable_sms, rsvp_send_delay_seconds, log_level.
    """
    try:
        result = await settings_service.set_setting(session, key, request.value)
        logger.info(f"Setting '{key}' updated by {context.user_id}")
        return result
    except Exception as e:
        raise service_error(e, "updating setting")


@router.post("/api/admin/roles")
async def grant_role(
    request: UserRoleRequest,
    context: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        await data_service.grant_role(session, request.user_id, request.role)
        return {"success": True}
    except Exception as e:
        raise service_error(e, "granting role")


@router.delete("/api/admin/roles/{user_id}/{role}")
async def revoke_role(
    user_id: str,
    role: str,
    context: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        if not await data_service.revoke_role(session, user_id, role):
            raise HTTPException(status_code=404, detail="Role not found")
        return {"success": True}
    except HTTPException:
        raise
    except Exception as e:
        raise service_error(e, "revoking role")
