"""Course, course tee, course hole and tee box route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from golf_league.api.routes import service_error
from golf_league.database.db import get_db_session
from golf_league.services import data_service
from golf_league.api.auth_dependencies import RequestContext, require_admin, require_user
from golf_league.models.schemas import (
    CourseHolesRequest,
    CourseRequest,
    CourseTeesRequest,
    TeeBoxRequest,
    UpdateCourseRequest,
    UpdateTeeBoxRequest,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/courses")
async def list_courses(
    context: RequestContext = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Courses with their tees and holes."""
    try:
        return await data_service.list_courses(session)
    except Exception as e:
        raise service_error(e, "listing courses")


@router.get("/api/courses/{course_id}")
async def get_course(
    course_id: int,
    context: RequestContext = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        course = await data_service.get_course(session, course_id)
        if not course:
            raise HTTPException(status_code=404, detail="Course not found")
        return course
    except HTTPException:
        raise
    except Exception as e:
        raise service_error(e, "getting course")


@router.post("/api/courses")
async def create_course(
    request: CourseRequest,
    context: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await data_service.create_course(session, **request.model_dump())
    except Exception as e:
        raise service_error(e, "creating course")


@router.put("/api/courses/{course_id}")
async def update_course(
    course_id: int,
    request: UpdateCourseRequest,
    context: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await data_service.update_course(session, course_id, **request.model_dump(exclude_unset=True))
    except Exception as e:
        raise service_error(e, "updating course")


@router.delete("/api/courses/{course_id}")
async def delete_course(
    course_id: int,
    context: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Delete a course (admin). Events played there keep their course name."""
    try:
        if not await data_service.delete_course(session, course_id):
            raise HTTPException(status_code=404, detail="Course not found")
        return {"success": True}
    except HTTPException:
        raise
    except Exception as e:
        raise service_error(e, "deleting course")


@router.put("/api/courses/{course_id}/holes")
async def replace_course_holes(
    course_id: int,
    request: CourseHolesRequest,
    context: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await data_service.replace_course_holes(
            session, course_id, [hole.model_dump() for hole in request.holes]
        )
    except Exception as e:
        raise service_error(e, "saving course holes")


@router.put("/api/courses/{course_id}/tees")
async def replace_course_tees(
    course_id: int,
    request: CourseTeesRequest,
    context: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await data_service.replace_course_tees(
            session, course_id, [tee.model_dump() for tee in request.tees]
        )
    except Exception as e:
        raise service_error(e, "saving course tees")


# Tee boxes


@router.get("/api/tee-boxes")
async def list_tee_boxes(
    context: RequestContext = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await data_service.list_tee_boxes(session)
    except Exception as e:
        raise service_error(e, "listing tee boxes")


@router.post("/api/tee-boxes")
async def create_tee_box(
    request: TeeBoxRequest,
    context: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await data_service.create_tee_box(session, **request.model_dump())
    except Exception as e:
        raise service_error(e, "creating tee box")


@router.put("/api/tee-boxes/{tee_box_id}")
async def update_tee_box(
    tee_box_id: int,
    request: UpdateTeeBoxRequest,
    context: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await data_service.update_tee_box(session, tee_box_id, **request.model_dump(exclude_unset=True))
    except Exception as e:
        raise service_error(e, "updating tee box")


@router.delete("/api/tee-boxes/{tee_box_id}")
async def delete_tee_box(
    tee_box_id: int,
    context: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        if not await data_service.delete_tee_box(session, tee_box_id):
            raise HTTPException(status_code=404, detail="Tee box not found")
        return {"success": True}
    except HTTPException:
        raise
    except Exception as e:
        raise service_error(e, "deleting tee box")
