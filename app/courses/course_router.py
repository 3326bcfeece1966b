from fastapi import APIRouter, Depends, Query
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Optional

from app.core.database import get_db
from app.core.security import get_current_user_id
from app.courses.models import CourseCreate, CourseUpdate, CourseLevel, CourseSort, LectureCreate
from app.courses.database import (
    create_course, get_course_or_404, populate_course, update_course, delete_course,
    search_courses, list_published_courses, list_instructor_courses,
    add_lecture, remove_lecture, get_ordered_lectures
)
from app.courses.dependencies import get_owned_course, require_instructor

router = APIRouter(prefix="/courses", tags=["Course Management"])

# ==================== COURSE CRUD ====================

@router.post("", status_code=201)
async def create_course_endpoint(
    course: CourseCreate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: dict = Depends(require_instructor)
):
    """Create new course (instructor only). Starts unpublished."""
    new_course = await create_course(db, course, user["user_id"])
    return {"status": "success", "data": {"course": new_course}}


@router.get("/search")
async def search_courses_endpoint(
    query: Optional[str] = None,
    categories: Optional[str] = Query(None, description="Comma separated"),
    level: Optional[CourseLevel] = None,
    price_range: Optional[str] = Query(None, description="min-max, e.g. 10-50"),
    sort_by: CourseSort = CourseSort.NEWEST,
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    category_list = [c.strip() for c in categories.split(",") if c.strip()] if categories else None
    courses = await search_courses(
        db,
        query=query,
        categories=category_list,
        level=level.value if level else None,
        price_range=price_range,
        sort_by=sort_by
    )
    return {
        "status": "success",
        "results": len(courses),
        "data": {"courses": courses}
    }


@router.get("/published")
async def list_published_endpoint(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    result = await list_published_courses(db, page, limit)
    return {
        "status": "success",
        "results": len(result["courses"]),
        "data": result
    }


@router.get("/my-courses")
async def list_my_courses(
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    courses = await list_instructor_courses(db, user_id)
    return {
        "status": "success",
        "results": len(courses),
        "data": {"courses": courses}
    }


@router.get("/{course_id}")
async def get_course_details(
    course_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    course = await get_course_or_404(db, course_id)
    return {"status": "success", "data": {"course": await populate_course(db, course)}}


@router.patch("/{course_id}")
async def update_course_details(
    course_id: str,
    updates: CourseUpdate,
    course: dict = Depends(get_owned_course),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    updated = await update_course(db, course_id, updates)
    return {"status": "success", "data": {"course": updated}}


@router.delete("/{course_id}")
async def delete_course_endpoint(
    course_id: str,
    course: dict = Depends(get_owned_course),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    await delete_course(db, course_id)
    return {"status": "success", "message": "Course deleted successfully"}

# ==================== LECTURES ====================

@router.post("/{course_id}/lectures", status_code=201)
async def add_lecture_endpoint(
    course_id: str,
    lecture: LectureCreate,
    course: dict = Depends(get_owned_course),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    new_lecture = await add_lecture(db, course, lecture)
    return {"status": "success", "data": {"lecture": new_lecture}}


@router.get("/{course_id}/lectures")
async def get_course_lectures(
    course_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    course = await get_course_or_404(db, course_id)
    lectures = await get_ordered_lectures(db, course)
    return {
        "status": "success",
        "results": len(lectures),
        "data": {"lectures": lectures}
    }


@router.delete("/{course_id}/lectures/{lecture_id}")
async def remove_lecture_endpoint(
    course_id: str,
    lecture_id: str,
    course: dict = Depends(get_owned_course),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    await remove_lecture(db, course, lecture_id)
    return {"status": "success", "message": "Lecture removed successfully"}
