from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel
from typing import Optional

from app.core.database import get_db
from app.core.security import get_current_user_id
from app.progress import progress_service as service

router = APIRouter(prefix="/progress", tags=["Course Progress"])


class LectureProgressUpdate(BaseModel):
    completed: bool = True
    watch_time: Optional[int] = None  # seconds


@router.get("/{course_id}")
async def get_user_course_progress(
    course_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    data = await service.get_progress(db, user_id, course_id)
    return {"status": "success", "data": data}


@router.patch("/{course_id}/lectures/{lecture_id}")
async def update_lecture_progress(
    course_id: str,
    lecture_id: str,
    payload: Optional[LectureProgressUpdate] = None,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    """Mark a lecture watched/completed; creates the progress record on first use"""
    payload = payload or LectureProgressUpdate()
    progress = await service.update_lecture_progress(
        db, user_id, course_id, lecture_id,
        completed=payload.completed,
        watch_time=payload.watch_time
    )
    return {"status": "success", "data": {"progress": progress}}


@router.patch("/{course_id}/complete")
async def mark_course_as_completed(
    course_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    progress = await service.mark_course_completed(db, user_id, course_id)
    return {
        "status": "success",
        "message": "Course marked as completed",
        "data": {"progress": progress}
    }


@router.patch("/{course_id}/reset")
async def reset_course_progress(
    course_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    progress = await service.reset_course_progress(db, user_id, course_id)
    return {
        "status": "success",
        "message": "Course progress reset",
        "data": {"progress": progress}
    }
