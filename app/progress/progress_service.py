"""
Lecture progress tracking.

One ``course_progress`` document per (user, course). Each completed or
watched lecture has an entry in ``lecture_progress``; the overall
percentage and ``is_completed`` flag are recomputed on every write
against the course's current lecture list.
"""

from datetime import datetime
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from app.core.database import generate_id, serialize_mongo
from app.core.errors import AppError
from app.courses.database import get_course_or_404, get_ordered_lectures


def compute_completion(course_lectures: List[str], lecture_progress: List[dict]) -> tuple:
    """(percentage, is_completed) for the lectures that still belong to the course"""
    if not course_lectures:
        return 0.0, False
    done = {
        entry["lecture_id"]
        for entry in lecture_progress
        if entry.get("is_completed")
    }
    completed = sum(1 for lid in course_lectures if lid in done)
    percentage = round(completed / len(course_lectures) * 100, 2)
    return percentage, completed == len(course_lectures)


async def _save_progress(
    db: AsyncIOMotorDatabase,
    user_id: str,
    course_id: str,
    lecture_progress: List[dict],
    is_completed: bool,
    percentage: float
) -> dict:
    now = datetime.utcnow()
    progress = await db.course_progress.find_one_and_update(
        {"user_id": user_id, "course_id": course_id},
        {
            "$set": {
                "lecture_progress": lecture_progress,
                "is_completed": is_completed,
                "completion_percentage": percentage,
                "last_accessed": now,
            },
            "$setOnInsert": {
                "progress_id": generate_id("PROG"),
                "created_at": now,
            },
        },
        upsert=True,
        return_document=ReturnDocument.AFTER
    )
    return serialize_mongo(progress)


async def get_progress(db: AsyncIOMotorDatabase, user_id: str, course_id: str) -> dict:
    """Progress merged with the course's lectures"""
    course = await get_course_or_404(db, course_id)
    progress = await db.course_progress.find_one({"user_id": user_id, "course_id": course_id})
    if not progress:
        raise AppError("No progress found", 404)

    by_lecture = {p["lecture_id"]: p for p in progress.get("lecture_progress", [])}
    lectures = []
    for lecture in await get_ordered_lectures(db, course):
        entry = by_lecture.get(lecture["lecture_id"], {})
        lectures.append({
            **lecture,
            "is_completed": entry.get("is_completed", False),
            "watch_time": entry.get("watch_time", 0),
            "last_watched": entry.get("last_watched"),
        })

    return {
        "course_details": {
            "course_id": course["course_id"],
            "title": course["title"],
            "thumbnail": course.get("thumbnail"),
        },
        "progress": serialize_mongo(progress),
        "lectures": lectures,
        "is_completed": progress.get("is_completed", False),
        "completion_percentage": progress.get("completion_percentage", 0.0),
    }


async def update_lecture_progress(
    db: AsyncIOMotorDatabase,
    user_id: str,
    course_id: str,
    lecture_id: str,
    completed: bool = True,
    watch_time: Optional[int] = None
) -> dict:
    course = await get_course_or_404(db, course_id)
    if lecture_id not in course.get("lectures", []):
        raise AppError("Lecture not found in this course", 404)

    existing = await db.course_progress.find_one({"user_id": user_id, "course_id": course_id})
    lecture_progress = list(existing.get("lecture_progress", [])) if existing else []

    now = datetime.utcnow()
    for entry in lecture_progress:
        if entry["lecture_id"] == lecture_id:
            entry["is_completed"] = completed
            entry["last_watched"] = now
            if watch_time is not None:
                entry["watch_time"] = watch_time
            break
    else:
        lecture_progress.append({
            "lecture_id": lecture_id,
            "is_completed": completed,
            "watch_time": watch_time or 0,
            "last_watched": now,
        })

    percentage, is_completed = compute_completion(course["lectures"], lecture_progress)
    return await _save_progress(db, user_id, course_id, lecture_progress, is_completed, percentage)


async def mark_course_completed(db: AsyncIOMotorDatabase, user_id: str, course_id: str) -> dict:
    course = await get_course_or_404(db, course_id)

    existing = await db.course_progress.find_one({"user_id": user_id, "course_id": course_id})
    previous = {p["lecture_id"]: p for p in (existing or {}).get("lecture_progress", [])}

    now = datetime.utcnow()
    lecture_progress = [
        {
            "lecture_id": lid,
            "is_completed": True,
            "watch_time": previous.get(lid, {}).get("watch_time", 0),
            "last_watched": now,
        }
        for lid in course.get("lectures", [])
    ]
    return await _save_progress(db, user_id, course_id, lecture_progress, True, 100.0)


async def reset_course_progress(db: AsyncIOMotorDatabase, user_id: str, course_id: str) -> dict:
    await get_course_or_404(db, course_id)
    return await _save_progress(db, user_id, course_id, [], False, 0.0)
