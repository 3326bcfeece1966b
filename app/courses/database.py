from motor.motor_asyncio import AsyncIOMotorDatabase
from datetime import datetime
from typing import List, Optional
import logging
import math
import re

from pymongo import ReturnDocument

from app.core.database import generate_id, serialize_mongo, serialize_many
from app.core.errors import AppError
from app.courses.models import CourseCreate, CourseUpdate, LectureCreate, CourseSort

logger = logging.getLogger(__name__)

INSTRUCTOR_FIELDS = {"_id": 0, "user_id": 1, "name": 1, "email": 1}

SORT_OPTIONS = {
    CourseSort.NEWEST: [("created_at", -1)],
    CourseSort.PRICE_LOW: [("price", 1)],
    CourseSort.PRICE_HIGH: [("price", -1)],
    CourseSort.TITLE: [("title", 1)],
}

# ==================== POPULATE HELPERS ====================

async def attach_instructors(db: AsyncIOMotorDatabase, courses: List[dict]) -> List[dict]:
    """Replace the instructor user_id on each course with {user_id, name, email}"""
    ids = list({c.get("instructor") for c in courses if c.get("instructor")})
    instructors = await db.users.find({"user_id": {"$in": ids}}, INSTRUCTOR_FIELDS).to_list(length=None)
    by_id = {i["user_id"]: i for i in instructors}
    for course in courses:
        course["instructor"] = by_id.get(course.get("instructor"))
    return courses


async def get_ordered_lectures(db: AsyncIOMotorDatabase, course: dict) -> List[dict]:
    """Lectures of a course in the course's own order"""
    lecture_ids = course.get("lectures", [])
    if not lecture_ids:
        return []
    lectures = await db.lectures.find({"lecture_id": {"$in": lecture_ids}}).to_list(length=None)
    by_id = {lec["lecture_id"]: lec for lec in lectures}
    return serialize_many([by_id[lid] for lid in lecture_ids if lid in by_id])


async def populate_course(db: AsyncIOMotorDatabase, course: dict) -> dict:
    """Course with instructor summary and full lecture documents"""
    result = serialize_mongo(course)
    await attach_instructors(db, [result])
    result["lectures"] = await get_ordered_lectures(db, course)
    return result

# ==================== COURSE CRUD ====================

async def create_course(db: AsyncIOMotorDatabase, data: CourseCreate, instructor_id: str) -> dict:
    """Create new course (unpublished)"""
    now = datetime.utcnow()
    course = {
        "course_id": generate_id("COURSE"),
        "title": data.title,
        "subtitle": data.subtitle,
        "description": data.description,
        "category": data.category,
        "level": data.level.value,
        "price": data.price,
        "thumbnail": data.thumbnail,
        "instructor": instructor_id,
        "lectures": [],
        "enrolled_students": [],
        "is_published": False,
        "created_at": now,
        "updated_at": now,
    }
    await db.courses.insert_one(course)
    logger.info("Course %s created by %s", course["course_id"], instructor_id)
    return serialize_mongo(course)


async def get_course(db: AsyncIOMotorDatabase, course_id: str) -> Optional[dict]:
    """Get course by ID"""
    return await db.courses.find_one({"course_id": course_id})


async def get_course_or_404(db: AsyncIOMotorDatabase, course_id: str) -> dict:
    course = await get_course(db, course_id)
    if not course:
        raise AppError("Course not found", 404)
    return course


async def verify_course_owner(db: AsyncIOMotorDatabase, course_id: str, user_id: str) -> dict:
    course = await get_course_or_404(db, course_id)
    if course.get("instructor") != user_id:
        raise AppError("You are not the instructor of this course", 403)
    return course


async def update_course(db: AsyncIOMotorDatabase, course_id: str, data: CourseUpdate) -> dict:
    updates = {k: v for k, v in data.dict().items() if v is not None}
    if "level" in updates:
        updates["level"] = updates["level"].value
    updates["updated_at"] = datetime.utcnow()

    course = await db.courses.find_one_and_update(
        {"course_id": course_id},
        {"$set": updates},
        return_document=ReturnDocument.AFTER
    )
    if not course:
        raise AppError("Course not found", 404)
    return serialize_mongo(course)


async def delete_course(db: AsyncIOMotorDatabase, course_id: str) -> None:
    """Delete course and its lectures"""
    await db.lectures.delete_many({"course_id": course_id})
    await db.courses.delete_one({"course_id": course_id})
    logger.info("Course %s deleted", course_id)


def parse_price_range(price_range: str) -> tuple:
    """'10-50' -> (10.0, 50.0); either bound may be empty"""
    parts = price_range.split("-")
    if len(parts) != 2:
        raise AppError("price_range must look like min-max", 400)
    try:
        low = float(parts[0]) if parts[0].strip() else None
        high = float(parts[1]) if parts[1].strip() else None
    except ValueError:
        raise AppError("price_range must look like min-max", 400)
    if low is not None and high is not None and low > high:
        raise AppError("price_range minimum is greater than maximum", 400)
    return low, high


async def search_courses(
    db: AsyncIOMotorDatabase,
    query: Optional[str] = None,
    categories: Optional[List[str]] = None,
    level: Optional[str] = None,
    price_range: Optional[str] = None,
    sort_by: CourseSort = CourseSort.NEWEST
) -> List[dict]:
    """Search published courses"""
    filters = {"is_published": True}

    if query:
        pattern = {"$regex": re.escape(query), "$options": "i"}
        filters["$or"] = [
            {"title": pattern},
            {"subtitle": pattern},
            {"description": pattern},
        ]
    if categories:
        filters["category"] = {"$in": categories}
    if level:
        filters["level"] = level
    if price_range:
        low, high = parse_price_range(price_range)
        bounds = {}
        if low is not None:
            bounds["$gte"] = low
        if high is not None:
            bounds["$lte"] = high
        if bounds:
            filters["price"] = bounds

    cursor = db.courses.find(filters).sort(SORT_OPTIONS[sort_by])
    courses = serialize_many(await cursor.to_list(length=None))
    return await attach_instructors(db, courses)


async def list_published_courses(db: AsyncIOMotorDatabase, page: int = 1, limit: int = 10) -> dict:
    """Published courses, newest first, paginated"""
    query = {"is_published": True}
    total = await db.courses.count_documents(query)
    skip = (page - 1) * limit

    cursor = db.courses.find(query).sort("created_at", -1).skip(skip).limit(limit)
    courses = serialize_many(await cursor.to_list(length=limit))
    await attach_instructors(db, courses)

    return {
        "courses": courses,
        "total": total,
        "page": page,
        "pages": math.ceil(total / limit) if total else 0,
    }


async def list_instructor_courses(db: AsyncIOMotorDatabase, instructor_id: str) -> List[dict]:
    cursor = db.courses.find({"instructor": instructor_id}).sort("created_at", -1)
    courses = await cursor.to_list(length=None)
    return [await populate_course(db, c) for c in courses]

# ==================== LECTURE CRUD ====================

async def add_lecture(db: AsyncIOMotorDatabase, course: dict, data: LectureCreate) -> dict:
    """Create lecture and append it to the course's lecture order"""
    lecture = {
        "lecture_id": generate_id("LEC"),
        "course_id": course["course_id"],
        "title": data.title,
        "description": data.description,
        "video_url": data.video_url,
        "duration": data.duration,
        "is_preview": data.is_preview,
        "order": len(course.get("lectures", [])) + 1,
        "created_at": datetime.utcnow(),
    }
    await db.lectures.insert_one(lecture)
    await db.courses.update_one(
        {"course_id": course["course_id"]},
        {
            "$push": {"lectures": lecture["lecture_id"]},
            "$set": {"updated_at": datetime.utcnow()}
        }
    )
    return serialize_mongo(lecture)


async def remove_lecture(db: AsyncIOMotorDatabase, course: dict, lecture_id: str) -> None:
    if lecture_id not in course.get("lectures", []):
        raise AppError("Lecture not found in this course", 404)

    await db.courses.update_one(
        {"course_id": course["course_id"]},
        {
            "$pull": {"lectures": lecture_id},
            "$set": {"updated_at": datetime.utcnow()}
        }
    )
    await db.lectures.delete_one({"lecture_id": lecture_id})

# ==================== ENROLLMENT ====================

async def enroll_user(db: AsyncIOMotorDatabase, course_id: str, user_id: str) -> None:
    """
    Add the course to the user's enrolled list and the user to the course's
    student list. $addToSet keeps both free of duplicates.
    """
    await db.users.update_one(
        {"user_id": user_id},
        {"$addToSet": {"enrolled_courses": course_id}}
    )
    await db.courses.update_one(
        {"course_id": course_id},
        {"$addToSet": {"enrolled_students": user_id}}
    )
