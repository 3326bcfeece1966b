# app/courses/dependencies.py

from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core.database import get_db
from app.core.security import require_roles
from app.courses.database import verify_course_owner

# Who may author courses
require_instructor = require_roles("instructor", "admin")


async def get_owned_course(
    course_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: dict = Depends(require_instructor)
) -> dict:
    """Course the caller teaches (404 if missing, 403 if someone else's)"""
    return await verify_course_owner(db, course_id, user["user_id"])
