import logging
from datetime import datetime, timedelta
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from app.core import config
from app.core.database import generate_id, serialize_mongo
from app.core.errors import AppError
from app.core.security import (
    hash_password, verify_password, create_access_token,
    generate_reset_token, hash_reset_token
)
from app.users.user_schemas import SignupRequest, ProfileUpdate

logger = logging.getLogger(__name__)

# Never leave the server
PRIVATE_FIELDS = ("password", "password_reset_token", "password_reset_expires")


def public_user(user: Optional[dict]) -> Optional[dict]:
    return serialize_mongo(user, exclude=PRIVATE_FIELDS)


# ==================== AUTH ====================

async def create_user(db: AsyncIOMotorDatabase, data: SignupRequest) -> dict:
    """Create account; returns {"user", "token"}"""
    existing = await db.users.find_one({"email": data.email})
    if existing:
        raise AppError("User already exists with this email", 400)

    now = datetime.utcnow()
    user = {
        "user_id": generate_id("USER"),
        "name": data.name,
        "email": data.email,
        "password": hash_password(data.password),
        "role": data.role.value,
        "photo_url": None,
        "bio": None,
        "enrolled_courses": [],
        "password_reset_token": None,
        "password_reset_expires": None,
        "created_at": now,
        "updated_at": now,
        "last_active": now,
    }
    await db.users.insert_one(user)
    logger.info("User %s signed up as %s", user["user_id"], user["role"])

    return {
        "user": public_user(user),
        "token": create_access_token(user["user_id"]),
    }


async def authenticate_user(db: AsyncIOMotorDatabase, email: str, password: str) -> dict:
    user = await db.users.find_one({"email": email})
    if not user or not verify_password(password, user.get("password")):
        raise AppError("Invalid email or password", 401)

    await db.users.update_one(
        {"user_id": user["user_id"]},
        {"$set": {"last_active": datetime.utcnow()}}
    )
    return {
        "user": public_user(user),
        "token": create_access_token(user["user_id"]),
    }


# ==================== PROFILE ====================

async def get_profile(db: AsyncIOMotorDatabase, user_id: str) -> dict:
    """User profile with enrolled courses expanded to summaries"""
    user = await db.users.find_one({"user_id": user_id})
    if not user:
        raise AppError("User not found", 404)

    course_ids = user.get("enrolled_courses", [])
    courses = await db.courses.find(
        {"course_id": {"$in": course_ids}},
        {"_id": 0, "course_id": 1, "title": 1, "description": 1,
         "thumbnail": 1, "price": 1, "instructor": 1}
    ).to_list(length=None)

    instructor_ids = list({c.get("instructor") for c in courses if c.get("instructor")})
    instructors = await db.users.find(
        {"user_id": {"$in": instructor_ids}},
        {"_id": 0, "user_id": 1, "name": 1, "email": 1}
    ).to_list(length=None)
    by_id = {i["user_id"]: i for i in instructors}

    for course in courses:
        course["instructor"] = by_id.get(course.get("instructor"))

    # keep enrollment order
    order = {cid: i for i, cid in enumerate(course_ids)}
    courses.sort(key=lambda c: order.get(c["course_id"], 0))

    profile = public_user(user)
    profile["enrolled_courses"] = courses
    return profile


async def update_profile(db: AsyncIOMotorDatabase, user_id: str, data: ProfileUpdate) -> dict:
    updates = {k: v for k, v in data.dict().items() if v is not None}

    if "email" in updates:
        taken = await db.users.find_one({"email": updates["email"], "user_id": {"$ne": user_id}})
        if taken:
            raise AppError("Email already exists", 400)

    updates["updated_at"] = datetime.utcnow()
    user = await db.users.find_one_and_update(
        {"user_id": user_id},
        {"$set": updates},
        return_document=ReturnDocument.AFTER
    )
    if not user:
        raise AppError("User not found", 404)
    return public_user(user)


async def change_password(db: AsyncIOMotorDatabase, user_id: str, current: str, new: str) -> None:
    user = await db.users.find_one({"user_id": user_id})
    if not user:
        raise AppError("User not found", 404)

    if not verify_password(current, user.get("password")):
        raise AppError("Current password is incorrect", 400)

    await db.users.update_one(
        {"user_id": user_id},
        {"$set": {"password": hash_password(new), "updated_at": datetime.utcnow()}}
    )


# ==================== PASSWORD RESET ====================

async def create_password_reset(db: AsyncIOMotorDatabase, email: str) -> dict:
    """
    Store a hashed reset token with a short expiry.
    No mail is sent; the raw token and URL are handed back to the caller.
    """
    user = await db.users.find_one({"email": email})
    if not user:
        raise AppError("User not found with this email", 404)

    raw_token, hashed_token = generate_reset_token()
    expires = datetime.utcnow() + timedelta(minutes=config.PASSWORD_RESET_EXPIRE_MINUTES)

    await db.users.update_one(
        {"user_id": user["user_id"]},
        {"$set": {
            "password_reset_token": hashed_token,
            "password_reset_expires": expires,
        }}
    )
    logger.info("Password reset requested for %s", user["user_id"])

    return {
        "reset_token": raw_token,
        "reset_url": f"{config.FRONTEND_URL}/reset-password/{raw_token}",
    }


async def reset_password(db: AsyncIOMotorDatabase, raw_token: str, password: str) -> str:
    """Swap the password for a valid reset token; returns a fresh JWT"""
    user = await db.users.find_one({
        "password_reset_token": hash_reset_token(raw_token),
        "password_reset_expires": {"$gt": datetime.utcnow()},
    })
    if not user:
        raise AppError("Token is invalid or has expired", 400)

    await db.users.update_one(
        {"user_id": user["user_id"]},
        {"$set": {
            "password": hash_password(password),
            "password_reset_token": None,
            "password_reset_expires": None,
            "updated_at": datetime.utcnow(),
        }}
    )
    return create_access_token(user["user_id"])


# ==================== ACCOUNT ====================

async def delete_account(db: AsyncIOMotorDatabase, user_id: str, password: str) -> None:
    user = await db.users.find_one({"user_id": user_id})
    if not user:
        raise AppError("User not found", 404)

    if not verify_password(password, user.get("password")):
        raise AppError("Incorrect password", 400)

    await db.users.delete_one({"user_id": user_id})
    await db.course_progress.delete_many({"user_id": user_id})
    logger.info("User %s deleted their account", user_id)
