"""
MongoDB connection, request dependency and index setup
"""

import logging
import uuid
from datetime import datetime
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from app.core import config

logger = logging.getLogger(__name__)

client = AsyncIOMotorClient(config.MONGO_URL)
db = client[config.MONGO_DB_NAME]

READY_STATES = {
    0: "Disconnected",
    1: "Connected",
    2: "Connecting",
    3: "Disconnecting",
}


# ==================== DEPENDENCY FUNCTIONS ====================

async def get_db() -> AsyncIOMotorDatabase:
    """Database dependency"""
    return db


# ==================== HELPERS ====================

def generate_id(prefix: str) -> str:
    """Generate unique ID with prefix, e.g. COURSE_1A2B3C4D5E6F"""
    return f"{prefix}_{uuid.uuid4().hex[:12].upper()}"


def serialize_mongo(doc: Optional[dict], exclude: tuple = ()) -> Optional[dict]:
    """Strip Mongo's _id (and any private fields) so the doc is JSON-safe"""
    if doc is None:
        return None
    doc = dict(doc)
    doc.pop("_id", None)
    for key in exclude:
        doc.pop(key, None)
    return doc


def serialize_many(docs: list, exclude: tuple = ()) -> list:
    return [serialize_mongo(doc, exclude) for doc in docs]


# ==================== DATABASE INDEXES ====================

async def create_indexes(database: AsyncIOMotorDatabase):
    """Create MongoDB indexes for integrity and lookups"""
    # Users
    await database.users.create_index("user_id", unique=True)
    await database.users.create_index("email", unique=True)
    await database.users.create_index("password_reset_token")

    # Courses
    await database.courses.create_index("course_id", unique=True)
    await database.courses.create_index("instructor")
    await database.courses.create_index([("is_published", 1), ("created_at", -1)])

    # Lectures
    await database.lectures.create_index("lecture_id", unique=True)
    await database.lectures.create_index("course_id")

    # Purchases
    await database.course_purchases.create_index("purchase_id", unique=True)
    await database.course_purchases.create_index("payment_id")
    await database.course_purchases.create_index([("user_id", 1), ("course_id", 1), ("status", 1)])

    # Progress (one record per user per course)
    await database.course_progress.create_index([("user_id", 1), ("course_id", 1)], unique=True)

    logger.info("Database indexes created")


# ==================== CONNECTION STATUS ====================

async def get_db_status(database: AsyncIOMotorDatabase) -> dict:
    """
    Ping the server and report a ready state:
    0 Disconnected, 1 Connected, 2 Connecting, 3 Disconnecting
    """
    try:
        await database.command("ping")
        ready_state = 1
    except Exception as e:
        logger.warning("Database ping failed: %s", e)
        ready_state = 0

    return {
        "ready_state": ready_state,
        "ready_state_text": READY_STATES.get(ready_state, "Unknown"),
        "checked_at": datetime.utcnow(),
    }
