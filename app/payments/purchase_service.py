"""
Course purchase records shared by the Stripe and Razorpay flows.

A purchase moves pending -> completed | failed. Every transition filters on
``status: "pending"`` so a repeated webhook or verify call finds nothing to
change. Completing a purchase and enrolling the user are two separate writes.
"""

import logging
from datetime import datetime
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from app.core.database import generate_id, serialize_mongo
from app.core.errors import AppError
from app.courses.database import attach_instructors, get_ordered_lectures, enroll_user

logger = logging.getLogger(__name__)


class PurchaseStatus:
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


# ==================== CREATE ====================

async def ensure_not_purchased(db: AsyncIOMotorDatabase, user_id: str, course_id: str) -> None:
    existing = await db.course_purchases.find_one({
        "user_id": user_id,
        "course_id": course_id,
        "status": PurchaseStatus.COMPLETED
    })
    if existing:
        raise AppError("Course already purchased", 400)


async def create_pending_purchase(
    db: AsyncIOMotorDatabase,
    user_id: str,
    course: dict,
    provider: str,
    payment_id: str,
    currency: str
) -> dict:
    now = datetime.utcnow()
    purchase = {
        "purchase_id": generate_id("PUR"),
        "user_id": user_id,
        "course_id": course["course_id"],
        "amount": course.get("price", 0),
        "currency": currency,
        "provider": provider,
        "status": PurchaseStatus.PENDING,
        "payment_id": payment_id,
        "razorpay_payment_id": None,
        "razorpay_signature": None,
        "failure_reason": None,
        "purchase_date": None,
        "created_at": now,
        "updated_at": now,
    }
    await db.course_purchases.insert_one(purchase)
    logger.info("Pending %s purchase %s for course %s", provider, payment_id, course["course_id"])
    return purchase


# ==================== TRANSITIONS ====================

async def complete_purchase(
    db: AsyncIOMotorDatabase,
    payment_id: str,
    user_id: Optional[str] = None,
    extra: Optional[dict] = None
) -> Optional[dict]:
    """
    pending -> completed, then enroll the buyer.
    Returns the updated purchase or None when no pending record matched.
    """
    query = {"payment_id": payment_id, "status": PurchaseStatus.PENDING}
    if user_id:
        query["user_id"] = user_id

    now = datetime.utcnow()
    updates = {"status": PurchaseStatus.COMPLETED, "purchase_date": now, "updated_at": now}
    updates.update(extra or {})

    purchase = await db.course_purchases.find_one_and_update(
        query,
        {"$set": updates},
        return_document=ReturnDocument.AFTER
    )
    if not purchase:
        return None

    await enroll_user(db, purchase["course_id"], purchase["user_id"])
    logger.info("Purchase %s completed; %s enrolled in %s",
                payment_id, purchase["user_id"], purchase["course_id"])
    return purchase


async def fail_purchase(
    db: AsyncIOMotorDatabase,
    payment_id: str,
    user_id: Optional[str] = None,
    reason: Optional[str] = None
) -> Optional[dict]:
    """pending -> failed; None when no pending record matched"""
    query = {"payment_id": payment_id, "status": PurchaseStatus.PENDING}
    if user_id:
        query["user_id"] = user_id

    updates = {"status": PurchaseStatus.FAILED, "updated_at": datetime.utcnow()}
    if reason:
        updates["failure_reason"] = reason

    purchase = await db.course_purchases.find_one_and_update(
        query,
        {"$set": updates},
        return_document=ReturnDocument.AFTER
    )
    if purchase:
        logger.info("Purchase %s marked failed: %s", payment_id, reason)
    return purchase


# ==================== QUERIES ====================

def mask_lecture(lecture: dict) -> dict:
    """Lecture as seen before purchase: video only for previews"""
    masked = {
        "lecture_id": lecture["lecture_id"],
        "title": lecture.get("title"),
        "description": lecture.get("description"),
        "duration": lecture.get("duration", 0),
        "is_preview": lecture.get("is_preview", False),
    }
    if masked["is_preview"]:
        masked["video_url"] = lecture.get("video_url")
    return masked


async def get_purchase_status(db: AsyncIOMotorDatabase, user_id: str, course_id: str) -> dict:
    course = await db.courses.find_one({"course_id": course_id})
    if not course:
        raise AppError("Course not found", 404)

    purchase = await db.course_purchases.find_one({
        "user_id": user_id,
        "course_id": course_id,
        "status": PurchaseStatus.COMPLETED
    })
    is_purchased = purchase is not None

    lectures = await get_ordered_lectures(db, course)
    course_data = serialize_mongo(course)
    await attach_instructors(db, [course_data])
    course_data["is_purchased"] = is_purchased
    course_data["lectures"] = lectures if is_purchased else [mask_lecture(l) for l in lectures]

    return {
        "course": course_data,
        "purchase_info": serialize_mongo(purchase),
    }


async def list_purchased_courses(db: AsyncIOMotorDatabase, user_id: str) -> List[dict]:
    """Courses from completed purchases, most recent purchase first"""
    cursor = db.course_purchases.find({
        "user_id": user_id,
        "status": PurchaseStatus.COMPLETED
    }).sort("purchase_date", -1)
    purchases = await cursor.to_list(length=None)

    course_ids = [p["course_id"] for p in purchases]
    courses = await db.courses.find({"course_id": {"$in": course_ids}}).to_list(length=None)
    by_id = {c["course_id"]: serialize_mongo(c) for c in courses}
    await attach_instructors(db, list(by_id.values()))

    results = []
    for purchase in purchases:
        course = by_id.get(purchase["course_id"])
        if not course:
            # course deleted after purchase
            continue
        lectures = await get_ordered_lectures(db, course)
        results.append({
            **course,
            "lectures": [
                {k: lec.get(k) for k in ("lecture_id", "title", "description", "duration")}
                for lec in lectures
            ],
            "purchase_info": {
                "purchase_date": purchase.get("purchase_date"),
                "amount": purchase.get("amount"),
                "payment_id": purchase.get("payment_id"),
                "provider": purchase.get("provider"),
            },
        })
    return results


async def get_order_summary(db: AsyncIOMotorDatabase, user_id: str, order_id: str) -> dict:
    purchase = await db.course_purchases.find_one({"payment_id": order_id, "user_id": user_id})
    if not purchase:
        raise AppError("Payment record not found", 404)

    course = await db.courses.find_one(
        {"course_id": purchase["course_id"]},
        {"_id": 0, "course_id": 1, "title": 1, "thumbnail": 1}
    )
    return {
        "order_id": purchase["payment_id"],
        "status": purchase["status"],
        "amount": purchase["amount"],
        "course": course,
        "purchase_date": purchase.get("purchase_date"),
        "failure_reason": purchase.get("failure_reason"),
    }
