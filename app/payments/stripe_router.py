"""
Stripe Checkout for course purchases

Flow:
1. POST /payments/create-checkout-session -> pending purchase keyed by session id
2. Stripe redirects the buyer, then calls POST /payments/webhook
3. checkout.session.completed -> purchase completed + enrollment
   checkout.session.expired   -> purchase failed
"""

import logging

import stripe
from fastapi import APIRouter, Depends, Header, Request
from fastapi.concurrency import run_in_threadpool
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel
from typing import Optional

from app.core import config
from app.core.database import get_db
from app.core.errors import AppError
from app.core.security import get_current_user_id
from app.courses.database import get_course_or_404
from app.payments import purchase_service as purchases

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Stripe Payments"])

stripe.api_key = config.STRIPE_SECRET_KEY


class CheckoutRequest(BaseModel):
    course_id: str


def build_checkout_params(course: dict, user_id: str) -> dict:
    """Arguments for stripe.checkout.Session.create (price in cents)"""
    course_id = course["course_id"]
    product_data = {"name": course["title"]}
    if course.get("description"):
        product_data["description"] = course["description"]
    if course.get("thumbnail"):
        product_data["images"] = [course["thumbnail"]]

    return {
        "payment_method_types": ["card"],
        "line_items": [{
            "price_data": {
                "currency": config.STRIPE_CURRENCY,
                "product_data": product_data,
                "unit_amount": round(course.get("price", 0) * 100),
            },
            "quantity": 1,
        }],
        "mode": "payment",
        "success_url": f"{config.FRONTEND_URL}/course-progress/{course_id}?session_id={{CHECKOUT_SESSION_ID}}",
        "cancel_url": f"{config.FRONTEND_URL}/course-detail/{course_id}",
        "metadata": {
            "course_id": course_id,
            "user_id": user_id,
        },
    }


# ==================== API ENDPOINTS ====================

@router.post("/create-checkout-session")
async def initiate_stripe_checkout(
    data: CheckoutRequest,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    course = await get_course_or_404(db, data.course_id)
    await purchases.ensure_not_purchased(db, user_id, data.course_id)

    try:
        session = await run_in_threadpool(
            stripe.checkout.Session.create, **build_checkout_params(course, user_id)
        )
    except stripe.StripeError as e:
        logger.error("Stripe checkout session failed for %s: %s", data.course_id, e)
        raise AppError("Failed to create checkout session", 500)

    await purchases.create_pending_purchase(
        db, user_id, course,
        provider="stripe",
        payment_id=session.id,
        currency=config.STRIPE_CURRENCY
    )

    return {
        "status": "success",
        "data": {
            "session_id": session.id,
            "session_url": session.url
        }
    }


@router.post("/webhook")
async def handle_stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    Stripe webhook - NO AUTH (Stripe signature verification)
    Needs the raw body; any re-serialisation breaks the signature.
    """
    if not stripe_signature:
        raise AppError("Missing Stripe signature", 400)

    payload = await request.body()
    try:
        event = stripe.Webhook.construct_event(payload, stripe_signature, config.STRIPE_WEBHOOK_SECRET)
    except (ValueError, stripe.SignatureVerificationError) as e:
        logger.warning("Webhook signature verification failed: %s", e)
        raise AppError(f"Webhook Error: {e}", 400)

    event_type = event["type"]
    session = event["data"]["object"]

    if event_type == "checkout.session.completed":
        purchase = await purchases.complete_purchase(db, session["id"])
        if not purchase:
            logger.info("Webhook: no pending purchase for session %s", session["id"])

    elif event_type == "checkout.session.expired":
        await purchases.fail_purchase(db, session["id"], reason="Checkout session expired")

    else:
        logger.info("Unhandled Stripe event type %s", event_type)

    return {"received": True}


@router.get("/courses/{course_id}/purchase-status")
async def get_course_purchase_status(
    course_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    """Course details; lecture videos hidden unless purchased or preview"""
    data = await purchases.get_purchase_status(db, user_id, course_id)
    return {"status": "success", "data": data}


@router.get("/purchased-courses")
async def get_purchased_courses(
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    courses = await purchases.list_purchased_courses(db, user_id)
    return {
        "status": "success",
        "results": len(courses),
        "data": {"courses": courses}
    }
