"""
Razorpay checkout for course purchases

Flow:
1. POST /razorpay/create-order    -> Razorpay order + pending purchase keyed by order id
2. Frontend completes payment with the Razorpay widget
3. POST /razorpay/verify-payment  -> HMAC check, purchase completed + enrollment
   POST /razorpay/payment-failed  -> purchase failed with the widget's reason
"""

import hmac
import hashlib
import logging
from datetime import datetime
from typing import Optional

import razorpay
from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel

from app.core import config
from app.core.database import get_db
from app.core.errors import AppError
from app.core.security import get_current_user_id
from app.courses.database import get_course_or_404
from app.payments import purchase_service as purchases

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/razorpay", tags=["Razorpay Payments"])

# Razorpay Client
razorpay_client = razorpay.Client(auth=(config.RAZORPAY_KEY_ID, config.RAZORPAY_KEY_SECRET))


# ==================== PYDANTIC MODELS ====================

class OrderCreateRequest(BaseModel):
    course_id: str


class PaymentVerifyRequest(BaseModel):
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str


class PaymentError(BaseModel):
    code: Optional[str] = None
    description: Optional[str] = None


class PaymentFailedRequest(BaseModel):
    razorpay_order_id: str
    error: Optional[PaymentError] = None


# ==================== HELPER FUNCTIONS ====================

def generate_signature(order_id: str, payment_id: str, secret: str) -> str:
    message = f"{order_id}|{payment_id}"
    return hmac.new(secret.encode(), message.encode(), hashlib.sha256).hexdigest()


def verify_razorpay_signature(order_id: str, payment_id: str, signature: str) -> bool:
    """HMAC-SHA256 of "<order_id>|<payment_id>" keyed with the API secret"""
    expected = generate_signature(order_id, payment_id, config.RAZORPAY_KEY_SECRET)
    # bytes: str comparison raises on non-ASCII input
    return hmac.compare_digest(expected.encode(), signature.encode())


# ==================== API ENDPOINTS ====================

@router.post("/create-order")
async def create_razorpay_order(
    data: OrderCreateRequest,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    course = await get_course_or_404(db, data.course_id)
    await purchases.ensure_not_purchased(db, user_id, data.course_id)

    order_data = {
        "amount": round(course.get("price", 0) * 100),  # in paise
        "currency": config.RAZORPAY_CURRENCY,
        "receipt": f"course_{data.course_id}_{int(datetime.utcnow().timestamp())}"[:40],
        "notes": {
            "course_id": data.course_id,
            "user_id": user_id,
            "course_name": course["title"],
        },
    }

    try:
        order = await run_in_threadpool(razorpay_client.order.create, data=order_data)
    except Exception as e:
        logger.error("Razorpay order creation failed for %s: %s", data.course_id, e)
        raise AppError("Failed to create Razorpay order", 500)

    await purchases.create_pending_purchase(
        db, user_id, course,
        provider="razorpay",
        payment_id=order["id"],
        currency=config.RAZORPAY_CURRENCY
    )

    return {
        "status": "success",
        "data": {
            "order_id": order["id"],
            "amount": order["amount"],
            "currency": order["currency"],
            "course_title": course["title"],
            "key": config.RAZORPAY_KEY_ID
        }
    }


@router.post("/verify-payment")
async def verify_payment(
    data: PaymentVerifyRequest,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    """
    Verify the widget's signature and complete the purchase.
    A bad signature marks the pending purchase failed.
    """
    if not verify_razorpay_signature(
        data.razorpay_order_id,
        data.razorpay_payment_id,
        data.razorpay_signature
    ):
        await purchases.fail_purchase(
            db, data.razorpay_order_id, user_id=user_id,
            reason="Signature verification failed"
        )
        raise AppError("Payment verification failed", 400)

    purchase = await purchases.complete_purchase(
        db, data.razorpay_order_id, user_id=user_id,
        extra={
            "razorpay_payment_id": data.razorpay_payment_id,
            "razorpay_signature": data.razorpay_signature,
        }
    )
    if not purchase:
        raise AppError("Purchase record not found", 404)

    course = await db.courses.find_one({"course_id": purchase["course_id"]})

    return {
        "status": "success",
        "message": "Payment verified successfully",
        "data": {
            "purchase": {
                "course_id": purchase["course_id"],
                "course_name": course["title"] if course else None,
                "purchase_date": purchase["purchase_date"],
                "amount": purchase["amount"],
                "payment_id": data.razorpay_payment_id
            }
        }
    }


@router.post("/payment-failed")
async def handle_payment_failure(
    data: PaymentFailedRequest,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    reason = (data.error.description if data.error else None) or "Payment failed"
    purchase = await purchases.fail_purchase(db, data.razorpay_order_id, user_id=user_id, reason=reason)
    if not purchase:
        raise AppError("Purchase record not found", 404)

    return {
        "status": "success",
        "message": "Payment failure recorded",
        "data": {
            "order_id": data.razorpay_order_id,
            "failure_reason": purchase["failure_reason"]
        }
    }


@router.get("/payment-status/{order_id}")
async def get_payment_status(
    order_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    summary = await purchases.get_order_summary(db, user_id, order_id)
    return {"status": "success", "data": {"purchase": summary}}
