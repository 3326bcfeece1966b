import hashlib
import hmac
import json
import time
from types import SimpleNamespace

import pytest
import stripe

WEBHOOK_SECRET = "whsec_test_fake"


def signed_event(event_type, session_id, secret=WEBHOOK_SECRET):
    """Raw webhook body and a Stripe-Signature header for it"""
    payload = json.dumps({
        "id": "evt_test",
        "object": "event",
        "type": event_type,
        "data": {"object": {"id": session_id, "object": "checkout.session"}},
    })
    timestamp = int(time.time())
    signature = hmac.new(
        secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256
    ).hexdigest()
    return payload, {"Stripe-Signature": f"t={timestamp},v1={signature}", "Content-Type": "application/json"}


@pytest.fixture
def fake_checkout(monkeypatch):
    calls = []

    def create(**params):
        calls.append(params)
        return SimpleNamespace(id=f"cs_test_{len(calls)}", url="https://checkout.stripe.test/pay")

    monkeypatch.setattr(stripe.checkout.Session, "create", create)
    return calls


async def start_checkout(client, headers, course_id):
    res = await client.post("/api/v1/payments/create-checkout-session", headers=headers, json={"course_id": course_id})
    assert res.status_code == 200, res.text
    return res.json()["data"]["session_id"]


async def test_checkout_creates_pending_purchase(client, student, course, db, fake_checkout):
    user, headers = student
    res = await client.post("/api/v1/payments/create-checkout-session", headers=headers, json={
        "course_id": course["course_id"],
    })
    assert res.status_code == 200
    data = res.json()["data"]
    assert data == {"session_id": "cs_test_1", "session_url": "https://checkout.stripe.test/pay"}

    params = fake_checkout[0]
    assert params["line_items"][0]["price_data"]["unit_amount"] == 4999
    assert params["metadata"] == {"course_id": course["course_id"], "user_id": user["user_id"]}
    assert params["mode"] == "payment"

    purchase = await db.course_purchases.find_one({"payment_id": "cs_test_1"})
    assert purchase["status"] == "pending"
    assert purchase["amount"] == 49.99
    assert purchase["provider"] == "stripe"


async def test_checkout_unknown_course(client, student, fake_checkout):
    _, headers = student
    res = await client.post("/api/v1/payments/create-checkout-session", headers=headers, json={"course_id": "COURSE_x"})
    assert res.status_code == 404
    assert fake_checkout == []


async def test_checkout_stripe_error_is_500(client, student, course, monkeypatch):
    _, headers = student

    def boom(**params):
        raise stripe.APIConnectionError("network down")

    monkeypatch.setattr(stripe.checkout.Session, "create", boom)
    res = await client.post("/api/v1/payments/create-checkout-session", headers=headers, json={
        "course_id": course["course_id"],
    })
    assert res.status_code == 500
    assert res.json()["message"] == "Failed to create checkout session"


async def test_webhook_completed_enrolls_user(client, student, course, db, fake_checkout):
    user, headers = student
    session_id = await start_checkout(client, headers, course["course_id"])

    payload, sig_headers = signed_event("checkout.session.completed", session_id)
    res = await client.post("/api/v1/payments/webhook", content=payload, headers=sig_headers)
    assert res.status_code == 200
    assert res.json() == {"received": True}

    purchase = await db.course_purchases.find_one({"payment_id": session_id})
    assert purchase["status"] == "completed"
    assert purchase["purchase_date"] is not None

    stored_user = await db.users.find_one({"user_id": user["user_id"]})
    assert course["course_id"] in stored_user["enrolled_courses"]
    stored_course = await db.courses.find_one({"course_id": course["course_id"]})
    assert stored_course["enrolled_students"] == [user["user_id"]]

    # redelivery is a no-op
    res = await client.post("/api/v1/payments/webhook", content=payload, headers=sig_headers)
    assert res.status_code == 200
    stored_course = await db.courses.find_one({"course_id": course["course_id"]})
    assert stored_course["enrolled_students"] == [user["user_id"]]

    # a second checkout for the same course is refused
    res = await client.post("/api/v1/payments/create-checkout-session", headers=headers, json={
        "course_id": course["course_id"],
    })
    assert res.status_code == 400
    assert res.json()["message"] == "Course already purchased"


async def test_webhook_expired_marks_failed(client, student, course, db, fake_checkout):
    _, headers = student
    session_id = await start_checkout(client, headers, course["course_id"])

    payload, sig_headers = signed_event("checkout.session.expired", session_id)
    res = await client.post("/api/v1/payments/webhook", content=payload, headers=sig_headers)
    assert res.status_code == 200

    purchase = await db.course_purchases.find_one({"payment_id": session_id})
    assert purchase["status"] == "failed"


async def test_webhook_bad_signature(client, student, course, db, fake_checkout):
    _, headers = student
    session_id = await start_checkout(client, headers, course["course_id"])

    payload, sig_headers = signed_event("checkout.session.completed", session_id, secret="whsec_wrong")
    res = await client.post("/api/v1/payments/webhook", content=payload, headers=sig_headers)
    assert res.status_code == 400
    assert res.json()["message"].startswith("Webhook Error:")

    purchase = await db.course_purchases.find_one({"payment_id": session_id})
    assert purchase["status"] == "pending"


async def test_webhook_missing_signature(client):
    res = await client.post("/api/v1/payments/webhook", content="{}")
    assert res.status_code == 400


async def test_purchase_status_masks_videos_until_bought(client, student, course, fake_checkout):
    _, headers = student
    course_id = course["course_id"]

    res = await client.get(f"/api/v1/payments/courses/{course_id}/purchase-status", headers=headers)
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["course"]["is_purchased"] is False
    assert data["purchase_info"] is None
    setup, variables = data["course"]["lectures"]
    assert "video_url" not in setup
    assert variables["video_url"] == "https://videos.test/variables.mp4"

    session_id = await start_checkout(client, headers, course_id)
    payload, sig_headers = signed_event("checkout.session.completed", session_id)
    await client.post("/api/v1/payments/webhook", content=payload, headers=sig_headers)

    res = await client.get(f"/api/v1/payments/courses/{course_id}/purchase-status", headers=headers)
    data = res.json()["data"]
    assert data["course"]["is_purchased"] is True
    assert data["purchase_info"]["status"] == "completed"
    assert all(lec.get("video_url") for lec in data["course"]["lectures"])


async def test_purchased_courses_lists_completed_only(client, student, course, fake_checkout):
    _, headers = student

    res = await client.get("/api/v1/payments/purchased-courses", headers=headers)
    assert res.json()["data"]["courses"] == []

    session_id = await start_checkout(client, headers, course["course_id"])
    res = await client.get("/api/v1/payments/purchased-courses", headers=headers)
    assert res.json()["results"] == 0

    payload, sig_headers = signed_event("checkout.session.completed", session_id)
    await client.post("/api/v1/payments/webhook", content=payload, headers=sig_headers)

    res = await client.get("/api/v1/payments/purchased-courses", headers=headers)
    courses = res.json()["data"]["courses"]
    assert len(courses) == 1
    assert courses[0]["course_id"] == course["course_id"]
    assert courses[0]["purchase_info"]["payment_id"] == session_id
    assert courses[0]["instructor"]["name"] == "Ivy Instructor"
