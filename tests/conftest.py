"""Shared fixtures: in-memory Mongo, ASGI test client, signed-up users."""

import os

# Must be set before app modules read config
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_fake")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_fake")
os.environ.setdefault("RAZORPAY_KEY_ID", "rzp_test_key")
os.environ.setdefault("RAZORPAY_KEY_SECRET", "rzp_test_secret")
os.environ.setdefault("FRONTEND_URL", "http://frontend.test")

import pytest
from httpx import ASGITransport, AsyncClient
from mongomock_motor import AsyncMongoMockClient

from app.core.database import get_db
from app.main import app


@pytest.fixture
def db():
    return AsyncMongoMockClient()["lms_test"]


@pytest.fixture
async def client(db):
    """FastAPI test client with the database dependency overridden."""
    async def override_get_db():
        return db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()


async def signup(client, name="Ada", email="ada@example.com", password="secret123", role="student"):
    """Sign up and return (user, auth headers). Drops the cookie so tests stay explicit."""
    res = await client.post("/api/v1/users/signup", json={
        "name": name, "email": email, "password": password, "role": role,
    })
    assert res.status_code == 201, res.text
    client.cookies.clear()
    data = res.json()["data"]
    return data["user"], {"Authorization": f"Bearer {data['token']}"}


@pytest.fixture
async def student(client):
    return await signup(client, name="Sam Student", email="sam@example.com")


@pytest.fixture
async def instructor(client):
    return await signup(client, name="Ivy Instructor", email="ivy@example.com", role="instructor")


@pytest.fixture
async def course(client, instructor):
    """A published course with two lectures (the second one is a preview)."""
    _, headers = instructor
    res = await client.post("/api/v1/courses", headers=headers, json={
        "title": "Intro to Python",
        "description": "Learn Python from scratch",
        "category": "programming",
        "level": "beginner",
        "price": 49.99,
    })
    course = res.json()["data"]["course"]
    course_id = course["course_id"]

    for title, preview in (("Setup", False), ("Variables", True)):
        await client.post(f"/api/v1/courses/{course_id}/lectures", headers=headers, json={
            "title": title,
            "video_url": f"https://videos.test/{title.lower()}.mp4",
            "duration": 300,
            "is_preview": preview,
        })

    await client.patch(f"/api/v1/courses/{course_id}", headers=headers, json={"is_published": True})
    res = await client.get(f"/api/v1/courses/{course_id}")
    return res.json()["data"]["course"]
