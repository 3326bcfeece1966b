from conftest import signup


async def create(client, headers, **fields):
    body = {"title": "Untitled", "category": "programming", "price": 10}
    body.update(fields)
    res = await client.post("/api/v1/courses", headers=headers, json=body)
    assert res.status_code == 201, res.text
    return res.json()["data"]["course"]


async def publish(client, headers, course_id):
    res = await client.patch(f"/api/v1/courses/{course_id}", headers=headers, json={"is_published": True})
    assert res.status_code == 200, res.text


async def test_create_course_starts_unpublished(client, instructor):
    user, headers = instructor
    course = await create(client, headers, title="Rust Basics", price=19.5)

    assert course["course_id"].startswith("COURSE_")
    assert course["is_published"] is False
    assert course["instructor"] == user["user_id"]
    assert course["lectures"] == []
    assert course["level"] == "beginner"


async def test_student_cannot_create_course(client, student):
    _, headers = student
    res = await client.post("/api/v1/courses", headers=headers, json={"title": "Nope", "price": 1})
    assert res.status_code == 403
    assert res.json()["message"] == "You do not have permission to perform this action"


async def test_create_course_rejects_negative_price(client, instructor):
    _, headers = instructor
    res = await client.post("/api/v1/courses", headers=headers, json={"title": "Bad", "price": -5})
    assert res.status_code == 400


async def test_get_course_populates_instructor_and_lectures(client, course):
    assert course["instructor"]["name"] == "Ivy Instructor"
    assert "password" not in course["instructor"]
    assert [lec["title"] for lec in course["lectures"]] == ["Setup", "Variables"]
    assert course["is_published"] is True


async def test_get_unknown_course_is_404(client):
    res = await client.get("/api/v1/courses/COURSE_missing")
    assert res.status_code == 404
    assert res.json() == {"status": "error", "message": "Course not found"}


async def test_only_owner_can_update_or_delete(client, course):
    _, other = await signup(client, name="Other", email="other@example.com", role="instructor")
    course_id = course["course_id"]

    res = await client.patch(f"/api/v1/courses/{course_id}", headers=other, json={"title": "Hijacked"})
    assert res.status_code == 403
    assert res.json()["message"] == "You are not the instructor of this course"

    res = await client.delete(f"/api/v1/courses/{course_id}", headers=other)
    assert res.status_code == 403


async def test_update_and_delete_course(client, instructor, course, db):
    _, headers = instructor
    course_id = course["course_id"]

    res = await client.patch(f"/api/v1/courses/{course_id}", headers=headers, json={
        "title": "Intro to Python 3", "level": "intermediate",
    })
    assert res.status_code == 200
    updated = res.json()["data"]["course"]
    assert updated["title"] == "Intro to Python 3"
    assert updated["level"] == "intermediate"
    assert updated["price"] == 49.99

    res = await client.delete(f"/api/v1/courses/{course_id}", headers=headers)
    assert res.status_code == 200
    assert await db.courses.find_one({"course_id": course_id}) is None
    assert await db.lectures.count_documents({"course_id": course_id}) == 0


async def test_search_only_returns_published(client, instructor):
    _, headers = instructor
    draft = await create(client, headers, title="Draft Python")
    live = await create(client, headers, title="Live Python")
    await publish(client, headers, live["course_id"])

    res = await client.get("/api/v1/courses/search", params={"query": "python"})
    assert res.status_code == 200
    ids = [c["course_id"] for c in res.json()["data"]["courses"]]
    assert live["course_id"] in ids
    assert draft["course_id"] not in ids


async def test_search_filters_and_sort(client, instructor):
    _, headers = instructor
    catalog = [
        ("Cheap Go", "programming", "beginner", 5),
        ("Mid Design", "design", "intermediate", 30),
        ("Pricey Go", "programming", "advanced", 90),
    ]
    for title, category, level, price in catalog:
        c = await create(client, headers, title=title, category=category, level=level, price=price)
        await publish(client, headers, c["course_id"])

    res = await client.get("/api/v1/courses/search", params={"categories": "programming", "sort_by": "price-high"})
    titles = [c["title"] for c in res.json()["data"]["courses"]]
    assert titles == ["Pricey Go", "Cheap Go"]

    res = await client.get("/api/v1/courses/search", params={"price_range": "10-50"})
    titles = [c["title"] for c in res.json()["data"]["courses"]]
    assert titles == ["Mid Design"]

    res = await client.get("/api/v1/courses/search", params={"level": "advanced"})
    assert [c["title"] for c in res.json()["data"]["courses"]] == ["Pricey Go"]

    res = await client.get("/api/v1/courses/search", params={"sort_by": "title"})
    titles = [c["title"] for c in res.json()["data"]["courses"]]
    assert titles == sorted(titles)


async def test_search_bad_price_range(client):
    res = await client.get("/api/v1/courses/search", params={"price_range": "cheap"})
    assert res.status_code == 400
    assert res.json()["status"] == "error"


async def test_published_pagination(client, instructor):
    _, headers = instructor
    for i in range(3):
        c = await create(client, headers, title=f"Course {i}")
        await publish(client, headers, c["course_id"])

    res = await client.get("/api/v1/courses/published", params={"page": 2, "limit": 2})
    data = res.json()["data"]
    assert data["total"] == 3
    assert data["pages"] == 2
    assert data["page"] == 2
    assert len(data["courses"]) == 1


async def test_my_courses_lists_drafts_too(client, instructor):
    _, headers = instructor
    await create(client, headers, title="Draft")

    res = await client.get("/api/v1/courses/my-courses", headers=headers)
    assert res.status_code == 200
    assert [c["title"] for c in res.json()["data"]["courses"]] == ["Draft"]


async def test_lectures_add_list_remove(client, instructor, course):
    _, headers = instructor
    course_id = course["course_id"]

    res = await client.get(f"/api/v1/courses/{course_id}/lectures")
    lectures = res.json()["data"]["lectures"]
    assert [lec["order"] for lec in lectures] == [1, 2]

    first = lectures[0]["lecture_id"]
    res = await client.delete(f"/api/v1/courses/{course_id}/lectures/{first}", headers=headers)
    assert res.status_code == 200

    res = await client.get(f"/api/v1/courses/{course_id}/lectures")
    assert [lec["title"] for lec in res.json()["data"]["lectures"]] == ["Variables"]

    res = await client.delete(f"/api/v1/courses/{course_id}/lectures/{first}", headers=headers)
    assert res.status_code == 404
    assert res.json()["message"] == "Lecture not found in this course"


async def test_update_rejects_blank_title(client, instructor, course, db):
    _, headers = instructor
    course_id = course["course_id"]

    res = await client.patch(f"/api/v1/courses/{course_id}", headers=headers, json={"title": "   "})
    assert res.status_code == 400
    assert res.json()["message"] == "Invalid request data"

    stored = await db.courses.find_one({"course_id": course_id})
    assert stored["title"] == "Intro to Python"
