"""Demo: author a course, then walk a learner through it, using TestClient.

Run with:
    python scripts/demo_course_flow.py
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from coursehub.main import app
from coursehub.services.token_service import create_access_token


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def main() -> None:
    client = TestClient(app)
    admin = _auth(create_access_token(sub="admin@example.com", roles=["admin"]))
    learner = _auth(create_access_token(sub="learner@example.com"))

    # ── Step 1: admin creates a course with two modules ─────────────
    r = client.post(
        "/v1/admin/courses",
        headers=admin,
        json={
            "title": "Python Fundamentals",
            "description": "From zero to scripts",
            "instructor": "Ada",
            "difficulty": "Beginner",
            "price": "19.99",
            "modules": [
                {
                    "ref": {"kind": "pending", "temp_key": "m1"},
                    "title": "Basics",
                    "videos": [
                        {"ref": {"kind": "pending", "temp_key": "v1"}, "title": "Hello", "video_url": "https://v/1"},
                        {"ref": {"kind": "pending", "temp_key": "v2"}, "title": "Types", "video_url": "https://v/2"},
                    ],
                },
                {
                    "ref": {"kind": "pending", "temp_key": "m2"},
                    "title": "Functions",
                    "videos": [
                        {"ref": {"kind": "pending", "temp_key": "v3"}, "title": "def", "video_url": "https://v/3"},
                    ],
                },
            ],
        },
    )
    course_id = r.json()["course_id"]
    print(f"1. POST /v1/admin/courses           → {r.status_code}  {r.json()['summary']}")

    # ── Step 2: learner wishlists, then enrolls ─────────────────────
    r = client.post(f"/v1/me/wishlist/{course_id}", headers=learner)
    print(f"2. POST /v1/me/wishlist             → {r.status_code}  {r.json()['after']}")
    r = client.post(f"/v1/courses/{course_id}/enroll", headers=learner)
    print(f"3. POST /v1/courses/.../enroll      → {r.status_code}  {r.json()['state']}")

    # ── Step 3: complete two of three videos ────────────────────────
    r = client.get(f"/v1/courses/{course_id}", headers=learner)
    videos = [v["id"] for m in r.json()["modules"] for v in m["videos"]]
    for n, video_id in enumerate(videos[:2], start=4):
        r = client.post(
            f"/v1/progress/videos/{video_id}/toggle",
            headers=learner,
            json={"course_id": course_id},
        )
        pct = r.json()["progress"]["percent_complete"]
        print(f"{n}. POST /v1/progress/.../toggle     → {r.status_code}  {pct}%")

    # ── Step 4: admin drops the last module ─────────────────────────
    r = client.get(f"/v1/admin/courses/{course_id}/draft", headers=admin)
    draft = r.json()
    body = {**draft["course"], "modules": draft["modules"][:1]}
    r = client.put(f"/v1/admin/courses/{course_id}", headers=admin, json=body)
    print(f"6. PUT  /v1/admin/courses/...       → {r.status_code}  {r.json()['summary']}")

    r = client.get(f"/v1/progress/courses/{course_id}", headers=learner)
    print(f"7. GET  /v1/progress/courses/...    → {r.status_code}  {r.json()['percent_complete']}%")

    r = client.get("/v1/me/summary", headers=learner)
    print(f"8. GET  /v1/me/summary              → {r.status_code}  {r.json()}")


if __name__ == "__main__":
    main()
