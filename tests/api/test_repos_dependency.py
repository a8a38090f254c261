from __future__ import annotations

import asyncio
import logging

import pytest
from fastapi.testclient import TestClient

from coursehub.api import admin, dependencies
from coursehub.api.dependencies import get_repos
from coursehub.services.cache import cache_service
from coursehub.services.hierarchy_service import hierarchy_cache_key


class _FakeSession:
    def __init__(self, events: list[str]) -> None:
        self._events = events

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc) -> None:
        self._events.append("close")

    async def commit(self) -> None:
        self._events.append("commit")

    async def rollback(self) -> None:
        self._events.append("rollback")


def _use_fake_database(monkeypatch, events: list[str]) -> None:
    monkeypatch.setattr(
        dependencies, "async_session_factory", lambda: _FakeSession(events)
    )


def _recorder(events: list[str], name: str):
    async def _callback() -> None:
        events.append(name)

    return _callback


async def _finish(gen) -> None:
    with pytest.raises(StopAsyncIteration):
        await gen.__anext__()


def test_callbacks_run_after_commit(monkeypatch) -> None:
    events: list[str] = []
    _use_fake_database(monkeypatch, events)

    async def _run() -> None:
        gen = get_repos()
        repos = await gen.__anext__()
        repos.on_commit(_recorder(events, "invalidate"))
        assert events == []
        await _finish(gen)

    asyncio.run(_run())
    assert events == ["commit", "close", "invalidate"]


def test_callbacks_dropped_on_rollback(monkeypatch) -> None:
    events: list[str] = []
    _use_fake_database(monkeypatch, events)

    async def _run() -> None:
        gen = get_repos()
        repos = await gen.__anext__()
        repos.on_commit(_recorder(events, "invalidate"))
        with pytest.raises(RuntimeError):
            await gen.athrow(RuntimeError("route failed"))

    asyncio.run(_run())
    assert events == ["rollback", "close"]


def test_failed_callback_is_logged_and_the_rest_still_run(monkeypatch, caplog) -> None:
    events: list[str] = []
    _use_fake_database(monkeypatch, events)

    async def _broken() -> None:
        raise ConnectionError("redis down")

    async def _run() -> None:
        gen = get_repos()
        repos = await gen.__anext__()
        repos.on_commit(_broken)
        repos.on_commit(_recorder(events, "second"))
        await _finish(gen)

    with caplog.at_level(logging.WARNING, logger="coursehub.api.dependencies"):
        asyncio.run(_run())

    assert events == ["commit", "close", "second"]
    assert "Post-commit callback" in caplog.text


def test_in_memory_repos_get_a_fresh_callback_list() -> None:
    async def _open():
        gen = get_repos()
        repos = await gen.__anext__()
        await _finish(gen)
        return repos

    first = asyncio.run(_open())
    first.on_commit(_recorder([], "x"))
    second = asyncio.run(_open())

    assert second.after_commit == []
    assert second.courses is first.courses


def test_course_save_invalidates_cache_after_commit(
    client: TestClient, admin_token: str, monkeypatch
) -> None:
    """A tree cached while the save was still in flight is dropped."""
    headers = {"Authorization": f"Bearer {admin_token}"}
    body = {
        "title": "Python Fundamentals",
        "description": "Learn Python from scratch",
        "instructor": "Ada",
        "modules": [{"ref": {"kind": "pending", "temp_key": "m1"}, "title": "Basics"}],
    }
    course_id = client.post("/v1/admin/courses", json=body, headers=headers).json()[
        "course_id"
    ]
    draft = client.get(f"/v1/admin/courses/{course_id}/draft", headers=headers).json()

    original = admin.catalog_service.save_course

    async def _save_then_concurrent_read(repo, draft, *, cache=None):
        report = await original(repo, draft, cache=cache)
        # Another request caches the pre-commit tree in the meantime.
        await cache_service.set(hierarchy_cache_key(report.course_id), "[]", 300)
        return report

    monkeypatch.setattr(admin.catalog_service, "save_course", _save_then_concurrent_read)

    edited = {
        **draft["course"],
        "modules": [
            *draft["modules"],
            {"ref": {"kind": "pending", "temp_key": "m2"}, "title": "Functions"},
        ],
    }
    resp = client.put(f"/v1/admin/courses/{course_id}", json=edited, headers=headers)
    assert resp.status_code == 200

    tree = client.get(f"/v1/courses/{course_id}/modules", headers=headers).json()
    assert [m["title"] for m in tree] == ["Basics", "Functions"]
