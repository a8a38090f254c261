"""Hierarchy Loader: flat module/video rows to an ordered course tree.

Content availability must never block a course page. The loader first
tries the single embedded query (modules with their videos). If that
fails it degrades to one module query plus one video query per module.
If even the module listing fails it returns an empty tree, which
callers treat as "no content authored yet", not as an error.

Only complete loads are written to the cache; a degraded tree would
otherwise outlive the outage that produced it.
"""

from __future__ import annotations

import logging
from uuid import UUID

from pydantic import TypeAdapter, ValidationError

from coursehub.core.config import SETTINGS
from coursehub.core.errors import PersistenceError
from coursehub.core.metrics import CACHE_OPERATIONS, HIERARCHY_FALLBACKS
from coursehub.models.course import ModuleTree, Video, sort_tree
from coursehub.repos.course_repo import CourseRepo
from coursehub.services.cache import CacheService

logger = logging.getLogger(__name__)

_TREE_ADAPTER = TypeAdapter(list[ModuleTree])


def hierarchy_cache_key(course_id: UUID) -> str:
    return f"hierarchy:{course_id}"


async def load_hierarchy(
    repo: CourseRepo,
    course_id: UUID,
    *,
    cache: CacheService | None = None,
    ttl_seconds: int | None = None,
) -> list[ModuleTree]:
    """Return the course's modules with their videos, ordered at both levels.

    Never raises for persistence failures; see the module docstring.
    """
    key = hierarchy_cache_key(course_id)

    if cache is not None:
        cached = await _cache_get(cache, key)
        if cached is not None:
            CACHE_OPERATIONS.labels(operation="hit").inc()
            return cached
        CACHE_OPERATIONS.labels(operation="miss").inc()

    tree, complete = await _load(repo, course_id)

    if cache is not None and complete:
        ttl = SETTINGS.hierarchy_cache_ttl if ttl_seconds is None else ttl_seconds
        if ttl > 0:
            try:
                await cache.set(key, _TREE_ADAPTER.dump_json(tree).decode(), ttl)
            except Exception:
                logger.warning("Hierarchy cache write failed for course=%s", course_id)

    return tree


async def invalidate_hierarchy(cache: CacheService, course_id: UUID) -> None:
    await cache.delete(hierarchy_cache_key(course_id))


async def _cache_get(cache: CacheService, key: str) -> list[ModuleTree] | None:
    try:
        raw = await cache.get(key)
    except Exception:
        logger.warning("Hierarchy cache read failed for key=%s", key)
        return None
    if raw is None:
        return None
    try:
        return _TREE_ADAPTER.validate_json(raw)
    except ValidationError:
        logger.warning("Discarding undecodable hierarchy cache entry key=%s", key)
        return None


async def _load(repo: CourseRepo, course_id: UUID) -> tuple[list[ModuleTree], bool]:
    try:
        return sort_tree(await repo.list_modules_with_videos(course_id)), True
    except PersistenceError as e:
        HIERARCHY_FALLBACKS.labels(stage="embedded").inc()
        logger.warning(
            "Embedded hierarchy query failed for course=%s, "
            "falling back to per-module queries: %s",
            course_id,
            e,
            extra={"course_id": str(course_id)},
        )

    try:
        modules = await repo.list_modules(course_id)
    except PersistenceError as e:
        HIERARCHY_FALLBACKS.labels(stage="modules").inc()
        logger.warning(
            "Module listing failed for course=%s, returning empty tree: %s",
            course_id,
            e,
            extra={"course_id": str(course_id)},
        )
        return [], False

    complete = True
    tree: list[ModuleTree] = []
    for module in modules:
        videos: list[Video] = []
        try:
            videos = await repo.list_videos(module.id)
        except PersistenceError as e:
            complete = False
            HIERARCHY_FALLBACKS.labels(stage="videos").inc()
            logger.warning(
                "Video listing failed for module=%s: %s",
                module.id,
                e,
                extra={"course_id": str(course_id)},
            )
        tree.append(ModuleTree(module=module, videos=tuple(videos)))

    return sort_tree(tree), complete
