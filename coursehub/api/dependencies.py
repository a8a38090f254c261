from __future__ import annotations

import logging
from collections.abc import AsyncGenerator, Awaitable, Callable
from dataclasses import dataclass, field, replace
from typing import Annotated

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from coursehub.db.engine import async_session_factory
from coursehub.models.principal import Principal
from coursehub.repos.course_repo import CourseRepo, InMemoryCourseRepo
from coursehub.repos.enrollment_repo import EnrollmentRepo, InMemoryEnrollmentRepo
from coursehub.repos.pg_course_repo import PgCourseRepo
from coursehub.repos.pg_enrollment_repo import PgEnrollmentRepo, PgWishlistRepo
from coursehub.repos.pg_progress_repo import PgProgressRepo
from coursehub.repos.progress_repo import InMemoryProgressRepo, ProgressRepo
from coursehub.repos.wishlist_repo import InMemoryWishlistRepo, WishlistRepo
from coursehub.services import token_service

logger = logging.getLogger(__name__)

# The identity provider owns the token endpoint; this URL is only
# advertised in the OpenAPI schema.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/oauth/token")


def require_user(
    raw_token: Annotated[str, Depends(oauth2_scheme)],
) -> Principal:
    """Validate the bearer token and return the caller as a Principal."""
    try:
        claims = token_service.decode_access_token(raw_token)
    except jwt.ExpiredSignatureError:
        logger.warning("Expired token rejected")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token rejected: %s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None

    principal = Principal(
        user_id=claims["sub"],
        roles=frozenset(claims.get("roles", [])),
    )
    logger.debug(
        "Token validated for user=%s roles=%s", principal.user_id, principal.roles
    )
    return principal


def require_role(role: str):
    """Dependency factory: demand a specific role.

    Usage: Depends(require_role("admin"))
    """

    def _guard(
        principal: Annotated[Principal, Depends(require_user)],
    ) -> Principal:
        if not principal.has_role(role):
            logger.warning(
                "Access denied: user=%s missing role=%s", principal.user_id, role
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return principal

    return _guard


# ---------------------------------------------------------------------------
# Repository wiring
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Repos:
    courses: CourseRepo
    progress: ProgressRepo
    enrollments: EnrollmentRepo
    wishlist: WishlistRepo
    after_commit: list[Callable[[], Awaitable[None]]] = field(default_factory=list)

    def on_commit(self, callback: Callable[[], Awaitable[None]]) -> None:
        """Run ``callback`` once the request's writes are durable.

        Dropped if the request fails and its transaction is rolled back.
        """
        self.after_commit.append(callback)


# In-memory singletons, used whenever DATABASE_URL is not configured.
course_repo = InMemoryCourseRepo()
progress_repo = InMemoryProgressRepo()
enrollment_repo = InMemoryEnrollmentRepo()
wishlist_repo = InMemoryWishlistRepo()

_IN_MEMORY = Repos(
    courses=course_repo,
    progress=progress_repo,
    enrollments=enrollment_repo,
    wishlist=wishlist_repo,
)


async def get_repos() -> AsyncGenerator[Repos, None]:
    """Request-scoped repositories.

    With a database: one session per request, committed on success and
    rolled back on exception. Without one: the in-memory singletons.
    Callbacks registered with ``Repos.on_commit`` run after the commit.
    """
    if async_session_factory is None:
        repos = replace(_IN_MEMORY, after_commit=[])
        yield repos
        await _run_after_commit(repos)
        return

    async with async_session_factory() as session:
        repos = Repos(
            courses=PgCourseRepo(session),
            progress=PgProgressRepo(session),
            enrollments=PgEnrollmentRepo(session),
            wishlist=PgWishlistRepo(session),
        )
        try:
            yield repos
            await session.commit()
        except Exception:
            await session.rollback()
            raise
    await _run_after_commit(repos)


async def _run_after_commit(repos: Repos) -> None:
    # The writes are already committed; a failed callback cannot undo them.
    for callback in repos.after_commit:
        try:
            await callback()
        except Exception:
            logger.warning("Post-commit callback %r failed", callback, exc_info=True)
