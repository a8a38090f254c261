from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from coursehub.api.admin import router as admin_router
from coursehub.api.courses import router as courses_router
from coursehub.api.health import router as health_router
from coursehub.api.me import router as me_router
from coursehub.api.metrics_endpoint import router as metrics_router
from coursehub.api.progress import router as progress_router
from coursehub.core.config import SETTINGS
from coursehub.core.errors import PersistenceError
from coursehub.core.logging import setup_logging
from coursehub.db.engine import lifespan_db
from coursehub.db.redis import lifespan_redis
from coursehub.middleware.metrics import MetricsMiddleware
from coursehub.middleware.request_context import RequestContextMiddleware

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Nested so teardown runs in reverse order.
    async with lifespan_db():
        async with lifespan_redis():
            yield


app = FastAPI(
    title="coursehub",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Last added runs first: RequestContext -> Metrics -> CORS -> route.
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)


@app.exception_handler(PersistenceError)
async def persistence_error_handler(_request: Request, exc: PersistenceError) -> JSONResponse:
    """A write the store rejected or could not take. Retrying may succeed."""
    logger.error("Persistence failure in %s: %s", exc.operation, exc.detail)
    return JSONResponse(
        status_code=503,
        content={"detail": "storage unavailable", "operation": exc.operation},
    )


app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(courses_router)
app.include_router(me_router)
app.include_router(progress_router)
app.include_router(admin_router)

logger.info(
    "coursehub started  env=%s log_level=%s port=%d docs=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.is_dev else "off",
)
