"""
Campus Access Control Service: main application.

Assembles all packages: config, middleware, ABAC engine, admin and
resource routes.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from campus.config import settings, db_manager, ensure_indexes
from campus.middleware import AuthMiddleware
from campus.utils import Logger
from campus.abac.cache import CachedPolicyStore
from campus.abac.engine import DecisionEngine
from campus.abac.repository import (
    MongoAttributeStore,
    MongoAuditStore,
    MongoPolicyStore,
    MongoUserStore,
)
from campus.abac.time_window import local_now

# ── Route imports ────────────────────────────────────────────────
from campus.abac import abac_router
from campus.departments import departments_router

logger = Logger("request")


# ── Request Logging Middleware ───────────────────────────────────
class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One line per request with the caller, status and duration."""

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        user_id = getattr(request.state, "user_id", "-")
        line = (
            f"{request.method} {request.url.path} -> {response.status_code} "
            f"({elapsed_ms:.1f}ms, user={user_id})"
        )
        if response.status_code >= 500:
            logger.error(line)
        elif response.status_code in (401, 403):
            logger.warning(line)
        else:
            logger.info(line)
        return response


def build_engine(db) -> tuple[DecisionEngine, CachedPolicyStore | None]:
    """Wire the decision engine to the MongoDB stores."""
    policy_store = MongoPolicyStore(db)
    policy_cache = None
    if settings.abac_policy_cache_seconds > 0:
        policy_cache = CachedPolicyStore(policy_store, settings.abac_policy_cache_seconds)
        policy_store = policy_cache

    engine = DecisionEngine(
        user_store=MongoUserStore(db),
        attribute_store=MongoAttributeStore(db),
        policy_store=policy_store,
        audit_store=MongoAuditStore(db),
        clock=lambda: local_now(settings.abac_timezone),
        audit_enabled=settings.abac_audit_enabled,
    )
    return engine, policy_cache


# ── Lifespan ─────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    await db_manager.connect()
    await ensure_indexes(db_manager.database)

    app.state.abac_engine, app.state.policy_cache = build_engine(db_manager.database)
    logger.info(
        f"ABAC engine ready (audit={'on' if settings.abac_audit_enabled else 'off'}, "
        f"policy cache={settings.abac_policy_cache_seconds}s)"
    )
    yield

    await app.state.abac_engine.audit.drain()
    db_manager.close()


# ── App factory ──────────────────────────────────────────────────
def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Attribute-based access control for college records",
        docs_url="/api/docs",
        lifespan=lifespan,
    )

    # ── CORS (must be first) ─────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allowed_methods,
        allow_headers=settings.cors_allowed_headers,
    )

    # ── Request logging (runs on every request) ──────────────
    app.add_middleware(RequestLoggingMiddleware)

    # ── JWT auth middleware ──────────────────────────────────
    app.add_middleware(AuthMiddleware)

    # ── Global exception handler ─────────────────────────────
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(
            f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}",
            exc_info=exc,
        )
        message = str(exc) if settings.debug else "Internal server error"
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": {"code": 500, "message": message}},
        )

    # ── Routes ───────────────────────────────────────────────
    v = settings.api_version  # "v1"

    app.include_router(
        abac_router,
        prefix=f"/api/{v}/abac",
        tags=["Access Control"],
    )
    app.include_router(
        departments_router,
        prefix=f"/api/{v}/departments",
        tags=["Departments"],
    )

    # ── Health check ─────────────────────────────────────────
    @app.get("/health")
    async def health():
        return {
            "status": "healthy",
            "app": settings.app_name,
            "version": settings.app_version,
            "database": db_manager.is_connected,
        }

    return app


# ── Create the app instance ──────────────────────────────────────
app = create_app()
