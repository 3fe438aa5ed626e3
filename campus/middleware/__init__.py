"""
Authentication middleware.

Runs on every request (except DISABLED_ROUTES):
  1. Decode JWT → extract user id, super-admin flag and permissions
  2. Set request.state.user, user_id, user_permissions, is_super_admin

Permission checks happen per route (@require_permission) and per
resource (ABAC dependencies).
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from campus.auth.helpers import decode_access_token


# Routes that skip authentication
DISABLED_ROUTES = [
    "/health",
    "/openapi.json",
    "/api/docs",
    "/redoc",
]


class AuthMiddleware(BaseHTTPMiddleware):
    """Verifies the bearer token and attaches the caller to request.state."""

    async def dispatch(self, request: Request, call_next):
        origin = request.headers.get("origin", "*")

        # ── Preflight ────────────────────────────────────────────
        if request.method == "OPTIONS":
            return JSONResponse(
                status_code=200,
                content={"message": "CORS preflight ok"},
                headers={
                    "Access-Control-Allow-Origin": origin,
                    "Access-Control-Allow-Methods": "GET,POST,PUT,DELETE,PATCH,OPTIONS",
                    "Access-Control-Allow-Headers": "Authorization,Content-Type",
                    "Access-Control-Allow-Credentials": "true",
                },
            )

        path = request.url.path

        # ── Skip disabled routes ─────────────────────────────────
        if any(path.endswith(route) for route in DISABLED_ROUTES):
            return await call_next(request)

        # ── Extract & decode JWT ─────────────────────────────────
        auth_header = request.headers.get("Authorization")
        if not auth_header:
            return JSONResponse(
                status_code=401,
                content={"detail": "Missing Authorization header"},
            )

        if not auth_header.startswith("Bearer "):
            return JSONResponse(
                status_code=401,
                content={"detail": "Invalid token format. Expected 'Bearer <token>'"},
            )

        token = auth_header.split(" ", 1)[1].strip()

        try:
            payload = decode_access_token(token)
        except Exception as e:
            return JSONResponse(
                status_code=401,
                content={"detail": f"Invalid or expired token: {getattr(e, 'detail', e)}"},
            )

        if not payload.get("sub"):
            return JSONResponse(
                status_code=401,
                content={"detail": "Token has no subject"},
            )

        # ── Populate request.state ───────────────────────────────
        request.state.user = payload
        request.state.user_id = str(payload["sub"])
        request.state.is_super_admin = bool(payload.get("is_super_admin", False))
        request.state.user_permissions = payload.get("permissions") or []

        return await call_next(request)
