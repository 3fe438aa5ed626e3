from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    # ── Application ──────────────────────────────────────────────
    app_name: str = "Campus Access Control Service"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"
    api_version: str = "v1"

    # ── Database ─────────────────────────────────────────────────
    mongodb_atlas_uri: Optional[str] = None
    database_name: str = "campus_db"

    # ── JWT verification ─────────────────────────────────────────
    secret_key: str = "change-me-in-production"
    algorithm: str = "HS256"

    # ── CORS ─────────────────────────────────────────────────────
    cors_allowed_origins: list[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
    ]
    cors_allow_credentials: bool = True
    cors_allowed_methods: list[str] = ["*"]
    cors_allowed_headers: list[str] = ["*"]

    # ── ABAC ─────────────────────────────────────────────────────
    abac_audit_enabled: bool = True
    abac_evaluation_retention_days: int = 30
    abac_policy_cache_seconds: int = 0  # 0 = read policies fresh on every call
    abac_timezone: Optional[str] = None  # IANA name, None = server local time

    class Config:
        env_file = ".env"
        extra = "ignore"


# ── Module-level singleton ──────────────────────────────────────
settings = Settings()
