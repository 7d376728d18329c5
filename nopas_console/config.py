"""NOPAS Policy Console — Application configuration via environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class NopasSettings(BaseSettings):
    """Central configuration loaded from environment / .env file."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # ── Policy service ─────────────────────────────────────────
    nopas_endpoint: str = "http://localhost:8080"
    request_timeout_seconds: float = 30.0

    # ── Dashboard ──────────────────────────────────────────────
    dashboard_host: str = "0.0.0.0"
    dashboard_port: int = 8000
    max_notifications: int = 50

    # ── Logging ────────────────────────────────────────────────
    log_level: str = "INFO"
    log_format: str = "json"


settings = NopasSettings()
