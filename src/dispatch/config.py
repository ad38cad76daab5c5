"""Runtime settings for the Dispatch service.

Values are read from ``DISPATCH_*`` environment variables so the same build
runs against SQLite locally and PostgreSQL in production.
"""

import os

from pydantic import BaseModel, Field


class Settings(BaseModel):
    database_uri: str = "sqlite:///dispatch.db"
    order_store: str = Field(default="sql", pattern="^(sql|memory)$")
    claim_duration_ms: int = Field(default=2 * 60 * 1000, gt=0)
    reaper_interval_seconds: float = Field(default=30.0, gt=0)
    reaper_enabled: bool = True
    ui_origins: list[str] = ["*"]

    @classmethod
    def from_env(cls) -> "Settings":
        values: dict = {}
        env = os.environ
        if "DISPATCH_DATABASE_URI" in env:
            values["database_uri"] = env["DISPATCH_DATABASE_URI"]
        if "DISPATCH_ORDER_STORE" in env:
            values["order_store"] = env["DISPATCH_ORDER_STORE"].lower()
        if "DISPATCH_CLAIM_DURATION_MS" in env:
            values["claim_duration_ms"] = env["DISPATCH_CLAIM_DURATION_MS"]
        if "DISPATCH_REAPER_INTERVAL_SECONDS" in env:
            values["reaper_interval_seconds"] = env["DISPATCH_REAPER_INTERVAL_SECONDS"]
        if "DISPATCH_REAPER_ENABLED" in env:
            values["reaper_enabled"] = env["DISPATCH_REAPER_ENABLED"].lower() in ("1", "true", "yes")
        if "DISPATCH_UI_ORIGIN" in env:
            values["ui_origins"] = [o.strip() for o in env["DISPATCH_UI_ORIGIN"].split(",") if o.strip()]
        return cls(**values)


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the process-wide settings, loading them from the environment once."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def reset_settings() -> None:
    """Forget cached settings so the next access re-reads the environment."""
    global _settings
    _settings = None
