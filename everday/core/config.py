import logging

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import Optional

class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    CONFIG_STRICT: bool = False

    # Database (SQLAlchemy store)
    DATABASE_URL: Optional[str] = None
    TEST_DATABASE_URL: Optional[str] = None

    # Supabase PostgREST store
    SUPABASE_URL: Optional[str] = None
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = None
    STORE_TIMEOUT_SECONDS: float = 10.0

    # Guest mode
    GUEST_STORAGE_KEY: str = "everday_guest_data"

    # Best-streak write-back pool
    BEST_STREAK_WRITER_WORKERS: int = 2

    # App URLs
    BACKEND_URL: str = "http://localhost:8000"

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
settings = Settings()


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Validate that an authoritative store is configured.

    In strict mode raise RuntimeError; otherwise emit warnings only.
    Secrets are not logged, only missing keys.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("everday")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    has_sql = bool(getattr(cfg, "DATABASE_URL", None))
    has_supabase = bool(getattr(cfg, "SUPABASE_URL", None)) and bool(getattr(cfg, "SUPABASE_SERVICE_ROLE_KEY", None))
    if not has_sql and not has_supabase:
        missing = ["DATABASE_URL"]
        if not getattr(cfg, "SUPABASE_URL", None):
            missing.append("SUPABASE_URL")
        if not getattr(cfg, "SUPABASE_SERVICE_ROLE_KEY", None):
            missing.append("SUPABASE_SERVICE_ROLE_KEY")
        message = f"Missing required configuration: {', '.join(missing)}"
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    if getattr(cfg, "SUPABASE_URL", None) and not getattr(cfg, "SUPABASE_SERVICE_ROLE_KEY", None):
        message = "SUPABASE_URL is set without SUPABASE_SERVICE_ROLE_KEY"
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    return True
