import logging
from urllib.parse import urlparse

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional

class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    CONFIG_STRICT: bool = False
    LOG_LEVEL: str = "INFO"

    # Content API
    API_BASE_URL: str = "http://localhost:5000"
    API_TIMEOUT_SECONDS: float = 10.0

    # Comments (server default page size is 10)
    COMMENTS_PAGE_SIZE: int = 10

    # Persisted fallback markers (None = in-memory only)
    FALLBACK_MARKERS_PATH: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
settings = Settings()


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Validate client configuration.

    In strict mode raise RuntimeError; otherwise emit warnings only.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("storysync")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    problems = []
    base_url = getattr(cfg, "API_BASE_URL", None) or ""
    parsed = urlparse(base_url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        problems.append(f"API_BASE_URL must be an http(s) URL, got {base_url!r}")
    if getattr(cfg, "COMMENTS_PAGE_SIZE", 0) <= 0:
        problems.append("COMMENTS_PAGE_SIZE must be positive")
    if getattr(cfg, "API_TIMEOUT_SECONDS", 0) <= 0:
        problems.append("API_TIMEOUT_SECONDS must be positive")

    if problems:
        message = "Invalid configuration: " + "; ".join(problems)
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    return True
