import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai"
DEFAULT_MODEL = "gemini-2.0-flash"
DEFAULT_ORIGINS = ["http://localhost:5173", "http://localhost:3000"]


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration, passed explicitly to the services that need it."""

    api_key: Optional[str] = None
    base_url: str = DEFAULT_BASE_URL
    model: str = DEFAULT_MODEL
    timeout_seconds: float = 60.0
    max_tokens: int = 4000
    min_jd_length: int = 100
    max_text_length: int = 50000
    chat_history_limit: int = 20
    max_open_views: int = 100
    cors_origins: List[str] = field(default_factory=lambda: list(DEFAULT_ORIGINS))
    log_level: str = "INFO"

    @property
    def is_local_backend(self) -> bool:
        return self.base_url.startswith("http://localhost") or \
            self.base_url.startswith("https://localhost") or \
            self.base_url.startswith("http://127.0.0.1") or \
            "host.docker.internal" in self.base_url

    @classmethod
    def from_env(cls) -> "Settings":
        api_key = os.getenv("AI_API_KEY") or os.getenv("GEMINI_API_KEY") or os.getenv("OPENAI_API_KEY")
        origins_env = os.getenv("CORS_ORIGINS")
        origins = [o.strip() for o in (origins_env or "").split(",") if o.strip()]
        return cls(
            api_key=api_key or None,
            base_url=(os.getenv("AI_BASE_URL") or DEFAULT_BASE_URL).rstrip("/"),
            model=os.getenv("AI_MODEL") or DEFAULT_MODEL,
            timeout_seconds=_env_float("AI_TIMEOUT_SECONDS", 60.0),
            max_tokens=_env_int("AI_MAX_TOKENS", 4000),
            min_jd_length=_env_int("MIN_JD_LENGTH", 100),
            max_text_length=_env_int("MAX_TEXT_LENGTH", 50000),
            chat_history_limit=_env_int("CHAT_HISTORY_LIMIT", 20),
            max_open_views=_env_int("MAX_OPEN_VIEWS", 100),
            cors_origins=origins or list(DEFAULT_ORIGINS),
            log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    load_dotenv()
    return Settings.from_env()
