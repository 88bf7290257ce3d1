from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from chat.core.prompt import FALLBACK_REPLY, SYSTEM_PROMPT


load_dotenv()

PROJECT_ROOT = Path(__file__).resolve().parent.parent


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Settings:
    """Application settings loaded from environment variables.

    Keep all credentials and config centralized here.
    """

    def __init__(self) -> None:
        self.app_env: str = os.getenv("APP_ENV", "development")
        self.google_api_key: Optional[str] = os.getenv("GOOGLE_API_KEY") or None
        self.gemini_model: str = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
        self.temperature: float = float(os.getenv("MODEL_TEMPERATURE", "0.3"))
        self.top_p: float = float(os.getenv("MODEL_TOP_P", "0.9"))
        self.upstream_timeout: float = float(os.getenv("UPSTREAM_TIMEOUT", "60"))

        self.max_turns: int = int(os.getenv("MAX_TURNS", "20"))
        if self.max_turns < 0:
            raise ValueError("MAX_TURNS must be >= 0")
        self.system_prompt: str = os.getenv("SYSTEM_PROMPT", SYSTEM_PROMPT)
        self.fallback_reply: str = os.getenv("FALLBACK_REPLY", FALLBACK_REPLY)
        # Drop the user's turn again when the upstream call fails.
        self.rollback_on_failure: bool = _env_bool("ROLLBACK_ON_FAILURE", True)

        self.host: str = os.getenv("HOST", "0.0.0.0")
        self.port: int = int(os.getenv("PORT", "3000"))
        self.static_dir: Path = Path(os.getenv("STATIC_DIR", str(PROJECT_ROOT / "public")))
        self.log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()

    @property
    def is_dev(self) -> bool:
        return self.app_env.lower() in {"dev", "development", "local"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
