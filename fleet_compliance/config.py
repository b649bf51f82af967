"""
Runtime configuration, read from the environment (and a local .env file).

Only the surrounding application layer needs configuration: the LLM
extractor and the API. The validation and reconciliation core takes all
of its inputs as arguments.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv


@dataclass(frozen=True)
class Settings:
    openai_api_key: str | None = None
    llm_model: str = "gpt-5"
    llm_timeout_seconds: float = 120.0  # Per-document ceiling
    llm_max_retries: int = 2
    expiring_soon_days: int = 30
    log_level: str = "INFO"

    @property
    def llm_enabled(self) -> bool:
        return bool(self.openai_api_key)


def load_settings() -> Settings:
    """Build Settings from the environment, loading .env first if present."""
    load_dotenv()
    return Settings(
        openai_api_key=os.environ.get("OPENAI_API_KEY") or None,
        llm_model=os.environ.get("FLEET_LLM_MODEL", "gpt-5"),
        llm_timeout_seconds=float(os.environ.get("FLEET_LLM_TIMEOUT_SECONDS", "120")),
        llm_max_retries=int(os.environ.get("FLEET_LLM_MAX_RETRIES", "2")),
        expiring_soon_days=int(os.environ.get("FLEET_EXPIRING_SOON_DAYS", "30")),
        log_level=os.environ.get("FLEET_LOG_LEVEL", "INFO").upper(),
    )
