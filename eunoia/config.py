from __future__ import annotations

import os
from pathlib import Path
from typing import FrozenSet, List


def _csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings:
    """Centralized configuration for the learning nuggets backend."""

    def __init__(self) -> None:
        base_dir = Path(__file__).resolve().parent
        data_root_default = base_dir.parent / "data"

        self.data_root: Path = Path(
            os.environ.get("EUNOIA_DATA_ROOT") or data_root_default
        ).expanduser()
        self.app_db_path: Path = Path(
            os.environ.get("EUNOIA_DB_PATH") or (self.data_root / "eunoia.db")
        ).expanduser()
        # In production you MUST set EUNOIA_JWT_SECRET; the fallback only keeps local demos easy.
        self.jwt_secret: str = os.environ.get("EUNOIA_JWT_SECRET") or "dev-secret-change-me"
        self.token_ttl_days: int = int(os.environ.get("EUNOIA_TOKEN_TTL_DAYS") or "7")
        self.admin_user_ids: FrozenSet[str] = frozenset(
            _csv(os.environ.get("EUNOIA_ADMIN_USER_IDS") or "")
        )
        self.log_level: str = (os.environ.get("EUNOIA_LOG_LEVEL") or "INFO").upper()

        # ---- LLM providers ----
        self.llm_provider: str = (os.environ.get("EUNOIA_LLM_PROVIDER") or "deepseek").strip().lower()
        self.openai_api_key: str | None = os.environ.get("OPENAI_API_KEY")
        self.openai_base_url: str = os.environ.get("OPENAI_BASE_URL", "https://api.openai.com/v1")
        self.openai_model: str = os.environ.get("OPENAI_MODEL", "gpt-4o")
        self.deepseek_api_key: str | None = os.environ.get("DEEPSEEK_API_KEY")
        self.deepseek_base_url: str = os.environ.get("DEEPSEEK_BASE_URL", "https://api.deepseek.com/v1")
        self.deepseek_model: str = os.environ.get("DEEPSEEK_MODEL", "deepseek-chat")
        self.llm_timeout: float = float(os.environ.get("EUNOIA_LLM_TIMEOUT") or "30")
        self.llm_temperature: float = float(os.environ.get("EUNOIA_LLM_TEMPERATURE") or "0.7")
        self.llm_max_tokens: int = int(os.environ.get("EUNOIA_LLM_MAX_TOKENS") or "4000")

        # ---- Rolling refill ----
        self.nuggets_per_batch: int = int(os.environ.get("EUNOIA_NUGGETS_PER_BATCH") or "25")
        self.initial_batch_size: int = int(os.environ.get("EUNOIA_INITIAL_BATCH_SIZE") or "25")
        self.generation_lease_seconds: float = float(
            os.environ.get("EUNOIA_GENERATION_LEASE_SECONDS") or "60"
        )
        # A lease has to outlive the provider call it guards.
        self.generation_lease_seconds = max(self.generation_lease_seconds, self.llm_timeout + 15)
        self.generation_poll_seconds: float = float(
            os.environ.get("EUNOIA_GENERATION_POLL_SECONDS") or "0.5"
        )

        cors = os.environ.get("EUNOIA_CORS_ORIGINS", "*")
        if cors.strip() == "*":
            self.cors_origins: List[str] = ["*"]
        else:
            self.cors_origins = _csv(cors)


settings = Settings()
