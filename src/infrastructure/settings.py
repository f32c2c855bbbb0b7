from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path

from domain.models import MAX_TRANSACTION_AMOUNT


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    log_level: str = "INFO"
    store_backend: str = "memory"
    database_path: Path = Path("data/transactions.db")
    token_ttl_seconds: int = 7 * 24 * 3600
    max_transaction_amount: Decimal = MAX_TRANSACTION_AMOUNT
    api_base_url: str = "http://127.0.0.1:8000/api"
    api_timeout_seconds: float = 15.0
    llm_enabled: bool = True
    ollama_base_url: str = "http://127.0.0.1:11434"
    ollama_model: str = "llama3.1:8b"
    ollama_timeout_seconds: float = 60.0
    ollama_temperature: float = 0.1

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            store_backend=os.getenv("STORE_BACKEND", "memory").strip().lower(),
            database_path=Path(os.getenv("DATABASE_PATH", "data/transactions.db")),
            token_ttl_seconds=int(os.getenv("TOKEN_TTL_SECONDS", str(7 * 24 * 3600))),
            max_transaction_amount=Decimal(os.getenv("MAX_TRANSACTION_AMOUNT", str(MAX_TRANSACTION_AMOUNT))),
            api_base_url=os.getenv("API_BASE_URL", "http://127.0.0.1:8000/api").rstrip("/"),
            api_timeout_seconds=float(os.getenv("API_TIMEOUT_SECONDS", "15")),
            llm_enabled=_env_bool("LLM_ENABLED", True),
            ollama_base_url=os.getenv("OLLAMA_BASE_URL", "http://127.0.0.1:11434"),
            ollama_model=os.getenv("OLLAMA_MODEL", "llama3.1:8b"),
            ollama_timeout_seconds=float(os.getenv("OLLAMA_TIMEOUT_SECONDS", "60")),
            ollama_temperature=float(os.getenv("OLLAMA_TEMPERATURE", "0.1")),
        )
