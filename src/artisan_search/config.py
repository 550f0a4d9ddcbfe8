"""Environment-driven settings for providers, caches, ranking and analytics."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except Exception:
        return default
    return value if value > 0 else default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except Exception:
        return default
    return value if value >= 0 else default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_str(name: str, default: str) -> str:
    return os.getenv(name, "").strip() or default


@dataclass(frozen=True)
class SearchConfig:
    chat_model: str = "command-r-08-2024"
    embed_model: str = "embed-v4.0"
    embed_input_type: str = "search_document"
    embedding_dimension: int = 1536
    similarity_threshold: float = 0.3
    provider_timeout_seconds: float = 20.0
    provider_max_retries: int = 1
    embedding_cache_size: int = 10_000
    suggestion_cache_size: int = 512
    default_page_size: int = 12
    analytics_retention_days: int = 90
    log_analytics: bool = True
    db_path: Path = Path("data") / "artisan_search.db"

    @classmethod
    def from_env(cls) -> "SearchConfig":
        return cls(
            chat_model=_env_str("AS_CHAT_MODEL", cls.chat_model),
            embed_model=_env_str("AS_EMBED_MODEL", cls.embed_model),
            embed_input_type=_env_str("AS_EMBED_INPUT_TYPE", cls.embed_input_type),
            embedding_dimension=max(1, _env_int("AS_EMBEDDING_DIMENSION", cls.embedding_dimension)),
            similarity_threshold=_env_float("AS_SIMILARITY_THRESHOLD", cls.similarity_threshold),
            provider_timeout_seconds=_env_float("AS_PROVIDER_TIMEOUT_SECONDS", cls.provider_timeout_seconds),
            provider_max_retries=_env_int("AS_PROVIDER_MAX_RETRIES", cls.provider_max_retries),
            embedding_cache_size=max(1, _env_int("AS_EMBEDDING_CACHE_SIZE", cls.embedding_cache_size)),
            suggestion_cache_size=max(1, _env_int("AS_SUGGESTION_CACHE_SIZE", cls.suggestion_cache_size)),
            default_page_size=max(1, _env_int("AS_DEFAULT_PAGE_SIZE", cls.default_page_size)),
            analytics_retention_days=max(1, _env_int("AS_ANALYTICS_RETENTION_DAYS", cls.analytics_retention_days)),
            log_analytics=_env_bool("AS_LOG_ANALYTICS", cls.log_analytics),
            db_path=Path(_env_str("AS_DB_PATH", str(cls.db_path))),
        )
