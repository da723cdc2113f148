"""Application configuration handling."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Mapping

import yaml
from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator

ENV_PREFIX = "AKB_"
DEFAULT_CONFIG_PATH = Path("~/.config/assistant-kb/config.yaml")

DEFAULT_KNOWLEDGE_KEYWORDS = (
    "document",
    "file",
    "pdf",
    "knowledge",
    "upload",
    "attachment",
    "attached",
    "report",
)

_YAML_KEY_MAP: Mapping[tuple[str, ...], str] = {
    ("storage", "db_path"): "db_path",
    ("storage", "files_dir"): "storage_dir",
    ("embeddings", "backend"): "embedding_backend",
    ("embeddings", "model"): "embedding_model",
    ("embeddings", "dim"): "embedding_dim",
    ("embeddings", "api_base"): "api_base",
    ("embeddings", "batch_size"): "embedding_batch_size",
    ("embeddings", "batch_delay"): "embedding_batch_delay",
    ("embeddings", "max_input_chars"): "embedding_max_input_chars",
    ("completion", "model"): "completion_model",
    ("completion", "max_tokens"): "max_completion_tokens",
    ("extraction", "min_chars"): "extraction_min_chars",
    ("validation", "min_letter_ratio"): "min_letter_ratio",
    ("validation", "min_vowel_ratio"): "min_vowel_ratio",
    ("validation", "max_digit_ratio"): "max_digit_ratio",
    ("validation", "min_chars"): "min_text_chars",
    ("validation", "short_text_prefix"): "short_text_prefix",
    ("chunking", "max_chars"): "chunk_max_chars",
    ("chunking", "min_usable_chars"): "chunk_min_usable_chars",
    ("retrieval", "default_threshold"): "default_match_threshold",
    ("retrieval", "default_count"): "default_match_count",
    ("retrieval", "knowledge_threshold"): "knowledge_match_threshold",
    ("retrieval", "knowledge_count"): "knowledge_match_count",
    ("retrieval", "knowledge_keywords"): "knowledge_keywords",
}


class Settings(BaseModel):
    """Runtime configuration loaded from YAML file and environment variables."""

    db_path: Path = Field(default=Path.home() / ".assistant-kb" / "akb.db")
    storage_dir: Path = Field(default=Path.home() / ".assistant-kb" / "files")

    embedding_backend: Literal["openai", "hashed"] = "openai"
    embedding_model: str = "text-embedding-3-small"
    embedding_dim: int = Field(default=1536, ge=1)
    api_base: str = "https://api.openai.com/v1"
    openai_api_key: SecretStr | None = None
    request_timeout: float = 60.0
    embedding_batch_size: int = Field(default=5, ge=1, le=100)
    embedding_batch_delay: float = Field(default=0.2, ge=0.0)
    embedding_max_input_chars: int = 1800

    completion_model: str = "gpt-4o-mini"
    max_completion_tokens: int = 2000

    extraction_min_chars: int = 100
    readable_alnum_ratio: float = 0.4

    min_letter_ratio: float = 0.45
    min_vowel_ratio: float = 0.18
    max_digit_ratio: float = 0.45
    min_text_chars: int = 60
    short_text_prefix: str | None = None
    short_text_chars: int = 200

    chunk_max_chars: int = Field(default=1800, ge=100)
    chunk_min_paragraph_chars: int = 20
    chunk_split_ratio: float = Field(default=0.6, gt=0.0, lt=1.0)
    chunk_min_usable_chars: int = 60
    chunk_min_alnum_ratio: float = 0.5
    chunk_min_vowel_ratio: float = 0.2
    chunk_max_digit_ratio: float = 0.4

    default_match_threshold: float = 0.3
    default_match_count: int = 5
    knowledge_match_threshold: float = 0.1
    knowledge_match_count: int = 8
    knowledge_keywords: tuple[str, ...] = DEFAULT_KNOWLEDGE_KEYWORDS

    model_config = {
        "validate_assignment": True,
        "extra": "ignore",
    }

    @field_validator("db_path", "storage_dir", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Path:
        if isinstance(value, Path):
            return value.expanduser()
        if isinstance(value, str):
            return Path(value).expanduser()
        raise TypeError("paths must be a path or string")

    @field_validator("knowledge_keywords", mode="before")
    @classmethod
    def _split_keywords(cls, value: Any) -> Any:
        if isinstance(value, str):
            return tuple(part.strip().lower() for part in value.split(",") if part.strip())
        return value

    @model_validator(mode="after")
    def _check_embedding_bound(self) -> "Settings":
        if self.embedding_max_input_chars < self.chunk_max_chars:
            raise ValueError("embedding_max_input_chars must be >= chunk_max_chars")
        return self

    @classmethod
    def from_yaml(cls, path: Path | None = None) -> "Settings":
        """Load YAML config and overlay env vars; fall back to defaults."""
        config_path = cls._resolve_config_path(path)
        data: dict[str, Any] = {}
        if config_path and config_path.exists():
            with config_path.open("r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh) or {}
            data.update(_flatten_yaml(raw))
        data.update(_load_env_overrides())
        return cls(**data)

    @staticmethod
    def _resolve_config_path(path: Path | None) -> Path | None:
        if path is not None:
            return path.expanduser()
        env_path = os.environ.get(f"{ENV_PREFIX}CONFIG")
        if env_path:
            return Path(env_path).expanduser()
        resolved_default = DEFAULT_CONFIG_PATH.expanduser()
        return resolved_default if resolved_default.exists() else None


def _flatten_yaml(raw: Mapping[str, Any], prefix: tuple[str, ...] = ()) -> dict[str, Any]:
    """Flatten nested YAML configuration to Settings field names."""
    flat: dict[str, Any] = {}
    for key, value in raw.items():
        next_prefix = prefix + (key,)
        if isinstance(value, Mapping):
            flat.update(_flatten_yaml(value, prefix=next_prefix))
        else:
            mapped_key = _YAML_KEY_MAP.get(next_prefix)
            if mapped_key:
                flat[mapped_key] = value
            elif key in Settings.model_fields:
                flat[key] = value
    return flat


def _load_env_overrides() -> dict[str, Any]:
    """Map environment variables with AKB_ prefix into Settings fields."""
    overrides: dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        field_name = key[len(ENV_PREFIX) :].lower()
        if field_name in Settings.model_fields:
            overrides[field_name] = value
    return overrides


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings accessor for dependency injection."""
    return Settings.from_yaml()


__all__ = ["Settings", "get_settings", "DEFAULT_KNOWLEDGE_KEYWORDS"]
