"""
Engine Configuration - Defaults and environment overrides

WHAT: Configuration dataclasses for the embedding service, graph, and engine
WHERE: neurograph/config.py - read once by the application root
WHO: MemoryGraphEngine and scripts constructing services explicitly
TIME: Resolution <1ms

Every setting has a documented default. ``from_env`` overlays values from
``NEUROGRAPH_<SECTION>_<FIELD>`` environment variables, e.g.
``NEUROGRAPH_GRAPH_SIMILARITY_THRESHOLD=0.8``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from typing import Any, Callable, Dict, Mapping, Optional, TypeVar

from .errors import ConfigurationError

T = TypeVar("T")

ENV_PREFIX = "NEUROGRAPH"


def _parse(raw: str, kind: Callable[[str], Any], name: str) -> Any:
    try:
        return kind(raw)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid value for {name}: {raw!r}") from exc


def _optional_float(raw: str) -> Optional[float]:
    if raw.strip().lower() in {"", "none", "null"}:
        return None
    return float(raw)


def _overlay(config: T, section: str, environ: Optional[Mapping[str, str]], parsers: Dict[str, Callable[[str], Any]]) -> T:
    env = os.environ if environ is None else environ
    updates: Dict[str, Any] = {}
    for f in fields(config):  # type: ignore[arg-type]
        key = f"{ENV_PREFIX}_{section}_{f.name.upper()}"
        if key in env:
            updates[f.name] = _parse(env[key], parsers.get(f.name, str), key)
    return replace(config, **updates) if updates else config  # type: ignore[type-var]


@dataclass(slots=True)
class EmbeddingConfig:
    """Configuration for the neural embedding service."""

    embedding_dim: int = 256
    max_text_length: int = 512
    learning_rate: float = 0.001
    training_epochs: int = 100
    cache_size_limit: int = 10000

    def validate(self) -> "EmbeddingConfig":
        if self.embedding_dim <= 0:
            raise ConfigurationError(f"embedding_dim must be positive, got {self.embedding_dim}")
        if self.max_text_length <= 0:
            raise ConfigurationError(f"max_text_length must be positive, got {self.max_text_length}")
        if self.learning_rate <= 0:
            raise ConfigurationError(f"learning_rate must be positive, got {self.learning_rate}")
        if self.training_epochs < 0:
            raise ConfigurationError(f"training_epochs cannot be negative, got {self.training_epochs}")
        if self.cache_size_limit <= 0:
            raise ConfigurationError(f"cache_size_limit must be positive, got {self.cache_size_limit}")
        return self

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EmbeddingConfig":
        parsers = {
            "embedding_dim": int,
            "max_text_length": int,
            "learning_rate": float,
            "training_epochs": int,
            "cache_size_limit": int,
        }
        return _overlay(cls(), "EMBEDDING", environ, parsers).validate()


@dataclass(slots=True)
class GraphConfig:
    """Configuration for the knowledge graph engine."""

    node_embedding_dim: int = 128
    edge_embedding_dim: int = 64
    attention_heads: int = 4
    max_neighbors: int = 50
    temporal_window_hours: int = 24
    similarity_threshold: float = 0.7
    learning_rate: float = 0.001
    cache_size_limit: int = 10000

    def validate(self) -> "GraphConfig":
        for name in ("node_embedding_dim", "edge_embedding_dim", "attention_heads", "temporal_window_hours", "cache_size_limit"):
            value = getattr(self, name)
            if value <= 0:
                raise ConfigurationError(f"{name} must be positive, got {value}")
        if not -1.0 <= self.similarity_threshold <= 1.0:
            raise ConfigurationError(
                f"similarity_threshold must be within [-1, 1], got {self.similarity_threshold}"
            )
        if self.learning_rate <= 0:
            raise ConfigurationError(f"learning_rate must be positive, got {self.learning_rate}")
        return self

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "GraphConfig":
        parsers = {
            "node_embedding_dim": int,
            "edge_embedding_dim": int,
            "attention_heads": int,
            "max_neighbors": int,
            "temporal_window_hours": int,
            "similarity_threshold": float,
            "learning_rate": float,
            "cache_size_limit": int,
        }
        return _overlay(cls(), "GRAPH", environ, parsers).validate()


@dataclass(slots=True)
class EngineConfig:
    """Worker pool and locking settings for the async facade."""

    max_workers: int = 2
    lock_timeout_seconds: Optional[float] = None

    def validate(self) -> "EngineConfig":
        if self.max_workers <= 0:
            raise ConfigurationError(f"max_workers must be positive, got {self.max_workers}")
        if self.lock_timeout_seconds is not None and self.lock_timeout_seconds <= 0:
            raise ConfigurationError(
                f"lock_timeout_seconds must be positive or None, got {self.lock_timeout_seconds}"
            )
        return self

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EngineConfig":
        parsers = {"max_workers": int, "lock_timeout_seconds": _optional_float}
        return _overlay(cls(), "ENGINE", environ, parsers).validate()


__all__ = [
    "EmbeddingConfig",
    "GraphConfig",
    "EngineConfig",
    "ENV_PREFIX",
]
