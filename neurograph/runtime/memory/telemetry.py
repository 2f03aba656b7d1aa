"""
Telemetry Collection - Operation spans for the memory graph engine

WHAT: Lightweight span recording around engine operations
WHERE: neurograph/runtime/memory/telemetry.py - observability layer
WHO: MemoryGraphEngine wrapping every public operation
TIME: Zero-overhead when disabled, <0.1ms overhead when enabled

Spans record ``duration_ms`` and ``success`` on exit. The default client
discards them; ``LoggingTelemetryClient`` writes them to the module logger
so hosts can route them with ordinary logging configuration.
"""

from __future__ import annotations

import logging
import time
from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


class TelemetrySpan(AbstractContextManager["TelemetrySpan"]):
    """Context manager capturing span metadata and duration."""

    def __init__(
        self,
        client: "TelemetryClient",
        name: str,
        attributes: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._client = client
        self.name = name
        self.attributes: Dict[str, Any] = dict(attributes or {})
        self._start: float = 0.0

    def __enter__(self) -> "TelemetrySpan":
        self._start = time.perf_counter()
        return self

    def set_attribute(self, key: str, value: Any) -> None:
        self.attributes[key] = value

    def __exit__(self, exc_type, exc, exc_tb) -> bool:
        self.attributes["duration_ms"] = (time.perf_counter() - self._start) * 1000.0
        self.attributes.setdefault("success", exc is None)
        if exc is not None:
            self.attributes.setdefault("error", type(exc).__name__)
        self._client.emit_span(self.name, self.attributes)
        return False


class TelemetryClient:
    """Base telemetry client; override `emit_span` for custom sinks."""

    def span(self, name: str, *, attributes: Optional[Dict[str, Any]] = None) -> TelemetrySpan:
        return TelemetrySpan(self, name, attributes)

    def emit_span(self, name: str, attributes: Dict[str, Any]) -> None:
        raise NotImplementedError


@dataclass(slots=True)
class NoOpTelemetryClient(TelemetryClient):
    """Telemetry client that silently discards spans."""

    def emit_span(self, name: str, attributes: Dict[str, Any]) -> None:  # noqa: D401 - intentionally empty
        pass


class LoggingTelemetryClient(TelemetryClient):
    """Writes each finished span to the logger at ``level``."""

    def __init__(self, level: int = logging.DEBUG) -> None:
        self.level = level

    def emit_span(self, name: str, attributes: Dict[str, Any]) -> None:
        payload = {k: attributes[k] for k in sorted(attributes)}
        logger.log(self.level, f"[telemetry] {name}: {payload}")


class RecordingTelemetryClient(TelemetryClient):
    """Keeps finished spans in memory; handy for tests and local analysis."""

    def __init__(self) -> None:
        self.spans: List[Tuple[str, Dict[str, Any]]] = []

    def emit_span(self, name: str, attributes: Dict[str, Any]) -> None:
        self.spans.append((name, dict(attributes)))

    def names(self) -> List[str]:
        return [name for name, _ in self.spans]


__all__ = [
    "LoggingTelemetryClient",
    "NoOpTelemetryClient",
    "RecordingTelemetryClient",
    "TelemetryClient",
    "TelemetrySpan",
]
