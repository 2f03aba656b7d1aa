"""NeuroGraph neural memory embedding and knowledge graph engine."""

__all__ = [
    "config",
    "errors",
    "nn",
    "runtime",
]
