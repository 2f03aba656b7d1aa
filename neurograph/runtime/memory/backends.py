"""
Embedding Backends - Neural and traditional strategies as one tagged type

WHAT: Uniform embed/validate surface over an EmbeddingService
WHERE: neurograph/runtime/memory/backends.py - embedding strategy seam
WHO: Storage collaborators that only need untyped text embeddings
TIME: Same as EmbeddingService.embed_text

Both strategies are backed by the neural service; they differ only in how
strictly a vector is validated. A tagged ``kind`` replaces a class
hierarchy because there are exactly two strategies.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Sequence

from .embeddings import EmbeddingService


class BackendKind(str, Enum):
    NEURAL = "neural"
    TRADITIONAL = "traditional"


@dataclass(slots=True)
class EmbeddingBackend:
    """Embedding strategy selected by ``kind``."""

    kind: BackendKind
    service: EmbeddingService

    @classmethod
    def neural(cls, service: EmbeddingService) -> "EmbeddingBackend":
        return cls(BackendKind.NEURAL, service)

    @classmethod
    def traditional(cls, service: EmbeddingService) -> "EmbeddingBackend":
        return cls(BackendKind.TRADITIONAL, service)

    @property
    def dimension(self) -> int:
        return self.service.embedding_dim

    def embed_text(self, text: str) -> List[float]:
        return self.service.embed_text(text, None)

    def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        return self.service.embed_batch([(text, None) for text in texts])

    def validate_embedding(self, vector: Sequence[float]) -> bool:
        if self.kind is BackendKind.NEURAL:
            return len(vector) == self.dimension
        return len(vector) > 0


__all__ = ["BackendKind", "EmbeddingBackend"]
