"""
Memory Embedding & Knowledge Graph - Neural memory organization

WHAT: Embeds agent memory records and links them into a typed knowledge graph
WHERE: neurograph/runtime/memory/ - runtime memory subsystem
WHO: Agents and UI hosts storing and querying memories
TIME: One forward pass per embedding, O(nodes) per graph insertion

Components:
- EmbeddingService: text/memory -> unit vector, per-type networks, bounded cache
- KnowledgeGraph: node insertion, relationship discovery, similarity search
- MemorySequenceAnalyzer: temporal pattern vectors from memory streams
- MemoryGraphEngine: async facade with reader-writer locking and telemetry

Boundary Notes:
- Records arrive validated; this package never sanitizes input
- Persistence belongs to the storage collaborator (see serialization)
"""

from .models import (  # noqa: F401
    EmbeddingStats,
    GraphEdge,
    GraphNode,
    GraphStatistics,
    GraphView,
    MemoryPatternAnalysis,
    MemoryRecord,
    MemoryType,
    RelationshipType,
    ViewEdge,
    ViewNode,
)
from .similarity import (  # noqa: F401
    cosine_similarity,
    euclidean_distance,
    k_means_clustering,
    manhattan_distance,
)
from .serialization import decode_embedding, encode_embedding  # noqa: F401
from .sequence_model import MemorySequenceAnalyzer, MemorySequenceModel, SequenceModelType  # noqa: F401
from .embeddings import EmbeddingService  # noqa: F401
from .backends import BackendKind, EmbeddingBackend  # noqa: F401
from .knowledge_graph import KnowledgeGraph  # noqa: F401
from .locks import ReadWriteLock  # noqa: F401
from .telemetry import (  # noqa: F401
    LoggingTelemetryClient,
    NoOpTelemetryClient,
    RecordingTelemetryClient,
    TelemetryClient,
    TelemetrySpan,
)
from .engine import MemoryGraphEngine  # noqa: F401

__all__ = [
    "BackendKind",
    "EmbeddingBackend",
    "EmbeddingService",
    "EmbeddingStats",
    "GraphEdge",
    "GraphNode",
    "GraphStatistics",
    "GraphView",
    "KnowledgeGraph",
    "LoggingTelemetryClient",
    "MemoryGraphEngine",
    "MemoryPatternAnalysis",
    "MemoryRecord",
    "MemorySequenceAnalyzer",
    "MemorySequenceModel",
    "MemoryType",
    "NoOpTelemetryClient",
    "ReadWriteLock",
    "RecordingTelemetryClient",
    "RelationshipType",
    "SequenceModelType",
    "TelemetryClient",
    "TelemetrySpan",
    "ViewEdge",
    "ViewNode",
    "cosine_similarity",
    "decode_embedding",
    "encode_embedding",
    "euclidean_distance",
    "k_means_clustering",
    "manhattan_distance",
]
