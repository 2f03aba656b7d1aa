"""
Memory Graph Models - Type-safe records, nodes, edges and views

WHAT: Pydantic models for agent memory records and the knowledge graph
WHERE: neurograph/runtime/memory/models.py - data layer
WHO: Embedding service, knowledge graph engine, async engine, CLI
TIME: Model validation <1ms

Memory records arrive from an upstream collaborator that has already
validated and sanitized them; this module only fixes their shape. Graph
nodes and edges are produced by the knowledge graph engine and carry the
embeddings it computed.

Boundary Notes:
- Edge weight, confidence and temporal strength are constrained to [0, 1]
- Records are consumed read-only by the graph engine
- Views are read-only projections, safe to serialize to a UI
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MemoryType(str, Enum):
    """Kind of agent memory; the value is the literal tag used on the wire."""

    CONVERSATION = "Conversation"
    TASK = "Task"
    LEARNING = "Learning"
    CONTEXT = "Context"
    TOOL = "Tool"
    ERROR = "Error"
    SUCCESS = "Success"
    PATTERN = "Pattern"

    @classmethod
    def parse(cls, value: Any) -> "MemoryType":
        """Resolve a tag case-insensitively (``"task"`` -> ``MemoryType.TASK``)."""
        if isinstance(value, MemoryType):
            return value
        lowered = str(value).strip().lower()
        for member in cls:
            if member.value.lower() == lowered or member.name.lower() == lowered:
                return member
        raise ValueError(f"Unknown memory type: {value!r}")


class RelationshipType(str, Enum):
    """Edge label assigned by relationship classification."""

    SEMANTIC_SIMILARITY = "SemanticSimilarity"
    TEMPORAL_SEQUENCE = "TemporalSequence"
    CAUSAL_RELATION = "CausalRelation"
    AGENT_COLLABORATION = "AgentCollaboration"
    CONTEXT_SHARING = "ContextSharing"
    PATTERN_SIMILARITY = "PatternSimilarity"
    TOOL_USAGE = "ToolUsage"
    ERROR_SOLUTION = "ErrorSolution"


# Fixed one-hot slot per relationship type
RELATIONSHIP_INDEX: Dict[RelationshipType, int] = {
    RelationshipType.SEMANTIC_SIMILARITY: 0,
    RelationshipType.TEMPORAL_SEQUENCE: 1,
    RelationshipType.CAUSAL_RELATION: 2,
    RelationshipType.AGENT_COLLABORATION: 3,
    RelationshipType.CONTEXT_SHARING: 4,
    RelationshipType.PATTERN_SIMILARITY: 5,
    RelationshipType.TOOL_USAGE: 6,
    RelationshipType.ERROR_SOLUTION: 7,
}


class MemoryRecord(BaseModel):
    """
    A single memory produced by an agent.

    Examples:
    - Task: "Optimize database queries for the reporting service"
    - Error: "Connection pool exhausted under load"
    - Success: "Raised pool size; p99 latency back under 200ms"
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    agent_id: str
    memory_type: MemoryType
    content: str
    metadata: Dict[str, str] = Field(default_factory=dict)
    tags: List[str] = Field(default_factory=list)
    embedding: Optional[List[float]] = None
    relevance_score: float = 1.0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    access_count: int = Field(default=0, ge=0)

    @field_validator("memory_type", mode="before")
    @classmethod
    def _coerce_memory_type(cls, value: Any) -> MemoryType:
        return MemoryType.parse(value)

    @field_validator("created_at", "updated_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # naive timestamps cannot be compared with the graph's UTC clock
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_validator("metadata", mode="before")
    @classmethod
    def _stringify_metadata(cls, value: Any) -> Dict[str, str]:
        if value is None:
            return {}
        return {str(k): str(v) for k, v in dict(value).items()}

    @classmethod
    def create(
        cls,
        agent_id: str,
        memory_type: MemoryType | str,
        content: str,
        *,
        metadata: Optional[Dict[str, str]] = None,
        tags: Optional[List[str]] = None,
    ) -> "MemoryRecord":
        """New record with a fresh id and the current timestamp."""
        now = utcnow()
        return cls(
            agent_id=agent_id,
            memory_type=memory_type,
            content=content,
            metadata=metadata or {},
            tags=tags or [],
            created_at=now,
            updated_at=now,
        )


class GraphNode(BaseModel):
    """Knowledge graph node wrapping one ingested memory."""

    id: str
    node_type: str = "memory"
    name: str
    content: str
    memory_type: Optional[MemoryType] = None
    agent_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    last_accessed: datetime = Field(default_factory=utcnow)
    access_count: int = 0
    embedding: List[float] = Field(default_factory=list)
    properties: Dict[str, str] = Field(default_factory=dict)
    position: Optional[Tuple[float, float]] = None


class GraphEdge(BaseModel):
    """Directed, typed and scored relationship between two nodes."""

    id: str
    from_node: str
    to_node: str
    relationship_type: RelationshipType
    weight: float = Field(ge=0.0, le=1.0)
    confidence: float = Field(ge=0.0, le=1.0)
    created_at: datetime = Field(default_factory=utcnow)
    last_updated: datetime = Field(default_factory=utcnow)
    temporal_strength: float = Field(default=1.0, ge=0.0, le=1.0)
    embedding: List[float] = Field(default_factory=list)
    properties: Dict[str, str] = Field(default_factory=dict)


class ViewNode(BaseModel):
    id: str
    node_type: str
    name: str
    properties: Dict[str, str] = Field(default_factory=dict)
    position: Optional[Tuple[float, float]] = None


class ViewEdge(BaseModel):
    id: str
    from_node: str
    to_node: str
    relationship_type: RelationshipType
    weight: float
    properties: Dict[str, str] = Field(default_factory=dict)


class GraphView(BaseModel):
    """Projection of the graph for display, optionally filtered by agent."""

    nodes: List[ViewNode] = Field(default_factory=list)
    edges: List[ViewEdge] = Field(default_factory=list)
    metadata: Dict[str, str] = Field(default_factory=dict)


class GraphStatistics(BaseModel):
    """Aggregate counts over the whole graph."""

    node_count: int
    edge_count: int
    avg_degree: float
    relationship_type_counts: Dict[str, int] = Field(default_factory=dict)
    cached_node_embeddings: int = 0
    cached_edge_embeddings: int = 0


class EmbeddingStats(BaseModel):
    cache_size: int
    cache_limit: int
    embedding_dimension: int
    specialized_networks: int


class MemoryPatternAnalysis(BaseModel):
    """Temporal pattern vectors for a sequence of memories."""

    overall_pattern: List[float] = Field(default_factory=list)
    type_patterns: Dict[MemoryType, List[float]] = Field(default_factory=dict)
    sequence_length: int = 0
    time_span_seconds: float = 0.0


__all__ = [
    "EmbeddingStats",
    "GraphEdge",
    "GraphNode",
    "GraphStatistics",
    "GraphView",
    "MemoryPatternAnalysis",
    "MemoryRecord",
    "MemoryType",
    "RELATIONSHIP_INDEX",
    "RelationshipType",
    "ViewEdge",
    "ViewNode",
    "utcnow",
]
