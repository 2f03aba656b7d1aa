"""
Neural Knowledge Graph - Auto-linked graph of embedded memories

WHAT: Node/edge store with relationship discovery, classification and queries
WHERE: neurograph/runtime/memory/knowledge_graph.py - graph layer
WHO: MemoryGraphEngine, build_memory_graph CLI
TIME: O(existing nodes) per insertion (full scan of the temporal window)

Every ingested memory becomes one node. Insertion embeds the memory, scans
the other nodes created inside the rolling temporal window, and links each
candidate whose cosine similarity reaches the threshold with a typed edge.
Edge types come from a fixed, first-match-wins rule list; edge embeddings
come from an untrained edge network fed ``[from || to || one_hot(type)]``.

Graph invariants (checked by ``check_consistency``):
- every edge endpoint exists in the node map
- every node has forward and reverse adjacency entries
- adjacency lists mirror the edge map exactly

Boundary Notes:
- Not thread-safe on its own; MemoryGraphEngine serializes writers
- Insertion is atomic: a discovery failure rolls the node back
- Similarity search and prediction only see cached node embeddings
- The full scan per insertion is the scalability limit; larger graphs need
  an approximate nearest-neighbour index
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from ...config import GraphConfig
from ...errors import ConfigurationError, NeuroGraphError, NotFoundError
from ...nn.activations import ActivationFunction
from ...nn.network import DTYPE, NetworkBuilder, NeuralNetwork, SeedLike, make_rng
from .embeddings import EmbeddingService
from .models import (
    RELATIONSHIP_INDEX,
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
    utcnow,
)
from .sequence_model import MemorySequenceAnalyzer
from .similarity import cosine_similarity

logger = logging.getLogger(__name__)

SEMANTIC_STRONG = 0.9
CONTEXT_SHARING = 0.8
TEMPORAL_SEQUENCE_SECONDS = 3600
NUM_RELATIONSHIP_TYPES = len(RELATIONSHIP_INDEX)

ANALYZER_INPUT = 256
ANALYZER_HIDDEN = 128


@dataclass
class GraphStructure:
    """Node and edge maps plus forward/reverse adjacency."""

    nodes: Dict[str, GraphNode] = field(default_factory=dict)
    edges: Dict[str, GraphEdge] = field(default_factory=dict)
    adjacency: Dict[str, List[str]] = field(default_factory=dict)
    reverse_adjacency: Dict[str, List[str]] = field(default_factory=dict)


def node_id_for(memory: MemoryRecord) -> str:
    return f"memory_{memory.id}"


def edge_id_for(from_node: str, to_node: str) -> str:
    return f"edge_{from_node}_{to_node}"


def encode_relationship_type(relationship_type: RelationshipType) -> List[float]:
    """One-hot vector over the eight relationship types."""
    features = [0.0] * NUM_RELATIONSHIP_TYPES
    features[RELATIONSHIP_INDEX[RelationshipType(relationship_type)]] = 1.0
    return features


def calculate_temporal_strength(created_at: datetime, now: datetime, window_hours: float) -> float:
    """Linear decay from 1.0 at creation to 0.0 after ``window_hours``."""
    hours = (now - created_at).total_seconds() / 3600.0
    return max(0.0, min(1.0, 1.0 - hours / window_hours))


class KnowledgeGraph:
    """Knowledge graph of agent memories with neural edge embeddings."""

    def __init__(
        self,
        config: Optional[GraphConfig] = None,
        embedding_service: Optional[EmbeddingService] = None,
        *,
        seed: SeedLike = None,
    ) -> None:
        self.config = (config or GraphConfig()).validate()
        self._rng = make_rng(seed)
        self.embedding_service = embedding_service or EmbeddingService(seed=self._rng)
        cfg = self.config
        dim = self.embedding_service.embedding_dim

        self.edge_network: NeuralNetwork = (
            NetworkBuilder(seed=self._rng)
            .input_layer(dim * 2 + NUM_RELATIONSHIP_TYPES)
            .hidden_layer_with_activation(128, ActivationFunction.TANH)
            .hidden_layer_with_activation(64, ActivationFunction.RELU)
            .output_layer(cfg.edge_embedding_dim)
            .learning_rate(cfg.learning_rate)
            .build()
        )
        self.attention_network: NeuralNetwork = (
            NetworkBuilder(seed=self._rng)
            .input_layer(dim + cfg.edge_embedding_dim)
            .hidden_layer_with_activation(64, ActivationFunction.LEAKY_RELU)
            .hidden_layer_with_activation(32, ActivationFunction.SIGMOID)
            .output_layer(cfg.attention_heads)
            .learning_rate(cfg.learning_rate * 0.5)
            .build()
        )
        self._sequence_analyzer: Optional[MemorySequenceAnalyzer] = None

        self.graph = GraphStructure()
        self.node_embeddings: Dict[str, List[float]] = {}
        self.edge_embeddings: Dict[str, List[float]] = {}
        self._memories: Dict[str, MemoryRecord] = {}
        logger.info(
            f"Knowledge graph ready: embedding_dim={dim} edge_dim={cfg.edge_embedding_dim} "
            f"threshold={cfg.similarity_threshold} window={cfg.temporal_window_hours}h"
        )

    @property
    def sequence_analyzer(self) -> MemorySequenceAnalyzer:
        if self._sequence_analyzer is None:
            self._sequence_analyzer = MemorySequenceAnalyzer(
                ANALYZER_INPUT, ANALYZER_HIDDEN, self.config.node_embedding_dim, seed=self._rng
            )
        return self._sequence_analyzer

    # ------------------ ingestion ------------------
    def add_memory_node(self, memory: MemoryRecord) -> str:
        """Insert ``memory`` as a node and link it; returns the node id."""
        node_id = node_id_for(memory)
        if node_id in self.graph.nodes:
            raise ConfigurationError(f"Memory {memory.id} is already in the graph as {node_id}")

        embedding = self.embedding_service.embed_memory(memory)
        node = GraphNode(
            id=node_id,
            node_type="memory",
            name=f"Memory: {memory.memory_type.value}",
            content=memory.content,
            memory_type=memory.memory_type,
            agent_id=memory.agent_id,
            created_at=memory.created_at,
            last_accessed=utcnow(),
            access_count=memory.access_count,
            embedding=embedding,
            properties=dict(memory.metadata),
        )

        self.graph.nodes[node_id] = node
        self.graph.adjacency.setdefault(node_id, [])
        self.graph.reverse_adjacency.setdefault(node_id, [])
        self._memories[node_id] = memory.model_copy(deep=True)

        try:
            created = self.discover_relationships(node_id)
        except Exception:
            logger.warning(f"Relationship discovery failed for {node_id}; rolling back insertion")
            self._rollback_node(node_id)
            raise

        # cached only once linked, so a rollback never has evictions to undo
        self._cache_node_embedding(node_id, embedding)

        logger.info(f"Added node {node_id} with {len(created)} discovered edges")
        return node_id

    def _cache_node_embedding(self, node_id: str, embedding: List[float]) -> None:
        self.node_embeddings[node_id] = embedding
        if len(self.node_embeddings) > self.config.cache_size_limit:
            # dicts keep insertion order, so the first keys are the oldest
            evict = max(1, len(self.node_embeddings) // 4)
            for key in list(self.node_embeddings)[:evict]:
                del self.node_embeddings[key]
            logger.warning(f"Node embedding cache over limit; evicted {evict} oldest entries")

    def _rollback_node(self, node_id: str) -> None:
        for target in self.graph.adjacency.get(node_id, []):
            edge_id = edge_id_for(node_id, target)
            self.graph.edges.pop(edge_id, None)
            self.edge_embeddings.pop(edge_id, None)
            incoming = self.graph.reverse_adjacency.get(target, [])
            if node_id in incoming:
                incoming.remove(node_id)
        self.graph.nodes.pop(node_id, None)
        self.graph.adjacency.pop(node_id, None)
        self.graph.reverse_adjacency.pop(node_id, None)
        self.node_embeddings.pop(node_id, None)
        self._memories.pop(node_id, None)

    def discover_relationships(self, node_id: str) -> List[str]:
        """Link ``node_id`` to every recent node above the similarity threshold."""
        current = self.get_node(node_id)
        current_embedding = current.embedding
        threshold = utcnow() - timedelta(hours=self.config.temporal_window_hours)

        candidates: List[Tuple[str, RelationshipType, float]] = []
        for other_id, other in self.graph.nodes.items():
            if other_id == node_id or other.created_at < threshold:
                continue
            if not other.embedding:
                continue
            similarity = cosine_similarity(current_embedding, other.embedding)
            if similarity >= self.config.similarity_threshold:
                relationship = self.classify_relationship(current, other, similarity)
                candidates.append((other_id, relationship, similarity))

        created = []
        for other_id, relationship, similarity in candidates:
            created.append(self.create_neural_edge(node_id, other_id, relationship, similarity))
            logger.debug(f"Linked {node_id} -> {other_id} as {relationship.value} ({similarity:.3f})")
        return created

    def classify_relationship(self, a: GraphNode, b: GraphNode, similarity: float) -> RelationshipType:
        """First matching rule wins."""
        if similarity > SEMANTIC_STRONG:
            return RelationshipType.SEMANTIC_SIMILARITY

        if a.agent_id is not None and a.agent_id == b.agent_id:
            return RelationshipType.AGENT_COLLABORATION

        # only reachable when both agent ids are missing
        if a.agent_id == b.agent_id:
            if abs((b.created_at - a.created_at).total_seconds()) < TEMPORAL_SEQUENCE_SECONDS:
                return RelationshipType.TEMPORAL_SEQUENCE

        if a.memory_type is not None and b.memory_type is not None:
            pair = {a.memory_type, b.memory_type}
            if pair == {MemoryType.ERROR, MemoryType.SUCCESS}:
                return RelationshipType.ERROR_SOLUTION
            if MemoryType.TOOL in pair:
                return RelationshipType.TOOL_USAGE
            if MemoryType.PATTERN in pair:
                return RelationshipType.PATTERN_SIMILARITY

        if self.analyze_context_similarity(a.content, b.content) > CONTEXT_SHARING:
            return RelationshipType.CONTEXT_SHARING

        return RelationshipType.SEMANTIC_SIMILARITY

    def analyze_context_similarity(self, content_a: str, content_b: str) -> float:
        """Similarity of the raw contents under the untyped general network."""
        first = self.embedding_service.embed_text(content_a, None)
        second = self.embedding_service.embed_text(content_b, None)
        return cosine_similarity(first, second)

    def _edge_features(self, from_embedding: Sequence[float], to_embedding: Sequence[float], one_hot: Sequence[float]) -> np.ndarray:
        return np.concatenate(
            [
                np.asarray(from_embedding, dtype=DTYPE),
                np.asarray(to_embedding, dtype=DTYPE),
                np.asarray(one_hot, dtype=DTYPE),
            ]
        )

    def create_neural_edge(
        self,
        from_node: str,
        to_node: str,
        relationship_type: RelationshipType,
        confidence: float,
    ) -> str:
        """Create and store an edge; returns its id."""
        source = self.get_node(from_node)
        target = self.get_node(to_node)
        edge_id = edge_id_for(from_node, to_node)

        features = self._edge_features(
            source.embedding, target.embedding, encode_relationship_type(relationship_type)
        )
        edge_embedding = self.edge_network.forward(features).tolist()

        now = utcnow()
        score = max(0.0, min(1.0, float(confidence)))
        edge = GraphEdge(
            id=edge_id,
            from_node=from_node,
            to_node=to_node,
            relationship_type=relationship_type,
            weight=score,
            confidence=score,
            created_at=now,
            last_updated=now,
            temporal_strength=self.calculate_temporal_strength(now, now),
            embedding=edge_embedding,
        )

        self.graph.edges[edge_id] = edge
        self.graph.adjacency.setdefault(from_node, []).append(to_node)
        self.graph.reverse_adjacency.setdefault(to_node, []).append(from_node)
        self.edge_embeddings[edge_id] = edge_embedding
        return edge_id

    def calculate_temporal_strength(self, created_at: datetime, now: datetime) -> float:
        return calculate_temporal_strength(created_at, now, self.config.temporal_window_hours)

    def encode_relationship_type(self, relationship_type: RelationshipType) -> List[float]:
        return encode_relationship_type(relationship_type)

    # ------------------ lookups ------------------
    def get_node(self, node_id: str) -> GraphNode:
        try:
            return self.graph.nodes[node_id]
        except KeyError:
            raise NotFoundError(f"Node not found: {node_id}") from None

    def get_edge(self, edge_id: str) -> GraphEdge:
        try:
            return self.graph.edges[edge_id]
        except KeyError:
            raise NotFoundError(f"Edge not found: {edge_id}") from None

    def neighbors(self, node_id: str) -> List[str]:
        self.get_node(node_id)
        return list(self.graph.adjacency.get(node_id, []))

    def predecessors(self, node_id: str) -> List[str]:
        self.get_node(node_id)
        return list(self.graph.reverse_adjacency.get(node_id, []))

    def __len__(self) -> int:
        return len(self.graph.nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.graph.nodes

    # ------------------ queries ------------------
    def find_similar_memories(self, query: MemoryRecord, top_k: int) -> List[Tuple[str, float]]:
        """Cached nodes ranked by similarity to ``query``, at most ``top_k``."""
        query_embedding = self.embedding_service.embed_memory(query)
        scored = [
            (node_id, cosine_similarity(query_embedding, embedding))
            for node_id, embedding in self.node_embeddings.items()
        ]
        scored.sort(key=lambda item: item[1], reverse=True)
        return scored[: max(top_k, 0)]

    def predict_relationships(self, from_node_id: str, candidate_ids: Sequence[str]) -> List[Tuple[str, float]]:
        """Heuristic link strength from the untrained edge and attention networks.

        Candidates without a cached embedding are skipped.
        """
        from_embedding = self.node_embeddings.get(from_node_id)
        if from_embedding is None:
            raise NotFoundError(f"From node not found: {from_node_id}")

        neutral = [0.0] * NUM_RELATIONSHIP_TYPES
        from_vec = np.asarray(from_embedding, dtype=DTYPE)
        predictions = []
        for candidate_id in candidate_ids:
            to_embedding = self.node_embeddings.get(candidate_id)
            if to_embedding is None:
                continue
            edge_embedding = self.edge_network.forward(self._edge_features(from_embedding, to_embedding, neutral))
            scores = self.attention_network.forward(np.concatenate([from_vec, edge_embedding]))
            predictions.append((candidate_id, float(np.mean(scores))))

        predictions.sort(key=lambda item: item[1], reverse=True)
        return predictions

    def get_neural_graph_view(self, agent_id: Optional[str] = None) -> GraphView:
        nodes = [
            ViewNode(
                id=node_id,
                node_type=node.node_type,
                name=node.name,
                properties=dict(node.properties),
                position=node.position,
            )
            for node_id, node in self.graph.nodes.items()
            if agent_id is None or node.agent_id == agent_id
        ]
        visible = {node.id for node in nodes}
        edges = [
            ViewEdge(
                id=edge_id,
                from_node=edge.from_node,
                to_node=edge.to_node,
                relationship_type=edge.relationship_type,
                weight=edge.weight,
                properties=dict(edge.properties),
            )
            for edge_id, edge in self.graph.edges.items()
            if edge.from_node in visible and edge.to_node in visible
        ]
        metadata = {
            "total_nodes": str(len(self.graph.nodes)),
            "total_edges": str(len(self.graph.edges)),
            "visible_nodes": str(len(nodes)),
            "visible_edges": str(len(edges)),
            "neural_enhanced": "true",
        }
        return GraphView(nodes=nodes, edges=edges, metadata=metadata)

    def get_statistics(self) -> GraphStatistics:
        node_count = len(self.graph.nodes)
        degree_total = sum(len(targets) for targets in self.graph.adjacency.values())
        counts: Dict[str, int] = {}
        for edge in self.graph.edges.values():
            key = edge.relationship_type.value
            counts[key] = counts.get(key, 0) + 1
        return GraphStatistics(
            node_count=node_count,
            edge_count=len(self.graph.edges),
            avg_degree=degree_total / node_count if node_count else 0.0,
            relationship_type_counts=counts,
            cached_node_embeddings=len(self.node_embeddings),
            cached_edge_embeddings=len(self.edge_embeddings),
        )

    def analyze_temporal_patterns(self, agent_id: Optional[str] = None) -> MemoryPatternAnalysis:
        memories = [
            memory for memory in self._memories.values() if agent_id is None or memory.agent_id == agent_id
        ]
        return self.sequence_analyzer.detect_patterns(memories)

    def check_consistency(self) -> None:
        """Raise ``NeuroGraphError`` describing the first broken invariant."""
        graph = self.graph
        for node_id in graph.nodes:
            if node_id not in graph.adjacency or node_id not in graph.reverse_adjacency:
                raise NeuroGraphError(f"Node {node_id} is missing an adjacency entry")

        expected_forward: Dict[str, List[str]] = {node_id: [] for node_id in graph.nodes}
        expected_reverse: Dict[str, List[str]] = {node_id: [] for node_id in graph.nodes}
        for edge_id, edge in graph.edges.items():
            if edge.from_node not in graph.nodes or edge.to_node not in graph.nodes:
                raise NeuroGraphError(f"Edge {edge_id} references a missing node")
            if not (0.0 <= edge.weight <= 1.0 and 0.0 <= edge.confidence <= 1.0):
                raise NeuroGraphError(f"Edge {edge_id} has out-of-range weight or confidence")
            expected_forward[edge.from_node].append(edge.to_node)
            expected_reverse[edge.to_node].append(edge.from_node)

        for node_id in graph.nodes:
            if sorted(graph.adjacency[node_id]) != sorted(expected_forward[node_id]):
                raise NeuroGraphError(f"Forward adjacency of {node_id} disagrees with the edge map")
            if sorted(graph.reverse_adjacency[node_id]) != sorted(expected_reverse[node_id]):
                raise NeuroGraphError(f"Reverse adjacency of {node_id} disagrees with the edge map")
        if set(graph.adjacency) - set(graph.nodes) or set(graph.reverse_adjacency) - set(graph.nodes):
            raise NeuroGraphError("Adjacency entries exist for unknown nodes")


__all__ = [
    "GraphStructure",
    "KnowledgeGraph",
    "calculate_temporal_strength",
    "edge_id_for",
    "encode_relationship_type",
    "node_id_for",
]
