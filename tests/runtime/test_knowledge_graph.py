from datetime import timedelta

import pytest

from neurograph.config import EmbeddingConfig, GraphConfig
from neurograph.errors import ConfigurationError, NotFoundError
from neurograph.runtime.memory.embeddings import EmbeddingService
from neurograph.runtime.memory.knowledge_graph import (
    KnowledgeGraph,
    calculate_temporal_strength,
    encode_relationship_type,
)
from neurograph.runtime.memory.models import (
    GraphNode,
    MemoryRecord,
    MemoryType,
    RelationshipType,
    utcnow,
)

ALLOWED_SCENARIO_TYPES = {
    RelationshipType.SEMANTIC_SIMILARITY,
    RelationshipType.AGENT_COLLABORATION,
    RelationshipType.TEMPORAL_SEQUENCE,
}


def _graph(seed=0, **overrides):
    values = dict(node_embedding_dim=16, edge_embedding_dim=8, similarity_threshold=-1.0)
    values.update(overrides)
    service = EmbeddingService(EmbeddingConfig(embedding_dim=16, max_text_length=48), seed=seed)
    return KnowledgeGraph(GraphConfig(**values), service, seed=seed)


def _memory(agent, memory_type, content, **kwargs):
    return MemoryRecord(agent_id=agent, memory_type=memory_type, content=content, **kwargs)


def _node(node_id, agent=None, memory_type=None, content="", minutes=0):
    return GraphNode(
        id=node_id,
        name=node_id,
        content=content,
        agent_id=agent,
        memory_type=memory_type,
        created_at=utcnow() + timedelta(minutes=minutes),
    )


def test_default_config_scenario_discovers_edges():
    graph = KnowledgeGraph(seed=0)
    now = utcnow()
    memories = [
        _memory("agent-1", MemoryType.TASK, "Database optimization for slow queries", created_at=now),
        _memory("agent-1", MemoryType.TASK, "Database optimization with better indexes", created_at=now),
        _memory("agent-1", MemoryType.LEARNING, "Machine learning model training basics", created_at=now),
    ]
    for memory in memories:
        graph.add_memory_node(memory)

    stats = graph.get_statistics()
    assert stats.node_count == 3
    assert stats.edge_count >= 1
    for edge in graph.graph.edges.values():
        assert edge.relationship_type in ALLOWED_SCENARIO_TYPES
    graph.check_consistency()


def test_node_fields_and_ids():
    graph = _graph()
    memory = _memory("agent-1", MemoryType.ERROR, "Timeout talking to the cache", metadata={"svc": "api"})
    node_id = graph.add_memory_node(memory)
    assert node_id == f"memory_{memory.id}"
    node = graph.get_node(node_id)
    assert node.name == "Memory: Error"
    assert node.node_type == "memory"
    assert node.properties == {"svc": "api"}
    assert len(node.embedding) == 16
    assert graph.neighbors(node_id) == []
    assert graph.predecessors(node_id) == []


def test_edges_link_new_node_to_existing_nodes():
    graph = _graph()
    first = graph.add_memory_node(_memory("a", MemoryType.TASK, "one"))
    second = graph.add_memory_node(_memory("b", MemoryType.TASK, "two"))

    edge = graph.get_edge(f"edge_{second}_{first}")
    assert edge.from_node == second and edge.to_node == first
    assert 0.0 <= edge.weight <= 1.0
    assert edge.weight == edge.confidence
    assert edge.temporal_strength == 1.0
    assert len(edge.embedding) == 8
    assert graph.neighbors(second) == [first]
    assert graph.predecessors(first) == [second]


def test_duplicate_memory_is_rejected():
    graph = _graph()
    memory = _memory("a", MemoryType.TASK, "once")
    graph.add_memory_node(memory)
    with pytest.raises(ConfigurationError):
        graph.add_memory_node(memory)


def test_nodes_outside_temporal_window_are_not_linked():
    graph = _graph()
    old = graph.add_memory_node(
        _memory("a", MemoryType.TASK, "old", created_at=utcnow() - timedelta(hours=48))
    )
    new = graph.add_memory_node(_memory("a", MemoryType.TASK, "new"))
    assert old not in graph.neighbors(new)
    assert graph.get_statistics().edge_count == 0


def test_high_threshold_creates_no_edges():
    graph = _graph(similarity_threshold=1.0)
    graph.add_memory_node(_memory("a", MemoryType.TASK, "alpha"))
    graph.add_memory_node(_memory("a", MemoryType.TOOL, "beta"))
    assert graph.get_statistics().edge_count == 0


def test_consistency_after_many_insertions():
    graph = _graph(seed=3)
    types = list(MemoryType)
    for idx in range(12):
        graph.add_memory_node(_memory(f"agent-{idx % 3}", types[idx % len(types)], f"memory number {idx}"))
    graph.check_consistency()
    for edge in graph.graph.edges.values():
        assert edge.from_node in graph.graph.nodes
        assert edge.to_node in graph.graph.nodes
        assert 0.0 <= edge.weight <= 1.0
        assert 0.0 <= edge.confidence <= 1.0


def test_discovery_failure_rolls_back_insertion(monkeypatch):
    graph = _graph()
    graph.add_memory_node(_memory("a", MemoryType.TASK, "one"))
    graph.add_memory_node(_memory("a", MemoryType.TASK, "two"))
    edges_before = set(graph.graph.edges)

    real_create = graph.create_neural_edge
    calls = {"n": 0}

    def flaky_create(*args, **kwargs):
        calls["n"] += 1
        if calls["n"] == 2:
            raise RuntimeError("edge network exploded")
        return real_create(*args, **kwargs)

    monkeypatch.setattr(graph, "create_neural_edge", flaky_create)
    memory = _memory("a", MemoryType.TASK, "three")
    with pytest.raises(RuntimeError):
        graph.add_memory_node(memory)

    assert f"memory_{memory.id}" not in graph
    assert len(graph) == 2
    assert set(graph.graph.edges) == edges_before
    assert f"memory_{memory.id}" not in graph.node_embeddings
    graph.check_consistency()


def test_failed_insertion_keeps_full_node_cache(monkeypatch):
    graph = _graph(cache_size_limit=4)
    ids = [graph.add_memory_node(_memory("a", MemoryType.TASK, f"task {i}")) for i in range(4)]
    assert list(graph.node_embeddings) == ids

    def broken_create(*args, **kwargs):
        raise RuntimeError("edge network exploded")

    monkeypatch.setattr(graph, "create_neural_edge", broken_create)
    with pytest.raises(RuntimeError):
        graph.add_memory_node(_memory("a", MemoryType.TASK, "task 4"))

    assert list(graph.node_embeddings) == ids
    query = _memory("a", MemoryType.TASK, "q")
    assert {node_id for node_id, _ in graph.find_similar_memories(query, 10)} == set(ids)


def test_classification_precedence(monkeypatch):
    graph = _graph()
    monkeypatch.setattr(graph, "analyze_context_similarity", lambda a, b: 0.0)
    classify = graph.classify_relationship

    same_agent = (_node("a", "x", MemoryType.ERROR), _node("b", "x", MemoryType.SUCCESS))
    assert classify(*same_agent, 0.95) is RelationshipType.SEMANTIC_SIMILARITY
    assert classify(*same_agent, 0.75) is RelationshipType.AGENT_COLLABORATION

    no_agent = (_node("a"), _node("b", minutes=30))
    assert classify(*no_agent, 0.75) is RelationshipType.TEMPORAL_SEQUENCE

    far_apart = (_node("a", None, MemoryType.ERROR), _node("b", None, MemoryType.SUCCESS, minutes=120))
    assert classify(*far_apart, 0.75) is RelationshipType.ERROR_SOLUTION
    assert classify(*reversed(far_apart), 0.75) is RelationshipType.ERROR_SOLUTION

    tool = (_node("a", "x", MemoryType.TOOL), _node("b", "y", MemoryType.PATTERN))
    assert classify(*tool, 0.75) is RelationshipType.TOOL_USAGE

    pattern = (_node("a", "x", MemoryType.TASK), _node("b", "y", MemoryType.PATTERN))
    assert classify(*pattern, 0.75) is RelationshipType.PATTERN_SIMILARITY

    plain = (_node("a", "x", MemoryType.TASK), _node("b", "y", MemoryType.LEARNING))
    assert classify(*plain, 0.75) is RelationshipType.SEMANTIC_SIMILARITY

    monkeypatch.setattr(graph, "analyze_context_similarity", lambda a, b: 0.85)
    assert classify(*plain, 0.75) is RelationshipType.CONTEXT_SHARING


def test_relationship_one_hot_order():
    assert encode_relationship_type(RelationshipType.SEMANTIC_SIMILARITY)[0] == 1.0
    assert encode_relationship_type(RelationshipType.ERROR_SOLUTION) == [0.0] * 7 + [1.0]
    for rel in RelationshipType:
        assert sum(encode_relationship_type(rel)) == 1.0


def test_temporal_strength_decay():
    now = utcnow()
    assert calculate_temporal_strength(now, now, 24) == 1.0
    assert calculate_temporal_strength(now - timedelta(hours=12), now, 24) == pytest.approx(0.5)
    assert calculate_temporal_strength(now - timedelta(hours=48), now, 24) == 0.0


def test_find_similar_sorted_and_bounded():
    graph = _graph()
    for idx in range(6):
        graph.add_memory_node(_memory("a", MemoryType.CONTEXT, f"context entry {idx}"))
    query = _memory("a", MemoryType.CONTEXT, "context entry 3")
    results = graph.find_similar_memories(query, 4)
    assert len(results) == 4
    scores = [score for _, score in results]
    assert scores == sorted(scores, reverse=True)
    assert len(graph.find_similar_memories(query, 50)) == 6


def test_node_embedding_cache_evicts_oldest():
    graph = _graph(cache_size_limit=4)
    ids = [graph.add_memory_node(_memory("a", MemoryType.TASK, f"task {i}")) for i in range(5)]
    assert list(graph.node_embeddings) == ids[1:]
    assert graph.get_statistics().cached_node_embeddings == 4
    assert ids[0] not in {node_id for node_id, _ in graph.find_similar_memories(_memory("a", MemoryType.TASK, "q"), 10)}


def test_predict_relationships():
    graph = _graph()
    ids = [graph.add_memory_node(_memory("a", MemoryType.TASK, f"task {i}")) for i in range(4)]
    predictions = graph.predict_relationships(ids[0], ids[1:] + ["memory_unknown"])
    assert [node_id for node_id, _ in predictions] != []
    assert {node_id for node_id, _ in predictions} == set(ids[1:])
    scores = [score for _, score in predictions]
    assert scores == sorted(scores, reverse=True)
    with pytest.raises(NotFoundError):
        graph.predict_relationships("memory_missing", ids)


def test_view_filters_by_agent():
    graph = _graph()
    graph.add_memory_node(_memory("alice", MemoryType.TASK, "a1"))
    graph.add_memory_node(_memory("bob", MemoryType.TASK, "b1"))
    graph.add_memory_node(_memory("alice", MemoryType.TASK, "a2"))

    full = graph.get_neural_graph_view()
    assert len(full.nodes) == 3
    assert full.metadata["neural_enhanced"] == "true"
    assert full.metadata["total_edges"] == str(len(graph.graph.edges))

    view = graph.get_neural_graph_view("alice")
    visible = {node.id for node in view.nodes}
    assert len(visible) == 2
    assert view.metadata["visible_nodes"] == "2"
    assert view.metadata["total_nodes"] == "3"
    for edge in view.edges:
        assert edge.from_node in visible and edge.to_node in visible


def test_statistics():
    graph = _graph()
    assert graph.get_statistics().avg_degree == 0.0
    for idx in range(3):
        graph.add_memory_node(_memory("a", MemoryType.TASK, f"t{idx}"))
    stats = graph.get_statistics()
    # threshold -1 links every new node to all previous ones
    assert stats.edge_count == 3
    assert stats.avg_degree == pytest.approx(1.0)
    assert sum(stats.relationship_type_counts.values()) == 3
    assert stats.cached_edge_embeddings == 3


def test_missing_lookups_raise_not_found():
    graph = _graph()
    with pytest.raises(NotFoundError):
        graph.get_node("nope")
    with pytest.raises(NotFoundError):
        graph.get_edge("nope")
    with pytest.raises(NotFoundError):
        graph.neighbors("nope")


def test_analyze_temporal_patterns_per_agent():
    graph = _graph()
    graph.add_memory_node(_memory("alice", MemoryType.TASK, "a1"))
    graph.add_memory_node(_memory("alice", MemoryType.CONVERSATION, "a2"))
    graph.add_memory_node(_memory("bob", MemoryType.TASK, "b1"))

    analysis = graph.analyze_temporal_patterns("alice")
    assert analysis.sequence_length == 2
    assert len(analysis.overall_pattern) == 16
    assert graph.analyze_temporal_patterns().sequence_length == 3
