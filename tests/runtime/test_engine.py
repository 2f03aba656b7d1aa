import asyncio
import threading

import pytest

from neurograph.config import EmbeddingConfig, EngineConfig, GraphConfig
from neurograph.errors import LockError, NotFoundError
from neurograph.runtime.memory import (
    MemoryGraphEngine,
    MemoryRecord,
    MemoryType,
    RecordingTelemetryClient,
)


def _engine(telemetry=None, **engine_overrides):
    return MemoryGraphEngine(
        EmbeddingConfig(embedding_dim=16, max_text_length=48, training_epochs=2),
        GraphConfig(node_embedding_dim=16, edge_embedding_dim=8, similarity_threshold=-1.0),
        EngineConfig(**engine_overrides),
        telemetry=telemetry,
        seed=0,
    )


def _records():
    return [
        MemoryRecord.create("agent-1", MemoryType.TASK, "Tune the database indexes"),
        MemoryRecord.create("agent-1", MemoryType.ERROR, "Query timed out", metadata={"db": "pg"}),
        MemoryRecord.create("agent-2", MemoryType.SUCCESS, "Query now runs in 20ms", tags=["perf"]),
    ]


def test_embed_text_is_unit_length_and_traced():
    telemetry = RecordingTelemetryClient()

    async def scenario():
        async with _engine(telemetry) as engine:
            return await engine.embed_text("hello world", MemoryType.CONTEXT)

    embedding = asyncio.run(scenario())
    assert len(embedding) == 16
    assert sum(v * v for v in embedding) == pytest.approx(1.0)
    assert telemetry.names() == ["neurograph.embed_text"]
    assert telemetry.spans[0][1]["success"] is True


def test_ingest_and_query_graph():
    telemetry = RecordingTelemetryClient()
    records = _records()

    async def scenario():
        async with _engine(telemetry) as engine:
            node_ids = await engine.rebuild(records)
            stats = await engine.get_statistics()
            similar = await engine.find_similar_memories(records[0], top_k=2)
            predictions = await engine.predict_relationships(node_ids[0], node_ids[1:])
            view = await engine.get_neural_graph_view("agent-1")
            patterns = await engine.analyze_temporal_patterns()
            return node_ids, stats, similar, predictions, view, patterns

    node_ids, stats, similar, predictions, view, patterns = asyncio.run(scenario())
    assert len(node_ids) == 3
    assert stats.node_count == 3
    assert stats.edge_count == 3
    assert len(similar) == 2
    assert {node_id for node_id, _ in predictions} == set(node_ids[1:])
    assert len(view.nodes) == 2
    assert patterns.sequence_length == 3
    assert "neurograph.rebuild" in telemetry.names()
    assert "neurograph.analyze_temporal_patterns" in telemetry.names()


def test_concurrent_inserts_keep_graph_consistent():
    records = [MemoryRecord.create("a", MemoryType.CONTEXT, f"note {i}") for i in range(8)]

    async def scenario():
        async with _engine(max_workers=4) as engine:
            await asyncio.gather(*(engine.add_memory_node(record) for record in records))
            return engine

    engine = asyncio.run(scenario())
    assert len(engine.graph) == 8
    assert len(engine.graph.graph.edges) == 8 * 7 // 2
    engine.graph.check_consistency()


def test_train_then_embed():
    records = _records()

    async def scenario():
        async with _engine() as engine:
            await engine.embed_text("warm the cache", MemoryType.TASK)
            errors = await engine.train_on_memories(records)
            stats = await engine.get_embedding_stats()
            embedding = await engine.embed_memory(records[0])
            return errors, stats, embedding

    errors, stats, embedding = asyncio.run(scenario())
    assert set(errors) == {"Task", "Error", "Success", "general"}
    assert stats.cache_size == 0
    assert len(embedding) == 16


def test_errors_propagate_and_are_traced():
    telemetry = RecordingTelemetryClient()

    async def scenario():
        async with _engine(telemetry) as engine:
            await engine.predict_relationships("memory_missing", [])

    with pytest.raises(NotFoundError):
        asyncio.run(scenario())
    name, attributes = telemetry.spans[-1]
    assert name == "neurograph.predict_relationships"
    assert attributes["success"] is False
    assert attributes["error"] == "NotFoundError"


def test_lock_timeout_surfaces_as_lock_error():
    engine = _engine(lock_timeout_seconds=0.05)

    async def scenario():
        return await engine.embed_text("blocked")

    try:
        engine._service_lock.acquire_write()
        with pytest.raises(LockError):
            asyncio.run(scenario())
    finally:
        engine._service_lock.release_write()
        engine.close()


def test_closed_engine_rejects_operations():
    engine = _engine()
    engine.close()
    engine.close()

    with pytest.raises(RuntimeError):
        asyncio.run(engine.embed_text("too late"))


def test_async_exit_shuts_down_off_the_loop_thread(monkeypatch):
    engine = _engine()
    real_shutdown = engine._executor.shutdown
    shutdown_threads = []

    def recording_shutdown(*args, **kwargs):
        shutdown_threads.append(threading.current_thread())
        return real_shutdown(*args, **kwargs)

    monkeypatch.setattr(engine._executor, "shutdown", recording_shutdown)

    async def scenario():
        async with engine:
            await engine.embed_text("hello")
        return threading.current_thread()

    loop_thread = asyncio.run(scenario())
    assert len(shutdown_threads) == 1
    assert shutdown_threads[0] is not loop_thread
    with pytest.raises(RuntimeError):
        asyncio.run(engine.embed_text("after exit"))
