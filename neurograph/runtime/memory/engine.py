"""
Memory Graph Engine - Async facade over embeddings and the knowledge graph

WHAT: Explicitly constructed service exposing async embed/train/graph operations
WHERE: neurograph/runtime/memory/engine.py - application-root service
WHO: Async hosts (UI command layer, agents) and the build_memory_graph CLI
TIME: Dominated by forward passes; executor hop adds ~50us per call

Numeric work is synchronous and CPU-bound, so every operation runs on a
private ThreadPoolExecutor and the event loop thread never blocks on it.
Shared state is guarded by two reader-writer locks, always acquired in the
order service -> graph:

- service lock: embedding networks (exclusive while training)
- graph lock: node/edge maps and embedding caches (exclusive on insertion)

Training holds the service lock exclusively for its whole duration, so a
concurrent ``embed_text`` sees either the old or the new weights, never a
mix. Operations are not cancellable; callers wanting bounded latency should
wrap them in ``asyncio.wait_for`` and discard late results.

Boundary Notes:
- No process-wide singletons: the host owns the engine and passes it around
- Graph state is in-memory; ``rebuild`` re-ingests persisted records
"""

from __future__ import annotations

import asyncio
import functools
import logging
from concurrent.futures import ThreadPoolExecutor
from contextlib import ExitStack
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

from ...config import EmbeddingConfig, EngineConfig, GraphConfig
from ...nn.network import SeedLike, make_rng
from .embeddings import EmbeddingService
from .knowledge_graph import KnowledgeGraph
from .locks import ReadWriteLock
from .models import (
    EmbeddingStats,
    GraphStatistics,
    GraphView,
    MemoryPatternAnalysis,
    MemoryRecord,
    MemoryType,
)
from .telemetry import NoOpTelemetryClient, TelemetryClient

logger = logging.getLogger(__name__)

T = TypeVar("T")


class MemoryGraphEngine:
    """Owns one EmbeddingService and one KnowledgeGraph behind async methods."""

    def __init__(
        self,
        embedding_config: Optional[EmbeddingConfig] = None,
        graph_config: Optional[GraphConfig] = None,
        engine_config: Optional[EngineConfig] = None,
        *,
        telemetry: Optional[TelemetryClient] = None,
        seed: SeedLike = None,
    ) -> None:
        rng = make_rng(seed)
        self.engine_config = (engine_config or EngineConfig()).validate()
        self.embedding_service = EmbeddingService(embedding_config, seed=rng)
        self.graph = KnowledgeGraph(graph_config, self.embedding_service, seed=rng)
        self.telemetry = telemetry or NoOpTelemetryClient()

        self._service_lock = ReadWriteLock("embedding-service")
        self._graph_lock = ReadWriteLock("knowledge-graph")
        self._executor = ThreadPoolExecutor(
            max_workers=self.engine_config.max_workers, thread_name_prefix="neurograph"
        )
        self._closed = False
        logger.info(f"Memory graph engine started with {self.engine_config.max_workers} workers")

    @classmethod
    def from_env(cls, *, telemetry: Optional[TelemetryClient] = None, seed: SeedLike = None) -> "MemoryGraphEngine":
        return cls(
            EmbeddingConfig.from_env(),
            GraphConfig.from_env(),
            EngineConfig.from_env(),
            telemetry=telemetry,
            seed=seed,
        )

    # ------------------ plumbing ------------------
    def _locked(self, fn: Callable[..., T], *, service: str, graph: Optional[str] = None) -> Callable[..., T]:
        timeout = self.engine_config.lock_timeout_seconds

        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            with ExitStack() as stack:
                stack.enter_context(
                    self._service_lock.write(timeout) if service == "write" else self._service_lock.read(timeout)
                )
                if graph is not None:
                    stack.enter_context(
                        self._graph_lock.write(timeout) if graph == "write" else self._graph_lock.read(timeout)
                    )
                return fn(*args, **kwargs)

        return wrapper

    async def _run(self, operation: str, fn: Callable[..., T], *args: Any, attributes: Optional[Dict[str, Any]] = None) -> T:
        if self._closed:
            raise RuntimeError("MemoryGraphEngine is closed")
        loop = asyncio.get_running_loop()
        with self.telemetry.span(f"neurograph.{operation}", attributes=attributes):
            return await loop.run_in_executor(self._executor, functools.partial(fn, *args))

    # ------------------ embedding service ------------------
    async def embed_text(self, text: str, memory_type: Optional[MemoryType] = None) -> List[float]:
        fn = self._locked(self.embedding_service.embed_text, service="read")
        return await self._run("embed_text", fn, text, memory_type)

    async def embed_memory(self, memory: MemoryRecord) -> List[float]:
        fn = self._locked(self.embedding_service.embed_memory, service="read")
        return await self._run("embed_memory", fn, memory, attributes={"memory_type": memory.memory_type.value})

    async def train_on_memories(self, memories: Sequence[MemoryRecord]) -> Dict[str, float]:
        fn = self._locked(self.embedding_service.train_on_memories, service="write")
        return await self._run("train_on_memories", fn, list(memories), attributes={"count": len(memories)})

    async def get_embedding_stats(self) -> EmbeddingStats:
        fn = self._locked(self.embedding_service.get_stats, service="read")
        return await self._run("get_embedding_stats", fn)

    # ------------------ knowledge graph ------------------
    async def add_memory_node(self, memory: MemoryRecord) -> str:
        fn = self._locked(self.graph.add_memory_node, service="read", graph="write")
        return await self._run("add_memory_node", fn, memory, attributes={"memory_type": memory.memory_type.value})

    async def rebuild(self, memories: Sequence[MemoryRecord]) -> List[str]:
        """Ingest persisted records in creation order; returns the node ids."""
        ordered = sorted(memories, key=lambda m: m.created_at)

        def ingest() -> List[str]:
            return [self.graph.add_memory_node(memory) for memory in ordered]

        fn = self._locked(ingest, service="read", graph="write")
        return await self._run("rebuild", fn, attributes={"count": len(ordered)})

    async def find_similar_memories(self, query: MemoryRecord, top_k: int = 10) -> List[Tuple[str, float]]:
        fn = self._locked(self.graph.find_similar_memories, service="read", graph="read")
        return await self._run("find_similar_memories", fn, query, top_k, attributes={"top_k": top_k})

    async def predict_relationships(self, node_id: str, candidate_ids: Sequence[str]) -> List[Tuple[str, float]]:
        fn = self._locked(self.graph.predict_relationships, service="read", graph="read")
        return await self._run("predict_relationships", fn, node_id, list(candidate_ids))

    async def get_neural_graph_view(self, agent_id: Optional[str] = None) -> GraphView:
        fn = self._locked(self.graph.get_neural_graph_view, service="read", graph="read")
        return await self._run("get_neural_graph_view", fn, agent_id)

    async def get_statistics(self) -> GraphStatistics:
        fn = self._locked(self.graph.get_statistics, service="read", graph="read")
        return await self._run("get_statistics", fn)

    async def analyze_temporal_patterns(self, agent_id: Optional[str] = None) -> MemoryPatternAnalysis:
        # the analyzer is built lazily on first use, which mutates the graph
        fn = self._locked(self.graph.analyze_temporal_patterns, service="read", graph="write")
        return await self._run("analyze_temporal_patterns", fn, agent_id)

    # ------------------ lifecycle ------------------
    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._executor.shutdown(wait=True)
        logger.info("Memory graph engine stopped")

    def __enter__(self) -> "MemoryGraphEngine":
        return self

    def __exit__(self, exc_type, exc, exc_tb) -> None:
        self.close()

    async def __aenter__(self) -> "MemoryGraphEngine":
        return self

    async def __aexit__(self, exc_type, exc, exc_tb) -> None:
        # shutdown waits for in-flight work, so keep it off the event loop thread
        await asyncio.to_thread(self.close)


__all__ = ["MemoryGraphEngine"]
