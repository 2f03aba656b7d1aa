"""
Neural Embedding Service - Type-specialized text embeddings

WHAT: Text/memory -> unit-length embedding via small trainable networks
WHERE: neurograph/runtime/memory/embeddings.py - embedding layer
WHO: KnowledgeGraph (node embeddings), MemoryGraphEngine, backends
TIME: One forward pass per cache miss, O(1) per cache hit

Text is turned into a deterministic feature vector (one slot per codepoint
plus a block of text statistics), routed through the network specialized
for its memory type (or the general network), L2-normalized and cached by
SHA-256 of ``text || type tag``.

Training builds hash-derived targets per memory, trains every specialized
network on its group and the general network on everything, then clears
the cache because every cached vector is stale.

Boundary Notes:
- Cache eviction is a bulk clear at capacity, not LRU
- Training is all-or-nothing: networks are trained on copies and swapped in
  only when every type succeeded
- Callers sharing a service across threads must hold an exclusive lock for
  the whole of ``train_on_memories`` (see MemoryGraphEngine)
"""

from __future__ import annotations

import copy
import hashlib
import logging
import string
import threading
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from ...config import EmbeddingConfig
from ...errors import TrainingError
from ...nn.activations import ActivationFunction
from ...nn.network import DTYPE, NetworkBuilder, NeuralNetwork, SeedLike, TrainingData, make_rng
from .models import EmbeddingStats, MemoryRecord, MemoryType
from .similarity import cosine_similarity, l2_normalize

logger = logging.getLogger(__name__)

Act = ActivationFunction

# (first hidden, second hidden, learning-rate multiplier) per memory type
SPECIALIZED_ARCHITECTURES: Dict[MemoryType, Tuple[Tuple[int, Act], Tuple[int, Act], float]] = {
    MemoryType.CONVERSATION: ((256, Act.TANH), (128, Act.RELU), 1.2),
    MemoryType.TASK: ((384, Act.RELU), (192, Act.GELU), 1.0),
    MemoryType.LEARNING: ((512, Act.GELU), (256, Act.TANH), 0.8),
    MemoryType.CONTEXT: ((320, Act.TANH), (160, Act.GELU), 1.0),
    MemoryType.TOOL: ((256, Act.RELU), (128, Act.LEAKY_RELU), 1.1),
    MemoryType.ERROR: ((256, Act.LEAKY_RELU), (128, Act.TANH), 0.9),
    MemoryType.SUCCESS: ((256, Act.GELU), (128, Act.RELU), 1.0),
    MemoryType.PATTERN: ((128, Act.RELU), (64, Act.SIGMOID), 1.5),
}

GENERAL_ARCHITECTURE: Tuple[Tuple[int, Act], Tuple[int, Act]] = ((512, Act.RELU), (384, Act.GELU))

# Scalar written to the last target dimension during training
TYPE_BIAS: Dict[MemoryType, float] = {
    MemoryType.CONVERSATION: 0.1,
    MemoryType.TASK: 0.2,
    MemoryType.LEARNING: 0.3,
    MemoryType.PATTERN: 0.4,
    MemoryType.CONTEXT: 0.5,
    MemoryType.TOOL: 0.6,
    MemoryType.ERROR: 0.7,
    MemoryType.SUCCESS: 0.8,
}

STATS_SLOTS = 10
TARGET_HASH_DIMS = 32


def enhance_text(memory: MemoryRecord) -> str:
    """Content plus type, metadata and tag markers, in that order."""
    parts = [memory.content, f" [TYPE:{memory.memory_type.value}]"]
    parts.extend(f" [{key}:{value}]" for key, value in memory.metadata.items())
    if memory.tags:
        parts.append(f" [TAGS:{','.join(memory.tags)}]")
    return "".join(parts)


def cache_key(text: str, memory_type: Optional[MemoryType]) -> str:
    hasher = hashlib.sha256(text.encode("utf-8"))
    if memory_type is not None:
        hasher.update(memory_type.value.encode("utf-8"))
    return hasher.hexdigest()


def _build_network(
    input_size: int,
    output_size: int,
    hidden: Sequence[Tuple[int, Act]],
    learning_rate: float,
    rng: np.random.Generator,
) -> NeuralNetwork:
    builder = NetworkBuilder(seed=rng).input_layer(input_size)
    for size, activation in hidden:
        builder = builder.hidden_layer_with_activation(size, activation)
    return builder.output_layer(output_size).learning_rate(learning_rate).build()


class EmbeddingService:
    """General plus per-memory-type embedding networks with a bounded cache."""

    def __init__(self, config: Optional[EmbeddingConfig] = None, *, seed: SeedLike = None) -> None:
        self.config = (config or EmbeddingConfig()).validate()
        rng = make_rng(seed)
        cfg = self.config

        self.memory_networks: Dict[MemoryType, NeuralNetwork] = {}
        for memory_type, (first, second, multiplier) in SPECIALIZED_ARCHITECTURES.items():
            self.memory_networks[memory_type] = _build_network(
                cfg.max_text_length,
                cfg.embedding_dim,
                (first, second),
                cfg.learning_rate * multiplier,
                rng,
            )
        self.general_network = _build_network(
            cfg.max_text_length, cfg.embedding_dim, GENERAL_ARCHITECTURE, cfg.learning_rate, rng
        )

        self._cache: Dict[str, List[float]] = {}
        self._cache_lock = threading.Lock()
        logger.info(
            f"Embedding service ready: dim={cfg.embedding_dim} max_text_length={cfg.max_text_length} "
            f"specialized_networks={len(self.memory_networks)}"
        )

    @property
    def embedding_dim(self) -> int:
        return self.config.embedding_dim

    # ------------------ features ------------------
    def text_to_features(self, text: str) -> List[float]:
        return self._features(text).tolist()

    def _features(self, text: str) -> np.ndarray:
        max_len = self.config.max_text_length
        features = np.zeros(max_len, dtype=DTYPE)
        head = text[:max_len]
        features[: len(head)] = [ord(ch) / 65536.0 for ch in head]

        char_len = len(text)
        if char_len + STATS_SLOTS < max_len:
            word_count = len(text.split())
            avg_word_len = char_len / word_count if word_count else 0.0
            punctuation = sum(1 for ch in text if ch in string.punctuation)
            uppercase = sum(1 for ch in text if ch.isupper())
            stats = [
                char_len / 1000.0,
                word_count / 100.0,
                avg_word_len / 20.0,
                punctuation / (char_len + 1.0),
                uppercase / (char_len + 1.0),
            ]
            start = max_len - STATS_SLOTS
            features[start : start + len(stats)] = stats
        return features

    # ------------------ embedding ------------------
    def network_for(self, memory_type: Optional[MemoryType]) -> NeuralNetwork:
        if memory_type is None:
            return self.general_network
        return self.memory_networks.get(memory_type, self.general_network)

    def embed_text(self, text: str, memory_type: Optional[MemoryType] = None) -> List[float]:
        """Unit-length embedding for ``text``, served from cache when possible."""
        if memory_type is not None:
            memory_type = MemoryType.parse(memory_type)
        key = cache_key(text, memory_type)
        with self._cache_lock:
            cached = self._cache.get(key)
        if cached is not None:
            return list(cached)

        raw = self.network_for(memory_type).forward(self._features(text))
        embedding = l2_normalize(raw).tolist()

        with self._cache_lock:
            if len(self._cache) >= self.config.cache_size_limit:
                logger.warning(f"Embedding cache reached {len(self._cache)} entries; clearing")
                self._cache.clear()
            self._cache[key] = embedding
        return list(embedding)

    def embed_batch(self, items: Sequence[Tuple[str, Optional[MemoryType]]]) -> List[List[float]]:
        return [self.embed_text(text, memory_type) for text, memory_type in items]

    def embed_memory(self, memory: MemoryRecord) -> List[float]:
        return self.embed_text(enhance_text(memory), memory.memory_type)

    # ------------------ training ------------------
    def create_target_embedding(self, memory: MemoryRecord) -> np.ndarray:
        dim = self.config.embedding_dim
        target = np.zeros(dim, dtype=DTYPE)
        digest = hashlib.sha256(memory.content.encode("utf-8")).digest()
        limit = min(TARGET_HASH_DIMS, dim)
        target[:limit] = np.frombuffer(digest[:limit], dtype=np.uint8) / 255.0
        if dim > 10:
            target[dim - 1] = TYPE_BIAS[memory.memory_type]
        return l2_normalize(target)

    def prepare_training_data(self, memories: Sequence[MemoryRecord]) -> TrainingData:
        data = TrainingData()
        for memory in memories:
            data.add_example(self.text_to_features(enhance_text(memory)), self.create_target_embedding(memory).tolist())
        return data

    def train_on_memories(self, memories: Sequence[MemoryRecord]) -> Dict[str, float]:
        """Retrain on ``memories``; returns the final epoch error per trained network.

        Raises ``TrainingError`` if any network fails. In that case no network
        is modified.
        """
        if not memories:
            return {}

        groups: Dict[MemoryType, List[MemoryRecord]] = {}
        for memory in memories:
            groups.setdefault(memory.memory_type, []).append(memory)

        epochs = self.config.training_epochs
        staged: Dict[MemoryType, NeuralNetwork] = {}
        final_errors: Dict[str, float] = {}
        trained: List[str] = []
        current: Optional[str] = None
        try:
            for memory_type, group in groups.items():
                current = memory_type.value
                network = copy.deepcopy(self.memory_networks[memory_type])
                errors = network.train_on(self.prepare_training_data(group), epochs)
                staged[memory_type] = network
                final_errors[current] = errors[-1] if errors else float("inf")
                trained.append(current)

            current = "general"
            general = copy.deepcopy(self.general_network)
            errors = general.train_on(self.prepare_training_data(memories), epochs)
            final_errors[current] = errors[-1] if errors else float("inf")
        except (ValueError, FloatingPointError) as exc:
            logger.error(f"Embedding training failed for {current}: {exc}")
            raise TrainingError(
                f"Training failed for {current}; no networks were updated",
                failed_type=current,
                trained_types=trained,
            ) from exc

        self.memory_networks.update(staged)
        self.general_network = general
        self.invalidate_cache()
        logger.info(
            f"Neural embedding training completed on {len(memories)} memories; "
            f"final general error {final_errors['general']:.6f}"
        )
        return final_errors

    # ------------------ queries ------------------
    def compute_similarity(self, a: Sequence[float], b: Sequence[float]) -> float:
        return cosine_similarity(a, b)

    def find_similar_memories(
        self,
        query_text: str,
        query_type: Optional[MemoryType],
        candidates: Sequence[MemoryRecord],
        threshold: float,
        top_k: int,
    ) -> List[Tuple[str, float]]:
        """Candidates at or above ``threshold``, best first, at most ``top_k``."""
        query = self.embed_text(query_text, query_type)
        scored = []
        for memory in candidates:
            score = cosine_similarity(query, self.embed_memory(memory))
            if score >= threshold:
                scored.append((memory.id, score))
        scored.sort(key=lambda item: item[1], reverse=True)
        return scored[: max(top_k, 0)]

    def invalidate_cache(self) -> None:
        with self._cache_lock:
            self._cache.clear()

    def cache_size(self) -> int:
        with self._cache_lock:
            return len(self._cache)

    def get_stats(self) -> EmbeddingStats:
        return EmbeddingStats(
            cache_size=self.cache_size(),
            cache_limit=self.config.cache_size_limit,
            embedding_dimension=self.config.embedding_dim,
            specialized_networks=len(self.memory_networks),
        )


__all__ = [
    "EmbeddingService",
    "GENERAL_ARCHITECTURE",
    "SPECIALIZED_ARCHITECTURES",
    "TYPE_BIAS",
    "cache_key",
    "enhance_text",
]
