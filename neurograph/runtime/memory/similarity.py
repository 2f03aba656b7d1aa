"""
Embedding Similarity - Vector comparison and clustering helpers

WHAT: Cosine similarity, distances, L2 normalization and k-means
WHERE: neurograph/runtime/memory/similarity.py - shared math utilities
WHO: Embedding service, knowledge graph, CLI analytics
TIME: O(dim) per comparison

Degenerate inputs never produce NaN: cosine similarity returns 0.0 for
mismatched lengths, zero-norm or non-finite vectors, distances return ``inf`` for
mismatched lengths.
"""

from __future__ import annotations

from typing import List, Sequence

import numpy as np

from ...errors import ConfigurationError

Vector = Sequence[float]


def cosine_similarity(a: Vector, b: Vector) -> float:
    """Cosine of the angle between ``a`` and ``b``, clamped to [-1, 1]."""
    if len(a) != len(b) or len(a) == 0:
        return 0.0
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if not (np.isfinite(va).all() and np.isfinite(vb).all()):
        return 0.0
    scale_a = float(np.abs(va).max())
    scale_b = float(np.abs(vb).max())
    if scale_a == 0.0 or scale_b == 0.0:
        return 0.0
    # rescale first so huge components cannot overflow the dot product
    va = va / scale_a
    vb = vb / scale_b
    value = float(np.dot(va, vb)) / float(np.linalg.norm(va) * np.linalg.norm(vb))
    if not np.isfinite(value):
        return 0.0
    return max(-1.0, min(1.0, value))


def euclidean_distance(a: Vector, b: Vector) -> float:
    if len(a) != len(b):
        return float("inf")
    return float(np.linalg.norm(np.asarray(a, dtype=np.float64) - np.asarray(b, dtype=np.float64)))


def manhattan_distance(a: Vector, b: Vector) -> float:
    if len(a) != len(b):
        return float("inf")
    return float(np.abs(np.asarray(a, dtype=np.float64) - np.asarray(b, dtype=np.float64)).sum())


def l2_normalize(vector: np.ndarray) -> np.ndarray:
    """Unit-length copy of ``vector``; zero vectors are returned unchanged."""
    norm = float(np.linalg.norm(vector))
    if norm == 0.0:
        return vector.copy()
    return vector / norm


def k_means_clustering(embeddings: Sequence[Vector], k: int, max_iterations: int = 100) -> List[int]:
    """Cluster assignment per embedding using Lloyd's algorithm.

    Centroids start at the first ``k`` embeddings, so results are
    deterministic for a given input order.
    """
    if not embeddings or k == 0:
        return []
    if k < 0 or k > len(embeddings):
        raise ConfigurationError(f"k must be within [0, {len(embeddings)}], got {k}")
    dims = {len(e) for e in embeddings}
    if len(dims) != 1:
        raise ConfigurationError("All embeddings must have the same dimension")

    data = np.asarray(embeddings, dtype=np.float64)
    centroids = data[:k].copy()
    assignments = np.full(len(data), -1, dtype=np.int64)

    for _ in range(max_iterations):
        distances = np.linalg.norm(data[:, None, :] - centroids[None, :, :], axis=2)
        new_assignments = np.argmin(distances, axis=1)
        if np.array_equal(new_assignments, assignments):
            break
        assignments = new_assignments
        for cluster in range(k):
            members = data[assignments == cluster]
            # empty clusters keep their previous centroid
            if len(members):
                centroids[cluster] = members.mean(axis=0)

    return assignments.tolist()


__all__ = [
    "cosine_similarity",
    "euclidean_distance",
    "k_means_clustering",
    "l2_normalize",
    "manhattan_distance",
]
