"""
Embedding Blob Codec - Opaque byte format for persisted embeddings

WHAT: Encode/decode embedding vectors to the storage collaborator's blob layout
WHERE: neurograph/runtime/memory/serialization.py - persistence boundary
WHO: Callers handing embeddings to (or loading them from) external storage
TIME: O(dim)

Layout: little-endian u64 element count followed by ``count`` little-endian
IEEE-754 float32 values. Precision beyond float32 is dropped on encode.
"""

from __future__ import annotations

import struct
from typing import List, Sequence

import numpy as np

from ...errors import SerializationError

_COUNT = struct.Struct("<Q")
_F32 = np.dtype("<f4")


def encode_embedding(vector: Sequence[float]) -> bytes:
    values = np.asarray(vector, dtype=_F32).reshape(-1)
    return _COUNT.pack(values.shape[0]) + values.tobytes()


def decode_embedding(blob: bytes) -> List[float]:
    """Inverse of :func:`encode_embedding`; raises ``SerializationError`` on malformed input."""
    if not isinstance(blob, (bytes, bytearray, memoryview)):
        raise SerializationError(f"Embedding blob must be bytes, got {type(blob).__name__}")
    data = bytes(blob)
    if len(data) < _COUNT.size:
        raise SerializationError(f"Embedding blob too short: {len(data)} bytes")
    (count,) = _COUNT.unpack_from(data)
    expected = _COUNT.size + count * _F32.itemsize
    if len(data) != expected:
        raise SerializationError(
            f"Embedding blob length {len(data)} does not match declared {count} values ({expected} bytes)"
        )
    return np.frombuffer(data, dtype=_F32, offset=_COUNT.size).astype(np.float64).tolist()


__all__ = ["decode_embedding", "encode_embedding"]
