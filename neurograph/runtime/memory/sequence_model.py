"""
Memory Sequence Model - Temporal pattern vectors from memory streams

WHAT: Stacked LSTM/GRU cells plus a dense projection over memory sequences
WHERE: neurograph/runtime/memory/sequence_model.py - temporal analysis layer
WHO: KnowledgeGraph.analyze_temporal_patterns, analytics scripts
TIME: O(sequence_length x num_layers x hidden^2) per call

Each memory is mapped to a fixed-width feature vector (type scalar, content
length, relevance, access count, then per-codepoint features). The sequence
is fed through ``num_layers`` recurrent cells from zero state and the final
hidden state of the last layer is projected by a dense network.

Boundary Notes:
- Recurrent weights are fixed after initialization (no BPTT)
- Only the projection network is trainable
- Empty sequences produce a zero vector instead of an error
"""

from __future__ import annotations

import logging
from collections import Counter
from enum import Enum
from typing import Dict, List, Optional, Sequence

import numpy as np

from ...errors import ConfigurationError
from ...nn.activations import ActivationFunction
from ...nn.network import DTYPE, NetworkBuilder, NeuralNetwork, SeedLike, as_vector, make_rng
from ...nn.recurrent import GRUCell, LSTMCell
from .models import MemoryPatternAnalysis, MemoryRecord, MemoryType

logger = logging.getLogger(__name__)

# Scalar written to feature slot 0 for each memory type
TYPE_SCALARS: Dict[MemoryType, float] = {
    MemoryType.CONVERSATION: 0.1,
    MemoryType.TASK: 0.2,
    MemoryType.LEARNING: 0.3,
    MemoryType.CONTEXT: 0.4,
    MemoryType.TOOL: 0.5,
    MemoryType.ERROR: 0.6,
    MemoryType.SUCCESS: 0.7,
    MemoryType.PATTERN: 0.8,
}

_HEADER_SLOTS = 4


class SequenceModelType(str, Enum):
    LSTM = "LSTM"
    GRU = "GRU"


def memory_to_features(memory: MemoryRecord, input_size: int) -> np.ndarray:
    """Fixed-width feature vector for one memory."""
    features = np.zeros(input_size, dtype=DTYPE)
    header = [
        TYPE_SCALARS[memory.memory_type],
        min(len(memory.content) / 1000.0, 1.0),
        float(memory.relevance_score),
        min(memory.access_count / 100.0, 1.0),
    ]
    for idx, value in enumerate(header[:input_size]):
        features[idx] = value

    if input_size > _HEADER_SLOTS:
        codepoints = [ord(ch) / 65536.0 for ch in memory.content[: input_size - _HEADER_SLOTS]]
        features[_HEADER_SLOTS : _HEADER_SLOTS + len(codepoints)] = codepoints
    return features


class MemorySequenceModel:
    """Stack of recurrent cells followed by a dense projection network."""

    def __init__(
        self,
        input_size: int,
        hidden_size: int,
        output_size: int,
        num_layers: int,
        model_type: SequenceModelType = SequenceModelType.LSTM,
        *,
        seed: SeedLike = None,
    ) -> None:
        if num_layers <= 0:
            raise ConfigurationError(f"num_layers must be positive, got {num_layers}")
        if output_size <= 0:
            raise ConfigurationError(f"output_size must be positive, got {output_size}")
        rng = make_rng(seed)
        self.input_size = input_size
        self.hidden_size = hidden_size
        self.output_size = output_size
        self.model_type = SequenceModelType(model_type)

        cell_cls = LSTMCell if self.model_type is SequenceModelType.LSTM else GRUCell
        self.cells = [
            cell_cls(input_size if layer == 0 else hidden_size, hidden_size, seed=rng)
            for layer in range(num_layers)
        ]
        self.output_network: NeuralNetwork = (
            NetworkBuilder(seed=rng)
            .input_layer(hidden_size)
            .hidden_layer_with_activation(max(1, hidden_size // 2), ActivationFunction.RELU)
            .output_layer(output_size)
            .learning_rate(0.001)
            .build()
        )

    @property
    def num_layers(self) -> int:
        return len(self.cells)

    def process_sequence(self, sequence: Sequence[Sequence[float]]) -> List[float]:
        """Run the whole sequence from zero state; returns the projected vector."""
        if len(sequence) == 0:
            return [0.0] * self.hidden_size

        hidden = [np.zeros(self.hidden_size, dtype=DTYPE) for _ in self.cells]
        cell_state = [np.zeros(self.hidden_size, dtype=DTYPE) for _ in self.cells]

        for step in sequence:
            layer_input = as_vector(step, self.input_size, name="sequence step")
            for idx, cell in enumerate(self.cells):
                if isinstance(cell, LSTMCell):
                    hidden[idx], cell_state[idx] = cell.step(layer_input, hidden[idx], cell_state[idx])
                else:
                    hidden[idx] = cell.step(layer_input, hidden[idx])
                layer_input = hidden[idx]

        return self.output_network.forward(hidden[-1]).tolist()

    def extract_temporal_patterns(self, memories: Sequence[MemoryRecord]) -> List[float]:
        """Sort by creation time, featurize and process the sequence."""
        ordered = sorted(memories, key=lambda m: m.created_at)
        sequence = [memory_to_features(m, self.input_size) for m in ordered]
        return self.process_sequence(sequence)


class MemorySequenceAnalyzer:
    """Per-type sequence models with a general fallback."""

    def __init__(self, input_size: int, hidden_size: int, output_size: int, *, seed: SeedLike = None) -> None:
        rng = make_rng(seed)
        self.input_size = input_size
        self.hidden_size = hidden_size
        self.output_size = output_size

        lstm, gru = SequenceModelType.LSTM, SequenceModelType.GRU
        self.specialized_models: Dict[MemoryType, MemorySequenceModel] = {
            MemoryType.CONVERSATION: MemorySequenceModel(input_size, hidden_size, output_size, 2, lstm, seed=rng),
            MemoryType.TASK: MemorySequenceModel(input_size, hidden_size, output_size, 2, gru, seed=rng),
            MemoryType.LEARNING: MemorySequenceModel(input_size, hidden_size * 2, output_size, 3, lstm, seed=rng),
            MemoryType.PATTERN: MemorySequenceModel(input_size, hidden_size, output_size, 1, gru, seed=rng),
        }
        self.general_model = MemorySequenceModel(input_size, hidden_size, output_size, 2, lstm, seed=rng)
        logger.debug(
            f"Sequence analyzer ready: input={input_size} hidden={hidden_size} output={output_size}"
        )

    def model_for(self, memory_type: Optional[MemoryType]) -> MemorySequenceModel:
        if memory_type is None:
            return self.general_model
        return self.specialized_models.get(memory_type, self.general_model)

    @staticmethod
    def dominant_type(memories: Sequence[MemoryRecord]) -> Optional[MemoryType]:
        """Most frequent memory type; ties go to the type seen first."""
        if not memories:
            return None
        counts = Counter(m.memory_type for m in memories)
        return counts.most_common(1)[0][0]

    def analyze_sequence(self, memories: Sequence[MemoryRecord]) -> List[float]:
        if not memories:
            return [0.0] * self.output_size
        return self.model_for(self.dominant_type(memories)).extract_temporal_patterns(memories)

    def detect_patterns(self, memories: Sequence[MemoryRecord]) -> MemoryPatternAnalysis:
        """Overall pattern plus one pattern per specialized type present."""
        type_patterns: Dict[MemoryType, List[float]] = {}
        for memory_type, model in self.specialized_models.items():
            subset = [m for m in memories if m.memory_type is memory_type]
            if subset:
                type_patterns[memory_type] = model.extract_temporal_patterns(subset)

        time_span = 0.0
        if memories:
            timestamps = [m.created_at for m in memories]
            time_span = (max(timestamps) - min(timestamps)).total_seconds()

        # the overall pattern always comes from the general model, not the dominant type
        overall = [0.0] * self.output_size
        if memories:
            overall = self.general_model.extract_temporal_patterns(memories)

        return MemoryPatternAnalysis(
            overall_pattern=overall,
            type_patterns=type_patterns,
            sequence_length=len(memories),
            time_span_seconds=time_span,
        )


__all__ = [
    "MemorySequenceAnalyzer",
    "MemorySequenceModel",
    "SequenceModelType",
    "TYPE_SCALARS",
    "memory_to_features",
]
