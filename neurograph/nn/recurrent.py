"""
Recurrent Cell Library
======================

Single-step LSTM and GRU transitions used by the memory sequence model.

Each gate is a ``GateWeights`` triple: an input projection
(hidden x input), a recurrent projection (hidden x hidden) and a bias.
Projections are Xavier-uniform initialized and biases start at zero.

The cells only run forward. Their weights are fixed after initialization;
learning happens in the dense projection network that consumes the final
hidden state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from ..errors import ConfigurationError
from .activations import ActivationFunction
from .network import DTYPE, SeedLike, as_vector, make_rng, xavier_uniform

_SIGMOID = ActivationFunction.SIGMOID
_TANH = ActivationFunction.TANH


@dataclass(slots=True)
class GateWeights:
    """Input weights, recurrent weights and bias for one gate."""

    input_weights: np.ndarray
    hidden_weights: np.ndarray
    bias: np.ndarray

    @classmethod
    def initialize(cls, input_size: int, hidden_size: int, rng: np.random.Generator) -> "GateWeights":
        return cls(
            input_weights=xavier_uniform(hidden_size, input_size, rng),
            hidden_weights=xavier_uniform(hidden_size, hidden_size, rng),
            bias=np.zeros(hidden_size, dtype=DTYPE),
        )

    def pre_activation(self, x: np.ndarray, h: np.ndarray) -> np.ndarray:
        return self.input_weights @ x + self.hidden_weights @ h + self.bias


def _check_sizes(input_size: int, hidden_size: int) -> None:
    if input_size <= 0 or hidden_size <= 0:
        raise ConfigurationError(
            f"Recurrent cell sizes must be positive, got input={input_size} hidden={hidden_size}"
        )


class LSTMCell:
    """Long short-term memory cell with forget, input, candidate and output gates."""

    def __init__(self, input_size: int, hidden_size: int, *, seed: SeedLike = None) -> None:
        _check_sizes(input_size, hidden_size)
        rng = make_rng(seed)
        self.input_size = input_size
        self.hidden_size = hidden_size
        self.forget_gate = GateWeights.initialize(input_size, hidden_size, rng)
        self.input_gate = GateWeights.initialize(input_size, hidden_size, rng)
        self.candidate_gate = GateWeights.initialize(input_size, hidden_size, rng)
        self.output_gate = GateWeights.initialize(input_size, hidden_size, rng)

    def step(self, x: np.ndarray, h: np.ndarray, c: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Array-level transition used by the sequence model."""
        f = _SIGMOID.apply(self.forget_gate.pre_activation(x, h))
        i = _SIGMOID.apply(self.input_gate.pre_activation(x, h))
        candidate = _TANH.apply(self.candidate_gate.pre_activation(x, h))
        c_next = f * c + i * candidate
        o = _SIGMOID.apply(self.output_gate.pre_activation(x, h))
        h_next = o * np.tanh(c_next)
        return h_next, c_next

    def forward(self, x, h, c) -> Tuple[list, list]:
        """Return ``(h', c')`` for one timestep."""
        x_vec = as_vector(x, self.input_size)
        h_vec = as_vector(h, self.hidden_size, name="hidden state")
        c_vec = as_vector(c, self.hidden_size, name="cell state")
        h_next, c_next = self.step(x_vec, h_vec, c_vec)
        return h_next.tolist(), c_next.tolist()


class GRUCell:
    """Gated recurrent unit with reset, update and new gates."""

    def __init__(self, input_size: int, hidden_size: int, *, seed: SeedLike = None) -> None:
        _check_sizes(input_size, hidden_size)
        rng = make_rng(seed)
        self.input_size = input_size
        self.hidden_size = hidden_size
        self.reset_gate = GateWeights.initialize(input_size, hidden_size, rng)
        self.update_gate = GateWeights.initialize(input_size, hidden_size, rng)
        self.new_gate = GateWeights.initialize(input_size, hidden_size, rng)

    def step(self, x: np.ndarray, h: np.ndarray) -> np.ndarray:
        r = _SIGMOID.apply(self.reset_gate.pre_activation(x, h))
        z = _SIGMOID.apply(self.update_gate.pre_activation(x, h))
        # reset gate scales the previous state before the recurrent projection
        n = _TANH.apply(self.new_gate.pre_activation(x, r * h))
        return (1.0 - z) * h + z * n

    def forward(self, x, h) -> list:
        """Return ``h'`` for one timestep."""
        x_vec = as_vector(x, self.input_size)
        h_vec = as_vector(h, self.hidden_size, name="hidden state")
        return self.step(x_vec, h_vec).tolist()


__all__ = ["GateWeights", "LSTMCell", "GRUCell"]
