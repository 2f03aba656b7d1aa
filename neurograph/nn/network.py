"""
Dense Network Engine
====================

Configurable feed-forward network with hand-written backpropagation.

Architecture:
- Ordered layer specs (size + activation), at least input and output
- One weight matrix ``W_i`` (next_size x prev_size) and bias ``b_i`` per
  adjacent layer pair, Xavier-uniform initialized
- Optional sparse connectivity via ``connection_rate``

Training:
- ``train_incremental``: single-example SGD step, returns the example MSE
- ``train``: shuffled epochs, per-epoch mean MSE, early stop below 1e-6

Parameters flatten to a single vector (all matrices row-major, then all
biases) for export/import and checkpoints.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

import numpy as np

from ..errors import ConfigurationError, DimensionMismatch
from .activations import ActivationFunction

logger = logging.getLogger(__name__)

DTYPE = np.float64
EARLY_STOP_MSE = 1e-6

SeedLike = Union[int, np.random.Generator, None]


def make_rng(seed: SeedLike = None) -> np.random.Generator:
    """Return a numpy Generator from a seed, an existing generator, or entropy."""
    if isinstance(seed, np.random.Generator):
        return seed
    return np.random.default_rng(seed)


def as_vector(values: Iterable[float], expected: Optional[int] = None, *, name: str = "input") -> np.ndarray:
    """Coerce a float sequence to a 1-D array, checking its length."""
    vec = np.asarray(values, dtype=DTYPE).reshape(-1)
    if expected is not None and vec.shape[0] != expected:
        raise DimensionMismatch(
            f"{name} length {vec.shape[0]} does not match expected size {expected}",
            expected=expected,
            actual=int(vec.shape[0]),
        )
    return vec


def xavier_uniform(
    rows: int,
    cols: int,
    rng: np.random.Generator,
    *,
    connection_rate: float = 1.0,
) -> np.ndarray:
    """Uniform(-s, s) weights with s = sqrt(2 / (fan_in + fan_out))."""
    scale = np.sqrt(2.0 / (rows + cols))
    weights = (rng.random((rows, cols)) - 0.5) * 2.0 * scale
    if connection_rate < 1.0:
        mask = rng.random((rows, cols)) < connection_rate
        weights = np.where(mask, weights, 0.0)
    return weights.astype(DTYPE)


@dataclass(frozen=True, slots=True)
class LayerConfig:
    """Size and activation of one network layer."""

    size: int
    activation: ActivationFunction = ActivationFunction.LINEAR

    def to_dict(self) -> dict:
        return {"size": self.size, "activation": self.activation.value}

    @classmethod
    def from_dict(cls, data: dict) -> "LayerConfig":
        return cls(size=int(data["size"]), activation=ActivationFunction.parse(data["activation"]))


@dataclass
class TrainingData:
    """Parallel input/target example lists."""

    inputs: List[List[float]] = field(default_factory=list)
    outputs: List[List[float]] = field(default_factory=list)

    def __post_init__(self) -> None:
        if len(self.inputs) != len(self.outputs):
            raise DimensionMismatch(
                f"TrainingData has {len(self.inputs)} inputs but {len(self.outputs)} outputs",
                expected=len(self.inputs),
                actual=len(self.outputs),
            )

    def add_example(self, input_vector: Sequence[float], output_vector: Sequence[float]) -> None:
        self.inputs.append(list(input_vector))
        self.outputs.append(list(output_vector))

    def __len__(self) -> int:
        return len(self.inputs)

    def is_empty(self) -> bool:
        return not self.inputs


class NetworkBuilder:
    """Fluent builder for :class:`NeuralNetwork`.

    Example::

        net = (
            NetworkBuilder(seed=7)
            .input_layer(2)
            .hidden_layer_with_activation(4, ActivationFunction.SIGMOID)
            .output_layer_with_activation(1, ActivationFunction.SIGMOID)
            .learning_rate(0.5)
            .build()
        )
    """

    def __init__(self, *, seed: SeedLike = None) -> None:
        self._layers: List[LayerConfig] = []
        self._learning_rate = 0.001
        self._connection_rate = 1.0
        self._rng = make_rng(seed)

    def input_layer(self, size: int) -> "NetworkBuilder":
        self._layers.append(LayerConfig(size, ActivationFunction.LINEAR))
        return self

    def hidden_layer_with_activation(self, size: int, activation: ActivationFunction) -> "NetworkBuilder":
        self._layers.append(LayerConfig(size, ActivationFunction.parse(activation)))
        return self

    def hidden_layer(self, size: int) -> "NetworkBuilder":
        return self.hidden_layer_with_activation(size, ActivationFunction.SIGMOID)

    def output_layer(self, size: int) -> "NetworkBuilder":
        return self.output_layer_with_activation(size, ActivationFunction.LINEAR)

    def output_layer_with_activation(self, size: int, activation: ActivationFunction) -> "NetworkBuilder":
        self._layers.append(LayerConfig(size, ActivationFunction.parse(activation)))
        return self

    def learning_rate(self, rate: float) -> "NetworkBuilder":
        self._learning_rate = float(rate)
        return self

    def connection_rate(self, rate: float) -> "NetworkBuilder":
        self._connection_rate = min(max(float(rate), 0.0), 1.0)
        return self

    def build(self) -> "NeuralNetwork":
        if len(self._layers) < 2:
            raise ConfigurationError("Network must have at least input and output layers")
        for idx, layer in enumerate(self._layers):
            if layer.size <= 0:
                raise ConfigurationError(f"Layer {idx} must have a positive size, got {layer.size}")

        weights = []
        biases = []
        for prev, nxt in zip(self._layers[:-1], self._layers[1:]):
            weights.append(
                xavier_uniform(nxt.size, prev.size, self._rng, connection_rate=self._connection_rate)
            )
            biases.append(np.zeros(nxt.size, dtype=DTYPE))

        return NeuralNetwork(self._layers, weights, biases, self._learning_rate, rng=self._rng)


class NeuralNetwork:
    """Feed-forward network trained with per-example backpropagation."""

    def __init__(
        self,
        layers: Sequence[LayerConfig],
        weights: Sequence[np.ndarray],
        biases: Sequence[np.ndarray],
        learning_rate: float = 0.001,
        *,
        rng: SeedLike = None,
    ) -> None:
        if len(layers) < 2:
            raise ConfigurationError("Network must have at least input and output layers")
        if len(weights) != len(layers) - 1 or len(biases) != len(layers) - 1:
            raise ConfigurationError(
                f"Expected {len(layers) - 1} weight/bias pairs, got {len(weights)}/{len(biases)}"
            )
        for i, (w, b) in enumerate(zip(weights, biases)):
            shape = (layers[i + 1].size, layers[i].size)
            if w.shape != shape or b.shape != (layers[i + 1].size,):
                raise DimensionMismatch(f"Parameter shape mismatch at layer pair {i}: {w.shape} vs {shape}")

        self._layers: List[LayerConfig] = list(layers)
        self._weights: List[np.ndarray] = [np.array(w, dtype=DTYPE) for w in weights]
        self._biases: List[np.ndarray] = [np.array(b, dtype=DTYPE) for b in biases]
        self.learning_rate = float(learning_rate)
        self._rng = make_rng(rng)

    @classmethod
    def from_sizes(
        cls,
        layer_sizes: Sequence[int],
        *,
        learning_rate: float = 0.001,
        seed: SeedLike = None,
    ) -> "NeuralNetwork":
        """Sigmoid hidden layers and a linear output layer of the given sizes."""
        if not layer_sizes:
            raise ConfigurationError("Must provide at least one layer size")
        builder = NetworkBuilder(seed=seed).input_layer(layer_sizes[0])
        for size in layer_sizes[1:-1]:
            builder = builder.hidden_layer(size)
        if len(layer_sizes) > 1:
            builder = builder.output_layer(layer_sizes[-1])
        return builder.learning_rate(learning_rate).build()

    # ------------------ introspection ------------------
    @property
    def layers(self) -> tuple[LayerConfig, ...]:
        return tuple(self._layers)

    def num_layers(self) -> int:
        return len(self._layers)

    def num_inputs(self) -> int:
        return self._layers[0].size

    def num_outputs(self) -> int:
        return self._layers[-1].size

    def total_neurons(self) -> int:
        return sum(layer.size for layer in self._layers)

    def total_connections(self) -> int:
        return sum(w.size for w in self._weights)

    # ------------------ inference ------------------
    def forward(self, x: np.ndarray) -> np.ndarray:
        """Forward pass on an already-validated input array."""
        activation = x
        for i, (w, b) in enumerate(zip(self._weights, self._biases)):
            activation = self._layers[i + 1].activation.apply(w @ activation + b)
        return activation

    def run(self, input_vector: Sequence[float]) -> List[float]:
        """Run the network; raises :class:`DimensionMismatch` on a bad input length."""
        x = as_vector(input_vector, self.num_inputs())
        return self.forward(x).tolist()

    # ------------------ training ------------------
    def train_incremental(self, input_vector: Sequence[float], target: Sequence[float]) -> float:
        """One backpropagation step on a single example; returns its MSE."""
        x = as_vector(input_vector, self.num_inputs())
        t = as_vector(target, self.num_outputs(), name="target")

        activations = [x]
        pre_activations = []
        for i, (w, b) in enumerate(zip(self._weights, self._biases)):
            z = w @ activations[-1] + b
            pre_activations.append(z)
            activations.append(self._layers[i + 1].activation.apply(z))

        error = t - activations[-1]
        mse = float(np.mean(error * error))

        # deltas[i] belongs to the layer fed by weights[i]
        deltas: List[np.ndarray] = [np.empty(0)] * len(self._weights)
        deltas[-1] = error * self._layers[-1].activation.derivative(pre_activations[-1])
        for i in range(len(self._weights) - 2, -1, -1):
            propagated = self._weights[i + 1].T @ deltas[i + 1]
            deltas[i] = propagated * self._layers[i + 1].activation.derivative(pre_activations[i])

        lr = self.learning_rate
        for i, delta in enumerate(deltas):
            self._weights[i] += lr * np.outer(delta, activations[i])
            self._biases[i] += lr * delta

        return mse

    def train(
        self,
        inputs: Sequence[Sequence[float]],
        targets: Sequence[Sequence[float]],
        epochs: int,
        *,
        shuffle: bool = True,
    ) -> List[float]:
        """Train for ``epochs`` passes; returns the mean MSE of every epoch run."""
        if len(inputs) != len(targets):
            raise DimensionMismatch(
                f"Number of inputs ({len(inputs)}) and targets ({len(targets)}) must match",
                expected=len(inputs),
                actual=len(targets),
            )
        if not inputs:
            return []

        errors: List[float] = []
        order = np.arange(len(inputs))
        for _ in range(epochs):
            if shuffle:
                self._rng.shuffle(order)
            epoch_error = 0.0
            for idx in order:
                epoch_error += self.train_incremental(inputs[idx], targets[idx])
            epoch_error /= len(inputs)
            errors.append(epoch_error)

            if epoch_error < EARLY_STOP_MSE:
                break

        return errors

    def train_on(self, data: TrainingData, epochs: int, *, shuffle: bool = True) -> List[float]:
        return self.train(data.inputs, data.outputs, epochs, shuffle=shuffle)

    def calculate_mse(self, inputs: Sequence[Sequence[float]], targets: Sequence[Sequence[float]]) -> float:
        """Mean per-example MSE; ``inf`` when the example counts differ."""
        if len(inputs) != len(targets):
            return float("inf")
        if not inputs:
            return 0.0
        total = 0.0
        for input_vector, target in zip(inputs, targets):
            output = np.asarray(self.run(input_vector))
            t = as_vector(target, self.num_outputs(), name="target")
            total += float(np.mean((output - t) ** 2))
        return total / len(inputs)

    # ------------------ parameters ------------------
    def get_weights(self) -> List[float]:
        """All weight matrices (row-major) followed by all bias vectors."""
        parts = [w.reshape(-1) for w in self._weights] + [b for b in self._biases]
        return np.concatenate(parts).tolist()

    def set_weights(self, flat: Sequence[float]) -> None:
        """Inverse of :meth:`get_weights`; the length must match exactly."""
        values = np.asarray(flat, dtype=DTYPE).reshape(-1)
        expected = sum(w.size for w in self._weights) + sum(b.size for b in self._biases)
        if values.shape[0] != expected:
            raise DimensionMismatch(
                f"Weight vector size mismatch: expected {expected}, got {values.shape[0]}",
                expected=expected,
                actual=int(values.shape[0]),
            )

        idx = 0
        new_weights = []
        for w in self._weights:
            new_weights.append(values[idx : idx + w.size].reshape(w.shape).copy())
            idx += w.size
        new_biases = []
        for b in self._biases:
            new_biases.append(values[idx : idx + b.size].copy())
            idx += b.size

        self._weights = new_weights
        self._biases = new_biases

    # ------------------ checkpoints ------------------
    def save(self, path: Union[str, Path]) -> Path:
        """Write layers, learning rate and parameters to a ``.npz`` checkpoint."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        arrays = {f"w{i}": w for i, w in enumerate(self._weights)}
        arrays.update({f"b{i}": b for i, b in enumerate(self._biases)})
        meta = json.dumps(
            {
                "layers": [layer.to_dict() for layer in self._layers],
                "learning_rate": self.learning_rate,
            }
        )
        with path.open("wb") as fh:
            np.savez(fh, meta=np.array(meta), **arrays)
        logger.debug(f"Saved network checkpoint to {path}")
        return path

    @classmethod
    def load(cls, path: Union[str, Path], *, seed: SeedLike = None) -> "NeuralNetwork":
        path = Path(path)
        with np.load(path, allow_pickle=False) as data:
            meta = json.loads(str(data["meta"]))
            layers = [LayerConfig.from_dict(item) for item in meta["layers"]]
            weights = [data[f"w{i}"] for i in range(len(layers) - 1)]
            biases = [data[f"b{i}"] for i in range(len(layers) - 1)]
        return cls(layers, weights, biases, meta["learning_rate"], rng=seed)

    def __repr__(self) -> str:
        sizes = "-".join(str(layer.size) for layer in self._layers)
        return f"{self.__class__.__name__}(layers={sizes}, learning_rate={self.learning_rate})"


__all__ = [
    "LayerConfig",
    "NetworkBuilder",
    "NeuralNetwork",
    "TrainingData",
    "as_vector",
    "make_rng",
    "xavier_uniform",
]
