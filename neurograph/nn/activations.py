"""
Activation Functions
====================

Element-wise activations and their derivatives for the dense and recurrent
layers. Every function accepts a Python float or a numpy array and returns
the same shape.

Derivatives are taken with respect to the pre-activation value, which is what
backpropagation caches.
"""

from __future__ import annotations

from enum import Enum
from typing import Union

import numpy as np

ArrayLike = Union[float, np.ndarray]

_GELU_COEFF = np.sqrt(2.0 / np.pi)
LEAKY_SLOPE = 0.01


def _sigmoid(x: ArrayLike) -> ArrayLike:
    # tanh form avoids overflow in exp() for large negative inputs
    return 0.5 * (1.0 + np.tanh(0.5 * x))


def _gelu_inner(x: ArrayLike) -> ArrayLike:
    with np.errstate(over="ignore"):
        return np.tanh(_GELU_COEFF * (x + 0.044715 * np.power(x, 3)))


class ActivationFunction(str, Enum):
    """Tagged activation variant with ``apply`` and ``derivative``."""

    LINEAR = "Linear"
    SIGMOID = "Sigmoid"
    TANH = "Tanh"
    RELU = "ReLU"
    LEAKY_RELU = "LeakyReLU"
    GELU = "GELU"

    def apply(self, x: ArrayLike) -> ArrayLike:
        """Apply the activation to a value or array."""
        if self is ActivationFunction.LINEAR:
            return x
        if self is ActivationFunction.SIGMOID:
            return _sigmoid(x)
        if self is ActivationFunction.TANH:
            return np.tanh(x)
        if self is ActivationFunction.RELU:
            return np.maximum(x, 0.0)
        if self is ActivationFunction.LEAKY_RELU:
            if isinstance(x, np.ndarray):
                return np.where(x > 0.0, x, LEAKY_SLOPE * x)
            return x if x > 0.0 else LEAKY_SLOPE * x
        # GELU, tanh approximation
        return 0.5 * x * (1.0 + _gelu_inner(x))

    def derivative(self, x: ArrayLike) -> ArrayLike:
        """Derivative of the activation evaluated at the pre-activation value."""
        if self is ActivationFunction.LINEAR:
            return np.ones_like(x) if isinstance(x, np.ndarray) else 1.0
        if self is ActivationFunction.SIGMOID:
            s = _sigmoid(x)
            return s * (1.0 - s)
        if self is ActivationFunction.TANH:
            return 1.0 - np.tanh(x) ** 2
        if self is ActivationFunction.RELU:
            if isinstance(x, np.ndarray):
                return np.where(x > 0.0, 1.0, 0.0)
            return 1.0 if x > 0.0 else 0.0
        if self is ActivationFunction.LEAKY_RELU:
            if isinstance(x, np.ndarray):
                return np.where(x > 0.0, 1.0, LEAKY_SLOPE)
            return 1.0 if x > 0.0 else LEAKY_SLOPE
        # Approximate GELU derivative: cdf + x * pdf
        cdf = 0.5 * (1.0 + _gelu_inner(x))
        with np.errstate(over="ignore", under="ignore"):
            pdf = _GELU_COEFF * np.exp(-0.5 * np.square(x))
        return cdf + x * pdf

    @classmethod
    def parse(cls, value: Union[str, "ActivationFunction"]) -> "ActivationFunction":
        """Resolve an activation from its tag (case-insensitive)."""
        if isinstance(value, ActivationFunction):
            return value
        lowered = str(value).lower()
        for member in cls:
            if member.value.lower() == lowered or member.name.lower() == lowered:
                return member
        raise ValueError(f"Unknown activation function: {value!r}")


__all__ = ["ActivationFunction", "LEAKY_SLOPE"]
