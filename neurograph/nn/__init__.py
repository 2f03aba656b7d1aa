"""
Neural Network Primitives
=========================

Numpy implementations of the building blocks used by the embedding service
and the knowledge graph:

- ``ActivationFunction``: element-wise activations with derivatives
- ``NeuralNetwork`` / ``NetworkBuilder``: dense feed-forward networks with
  single-example backpropagation
- ``LSTMCell`` / ``GRUCell``: forward-only recurrent transitions
"""

from .activations import ActivationFunction
from .network import LayerConfig, NetworkBuilder, NeuralNetwork, TrainingData
from .recurrent import GateWeights, GRUCell, LSTMCell

__all__ = [
    "ActivationFunction",
    "LayerConfig",
    "NetworkBuilder",
    "NeuralNetwork",
    "TrainingData",
    "GateWeights",
    "GRUCell",
    "LSTMCell",
]
