import math

import numpy as np
import pytest

from neurograph.errors import ConfigurationError, DimensionMismatch
from neurograph.nn import ActivationFunction, LayerConfig, NetworkBuilder, NeuralNetwork, TrainingData

XOR_INPUTS = [[0.0, 0.0], [0.0, 1.0], [1.0, 0.0], [1.0, 1.0]]
XOR_TARGETS = [[0.0], [1.0], [1.0], [0.0]]


def _small_net(seed=0):
    return (
        NetworkBuilder(seed=seed)
        .input_layer(3)
        .hidden_layer_with_activation(5, ActivationFunction.TANH)
        .hidden_layer_with_activation(4, ActivationFunction.GELU)
        .output_layer(2)
        .learning_rate(0.05)
        .build()
    )


def test_builder_requires_two_layers():
    with pytest.raises(ConfigurationError):
        NetworkBuilder().input_layer(3).build()
    with pytest.raises(ConfigurationError):
        NetworkBuilder().build()


def test_builder_rejects_zero_sized_layer():
    with pytest.raises(ConfigurationError):
        NetworkBuilder().input_layer(3).hidden_layer(0).output_layer(1).build()


def test_introspection():
    net = _small_net()
    assert net.num_layers() == 4
    assert net.num_inputs() == 3
    assert net.num_outputs() == 2
    assert net.total_neurons() == 14
    assert net.total_connections() == 3 * 5 + 5 * 4 + 4 * 2
    assert [layer.activation for layer in net.layers] == [
        ActivationFunction.LINEAR,
        ActivationFunction.TANH,
        ActivationFunction.GELU,
        ActivationFunction.LINEAR,
    ]


def test_from_sizes_uses_sigmoid_hidden_and_linear_output():
    net = NeuralNetwork.from_sizes([4, 6, 3], seed=1)
    assert net.layers == (
        LayerConfig(4, ActivationFunction.LINEAR),
        LayerConfig(6, ActivationFunction.SIGMOID),
        LayerConfig(3, ActivationFunction.LINEAR),
    )
    assert net.learning_rate == pytest.approx(0.001)


def test_xavier_bounds_and_zero_biases():
    net = NetworkBuilder(seed=2).input_layer(10).output_layer(6).build()
    weights = np.array(net.get_weights())
    bound = math.sqrt(2.0 / 16)
    assert np.all(np.abs(weights[:60]) <= bound)
    assert np.all(weights[60:] == 0.0)


def test_connection_rate_zero_gives_empty_network():
    net = NetworkBuilder(seed=3).input_layer(4).hidden_layer(4).output_layer(2).connection_rate(0.0).build()
    assert not any(net.get_weights())
    assert net.run([1.0, 2.0, 3.0, 4.0]) == [0.0, 0.0]


def test_connection_rate_is_clamped():
    net = NetworkBuilder(seed=3).input_layer(4).output_layer(4).connection_rate(5.0).build()
    assert np.count_nonzero(net.get_weights()) == 16


def test_run_rejects_wrong_input_length():
    net = _small_net()
    with pytest.raises(DimensionMismatch) as excinfo:
        net.run([1.0, 2.0])
    assert excinfo.value.expected == 3
    assert excinfo.value.actual == 2


def test_train_incremental_rejects_wrong_target_length():
    net = _small_net()
    with pytest.raises(DimensionMismatch):
        net.train_incremental([0.1, 0.2, 0.3], [1.0])


def test_train_rejects_mismatched_example_counts():
    net = _small_net()
    with pytest.raises(DimensionMismatch):
        net.train([[0.1, 0.2, 0.3]], [], epochs=1)


def test_calculate_mse_is_inf_on_count_mismatch():
    net = _small_net()
    assert net.calculate_mse([[0.1, 0.2, 0.3]], []) == float("inf")


def test_train_incremental_reduces_example_error():
    net = _small_net(seed=4)
    x, t = [0.2, -0.4, 0.9], [0.5, -0.5]
    before = net.train_incremental(x, t)
    for _ in range(20):
        after = net.train_incremental(x, t)
    assert after < before


def test_weights_round_trip_reproduces_output():
    net = _small_net(seed=5)
    x = [0.3, -0.1, 0.8]
    expected = net.run(x)
    weights = net.get_weights()

    other = _small_net(seed=99)
    assert other.run(x) != expected
    other.set_weights(weights)
    assert other.run(x) == expected
    assert other.get_weights() == weights


def test_set_weights_rejects_wrong_length():
    net = _small_net()
    weights = net.get_weights()
    with pytest.raises(DimensionMismatch):
        net.set_weights(weights[:-1])
    with pytest.raises(DimensionMismatch):
        net.set_weights(weights + [0.0])


def test_train_stops_early_when_fitted():
    net = NetworkBuilder(seed=6).input_layer(1).output_layer(1).learning_rate(0.1).build()
    errors = net.train([[0.5], [1.0]], [[1.0], [2.0]], epochs=5000)
    assert errors[-1] < 1e-6
    assert len(errors) < 5000


def test_xor_converges():
    setups = [
        (4, 0.3, ActivationFunction.LINEAR),
        (4, 0.5, ActivationFunction.SIGMOID),
        (8, 0.25, ActivationFunction.LINEAR),
    ]
    converged = False
    for seed in range(10):
        for hidden, lr, output_activation in setups:
            net = (
                NetworkBuilder(seed=seed)
                .input_layer(2)
                .hidden_layer_with_activation(hidden, ActivationFunction.SIGMOID)
                .output_layer_with_activation(1, output_activation)
                .learning_rate(lr)
                .build()
            )
            with np.errstate(all="ignore"):
                net.train(XOR_INPUTS, XOR_TARGETS, epochs=1000)
                outputs = [net.run(x)[0] for x in XOR_INPUTS]
            if all(abs(o - t[0]) < 0.3 for o, t in zip(outputs, XOR_TARGETS)):
                converged = True
                break
        if converged:
            break
    assert converged


def test_epoch_error_mostly_non_increasing():
    net = (
        NetworkBuilder(seed=3)
        .input_layer(2)
        .hidden_layer(2)
        .output_layer_with_activation(1, ActivationFunction.SIGMOID)
        .learning_rate(0.01)
        .build()
    )
    # start from a strongly biased output so the descent dominates ordering noise
    weights = net.get_weights()
    weights[-1] = -3.0
    net.set_weights(weights)

    errors = net.train(XOR_INPUTS, XOR_TARGETS, epochs=100)
    assert len(errors) == 100
    non_increasing = sum(1 for a, b in zip(errors, errors[1:]) if b <= a)
    assert non_increasing >= 0.9 * (len(errors) - 1)


def test_training_data_container():
    data = TrainingData()
    assert data.is_empty()
    data.add_example([1.0], [2.0])
    assert len(data) == 1
    with pytest.raises(DimensionMismatch):
        TrainingData(inputs=[[1.0]], outputs=[])


def test_train_on_training_data():
    net = NetworkBuilder(seed=7).input_layer(1).output_layer(1).learning_rate(0.05).build()
    data = TrainingData(inputs=[[1.0]], outputs=[[3.0]])
    errors = net.train_on(data, epochs=10)
    assert errors[-1] < errors[0]


def test_empty_training_set_is_noop():
    net = _small_net()
    before = net.get_weights()
    assert net.train([], [], epochs=10) == []
    assert net.get_weights() == before


def test_checkpoint_round_trip(tmp_path):
    net = _small_net(seed=8)
    path = net.save(tmp_path / "ckpt" / "net.npz")
    loaded = NeuralNetwork.load(path)
    assert loaded.layers == net.layers
    assert loaded.learning_rate == pytest.approx(net.learning_rate)
    assert loaded.run([0.1, 0.2, 0.3]) == net.run([0.1, 0.2, 0.3])
