import numpy as np
import pytest

from neurograph.errors import ConfigurationError, DimensionMismatch
from neurograph.nn import GRUCell, LSTMCell


def test_lstm_shapes_and_bounds():
    cell = LSTMCell(3, 5, seed=0)
    h, c = cell.forward([0.5, -1.0, 2.0], [0.0] * 5, [0.0] * 5)
    assert len(h) == 5 and len(c) == 5
    # h = o * tanh(c) with o in (0, 1)
    assert all(abs(v) < 1.0 for v in h)


def test_lstm_matches_gate_equations():
    cell = LSTMCell(2, 3, seed=1)
    x = np.array([0.3, -0.7])
    h = np.array([0.1, 0.2, -0.1])
    c = np.array([0.5, -0.5, 0.0])

    def sig(z):
        return 1.0 / (1.0 + np.exp(-z))

    f = sig(cell.forget_gate.pre_activation(x, h))
    i = sig(cell.input_gate.pre_activation(x, h))
    cand = np.tanh(cell.candidate_gate.pre_activation(x, h))
    o = sig(cell.output_gate.pre_activation(x, h))
    expected_c = f * c + i * cand
    expected_h = o * np.tanh(expected_c)

    new_h, new_c = cell.forward(x, h, c)
    np.testing.assert_allclose(new_c, expected_c, rtol=1e-9, atol=1e-12)
    np.testing.assert_allclose(new_h, expected_h, rtol=1e-9, atol=1e-12)


def test_gru_matches_gate_equations():
    cell = GRUCell(2, 3, seed=2)
    x = np.array([1.0, 0.5])
    h = np.array([0.2, -0.3, 0.4])

    def sig(z):
        return 1.0 / (1.0 + np.exp(-z))

    r = sig(cell.reset_gate.pre_activation(x, h))
    z = sig(cell.update_gate.pre_activation(x, h))
    n = np.tanh(cell.new_gate.pre_activation(x, r * h))
    expected = (1.0 - z) * h + z * n

    np.testing.assert_allclose(cell.forward(x, h), expected, rtol=1e-9, atol=1e-12)


def test_gate_biases_start_at_zero():
    cell = GRUCell(4, 6, seed=3)
    for gate in (cell.reset_gate, cell.update_gate, cell.new_gate):
        assert gate.input_weights.shape == (6, 4)
        assert gate.hidden_weights.shape == (6, 6)
        assert not gate.bias.any()


def test_cells_are_deterministic_per_seed():
    a = LSTMCell(3, 4, seed=11)
    b = LSTMCell(3, 4, seed=11)
    args = ([0.1, 0.2, 0.3], [0.0] * 4, [0.0] * 4)
    assert a.forward(*args) == b.forward(*args)


def test_wrong_state_size_is_rejected():
    cell = GRUCell(2, 3, seed=4)
    with pytest.raises(DimensionMismatch):
        cell.forward([1.0, 2.0], [0.0, 0.0])
    with pytest.raises(DimensionMismatch):
        cell.forward([1.0], [0.0, 0.0, 0.0])


def test_non_positive_sizes_are_rejected():
    with pytest.raises(ConfigurationError):
        LSTMCell(0, 3)
