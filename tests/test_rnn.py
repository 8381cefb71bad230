#!/usr/bin/env python
"""
Test the RNN container: unrolling, truncation, single mode, error
injection, gradient accumulation, prediction and the objective contract.

Usage:
    python tests/test_rnn.py
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import numpy as np

from bptt.core import StateCache, DimensionMismatchError, NetworkConfigurationError
from bptt.models.rnn import RNN
from bptt.models.init_rules import ConstInitialization, RandomInitialization
from bptt.models.layers.base import Layer
from bptt.models.layers.linear import Linear
from bptt.models.layers.recurrent import RecurrentCell
from bptt.models.layers.dropout import Dropout

RNG = np.random.default_rng(7)


class Probe(Layer):
    """Identity layer that records every call it receives."""

    def __init__(self):
        super().__init__()
        self.forward_calls = 0
        self.backward_errors = []
        self.deterministic_history = []

    def set_deterministic(self, deterministic):
        super().set_deterministic(deterministic)
        self.deterministic_history.append(deterministic)

    def forward(self, input):
        self.forward_calls += 1
        self.output_parameter = input
        return input

    def backward(self, input, output, error):
        self.backward_errors.append(error.copy())
        return error


class Scale(Layer):
    """y = a * x with one parameter; records each step's gradient contribution."""

    def __init__(self):
        super().__init__()
        self.contributions = []

    def parameter_size(self):
        return 1

    def forward(self, input):
        return self.weights[0] * input

    def backward(self, input, output, error):
        return self.weights[0] * error

    def gradient(self, input, error):
        step = float(np.sum(error * input))
        self.contributions.append(step)
        self.grad[0] += step


def make_data(dim=2, points=4, steps=3, out_dim=1):
    X = RNG.normal(size=(dim, points, steps))
    D = RNG.normal(size=(out_dim, points, steps))
    return X, D


def ready(model, X, D):
    """Attach data and resolve shapes without running an optimizer."""
    model.predictors = X
    model.responses = D
    model.reset_parameters(X.shape[0])
    return model


def test_end_to_end_zero_network():
    """Zero data and zero weights: constant prediction, closed-form loss."""
    print("=" * 60)
    print("Testing degenerate end-to-end case")
    print("=" * 60)

    model = RNN(rho=3, single=False, initialize_rule=ConstInitialization(0.0))
    model.add(RecurrentCell(4))
    output = model.add(Linear(2))
    X = np.zeros((2, 4, 3))
    D = np.zeros((2, 4, 3))
    ready(model, X, D)

    loss = model.evaluate(model.parameters, 0, 4)
    assert np.isfinite(loss) and loss == 0.0
    results = model.predict(X)
    assert results.shape == (2, 4, 3)
    assert not np.any(results)
    print("✓ All-zero network: output (2, 4, 3), loss 0")

    # Bias-only output: predicts c everywhere
    c = 0.5
    output.b[:] = c
    loss = model.evaluate(model.parameters, 0, 4)
    # per step: sum(c^2 over 2 units x 4 points) / 4 points, over 3 steps
    np.testing.assert_allclose(loss, 3 * (2 * 4 * c * c) / 4)
    np.testing.assert_allclose(model.predict(X), np.full((2, 4, 3), c))
    print(f"✓ Bias-only network: loss {loss:.3f} matches closed form")
    print()


def test_truncation_clamps_to_sequence_length():
    """rho > steps unrolls steps; rho < steps unrolls rho; rho < 1 unrolls steps."""
    print("=" * 60)
    print("Testing truncation depth")
    print("=" * 60)

    for rho, steps, expected in [(10, 3, 3), (2, 5, 2), (0, 4, 4)]:
        model = RNN(rho=rho)
        probe = model.add(Probe())
        X, D = make_data(steps=steps, out_dim=2)
        ready(model, X, D)

        model.evaluate(model.parameters, 0, 4)
        assert probe.forward_calls == expected, (rho, steps, probe.forward_calls)

        gradient = np.zeros_like(model.parameters)
        model.evaluate_with_gradient(model.parameters, 0, gradient, 4)
        assert len(probe.backward_errors) == expected
        assert model.rho == rho  # never mutated
        assert len(model.cache) == 0  # backward drained the cache
        print(f"✓ rho={rho}, steps={steps} -> {expected} steps")
    print()


def test_single_mode_error_only_at_last_step():
    """In single mode the output error is injected at t = T-1 only."""
    print("=" * 60)
    print("Testing single mode")
    print("=" * 60)

    model = RNN(rho=4, single=True, initialize_rule=RandomInitialization(seed=1))
    cell = model.add(RecurrentCell(3))
    model.add(Linear(1))
    probe = model.add(Probe())

    X = RNG.normal(size=(2, 5, 4))
    D = RNG.normal(size=(1, 5, 1))  # one target per sequence
    ready(model, X, D)

    gradient = np.zeros_like(model.parameters)
    model.evaluate_with_gradient(model.parameters, 0, gradient, 5)

    errors = probe.backward_errors  # recorded t = T-1 first
    assert len(errors) == 4
    assert np.any(errors[0] != 0.0)
    for e in errors[1:]:
        assert not np.any(e), "no direct output error before the final step"
    assert np.any(gradient[:cell.parameter_size()] != 0.0)
    print("✓ Output error only at the final step")
    print("✓ Earlier steps still receive recurrent error")

    # Evaluate scores only the final prediction
    predictions = model.predict(X)
    expected = np.sum((predictions[:, :, -1] - D[:, :, 0]) ** 2) / 5
    np.testing.assert_allclose(model.evaluate(model.parameters, 0, 5), expected)
    print("✓ Evaluate scores only the last step")
    print()


def test_gradient_is_sum_of_step_contributions():
    """Each layer's slice equals the sum of its per-step contributions."""
    print("=" * 60)
    print("Testing gradient accumulation over time")
    print("=" * 60)

    model = RNN(rho=5, initialize_rule=ConstInitialization(0.7))
    first = model.add(Scale())
    second = model.add(Scale())
    X, D = make_data(dim=1, points=3, steps=5)
    ready(model, X, D)

    gradient = np.zeros_like(model.parameters)
    model.evaluate_with_gradient(model.parameters, 0, gradient, 3)

    assert len(first.contributions) == 5
    np.testing.assert_allclose(gradient[0], sum(first.contributions))
    np.testing.assert_allclose(gradient[1], sum(second.contributions))

    # closed form for y = a2 * a1 * x with MSE, no division by T
    a = 0.7
    pred = a * a * X
    dy = 2 * (pred - D) / 3
    np.testing.assert_allclose(gradient[1], np.sum(dy * a * X))
    np.testing.assert_allclose(gradient[0], np.sum(dy * a * X))
    print("✓ Gradient slices equal summed step contributions")

    # a second call starts from zero again
    first.contributions.clear()
    model.evaluate_with_gradient(model.parameters, 0, gradient, 3)
    np.testing.assert_allclose(gradient[0], sum(first.contributions))
    print("✓ Gradient buffer reset between calls")
    print()


def test_predict_is_deterministic_and_chunked():
    """Deterministic predict is bit-identical across calls and batch sizes."""
    print("=" * 60)
    print("Testing predict")
    print("=" * 60)

    model = RNN(rho=3, initialize_rule=RandomInitialization(seed=2))
    model.add(RecurrentCell(6))
    model.add(Dropout(0.5, seed=0))
    model.add(Linear(2))
    X = RNG.normal(size=(3, 10, 7))

    first = model.predict(X, batch_size=4)
    second = model.predict(X, batch_size=4)
    assert first.shape == (2, 10, 7)  # all steps, not just rho
    assert np.array_equal(first, second)
    assert model.deterministic
    print("✓ Idempotent in deterministic mode")

    whole = model.predict(X, batch_size=256)
    np.testing.assert_allclose(first, whole, rtol=0, atol=1e-12)
    print("✓ Chunking does not change the result")
    print()


def test_evaluate_modes_reach_every_layer():
    model = RNN(rho=2)
    probe = model.add(Probe())
    X, D = make_data(out_dim=2)
    ready(model, X, D)

    model.evaluate(model.parameters, 0, 4)
    assert probe.deterministic_history[-1] is True
    model.evaluate(model.parameters, 0, 4, deterministic=False)
    assert probe.deterministic_history[-1] is False
    gradient = np.zeros(0)
    model.evaluate_with_gradient(model.parameters, 0, gradient, 4)
    assert probe.deterministic_history[-1] is False
    print("✓ Deterministic flag pushed to every layer")


def test_shuffle_preserves_pairing():
    """After shuffle, predictor i and response i come from the same point."""
    print("=" * 60)
    print("Testing shuffle")
    print("=" * 60)

    model = RNN(rho=2, seed=11)
    model.add(Linear(1))
    points = 50
    ids = np.arange(points, dtype=float)
    X = np.broadcast_to(ids[None, :, None], (2, points, 3)).copy()
    D = np.broadcast_to(-ids[None, :, None], (1, points, 3)).copy()
    ready(model, X, D)

    model.shuffle()
    assert not np.array_equal(model.predictors[0, :, 0], ids)
    np.testing.assert_array_equal(model.predictors[0, :, 0], -model.responses[0, :, 0])
    np.testing.assert_array_equal(np.sort(model.predictors[0, :, 0]), ids)
    np.testing.assert_array_equal(X[0, :, 0], ids)  # caller's tensor untouched
    print("✓ Pairing preserved under permutation")
    print()


def test_evaluate_does_not_write_callers_parameters():
    model = RNN(rho=3, initialize_rule=RandomInitialization(seed=5))
    model.add(RecurrentCell(2))
    model.add(Linear(1))
    X, D = make_data()
    ready(model, X, D)

    candidate = RNG.normal(size=model.parameters.shape)
    snapshot = candidate.copy()
    gradient = np.zeros_like(candidate)
    loss = model.evaluate_with_gradient(candidate, 0, gradient, 4)

    np.testing.assert_array_equal(candidate, snapshot)
    np.testing.assert_array_equal(model.parameters, candidate)
    np.testing.assert_allclose(model.evaluate(candidate, 0, 4), loss)
    print("✓ Candidate parameters copied in, never modified")


def test_dimension_mismatch_fails_fast():
    print("=" * 60)
    print("Testing error handling")
    print("=" * 60)

    model = RNN(rho=3)
    probe = model.add(Probe())
    X = np.zeros((2, 4, 3))

    bad_pairs = [
        (X, np.zeros((2, 5, 3))),   # point axis
        (X, np.zeros((2, 4, 2))),   # time axis (single=False)
        (np.zeros((2, 4)), np.zeros((2, 4))),
    ]
    for predictors, responses in bad_pairs:
        try:
            model.train(predictors, responses)
            raise AssertionError("Should have raised DimensionMismatchError")
        except DimensionMismatchError:
            pass
    assert probe.forward_calls == 0
    print("✓ Shape disagreements rejected before any computation")

    single = RNN(rho=3, single=True)
    single.add(Linear(1))
    ready(single, X, np.zeros((1, 4, 1)))
    assert np.isfinite(single.evaluate(single.parameters, 0, 4))
    print("✓ Single mode accepts a shorter response time axis")

    ready(model, X, np.zeros((2, 4, 3)))
    try:
        model.evaluate(np.zeros(5), 0, 4)
        raise AssertionError("Should have raised DimensionMismatchError")
    except DimensionMismatchError:
        print("✓ Wrong parameter length rejected")
    print()


def test_unconfigured_network_fails():
    empty = RNN(rho=3)
    for call in (lambda: empty.predict(np.zeros((2, 4, 3))),
                 lambda: empty.train(np.zeros((2, 4, 3)), np.zeros((1, 4, 3)))):
        try:
            call()
            raise AssertionError("Should have raised NetworkConfigurationError")
        except NetworkConfigurationError:
            pass
    print("✓ No layers rejected")

    model = RNN(rho=3)
    model.add(Linear(1))
    try:
        model.evaluate(np.zeros(3), 0, 4)
        raise AssertionError("Should have raised NetworkConfigurationError")
    except NetworkConfigurationError:
        print("✓ Evaluate before data/shape resolution rejected")

    model.predictors = np.zeros((2, 4, 3))
    model.responses = np.zeros((1, 4, 3))
    try:
        model.evaluate(np.zeros(3), 0, 4)
        raise AssertionError("Should have raised NetworkConfigurationError")
    except NetworkConfigurationError:
        print("✓ Evaluate before shapes are resolved rejected")


def test_non_finite_objective_propagates():
    model = RNN(rho=2, initialize_rule=ConstInitialization(0.0))
    model.add(Linear(1))
    X = np.zeros((1, 2, 2))
    D = np.zeros((1, 2, 2))
    D[0, 0, 1] = np.nan
    ready(model, X, D)

    assert np.isnan(model.evaluate(model.parameters, 0, 2))
    gradient = np.zeros_like(model.parameters)
    assert np.isnan(model.evaluate_with_gradient(model.parameters, 0, gradient, 2))
    assert np.isnan(gradient).any()
    print("✓ NaN returned as-is")


def test_num_functions_and_batch_bounds():
    model = RNN(rho=2)
    model.add(Linear(1))
    assert model.num_functions() == 0
    X, D = make_data(points=6)
    ready(model, X, D)
    assert model.num_functions() == 6
    try:
        model.evaluate(model.parameters, 4, 3)
        raise AssertionError("Should have raised ValueError")
    except ValueError:
        print("✓ Out-of-range batch rejected")


def test_state_cache_and_gradient_entry_point():
    """Cache order, empty pop, gradient() and the layer summary."""
    cache = StateCache()
    cache.push(np.zeros((2, 1)), [np.ones((3, 1))])
    cache.push(np.ones((2, 1)), [np.zeros((3, 1))])
    assert len(cache) == 2
    np.testing.assert_array_equal(cache.step(0).input, np.zeros((2, 1)))
    np.testing.assert_array_equal(cache.pop().input, np.ones((2, 1)))
    cache.clear()
    try:
        cache.pop()
        raise AssertionError("Should have raised IndexError")
    except IndexError:
        print("✓ Empty state cache pop rejected")

    model = RNN(rho=3, initialize_rule=RandomInitialization(-0.3, 0.3, seed=2))
    model.add(RecurrentCell(3))
    model.add(Linear(1))
    X, D = make_data()
    ready(model, X, D)

    expected = np.zeros_like(model.parameters)
    model.evaluate_with_gradient(model.parameters, 0, expected, 4)
    via_gradient = np.zeros_like(model.parameters)
    model.gradient(model.parameters, 0, via_gradient, 4)
    np.testing.assert_array_equal(via_gradient, expected)
    assert len(model.cache) == 0

    text = model.summary()
    assert "RecurrentCell" in text and f"total params: {len(model.parameters)}" in text
    print("✓ gradient() matches evaluate_with_gradient(); summary lists layers")


def main():
    """Run all tests."""
    print()
    print("Testing RNN container")
    print()

    test_end_to_end_zero_network()
    test_truncation_clamps_to_sequence_length()
    test_single_mode_error_only_at_last_step()
    test_gradient_is_sum_of_step_contributions()
    test_predict_is_deterministic_and_chunked()
    test_evaluate_modes_reach_every_layer()
    test_shuffle_preserves_pairing()
    test_evaluate_does_not_write_callers_parameters()
    test_dimension_mismatch_fails_fast()
    test_unconfigured_network_fails()
    test_non_finite_objective_propagates()
    test_num_functions_and_batch_bounds()
    test_state_cache_and_gradient_entry_point()

    print("=" * 60)
    print("All tests passed!")
    print("=" * 60)
    print()


if __name__ == "__main__":
    main()
