from __future__ import annotations
from typing import Optional
import numpy as np


# -------- weight initialization rules --------

class RandomInitialization:
    """Uniform in [lower, upper] over the layer's whole share (biases included)."""
    zero_bias = False

    def __init__(self, lower: float = -1.0, upper: float = 1.0, seed: Optional[int] = None):
        assert lower <= upper, "lower must be <= upper"
        self.lower, self.upper = lower, upper
        self.rng = np.random.default_rng(seed)

    def initialize(self, weights: np.ndarray, layer=None) -> None:
        weights[:] = self.rng.uniform(self.lower, self.upper, size=weights.shape)


class ConstInitialization:
    zero_bias = False

    def __init__(self, value: float = 0.0):
        self.value = value

    def initialize(self, weights: np.ndarray, layer=None) -> None:
        weights.fill(self.value)


class GlorotInitialization:
    """
    Glorot/Xavier uniform: limit = sqrt(6 / (fan_in + fan_out)).
    fan_in = share size / fan_out, so a cell's recurrent inputs (m+n) and
    the bias column both count. Layers zero their biases afterwards.
    """
    zero_bias = True

    def __init__(self, seed: Optional[int] = None):
        self.rng = np.random.default_rng(seed)

    def initialize(self, weights: np.ndarray, layer=None) -> None:
        fan_out = layer.out_size if layer is not None else 1
        fan_in = max(1, weights.size // max(1, fan_out))
        limit = np.sqrt(6.0 / (fan_in + fan_out))
        weights[:] = self.rng.uniform(-limit, limit, size=weights.shape)


class NetworkInitialization:
    """Apply one rule to every bound layer, in network order."""

    def __init__(self, rule):
        self.rule = rule

    def initialize(self, layers) -> None:
        for layer in layers:
            layer.initialize(self.rule)
