from __future__ import annotations
from typing import List, Optional
import numpy as np

from bptt.models.layers.base import Layer


class Dropout(Layer):
    """
    Inverted dropout. Training mode zeroes each unit with probability
    `ratio` and rescales the rest by 1/(1-ratio); deterministic mode is the
    identity.

    Masks are kept per step because backward visits the steps of an unroll
    in reverse.
    """

    def __init__(self, ratio: float = 0.5, seed: Optional[int] = None):
        super().__init__()
        assert 0.0 <= ratio < 1.0, "ratio must be in [0, 1)"
        self.ratio = ratio
        self.rng = np.random.default_rng(seed)
        self._masks: List[np.ndarray] = []

    def reset_cells(self) -> None:
        self._masks.clear()

    def forward(self, input: np.ndarray) -> np.ndarray:
        if self.deterministic or self.ratio == 0.0:
            self.output_parameter = input
            return input
        scale = 1.0 / (1.0 - self.ratio)
        mask = (self.rng.random(input.shape) >= self.ratio) * scale
        self._masks.append(mask)
        self.output_parameter = input * mask
        return self.output_parameter

    def backward(self, input: np.ndarray, output: np.ndarray, error: np.ndarray) -> np.ndarray:
        if self.deterministic or self.ratio == 0.0:
            return error
        return error * self._masks.pop()
