"""Fully-connected layers."""

from __future__ import annotations
from typing import Optional
import numpy as np

from bptt.core import DimensionMismatchError
from bptt.models.layers.base import Layer


class Linear(Layer):
    """
    y = W x + b

    View layout: W (out, in) row-major, then b (out,).
    """

    def __init__(self, out_size: int, in_size: Optional[int] = None):
        super().__init__()
        assert out_size >= 1, "out_size must be >= 1"
        self.out_size = out_size
        self.in_size = in_size
        self.declared_in_size = in_size

    def build(self, input_size: int) -> int:
        if self.declared_in_size is not None and self.declared_in_size != input_size:
            raise DimensionMismatchError(
                f"{type(self).__name__} declared in_size={self.declared_in_size}, observed {input_size}")
        self.in_size = input_size
        return self.out_size

    def parameter_size(self) -> int:
        if self.in_size is None:
            return 0
        return self.out_size * self.in_size + self.out_size

    @property
    def W(self) -> np.ndarray:
        return self.weights[: self.out_size * self.in_size].reshape(self.out_size, self.in_size)

    @property
    def b(self) -> np.ndarray:
        return self.weights[self.out_size * self.in_size:].reshape(self.out_size, 1)

    def initialize(self, rule) -> None:
        super().initialize(rule)
        if getattr(rule, "zero_bias", False):
            self.b[:] = 0.0

    def forward(self, input: np.ndarray) -> np.ndarray:
        self.output_parameter = self.W @ input + self.b
        return self.output_parameter

    def backward(self, input: np.ndarray, output: np.ndarray, error: np.ndarray) -> np.ndarray:
        return self.W.T @ error

    def gradient(self, input: np.ndarray, error: np.ndarray) -> None:
        n = self.out_size * self.in_size
        gW = self.grad[:n].reshape(self.out_size, self.in_size)
        gW += error @ input.T
        self.grad[n:] += error.sum(axis=1)


class LinearNoBias(Linear):
    """y = W x"""

    def parameter_size(self) -> int:
        if self.in_size is None:
            return 0
        return self.out_size * self.in_size

    @property
    def b(self) -> np.ndarray:
        return np.zeros((self.out_size, 1), dtype=self.weights.dtype)

    def initialize(self, rule) -> None:
        Layer.initialize(self, rule)

    def gradient(self, input: np.ndarray, error: np.ndarray) -> None:
        gW = self.grad.reshape(self.out_size, self.in_size)
        gW += error @ input.T
