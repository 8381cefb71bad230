"""Layer capability contract shared by every network stage."""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Optional
import numpy as np


class Layer(ABC):
    """
    One stage of the network.

    All matrices are column-major in the data sense: (features, batch).
    Trainable layers receive two non-owning 1-D views from the parameter
    store through bind(); parameter-free layers keep empty views.

    The container calls, per unroll:
      reset_cells() once,
      forward() for t = 0..T-1,
      backward() then gradient() for t = T-1..0.
    gradient() must ADD into the gradient view so that contributions from
    every step are summed.
    """

    def __init__(self):
        self.in_size: Optional[int] = None
        self.out_size: Optional[int] = None
        self.weights = np.zeros(0)
        self.grad = np.zeros(0)
        self.output_parameter: Optional[np.ndarray] = None
        self._deterministic = False

    # ----- shapes / parameters -----

    def build(self, input_size: int) -> int:
        """Resolve shapes from the observed input size; returns output size."""
        # parameter-free by default: output width follows the input
        self.in_size = input_size
        self.out_size = input_size
        return self.out_size

    def parameter_size(self) -> int:
        return 0

    def bind(self, weights: np.ndarray, grad: np.ndarray) -> None:
        assert weights.shape == (self.parameter_size(),), \
            f"{type(self).__name__} expects {self.parameter_size()} weights, got {weights.shape}"
        self.weights = weights
        self.grad = grad

    def initialize(self, rule) -> None:
        if self.parameter_size() > 0:
            rule.initialize(self.weights, self)

    # ----- mode / state -----

    @property
    def deterministic(self) -> bool:
        return self._deterministic

    def set_deterministic(self, deterministic: bool) -> None:
        self._deterministic = deterministic

    def reset_cells(self) -> None:
        pass

    # ----- passes -----

    @abstractmethod
    def forward(self, input: np.ndarray) -> np.ndarray:
        ...

    @abstractmethod
    def backward(self, input: np.ndarray, output: np.ndarray, error: np.ndarray) -> np.ndarray:
        """Error w.r.t. output in, error w.r.t. input out."""
        ...

    def gradient(self, input: np.ndarray, error: np.ndarray) -> None:
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}(in={self.in_size}, out={self.out_size})"
