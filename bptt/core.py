# core.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, List
import numpy as np


class DimensionMismatchError(ValueError):
    """Predictor/response (or parameter) shapes disagree."""


class NetworkConfigurationError(RuntimeError):
    """Network used before it has layers, data, or resolved shapes."""


@dataclass
class Activation:
    fn: Callable[[np.ndarray], np.ndarray]
    deriv: Callable[[np.ndarray], np.ndarray]  # in terms of f(x), not x


def tanh_activation() -> Activation:
    def fn(x: np.ndarray) -> np.ndarray:
        return np.tanh(x)
    def deriv(y: np.ndarray) -> np.ndarray:
        return 1.0 - y*y
    return Activation(fn=fn, deriv=deriv)


def sigmoid_activation() -> Activation:
    def fn(x: np.ndarray) -> np.ndarray:
        return 1.0 / (1.0 + np.exp(-x))
    def deriv(y: np.ndarray) -> np.ndarray:
        return y * (1.0 - y)
    return Activation(fn=fn, deriv=deriv)


def identity_activation() -> Activation:
    return Activation(fn=lambda x: x, deriv=np.ones_like)


@dataclass
class StepState:
    input: np.ndarray          # x(t), (in_dim, batch)
    outputs: List[np.ndarray]  # outputs[l] = layer l output at step t


@dataclass
class StateCache:
    """
    Per-step forward record for one unroll.

    Forward pushes one StepState per time step; backward pops them in
    reverse, so after a full backward pass the cache is empty again.
    """
    steps: List[StepState] = field(default_factory=list)

    def push(self, step_input: np.ndarray, outputs: List[np.ndarray]) -> None:
        self.steps.append(StepState(input=step_input, outputs=list(outputs)))

    def pop(self) -> StepState:
        if not self.steps:
            raise IndexError("pop from an empty state cache")
        return self.steps.pop()

    def step(self, t: int) -> StepState:
        return self.steps[t]

    def clear(self) -> None:
        self.steps.clear()

    def __len__(self) -> int:
        return len(self.steps)
