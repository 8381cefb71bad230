from __future__ import annotations
from typing import List, Optional
import numpy as np

from bptt.core import Activation, tanh_activation
from bptt.models.layers.base import Layer


class RecurrentCell(Layer):
    """
    Discrete-time (Elman) recurrent cell, batched over columns:

      x(t) = [x_in(t); h(t-1)]  ∈ R^{m+n}
      s(t) = W x(t) + b          ∈ R^{n}
      h(t) = f(s(t))             ∈ R^{n}

    View layout: W (n, m+n) row-major, then b (n,).

    The cell owns its hidden-state history for the current unroll. During
    backward it carries e_rec(t) = (W^T δ(t+1))[m:] from step t+1 into
    step t, which is added to the error arriving from the layer above.
    """

    def __init__(self, hidden_size: int, activation: Optional[Activation] = None):
        super().__init__()
        assert hidden_size >= 1, "hidden_size must be >= 1"
        self.out_size = hidden_size
        self.f = activation or tanh_activation()

        self._x_hist: List[np.ndarray] = []   # x(t)
        self._h_hist: List[np.ndarray] = []   # h(t)
        self._cursor = 0                      # step of the latest backward call
        self._recurrent_error: Optional[np.ndarray] = None
        self._delta: Optional[np.ndarray] = None

    # ----- shapes -----

    def build(self, input_size: int) -> int:
        self.in_size = input_size
        return self.out_size

    def parameter_size(self) -> int:
        if self.in_size is None:
            return 0
        n, m = self.out_size, self.in_size
        return n * (m + n) + n

    @property
    def W(self) -> np.ndarray:
        n, m = self.out_size, self.in_size
        return self.weights[: n * (m + n)].reshape(n, m + n)

    @property
    def b(self) -> np.ndarray:
        n, m = self.out_size, self.in_size
        return self.weights[n * (m + n):].reshape(n, 1)

    def initialize(self, rule) -> None:
        super().initialize(rule)
        if getattr(rule, "zero_bias", False):
            self.b[:] = 0.0

    # ----- state -----

    def reset_cells(self) -> None:
        self._x_hist.clear()
        self._h_hist.clear()
        self._cursor = 0
        self._recurrent_error = None
        self._delta = None

    def zero_state(self, batch_size: int) -> np.ndarray:
        return np.zeros((self.out_size, batch_size), dtype=self.weights.dtype)

    # ----- passes -----

    def forward(self, input: np.ndarray) -> np.ndarray:
        h_prev = self._h_hist[-1] if self._h_hist else self.zero_state(input.shape[1])
        x_t = np.concatenate([input, h_prev], axis=0)   # (m+n, batch)
        h_t = self.f.fn(self.W @ x_t + self.b)         # (n, batch)

        self._x_hist.append(x_t)
        self._h_hist.append(h_t)
        self._cursor = len(self._h_hist)
        self.output_parameter = h_t
        return h_t

    def backward(self, input: np.ndarray, output: np.ndarray, error: np.ndarray) -> np.ndarray:
        assert self._cursor > 0, "backward called more times than forward"
        self._cursor -= 1

        if self._recurrent_error is not None:
            error = error + self._recurrent_error
        delta = self.f.deriv(output) * error          # δ(t), (n, batch)

        e_full = self.W.T @ delta                     # (m+n, batch)
        m = self.in_size
        self._recurrent_error = e_full[m:]
        self._delta = delta
        return e_full[:m]

    def gradient(self, input: np.ndarray, error: np.ndarray) -> None:
        n, m = self.out_size, self.in_size
        x_t = self._x_hist[self._cursor]
        gW = self.grad[: n * (m + n)].reshape(n, m + n)
        gW += self._delta @ x_t.T
        self.grad[n * (m + n):] += self._delta.sum(axis=1)
