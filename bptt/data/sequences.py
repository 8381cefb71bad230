from __future__ import annotations
from typing import Optional, Tuple
import numpy as np


# -------- Tasks / data generators --------
# All tensors are (dim, points, time).

def delayed_xor(
    num_points: int, steps: int, tau: int, seed: Optional[int] = None,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Returns (X, D, M) with shapes:
      X: (2, N, T)  XOR bit pairs, zero once no target fits in the sequence
      D: (1, N, T)  XOR of the pair shown tau steps earlier, 0 where M is 0
      M: (1, N, T)  0/1 mask for which targets are active at t
    """
    assert tau >= 0 and steps >= 1
    rng = np.random.default_rng(seed)
    X = np.zeros((2, num_points, steps), dtype=float)
    D = np.zeros((1, num_points, steps), dtype=float)
    M = np.zeros((1, num_points, steps), dtype=float)

    xor_inputs  = np.array([[0,0],[0,1],[1,0],[1,1]], dtype=float)
    xor_outputs = np.array([0,1,1,0], dtype=float)

    for t in range(steps - tau):
        idx = rng.integers(4, size=num_points)
        X[:, :, t] = xor_inputs[idx].T
        D[0, :, t + tau] = xor_outputs[idx]
        M[0, :, t + tau] = 1.0
    return X, D, M


def sine_prediction(
    num_points: int, steps: int, seed: Optional[int] = None, noise: float = 0.0,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Next-value prediction on randomly phased sine waves.
      X: (1, N, T)  sin(w t + phase)
      D: (1, N, T)  sin(w (t+1) + phase)
      M: (1, N, T)  all ones
    """
    rng = np.random.default_rng(seed)
    phase = rng.uniform(0.0, 2.0 * np.pi, size=(num_points, 1))
    freq = rng.uniform(0.1, 0.5, size=(num_points, 1))
    t = np.arange(steps + 1)[None, :]
    wave = np.sin(freq * t + phase)
    if noise > 0.0:
        wave = wave + noise * rng.standard_normal(wave.shape)
    X = wave[None, :, :-1].copy()
    D = wave[None, :, 1:].copy()
    M = np.ones_like(D)
    return X, D, M
