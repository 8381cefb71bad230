"""Flat parameter/gradient storage shared by all layers."""

from __future__ import annotations
from typing import List, Sequence, Tuple
import numpy as np


class ParameterStore:
    """
    Owns one contiguous weight vector and a gradient vector of the same
    length. Each layer gets a non-owning slice of both; the slices are
    only recomputed when the list of layer sizes changes.
    """

    def __init__(self, dtype=np.float64):
        self.dtype = dtype
        self.weights = np.zeros(0, dtype=dtype)
        self.gradient = np.zeros(0, dtype=dtype)
        self.sizes: List[int] = []

    @staticmethod
    def layout(sizes: Sequence[int]) -> List[Tuple[int, int]]:
        """(start, stop) of every layer's share, in network order."""
        offsets = []
        start = 0
        for size in sizes:
            offsets.append((start, start + size))
            start += size
        return offsets

    def allocate(self, sizes: Sequence[int]) -> bool:
        """Resize both buffers if the size list changed; True if reallocated."""
        sizes = [int(s) for s in sizes]
        if sizes == self.sizes and len(self.weights) == sum(sizes):
            return False
        total = sum(sizes)
        self.weights = np.zeros(total, dtype=self.dtype)
        self.gradient = np.zeros(total, dtype=self.dtype)
        self.sizes = sizes
        return True

    def bind(self, layers) -> None:
        assert len(layers) == len(self.sizes), \
            f"{len(layers)} layers but {len(self.sizes)} allocated shares"
        for layer, (start, stop) in zip(layers, self.layout(self.sizes)):
            layer.bind(self.weights[start:stop], self.gradient[start:stop])

    def zero_gradient(self) -> None:
        self.gradient.fill(0.0)

    def __len__(self) -> int:
        return len(self.weights)
