"""Scorers for (dim, points, time) prediction tensors."""

from __future__ import annotations
from typing import Dict, Optional
import numpy as np


def _mask_like(responses: np.ndarray, mask: Optional[np.ndarray]) -> np.ndarray:
    if mask is None:
        return np.ones_like(responses)
    assert mask.shape == responses.shape, f"mask {mask.shape} vs responses {responses.shape}"
    return mask


def binary_accuracy(
    predictions: np.ndarray,
    responses: np.ndarray,
    mask: Optional[np.ndarray] = None,
    threshold: float = 0.5,
) -> Dict[str, float]:
    M = _mask_like(responses, mask)
    preds = (predictions > threshold).astype(int)
    masked = (M == 1.0)
    total = int(masked.sum())
    correct = int(((preds == responses.astype(int)) & masked).sum())
    acc = (100.0 * correct / total) if total > 0 else 0.0
    return {"name": "acc", "metric": acc, "correct": correct, "total": total}


def mean_squared_error(
    predictions: np.ndarray,
    responses: np.ndarray,
    mask: Optional[np.ndarray] = None,
) -> Dict[str, float]:
    M = _mask_like(responses, mask)
    diff = (predictions - responses)
    se = float(((diff * diff) * M).sum())
    count = int(M.sum())
    mse = (se / count) if count > 0 else 0.0
    return {"name": "mse", "metric": mse, "count": count}
