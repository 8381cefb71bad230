"""Callbacks for StandardSGD.

A callback may define any of:
    begin_optimization(optimizer, function, coordinates)
    evaluate_with_gradient(optimizer, function, coordinates, objective, gradient)
    end_epoch(optimizer, function, coordinates, epoch, objective) -> bool
    end_optimization(optimizer, function, coordinates)
Returning True from a hook asks the optimizer to stop.
"""

import math
import time

import numpy as np

from bptt.utils.csv_logger import CSVLogger


class PrintLoss:
    """Print the objective every `every` epochs."""

    def __init__(self, every=1):
        self.every = every

    def end_epoch(self, optimizer, function, coordinates, epoch, objective):
        if epoch % self.every == 0:
            print(f"Epoch {epoch:5d} | objective={objective:.6f}")
        return False


class EarlyStopAtMinLoss:
    """Stop when the epoch objective has not improved for `patience` epochs."""

    def __init__(self, patience=10, min_delta=0.0):
        self.patience = patience
        self.min_delta = min_delta
        self.best_objective = math.inf
        self.epochs_without_improvement = 0

    def begin_optimization(self, optimizer, function, coordinates):
        self.best_objective = math.inf
        self.epochs_without_improvement = 0

    def end_epoch(self, optimizer, function, coordinates, epoch, objective):
        if objective < self.best_objective - self.min_delta:
            self.best_objective = objective
            self.epochs_without_improvement = 0
            return False
        self.epochs_without_improvement += 1
        if self.epochs_without_improvement >= self.patience:
            print(f"Early stopping at epoch {epoch} (best objective {self.best_objective:.6f})")
            return True
        return False


class StoreBestCoordinates:
    """Keep a copy of the coordinates with the lowest epoch objective."""

    def __init__(self):
        self.best_objective = math.inf
        self.best_coordinates = None

    def end_epoch(self, optimizer, function, coordinates, epoch, objective):
        if objective < self.best_objective:
            self.best_objective = objective
            self.best_coordinates = np.array(coordinates, copy=True)
        return False


class CSVLogging:
    """Write one CSV row per epoch (objective, gradient norm, timing)."""

    def __init__(self, log_path, config=None):
        self.csv_logger = CSVLogger(log_path, config)
        self.best_objective = math.inf
        self.last_grad_norm = 0.0
        self._start_time = None
        self._epoch_start = None

    def begin_optimization(self, optimizer, function, coordinates):
        self._start_time = time.time()
        self._epoch_start = self._start_time

    def evaluate_with_gradient(self, optimizer, function, coordinates, objective, gradient):
        self.last_grad_norm = float(np.linalg.norm(gradient))
        return False

    def end_epoch(self, optimizer, function, coordinates, epoch, objective):
        now = time.time()
        if self._start_time is None:
            self._start_time = self._epoch_start = now
        is_best = objective < self.best_objective
        if is_best:
            self.best_objective = objective
        self.csv_logger.log_epoch(epoch, {
            'points_seen': epoch * function.num_functions(),
            'objective': objective,
            'best_objective': self.best_objective,
            'is_best': is_best,
            'grad_norm': self.last_grad_norm,
            'epoch_time_seconds': round(now - self._epoch_start, 4),
            'cumulative_time_seconds': round(now - self._start_time, 4),
        })
        self._epoch_start = now
        return False
