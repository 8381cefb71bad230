"""Output layers: turn the last layer's output into a loss and its error."""

import numpy as np


class MeanSquaredError:
    """Squared error summed over units, averaged over the batch columns."""

    def forward(self, prediction, target):
        """
        Args:
            prediction: Network output [out_dim, batch]
            target: Responses for the same step [out_dim, batch]

        Returns:
            loss: Python float
        """
        diff = prediction - target
        return float(np.sum(diff * diff) / target.shape[1])

    def backward(self, prediction, target):
        """Error w.r.t. prediction, same shape as prediction."""
        return 2.0 * (prediction - target) / target.shape[1]


class NegativeLogLikelihood:
    """
    NLL over log-probabilities (use after LogSoftMax).

    Targets are a [1, batch] row of integer class indices (0-based).
    """

    def _labels(self, prediction, target):
        labels = np.asarray(target).reshape(-1).astype(int)
        assert labels.shape[0] == prediction.shape[1], \
            f"{labels.shape[0]} labels for {prediction.shape[1]} columns"
        assert labels.min(initial=0) >= 0 and labels.max(initial=0) < prediction.shape[0], \
            "label out of range"
        return labels

    def forward(self, prediction, target):
        labels = self._labels(prediction, target)
        cols = np.arange(prediction.shape[1])
        return float(-np.sum(prediction[labels, cols]))

    def backward(self, prediction, target):
        labels = self._labels(prediction, target)
        error = np.zeros_like(prediction)
        error[labels, np.arange(prediction.shape[1])] = -1.0
        return error
