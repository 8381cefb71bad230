"""Parameter-free elementwise layers."""

from __future__ import annotations
import numpy as np

from bptt.core import Activation, tanh_activation, sigmoid_activation
from bptt.models.layers.base import Layer


class ActivationLayer(Layer):
    def __init__(self, activation: Activation):
        super().__init__()
        self.f = activation

    def forward(self, input: np.ndarray) -> np.ndarray:
        self.output_parameter = self.f.fn(input)
        return self.output_parameter

    def backward(self, input: np.ndarray, output: np.ndarray, error: np.ndarray) -> np.ndarray:
        return self.f.deriv(output) * error


class TanH(ActivationLayer):
    def __init__(self):
        super().__init__(tanh_activation())


class Sigmoid(ActivationLayer):
    def __init__(self):
        super().__init__(sigmoid_activation())


class LogSoftMax(Layer):
    """Column-wise log-softmax; pair with NegativeLogLikelihood."""

    def forward(self, input: np.ndarray) -> np.ndarray:
        shifted = input - input.max(axis=0, keepdims=True)
        self.output_parameter = shifted - np.log(np.exp(shifted).sum(axis=0, keepdims=True))
        return self.output_parameter

    def backward(self, input: np.ndarray, output: np.ndarray, error: np.ndarray) -> np.ndarray:
        return error - np.exp(output) * error.sum(axis=0, keepdims=True)
