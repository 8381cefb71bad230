"""Recurrent network container trained with truncated BPTT."""

from __future__ import annotations
from typing import List, Optional, Tuple
import numpy as np

from bptt.core import StateCache, StepState, DimensionMismatchError, NetworkConfigurationError
from bptt.models.layers.base import Layer
from bptt.models.parameters import ParameterStore
from bptt.models.init_rules import RandomInitialization, NetworkInitialization
from bptt.training.losses import MeanSquaredError
from bptt.training.optimizer import StandardSGD


class RNN:
    """
    Ordered stack of layers unrolled over time (batched over columns).

    Data layout for predictors / responses / predictions:
      tensor[i, j, k] = dimension i of data point j at time step k.

    One unroll over a batch [begin, begin+B) with T = min(rho, steps):

      reset_cells()
      for t = 0..T-1:      outputs(t) = layers(x(t))        → state cache
      for t = T-1..0:      e(t) = output_layer.backward(ŷ(t), d(t))
                           backward through layers (reverse), then each
                           layer adds its step gradient into its share

    With single=True only ŷ(T-1) is scored; e(t) is zero for t < T-1 and
    earlier steps only receive error through the recurrent path.

    Objective contract used by the optimizer:
      - num_functions()
      - shuffle()
      - evaluate(parameters, begin, batch_size, deterministic=True) -> loss
      - evaluate_with_gradient(parameters, begin, gradient, batch_size) -> loss
      - gradient(parameters, begin, gradient, batch_size)
    Gradients are summed over time steps and never normalized by T.
    """

    def __init__(self, rho: int, single: bool = False, output_layer=None,
                 initialize_rule=None, seed: Optional[int] = None):
        self._rho = int(rho)
        self.single = single
        self.output_layer = output_layer if output_layer is not None else MeanSquaredError()
        self.initialize_rule = initialize_rule if initialize_rule is not None else RandomInitialization()
        self.rng = np.random.default_rng(seed)

        self.network: List[Layer] = []
        self.store = ParameterStore()
        self.cache = StateCache()

        self.is_reset = False        # shapes resolved and parameters allocated
        self._deterministic = False
        self.input_size: Optional[int] = None
        self.output_size: Optional[int] = None

        self._predictors: Optional[np.ndarray] = None
        self._responses: Optional[np.ndarray] = None

    # ======================== container ========================

    def add(self, layer: Layer) -> Layer:
        """Append a layer; the network owns it from now on."""
        if not isinstance(layer, Layer):
            raise TypeError(f"expected a Layer, got {type(layer).__name__}")
        self.network.append(layer)
        self.is_reset = False   # shapes must be resolved again
        return layer

    @property
    def layers(self) -> Tuple[Layer, ...]:
        return tuple(self.network)

    def clear(self) -> None:
        """Release every layer, last added first."""
        while self.network:
            self.network.pop()
        self.store.allocate([])
        self.cache.clear()
        self.is_reset = False
        self.output_size = None

    def __len__(self) -> int:
        return len(self.network)

    def _resolve_shapes(self, input_size: int) -> List[int]:
        size = input_size
        for layer in self.network:
            size = layer.build(size)
        self.output_size = size
        return [layer.parameter_size() for layer in self.network]

    def reset_parameters(self, input_size: Optional[int] = None) -> None:
        """
        First-use setup: resolve every layer's shape from the input size,
        carve the flat parameter vector and initialize it. A different
        input_size on a built network rebuilds and re-initializes it.
        """
        if not self.network:
            raise NetworkConfigurationError("network has no layers; add() at least one layer first")
        if input_size is None:
            input_size = self.input_size
        if input_size is None and self._predictors is not None:
            input_size = self._predictors.shape[0]
        if input_size is None:
            raise NetworkConfigurationError("input dimensionality unknown; train() or pass input_size")
        if self.is_reset and input_size == self.input_size:
            return

        sizes = self._resolve_shapes(input_size)
        self.input_size = input_size
        self.store.allocate(sizes)
        self.store.bind(self.network)
        NetworkInitialization(self.initialize_rule).initialize(self.network)
        self.is_reset = True

    def reset(self) -> None:
        """
        Zero accumulated gradients, clear recurrent state and re-validate
        the parameter sizing. Parameters are only reallocated (and
        re-initialized) if a layer's shape actually changed.
        """
        if not self.is_reset:
            self.reset_parameters()
        else:
            sizes = self._resolve_shapes(self.input_size)
            if self.store.allocate(sizes):
                self.store.bind(self.network)
                NetworkInitialization(self.initialize_rule).initialize(self.network)
        self.store.zero_gradient()
        self.reset_cells()
        self.cache.clear()

    def reset_cells(self) -> None:
        for layer in self.network:
            layer.reset_cells()

    def _set_deterministic(self, deterministic: bool) -> None:
        self._deterministic = deterministic
        for layer in self.network:
            layer.set_deterministic(deterministic)

    # ======================== accessors ========================

    @property
    def parameters(self) -> np.ndarray:
        return self.store.weights

    @parameters.setter
    def parameters(self, values) -> None:
        self._copy_parameters(values)

    @property
    def rho(self) -> int:
        return self._rho

    @rho.setter
    def rho(self, value: int) -> None:
        self._rho = int(value)

    @property
    def deterministic(self) -> bool:
        return self._deterministic

    @property
    def predictors(self) -> Optional[np.ndarray]:
        return self._predictors

    @predictors.setter
    def predictors(self, values) -> None:
        self._predictors = np.asarray(values, dtype=np.float64)

    @property
    def responses(self) -> Optional[np.ndarray]:
        return self._responses

    @responses.setter
    def responses(self, values) -> None:
        self._responses = np.asarray(values, dtype=np.float64)

    def num_functions(self) -> int:
        """Number of separable functions = number of data points."""
        return 0 if self._responses is None else self._responses.shape[1]

    def summary(self) -> str:
        lines = [f"RNN(rho={self._rho}, single={self.single}, output={type(self.output_layer).__name__})"]
        for i, layer in enumerate(self.network):
            lines.append(f"  [{i}] {layer!r} params={layer.parameter_size()}")
        lines.append(f"  total params: {len(self.store)}")
        return "\n".join(lines)

    # ======================== validation ========================

    def _check_data(self, predictors: np.ndarray, responses: np.ndarray) -> None:
        if predictors.ndim != 3 or responses.ndim != 3:
            raise DimensionMismatchError(
                f"predictors/responses must be (dim, points, time); got {predictors.shape} and {responses.shape}")
        if predictors.shape[1] != responses.shape[1]:
            raise DimensionMismatchError(
                f"{predictors.shape[1]} predictor points vs {responses.shape[1]} response points")
        if not self.single and predictors.shape[2] != responses.shape[2]:
            raise DimensionMismatchError(
                f"{predictors.shape[2]} predictor steps vs {responses.shape[2]} response steps (single=False)")

    def _check_ready(self, begin: int, batch_size: int) -> None:
        if not self.network:
            raise NetworkConfigurationError("network has no layers")
        if self._predictors is None or self._responses is None:
            raise NetworkConfigurationError("no predictors/responses; call train() or set them first")
        if not self.is_reset:
            raise NetworkConfigurationError("parameters not initialized; call train() or reset_parameters()")
        self._check_data(self._predictors, self._responses)
        if self._predictors.shape[0] != self.input_size:
            raise DimensionMismatchError(
                f"predictors have {self._predictors.shape[0]} dims, network expects {self.input_size}")
        n = self._predictors.shape[1]
        if batch_size < 1 or begin < 0 or begin + batch_size > n:
            raise ValueError(f"batch [{begin}, {begin + batch_size}) outside [0, {n})")

    def _copy_parameters(self, parameters) -> None:
        # The optimizer's iterate is never written to; we only copy from it.
        if parameters is self.store.weights:
            return
        parameters = np.asarray(parameters, dtype=self.store.dtype)
        if parameters.size != len(self.store):
            raise DimensionMismatchError(
                f"parameter vector has {parameters.size} entries, network needs {len(self.store)}")
        np.copyto(self.store.weights, parameters.reshape(-1))

    # ======================== engine ========================

    def unroll_length(self, steps: int) -> int:
        """T = min(rho, steps); rho < 1 also falls back to steps."""
        if self._rho < 1 or self._rho > steps:
            return steps
        return self._rho

    def _target(self, t: int, begin: int, batch_size: int, T: int) -> np.ndarray:
        if self.single:
            t = min(T, self._responses.shape[2]) - 1
        return self._responses[:, begin:begin + batch_size, t]

    def _forward(self, step_input: np.ndarray) -> List[np.ndarray]:
        outputs = []
        x = step_input
        for layer in self.network:
            x = layer.forward(x)
            outputs.append(x)
        return outputs

    def _backward(self, state: StepState, error: np.ndarray) -> List[np.ndarray]:
        """errors[l] = dL/d(output of layer l) at this step."""
        L = len(self.network)
        errors: List[Optional[np.ndarray]] = [None] * L
        errors[-1] = error
        for l in range(L - 1, -1, -1):
            layer_input = state.input if l == 0 else state.outputs[l - 1]
            error_in = self.network[l].backward(layer_input, state.outputs[l], errors[l])
            if l > 0:
                errors[l - 1] = error_in
        return errors

    def _accumulate(self, state: StepState, errors: List[np.ndarray]) -> None:
        for l, layer in enumerate(self.network):
            layer_input = state.input if l == 0 else state.outputs[l - 1]
            layer.gradient(layer_input, errors[l])

    def _forward_steps(self, begin: int, batch_size: int) -> Tuple[float, int]:
        """Forward T steps into the state cache; returns (loss, T)."""
        T = self.unroll_length(self._predictors.shape[2])
        self.reset_cells()
        self.cache.clear()

        loss = 0.0
        for t in range(T):
            x_t = self._predictors[:, begin:begin + batch_size, t]
            outputs = self._forward(x_t)
            self.cache.push(x_t, outputs)
            if not self.single or t == T - 1:
                loss += self.output_layer.forward(outputs[-1], self._target(t, begin, batch_size, T))
        return loss, T

    def _backward_steps(self, begin: int, batch_size: int, T: int) -> None:
        """Drain the state cache from t = T-1 down to 0, accumulating gradients."""
        self.store.zero_gradient()
        for t in range(T - 1, -1, -1):
            state = self.cache.pop()
            prediction = state.outputs[-1]
            if self.single and t != T - 1:
                error = np.zeros_like(prediction)
            else:
                error = self.output_layer.backward(prediction, self._target(t, begin, batch_size, T))
            errors = self._backward(state, error)
            self._accumulate(state, errors)

    # ======================== objective ========================

    def evaluate(self, parameters, begin: int, batch_size: int, deterministic: bool = True) -> float:
        """
        Loss over points [begin, begin+batch_size) at `parameters`.
        NaN/Inf are returned as-is.
        """
        self._check_ready(begin, batch_size)
        self._copy_parameters(parameters)
        self._set_deterministic(deterministic)

        loss, _ = self._forward_steps(begin, batch_size)
        self.cache.clear()
        return loss

    def evaluate_with_gradient(self, parameters, begin: int, gradient: np.ndarray, batch_size: int) -> float:
        """Loss plus full BPTT gradient, written into `gradient` in place."""
        self._check_ready(begin, batch_size)
        if gradient.size != len(self.store):
            raise DimensionMismatchError(
                f"gradient buffer has {gradient.size} entries, network needs {len(self.store)}")
        self._copy_parameters(parameters)
        self._set_deterministic(False)

        loss, T = self._forward_steps(begin, batch_size)
        self._backward_steps(begin, batch_size, T)
        np.copyto(gradient, self.store.gradient.reshape(gradient.shape))
        return loss

    def gradient(self, parameters, begin: int, gradient: np.ndarray, batch_size: int) -> None:
        self.evaluate_with_gradient(parameters, begin, gradient, batch_size)

    def shuffle(self) -> None:
        """Apply one random permutation to the point axis of both tensors."""
        if self._predictors is None or self._responses is None:
            raise NetworkConfigurationError("nothing to shuffle; no predictors/responses")
        order = self.rng.permutation(self.num_functions())
        self._predictors = self._predictors[:, order, :]
        self._responses = self._responses[:, order, :]

    # ======================== entry points ========================

    def train(self, predictors, responses, optimizer=None, *callbacks) -> float:
        """
        Fit the parameters with `optimizer` (StandardSGD by default),
        starting from the current parameters. Returns the final objective,
        which may be NaN/Inf if training diverged.
        """
        predictors = np.asarray(predictors, dtype=np.float64)
        responses = np.asarray(responses, dtype=np.float64)
        self._check_data(predictors, responses)
        if not self.network:
            raise NetworkConfigurationError("network has no layers")
        if self.is_reset and predictors.shape[0] != self.input_size:
            raise DimensionMismatchError(
                f"predictors have {predictors.shape[0]} dims, network was built for {self.input_size}; "
                f"call reset_parameters({predictors.shape[0]}) to rebuild it")

        self._predictors = predictors
        self._responses = responses
        self._set_deterministic(True)
        self.reset_parameters(predictors.shape[0])

        if optimizer is None:
            optimizer = StandardSGD()
        return optimizer.optimize(self, self.parameters, *callbacks)

    def predict(self, predictors, batch_size: int = 256) -> np.ndarray:
        """
        Deterministic forward pass over every time step, `batch_size`
        points at a time. Returns (output_dim, points, steps).
        """
        predictors = np.asarray(predictors, dtype=np.float64)
        if predictors.ndim != 3:
            raise DimensionMismatchError(f"predictors must be (dim, points, time); got {predictors.shape}")
        if not self.network:
            raise NetworkConfigurationError("network has no layers")
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if not self.is_reset:
            self.reset_parameters(predictors.shape[0])
        elif predictors.shape[0] != self.input_size:
            raise DimensionMismatchError(
                f"predictors have {predictors.shape[0]} dims, network expects {self.input_size}")

        self._set_deterministic(True)
        _, n, steps = predictors.shape
        results = np.zeros((self.output_size, n, steps), dtype=np.float64)
        for begin in range(0, n, batch_size):
            end = min(begin + batch_size, n)
            self.reset_cells()
            for t in range(steps):
                results[:, begin:end, t] = self._forward(predictors[:, begin:end, t])[-1]
        self.reset_cells()
        return results
