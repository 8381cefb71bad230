"""Mini-batch SGD for separable objectives."""

import math

import numpy as np
from tqdm import tqdm


def _invoke(callbacks, hook, *args):
    """Call `hook` on every callback that defines it; True if any asks to stop."""
    stop = False
    for callback in callbacks:
        fn = getattr(callback, hook, None)
        if fn is not None and fn(*args):
            stop = True
    return stop


class StandardSGD:
    """Vanilla mini-batch SGD over any separable objective.

    The objective must expose:
        num_functions(), shuffle(),
        evaluate(iterate, begin, batch_size),
        evaluate_with_gradient(iterate, begin, gradient, batch_size)

    `max_iterations` counts visited data points (0 means no limit). An epoch
    is one pass over all num_functions() points. Optimization stops when the
    epoch objective is not finite, when it changes by less than `tolerance`
    between epochs, or when a callback returns True.
    """

    def __init__(self, step_size=0.01, batch_size=32, max_iterations=100000,
                 tolerance=1e-5, shuffle=True, exact_objective=False,
                 grad_clip=None, verbose=False):
        """
        Args:
            step_size: Learning rate
            batch_size: Points per gradient step
            max_iterations: Maximum number of points visited (0 = unlimited)
            tolerance: Minimum epoch-to-epoch objective change
            shuffle: Call function.shuffle() before every epoch
            exact_objective: Recompute the full objective once at the end
            grad_clip: Clip the gradient to this L2 norm (None = off)
            verbose: Show a progress bar and status lines
        """
        assert step_size > 0, "step_size must be > 0"
        assert batch_size >= 1, "batch_size must be >= 1"
        self.step_size = step_size
        self.batch_size = batch_size
        self.max_iterations = max_iterations
        self.tolerance = tolerance
        self.shuffle = shuffle
        self.exact_objective = exact_objective
        self.grad_clip = grad_clip
        self.verbose = verbose

        self.epoch = 0
        self.history = []   # objective summed over each completed epoch

    @classmethod
    def from_config(cls, config):
        return cls(
            step_size=getattr(config, 'learning_rate', 0.01),
            batch_size=getattr(config, 'batch_size', 32),
            max_iterations=getattr(config, 'max_iterations', 100000),
            tolerance=getattr(config, 'tolerance', 1e-5),
            shuffle=getattr(config, 'shuffle', True),
            exact_objective=getattr(config, 'exact_objective', False),
            grad_clip=getattr(config, 'grad_clip', None),
            verbose=getattr(config, 'verbose', False),
        )

    def _clip(self, gradient):
        if self.grad_clip is None:
            return
        gnorm = float(np.linalg.norm(gradient))
        if gnorm > self.grad_clip:
            gradient *= (self.grad_clip / (gnorm + 1e-12))

    def _full_objective(self, function, iterate):
        num_functions = function.num_functions()
        objective = 0.0
        for begin in range(0, num_functions, self.batch_size):
            size = min(self.batch_size, num_functions - begin)
            objective += function.evaluate(iterate, begin, size)
        return objective

    def optimize(self, function, iterate, *callbacks):
        """
        Minimize `function` starting from `iterate`, which is updated in place.

        Returns:
            objective: Last full-epoch objective (or the exact objective when
                exact_objective=True). NaN/Inf means training diverged.
        """
        num_functions = function.num_functions()
        if num_functions == 0:
            raise ValueError("objective has no functions (empty dataset)")

        gradient = np.zeros_like(iterate)
        self.epoch = 0
        self.history = []
        max_points = self.max_iterations if self.max_iterations > 0 else math.inf

        if self.verbose:
            print(f"SGD: {num_functions} points, batch_size={self.batch_size}, "
                  f"step_size={self.step_size}, max_iterations={self.max_iterations}")

        terminate = _invoke(callbacks, 'begin_optimization', self, function, iterate)
        if self.shuffle:
            function.shuffle()

        overall_objective = 0.0
        last_objective = math.inf
        current_function = 0
        visited = 0

        pbar = tqdm(total=None if math.isinf(max_points) else int(max_points),
                    desc='SGD', unit='pt', disable=not self.verbose)
        while visited < max_points and not terminate:
            effective = min(self.batch_size, num_functions - current_function)
            if not math.isinf(max_points):
                effective = min(effective, int(max_points - visited))

            objective = function.evaluate_with_gradient(iterate, current_function, gradient, effective)
            overall_objective += objective
            terminate |= _invoke(callbacks, 'evaluate_with_gradient',
                                 self, function, iterate, objective, gradient)

            self._clip(gradient)
            iterate -= self.step_size * gradient

            visited += effective
            current_function += effective
            pbar.update(effective)

            if current_function < num_functions:
                continue

            # ----- epoch boundary -----
            self.epoch += 1
            self.history.append(overall_objective)
            pbar.set_postfix(epoch=self.epoch, objective=f"{overall_objective:.6f}")
            terminate |= _invoke(callbacks, 'end_epoch', self, function, iterate,
                                 self.epoch, overall_objective)

            if not math.isfinite(overall_objective):
                if self.verbose:
                    print(f"SGD: objective diverged ({overall_objective}); terminating")
                break
            if abs(last_objective - overall_objective) < self.tolerance:
                if self.verbose:
                    print(f"SGD: minimized within tolerance {self.tolerance}; terminating")
                break

            last_objective = overall_objective
            overall_objective = 0.0
            current_function = 0
            if self.shuffle:
                function.shuffle()
        pbar.close()

        if self.exact_objective:
            final = self._full_objective(function, iterate)
        elif self.history:
            final = self.history[-1]
        else:
            final = overall_objective

        _invoke(callbacks, 'end_optimization', self, function, iterate)
        if self.verbose:
            print(f"SGD: {self.epoch} epochs, final objective {final:.6f}")
        return final
