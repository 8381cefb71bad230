#!/usr/bin/env python
"""
Train a recurrent network with truncated BPTT on a synthetic sequence task.

Usage:
    python scripts/train.py                       # delayed XOR
    python scripts/train.py --task sine
    python scripts/train.py --rho 5 --epochs 50   # shorter truncation, fewer epochs

The mask M only applies to evaluation. Training scores every step, so on
delayed XOR the first tau steps (no target yet) are fitted toward 0.
"""

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

import argparse
import time

from config.rnn_config import DelayedXorConfig, SineConfig
from bptt.data.sequences import delayed_xor, sine_prediction
from bptt.models.rnn import RNN
from bptt.models.init_rules import GlorotInitialization, RandomInitialization, ConstInitialization
from bptt.models.layers.linear import Linear
from bptt.models.layers.recurrent import RecurrentCell
from bptt.models.layers.activation import Sigmoid
from bptt.training.optimizer import StandardSGD
from bptt.training.callbacks import PrintLoss, EarlyStopAtMinLoss, CSVLogging
from bptt.utils.metrics import binary_accuracy, mean_squared_error
from bptt.utils.visualization import plot_loss_history


CONFIGS = {
    'xor': DelayedXorConfig,
    'sine': SineConfig,
}


def build_init_rule(config):
    name = getattr(config, 'init_rule', 'glorot')
    seed = getattr(config, 'init_seed', None)
    if name == 'glorot':
        return GlorotInitialization(seed=seed)
    if name == 'random':
        return RandomInitialization(-0.1, 0.1, seed=seed)
    if name == 'zero':
        return ConstInitialization(0.0)
    raise ValueError(f"Unknown init_rule: {name}")


def build_model(config, output_size):
    model = RNN(
        rho=config.rho,
        single=config.single,
        initialize_rule=build_init_rule(config),
        seed=config.seed,
    )
    model.add(RecurrentCell(config.hidden_size))
    model.add(Linear(output_size))
    if getattr(config, 'output_activation', None) == 'sigmoid':
        model.add(Sigmoid())
    return model


def make_data(task, config, num_points, seed):
    if task == 'xor':
        return delayed_xor(num_points, config.steps, config.tau, seed=seed)
    return sine_prediction(num_points, config.steps, seed=seed, noise=config.noise)


def score(task, predictions, responses, mask):
    if task == 'xor':
        return binary_accuracy(predictions, responses, mask)
    return mean_squared_error(predictions, responses, mask)


def main():
    """Main training function."""
    parser = argparse.ArgumentParser(description='Train an RNN with truncated BPTT')
    parser.add_argument('--task', type=str, default='xor', choices=sorted(CONFIGS))
    parser.add_argument('--rho', type=int, default=None, help='Override truncation depth')
    parser.add_argument('--epochs', type=int, default=None, help='Cap on epochs (sets max_iterations)')
    parser.add_argument('--lr', type=float, default=None, help='Override step size')
    parser.add_argument('--no-plot', action='store_true', help='Skip saving the loss plot')
    args = parser.parse_args()

    config = CONFIGS[args.task]()
    if args.rho is not None:
        config.rho = args.rho
    if args.lr is not None:
        config.learning_rate = args.lr
    if args.epochs is not None:
        config.max_iterations = args.epochs * config.num_train

    print("=" * 60)
    print(f"RNN / BPTT training: task={args.task}")
    print("=" * 60)
    print(f"Config: rho={config.rho}, single={config.single}, hidden={config.hidden_size}")
    print(f"Optimizer: lr={config.learning_rate}, batch_size={config.batch_size}, "
          f"max_iterations={config.max_iterations}, grad_clip={config.grad_clip}")
    print()

    # Data
    X, D, M = make_data(args.task, config, config.num_train, seed=config.seed)
    X_eval, D_eval, M_eval = make_data(args.task, config, config.num_eval, seed=config.seed + 1)
    print(f"Train tensor: {X.shape}, eval tensor: {X_eval.shape}")

    # Model
    model = build_model(config, output_size=D.shape[0])
    model.reset_parameters(X.shape[0])
    print(model.summary())
    print()

    # Logging
    os.makedirs(config.log_dir, exist_ok=True)
    timestamp = time.strftime('%Y%m%d_%H%M%S')
    csv_path = os.path.join(config.log_dir, f'training_log_{args.task}_{timestamp}.csv')
    print(f"CSV logging enabled: {csv_path}")

    optimizer = StandardSGD.from_config(config)
    callbacks = [
        PrintLoss(every=config.log_every),
        EarlyStopAtMinLoss(config.early_stopping_patience, config.early_stopping_min_delta),
        CSVLogging(csv_path, config),
    ]

    print("Starting training...")
    objective = model.train(X, D, optimizer, *callbacks)
    print(f"Final objective: {objective:.6f}")
    print()

    # Evaluation
    print("--- Final Evaluation ---")
    predictions = model.predict(X_eval, batch_size=config.predict_batch_size)
    scores = score(args.task, predictions, D_eval, M_eval)
    if scores['name'] == 'acc':
        print(f"acc={scores['metric']:.2f}% ({scores['correct']}/{scores['total']})")
    else:
        print(f"{scores['name']}={scores['metric']:.6f}")

    if not args.no_plot:
        os.makedirs(config.output_dir, exist_ok=True)
        plot_path = os.path.join(config.output_dir, f'{args.task}_loss.png')
        plot_loss_history(optimizer.history, plot_path, label=f"{args.task} rho={config.rho}")
        print(f"Loss plot saved to {plot_path}")

    print()
    print("Training complete!")


if __name__ == "__main__":
    main()
