"""Training curve plots."""

from pathlib import Path

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt


def plot_loss_history(history, save_path, label='rnn', metric_marks=None, metric_values=None,
                      metric_name='Accuracy (%)'):
    """
    Plot the per-epoch objective and, optionally, a metric sampled at some epochs.

    Args:
        history: List of epoch objectives
        save_path: Where to write the PNG
        label: Legend label
        metric_marks: Epochs at which the metric was sampled
        metric_values: Metric values at those epochs
        metric_name: Y-axis label for the metric panel

    Returns:
        fig: Matplotlib figure
    """
    save_path = Path(save_path)
    save_path.parent.mkdir(parents=True, exist_ok=True)

    fig, ax = plt.subplots(1, 2, figsize=(11, 4.5))
    ax[0].plot(range(1, len(history) + 1), history, label=label)
    ax[0].set_title(f"[{label}] Training objective (sum per epoch)")
    ax[0].set_xlabel("Epoch"); ax[0].set_ylabel("Objective"); ax[0].legend()

    if metric_marks and metric_values:
        ax[1].plot(metric_marks, metric_values, marker=".", linestyle="-", label=label)
        ax[1].set_title(f"[{label}] Evaluation")
        ax[1].set_xlabel("Epoch"); ax[1].set_ylabel(metric_name); ax[1].legend()
    else:
        ax[1].text(0.5, 0.5, f"[{label}] Metric snapshots unavailable",
                   ha="center", va="center", transform=ax[1].transAxes)
        ax[1].set_axis_off()

    plt.tight_layout()
    fig.savefig(save_path, dpi=150)
    plt.close(fig)
    return fig
