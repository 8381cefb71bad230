"""CSV logger for training metrics and configuration."""

import csv
from datetime import datetime
from pathlib import Path


class CSVLogger:
    """Logger for writing per-epoch training metrics to a CSV file."""

    # config attribute -> column name
    CONFIG_COLUMNS = {
        'rho': 'rho',
        'single': 'single',
        'hidden_size': 'hidden_size',
        'batch_size': 'batch_size',
        'learning_rate': 'step_size',
        'grad_clip': 'grad_clip',
        'tolerance': 'tolerance',
        'seed': 'seed',
    }

    def __init__(self, log_path, config=None):
        """
        Initialize CSV logger.

        Args:
            log_path: Path to CSV file
            config: Training configuration object (optional)
        """
        self.log_path = Path(log_path)
        self.config = config
        self.log_path.parent.mkdir(parents=True, exist_ok=True)

        # Check if file exists to determine if we need to write header
        self.file_exists = self.log_path.exists()

        self.columns = self._get_columns()

        if not self.file_exists:
            self._write_header()

    def _get_columns(self):
        """Define all columns for the CSV file."""
        columns = [
            # Timestamp and identification
            'timestamp',
            'epoch',
            'points_seen',

            # Objective
            'objective',
            'best_objective',
            'is_best',
            'grad_norm',

            # Timing
            'epoch_time_seconds',
            'cumulative_time_seconds',
        ]
        columns.extend(self.CONFIG_COLUMNS.values())
        return columns

    def _write_header(self):
        """Write CSV header."""
        with open(self.log_path, 'w', newline='', encoding='utf-8') as f:
            writer = csv.DictWriter(f, fieldnames=self.columns)
            writer.writeheader()

    def _get_config_params(self):
        """Extract relevant parameters from config."""
        params = {}
        if self.config is None:
            return params
        for attr, column in self.CONFIG_COLUMNS.items():
            if hasattr(self.config, attr):
                params[column] = getattr(self.config, attr)
        return params

    def log(self, metrics):
        """
        Log metrics to CSV file.

        Args:
            metrics: Dictionary of metrics to log
        """
        metrics = dict(metrics)
        if 'timestamp' not in metrics:
            metrics['timestamp'] = datetime.now().strftime('%Y-%m-%d %H:%M:%S')

        for key, value in self._get_config_params().items():
            if key not in metrics:
                metrics[key] = value

        # Missing columns are written as empty strings
        row = {col: metrics.get(col, '') for col in self.columns}

        with open(self.log_path, 'a', newline='', encoding='utf-8') as f:
            writer = csv.DictWriter(f, fieldnames=self.columns)
            writer.writerow(row)

    def log_epoch(self, epoch, metrics):
        """
        Convenience method to log an epoch with standard metrics.

        Args:
            epoch: Epoch number
            metrics: Dictionary of metrics
        """
        metrics = dict(metrics)
        metrics['epoch'] = epoch
        self.log(metrics)

    def read(self):
        """Return all logged rows as a list of dicts (strings)."""
        with open(self.log_path, newline='', encoding='utf-8') as f:
            return list(csv.DictReader(f))
