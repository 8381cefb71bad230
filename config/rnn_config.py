"""Task configurations for recurrent models."""

from .base_config import BaseConfig


class DelayedXorConfig(BaseConfig):
    """Recall the XOR of a bit pair seen `tau` steps earlier."""

    # Data
    num_train = 512
    num_eval = 256
    steps = 20
    tau = 4

    # Model architecture
    hidden_size = 16
    output_activation = "sigmoid"

    # Training
    rho = 20
    learning_rate = 0.05


class SineConfig(BaseConfig):
    """Predict the next value of a sine wave."""

    # Data
    num_train = 256
    num_eval = 128
    steps = 30
    noise = 0.0

    # Model architecture
    hidden_size = 8
    output_activation = None

    # Training
    rho = 10
    learning_rate = 0.01
