"""Base configuration for all recurrent models."""

class BaseConfig:
    """Shared configuration across all models."""

    # Unrolling
    rho = 20              # BPTT truncation depth (steps)
    single = False        # Score only the last step of each sequence

    # Model architecture
    hidden_size = 8
    init_rule = "glorot"  # Options: glorot, random, zero
    init_seed = 0

    # Training (StandardSGD)
    learning_rate = 0.01
    batch_size = 32
    max_iterations = 200000   # Data points visited; 0 = until tolerance
    tolerance = 1e-6
    shuffle = True
    exact_objective = False
    grad_clip = 5.0
    verbose = True

    # Early Stopping
    early_stopping_patience = 20
    early_stopping_min_delta = 1e-4

    # Evaluation
    predict_batch_size = 256
    log_every = 10            # Epochs between printed objectives

    # Reproducibility
    seed = 0

    # Paths
    log_dir = "logs"
    output_dir = "outputs"
