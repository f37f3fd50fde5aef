"""Training callbacks for client_side_training."""

from client_side_training.callbacks.progress import EpochProgressCallback
from client_side_training.callbacks.statistics import (
    LabelDistributionCallback,
    label_distribution_table,
)

__all__ = [
    "EpochProgressCallback",
    "LabelDistributionCallback",
    "label_distribution_table",
]
