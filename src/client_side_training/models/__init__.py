"""Classifier head and the trained-head artifact."""

from client_side_training.models.head import HeadClassifier
from client_side_training.models.trained import EpochMetrics, TrainedHead

__all__ = [
    "EpochMetrics",
    "HeadClassifier",
    "TrainedHead",
]
