"""Head fitting."""

from client_side_training.training.trainer import HeadTrainer

__all__ = ["HeadTrainer"]
