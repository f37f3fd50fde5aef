"""Classification inference framework."""

from client_side_training.inference.base import BaseClassificationInferencer
from client_side_training.inference.predictor import Predictor

__all__ = [
    "BaseClassificationInferencer",
    "Predictor",
]
