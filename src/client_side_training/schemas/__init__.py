"""Prediction schemas."""

from client_side_training.schemas.prediction import (
    ClassificationPrediction,
    PredictionResult,
)

__all__ = [
    "ClassificationPrediction",
    "PredictionResult",
]
