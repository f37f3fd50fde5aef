"""Prediction result schema.

One result per query image: the top label, the full label -> probability
mapping over the head's label index, and the same entries ranked.
"""

from __future__ import annotations

from pydantic import BaseModel


class ClassificationPrediction(BaseModel, frozen=True):
    """A single classification prediction."""

    class_id: int
    label: str
    confidence: float


class PredictionResult(BaseModel, frozen=True):
    """Full prediction for one image.

    ``confidences`` has one entry per label of the trained head's label
    index and sums to ~1.  ``ranked`` is sorted by descending confidence,
    ties by lower class id.
    """

    label: str
    confidences: dict[str, float]
    ranked: list[ClassificationPrediction]

    @property
    def confidence(self) -> float:
        return self.confidences[self.label]
