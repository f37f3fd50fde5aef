"""Abstract base class for classification inferencers."""

from __future__ import annotations

from abc import ABC, abstractmethod

from PIL import Image

from client_side_training.models.trained import TrainedHead
from client_side_training.schemas.prediction import PredictionResult


class BaseClassificationInferencer(ABC):
    """Base class for inferencers that run a trained head.

    Subclasses must implement ``predict`` (single image).  ``predict_batch``
    defaults to calling ``predict`` once per image.
    """

    @abstractmethod
    def predict(
        self, image: Image.Image | None, head: TrainedHead | None
    ) -> PredictionResult:
        """Run inference on a single image against ``head``."""

    def predict_batch(
        self, images: list[Image.Image], head: TrainedHead | None
    ) -> list[PredictionResult]:
        """Run inference on each image in turn."""
        return [self.predict(image, head) for image in images]
