"""Embedding + trained head inferencer."""

from __future__ import annotations

from loguru import logger
from PIL import Image

from client_side_training.errors import (
    FeatureDimensionMismatch,
    HeadNotTrained,
    LabelMappingInconsistent,
    NoTestImage,
)
from client_side_training.extractors.adapter import FeatureExtractorAdapter
from client_side_training.inference.base import BaseClassificationInferencer
from client_side_training.models.trained import TrainedHead
from client_side_training.schemas.prediction import (
    ClassificationPrediction,
    PredictionResult,
)


class Predictor(BaseClassificationInferencer):
    """Extract one feature vector, run it through a trained head.

    The probability vector is zipped with the head's own label index, never
    with the dataset's current labels, so a head keeps answering in the
    label space it was trained on.

    Args:
        adapter: Shared feature extractor (same one used for training).
    """

    def __init__(self, adapter: FeatureExtractorAdapter) -> None:
        self.adapter = adapter

    def predict(
        self, image: Image.Image | None, head: TrainedHead | None
    ) -> PredictionResult:
        if head is None or head.released:
            raise HeadNotTrained(
                "Head model is not trained yet. Train the head model first."
            )
        if image is None:
            raise NoTestImage("Pick a test image first.")

        feature = self.adapter.extract(image)
        if feature.shape[0] != head.input_dim:
            raise FeatureDimensionMismatch(head.input_dim, int(feature.shape[0]))

        probs_tensor = head.predict_proba(feature.unsqueeze(0))[0]
        probs: list[float] = probs_tensor.tolist()
        del feature, probs_tensor
        return self._probs_to_result(probs, head)

    @staticmethod
    def _probs_to_result(probs: list[float], head: TrainedHead) -> PredictionResult:
        labels = head.label_index.labels
        if not labels or len(probs) != len(labels):
            raise LabelMappingInconsistent(
                f"Label mapping is inconsistent with predictions: "
                f"{len(probs)} probabilities for {len(labels)} labels"
            )
        # max() keeps the first maximal element, so ties go to the lowest index.
        best = max(range(len(probs)), key=probs.__getitem__)
        order = sorted(range(len(probs)), key=lambda i: (-probs[i], i))
        result = PredictionResult(
            label=labels[best],
            confidences={label: p for label, p in zip(labels, probs, strict=True)},
            ranked=[
                ClassificationPrediction(
                    class_id=i, label=labels[i], confidence=probs[i]
                )
                for i in order
            ],
        )
        logger.debug(f"Prediction: {result.label} ({probs[best]:.4f})")
        return result

