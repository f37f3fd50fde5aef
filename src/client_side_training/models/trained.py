"""The Trained Head artifact: fitted parameters + frozen label index + D."""

from __future__ import annotations

import torch
from loguru import logger
from pydantic import BaseModel

from client_side_training.data.labels import LabelIndex
from client_side_training.errors import HeadNotTrained
from client_side_training.models.head import HeadClassifier


class EpochMetrics(BaseModel, frozen=True):
    """Metrics reported at the end of one training epoch (0-based index)."""

    epoch: int
    loss: float
    accuracy: float


class TrainedHead:
    """A fitted :class:`HeadClassifier` bundled with what it was fitted against.

    The label index is the exact object used to build the training targets;
    probability vectors from :meth:`predict_proba` are positional against it.
    Call :meth:`release` before dropping a superseded head so any
    accelerator-resident parameters are freed.
    """

    def __init__(
        self,
        model: HeadClassifier,
        label_index: LabelIndex,
        input_dim: int,
        history: list[EpochMetrics] | None = None,
    ) -> None:
        model.eval()
        model.freeze()
        self._model: HeadClassifier | None = model
        self.label_index = label_index
        self.input_dim = input_dim
        self.history: list[EpochMetrics] = list(history or [])

    @property
    def released(self) -> bool:
        return self._model is None

    @property
    def model(self) -> HeadClassifier:
        if self._model is None:
            raise HeadNotTrained("Head model has been released")
        return self._model

    @property
    def num_classes(self) -> int:
        return len(self.label_index)

    def predict_proba(self, features: torch.Tensor) -> torch.Tensor:
        """Forward ``(N, D)`` features, return ``(N, C)`` probabilities on CPU.

        Dropout is inactive (eval mode), so repeated calls are identical.
        """
        model = self.model
        with torch.inference_mode():
            probs = model.predict_proba(features.to(model.device))
            return probs.to("cpu")

    def release(self) -> None:
        if self._model is None:
            return
        device = self._model.device
        self._model.to("cpu")
        self._model = None
        if device.type == "cuda":
            torch.cuda.empty_cache()
        logger.debug(f"Released trained head ({self.num_classes} classes)")
