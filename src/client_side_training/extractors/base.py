"""Abstract base class for pretrained embedding backends."""

from __future__ import annotations

from abc import ABC, abstractmethod

import torch
from PIL import Image


class EmbeddingBackend(ABC):
    """Frozen pretrained network that maps one image to one embedding.

    Subclasses must implement ``load``, ``ready`` and ``infer``.  The
    embedding length is fixed for a loaded instance.
    """

    @abstractmethod
    def load(self, device: str = "cpu") -> None:
        """Load weights onto ``device``.  ``ready()`` is True afterwards."""

    @abstractmethod
    def ready(self) -> bool:
        """Whether ``infer`` may be called."""

    @abstractmethod
    def infer(self, image: Image.Image) -> torch.Tensor:
        """Embed a single RGB image.

        Returns a tensor whose last dimension is the embedding length.
        """

    def release(self) -> None:
        """Drop loaded weights.  Default: nothing to release."""
