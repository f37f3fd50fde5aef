"""Boundary between the pipeline and the external embedding backend."""

from __future__ import annotations

import io

import torch
from loguru import logger
from PIL import Image, UnidentifiedImageError

from client_side_training.errors import DecodeError, ExtractorNotReady
from client_side_training.extractors.base import EmbeddingBackend
from client_side_training.types import ImageHandle


def decode_image(handle: ImageHandle) -> Image.Image:
    """Decode raw image bytes into an RGB PIL image.

    Raises:
        DecodeError: If the bytes are not a readable image.
    """
    try:
        with Image.open(io.BytesIO(handle)) as img:
            img.load()
            return img.convert("RGB")
    except (
        UnidentifiedImageError,
        Image.DecompressionBombError,
        OSError,
        ValueError,
    ) as e:
        raise DecodeError(f"Could not decode image: {e}") from e


class FeatureExtractorAdapter:
    """Turns one decoded image into one 1-D float32 feature vector on CPU.

    The backend's output (any shape whose last dimension is the embedding
    length) is flattened to ``(D,)`` and copied off the accelerator, so no
    device-resident intermediate outlives the call.  Deterministic for a
    frozen backend: inference runs under ``torch.no_grad``, so the vectors
    stay ordinary tensors that can feed the head fit.
    """

    def __init__(self, backend: EmbeddingBackend) -> None:
        self.backend = backend

    def ready(self) -> bool:
        return self.backend.ready()

    def extract(self, image: Image.Image) -> torch.Tensor:
        if not self.backend.ready():
            raise ExtractorNotReady("Embedding backend has not finished loading")
        with torch.no_grad():
            emb = self.backend.infer(image)
            dim = emb.shape[-1]
            if emb.numel() != dim:
                msg = f"Backend returned {tuple(emb.shape)}, expected a single embedding"
                raise ValueError(msg)
            feature = emb.reshape(dim).to("cpu", torch.float32).clone()
            del emb
        logger.trace(f"Extracted feature vector of dim {dim}")
        return feature

    def extract_handle(self, handle: ImageHandle) -> torch.Tensor:
        """Decode ``handle`` and extract its feature vector."""
        return self.extract(decode_image(handle))
