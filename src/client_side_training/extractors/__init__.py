"""Pretrained embedding backends and the feature-extraction boundary."""

from client_side_training.extractors.adapter import (
    FeatureExtractorAdapter,
    decode_image,
)
from client_side_training.extractors.base import EmbeddingBackend
from client_side_training.extractors.torchvision_backend import (
    TorchvisionEmbeddingBackend,
)

__all__ = [
    "EmbeddingBackend",
    "FeatureExtractorAdapter",
    "TorchvisionEmbeddingBackend",
    "decode_image",
]
