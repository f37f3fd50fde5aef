"""Type aliases and TypedDicts for client_side_training inter-module contracts."""

from collections.abc import Callable
from typing import TypedDict

import torch

# Opaque reference to undecoded image bytes (file contents as read from disk).
ImageHandle = bytes

# (phase, message) progress notification.
ProgressFn = Callable[[str, str], None]


class FeatureBatch(TypedDict):
    """A single batch of precomputed embeddings.

    features: Float tensor of shape (B, D), one embedding per row.
    targets: Float tensor of shape (B, C), one-hot rows over the label index.
    """

    features: torch.Tensor
    targets: torch.Tensor
