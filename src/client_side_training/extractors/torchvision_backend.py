"""Torchvision ImageNet backbones used as frozen embedding extractors."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import torch
import torchvision.models as tv_models
from loguru import logger
from PIL import Image
from torch import nn
from torchvision.transforms import v2

from client_side_training.extractors.base import EmbeddingBackend

IMAGENET_MEAN: list[float] = [0.485, 0.456, 0.406]
IMAGENET_STD: list[float] = [0.229, 0.224, 0.225]

# arch -> (builder, default weights enum)
_ARCHITECTURES: dict[str, tuple[Callable[..., nn.Module], Any]] = {
    "mobilenet_v2": (tv_models.mobilenet_v2, tv_models.MobileNet_V2_Weights.DEFAULT),
    "mobilenet_v3_small": (
        tv_models.mobilenet_v3_small,
        tv_models.MobileNet_V3_Small_Weights.DEFAULT,
    ),
    "mobilenet_v3_large": (
        tv_models.mobilenet_v3_large,
        tv_models.MobileNet_V3_Large_Weights.DEFAULT,
    ),
    "resnet18": (tv_models.resnet18, tv_models.ResNet18_Weights.DEFAULT),
}


def _strip_classifier(arch: str, model: nn.Module) -> nn.Module:
    """Replace the ImageNet classifier so forward() returns pooled features."""
    if arch.startswith("mobilenet"):
        model.classifier = nn.Identity()  # type: ignore[assignment]
    else:
        model.fc = nn.Identity()  # type: ignore[assignment]
    return model


class TorchvisionEmbeddingBackend(EmbeddingBackend):
    """MobileNet / ResNet backbone with its classifier removed.

    Embedding length is the backbone's pooled feature width
    (1280 for MobileNetV2, 576 / 960 for MobileNetV3 small / large,
    512 for ResNet18).  Uses the deterministic val transform pipeline
    (Resize 256 -> CenterCrop -> ImageNet normalisation).

    Pass ``pretrained=False`` in tests to skip the weight download.

    Args:
        arch: One of ``mobilenet_v2``, ``mobilenet_v3_small``,
            ``mobilenet_v3_large``, ``resnet18``.
        pretrained: Load ImageNet weights.
        image_size: Center-crop size fed to the network.
    """

    def __init__(
        self,
        arch: str = "mobilenet_v2",
        pretrained: bool = True,
        image_size: int = 224,
    ) -> None:
        if arch not in _ARCHITECTURES:
            msg = f"Unknown backbone: {arch!r}. Use one of {sorted(_ARCHITECTURES)}."
            raise ValueError(msg)
        self.arch = arch
        self.pretrained = pretrained
        self.image_size = image_size
        self.device = torch.device("cpu")
        self._model: nn.Module | None = None
        self.transform = v2.Compose([
            v2.Resize(256),
            v2.CenterCrop(image_size),
            v2.ToImage(),
            v2.ToDtype(torch.float32, scale=True),
            v2.Normalize(mean=IMAGENET_MEAN, std=IMAGENET_STD),
        ])

    def load(self, device: str = "cpu") -> None:
        builder, weights = _ARCHITECTURES[self.arch]
        model = builder(weights=weights if self.pretrained else None)
        model = _strip_classifier(self.arch, model)
        model.eval()
        for p in model.parameters():
            p.requires_grad_(False)
        self.device = torch.device(device)
        self._model = model.to(self.device)
        logger.info(
            f"Loaded {self.arch} embedding backend "
            f"(pretrained={self.pretrained}) on {self.device}"
        )

    def ready(self) -> bool:
        return self._model is not None

    def infer(self, image: Image.Image) -> torch.Tensor:
        if self._model is None:
            msg = "Backend not loaded; call load() first"
            raise RuntimeError(msg)
        batch = self.transform(image.convert("RGB")).unsqueeze(0).to(self.device)
        return self._model(batch)  # type: ignore[no-any-return]

    def release(self) -> None:
        if self._model is not None:
            self._model.to("cpu")
            self._model = None
            if self.device.type == "cuda":
                torch.cuda.empty_cache()
            logger.debug(f"Released {self.arch} embedding backend")
