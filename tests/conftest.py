"""Shared pytest fixtures for client_side_training tests."""

from __future__ import annotations

import io
import random
from collections.abc import Iterator
from pathlib import Path

import numpy as np
import pytest
import torch
from loguru import logger
from PIL import Image

from client_side_training.config import HeadConfig, PipelineConfig, YieldPolicy
from client_side_training.data.store import TrainingExample
from client_side_training.extractors.adapter import FeatureExtractorAdapter
from client_side_training.extractors.base import EmbeddingBackend

# Solid base colours per label; examples jitter around them.
LABEL_COLORS: dict[str, tuple[int, int, int]] = {
    "cats": (200, 60, 40),
    "dogs": (40, 80, 200),
    "birds": (60, 190, 70),
}


class FakeBackend(EmbeddingBackend):
    """Deterministic stand-in for a pretrained network.

    Embeds an image as its ``grid x grid`` thumbnail, flattened and scaled
    to ``[0, 1]``, so ``D = grid * grid * 3``.
    """

    def __init__(self, grid: int = 2) -> None:
        self.grid = grid
        self.loaded_on: str | None = None
        self.calls = 0
        self.released = False

    @property
    def dim(self) -> int:
        return self.grid * self.grid * 3

    def load(self, device: str = "cpu") -> None:
        self.loaded_on = device

    def ready(self) -> bool:
        return self.loaded_on is not None

    def infer(self, image: Image.Image) -> torch.Tensor:
        self.calls += 1
        thumb = np.asarray(image.convert("RGB").resize((self.grid, self.grid)))
        return torch.from_numpy(thumb.astype(np.float32) / 255.0).reshape(1, -1)

    def release(self) -> None:
        self.loaded_on = None
        self.released = True


class SwitchingBackend(FakeBackend):
    """Changes its embedding length after ``switch_after`` calls."""

    def __init__(self, switch_after: int, grid: int = 2, new_grid: int = 3) -> None:
        super().__init__(grid)
        self.switch_after = switch_after
        self.new_grid = new_grid

    def infer(self, image: Image.Image) -> torch.Tensor:
        if self.calls >= self.switch_after:
            self.grid = self.new_grid
        return super().infer(image)


class FailingBackend(FakeBackend):
    """Raises on load, like a failed weight download."""

    def load(self, device: str = "cpu") -> None:
        raise OSError("connection refused")


def make_image_bytes(
    color: tuple[int, int, int], seed: int = 0, size: int = 32, fmt: str = "PNG"
) -> bytes:
    """Encoded image of ``color`` with small per-pixel noise."""
    rng = np.random.default_rng(seed)
    base = np.array(color, dtype=np.int16)
    pixels = base + rng.integers(-15, 16, size=(size, size, 3))
    img = Image.fromarray(np.clip(pixels, 0, 255).astype(np.uint8), "RGB")
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


def make_examples(per_label: dict[str, int], seed: int = 0) -> list[TrainingExample]:
    examples = []
    for label, n in per_label.items():
        for i in range(n):
            examples.append(
                TrainingExample(
                    image=make_image_bytes(LABEL_COLORS[label], seed=seed + i),
                    label=label,
                )
            )
    random.Random(seed).shuffle(examples)
    return examples


@pytest.fixture()
def warnings_logged() -> Iterator[list[str]]:
    """Messages loguru emits at WARNING or above while the test runs."""
    messages: list[str] = []
    sink_id = logger.add(
        lambda msg: messages.append(msg.record["message"]), level="WARNING"
    )
    yield messages
    logger.remove(sink_id)


@pytest.fixture()
def backend() -> FakeBackend:
    b = FakeBackend()
    b.load("cpu")
    return b


@pytest.fixture()
def adapter(backend: FakeBackend) -> FeatureExtractorAdapter:
    return FeatureExtractorAdapter(backend)


@pytest.fixture()
def head_config() -> HeadConfig:
    """Small, CPU-only, seeded fit settings for fast tests."""
    return HeadConfig(epochs=5, accelerator="cpu", seed=0)


@pytest.fixture()
def pipeline_config(head_config: HeadConfig) -> PipelineConfig:
    return PipelineConfig(
        head=head_config, yield_policy=YieldPolicy(every_n_images=4)
    )


@pytest.fixture()
def cats_and_dogs() -> list[TrainingExample]:
    """10 ``cats`` + 10 ``dogs`` examples in shuffled order."""
    return make_examples({"cats": 10, "dogs": 10})


@pytest.fixture()
def query_image() -> bytes:
    """Held-out cat-coloured image."""
    return make_image_bytes(LABEL_COLORS["cats"], seed=999)


@pytest.fixture()
def image_folder(tmp_path: Path) -> Path:
    """``pets/{cats,dogs}/*.png`` plus one loose image and one text file.

    2 cats + 3 dogs + 1 image directly under ``pets``.
    """
    root = tmp_path / "pets"
    for label, n in (("cats", 2), ("dogs", 3)):
        (root / label).mkdir(parents=True)
        for i in range(n):
            (root / label / f"{label}_{i:02d}.png").write_bytes(
                make_image_bytes(LABEL_COLORS[label], seed=i)
            )
    (root / "loose.PNG").write_bytes(make_image_bytes((128, 128, 128)))
    (root / "cats" / "notes.txt").write_text("not an image")
    return root
