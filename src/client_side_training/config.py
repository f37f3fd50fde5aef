"""Pydantic frozen configuration models for client_side_training."""

from typing import Literal

from pydantic import BaseModel, Field, model_validator


class HeadConfig(BaseModel, frozen=True):
    """Hyperparameters of the classifier head and its fitting loop.

    All fields are validated at construction time. Frozen after creation.
    """

    hidden_units: int = Field(default=128, ge=1)
    dropout: float = Field(default=0.3, ge=0.0, lt=1.0)
    learning_rate: float = Field(default=1e-3, gt=0.0)
    epochs: int = Field(default=20, ge=1)
    max_batch_size: int = Field(default=16, ge=1)
    accelerator: Literal["auto", "cpu", "gpu", "cuda", "mps"] = "auto"
    seed: int | None = Field(default=None, ge=0)

    def batch_size_for(self, num_examples: int) -> int:
        """Batch size used for a dataset of ``num_examples`` rows: ``min(max_batch_size, N)``."""
        return max(1, min(self.max_batch_size, num_examples))


class YieldPolicy(BaseModel, frozen=True):
    """How often long-running operations hand control back to the host."""

    every_n_images: int = Field(default=16, ge=1)
    every_epoch: bool = True


class PipelineConfig(BaseModel, frozen=True):
    """Top-level configuration for :class:`~client_side_training.pipeline.Pipeline`."""

    head: HeadConfig = HeadConfig()
    yield_policy: YieldPolicy = YieldPolicy()
    show_label_table: bool = False
    sentinel_label: str = "root"

    @model_validator(mode="after")
    def _sentinel_label_not_blank(self) -> "PipelineConfig":
        """Images without a parent folder need a non-blank fallback label."""
        if not self.sentinel_label.strip():
            msg = "sentinel_label must not be blank"
            raise ValueError(msg)
        return self
