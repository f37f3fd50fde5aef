"""LightningDataModule serving a precomputed training matrix."""

from __future__ import annotations

from typing import Any

import lightning as L
import torch
from loguru import logger
from torch.utils.data import DataLoader, TensorDataset

from client_side_training.data.labels import LabelIndex
from client_side_training.data.matrix import TrainingMatrix
from client_side_training.types import FeatureBatch


class FeatureMatrixDataModule(L.LightningDataModule):
    """Shuffled mini-batches over ``(features, one-hot targets)`` rows.

    The train loader reshuffles every epoch and the last batch may be
    short.  There is no validation split: the head is small, the data set
    is whatever the user imported.

    Args:
        matrix: Stacked features/targets from the matrix builder.
        batch_size: Rows per batch, see :meth:`HeadConfig.batch_size_for`.
        **kwargs: Absorbs extra Hydra-injected keys.
    """

    def __init__(
        self,
        matrix: TrainingMatrix,
        batch_size: int = 16,
        **kwargs: Any,
    ) -> None:
        super().__init__()
        self._matrix: TrainingMatrix | None = matrix
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self._batch_size = batch_size
        self._label_index = matrix.label_index
        self._label_counts = dict(matrix.label_counts)
        self._train_dataset: TensorDataset | None = None

    @property
    def label_index(self) -> LabelIndex:
        return self._label_index

    @property
    def label_counts(self) -> dict[str, int]:
        return dict(self._label_counts)

    @property
    def batch_size(self) -> int:
        return self._batch_size

    def setup(self, stage: str | None = None) -> None:
        if self._matrix is None:
            raise RuntimeError("Training matrix already released")
        if stage in ("fit", None) and self._train_dataset is None:
            self._train_dataset = TensorDataset(
                self._matrix.features, self._matrix.targets
            )
            logger.debug(
                f"Setup fit: {len(self._train_dataset)} rows, "
                f"batch_size={self._batch_size}"
            )

    @staticmethod
    def _collate_fn(batch: list[tuple[torch.Tensor, torch.Tensor]]) -> FeatureBatch:
        """Collate (feature, target) tuples into a FeatureBatch dict."""
        features = torch.stack([item[0] for item in batch])
        targets = torch.stack([item[1] for item in batch])
        return {"features": features, "targets": targets}

    def train_dataloader(self) -> DataLoader[tuple[torch.Tensor, ...]]:
        if self._train_dataset is None:
            raise RuntimeError("Call setup('fit') first")
        return DataLoader(
            self._train_dataset,
            batch_size=self._batch_size,
            shuffle=True,
            num_workers=0,
            collate_fn=self._collate_fn,
        )

    def release(self) -> None:
        """Drop references to the training matrix after fitting."""
        self._train_dataset = None
        self._matrix = None
