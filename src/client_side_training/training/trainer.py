"""Fit a classifier head on a training matrix and bundle the result."""

from __future__ import annotations

from collections.abc import Callable, Sequence

import lightning as L
import torch
from loguru import logger

from client_side_training.callbacks import (
    EpochProgressCallback,
    LabelDistributionCallback,
)
from client_side_training.config import HeadConfig
from client_side_training.data.datamodule import FeatureMatrixDataModule
from client_side_training.data.matrix import TrainingMatrix, TrainingMatrixBuilder
from client_side_training.data.store import TrainingExample
from client_side_training.errors import EmptyDataset, NoBaseModel
from client_side_training.extractors.adapter import FeatureExtractorAdapter
from client_side_training.models.head import HeadClassifier
from client_side_training.models.trained import EpochMetrics, TrainedHead
from client_side_training.yielding import YieldToken


class HeadTrainer:
    """Defines, compiles and fits a :class:`HeadClassifier`.

    Uses a Lightning ``Trainer`` with checkpointing, loggers and progress
    bars disabled: nothing is written to disk, per-epoch metrics flow
    through :class:`EpochProgressCallback` instead.

    Args:
        config: Head hyperparameters and fit settings.
        show_label_table: Print the label distribution at fit start.
    """

    def __init__(
        self, config: HeadConfig | None = None, show_label_table: bool = False
    ) -> None:
        self.config = config or HeadConfig()
        self.show_label_table = show_label_table

    def train(
        self,
        examples: Sequence[TrainingExample],
        adapter: FeatureExtractorAdapter,
        token: YieldToken | None = None,
        on_epoch: Callable[[EpochMetrics], None] | None = None,
    ) -> TrainedHead:
        """Extract features for ``examples`` and fit a head on them."""
        if not adapter.ready():
            raise NoBaseModel("Base model is not ready yet.")
        if not examples:
            raise EmptyDataset("No training images. Import a folder first.")
        matrix = TrainingMatrixBuilder(adapter).build(examples, token)
        return self.fit(matrix, token=token, on_epoch=on_epoch)

    def fit(
        self,
        matrix: TrainingMatrix,
        token: YieldToken | None = None,
        on_epoch: Callable[[EpochMetrics], None] | None = None,
    ) -> TrainedHead:
        """Fit on ``matrix`` and release it; returns the trained head."""
        if matrix.num_examples == 0:
            raise EmptyDataset("Training matrix has no rows")
        cfg = self.config
        if cfg.seed is not None:
            L.seed_everything(cfg.seed, workers=True)

        model = HeadClassifier(
            input_dim=matrix.feature_dim,
            num_classes=matrix.num_classes,
            hidden_units=cfg.hidden_units,
            dropout=cfg.dropout,
            learning_rate=cfg.learning_rate,
        )
        datamodule = FeatureMatrixDataModule(
            matrix, batch_size=cfg.batch_size_for(matrix.num_examples)
        )
        progress = EpochProgressCallback(on_epoch=on_epoch, token=token)
        callbacks: list[L.Callback] = [progress]
        if self.show_label_table:
            callbacks.append(LabelDistributionCallback())

        logger.info(
            f"Fitting head: D={matrix.feature_dim}, C={matrix.num_classes}, "
            f"N={matrix.num_examples}, batch_size={datamodule.batch_size}, "
            f"epochs={cfg.epochs}"
        )
        trainer = L.Trainer(
            max_epochs=cfg.epochs,
            accelerator=cfg.accelerator,
            devices=1,
            callbacks=callbacks,
            logger=False,
            enable_checkpointing=False,
            enable_progress_bar=False,
            enable_model_summary=False,
            num_sanity_val_steps=0,
            log_every_n_steps=1,
        )
        try:
            trainer.fit(model, datamodule=datamodule)
        finally:
            # Drop every reference to X/Y held by the loop, loaders and matrix.
            model.trainer = None  # type: ignore[assignment]
            datamodule.release()
            matrix_label_index, feature_dim = matrix.label_index, matrix.feature_dim
            matrix.release()
            del trainer
            if torch.cuda.is_available():
                torch.cuda.empty_cache()

        head = TrainedHead(
            model=model,
            label_index=matrix_label_index,
            input_dim=feature_dim,
            history=progress.history,
        )
        logger.info(f"Head trained on {len(head.label_index)} label(s)")
        return head
