"""Feed-forward classifier head trained on frozen embeddings."""

from __future__ import annotations

import lightning as L
import torch
import torch.nn.functional as F
from torch import nn
from torchmetrics import MeanMetric

from client_side_training.types import FeatureBatch


class HeadClassifier(L.LightningModule):
    """``Linear(D, hidden) -> ReLU -> Dropout -> Linear(hidden, C)``.

    ``forward`` returns logits; :meth:`predict_proba` applies the softmax
    so outputs form a distribution over the C labels.  Loss is categorical
    cross-entropy against one-hot targets, optimizer is Adam.

    Epoch metrics follow update-in-step / reset-at-epoch-start, so a
    callback reading :meth:`epoch_metrics` in ``on_train_epoch_end`` sees
    the finished epoch regardless of hook order.
    """

    def __init__(
        self,
        input_dim: int,
        num_classes: int,
        hidden_units: int = 128,
        dropout: float = 0.3,
        learning_rate: float = 1e-3,
    ) -> None:
        super().__init__()
        self.save_hyperparameters()
        self.net = nn.Sequential(
            nn.Linear(input_dim, hidden_units),
            nn.ReLU(),
            nn.Dropout(p=dropout),
            nn.Linear(hidden_units, num_classes),
        )
        # MulticlassAccuracy rejects num_classes < 2, and a single-folder
        # import is a valid (if pointless) dataset.
        self.train_loss = MeanMetric()
        self.train_acc = MeanMetric()

    def forward(self, features: torch.Tensor) -> torch.Tensor:
        return self.net(features)  # type: ignore[no-any-return]

    def predict_proba(self, features: torch.Tensor) -> torch.Tensor:
        """Softmax probabilities, shape ``(N, C)``."""
        return F.softmax(self(features), dim=-1)

    def training_step(self, batch: FeatureBatch, batch_idx: int) -> torch.Tensor:
        features, targets = batch["features"], batch["targets"]
        logits = self(features)
        # Probability targets: identical to class-index CE for one-hot rows.
        loss = F.cross_entropy(logits, targets)
        correct = (logits.argmax(dim=-1) == targets.argmax(dim=-1)).float()
        self.train_loss.update(loss.detach(), weight=features.shape[0])
        self.train_acc.update(correct)
        self.log("train/loss", loss, on_step=False, on_epoch=True, prog_bar=True)
        return loss

    def on_train_epoch_start(self) -> None:
        self.train_loss.reset()
        self.train_acc.reset()

    def epoch_metrics(self) -> tuple[float, float]:
        """``(loss, accuracy)`` accumulated over the current epoch's batches."""
        return float(self.train_loss.compute()), float(self.train_acc.compute())

    def on_train_epoch_end(self) -> None:
        _, acc = self.epoch_metrics()
        self.log("train/acc", acc)

    def configure_optimizers(self) -> torch.optim.Optimizer:
        return torch.optim.Adam(self.parameters(), lr=self.hparams["learning_rate"])
