"""Per-epoch progress callback: reports loss/accuracy and yields to the host."""

from __future__ import annotations

from collections.abc import Callable

import lightning as L
from loguru import logger

from client_side_training.models.trained import EpochMetrics
from client_side_training.yielding import YieldToken


class EpochProgressCallback(L.Callback):
    """Report ``(epoch, loss, accuracy)`` after every training epoch.

    Reads the module's accumulated epoch metrics (see
    :meth:`HeadClassifier.epoch_metrics`), appends them to ``history``,
    forwards them to ``on_epoch`` and then hits the yield token.

    Args:
        on_epoch: Optional receiver for each epoch's metrics.
        token: Yield token shared with the extraction loop.
    """

    def __init__(
        self,
        on_epoch: Callable[[EpochMetrics], None] | None = None,
        token: YieldToken | None = None,
    ) -> None:
        super().__init__()
        self.on_epoch = on_epoch
        self.token = token or YieldToken()
        self.history: list[EpochMetrics] = []

    def on_train_epoch_end(
        self, trainer: L.Trainer, pl_module: L.LightningModule
    ) -> None:
        loss, acc = pl_module.epoch_metrics()  # type: ignore[operator]
        metrics = EpochMetrics(epoch=trainer.current_epoch, loss=loss, accuracy=acc)
        self.history.append(metrics)
        logger.debug(
            f"Epoch {metrics.epoch + 1}/{trainer.max_epochs}: "
            f"loss={loss:.4f} acc={acc:.4f}"
        )
        if self.on_epoch is not None:
            self.on_epoch(metrics)
        self.token.epoch_step()
