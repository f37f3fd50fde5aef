"""Label distribution callback: prints per-label counts at training start."""

from __future__ import annotations

import lightning as L
from loguru import logger
from rich import box
from rich.console import Console
from rich.table import Table

from client_side_training.data.labels import LabelIndex


def label_distribution_table(
    counts: dict[str, int], label_index: LabelIndex | None = None
) -> Table:
    """Rich table of label, index (when known), count and percentage."""
    total = sum(counts.values())
    table = Table(
        title="Dataset Label Distribution",
        header_style="bold magenta",
        box=box.SQUARE,
        show_lines=True,
    )
    table.add_column("Label", style="cyan")
    table.add_column("Index", justify="right")
    table.add_column("Count", justify="right", style="green")
    table.add_column("Percentage", justify="right", style="yellow")

    labels = list(label_index) if label_index is not None else sorted(counts)
    for label in labels:
        count = counts.get(label, 0)
        idx = str(label_index.index_of(label)) if label_index is not None else "-"
        pct = count / total * 100 if total > 0 else 0.0
        table.add_row(
            repr(label) if label == "" else label,
            idx,
            str(count),
            f"{pct:.1f}%",
        )
    return table


class LabelDistributionCallback(L.Callback):
    """Print a rich table of the label distribution of the fit's datamodule.

    Reads ``trainer.datamodule.label_index`` and ``label_counts``.
    """

    def __init__(self, console: Console | None = None) -> None:
        super().__init__()
        self.console = console or Console()

    def on_fit_start(self, trainer: L.Trainer, pl_module: L.LightningModule) -> None:
        datamodule = getattr(trainer, "datamodule", None)
        if datamodule is None:
            logger.warning("No datamodule found. Skipping label distribution.")
            return
        label_index: LabelIndex | None = getattr(datamodule, "label_index", None)
        counts: dict[str, int] = getattr(datamodule, "label_counts", {})
        if label_index is None or not counts:
            logger.warning("Datamodule has no label counts. Skipping label distribution.")
            return

        logger.info(
            f"Training dataset: {sum(counts.values())} samples, {len(label_index)} labels"
        )
        self.console.print(label_distribution_table(counts, label_index))
