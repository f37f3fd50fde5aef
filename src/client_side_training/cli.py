"""Command-line host for client_side_training.

Imports a folder, trains a head, and classifies the given images in one
session.  Nothing is written to disk.

Usage:
    client-side-train data_root=/path/to/pets
    client-side-train data_root=/path/to/pets 'predict=[a.jpg,b.jpg]'
    client-side-train data_root=/path/to/pets backend=mobilenet_v3_small
    client-side-train data_root=/path/to/pets head.epochs=5
"""

import sys
from pathlib import Path

import hydra
from loguru import logger
from omegaconf import DictConfig, OmegaConf
from rich import box
from rich.console import Console
from rich.table import Table

from client_side_training.callbacks.statistics import label_distribution_table
from client_side_training.config import HeadConfig, PipelineConfig, YieldPolicy
from client_side_training.extractors.base import EmbeddingBackend
from client_side_training.pipeline import Pipeline
from client_side_training.schemas.prediction import PredictionResult


def build_pipeline_config(cfg: DictConfig) -> PipelineConfig:
    """Validate the Hydra config sections into a frozen PipelineConfig."""
    head = OmegaConf.to_container(cfg.head, resolve=True)
    if cfg.get("seed") is not None:
        head["seed"] = cfg.seed  # type: ignore[index]
    return PipelineConfig(
        head=HeadConfig(**head),  # type: ignore[arg-type]
        yield_policy=YieldPolicy(**OmegaConf.to_container(cfg.yield_policy)),  # type: ignore[arg-type]
        show_label_table=cfg.get("show_label_table", False),
    )


def prediction_table(name: str, result: PredictionResult) -> Table:
    table = Table(
        title=f"Prediction: {name}",
        header_style="bold magenta",
        box=box.SQUARE,
        show_lines=True,
    )
    table.add_column("Rank", justify="right")
    table.add_column("Label", style="cyan")
    table.add_column("Confidence", justify="right", style="green")
    for rank, pred in enumerate(result.ranked, start=1):
        table.add_row(str(rank), pred.label, f"{pred.confidence:.4f}")
    return table


@hydra.main(version_base=None, config_path="conf", config_name="classify")
def main(cfg: DictConfig) -> None:
    """Run one import -> train -> predict session with the given Hydra config."""
    logger.remove()
    logger.add(sys.stderr, level=cfg.get("log_level", "INFO"))
    logger.info(f"Configuration:\n{OmegaConf.to_yaml(cfg)}")

    backend: EmbeddingBackend = hydra.utils.instantiate(cfg.backend)
    pipeline = Pipeline(backend, config=build_pipeline_config(cfg))
    console = Console()

    if not pipeline.prepare():
        sys.exit(1)
    try:
        pipeline.import_folder(Path(cfg.data_root))
        counts = pipeline.store.snapshot_label_counts()
        if counts and not pipeline.config.show_label_table:
            console.print(label_distribution_table(counts))

        if pipeline.train_head() is None:
            sys.exit(1)

        for path in cfg.get("predict", []):
            image_path = Path(path)
            if not image_path.is_file():
                logger.error(f"Not a file: {image_path}")
                continue
            result = pipeline.predict(image_path.read_bytes())
            if result is not None:
                console.print(prediction_table(image_path.name, result))
    finally:
        pipeline.close()


if __name__ == "__main__":
    main()
