"""Build the (features, one-hot targets) matrices for one training run."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

import torch
import torch.nn.functional as F
from loguru import logger

from client_side_training.data.labels import LabelIndex
from client_side_training.data.store import TrainingExample
from client_side_training.errors import EmptyDataset, FeatureDimensionMismatch
from client_side_training.extractors.adapter import FeatureExtractorAdapter
from client_side_training.yielding import YieldToken


@dataclass
class TrainingMatrix:
    """Stacked training inputs for a single fit.

    features: ``(N, D)`` float32.
    targets: ``(N, C)`` float32 one-hot rows against ``label_index``.
    """

    features: torch.Tensor
    targets: torch.Tensor
    label_index: LabelIndex
    feature_dim: int
    label_counts: dict[str, int] = field(default_factory=dict)

    @property
    def num_examples(self) -> int:
        return int(self.features.shape[0])

    @property
    def num_classes(self) -> int:
        return len(self.label_index)

    def release(self) -> None:
        """Drop both matrices; the object is unusable afterwards."""
        self.features = torch.empty(0)
        self.targets = torch.empty(0)


class TrainingMatrixBuilder:
    """Runs every stored example through the feature extractor.

    The label index is built from the distinct labels of the snapshot.
    ``D`` is fixed by the first extracted vector and every later vector is
    checked against it.  Per-example vectors are dropped as soon as they
    are stacked.
    """

    def __init__(self, adapter: FeatureExtractorAdapter) -> None:
        self.adapter = adapter

    def build(
        self,
        examples: Sequence[TrainingExample],
        token: YieldToken | None = None,
    ) -> TrainingMatrix:
        if not examples:
            raise EmptyDataset("No training images. Import a folder first.")
        token = token or YieldToken()

        label_index = LabelIndex.build(ex.label for ex in examples)
        num_classes = len(label_index)
        logger.info(
            f"Extracting features for {len(examples)} example(s), "
            f"{num_classes} class(es)"
        )

        rows: list[torch.Tensor] = []
        indices: list[int] = []
        counts: dict[str, int] = {}
        feature_dim: int | None = None
        for example in examples:
            feat = self.adapter.extract_handle(example.image)
            if feature_dim is None:
                feature_dim = int(feat.shape[0])
                logger.debug(f"Feature dimension fixed at D={feature_dim}")
            elif feat.shape[0] != feature_dim:
                raise FeatureDimensionMismatch(feature_dim, int(feat.shape[0]))
            rows.append(feat)
            indices.append(label_index.index_of(example.label))
            counts[example.label] = counts.get(example.label, 0) + 1
            token.image_step()

        assert feature_dim is not None
        features = torch.stack(rows)
        rows.clear()
        targets = F.one_hot(
            torch.tensor(indices, dtype=torch.long), num_classes=num_classes
        ).to(torch.float32)

        logger.debug(
            f"Training matrix: X={tuple(features.shape)}, Y={tuple(targets.shape)}"
        )
        return TrainingMatrix(
            features=features,
            targets=targets,
            label_index=label_index,
            feature_dim=feature_dim,
            label_counts=counts,
        )
