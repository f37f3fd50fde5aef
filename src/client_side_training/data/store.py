"""In-memory accumulation of labeled training images."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable

from loguru import logger
from pydantic import BaseModel

from client_side_training.data.labels import LabelIndex
from client_side_training.types import ImageHandle


class TrainingExample(BaseModel, frozen=True):
    """One labeled, still-encoded image.  Never mutated after import."""

    image: ImageHandle
    label: str


class DatasetStore:
    """Ordered sequence of training examples plus per-label counts.

    ``count[label]`` always equals the number of held examples with that
    label.  Any string is accepted as a label, including ``""``.
    """

    def __init__(self) -> None:
        self._examples: list[TrainingExample] = []
        self._counts: Counter[str] = Counter()

    def add_examples(
        self, batch: Iterable[TrainingExample | tuple[ImageHandle, str]]
    ) -> int:
        """Append a batch of examples and update counts.

        Returns the number of examples added.
        """
        added = [
            item if isinstance(item, TrainingExample)
            else TrainingExample(image=item[0], label=item[1])
            for item in batch
        ]
        for example in added:
            if example.label == "":
                logger.warning("Adding example with an empty label string")
        self._examples.extend(added)
        self._counts.update(example.label for example in added)
        logger.debug(
            f"DatasetStore: added {len(added)} example(s), "
            f"total={len(self._examples)}, labels={len(self._counts)}"
        )
        return len(added)

    def clear(self) -> None:
        """Drop every example and count in one step."""
        self._examples = []
        self._counts = Counter()
        logger.debug("DatasetStore cleared")

    def snapshot(self) -> tuple[TrainingExample, ...]:
        """Immutable view of the examples in insertion order."""
        return tuple(self._examples)

    def snapshot_label_counts(self) -> dict[str, int]:
        """Copy of the label -> count mapping for display."""
        return dict(self._counts)

    def label_index(self) -> LabelIndex:
        """Build a fresh :class:`LabelIndex` from the labels currently held."""
        return LabelIndex.build(self._counts)

    def __len__(self) -> int:
        return len(self._examples)
