"""Frozen bidirectional mapping between class names and dense indices."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import Any

from pydantic import BaseModel, PrivateAttr, model_validator

from client_side_training.errors import IndexOutOfRange, UnknownLabel


class LabelIndex(BaseModel, frozen=True):
    """Ordered, deduplicated label set with stable index assignment.

    Index ``i`` is the position of the label after a lexicographic sort at
    build time.  The empty string is a legitimate label and sorts first.
    Once a head is trained against an index, that exact object travels with
    the head; it is never rebuilt from a different ordering.
    """

    labels: tuple[str, ...]
    _class_to_idx: dict[str, int] = PrivateAttr(default_factory=dict)

    @model_validator(mode="after")
    def _sorted_and_unique(self) -> "LabelIndex":
        if list(self.labels) != sorted(set(self.labels)):
            msg = "LabelIndex labels must be unique and lexicographically sorted"
            raise ValueError(msg)
        return self

    def model_post_init(self, __context: Any) -> None:
        self._class_to_idx = {label: i for i, label in enumerate(self.labels)}

    @classmethod
    def build(cls, labels: Iterable[str]) -> LabelIndex:
        """Sort and deduplicate ``labels``; deterministic for equal sets."""
        return cls(labels=tuple(sorted(set(labels))))

    def index_of(self, label: str) -> int:
        try:
            return self._class_to_idx[label]
        except KeyError:
            raise UnknownLabel(f"Unknown label: {label!r}") from None

    def label_of(self, index: int) -> str:
        if not 0 <= index < len(self.labels):
            raise IndexOutOfRange(
                f"Label index {index} out of range [0, {len(self.labels)})"
            )
        return self.labels[index]

    @property
    def class_to_idx(self) -> dict[str, int]:
        return dict(self._class_to_idx)

    @property
    def idx_to_class(self) -> dict[int, str]:
        return dict(enumerate(self.labels))

    def __len__(self) -> int:
        return len(self.labels)

    def __iter__(self) -> Iterator[str]:  # type: ignore[override]
        return iter(self.labels)

    def __contains__(self, label: object) -> bool:
        return label in self.labels
