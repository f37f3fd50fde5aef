"""Typed error kinds raised by the training and inference pipeline.

Every error carries a stable ``kind`` string so the presentation layer can
branch on it without importing the class hierarchy.
"""

from __future__ import annotations

from typing import ClassVar


class PipelineError(Exception):
    """Base class for all recoverable pipeline failures."""

    kind: ClassVar[str] = "PipelineError"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ExtractorNotReady(PipelineError):
    kind = "ExtractorNotReady"


class DecodeError(PipelineError):
    kind = "DecodeError"


class EmptyDataset(PipelineError):
    kind = "EmptyDataset"


class FeatureDimensionMismatch(PipelineError):
    """Raised when a feature vector does not have the expected length."""

    kind = "FeatureDimensionMismatch"

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(
            f"Feature dimension mismatch: expected {expected}, got {actual}"
        )
        self.expected = expected
        self.actual = actual


class NoBaseModel(PipelineError):
    kind = "NoBaseModel"


class HeadNotTrained(PipelineError):
    kind = "HeadNotTrained"


class NoTestImage(PipelineError):
    kind = "NoTestImage"


class LabelMappingInconsistent(PipelineError):
    kind = "LabelMappingInconsistent"


class UnknownLabel(PipelineError):
    kind = "UnknownLabel"


class IndexOutOfRange(PipelineError):
    kind = "IndexOutOfRange"


class OperationInProgress(PipelineError):
    kind = "OperationInProgress"


class InvalidTransition(PipelineError):
    kind = "InvalidTransition"
