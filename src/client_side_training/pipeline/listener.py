"""Progress and terminal notifications from the pipeline to its host."""

from __future__ import annotations

from typing import Any

from loguru import logger


class PipelineListener:
    """Receives pipeline notifications.  All methods default to no-ops.

    ``on_progress`` fires for intermediate steps, ``on_result`` and
    ``on_error`` exactly once per finished operation.
    """

    def on_progress(self, phase: str, message: str) -> None:
        pass

    def on_result(self, operation: str, result: Any) -> None:
        pass

    def on_error(self, operation: str, error: Exception) -> None:
        pass


class LoggingListener(PipelineListener):
    """Writes every notification to loguru, like the app's message console."""

    def on_progress(self, phase: str, message: str) -> None:
        logger.info(message)

    def on_result(self, operation: str, result: Any) -> None:
        logger.debug(f"{operation} finished: {type(result).__name__}")

    def on_error(self, operation: str, error: Exception) -> None:
        logger.error(f"[ERROR] {operation}: {error}")


class RecordingListener(LoggingListener):
    """Logs like :class:`LoggingListener` and keeps every event in memory."""

    def __init__(self) -> None:
        self.progress: list[tuple[str, str]] = []
        self.results: list[tuple[str, Any]] = []
        self.errors: list[tuple[str, Exception]] = []

    def on_progress(self, phase: str, message: str) -> None:
        super().on_progress(phase, message)
        self.progress.append((phase, message))

    def on_result(self, operation: str, result: Any) -> None:
        super().on_result(operation, result)
        self.results.append((operation, result))

    def on_error(self, operation: str, error: Exception) -> None:
        super().on_error(operation, error)
        self.errors.append((operation, error))
