"""Session-scoped pipeline: dataset, base model, trained head, predictions.

:class:`Pipeline` is the operation boundary between the presentation layer
and the core.  Every operation either returns its result and fires
``on_result``, or fires ``on_error`` with the typed error and returns
``None`` / ``0``, after putting the state machine back where it was.
Errors that are not :class:`PipelineError` are reported the same way and
then re-raised.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from pathlib import Path

import torch
from loguru import logger

from client_side_training.config import PipelineConfig
from client_side_training.data.folder import examples_from_files, scan_folder
from client_side_training.data.matrix import TrainingMatrixBuilder
from client_side_training.data.store import DatasetStore, TrainingExample
from client_side_training.errors import (
    EmptyDataset,
    NoBaseModel,
    NoTestImage,
    PipelineError,
)
from client_side_training.extractors.adapter import FeatureExtractorAdapter, decode_image
from client_side_training.extractors.base import EmbeddingBackend
from client_side_training.inference.predictor import Predictor
from client_side_training.models.trained import EpochMetrics, TrainedHead
from client_side_training.pipeline.listener import LoggingListener, PipelineListener
from client_side_training.pipeline.state import (
    Effect,
    Event,
    PipelineState,
    transition,
)
from client_side_training.schemas.prediction import PredictionResult
from client_side_training.training.trainer import HeadTrainer
from client_side_training.types import ImageHandle
from client_side_training.yielding import YieldToken


def resolve_device(accelerator: str) -> str:
    """Map an accelerator name to a torch device string."""
    if accelerator in ("gpu", "cuda"):
        return "cuda"
    if accelerator == "auto":
        if torch.cuda.is_available():
            return "cuda"
        if torch.backends.mps.is_available():
            return "mps"
        return "cpu"
    return accelerator


class Pipeline:
    """Coordinates the dataset store, embedding backend, head and predictor.

    Runs on the caller's thread.  ``yield_fn`` is called at the yield points
    of long operations so a GUI host can keep processing events; if the
    host re-enters ``train_head`` or ``predict`` from there, the nested call
    is rejected with ``OperationInProgress``.

    Args:
        backend: Pretrained embedding backend (not yet loaded).
        config: Pipeline configuration.
        listener: Receives progress/result/error notifications.
        yield_fn: Host callback invoked at each yield point.
    """

    def __init__(
        self,
        backend: EmbeddingBackend,
        config: PipelineConfig | None = None,
        listener: PipelineListener | None = None,
        yield_fn: Callable[[], None] | None = None,
    ) -> None:
        self.config = config or PipelineConfig()
        self.backend = backend
        self.adapter = FeatureExtractorAdapter(backend)
        self.predictor = Predictor(self.adapter)
        self.trainer = HeadTrainer(
            self.config.head, show_label_table=self.config.show_label_table
        )
        self.store = DatasetStore()
        self.listener = listener or LoggingListener()
        self._yield_fn = yield_fn
        self._state = PipelineState()
        self._head: TrainedHead | None = None
        self._pending_head: TrainedHead | None = None
        self._test_image: ImageHandle | None = None
        self.last_prediction: PredictionResult | None = None
        self.device: str | None = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def head(self) -> TrainedHead | None:
        return self._head

    @property
    def test_image(self) -> ImageHandle | None:
        return self._test_image

    def _dispatch(self, event: Event) -> None:
        state, effects = transition(self._state, event)
        logger.trace(f"{event.value}: {self._state!r} -> {state!r}")
        self._state = state
        for effect in effects:
            self._apply(effect)

    def _apply(self, effect: Effect) -> None:
        if effect is Effect.RELEASE_HEAD:
            if self._head is not None:
                self._head.release()
            self._head = None
        elif effect is Effect.INSTALL_HEAD:
            self._head, self._pending_head = self._pending_head, None
        elif effect is Effect.CLEAR_DATASET:
            self.store.clear()
        elif effect is Effect.CLEAR_TEST_IMAGE:
            self._test_image = None
        elif effect is Effect.RESET_PREDICTION:
            self.last_prediction = None

    def _fail(self, operation: str, error: Exception, event: Event | None) -> None:
        if event is not None:
            self._dispatch(event)
        self.listener.on_error(operation, error)

    def _token(self) -> YieldToken:
        return YieldToken(self.config.yield_policy, self._yield_fn)

    # ------------------------------------------------------------------
    # Backend lifecycle
    # ------------------------------------------------------------------

    def prepare(self) -> bool:
        """Select the torch device and load the embedding backend."""
        try:
            self._dispatch(Event.PREPARE)
        except PipelineError as e:
            self._fail("prepare", e, None)
            return False
        try:
            self.listener.on_progress(self._state.base, "Preparing torch backend...")
            self.device = resolve_device(self.config.head.accelerator)
            self.listener.on_progress(self._state.base, f"Torch device: {self.device}")
            self._dispatch(Event.BACKEND_PREPARED)

            self.listener.on_progress(
                self._state.base, "Loading pretrained base model..."
            )
            try:
                self.backend.load(self.device)
            except Exception as e:
                raise NoBaseModel(f"Failed to load base model: {e}") from e
            self._dispatch(Event.BASE_MODEL_LOADED)
        except PipelineError as e:
            self._fail("prepare", e, Event.PREPARE_FAILED)
            return False
        self.listener.on_progress(
            self._state.base,
            "Ready. Import a folder as /<label>/<image>. "
            "Then train the head model and run predictions.",
        )
        self.listener.on_result("prepare", self.device)
        return True

    # ------------------------------------------------------------------
    # Dataset
    # ------------------------------------------------------------------

    def add_examples(
        self, batch: Iterable[TrainingExample | tuple[ImageHandle, str]]
    ) -> int:
        added = self.store.add_examples(batch)
        self._report_import(added)
        return added

    def add_files(self, files: Iterable[tuple[ImageHandle, str]]) -> int:
        """Add ``(image_bytes, relative_path)`` pairs, labeling by parent folder."""
        examples = examples_from_files(list(files), self.config.sentinel_label)
        return self.add_examples(examples)

    def import_folder(self, root: str | Path) -> int:
        """Import every image under ``root`` as ``<label>/<image>``."""
        try:
            files = list(scan_folder(Path(root)))
        except OSError as e:
            self.listener.on_error("import", e)
            return 0
        return self.add_files(files)

    def _report_import(self, added: int) -> None:
        if added == 0:
            logger.warning("Import added no examples")
            self.listener.on_progress("import", "No images found in the selected folder.")
        else:
            self.listener.on_progress("import", f"Imported {added} training image(s).")
        self.listener.on_result("import", self.store.snapshot_label_counts())

    def clear(self) -> bool:
        """Clear training data, test image, last prediction and the head."""
        try:
            self._dispatch(Event.CLEAR)
        except PipelineError as e:
            self._fail("clear", e, None)
            return False
        self.listener.on_progress(
            self._state.training, "Cleared training data, test image, and head model."
        )
        self.listener.on_result("clear", None)
        return True

    def discard_head(self) -> bool:
        """Release the trained head but keep the dataset."""
        try:
            self._dispatch(Event.DISCARD_HEAD)
        except PipelineError as e:
            self._fail("discard_head", e, None)
            return False
        self.listener.on_result("discard_head", None)
        return True

    # ------------------------------------------------------------------
    # Training
    # ------------------------------------------------------------------

    def train_head(self) -> TrainedHead | None:
        """Extract features for the current dataset and fit a new head.

        The previous head stays installed until the new one is ready, and
        stays installed if the run fails.
        """
        try:
            self._dispatch(Event.TRAIN)
        except PipelineError as e:
            self._fail("train", e, None)
            return None

        token = self._token()
        epochs = self.config.head.epochs

        def on_epoch(m: EpochMetrics) -> None:
            self.listener.on_progress(
                self._state.training,
                f"Epoch {m.epoch + 1}/{epochs} - loss={m.loss:.4f} acc={m.accuracy:.4f}",
            )

        try:
            if not self.adapter.ready():
                raise NoBaseModel("Base model is not ready yet.")
            examples = self.store.snapshot()
            if not examples:
                raise EmptyDataset("No training images. Import a folder first.")
            self.listener.on_progress(
                self._state.training,
                f"Training head model on {len(examples)} example(s), "
                f"{len(set(ex.label for ex in examples))} class(es)...",
            )
            matrix = TrainingMatrixBuilder(self.adapter).build(examples, token)
            self._dispatch(Event.FEATURES_EXTRACTED)
            head = self.trainer.fit(matrix, token=token, on_epoch=on_epoch)
        except PipelineError as e:
            self._fail("train", e, Event.TRAIN_FAILED)
            return None
        except Exception as e:
            self._fail("train", e, Event.TRAIN_FAILED)
            raise

        self._pending_head = head
        self._dispatch(Event.TRAIN_SUCCEEDED)
        self.listener.on_progress(
            self._state.training, "Training finished. You can now run predictions."
        )
        self.listener.on_result("train", head)
        return head

    # ------------------------------------------------------------------
    # Prediction
    # ------------------------------------------------------------------

    def select_test_image(self, image: ImageHandle | None) -> None:
        """Remember the query image for :meth:`predict`; clears the last result."""
        self._test_image = image
        self.last_prediction = None

    def predict(self, image: ImageHandle | None = None) -> PredictionResult | None:
        """Classify ``image`` (or the selected test image) with the current head."""
        try:
            self._dispatch(Event.PREDICT)
        except PipelineError as e:
            self._fail("predict", e, None)
            return None

        handle = image if image is not None else self._test_image
        try:
            if not handle:
                raise NoTestImage("Pick a test image first.")
            self.listener.on_progress(self._state.prediction, "Running inference...")
            result = self.predictor.predict(decode_image(handle), self._head)
        except PipelineError as e:
            self._fail("predict", e, Event.PREDICT_FAILED)
            return None
        except Exception as e:
            self._fail("predict", e, Event.PREDICT_FAILED)
            raise

        self._dispatch(Event.PREDICT_SUCCEEDED)
        self.last_prediction = result
        self.listener.on_progress(self._state.prediction, f"Prediction: {result.label}")
        self.listener.on_result("predict", result)
        self._dispatch(Event.PREDICTION_DELIVERED)
        return result

    def close(self) -> bool:
        """Release the head and the backend at session end.

        Rejected with ``OperationInProgress`` while a training run or a
        prediction is in flight.
        """
        try:
            self._dispatch(Event.CLOSE)
        except PipelineError as e:
            self._fail("close", e, None)
            return False
        self.backend.release()
        self.device = None
        self.listener.on_result("close", None)
        return True
