"""Pipeline phases as a pure ``(state, event) -> (state, effects)`` function.

Readiness, training and prediction are tracked as three orthogonal
phases.  :func:`transition` never touches any resource; it returns the
next state plus the side effects the owner must carry out (install or
release a head, wipe the dataset, ...).  Rejected events raise a
:class:`~client_side_training.errors.PipelineError` and leave the caller's
state as it was.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel

from client_side_training.errors import (
    HeadNotTrained,
    InvalidTransition,
    NoBaseModel,
    OperationInProgress,
)


class BasePhase(StrEnum):
    UNINITIALIZED = "uninitialized"
    BACKEND_PREPARING = "backend_preparing"
    BASE_MODEL_LOADING = "base_model_loading"
    READY = "ready"


class TrainingPhase(StrEnum):
    IDLE = "idle"
    EXTRACTING = "extracting"
    FITTING_HEAD = "fitting_head"
    TRAINED = "trained"


class PredictionPhase(StrEnum):
    IDLE = "idle"
    INFERRING = "inferring"
    DONE = "done"


class Event(StrEnum):
    PREPARE = "prepare"
    BACKEND_PREPARED = "backend_prepared"
    BASE_MODEL_LOADED = "base_model_loaded"
    PREPARE_FAILED = "prepare_failed"
    TRAIN = "train"
    FEATURES_EXTRACTED = "features_extracted"
    TRAIN_SUCCEEDED = "train_succeeded"
    TRAIN_FAILED = "train_failed"
    CLEAR = "clear"
    DISCARD_HEAD = "discard_head"
    PREDICT = "predict"
    PREDICT_SUCCEEDED = "predict_succeeded"
    PREDICT_FAILED = "predict_failed"
    PREDICTION_DELIVERED = "prediction_delivered"
    CLOSE = "close"


class Effect(StrEnum):
    INSTALL_HEAD = "install_head"
    RELEASE_HEAD = "release_head"
    CLEAR_DATASET = "clear_dataset"
    CLEAR_TEST_IMAGE = "clear_test_image"
    RESET_PREDICTION = "reset_prediction"


class PipelineState(BaseModel, frozen=True):
    base: BasePhase = BasePhase.UNINITIALIZED
    training: TrainingPhase = TrainingPhase.IDLE
    prediction: PredictionPhase = PredictionPhase.IDLE
    has_head: bool = False

    @property
    def training_busy(self) -> bool:
        return self.training in (TrainingPhase.EXTRACTING, TrainingPhase.FITTING_HEAD)

    @property
    def inferring(self) -> bool:
        return self.prediction is PredictionPhase.INFERRING


Transition = tuple[PipelineState, tuple[Effect, ...]]

_NO_EFFECTS: tuple[Effect, ...] = ()


def _invalid(state: PipelineState, event: Event) -> InvalidTransition:
    return InvalidTransition(
        f"Event {event.value!r} not allowed in state "
        f"base={state.base.value}, training={state.training.value}, "
        f"prediction={state.prediction.value}"
    )


def _base(state: PipelineState, event: Event) -> Transition:
    expected = {
        Event.PREPARE: (BasePhase.UNINITIALIZED, BasePhase.BACKEND_PREPARING),
        Event.BACKEND_PREPARED: (BasePhase.BACKEND_PREPARING, BasePhase.BASE_MODEL_LOADING),
        Event.BASE_MODEL_LOADED: (BasePhase.BASE_MODEL_LOADING, BasePhase.READY),
    }
    if event is Event.PREPARE_FAILED:
        if state.base not in (BasePhase.BACKEND_PREPARING, BasePhase.BASE_MODEL_LOADING):
            raise _invalid(state, event)
        return state.model_copy(update={"base": BasePhase.UNINITIALIZED}), _NO_EFFECTS
    source, target = expected[event]
    if state.base is not source:
        raise _invalid(state, event)
    return state.model_copy(update={"base": target}), _NO_EFFECTS


def _training(state: PipelineState, event: Event) -> Transition:
    if event is Event.TRAIN:
        if state.base is not BasePhase.READY:
            raise NoBaseModel("Base model is not ready yet.")
        if state.training_busy:
            raise OperationInProgress("A training run is already in progress.")
        return state.model_copy(update={"training": TrainingPhase.EXTRACTING}), _NO_EFFECTS

    if event is Event.FEATURES_EXTRACTED:
        if state.training is not TrainingPhase.EXTRACTING:
            raise _invalid(state, event)
        return state.model_copy(update={"training": TrainingPhase.FITTING_HEAD}), _NO_EFFECTS

    if event is Event.TRAIN_SUCCEEDED:
        if state.training is not TrainingPhase.FITTING_HEAD:
            raise _invalid(state, event)
        effects = (Effect.RELEASE_HEAD,) if state.has_head else _NO_EFFECTS
        return (
            state.model_copy(update={"training": TrainingPhase.TRAINED, "has_head": True}),
            effects + (Effect.INSTALL_HEAD, Effect.RESET_PREDICTION),
        )

    # TRAIN_FAILED: back to whatever held before the run started.
    if not state.training_busy:
        raise _invalid(state, event)
    previous = TrainingPhase.TRAINED if state.has_head else TrainingPhase.IDLE
    return state.model_copy(update={"training": previous}), _NO_EFFECTS


def _reset(state: PipelineState, event: Event) -> Transition:
    if state.training_busy:
        raise OperationInProgress("Cannot clear while a training run is in progress.")
    if state.inferring:
        raise OperationInProgress("Cannot clear while a prediction is in progress.")
    effects: tuple[Effect, ...] = _NO_EFFECTS
    if event is Event.CLEAR:
        effects = (Effect.CLEAR_DATASET, Effect.CLEAR_TEST_IMAGE)
    if state.has_head:
        effects += (Effect.RELEASE_HEAD,)
    next_state = state.model_copy(
        update={
            "training": TrainingPhase.IDLE,
            "prediction": PredictionPhase.IDLE,
            "has_head": False,
        }
    )
    return next_state, effects + (Effect.RESET_PREDICTION,)


def _close(state: PipelineState, event: Event) -> Transition:
    if state.training_busy:
        raise OperationInProgress("Cannot close while a training run is in progress.")
    if state.inferring:
        raise OperationInProgress("Cannot close while a prediction is in progress.")
    effects = (Effect.RELEASE_HEAD,) if state.has_head else _NO_EFFECTS
    return PipelineState(), effects + (Effect.RESET_PREDICTION,)


def _prediction(state: PipelineState, event: Event) -> Transition:
    if event is Event.PREDICT:
        if state.base is not BasePhase.READY:
            raise NoBaseModel("Base model is not ready yet.")
        if state.inferring:
            raise OperationInProgress("A prediction is already in progress.")
        if not state.has_head:
            raise HeadNotTrained(
                "Head model is not trained yet. Train the head model first."
            )
        return (
            state.model_copy(update={"prediction": PredictionPhase.INFERRING}),
            (Effect.RESET_PREDICTION,),
        )

    if event is Event.PREDICTION_DELIVERED:
        if state.prediction is not PredictionPhase.DONE:
            raise _invalid(state, event)
        return state.model_copy(update={"prediction": PredictionPhase.IDLE}), _NO_EFFECTS

    if not state.inferring:
        raise _invalid(state, event)
    target = PredictionPhase.DONE if event is Event.PREDICT_SUCCEEDED else PredictionPhase.IDLE
    return state.model_copy(update={"prediction": target}), _NO_EFFECTS


_HANDLERS = {
    Event.PREPARE: _base,
    Event.BACKEND_PREPARED: _base,
    Event.BASE_MODEL_LOADED: _base,
    Event.PREPARE_FAILED: _base,
    Event.TRAIN: _training,
    Event.FEATURES_EXTRACTED: _training,
    Event.TRAIN_SUCCEEDED: _training,
    Event.TRAIN_FAILED: _training,
    Event.CLEAR: _reset,
    Event.DISCARD_HEAD: _reset,
    Event.PREDICT: _prediction,
    Event.PREDICT_SUCCEEDED: _prediction,
    Event.PREDICT_FAILED: _prediction,
    Event.PREDICTION_DELIVERED: _prediction,
    Event.CLOSE: _close,
}


def transition(state: PipelineState, event: Event) -> Transition:
    """Next state and effects for ``event``; raises if ``event`` is rejected."""
    return _HANDLERS[event](state, event)
