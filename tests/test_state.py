"""Tests for the pure pipeline state machine."""

from __future__ import annotations

import pytest

from client_side_training.errors import (
    HeadNotTrained,
    InvalidTransition,
    NoBaseModel,
    OperationInProgress,
)
from client_side_training.pipeline.state import (
    BasePhase,
    Effect,
    Event,
    PipelineState,
    PredictionPhase,
    TrainingPhase,
    transition,
)

READY = PipelineState(base=BasePhase.READY)
TRAINED = READY.model_copy(update={"training": TrainingPhase.TRAINED, "has_head": True})


def run(state: PipelineState, *events: Event) -> tuple[PipelineState, list[Effect]]:
    effects: list[Effect] = []
    for event in events:
        state, step = transition(state, event)
        effects.extend(step)
    return state, effects


class TestReadiness:
    def test_prepare_sequence(self) -> None:
        state, effects = run(
            PipelineState(), Event.PREPARE, Event.BACKEND_PREPARED, Event.BASE_MODEL_LOADED
        )
        assert state.base is BasePhase.READY
        assert effects == []

    @pytest.mark.parametrize(
        "events",
        [
            (Event.PREPARE,),
            (Event.PREPARE, Event.BACKEND_PREPARED),
        ],
    )
    def test_prepare_failure_returns_to_uninitialized(
        self, events: tuple[Event, ...]
    ) -> None:
        state, _ = run(PipelineState(), *events, Event.PREPARE_FAILED)
        assert state.base is BasePhase.UNINITIALIZED

    def test_prepare_twice_rejected(self) -> None:
        with pytest.raises(InvalidTransition):
            transition(READY, Event.PREPARE)

    def test_out_of_order_rejected(self) -> None:
        with pytest.raises(InvalidTransition):
            transition(PipelineState(), Event.BASE_MODEL_LOADED)


class TestTraining:
    def test_happy_path_installs_head(self) -> None:
        state, effects = run(
            READY, Event.TRAIN, Event.FEATURES_EXTRACTED, Event.TRAIN_SUCCEEDED
        )
        assert state.training is TrainingPhase.TRAINED
        assert state.has_head
        assert effects == [Effect.INSTALL_HEAD, Effect.RESET_PREDICTION]

    def test_retrain_releases_previous_head_first(self) -> None:
        _, effects = run(
            TRAINED, Event.TRAIN, Event.FEATURES_EXTRACTED, Event.TRAIN_SUCCEEDED
        )
        assert effects[:2] == [Effect.RELEASE_HEAD, Effect.INSTALL_HEAD]

    def test_train_before_ready(self) -> None:
        with pytest.raises(NoBaseModel):
            transition(PipelineState(), Event.TRAIN)

    @pytest.mark.parametrize("phase", [TrainingPhase.EXTRACTING, TrainingPhase.FITTING_HEAD])
    def test_concurrent_train_rejected(self, phase: TrainingPhase) -> None:
        busy = READY.model_copy(update={"training": phase})
        with pytest.raises(OperationInProgress):
            transition(busy, Event.TRAIN)

    @pytest.mark.parametrize(
        ("start", "events"),
        [
            (READY, (Event.TRAIN,)),
            (READY, (Event.TRAIN, Event.FEATURES_EXTRACTED)),
            (TRAINED, (Event.TRAIN,)),
            (TRAINED, (Event.TRAIN, Event.FEATURES_EXTRACTED)),
        ],
    )
    def test_failure_restores_pre_operation_state(
        self, start: PipelineState, events: tuple[Event, ...]
    ) -> None:
        state, effects = run(start, *events, Event.TRAIN_FAILED)
        assert state == start
        assert Effect.INSTALL_HEAD not in effects
        assert Effect.RELEASE_HEAD not in effects

    def test_train_failed_when_idle_rejected(self) -> None:
        with pytest.raises(InvalidTransition):
            transition(READY, Event.TRAIN_FAILED)


class TestClear:
    def test_clear_with_head(self) -> None:
        state, effects = run(TRAINED, Event.CLEAR)
        assert state == READY
        assert set(effects) == {
            Effect.CLEAR_DATASET,
            Effect.CLEAR_TEST_IMAGE,
            Effect.RELEASE_HEAD,
            Effect.RESET_PREDICTION,
        }

    def test_clear_without_head(self) -> None:
        _, effects = run(READY, Event.CLEAR)
        assert Effect.RELEASE_HEAD not in effects
        assert Effect.CLEAR_DATASET in effects

    def test_clear_during_training_rejected(self) -> None:
        busy = READY.model_copy(update={"training": TrainingPhase.EXTRACTING})
        with pytest.raises(OperationInProgress):
            transition(busy, Event.CLEAR)

    def test_discard_head_keeps_dataset(self) -> None:
        state, effects = run(TRAINED, Event.DISCARD_HEAD)
        assert not state.has_head
        assert state.training is TrainingPhase.IDLE
        assert Effect.RELEASE_HEAD in effects
        assert Effect.CLEAR_DATASET not in effects


class TestPrediction:
    def test_query_cycle_returns_to_idle(self) -> None:
        state, _ = run(TRAINED, Event.PREDICT)
        assert state.prediction is PredictionPhase.INFERRING
        state, _ = run(state, Event.PREDICT_SUCCEEDED)
        assert state.prediction is PredictionPhase.DONE
        state, _ = run(state, Event.PREDICTION_DELIVERED)
        assert state == TRAINED

    def test_failure_returns_to_idle(self) -> None:
        state, _ = run(TRAINED, Event.PREDICT, Event.PREDICT_FAILED)
        assert state == TRAINED

    def test_predict_without_head(self) -> None:
        with pytest.raises(HeadNotTrained):
            transition(READY, Event.PREDICT)

    def test_predict_before_ready(self) -> None:
        with pytest.raises(NoBaseModel):
            transition(PipelineState(), Event.PREDICT)

    def test_concurrent_predict_rejected(self) -> None:
        state, _ = run(TRAINED, Event.PREDICT)
        with pytest.raises(OperationInProgress):
            transition(state, Event.PREDICT)

    def test_prediction_orthogonal_to_training(self) -> None:
        state, _ = run(TRAINED, Event.TRAIN, Event.PREDICT)
        assert state.training is TrainingPhase.EXTRACTING
        assert state.prediction is PredictionPhase.INFERRING


class TestClose:
    def test_close_releases_head_and_resets(self) -> None:
        state, effects = run(TRAINED, Event.CLOSE)
        assert state == PipelineState()
        assert effects == [Effect.RELEASE_HEAD, Effect.RESET_PREDICTION]

    def test_close_before_prepare(self) -> None:
        state, effects = run(PipelineState(), Event.CLOSE)
        assert state == PipelineState()
        assert effects == [Effect.RESET_PREDICTION]

    @pytest.mark.parametrize("phase", [TrainingPhase.EXTRACTING, TrainingPhase.FITTING_HEAD])
    def test_close_during_training_rejected(self, phase: TrainingPhase) -> None:
        busy = TRAINED.model_copy(update={"training": phase})
        with pytest.raises(OperationInProgress):
            transition(busy, Event.CLOSE)

    def test_close_during_prediction_rejected(self) -> None:
        state, _ = run(TRAINED, Event.PREDICT)
        with pytest.raises(OperationInProgress):
            transition(state, Event.CLOSE)
