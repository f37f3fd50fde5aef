"""Pipeline state machine and session facade."""

from client_side_training.pipeline.listener import (
    LoggingListener,
    PipelineListener,
    RecordingListener,
)
from client_side_training.pipeline.session import Pipeline, resolve_device
from client_side_training.pipeline.state import (
    BasePhase,
    Effect,
    Event,
    PipelineState,
    PredictionPhase,
    TrainingPhase,
    transition,
)

__all__ = [
    "BasePhase",
    "Effect",
    "Event",
    "LoggingListener",
    "Pipeline",
    "PipelineListener",
    "PipelineState",
    "PredictionPhase",
    "RecordingListener",
    "TrainingPhase",
    "resolve_device",
    "transition",
]
