"""Dataset accumulation, label indexing and training-matrix construction."""

from client_side_training.data.datamodule import FeatureMatrixDataModule
from client_side_training.data.folder import (
    IMAGE_EXTENSIONS,
    ROOT_LABEL,
    examples_from_files,
    label_from_relative_path,
    scan_folder,
)
from client_side_training.data.labels import LabelIndex
from client_side_training.data.matrix import TrainingMatrix, TrainingMatrixBuilder
from client_side_training.data.store import DatasetStore, TrainingExample

__all__ = [
    "IMAGE_EXTENSIONS",
    "ROOT_LABEL",
    "DatasetStore",
    "FeatureMatrixDataModule",
    "LabelIndex",
    "TrainingExample",
    "TrainingMatrix",
    "TrainingMatrixBuilder",
    "examples_from_files",
    "label_from_relative_path",
    "scan_folder",
]
