"""Folder import: ``<selected>/.../<label>/<image>`` to labeled examples."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

from loguru import logger

from client_side_training.data.store import TrainingExample
from client_side_training.types import ImageHandle

IMAGE_EXTENSIONS: tuple[str, ...] = (
    ".jpg",
    ".jpeg",
    ".png",
    ".bmp",
    ".gif",
    ".webp",
)
ROOT_LABEL = "root"


def get_files(root: Path, extensions: tuple[str, ...]) -> list[Path]:
    """Recursively find files matching extensions under root.

    Args:
        root: Directory to search recursively.
        extensions: Tuple of lowercase extensions including dot
            (e.g., (".jpg", ".png")).

    Returns:
        Sorted list of matching file paths.
    """
    files = []
    for p in root.rglob("*"):
        if p.is_file() and p.suffix.lower() in extensions:
            files.append(p)
    return sorted(files)


def _path_parts(relative_path: str) -> list[str]:
    return [p for p in relative_path.replace("\\", "/").split("/") if p]


def label_from_relative_path(relative_path: str, sentinel: str = ROOT_LABEL) -> str:
    """Label = name of the image's parent directory.

    ``"pets/cats/a.jpg"`` -> ``"cats"``.  A bare file name with no directory
    segment gets ``sentinel``.  Backslash separators are accepted.
    """
    parts = _path_parts(relative_path)
    if len(parts) >= 2:
        return parts[-2]
    return sentinel


def scan_folder(root: Path) -> Iterator[tuple[ImageHandle, str]]:
    """Yield ``(image_bytes, relative_path)`` for every image under ``root``.

    Relative paths start with the selected folder's own name, the way a
    directory picker reports them, so images sitting directly in ``root``
    are labeled with ``root.name``.  Non-image files are skipped here and
    never reach the dataset.
    """
    root = Path(root)
    if not root.is_dir():
        msg = f"Not a directory: {root}"
        raise NotADirectoryError(msg)
    files = get_files(root, IMAGE_EXTENSIONS)
    logger.debug(f"scan_folder: {len(files)} image file(s) under {root}")
    for path in files:
        yield path.read_bytes(), path.relative_to(root.parent).as_posix()


def examples_from_files(
    files: Iterator[tuple[ImageHandle, str]] | list[tuple[ImageHandle, str]],
    sentinel: str = ROOT_LABEL,
) -> list[TrainingExample]:
    """Convert ``(bytes, relative_path)`` pairs to labeled examples."""
    examples = []
    for image, rel in files:
        label = label_from_relative_path(rel, sentinel)
        if len(_path_parts(rel)) < 2:
            logger.warning(
                f"{rel!r} has no parent folder; using fallback label {sentinel!r}"
            )
        examples.append(TrainingExample(image=image, label=label))
    return examples
