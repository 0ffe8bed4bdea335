"""Checkpoint files recording how far a run has progressed."""

from __future__ import annotations

from enum import IntEnum
from pathlib import Path
from typing import Any

import yaml


class CheckpointOperation(IntEnum):
    """The operation a checkpoint refers to."""

    NONE = 0
    BACKUP = 1
    COPY = 2
    PRUNE = 3
    CHECK = 4


def checkpoint_path(lock_dir: str | Path, config_name: str) -> Path:
    """Return the path of the checkpoint file for a configuration."""
    return Path(lock_dir) / f"{config_name}_checkpoint.yaml"


def _as_int(value: Any) -> int:
    if isinstance(value, (bool, int)):
        return int(value)
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip(), 0)
        except ValueError:
            return 0
    return 0


def read_checkpoint(lock_dir: str | Path, config_name: str) -> tuple[CheckpointOperation, int]:
    """Return (operation, iteration) from the checkpoint file.

    A missing, unreadable or invalid file gives (NONE, 0).
    """
    try:
        with checkpoint_path(lock_dir, config_name).open(encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except (OSError, yaml.YAMLError):
        return CheckpointOperation.NONE, 0

    if not isinstance(data, dict):
        return CheckpointOperation.NONE, 0

    values = {str(key).lower(): value for key, value in data.items()}
    operation = _as_int(values.get("operation"))
    iteration = _as_int(values.get("iteration"))

    valid = {op.value for op in CheckpointOperation} - {CheckpointOperation.NONE.value}
    if operation not in valid:
        return CheckpointOperation.NONE, 0
    return CheckpointOperation(operation), iteration


def write_checkpoint(lock_dir: str | Path, config_name: str, operation: int, iteration: int) -> None:
    """Write the checkpoint file; a partly written file is removed on error."""
    path = checkpoint_path(lock_dir, config_name)
    try:
        path.write_text(f"Operation: {int(operation)}\nIteration: {int(iteration)}\n", encoding="utf-8")
    except OSError:
        path.unlink(missing_ok=True)
        raise


def remove_checkpoint(lock_dir: str | Path, config_name: str) -> None:
    """Delete the checkpoint file; raises FileNotFoundError if there is none."""
    checkpoint_path(lock_dir, config_name).unlink()