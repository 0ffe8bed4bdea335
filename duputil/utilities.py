"""Locating the directory that holds configuration and log files."""

from __future__ import annotations

from pathlib import Path

STORAGE_DIR_NAME = ".duplicacy-util"


class StorageDirectoryError(Exception):
    """The storage directory could not be found."""


def validate_directory(path: str | Path) -> bool:
    """Return True if ``path`` names an existing directory."""
    return Path(path).is_dir()


def get_storage_directory(directory: str | Path | None) -> str:
    """Return the storage directory.

    An explicitly given directory must exist. Otherwise ``~/.duplicacy-util``
    is used if it exists.
    """
    if directory:
        if validate_directory(directory):
            return str(directory)
        raise StorageDirectoryError(f"Storage directory '{directory}' does not exist")

    try:
        home = Path.home()
    except RuntimeError as exc:
        raise StorageDirectoryError(str(exc)) from exc

    candidate = home / STORAGE_DIR_NAME
    if validate_directory(candidate):
        return str(candidate)

    raise StorageDirectoryError("Unable to resolve location for storage directory")