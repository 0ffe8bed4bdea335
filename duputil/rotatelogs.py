"""Rotation and compression of per-configuration log files."""

from __future__ import annotations

import contextlib
import gzip
import os
import shutil
from pathlib import Path


def _rotated(root: Path, index: int) -> Path:
    return root.with_name(f"{root.name}.{index}.gz")


def rotate_log_files(log_dir: str | Path, config_name: str, count: int) -> None:
    """Shift the compressed logs up by one and compress the current log.

    ``<name>.log`` becomes ``<name>.log.1.gz``, keeping its access and
    modification times. At most ``count - 1`` compressed files are kept.
    The uncompressed log itself is left in place.
    """
    root = Path(log_dir) / f"{config_name}.log"

    for index in range(count - 2, 0, -1):
        with contextlib.suppress(OSError):
            os.replace(_rotated(root, index), _rotated(root, index + 1))

    if not root.exists():
        return

    stat = root.stat()
    target = compress_log_file(root)
    os.utime(target, ns=(stat.st_atime_ns, stat.st_mtime_ns))


def compress_log_file(path: str | Path) -> Path:
    """Compress ``path`` into ``<path>.1.gz`` and return the new file's path."""
    source = Path(path)
    target = _rotated(source, 1)
    with source.open("rb") as reader, target.open("wb") as raw:
        with gzip.GzipFile(filename=str(source), mode="wb", fileobj=raw) as archive:
            shutil.copyfileobj(reader, archive)
    return target