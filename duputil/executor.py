"""Running an external command and streaming its output line by line."""

from __future__ import annotations

import subprocess
from collections.abc import Callable, Sequence


class CommandError(Exception):
    """An external command could not be started or exited unsuccessfully."""

    def __init__(self, message: str, returncode: int | None = None) -> None:
        super().__init__(message)
        self.returncode = returncode


def run_command(
    name: str,
    args: Sequence[str],
    cwd: str | None,
    output: Callable[[str], None],
) -> None:
    """Run ``name`` with ``args`` in ``cwd``, passing each stdout line to ``output``.

    Raises CommandError if the command cannot start or exits with a non-zero status.
    """
    command = [name, *args]
    try:
        process = subprocess.Popen(
            command,
            cwd=cwd or None,
            stdout=subprocess.PIPE,
            text=True,
            errors="replace",
        )
    except OSError as exc:
        raise CommandError(f"unable to start {name}: {exc}") from exc

    with process:
        assert process.stdout is not None
        for line in process.stdout:
            line = line.rstrip("\n")
            if line.endswith("\r"):
                line = line[:-1]
            output(line)
        returncode = process.wait()

    if returncode != 0:
        raise CommandError(f"exit status {returncode}", returncode)