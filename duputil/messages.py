"""Console output that is also collected for the notification report."""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import TextIO


@dataclass
class MessageLog:
    """Prints messages and keeps every one of them in ``mail_body``."""

    quiet: bool = False
    display_time: bool = True
    stdout: TextIO | None = None
    stderr: TextIO | None = None
    clock: Callable[[], datetime] = datetime.now
    mail_body: list[str] = field(default_factory=list)

    @property
    def _stdout(self) -> TextIO:
        return self.stdout if self.stdout is not None else sys.stdout

    @property
    def _stderr(self) -> TextIO:
        return self.stderr if self.stderr is not None else sys.stderr

    def write(self, stream: TextIO, text: str, logger: logging.Logger | None = None) -> None:
        """Record ``text`` and print it to ``stream`` unless quiet.

        Only messages to standard output carry a time prefix on screen.
        """
        if logger is not None:
            logger.info(text)

        stamped = f"{self.clock().strftime('%H:%M:%S')} {text}" if self.display_time else text
        self.mail_body.append(stamped)

        if self.quiet:
            return
        if stream is self._stdout and self.display_time:
            print(stamped, file=stream)
        else:
            print(text, file=stream)

    def message(self, text: str, logger: logging.Logger | None = None) -> None:
        """Write an informational message to standard output."""
        self.write(self._stdout, text, logger)

    def error(self, text: str, logger: logging.Logger | None = None) -> None:
        """Write an error message to standard error."""
        self.write(self._stderr, text, logger)