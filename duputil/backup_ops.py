"""Running the duplicacy backup, copy, prune and check operations."""

from __future__ import annotations

import contextlib
import logging
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path

from duputil.config_backup import BackupConfiguration
from duputil.executor import CommandError, run_command
from duputil.messages import MessageLog
from duputil.notify import NotifierSet
from duputil.report import BackupRevision, CopyRevision, RunReport
from duputil.rotatelogs import rotate_log_files
from duputil.timeutils import time_diff_string

SEPARATOR = "#" * 70
TEST_MARKER = "testbackup"
TEST_DURATION = "x seconds"

_FILES_RE = re.compile(r".*: (\S+) total, (\S+) bytes; (\S+) new, (\S+) bytes")
_CHUNKS_RE = re.compile(
    r".*: (\S+) total, (\S+) bytes; (\S+) new, (\S+) bytes, (\S+) bytes uploaded"
)
_COPY_RE = re.compile(r"Copy complete, (\S+) total chunks, (\S+) chunks copied, (\S+) skipped")

Executor = Callable[[str, Sequence[str], "str | None", Callable[[str], None]], None]


def parse_backup_line(line: str) -> dict[str, str]:
    """Return the backup statistics found in one line of ``duplicacy backup`` output.

    Gives the names of BackupRevision fields and their values, or an empty dict.
    """
    if line.startswith("Files:"):
        match = _FILES_RE.search(line)
        if match:
            keys = ("files_total_count", "files_total_size", "files_new_count", "files_new_size")
            return dict(zip(keys, match.groups()))
    elif line.startswith("All chunks:"):
        match = _CHUNKS_RE.search(line)
        if match:
            keys = (
                "chunk_total_count",
                "chunk_total_size",
                "chunk_new_count",
                "chunk_new_size",
                "chunk_new_uploaded",
            )
            return dict(zip(keys, match.groups()))
    return {}


def parse_copy_line(line: str) -> dict[str, str]:
    """Return the copy statistics found in one line of ``duplicacy copy`` output."""
    if line.startswith("Copy complete, "):
        match = _COPY_RE.search(line)
        if match:
            keys = ("chunk_total_count", "chunk_copy_count", "chunk_skip_count")
            return dict(zip(keys, match.groups()))
    return {}


def _is_password_prompt(line: str) -> bool:
    return line.startswith("Enter storage password:") or line.endswith("Authorization failure")


def _prefix_args(test_args: Sequence[str], suffix: str) -> list[str]:
    args = list(test_args)
    if args and args[0] == TEST_MARKER:
        args[1] = f"{test_args[1]}_{suffix}"
    return args


def _quote_args(info: dict[str, str]) -> tuple[str, list[str]]:
    quote = info.get("quote", "")
    if quote:
        return f" {quote}", quote.split(" ")
    return "", []


@dataclass
class Operations:
    """Which duplicacy operations a run performs."""

    backup: bool = False
    copy: bool = False
    prune: bool = False
    check: bool = False

    @classmethod
    def everything(cls) -> Operations:
        """Return a selection of every operation."""
        return cls(backup=True, copy=True, prune=True, check=True)

    def any(self) -> bool:
        """Return True if at least one operation is selected."""
        return self.backup or self.copy or self.prune or self.check


@dataclass
class BackupRunner:
    """Runs duplicacy for one repository configuration and gathers statistics."""

    config: BackupConfiguration
    config_name: str = ""
    duplicacy_path: str = "duplicacy"
    log_dir: str = ""
    log_file_count: int = 5
    log: MessageLog = field(default_factory=MessageLog)
    report: RunReport = field(default_factory=RunReport)
    notifiers: NotifierSet = field(default_factory=NotifierSet)
    debug: bool = False
    executor: Executor = run_command
    clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)

    def _execute(self, args: list[str], logger: logging.Logger, output: Callable[[str], None]) -> None:
        if self.debug:
            self.log.message(f"Executing: {self.duplicacy_path}[{' '.join(args)}]", logger)
        try:
            self.executor(self.duplicacy_path, args, self.config.repo_dir or None, output)
        except CommandError as exc:
            self.log.error(f"Error executing command: {exc}", logger)
            raise

    def _duration(self, start: datetime, args: list[str]) -> str:
        if args and args[0] == TEST_MARKER:
            return TEST_DURATION
        return time_diff_string(start, self.clock())

    def perform_backup(self, operations: Operations) -> None:
        """Rotate logs, run the selected operations and notify about the outcome."""
        self.log.message("Rotating log files")
        try:
            rotate_log_files(self.log_dir, self.config_name, self.log_file_count)
        except OSError as exc:
            self.log.error(f"Error: {exc}")
            raise

        log_path = Path(self.log_dir) / f"{self.config_name}.log"
        try:
            handler = logging.FileHandler(log_path, mode="w", encoding="utf-8")
        except OSError as exc:
            self.log.error(f"Error: {exc}")
            raise
        handler.setFormatter(logging.Formatter("%(asctime)s %(message)s", "%H:%M:%S"))
        logger = logging.Logger(f"duputil.run.{self.config_name}", logging.INFO)
        logger.addHandler(handler)

        try:
            start = self.clock()
            self.log.message(
                f"Beginning backup on {datetime.now().strftime('%m-%d-%Y %H:%M:%S')}", logger
            )

            # A failed start notification does not stop the run.
            with contextlib.suppress(Exception):
                self.notifiers.notify_of_start()

            if operations.backup:
                self.run_backups(logger, [])
            if operations.copy:
                self.run_copies(logger, [])
            if operations.prune:
                self.run_prunes(logger, [])
            if operations.check:
                self.run_checks(logger, [])

            logger.info(SEPARATOR)
            self.log.message(
                f"Operations completed in {time_diff_string(start, self.clock())}", logger
            )
        finally:
            logger.removeHandler(handler)
            handler.close()

        self.notifiers.notify_of_success()

    def run_backups(self, logger: logging.Logger, test_args: Sequence[str] = ()) -> None:
        """Run ``duplicacy backup`` for every configured storage."""
        entry = BackupRevision()

        def handle(line: str) -> None:
            nonlocal entry
            if line.startswith(("Files:", "All chunks:")):
                logger.info(line)
                self.log.message(f"  {line}", logger)
                entry = replace(entry, **parse_backup_line(line))
            elif _is_password_prompt(line):
                self.log.message("  Error: Duplicacy appears to be prompting for a password", logger)
                logger.info(line)
                self.log.message(f"  {line}", logger)
            else:
                logger.info(line)

        for number, info in enumerate(self.config.backup_info, start=1):
            start = self.clock()
            logger.info(SEPARATOR)

            name = info.get("name", "")
            args = _prefix_args(test_args, f"backup{number}")
            args += ["backup", "-storage", name, "-stats"]

            threads = "1"
            if info.get("threads"):
                threads = info["threads"]
                args += ["-threads", threads]

            vss_flags = ""
            if info.get("vss") == "true":
                args.append("-vss")
                vss_flags = " -vss"
                if info.get("vssTimeout"):
                    args += ["-vss-timeout", info["vssTimeout"]]
                    vss_flags += f" -vss-timeout {info['vssTimeout']}"

            quote_flags, quote_args = _quote_args(info)
            args += quote_args

            self.log.message(
                f"Backing up to storage {name}{vss_flags} with {threads} threads{quote_flags}",
                logger,
            )
            self._execute(args, logger, handle)

            duration = self._duration(start, args)
            self.log.message(f"  Duration: {duration}", logger)

            entry = replace(entry, storage=name, duration=duration)
            self.report.backups.append(entry)

    def run_copies(self, logger: logging.Logger, test_args: Sequence[str] = ()) -> None:
        """Run ``duplicacy copy`` for every configured pair of storages."""
        entry = CopyRevision()

        def handle(line: str) -> None:
            nonlocal entry
            if line.startswith("Copy complete, "):
                logger.info(line)
                self.log.message(f"  {line}", logger)
                entry = replace(entry, **parse_copy_line(line))
            else:
                logger.info(line)

        for number, info in enumerate(self.config.copy_info, start=1):
            start = self.clock()
            logger.info(SEPARATOR)

            source = info.get("from", "")
            target = info.get("to", "")
            args = _prefix_args(test_args, f"copy{number}")
            args += ["copy", "-from", source, "-to", target]

            threads = "1"
            if info.get("threads"):
                threads = info["threads"]
                args += ["-threads", threads]

            quote_flags, quote_args = _quote_args(info)
            args += quote_args

            self.log.message(
                f"Copying from storage {source} to storage {target} with {threads} threads{quote_flags}",
                logger,
            )
            self._execute(args, logger, handle)

            duration = self._duration(start, args)
            self.log.message(f"  Duration: {duration}", logger)

            entry = replace(entry, storage_from=source, storage_to=target, duration=duration)
            self.report.copies.append(entry)

    def run_prunes(self, logger: logging.Logger, test_args: Sequence[str] = ()) -> None:
        """Run ``duplicacy prune`` for every configured storage."""
        for info in self.config.prune_info:
            logger.info(SEPARATOR)

            storage = info.get("storage", "")
            args = [*test_args, "prune", "-storage", storage]
            args += info.get("keep", "").split(" ")

            threads = "1"
            if info.get("threads"):
                threads = info["threads"]
                args += ["-threads", threads]

            all_flag = ""
            if info.get("all", "true") != "false":
                all_flag = " -all"
                args.append("-all")

            quote_flags, quote_args = _quote_args(info)
            args += quote_args

            self.log.message(
                f"Pruning storage {storage} using {threads} thread(s){all_flag}{quote_flags}", logger
            )
            self._execute(args, logger, logger.info)

    def run_checks(self, logger: logging.Logger, test_args: Sequence[str] = ()) -> None:
        """Run ``duplicacy check`` for every configured storage."""
        for number, info in enumerate(self.config.check_info, start=1):
            logger.info(SEPARATOR)

            storage = info.get("storage", "")
            args = _prefix_args(test_args, f"check{number}")
            args += ["check", "-storage", storage]

            all_text = ""
            if info.get("all") == "true":
                all_text = " with -all"
                args.append("-all")

            quote_flags, quote_args = _quote_args(info)
            args += quote_args

            self.log.message(f"Checking storage {storage}{all_text}{quote_flags}", logger)
            self._execute(args, logger, logger.info)