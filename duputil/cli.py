"""Command line entry point: parse options, load configuration and run duplicacy."""

from __future__ import annotations

import argparse
import contextlib
import sys
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from filelock import FileLock, Timeout

from duputil.backup_ops import BackupRunner, Executor, Operations
from duputil.config_backup import BackupConfiguration, ConfigurationError
from duputil.config_global import GlobalConfig, GlobalConfigError, NotifierFactory, load_global_config
from duputil.executor import run_command
from duputil.messages import MessageLog
from duputil.notify import test_notifications
from duputil.report import RunReport
from duputil.utilities import StorageDirectoryError, get_storage_directory

VERSION_TEXT = "<dev>"
GIT_HASH = "<unknown>"

STATUS_SKIPPED = 6200
STATUS_LOCK_ERROR = 201
STATUS_BACKUP_FAILED = 500
STATUS_NOTIFY_FAILED = 5


class _RunFailure(Exception):
    """A run ended with an error and the given exit status."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = status


@dataclass
class Options:
    """Options given on the command line."""

    config: str = ""
    global_config: str = ""
    storage_dir: str = ""
    all: bool = False
    backup: bool = False
    copy: bool = False
    check: bool = False
    prune: bool = False
    test_notifications: bool = False
    debug: bool = False
    quiet: bool = False
    verbose: bool = False
    version: bool = False
    extra: list[str] = field(default_factory=list)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="duplicacy-util", allow_abbrev=False)

    def option(name: str, **kwargs: object) -> None:
        parser.add_argument(f"-{name}", f"--{name}", **kwargs)

    option("f", dest="config", default="", metavar="FILE",
           help="Configuration file for storage definitions (must be specified)")
    option("g", dest="global_config", default="", metavar="FILE",
           help="Global configuration file name")
    option("sd", dest="storage_dir", default="", metavar="DIR",
           help="Full path to storage directory for configuration/log files")

    option("a", dest="all", action="store_true",
           help="Perform all duplicacy operations (backup, copy, purge, check)")
    option("backup", action="store_true", help="Perform duplicacy backup operation")
    option("copy", action="store_true", help="Perform duplicacy copy operation")
    option("check", action="store_true", help="Perform duplicacy check operation")
    option("prune", action="store_true", help="Perform duplicacy prune operation")

    option("tn", dest="test_notifications", action="store_true", help="Test notifications")

    option("d", dest="debug", action="store_true", help="Enable debug output (implies verbose)")
    option("q", dest="quiet", action="store_true",
           help="Quiet operations (generate output only in case of error)")
    option("v", dest="verbose", action="store_true", help="Enable verbose output")
    option("version", action="store_true", help="Display version number")

    parser.add_argument("extra", nargs="*", help=argparse.SUPPRESS)
    return parser


def parse_arguments(argv: Sequence[str] | None = None) -> Options:
    """Parse the command line into Options; arguments that are not options land in ``extra``."""
    namespace = _build_parser().parse_args(None if argv is None else list(argv))
    return Options(**vars(namespace))


@dataclass
class App:
    """One invocation of the program."""

    options: Options
    log: MessageLog | None = None
    notifier_factories: Mapping[str, NotifierFactory] = field(default_factory=dict)
    check_duplicacy: bool = True
    executor: Executor = run_command
    version_text: str = VERSION_TEXT
    git_hash: str = GIT_HASH
    storage_dir: str = ""
    global_config: GlobalConfig = field(default_factory=GlobalConfig)
    configuration: BackupConfiguration = field(default_factory=BackupConfiguration)
    report: RunReport = field(default_factory=RunReport)
    runner_factory: Callable[..., BackupRunner] = BackupRunner

    def __post_init__(self) -> None:
        if self.log is None:
            self.log = MessageLog()
        self.log.quiet = self.options.quiet

    @property
    def operations(self) -> Operations:
        """The operations selected on the command line."""
        return Operations(
            backup=self.options.backup,
            copy=self.options.copy,
            prune=self.options.prune,
            check=self.options.check,
        )

    def process_arguments(self) -> int:
        """Apply option rules, load the repository configuration and run it.

        Returns the exit status; raises an error carrying a ``status`` on failure.
        """
        options = self.options
        log = self.log

        if options.all:
            options.backup = options.copy = options.prune = options.check = True
        if options.debug:
            options.verbose = True

        if options.verbose and log.quiet:
            log.quiet = False

        if log.quiet and not self.global_config.notifiers.has_failure_notifier():
            log.quiet = False
            log.error("Notice: Quiet mode refused; a failure notifier should be configured")

        if options.test_notifications:
            options.config = "test"
            try:
                test_notifications(self.global_config.notifiers, self.report)
            except Exception as exc:
                raise _RunFailure(1, str(exc)) from exc
            return 0

        if not options.config:
            raise _RunFailure(2, "Mandatory parameter -f is not specified (must be specified)")

        self.configuration = BackupConfiguration(config_filename=options.config)
        try:
            self.configuration.load(self.storage_dir, options.verbose, options.debug, log)
        except ConfigurationError:
            return 1

        if not self.operations.any():
            raise _RunFailure(
                1, "No operations to perform (specify -backup, -copy, -prune, -check, or -a (all))"
            )

        log.message(
            f"duplicacy-util starting, version: {self.version_text}, Git Hash: {self.git_hash}"
        )
        return self.obtain_lock()

    def obtain_lock(self) -> int:
        """Run the operations while holding the configuration's lock file."""
        lock_path = Path(self.global_config.lock_dir) / f"{self.options.config}.lock"
        lock = FileLock(str(lock_path))
        try:
            lock.acquire(timeout=0)
        except Timeout as exc:
            raise _RunFailure(STATUS_SKIPPED, "backup already running and will be skipped") from exc
        except OSError as exc:
            raise _RunFailure(STATUS_LOCK_ERROR, str(exc)) from exc

        runner = self.runner_factory(
            config=self.configuration,
            config_name=self.options.config,
            duplicacy_path=self.global_config.duplicacy_path,
            log_dir=self.global_config.log_dir,
            log_file_count=self.global_config.log_file_count,
            log=self.log,
            report=self.report,
            notifiers=self.global_config.notifiers,
            debug=self.options.debug,
            executor=self.executor,
        )
        try:
            runner.perform_backup(self.operations)
        except Exception as exc:
            raise _RunFailure(STATUS_BACKUP_FAILED, "backup failed, check the logs for details") from exc
        finally:
            lock.release()
            with contextlib.suppress(OSError):
                lock_path.unlink()
        return 0

    def run(self) -> int:
        """Run the whole program and return its exit status."""
        options = self.options
        log = self.log

        if options.extra:
            log.error(
                f"Error: Unrecognized arguments specified on command line: [{' '.join(options.extra)}]"
            )
            return 2

        if options.version:
            print(
                f"Version: {self.version_text}, Git Hash: {self.git_hash}",
                file=log.stdout if log.stdout is not None else sys.stdout,
            )
            return 0

        try:
            self.storage_dir = get_storage_directory(options.storage_dir)
        except StorageDirectoryError as exc:
            log.error(f"Error: {exc}")
            return 2

        try:
            self.global_config = load_global_config(
                self.storage_dir,
                options.global_config or None,
                self.notifier_factories,
                options.test_notifications,
                self.check_duplicacy,
                log,
            )
        except GlobalConfigError as exc:
            log.quiet = False
            log.error(f"Error: {exc}")
            return 2

        try:
            return self.process_arguments()
        except _RunFailure as failure:
            status = failure.status
            notifiers = self.global_config.notifiers
            notify_failed = False
            if status == STATUS_SKIPPED:
                log.error(f"Warning: {failure}")
                send = notifiers.notify_of_skip
            else:
                log.error(f"Error: {failure}")
                send = notifiers.notify_of_failure
            try:
                send()
            except Exception:
                notify_failed = True
            if status == 0 and notify_failed:
                status = STATUS_NOTIFY_FAILED
            return status


def main(argv: Sequence[str] | None = None) -> int:
    """Run the program with ``argv`` (default: the process arguments)."""
    return App(parse_arguments(argv)).run()