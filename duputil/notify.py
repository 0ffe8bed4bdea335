"""Notification channels and fan-out of run events to them."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from operator import methodcaller

from duputil.report import BackupRevision, CopyRevision, RunReport


class NotificationError(Exception):
    """Notifications could not be sent."""


class Notifier(ABC):
    """A channel that is told about the stages of a run; failures raise."""

    @abstractmethod
    def notify_of_start(self) -> None:
        """Announce that a run has started."""

    @abstractmethod
    def notify_of_skip(self) -> None:
        """Announce that a run was skipped."""

    @abstractmethod
    def notify_of_success(self) -> None:
        """Announce that a run succeeded."""

    @abstractmethod
    def notify_of_failure(self) -> None:
        """Announce that a run failed."""


def _dispatch(notifiers: Iterable[Notifier], call: Callable[[Notifier], None]) -> None:
    failure: Exception | None = None
    for notifier in notifiers:
        try:
            call(notifier)
        except Exception as exc:  # every notifier is tried; the last failure wins
            failure = exc
    if failure is not None:
        raise failure


@dataclass
class NotifierSet:
    """The notifiers configured for each kind of event."""

    on_start: list[Notifier] = field(default_factory=list)
    on_skip: list[Notifier] = field(default_factory=list)
    on_success: list[Notifier] = field(default_factory=list)
    on_failure: list[Notifier] = field(default_factory=list)

    def has_failure_notifier(self) -> bool:
        """Return True if anything is told about failures."""
        return bool(self.on_failure)

    def is_empty(self) -> bool:
        """Return True if no notifier is configured at all."""
        return not (self.on_start or self.on_skip or self.on_success or self.on_failure)

    def notify_of_start(self) -> None:
        """Tell every start notifier; re-raise the last failure."""
        _dispatch(self.on_start, methodcaller("notify_of_start"))

    def notify_of_skip(self) -> None:
        """Tell every skip notifier; re-raise the last failure."""
        _dispatch(self.on_skip, methodcaller("notify_of_skip"))

    def notify_of_success(self) -> None:
        """Tell every success notifier; re-raise the last failure."""
        _dispatch(self.on_success, methodcaller("notify_of_success"))

    def notify_of_failure(self) -> None:
        """Tell every failure notifier; re-raise the last failure."""
        _dispatch(self.on_failure, methodcaller("notify_of_failure"))


def sample_report() -> RunReport:
    """Return the made-up statistics used when testing notifications."""
    common = dict(
        chunk_total_count="149",
        chunk_total_size="870,624K",
        files_total_count="345",
        files_total_size="823,261K",
        files_new_count="1",
        files_new_size="7,984K",
        chunk_new_count="6",
        chunk_new_size="8,106K",
        chunk_new_uploaded="3,410K",
    )
    return RunReport(
        backups=[
            BackupRevision(storage="b2", duration="9 seconds", **common),
            BackupRevision(storage="azure-direct", duration="2 seconds", **common),
        ],
        copies=[
            CopyRevision(
                storage_from="b2",
                storage_to="azure-direct",
                chunk_total_count="109",
                chunk_copy_count="3",
                chunk_skip_count="106",
                duration="9 seconds",
            )
        ],
    )


def test_notifications(notifiers: NotifierSet, report: RunReport) -> None:
    """Fill ``report`` with sample data and send every kind of notification.

    Raises NotificationError if no failure notifier is configured, and
    re-raises the last failure of any notifier after all were tried.
    """
    sample = sample_report()
    report.backups = sample.backups
    report.copies = sample.copies

    if not notifiers.has_failure_notifier():
        raise NotificationError("Warning: No notifiers are configured")

    failure: Exception | None = None
    for send in (
        notifiers.notify_of_start,
        notifiers.notify_of_skip,
        notifiers.notify_of_success,
        notifiers.notify_of_failure,
    ):
        try:
            send()
        except Exception as exc:
            failure = exc
    if failure is not None:
        raise failure