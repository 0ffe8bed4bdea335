"""Global settings: where duplicacy lives, lock and log directories, notifiers."""

from __future__ import annotations

import contextlib
import functools
import os
import shutil
import sys
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from duputil.config_backup import CONFIG_EXTENSIONS, ConfigurationError, find_config_file
from duputil.messages import MessageLog
from duputil.notify import Notifier, NotifierSet

GLOBAL_CONFIG_NAME = "duplicacy-util"

NotifierFactory = Callable[[Mapping[str, Any]], Notifier]

_EVENTS = (
    ("onStart", "on_start"),
    ("onSkip", "on_skip"),
    ("onSuccess", "on_success"),
    ("onFailure", "on_failure"),
)


class GlobalConfigError(Exception):
    """The global configuration is missing, unreadable or invalid."""


@dataclass
class GlobalConfig:
    """Settings shared by every repository configuration."""

    duplicacy_path: str = "duplicacy"
    lock_dir: str = ""
    log_dir: str = ""
    log_file_count: int = 5
    notifiers: NotifierSet = field(default_factory=NotifierSet)
    settings: dict[Any, Any] = field(default_factory=dict)
    config_file_used: str | None = None


def _lookup(settings: Mapping[Any, Any], key: str) -> Any:
    env_value = os.environ.get(key.upper())
    if env_value:
        return env_value
    node: Any = settings
    for part in key.split("."):
        if not isinstance(node, Mapping):
            return None
        wanted = part.lower()
        node = next((value for name, value in node.items() if str(name).lower() == wanted), None)
    return node


def _as_string(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _as_int(value: Any) -> int:
    if isinstance(value, (bool, int)):
        return int(value)
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return 0
    return 0


def _as_string_list(value: Any) -> list[str]:
    if isinstance(value, (list, tuple)):
        return [_as_string(item) for item in value]
    if isinstance(value, str):
        return value.split()
    return []


def _read_settings(path: Path) -> dict[Any, Any]:
    try:
        with path.open(encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except OSError as exc:
        raise GlobalConfigError(str(exc)) from exc
    except yaml.YAMLError as exc:
        raise GlobalConfigError(f"While parsing config: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise GlobalConfigError(f"While parsing config: {path} does not hold a mapping")
    return data


def verify_path_exists(path: str | Path) -> None:
    """Raise GlobalConfigError if ``path`` does not exist."""
    try:
        os.stat(path)
    except OSError as exc:
        raise GlobalConfigError(str(exc)) from exc


def is_unique_notifier(notifier: Notifier, collection: Iterable[Notifier]) -> bool:
    """Return True if no equal notifier is already in ``collection``."""
    return all(notifier != existing for existing in collection)


def configure_notification_channel(
    channels: Iterable[str],
    notification_type: str,
    factories: Mapping[str, Callable[[], Notifier]] | None = None,
) -> list[Notifier]:
    """Build the notifiers named by ``channels``, leaving out duplicates.

    ``factories`` maps a channel name to a callable creating its notifier.
    """
    factories = factories or {}
    notifiers: list[Notifier] = []
    for channel in channels:
        factory = factories.get(channel)
        if factory is None:
            raise GlobalConfigError(
                f'Invalid notification channel "{channel}" provided for {notification_type}Notifier'
            )
        notifier = factory()
        if is_unique_notifier(notifier, notifiers):
            notifiers.append(notifier)
    return notifiers


def set_global_config_variables(
    storage_dir: str | Path,
    config_file: str | Path | None = None,
    factories: Mapping[str, NotifierFactory] | None = None,
    test_notifications: bool = False,
    log: MessageLog | None = None,
) -> GlobalConfig:
    """Read the global configuration, or return the defaults if there is none.

    A named ``config_file`` must exist; otherwise ``duplicacy-util`` is looked
    up in ``storage_dir``. Each factory is called with the parsed settings.
    """
    log = log or MessageLog()
    config = GlobalConfig(lock_dir=str(storage_dir), log_dir=str(Path(storage_dir) / "log"))

    if config_file:
        path = Path(config_file)
        extension = path.suffix.lstrip(".").lower()
        if extension not in CONFIG_EXTENSIONS:
            raise GlobalConfigError(f'Unsupported Config Type "{extension}"')
    else:
        try:
            path = find_config_file(storage_dir, GLOBAL_CONFIG_NAME)
        except ConfigurationError:
            return config

    settings = _read_settings(path)
    config.settings = settings
    config.config_file_used = str(path)
    log.message(f"Using global config: {path}")

    if value := _as_string(_lookup(settings, "duplicacypath")):
        config.duplicacy_path = value
    if value := _as_string(_lookup(settings, "lockdirectory")):
        config.lock_dir = value
    if value := _as_string(_lookup(settings, "logdirectory")):
        config.log_dir = value
    if count := _as_int(_lookup(settings, "logfilecount")):
        config.log_file_count = count

    bound = {name: functools.partial(factory, settings) for name, factory in (factories or {}).items()}
    for event, attribute in _EVENTS:
        channels = _as_string_list(_lookup(settings, f"notifications.{event}"))
        if channels:
            setattr(config.notifiers, attribute, configure_notification_channel(channels, event, bound))

    if test_notifications and config.notifiers.is_empty():
        raise GlobalConfigError("No notifiers are configured: Testing notifiers is not valid")

    return config


def load_global_config(
    storage_dir: str | Path,
    config_file: str | Path | None = None,
    factories: Mapping[str, NotifierFactory] | None = None,
    test_notifications: bool = False,
    check_duplicacy: bool = True,
    log: MessageLog | None = None,
) -> GlobalConfig:
    """Read the global configuration and validate the paths it names."""
    config = set_global_config_variables(storage_dir, config_file, factories, test_notifications, log)

    if check_duplicacy and shutil.which(config.duplicacy_path) is None:
        raise GlobalConfigError(
            f'exec: "{config.duplicacy_path}": executable file not found in $PATH'
        )

    verify_path_exists(config.lock_dir)

    with contextlib.suppress(OSError):
        os.mkdir(config.log_dir, 0o755)
    verify_path_exists(config.log_dir)

    if config.log_file_count < 2:
        print("Error: logfilecount must have at least two log files saved", file=sys.stderr)

    return config