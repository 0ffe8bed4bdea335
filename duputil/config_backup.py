"""Per-repository configuration: storages to back up, copy, prune and check."""

from __future__ import annotations

import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from itertools import count
from pathlib import Path
from typing import Any

import yaml

from duputil.messages import MessageLog

CONFIG_EXTENSIONS = ("json", "yaml", "yml")

# Configuration names for which the old-format warning has been given.
_warned_old_format: set[str] = set()


class ConfigurationError(Exception):
    """A repository configuration file is missing or invalid."""


def _format_value(value: Any) -> str:
    """Render a configuration value as text the way it is shown to users."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "<nil>"
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else repr(value)
    if isinstance(value, Mapping):
        items = sorted((_format_value(k), _format_value(v)) for k, v in value.items())
        return "map[" + " ".join(f"{k}:{v}" for k, v in items) + "]"
    if isinstance(value, (list, tuple)):
        return "[" + " ".join(_format_value(item) for item in value) + "]"
    return str(value)


def _get_ci(data: Mapping[Any, Any], key: str) -> Any:
    wanted = key.lower()
    for name, value in data.items():
        if str(name).lower() == wanted:
            return value
    return None


def find_config_file(directory: str | Path, name: str) -> Path:
    """Return the configuration file ``name`` with a supported extension in ``directory``."""
    base = Path(directory)
    for extension in CONFIG_EXTENSIONS:
        candidate = base / f"{name}.{extension}"
        if candidate.is_file():
            return candidate
    raise ConfigurationError(f'Config File "{name}" Not Found in "[{base}]"')


def _read_mapping(path: Path) -> dict[Any, Any]:
    try:
        with path.open(encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except OSError as exc:
        raise ConfigurationError(str(exc)) from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"While parsing config: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"While parsing config: {path} does not hold a mapping")
    return data


def coerce_sections(items: Iterable[Any]) -> list[dict[str, str]]:
    """Turn each item into a mapping of strings; items that are not mappings become empty."""
    sections: list[dict[str, str]] = []
    for item in items:
        if isinstance(item, Mapping):
            sections.append({_format_value(k): _format_value(v) for k, v in item.items()})
        else:
            sections.append({})
    return sections


def read_section(
    data: Mapping[Any, Any],
    filename: str,
    section_key: str,
    log: MessageLog | None = None,
) -> list[dict[str, str]]:
    """Return the entries of a section, given either as a list or keyed 1, 2, 3...

    The numbered form is deprecated; a warning is given once per configuration name.
    """
    value = _get_ci(data, section_key)
    if value is None:
        return []

    if isinstance(value, Mapping):
        entries = {str(key).lower(): item for key, item in value.items()}
        if "1" not in entries:
            raise ConfigurationError(f"section {section_key} must be a list of entries")
        if filename not in _warned_old_format:
            _warned_old_format.add(filename)
            (log or MessageLog()).error(
                f"WARNING: Upgrade format of backup configuration {filename} to new format!"
            )
        items = []
        for index in count(1):
            if str(index) not in entries:
                break
            items.append(entries[str(index)])
        return coerce_sections(items)

    if isinstance(value, (list, tuple)):
        return coerce_sections(value)

    raise ConfigurationError(f"section {section_key} must be a list of entries")


@dataclass
class BackupConfiguration:
    """The storages and operations defined for one repository."""

    config_filename: str = ""
    repo_dir: str = ""
    backup_info: list[dict[str, str]] = field(default_factory=list)
    copy_info: list[dict[str, str]] = field(default_factory=list)
    prune_info: list[dict[str, str]] = field(default_factory=list)
    check_info: list[dict[str, str]] = field(default_factory=list)
    config_file_used: str = ""

    def load(
        self,
        storage_dir: str | Path,
        verbose: bool = False,
        debug: bool = False,
        log: MessageLog | None = None,
    ) -> None:
        """Read and validate the configuration from ``storage_dir``.

        Every problem found is reported; ConfigurationError carries the last one.
        """
        log = log or MessageLog()
        try:
            path = find_config_file(storage_dir, self.config_filename)
            data = _read_mapping(path)
        except ConfigurationError as exc:
            log.error(f"Error: {exc}")
            raise

        errors: list[str] = []

        def fail(message: str) -> None:
            errors.append(message)
            log.error(f"Error: {message}")

        env_repo = os.environ.get("REPOSITORY")
        if env_repo:
            self.repo_dir = env_repo
        else:
            repo = _get_ci(data, "repository")
            self.repo_dir = "" if repo is None else _format_value(repo)
        if not self.repo_dir:
            fail("missing mandatory repository location")
        try:
            os.stat(self.repo_dir)
        except OSError as exc:
            fail(str(exc))

        try:
            self.backup_info = read_section(data, self.config_filename, "storage", log)
            self.copy_info = read_section(data, self.config_filename, "copy", log)
            self.prune_info = read_section(data, self.config_filename, "prune", log)
            self.check_info = read_section(data, self.config_filename, "check", log)
        except ConfigurationError as exc:
            log.error(f"Error: {exc}")
            raise

        if not self.backup_info:
            fail("no storage locations defined in configuration")
        else:
            for index, info in enumerate(self.backup_info):
                if not info.get("name"):
                    fail(f"missing mandatory storage field: {index}.name")

        for index, info in enumerate(self.copy_info):
            if not info.get("from"):
                fail(f"missing mandatory from field: {index}.from")
            if not info.get("to"):
                fail(f"missing mandatory to field: {index}.to")

        if not self.prune_info:
            fail("no prune locations defined in configuration")

        for index, info in enumerate(self.prune_info):
            if not info.get("storage"):
                fail(f"missing mandatory prune field: {index}.storage")
            if not info.get("keep"):
                fail(f"missing mandatory prune field: {index}.keep")
            else:
                info["keep"] = " ".join(f"-keep {element}" for element in info["keep"].split(" "))

        if not self.check_info:
            fail("no check locations defined in configuration")
        else:
            for index, info in enumerate(self.check_info):
                if not info.get("storage"):
                    fail(f"missing mandatory check field: {index}.storage")

        if errors:
            raise ConfigurationError(errors[-1])

        self.config_file_used = str(path)
        log.message(f"Using config file:   {path}")

        if verbose:
            self._report_verbose(log)
        if debug:
            log.message("")
            log.message(f"Backup Info: {_format_value(self.backup_info)}")
            log.message(f"Copy Info: {_format_value(self.copy_info)}")
            log.message(f"Prune Info: {_format_value(self.prune_info)}")
            log.message(f"Check Info{_format_value(self.check_info)}")

    def _report_verbose(self, log: MessageLog) -> None:
        log.message("")
        log.message("Backup Information:")
        log.message(f"  Num\t{'Storage':<20}Threads")
        for number, info in enumerate(self.backup_info, start=1):
            log.message(f"  {number:2d}\t{info.get('name', ''):<20}   {info.get('threads', ''):<2}")

        if self.copy_info:
            log.message("Copy Information:")
            log.message(f"  Num\t{'From':<20}{'To':<20}Threads")
            for number, info in enumerate(self.copy_info, start=1):
                log.message(
                    f"  {number:2d}\t{info.get('from', ''):<20}{info.get('to', ''):<20}"
                    f"   {info.get('threads', ''):<2}"
                )
        log.message("")

        log.message("Prune Information:")
        for number, info in enumerate(self.prune_info, start=1):
            log.message(
                f"  {number:2d}: Storage {info.get('storage', '')}\n      Keep: {info.get('keep', '')}"
            )
        log.message("")

        log.message("Check Information:")
        log.message(f"  Num\t{'Storage':<20}All Snapshots")
        for number, info in enumerate(self.check_info, start=1):
            check_all = "true" if "all" in info else ""
            log.message(f"  {number:2d}\t{info.get('storage', ''):<20}    {check_all:<2}")
        log.message("")