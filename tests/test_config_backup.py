import json

import pytest

from duputil.config_backup import (
    BackupConfiguration,
    ConfigurationError,
    coerce_sections,
    find_config_file,
    read_section,
)
from duputil.messages import MessageLog

NUMBERED_BODY = """
storage:
  1:
    name: b2
    threads: 10
  2:
    name: azure-direct
    threads: 5
  3:
    name: default-threads
copy:
  1:
    from: b2
    to: azure
    threads: 10
  2:
    from: b2
    to: default-threads
prune:
  1:
    storage: b2
    keep: "0:365 30:180 7:30 1:7"
  2:
    storage: azure
    keep: "0:365 30:180 7:30 1:7"
check:
  1:
    storage: b2
    all: true
  2:
    storage: azure
"""

ARRAY_BODY = """
storage:
  - name: b2
    threads: 10
  - name: azure-direct
    threads: 5
  - name: default-threads
copy:
  - from: b2
    to: azure
    threads: 10
  - from: b2
    to: default-threads
prune:
  - storage: b2
    keep: "0:365 30:180 7:30 1:7"
  - storage: azure
    keep: "0:365 30:180 7:30 1:7"
check:
  - storage: b2
    all: true
  - storage: azure
"""

NO_COPY_BODY = """
storage:
  - name: b2
    threads: 10
  - name: azure-direct
    threads: 5
  - name: default-threads
prune:
  - storage: b2
    keep: "0:365 30:180 7:30 1:7"
  - storage: azure
    keep: "0:365 30:180 7:30 1:7"
check:
  - storage: b2
    all: true
  - storage: azure
"""

MISSING_STORAGE_BODY = """
prune:
  - storage: b2
    keep: "0:365"
check:
  - storage: b2
"""

MISSING_STORAGE_NAME_BODY = """
storage:
  - threads: 10
prune:
  - storage: b2
    keep: "0:365"
check:
  - storage: b2
"""

NO_PRUNE_BODY = """
storage:
  - name: b2
check:
  - storage: b2
"""

EXPECTED_BACKUP = [
    {"name": "b2", "threads": "10"},
    {"name": "azure-direct", "threads": "5"},
    {"name": "default-threads"},
]
EXPECTED_COPY = [
    {"from": "b2", "to": "azure", "threads": "10"},
    {"from": "b2", "to": "default-threads"},
]
EXPECTED_PRUNE = [
    {"storage": "b2", "keep": "-keep 0:365 -keep 30:180 -keep 7:30 -keep 1:7"},
    {"storage": "azure", "keep": "-keep 0:365 -keep 30:180 -keep 7:30 -keep 1:7"},
]
EXPECTED_CHECK = [
    {"storage": "b2", "all": "true"},
    {"storage": "azure"},
]


@pytest.fixture(autouse=True)
def _no_repository_env(monkeypatch):
    monkeypatch.delenv("REPOSITORY", raising=False)


def quiet_log():
    return MessageLog(quiet=True, display_time=False)


def write_config(tmp_path, name, body, repo=None):
    repo_dir = tmp_path / "repo" if repo is None else repo
    repo_dir.mkdir(exist_ok=True)
    text = f"repository: {json.dumps(str(repo_dir))}\n" + body
    (tmp_path / f"{name}.yml").write_text(text, encoding="utf-8")
    return repo_dir


def load(tmp_path, name, verbose=False, debug=False, log=None):
    config = BackupConfiguration(config_filename=name)
    config.load(tmp_path, verbose, debug, log or quiet_log())
    return config


def test_valid_config_with_numbered_keys(tmp_path):
    write_config(tmp_path, "numberedKeys", NUMBERED_BODY)
    config = load(tmp_path, "numberedKeys")
    assert config.backup_info == EXPECTED_BACKUP
    assert config.copy_info == EXPECTED_COPY
    assert config.prune_info == EXPECTED_PRUNE
    assert config.check_info == EXPECTED_CHECK


def test_valid_config_with_array(tmp_path):
    repo = write_config(tmp_path, "array", ARRAY_BODY)
    config = load(tmp_path, "array")
    assert config.backup_info == EXPECTED_BACKUP
    assert config.copy_info == EXPECTED_COPY
    assert config.prune_info == EXPECTED_PRUNE
    assert config.check_info == EXPECTED_CHECK
    assert config.repo_dir == str(repo)


def test_valid_config_no_copy_section(tmp_path):
    write_config(tmp_path, "noCopySection", NO_COPY_BODY)
    config = load(tmp_path, "noCopySection")
    assert config.backup_info == EXPECTED_BACKUP
    assert config.copy_info == []
    assert config.prune_info == EXPECTED_PRUNE
    assert config.check_info == EXPECTED_CHECK


def test_invalid_config_missing_storage(tmp_path):
    write_config(tmp_path, "missingStorage", MISSING_STORAGE_BODY)
    with pytest.raises(ConfigurationError, match="no storage locations"):
        load(tmp_path, "missingStorage")


def test_invalid_config_missing_storage_name(tmp_path):
    write_config(tmp_path, "missingStorageName", MISSING_STORAGE_NAME_BODY)
    with pytest.raises(ConfigurationError, match="0.name"):
        load(tmp_path, "missingStorageName")


def test_missing_prune_section_is_an_error(tmp_path):
    write_config(tmp_path, "noPrune", NO_PRUNE_BODY)
    with pytest.raises(ConfigurationError, match="no prune locations"):
        load(tmp_path, "noPrune")


def test_missing_repository_directory_is_an_error(tmp_path):
    (tmp_path / "gone.yml").write_text(
        f"repository: {json.dumps(str(tmp_path / 'does-not-exist'))}\n" + ARRAY_BODY,
        encoding="utf-8",
    )
    log = quiet_log()
    with pytest.raises(ConfigurationError):
        load(tmp_path, "gone", log=log)
    assert any(line.startswith("Error: ") for line in log.mail_body)


def test_missing_repository_key_is_reported(tmp_path):
    (tmp_path / "norepo.yml").write_text(ARRAY_BODY, encoding="utf-8")
    log = quiet_log()
    with pytest.raises(ConfigurationError):
        load(tmp_path, "norepo", log=log)
    assert "Error: missing mandatory repository location" in log.mail_body


def test_repository_from_environment(tmp_path, monkeypatch):
    write_config(tmp_path, "envrepo", ARRAY_BODY)
    other = tmp_path / "other"
    other.mkdir()
    monkeypatch.setenv("REPOSITORY", str(other))
    config = load(tmp_path, "envrepo")
    assert config.repo_dir == str(other)


def test_missing_config_file(tmp_path):
    with pytest.raises(ConfigurationError, match="Not Found"):
        load(tmp_path, "nothing-here")


def test_numbered_format_warns_once(tmp_path):
    write_config(tmp_path, "warnOnce", NUMBERED_BODY)
    log = quiet_log()
    load(tmp_path, "warnOnce", log=log)
    warnings = [line for line in log.mail_body if line.startswith("WARNING: Upgrade format")]
    assert warnings == ["WARNING: Upgrade format of backup configuration warnOnce to new format!"]


def test_config_file_used_is_reported(tmp_path):
    write_config(tmp_path, "used", ARRAY_BODY)
    log = quiet_log()
    config = load(tmp_path, "used", log=log)
    assert config.config_file_used == str(tmp_path / "used.yml")
    assert f"Using config file:   {tmp_path / 'used.yml'}" in log.mail_body


def test_verbose_output(tmp_path):
    write_config(tmp_path, "verbose", ARRAY_BODY)
    log = quiet_log()
    load(tmp_path, "verbose", verbose=True, log=log)
    assert "Backup Information:" in log.mail_body
    assert "   1\tb2" + " " * 21 + "10" in log.mail_body
    assert "Copy Information:" in log.mail_body
    assert "   1: Storage b2\n      Keep: -keep 0:365 -keep 30:180 -keep 7:30 -keep 1:7" in log.mail_body


def test_debug_output(tmp_path):
    write_config(tmp_path, "debug", ARRAY_BODY)
    log = quiet_log()
    load(tmp_path, "debug", debug=True, log=log)
    assert "Check Info[map[all:true storage:b2] map[storage:azure]]" in log.mail_body
    assert "Copy Info: [map[from:b2 threads:10 to:azure] map[from:b2 to:default-threads]]" in log.mail_body


def test_find_config_file_prefers_supported_extension(tmp_path):
    (tmp_path / "cfg.yaml").write_text("a: 1\n", encoding="utf-8")
    assert find_config_file(tmp_path, "cfg") == tmp_path / "cfg.yaml"


def test_read_section_missing_gives_empty_list():
    assert read_section({"storage": [{"name": "b2"}]}, "x", "copy", MessageLog(quiet=True)) == []


def test_read_section_is_case_insensitive():
    data = {"Storage": [{"name": "b2"}]}
    assert read_section(data, "x", "storage", MessageLog(quiet=True)) == [{"name": "b2"}]


def test_read_section_rejects_scalar():
    with pytest.raises(ConfigurationError):
        read_section({"storage": "b2"}, "x", "storage", MessageLog(quiet=True))


def test_coerce_sections_formats_values():
    result = coerce_sections([{"all": True, "threads": 3, "ratio": 1.5}, "not a map"])
    assert result == [{"all": "true", "threads": "3", "ratio": "1.5"}, {}]