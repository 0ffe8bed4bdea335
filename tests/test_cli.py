import io
import json
from pathlib import Path

import pytest
from filelock import FileLock

from duputil.cli import App, Options, parse_arguments
from duputil.executor import CommandError
from duputil.messages import MessageLog
from duputil.notify import Notifier


class FakeNotifier(Notifier):
    def __init__(self):
        self.events = []

    def notify_of_start(self):
        self.events.append("start")

    def notify_of_skip(self):
        self.events.append("skip")

    def notify_of_success(self):
        self.events.append("success")

    def notify_of_failure(self):
        self.events.append("failure")


class RecordingExecutor:
    def __init__(self, fail=False):
        self.calls = []
        self.fail = fail

    def __call__(self, name, args, cwd, output):
        self.calls.append(list(args))
        if self.fail:
            raise CommandError("exit status 1", 1)
        if args[0] == "backup":
            output("Files: 10 total, 1K bytes; 1 new, 1K bytes")


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("REPOSITORY", "DUPLICACYPATH", "LOCKDIRECTORY", "LOGDIRECTORY", "LOGFILECOUNT"):
        monkeypatch.delenv(name, raising=False)


def _log():
    return MessageLog(stdout=io.StringIO(), stderr=io.StringIO())


def _storage(tmp_path, notifications=None):
    storage = tmp_path / "storage"
    storage.mkdir()
    repo = tmp_path / "repo"
    repo.mkdir()
    config = {
        "repository": str(repo),
        "storage": [{"name": "b2", "threads": 4}],
        "prune": [{"storage": "b2", "keep": "0:365"}],
        "check": [{"storage": "b2"}],
    }
    (storage / "repo.json").write_text(json.dumps(config), encoding="utf-8")
    if notifications:
        (storage / "duplicacy-util.json").write_text(
            json.dumps({"notifications": notifications}), encoding="utf-8"
        )
    return storage


def _app(argv, executor=None, notifier=None):
    kwargs = {"log": _log(), "check_duplicacy": False}
    if executor is not None:
        kwargs["executor"] = executor
    if notifier is not None:
        kwargs["notifier_factories"] = {"fake": lambda settings: notifier}
    return App(parse_arguments(argv), **kwargs)


def test_parse_arguments_reads_flags():
    options = parse_arguments(["-f", "repo", "-backup", "-sd", "/some/dir", "-q"])
    assert options.config == "repo"
    assert options.backup is True
    assert options.copy is False
    assert options.storage_dir == "/some/dir"
    assert options.quiet is True
    assert options.extra == []


def test_parse_arguments_accepts_double_dash():
    options = parse_arguments(["--prune", "--check", "--f", "x"])
    assert (options.prune, options.check, options.config) == (True, True, "x")


def test_unrecognized_arguments_exit_2():
    app = _app(["-f", "repo", "stray"])
    assert app.run() == 2
    assert "Unrecognized arguments specified on command line" in app.log.stderr.getvalue()


def test_version_is_printed():
    app = _app(["-version"])
    assert app.run() == 0
    assert "Version: <dev>, Git Hash: <unknown>" in app.log.stdout.getvalue()


def test_missing_storage_directory_exits_2(tmp_path):
    app = _app(["-sd", str(tmp_path / "absent"), "-f", "repo", "-a"])
    assert app.run() == 2
    assert "does not exist" in app.log.stderr.getvalue()


def test_missing_config_parameter_and_quiet_refused(tmp_path):
    app = App(Options(quiet=True), log=_log())
    app.storage_dir = str(tmp_path)
    with pytest.raises(Exception) as info:
        app.process_arguments()
    assert info.value.status == 2
    assert "Mandatory parameter -f" in str(info.value)
    assert app.log.quiet is False
    assert any("Notice: Quiet mode refused" in line for line in app.log.mail_body)


def test_no_operations_is_an_error(tmp_path):
    storage = _storage(tmp_path)
    app = App(Options(config="repo"), log=_log())
    app.storage_dir = str(storage)
    with pytest.raises(Exception) as info:
        app.process_arguments()
    assert info.value.status == 1
    assert "No operations to perform" in str(info.value)


def test_bad_repository_configuration_returns_1(tmp_path):
    storage = tmp_path / "empty"
    storage.mkdir()
    app = _app(["-sd", str(storage), "-f", "repo", "-a"])
    assert app.run() == 1


def test_test_notifications_without_failure_notifier(tmp_path):
    storage = tmp_path / "s"
    storage.mkdir()
    app = App(Options(test_notifications=True), log=_log())
    app.storage_dir = str(storage)
    with pytest.raises(Exception) as info:
        app.process_arguments()
    assert info.value.status == 1
    assert app.options.config == "test"
    assert app.report.backups[0].storage == "b2"


def test_test_notifications_sends_every_event(tmp_path):
    notifier = FakeNotifier()
    storage = _storage(tmp_path, {"onFailure": ["fake"], "onStart": ["fake"]})
    app = _app(["-sd", str(storage), "-tn"], notifier=notifier)
    assert app.run() == 0
    assert notifier.events == ["start", "failure"]


def test_full_run_executes_all_operations(tmp_path):
    storage = _storage(tmp_path)
    executor = RecordingExecutor()
    app = _app(["-sd", str(storage), "-f", "repo", "-a"], executor=executor)
    assert app.run() == 0
    assert [call[0] for call in executor.calls] == ["backup", "prune", "check"]
    assert executor.calls[0][:3] == ["backup", "-storage", "b2"]
    assert app.report.backups[0].storage == "b2"
    assert app.report.backups[0].files_total_count == "10"
    assert not (storage / "repo.lock").exists()
    assert (storage / "log" / "repo.log").is_file()


def test_failed_command_reports_failure(tmp_path):
    notifier = FakeNotifier()
    storage = _storage(tmp_path, {"onFailure": ["fake"]})
    app = _app(["-sd", str(storage), "-f", "repo", "-backup"],
               executor=RecordingExecutor(fail=True), notifier=notifier)
    assert app.run() == 500
    assert notifier.events == ["failure"]
    assert "backup failed, check the logs for details" in app.log.stderr.getvalue()
    assert not (storage / "repo.lock").exists()


def test_held_lock_skips_run(tmp_path):
    notifier = FakeNotifier()
    storage = _storage(tmp_path, {"onSkip": ["fake"]})
    executor = RecordingExecutor()
    app = _app(["-sd", str(storage), "-f", "repo", "-a"], executor=executor, notifier=notifier)
    holder = FileLock(str(Path(storage) / "repo.lock"))
    holder.acquire()
    try:
        status = app.run()
    finally:
        holder.release()
    assert status == 6200
    assert notifier.events == ["skip"]
    assert executor.calls == []
    assert "backup already running and will be skipped" in app.log.stderr.getvalue()