import io
import logging
from datetime import datetime

from duputil.messages import MessageLog


def _fixed_clock():
    return datetime(2020, 1, 2, 3, 4, 5)


def test_message_without_time_goes_to_stdout_and_body():
    out, err = io.StringIO(), io.StringIO()
    log = MessageLog(display_time=False, stdout=out, stderr=err)
    log.message("Rotating log files")
    assert out.getvalue() == "Rotating log files\n"
    assert err.getvalue() == ""
    assert log.mail_body == ["Rotating log files"]


def test_message_with_time_prefix():
    out = io.StringIO()
    log = MessageLog(stdout=out, stderr=io.StringIO(), clock=_fixed_clock)
    log.message("hello")
    assert log.mail_body == ["03:04:05 hello"]
    assert out.getvalue() == "03:04:05 hello\n"


def test_error_has_no_time_prefix_on_screen():
    out, err = io.StringIO(), io.StringIO()
    log = MessageLog(stdout=out, stderr=err, clock=_fixed_clock)
    log.error("Error: boom")
    assert err.getvalue() == "Error: boom\n"
    assert out.getvalue() == ""
    assert log.mail_body[0].endswith(" Error: boom")


def test_quiet_suppresses_output_but_records():
    out, err = io.StringIO(), io.StringIO()
    log = MessageLog(quiet=True, display_time=False, stdout=out, stderr=err)
    log.message("first")
    log.error("second")
    assert out.getvalue() == "" and err.getvalue() == ""
    assert log.mail_body == ["first", "second"]


def test_logger_receives_unprefixed_text():
    records = []

    class _Collect(logging.Handler):
        def emit(self, record):
            records.append(record.getMessage())

    logger = logging.getLogger("duputil-test-messages")
    logger.setLevel(logging.INFO)
    logger.propagate = False
    handler = _Collect()
    logger.addHandler(handler)
    try:
        log = MessageLog(quiet=True, clock=_fixed_clock)
        log.message("  Files: 1 total", logger)
    finally:
        logger.removeHandler(handler)
    assert records == ["  Files: 1 total"]
    assert log.mail_body == ["03:04:05   Files: 1 total"]


def test_write_to_other_stream_drops_time():
    other = io.StringIO()
    log = MessageLog(stdout=io.StringIO(), stderr=io.StringIO(), clock=_fixed_clock)
    log.write(other, "plain")
    assert other.getvalue() == "plain\n"
    assert len(log.mail_body) == 1