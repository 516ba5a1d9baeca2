from __future__ import annotations

import io
import json
import logging

from distributor import logging as dlog
from distributor.config import DistributorConfig


def _lines(buf: io.StringIO):
    return [ln for ln in buf.getvalue().splitlines() if ln.strip()]


def test_json_formatter_merges_context_and_extras():
    buf = io.StringIO()
    dlog.configure(json=True, level="DEBUG", stream=buf)
    with dlog.trace_scope("abc123") as tid:
        assert tid == "abc123"
        dlog.bind(epoch_id=3)
        dlog.get_logger("distributor.test").info("hello %s", "world", extra={"root": b"\x01\x02"})
    payload = json.loads(_lines(buf)[-1])
    assert payload["msg"] == "hello world"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "distributor.test"
    assert payload["trace_id"] == "abc123"
    assert payload["epoch_id"] == 3
    assert payload["root"] == "0x0102"
    assert "trace_id" not in dlog.context()


def test_text_formatter_one_liner():
    buf = io.StringIO()
    dlog.configure(json=False, level="INFO", stream=buf)
    dlog.bind(component="unit")
    dlog.get_logger("distributor.test").warning("claimed", extra={"amount": 5})
    line = _lines(buf)[-1]
    assert "| WARNING | distributor.test |" in line
    assert "component=unit" in line
    assert "amount=5" in line
    assert line.endswith("| claimed")
    assert "\x1b[" not in line


def test_level_filters_records():
    buf = io.StringIO()
    dlog.configure(json=True, level="WARNING", stream=buf)
    dlog.get_logger("distributor.test").info("hidden")
    assert _lines(buf) == []


def test_unbind():
    dlog.bind(ledger=b"\xaa", component="x")
    dlog.unbind("component")
    assert dlog.context() == {"ledger": "0xaa"}


def test_configure_from_config():
    handler = dlog.configure_from_config(DistributorConfig(log_format="json", log_level="DEBUG"), stream=io.StringIO())
    assert isinstance(handler.formatter, dlog.JSONFormatter)
    assert handler.level == logging.DEBUG
    assert handler in logging.getLogger().handlers


def test_exceptions_are_rendered():
    buf = io.StringIO()
    dlog.configure(json=True, level="INFO", stream=buf)
    try:
        raise ValueError("bad root")
    except ValueError:
        dlog.get_logger("distributor.test").exception("failed")
    payload = json.loads(buf.getvalue().strip().splitlines()[0])
    assert "ValueError: bad root" in payload["err"]


def test_ledger_logs_pause_change(funded):
    buf = io.StringIO()
    dlog.configure(json=True, level="INFO", stream=buf)
    funded.pause(funded.admin, True)
    payload = json.loads(_lines(buf)[-1])
    assert payload["logger"] == "distributor.ledger"
    assert payload["msg"] == "pause changed"
    assert payload["paused"] is True


def test_configure_installs_one_handler():
    first = dlog.configure(json=True, stream=io.StringIO())
    second = dlog.configure(json=False, stream=io.StringIO())
    handlers = logging.getLogger().handlers
    assert handlers == [second]
    assert first not in handlers
    assert isinstance(second.formatter, dlog.TextFormatter)
