import io
import json
import logging

from vrf_adapter import logging as vlog


def _capture(json_mode: bool):
    stream = io.StringIO()
    vlog.configure(json=json_mode, level="DEBUG", stream=stream)
    return stream


def test_json_lines_carry_trace_context():
    stream = _capture(True)
    log = vlog.get_logger("vrf_adapter.test")
    with vlog.trace_scope("abc123") as tid:
        vlog.bind(component="engine", request_id=7)
        log.info("fulfillment prepared", extra={"round": 42, "payload": b"\x01\x02"})
    assert tid == "abc123"
    line = json.loads(stream.getvalue().strip().splitlines()[-1])
    assert line["msg"] == "fulfillment prepared"
    assert line["trace_id"] == "abc123"
    assert line["component"] == "engine" and line["request_id"] == 7
    assert line["round"] == 42 and line["payload"] == "0x0102"
    # context is restored after the scope
    assert "trace_id" not in vlog.context()


def test_text_format_is_single_line():
    stream = _capture(False)
    with vlog.trace_scope():
        logging.getLogger("vrf_adapter.scanner").warning("range scan failed", extra={"from_block": 1})
    out = stream.getvalue().strip()
    assert "WARNING" in out and "range scan failed" in out and "from_block=1" in out
    assert "\x1b[" not in out  # StringIO is not a tty


def test_level_filtering():
    stream = io.StringIO()
    vlog.configure(json=True, level="WARNING", stream=stream)
    logging.getLogger("vrf_adapter.engine").info("hidden")
    assert stream.getvalue() == ""
