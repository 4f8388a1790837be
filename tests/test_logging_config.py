"""Tests for the structured JSON log formatter."""

import json
import logging
import sys

from phi_redaction.logging_config import StructuredFormatter, configure_logging


def make_record(**extra):
    logger = logging.getLogger("phi_redaction.test")
    record = logger.makeRecord(
        "phi_redaction.test", logging.INFO, __file__, 10, "Detection %s", ("completed",), None, extra=extra
    )
    return record


def test_formats_json_with_extra_fields():
    output = json.loads(StructuredFormatter().format(make_record(detections=3, model_version=2)))
    assert output["message"] == "Detection completed"
    assert output["level"] == "INFO"
    assert output["detections"] == 3
    assert output["model_version"] == 2
    assert "args" not in output


def test_includes_exception_text():
    try:
        raise ValueError("bad blob")
    except ValueError:
        record = logging.getLogger("x").makeRecord(
            "x", logging.ERROR, __file__, 1, "failed", (), sys.exc_info()
        )
    output = json.loads(StructuredFormatter().format(record))
    assert "bad blob" in output["exception"]


def test_configure_logging_installs_formatter():
    root = logging.getLogger()
    previous = list(root.handlers), root.level
    try:
        configure_logging("DEBUG")
        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, StructuredFormatter)
        assert logging.getLogger("urllib3").level == logging.WARNING
    finally:
        root.handlers[:] = previous[0]
        root.setLevel(previous[1])
