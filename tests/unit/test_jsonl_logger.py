"""Tests for JSONL log formatting and logger setup."""

import json
import logging

from github_gateway.utils.jsonl_logger import (
    JSONLFormatter,
    log_with_context,
    setup_jsonl_logger,
)
from github_gateway.utils.request_id_middleware import request_id_context


def make_record(msg: str = "hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord("github_gateway.test", logging.INFO, __file__, 10, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_emits_one_json_object():
    line = JSONLFormatter(service="github-gateway").format(
        make_record(json_data={"owner": "octo", "file_count": 2})
    )

    entry = json.loads(line)
    assert "\n" not in line
    assert entry["service"] == "github-gateway"
    assert entry["level"] == "INFO"
    assert entry["msg"] == "hello"
    assert entry["owner"] == "octo"
    assert entry["file_count"] == 2
    assert entry["ts"].endswith("Z")


def test_formatter_uses_request_id_from_context():
    token = request_id_context.set("req-123")
    try:
        entry = json.loads(JSONLFormatter().format(make_record()))
    finally:
        request_id_context.reset(token)

    assert entry["request_id"] == "req-123"


def test_setup_writes_jsonl_file(tmp_path):
    logger = setup_jsonl_logger("gw-test", log_dir=str(tmp_path), console=False)
    try:
        child = logging.getLogger("github_gateway.commit_assembler")
        log_with_context(child, logging.INFO, "Creating commit", route="/commit", owner="octo")
        for handler in logger.handlers:
            handler.flush()

        lines = (tmp_path / "gw-test" / "gw-test.jsonl").read_text().splitlines()
    finally:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        logger.propagate = True

    entry = json.loads(lines[-1])
    assert entry["msg"] == "Creating commit"
    assert entry["route"] == "/commit"
    assert entry["owner"] == "octo"
    assert entry["logger"] == "github_gateway.commit_assembler"
