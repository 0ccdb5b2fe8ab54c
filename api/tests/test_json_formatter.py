"""Tests for the JSON log formatter and the request logging middleware."""

from __future__ import annotations

import json
import logging
import sys

import pytest
from fastapi.testclient import TestClient

from api.middleware.json_formatter import JSONFormatter, install_json_logging


def _record(msg: str = "message", level: int = logging.INFO, name: str = "test", exc_info=None) -> logging.LogRecord:
    return logging.LogRecord(
        name=name,
        level=level,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


@pytest.fixture
def formatter() -> JSONFormatter:
    return JSONFormatter()


class TestJSONFormatter:
    """Verify structured JSON output from the formatter."""

    def test_basic_format(self, formatter: JSONFormatter) -> None:
        data = json.loads(formatter.format(_record("Activated revision r1", name="revision_engine.reload")))

        assert data["level"] == "INFO"
        assert data["logger"] == "revision_engine.reload"
        assert data["message"] == "Activated revision r1"
        assert "+00:00" in data["timestamp"]

    def test_single_line_output(self, formatter: JSONFormatter) -> None:
        assert "\n" not in formatter.format(_record("line one\nline two", logging.WARNING))

    def test_request_context_included(self, formatter: JSONFormatter) -> None:
        record = _record("PUT /api/projects/p/revisions/r1 -> 201", name="api.access")
        record.request = {  # type: ignore[attr-defined]
            "method": "PUT",
            "path": "/api/projects/p/revisions/r1",
            "status_code": 201,
            "bytes_in": 1024,
            "correlation_id": "abc",
        }
        data = json.loads(formatter.format(record))

        assert data["request"]["status_code"] == 201
        assert data["request"]["correlation_id"] == "abc"

    def test_no_request_context_omitted(self, formatter: JSONFormatter) -> None:
        assert "request" not in json.loads(formatter.format(_record()))

    def test_exception_info_included(self, formatter: JSONFormatter) -> None:
        try:
            raise ValueError("reload failed")
        except ValueError:
            exc_info = sys.exc_info()

        data = json.loads(formatter.format(_record("error occurred", logging.ERROR, exc_info=exc_info)))

        assert "ValueError: reload failed" in data["exc_info"]
        assert "Traceback" in data["exc_info"]


class TestInstallJsonLogging:
    def test_replaces_root_handlers(self) -> None:
        root = logging.getLogger()
        saved_handlers, saved_level = list(root.handlers), root.level
        try:
            install_json_logging(logging.DEBUG)
            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, JSONFormatter)
            assert root.level == logging.DEBUG
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)


class TestRequestLogging:
    def test_access_log_carries_request_payload(self, client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO, logger="api.access"):
            client.get("/health", headers={"X-Correlation-ID": "corr-1"})

        records = [r for r in caplog.records if r.name == "api.access"]
        assert records
        payload = records[-1].request  # type: ignore[attr-defined]
        assert payload["path"] == "/health"
        assert payload["status_code"] == 200
        assert payload["correlation_id"] == "corr-1"

    def test_client_errors_logged_as_warning(self, client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO, logger="api.access"):
            client.get("/api/projects/p/revisions/missing/archive")

        records = [r for r in caplog.records if r.name == "api.access"]
        assert records[-1].levelno == logging.WARNING
