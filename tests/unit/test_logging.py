"""Unit tests for ragengine.utils.logging."""

from __future__ import annotations

import io
import json

import pytest
import structlog

from ragengine.utils.logging import configure_logging


@pytest.fixture
def buffer():
    stream = io.StringIO()
    configure_logging(log_level="INFO", json_output=True, stream=stream, cache_loggers=False)
    yield stream
    configure_logging()


def _lines(stream: io.StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line.strip()]


class TestConfigureLogging:
    def test_events_written_to_given_stream(self, buffer: io.StringIO) -> None:
        structlog.get_logger("ragengine.check").info("stream_selected", collection_id="hr")

        events = _lines(buffer)
        assert events[-1]["event"] == "stream_selected"
        assert events[-1]["collection_id"] == "hr"
        assert events[-1]["level"] == "info"

    def test_level_filtering(self, buffer: io.StringIO) -> None:
        structlog.get_logger("ragengine.check").debug("too_chatty")

        assert buffer.getvalue() == ""

    def test_exception_rendered_in_json(self, buffer: io.StringIO) -> None:
        log = structlog.get_logger("ragengine.check")
        try:
            raise RuntimeError("disk full")
        except RuntimeError:
            log.error("indexing_crashed", exc_info=True)

        event = _lines(buffer)[-1]
        assert "RuntimeError: disk full" in event["exception"]
