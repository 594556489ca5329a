"""
Tests for logging setup and structured event records.
"""
import json

import pytest
from loguru import logger as loguru_logger

from builder.core.logger import get_logger as get_module_logger, setup_logging
from builder.utils.logging import correlation_id_var, get_logger, log_context, trace_async


@pytest.fixture
def captured():
    records = []
    sink_id = loguru_logger.add(lambda message: records.append(message.record), level="DEBUG")
    yield records
    loguru_logger.remove(sink_id)


def events(records):
    return [json.loads(record["message"]) for record in records if record["message"].startswith("{")]


def test_setup_logging_installs_a_sink():
    setup_logging()

    get_module_logger(__name__).info("logging ready")


def test_structured_record_shape(captured):
    get_logger("tests").info("plan.build.completed", extra={"chunk_count": 2})

    entry = events(captured)[-1]
    assert entry["event"] == "plan.build.completed"
    assert entry["level"] == "INFO"
    assert entry["data"] == {"chunk_count": 2}
    assert entry["logger"]["name"] == "tests"


def test_error_records_carry_the_exception(captured):
    try:
        raise ValueError("bad chunk")
    except ValueError as e:
        get_logger("tests").error("pipeline.chunk.failed", exc_info=e)

    entry = events(captured)[-1]
    assert entry["error"]["type"] == "ValueError"
    assert "bad chunk" in entry["error"]["stacktrace"]


def test_log_context_sets_and_restores_correlation(captured):
    with log_context(correlation_id="abc123", operation="pipeline.run"):
        get_logger("tests").info("pipeline.execution.started")
        assert correlation_id_var.get() == "abc123"

    assert correlation_id_var.get() is None
    assert events(captured)[-1]["correlation"]["correlation_id"] == "abc123"


@pytest.mark.asyncio
async def test_trace_async_logs_completion_and_failure(captured):

    @trace_async("demo.work")
    async def work(fail: bool):
        if fail:
            raise RuntimeError("nope")
        return 7

    assert await work(False) == 7
    with pytest.raises(RuntimeError):
        await work(True)

    names = [entry["event"] for entry in events(captured)]
    assert "demo.work.completed" in names
    assert "demo.work.failed" in names


def test_nested_log_context_adds_chunk_and_keeps_outer_fields(captured):
    with log_context(correlation_id="run-1", operation="pipeline.execute"):
        with log_context(chunk="screens-navigation"):
            get_logger("tests").warning("pipeline.chunk.retrying")
        get_logger("tests").info("pipeline.execution.completed")

    chunk_entry, run_entry = events(captured)[-2:]
    assert chunk_entry["correlation"] == {
        "correlation_id": "run-1",
        "operation": "pipeline.execute",
        "chunk": "screens-navigation",
    }
    assert run_entry["correlation"]["chunk"] is None
    assert run_entry["correlation"]["correlation_id"] == "run-1"


@pytest.mark.asyncio
async def test_trace_async_records_duration(captured):

    @trace_async("demo.timed")
    async def work():
        return None

    await work()

    completed = [entry for entry in events(captured) if entry["event"] == "demo.timed.completed"][-1]
    assert completed["data"]["function"] == "work"
    assert completed["data"]["duration_ms"] >= 0
