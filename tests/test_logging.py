"""
Tests for log context propagation and formatting.
"""

import asyncio
import json
import logging

from otpdesk.core.logging import (
    ContextFilter,
    DevelopmentFormatter,
    LogContext,
    StructuredFormatter,
    current_context,
    get_logger,
)


class RecordingHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []
        self.addFilter(ContextFilter())

    def emit(self, record):
        self.records.append(record)


def _attach(name):
    logger = get_logger(name)
    handler = RecordingHandler()
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    return logger, handler


def test_get_logger_namespaces_module_loggers():
    assert get_logger("order_service").name == "otpdesk.order_service"
    assert get_logger("otpdesk.order_service").name == "otpdesk.order_service"
    assert get_logger("otpdesk").name == "otpdesk"


def test_context_fields_reach_records_and_are_reset():
    logger, handler = _attach("tests.context")
    try:
        with LogContext(order_id="12345", employee_id="65a1"):
            logger.info("inside")
        logger.info("outside")
    finally:
        logger.removeHandler(handler)

    inside, outside = handler.records
    assert inside.order_id == "12345"
    assert inside.employee_id == "65a1"
    assert not hasattr(outside, "order_id")
    assert current_context() == {}


def test_explicit_extra_coexists_with_context():
    logger, handler = _attach("tests.extra")
    try:
        with LogContext(order_id="12345"):
            logger.info("explicit", extra={"order_id": "999", "attempt": 2})
    finally:
        logger.removeHandler(handler)

    (record,) = handler.records
    assert record.order_id == "999"
    assert record.attempt == 2


def test_nested_context_merges_and_restores():
    with LogContext(order_id="1"):
        with LogContext(employee_id="e"):
            assert current_context() == {"order_id": "1", "employee_id": "e"}
        assert current_context() == {"order_id": "1"}


def test_context_does_not_leak_between_tasks():
    logger, handler = _attach("tests.tasks")

    async def worker(order_id):
        with LogContext(order_id=order_id):
            await asyncio.sleep(0)
            logger.info("polling")
            await asyncio.sleep(0)
            logger.info("done")

    async def scenario():
        await asyncio.gather(worker("A"), worker("B"))

    try:
        asyncio.run(scenario())
    finally:
        logger.removeHandler(handler)

    seen = {(record.getMessage(), record.order_id) for record in handler.records}
    assert seen == {("polling", "A"), ("polling", "B"), ("done", "A"), ("done", "B")}


def test_structured_formatter_renders_context_as_json():
    record = logging.LogRecord("otpdesk.x", logging.INFO, __file__, 10, "hello %s", ("there",), None)
    with LogContext(order_id="12345"):
        ContextFilter().filter(record)

    entry = json.loads(StructuredFormatter().format(record))
    assert entry["message"] == "hello there"
    assert entry["level"] == "INFO"
    assert entry["logger"] == "otpdesk.x"
    assert entry["order_id"] == "12345"


def test_development_formatter_shortens_context_keys():
    record = logging.LogRecord("otpdesk.x", logging.WARNING, __file__, 10, "slow", None, None)
    record.order_id = "12345"
    record.employee_id = "65a1"

    line = DevelopmentFormatter().format(record)
    assert "otpdesk.x: slow" in line
    assert "[order=12345, employee=65a1]" in line
