"""
Unit Tests for Structured Logging
=================================

Test Coverage
-------------
- ContextFilter enrichment from LogContext
- JSONFormatter field layout and extra handling
- setup/shutdown and queue health counters
"""

import json
import logging

import pytest

from valor.core.logging.logger import (
    ContextFilter,
    JSONFormatter,
    LogContext,
    clear_log_context,
    get_log_context,
    get_logging_health,
    set_log_context,
    setup_logging,
    shutdown_logging,
)


def make_record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="valor.modules.tower.service",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg="Service operation: %s",
        args=("battle_npc",),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.mark.unit
class TestContextFilter:
    def test_log_context_binds_actor(self):
        record = make_record()

        with LogContext(actor_id="a1", operation="battle_npc", correlation_id="abc"):
            ContextFilter().filter(record)

        assert record.actor_id == "a1"
        assert record.operation == "battle_npc"
        assert record.correlation_id == "abc"
        assert record.component == "valor"

    def test_explicit_extra_wins_over_context(self):
        record = make_record(actor_id="explicit", operation="place_bid")

        with LogContext(actor_id="ambient", operation="other"):
            ContextFilter().filter(record)

        assert record.actor_id == "explicit"
        assert record.operation == "place_bid"

    def test_defaults_outside_a_context(self):
        clear_log_context()
        record = make_record()

        ContextFilter().filter(record)

        assert record.actor_id == "N/A"
        assert record.correlation_id == "N/A"

    def test_set_and_clear(self):
        set_log_context(guild_id="g1", component="guild")
        assert get_log_context()["guild_id"] == "g1"

        clear_log_context()
        assert get_log_context() == {}


@pytest.mark.unit
class TestJSONFormatter:
    def test_layout(self):
        record = make_record(actor_id="a1", operation="battle_npc", floor=3)

        data = json.loads(JSONFormatter().format(record))

        assert data["message"] == "Service operation: battle_npc"
        assert data["level"] == "INFO"
        assert data["logger"] == "valor.modules.tower.service"
        assert data["actor_id"] == "a1"
        assert data["operation"] == "battle_npc"
        assert data["extra"] == {"floor": 3}

    def test_non_serializable_extra_is_stringified(self):
        record = make_record(payload={1, 2})

        data = json.loads(JSONFormatter().format(record))

        assert isinstance(data["extra"]["payload"], str)


@pytest.mark.unit
class TestLifecycle:
    def test_setup_and_shutdown(self):
        setup_logging()
        setup_logging()
        try:
            health = get_logging_health()
            assert health.initialized
            assert health.queue_max_size == 10_000
            logging.getLogger("valor.tests").warning("queued", extra={"floor": 1})
            assert get_logging_health().records_enqueued > health.records_enqueued
        finally:
            shutdown_logging()

        assert not get_logging_health().initialized
        shutdown_logging()
