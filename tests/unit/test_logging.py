"""Unit tests — logging configuration and actor context."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
import structlog

from newsdesk.logging import (
    bind_actor_context,
    clear_actor_context,
    configure_logging,
    get_logger,
)


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        handler.close()
    root.handlers = handlers
    root.setLevel(level)
    structlog.reset_defaults()


@pytest.mark.unit
class TestActorContext:
    def test_bound_values_are_merged(self) -> None:
        bind_actor_context(session_id="s1", user_id="u1")
        try:
            event = structlog.contextvars.merge_contextvars(None, "info", {"event": "x"})
            assert event["session_id"] == "s1"
            assert event["user_id"] == "u1"
        finally:
            clear_actor_context()

    def test_explicit_user_id_wins(self) -> None:
        bind_actor_context(user_id="u1")
        try:
            event = structlog.contextvars.merge_contextvars(
                None, "info", {"event": "x", "user_id": "other"}
            )
            assert event["user_id"] == "other"
        finally:
            clear_actor_context()

    def test_none_values_are_not_bound(self) -> None:
        bind_actor_context(session_id="s1")
        try:
            assert "user_id" not in structlog.contextvars.get_contextvars()
        finally:
            clear_actor_context()

    def test_clear_removes_actor_keys(self) -> None:
        bind_actor_context(session_id="s1", user_id="u1")
        clear_actor_context()
        context = structlog.contextvars.get_contextvars()
        assert "session_id" not in context
        assert "user_id" not in context


@pytest.mark.unit
class TestConfigureLogging:
    def test_json_records_written_to_file(
        self, tmp_path: Path, restore_root_logger: None
    ) -> None:
        log_file = tmp_path / "newsdesk.log"
        configure_logging(level="info", format="json", log_file=log_file)
        bind_actor_context(user_id="u1")
        try:
            get_logger("newsdesk.test").info("article_transition", article_id="a1")
        finally:
            clear_actor_context()
        for handler in logging.getLogger().handlers:
            handler.flush()

        content = log_file.read_text()
        assert '"event": "article_transition"' in content
        assert '"user_id": "u1"' in content

    def test_level_applied_to_root_logger(self, restore_root_logger: None) -> None:
        configure_logging(level="warning")
        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert len(root.handlers) == 1
