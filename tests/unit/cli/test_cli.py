"""Unit tests — CLI permissions, audit and config commands."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import pytest
from typer.testing import CliRunner

from newsdesk.cli.main import app
from newsdesk.config import Settings
from newsdesk.models import ActivityLogEntry, AuditAction, AuditResource
from newsdesk.security.audit_store import SQLiteAuditStore

runner = CliRunner()


def _write_entries(db_path: Path, entries: list[ActivityLogEntry]) -> None:
    async def _write() -> None:
        store = SQLiteAuditStore(db_path)
        await store.init()
        try:
            for entry in entries:
                await store.append(entry)
        finally:
            await store.close()

    asyncio.run(_write())


def _entry(action: AuditAction, name: str) -> ActivityLogEntry:
    return ActivityLogEntry(
        user_id="u1",
        user_name="Jane",
        user_role="editor",
        action=action,
        resource=AuditResource.ARTICLE,
        resource_id="a1",
        resource_name=name,
    )


@pytest.mark.unit
class TestPermissionsCommands:
    def test_matrix(self) -> None:
        result = runner.invoke(app, ["permissions", "matrix"])
        assert result.exit_code == 0
        assert "publish_articles" in result.output

    def test_check_granted(self) -> None:
        result = runner.invoke(app, ["permissions", "check", "editor", "publish_articles"])
        assert result.exit_code == 0

    def test_check_denied(self) -> None:
        result = runner.invoke(app, ["permissions", "check", "author", "publish_articles"])
        assert result.exit_code == 1

    def test_check_unknown_capability_is_denied(self) -> None:
        result = runner.invoke(app, ["permissions", "check", "admin", "fly"])
        assert result.exit_code == 1

    def test_path_open(self) -> None:
        result = runner.invoke(app, ["permissions", "path", "author", "/admin/articles"])
        assert result.exit_code == 0

    def test_path_denied(self) -> None:
        result = runner.invoke(app, ["permissions", "path", "editor", "/admin/users"])
        assert result.exit_code == 1
        assert "manage_users" in result.output


@pytest.mark.unit
class TestAuditCommands:
    @pytest.fixture
    def db_path(self, tmp_path: Path) -> Path:
        path = tmp_path / "audit.db"
        _write_entries(
            path,
            [
                _entry(AuditAction.CREATE, "Harbour"),
                _entry(AuditAction.PUBLISH, "Harbour"),
                _entry(AuditAction.PUBLISH, "Budget"),
            ],
        )
        return path

    def test_list(self, db_path: Path) -> None:
        result = runner.invoke(app, ["audit", "list", "--db", str(db_path)])
        assert result.exit_code == 0
        assert "Activity log" in result.output

    def test_list_invalid_action(self, db_path: Path) -> None:
        result = runner.invoke(app, ["audit", "list", "--db", str(db_path), "--action", "dance"])
        assert result.exit_code == 1

    def test_missing_database(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["audit", "list", "--db", str(tmp_path / "none.db")])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_stats(self, db_path: Path) -> None:
        result = runner.invoke(app, ["audit", "stats", "--db", str(db_path)])
        assert result.exit_code == 0
        assert "Total entries: 3" in result.output
        assert "publish" in result.output

    def test_export_filtered(self, db_path: Path, tmp_path: Path) -> None:
        output = tmp_path / "out.csv"
        result = runner.invoke(
            app,
            ["audit", "export", "--db", str(db_path), "--output", str(output), "--action", "publish"],
        )
        assert result.exit_code == 0
        lines = output.read_text().splitlines()
        assert lines[0].startswith('"Timestamp","User"')
        assert len(lines) == 3
        assert all('"Published"' in line for line in lines[1:])


@pytest.mark.unit
class TestConfigCommand:
    def test_show_with_overlay(self, tmp_path: Path) -> None:
        config_file = tmp_path / "config.yaml"
        config_file.write_text("rate_limit:\n  max_attempts: 4\n")
        result = runner.invoke(app, ["config", "show", "--config", str(config_file)])
        assert result.exit_code == 0
        assert '"max_attempts": 4' in result.output


@pytest.mark.unit
class TestLoggingOptions:
    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        for handler in root.handlers:
            handler.close()
        root.handlers = handlers
        root.setLevel(level)

    def test_configured_log_file_is_used(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        log_file = tmp_path / "cli.log"
        monkeypatch.setattr(
            "newsdesk.config._settings",
            Settings(logging={"level": "info", "format": "json", "file": str(log_file)}),
        )
        result = runner.invoke(app, ["permissions", "matrix"])
        assert result.exit_code == 0
        assert log_file.exists()
        assert logging.getLogger().level == logging.INFO

    def test_log_level_option_overrides_settings(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("newsdesk.config._settings", Settings(logging={"level": "info"}))
        result = runner.invoke(app, ["--log-level", "error", "permissions", "matrix"])
        assert result.exit_code == 0
        assert logging.getLogger().level == logging.ERROR
