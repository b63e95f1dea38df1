"""Smoke tests for the campaign_ally CLI wrapper.

Run with: python -m pytest tests/test_cli.py -v
"""
from __future__ import annotations

import os
import subprocess
import sys

import pytest


def _run_cli(*args: str, env: dict[str, str] | None = None, timeout: int = 30) -> subprocess.CompletedProcess:
    return subprocess.run(
        [sys.executable, "-m", "campaign_ally", *args],
        capture_output=True,
        text=True,
        timeout=timeout,
        env={**os.environ, **(env or {})},
    )


class TestCLIHelp:
    """Verify that all subcommands register and print help without errors."""

    def test_main_help(self):
        result = _run_cli("--help")
        assert result.returncode == 0
        for command in ("serve", "migrate", "models", "doctor", "export"):
            assert command in result.stdout

    def test_no_command_prints_help(self):
        result = _run_cli()
        assert result.returncode == 0
        assert "usage:" in result.stdout

    def test_serve_help(self):
        result = _run_cli("serve", "--help")
        assert result.returncode == 0
        assert "--port" in result.stdout
        assert "--reload" in result.stdout

    def test_export_help(self):
        result = _run_cli("export", "--help")
        assert result.returncode == 0
        assert "--mode" in result.stdout
        assert "--stdout" in result.stdout


class TestCommandsRun:
    def test_models_lists_roles(self):
        result = _run_cli("models")
        assert result.returncode == 0
        for role in ("outline", "scene_expander", "canon_checker", "canon_fixer", "beat_forge", "summarizer"):
            assert f"- {role}:" in result.stdout

    def test_migrate_twice(self, tmp_path):
        db = str(tmp_path / "cli.db")
        first = _run_cli("migrate", "--db", db)
        assert first.returncode == 0
        assert "0001_init" in first.stdout
        second = _run_cli("migrate", "--db", db)
        assert second.returncode == 0
        assert "is up to date" in second.stdout

    def test_doctor_exits_cleanly(self, tmp_path):
        result = _run_cli(
            "doctor",
            "--skip-llm",
            env={"CAMPAIGN_ALLY_DATA_ROOT": str(tmp_path), "CAMPAIGN_ALLY_DB_PATH": str(tmp_path / "d.db")},
        )
        assert result.returncode in (0, 1)
        assert "Campaign Ally Doctor" in result.stdout


class TestExport:
    @pytest.fixture
    def db_with_scenes(self, tmp_path):
        from backend.app.core import campaign_store, session_store
        from backend.app.core.scene_converter import convert_outline_to_scenes
        from backend.app.db.connection import get_connection, transaction
        from backend.app.db.migrate import apply_schema

        db = str(tmp_path / "export.db")
        apply_schema(db)
        conn = get_connection(db)
        try:
            with transaction(conn):
                camp = campaign_store.create_campaign(conn, "Varn")
                empty = session_store.create_session(conn, camp["id"], "Empty Night")
                session = session_store.create_session(conn, camp["id"], "Night Market")
                session = session_store.save_beats(conn, session["id"], [{"title": "Arrival"}, {"title": "Chase"}])
                convert_outline_to_scenes(conn, session)
        finally:
            conn.close()
        return db, session["id"], empty["id"]

    def test_export_stdout(self, db_with_scenes):
        db, session_id, _ = db_with_scenes
        result = _run_cli("export", session_id, "--db", db, "--mode", "player", "--stdout")
        assert result.returncode == 0, result.stderr
        assert "# Night Market" in result.stdout
        assert "## Scenes (2)" in result.stdout
        assert "_Mode: Player_" in result.stdout

    def test_export_writes_file(self, db_with_scenes, tmp_path):
        db, session_id, _ = db_with_scenes
        out = tmp_path / "out"
        result = _run_cli("export", session_id, "--db", db, "--out", str(out))
        assert result.returncode == 0, result.stderr
        assert (out / "night-market-dm.md").exists()

    def test_export_without_scenes_fails(self, db_with_scenes):
        db, _, empty_id = db_with_scenes
        result = _run_cli("export", empty_id, "--db", db, "--stdout")
        assert result.returncode == 1
        assert "Export failed" in result.stderr

    def test_export_unknown_session(self, db_with_scenes):
        db, _, _ = db_with_scenes
        result = _run_cli("export", "missing", "--db", db, "--stdout")
        assert result.returncode == 1
        assert "Session not found" in result.stderr
