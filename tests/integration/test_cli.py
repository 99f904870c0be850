"""Integration tests for the command-line interface."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterator

import pytest
from typer.testing import CliRunner

from mini_rdbms.adapters.inbound import cli
from mini_rdbms.adapters.inbound.cli import app, run_repl
from mini_rdbms.application import DatabaseEngine
from mini_rdbms.infrastructure.config import get_config


def scripted_input(lines: list[str]):
    """Feed lines to the REPL, then signal end of input."""
    pending: Iterator[str] = iter(lines)

    def _input(prompt: str) -> str:
        try:
            return next(pending)
        except StopIteration:
            raise EOFError from None

    return _input


@pytest.mark.integration
class TestRepl:
    """Tests for the interactive line reader."""

    def test_executes_until_exit(self, engine: DatabaseEngine) -> None:
        output: list[str] = []

        executed = run_repl(
            engine,
            input_fn=scripted_input(
                [
                    "CREATE TABLE t (id int, name string)",
                    "",
                    "   ",
                    "INSERT INTO t VALUES (1, 'alice')",
                    "SELECT * FROM t",
                    "exit",
                    "SELECT * FROM never",
                ]
            ),
            output_fn=output.append,
        )

        assert executed == 3
        assert output[0] == "OK: Table 't' created"
        assert json.loads(output[2]) == {"id": 1, "name": "alice"}

    def test_stops_at_end_of_input(self, engine: DatabaseEngine) -> None:
        output: list[str] = []

        executed = run_repl(
            engine,
            input_fn=scripted_input(["SELECT * FROM missing"]),
            output_fn=output.append,
        )

        assert executed == 1
        assert "TableNotFound" in output[0]

    def test_named_database(self, engine: DatabaseEngine) -> None:
        engine.create_database("hr")
        output: list[str] = []

        run_repl(
            engine,
            database="hr",
            input_fn=scripted_input(["CREATE TABLE staff (id int)", "QUIT"]),
            output_fn=output.append,
        )

        assert engine.list_tables("hr") == ["staff"]


@pytest.mark.integration
class TestCliCommands:
    """Tests for the Typer commands."""

    @pytest.fixture
    def runner(self, monkeypatch: pytest.MonkeyPatch, temp_dir: Path) -> Iterator[CliRunner]:
        monkeypatch.setenv("MINI_RDBMS_STORAGE__DATA_DIR", str(temp_dir / "cli-data"))
        monkeypatch.setenv("MINI_RDBMS_STORAGE__SYNC_MODE", "none")
        # Keep the session logging setup; the runner swaps stderr per invoke
        monkeypatch.setattr(cli, "setup_logging", lambda *args, **kwargs: None)
        get_config.cache_clear()
        yield CliRunner()
        get_config.cache_clear()

    def test_execute_against_seeded_data(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["execute", "SELECT * FROM users WHERE id = 2"])

        assert result.exit_code == 0
        assert json.loads(result.stdout.strip()) == {"id": 2, "username": "Jane Smith", "age": 30}

    def test_execute_failure_exit_code(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["execute", "SELECT * FROM ghosts"])

        assert result.exit_code == 1
        assert "TableNotFound" in result.stdout

    def test_repl_command(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["repl"], input="SELECT * FROM orders\nexit\n")

        assert result.exit_code == 0
        assert '"item": "Laptop"' in result.stdout
