"""Unit tests for the command-line interface in ragengine/cli/commands.py.

Each test writes a small YAML config pointing the in-process store and the
SQLite repository into ``tmp_path``, so separate ``main()`` invocations
share state the same way consecutive shell commands would.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from ragengine.cli import commands
from ragengine.cli.commands import build_parser, main
from ragengine.providers.vector_store.memory_provider import InMemoryVectorStore
from ragengine.utils.logging import configure_logging
from tests.conftest import REMOTE_WORK_TEXT

# ======================================================================
# Shared helpers
# ======================================================================


@pytest.fixture(autouse=True)
def in_tmp_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Run from tmp_path and put the default logging back afterwards."""
    monkeypatch.chdir(tmp_path)
    yield
    configure_logging()


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(
        "embedding:\n"
        "  provider: hashing\n"
        "  dimension: 64\n"
        "vector_store:\n"
        "  backends: memory\n"
        f"  memory_persist_path: '{tmp_path / 'vectors.json'}'\n"
        "storage:\n"
        f"  document_db_path: '{tmp_path / 'ragengine.db'}'\n"
    )
    return path


@pytest.fixture
def policy_file(tmp_path: Path) -> Path:
    path = tmp_path / "policy.txt"
    path.write_text(REMOTE_WORK_TEXT)
    return path


def _run(config_path: Path, *argv: str) -> int:
    return main(["--config", str(config_path), *argv])


# ======================================================================
# Parser
# ======================================================================


class TestParser:
    def test_query_arguments(self) -> None:
        args = build_parser().parse_args(
            ["query", "--collection", "hr", "--threshold", "0.4", "--expand", "Is remote work ok?"]
        )

        assert args.command == "query"
        assert args.collection == "hr"
        assert args.threshold == 0.4
        assert args.expand is True
        assert args.mode is None

    def test_no_command_prints_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main([]) == 1
        assert "usage:" in capsys.readouterr().out


# ======================================================================
# Commands
# ======================================================================


class TestIndexAndQuery:
    def test_index_then_query(
        self, config_path: Path, policy_file: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert _run(config_path, "index", "--collection", "hr", str(policy_file)) == 0
        indexed = capsys.readouterr().out
        assert "policy.txt" in indexed
        assert "completed" in indexed
        assert "Indexed 1 of 1 file(s) into 'hr'." in indexed

        exit_code = _run(
            config_path, "query", "--collection", "hr", "--threshold", "0.5", "--json", REMOTE_WORK_TEXT
        )

        answer = json.loads(capsys.readouterr().out)
        assert exit_code == 0
        assert answer["status"] == "answered"
        assert answer["sources"][0]["chunk_id"] == "policy.txt-chunk-0"
        assert answer["model_used"] == "extractive"

    def test_json_output_stays_clean_with_debug_logging(
        self, config_path: Path, policy_file: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        _run(config_path, "index", "--collection", "hr", str(policy_file))
        capsys.readouterr()

        exit_code = _run(
            config_path, "--log-level", "DEBUG", "query", "--collection", "hr", "--json", REMOTE_WORK_TEXT
        )

        captured = capsys.readouterr()
        assert exit_code == 0
        assert json.loads(captured.out)["status"] == "answered"

    def test_logging_configured_on_stderr(
        self, config_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        seen: list[dict] = []

        def recording_configure(**kwargs):
            seen.append(kwargs)
            return configure_logging(**kwargs)

        monkeypatch.setattr(commands, "configure_logging", recording_configure)

        assert _run(config_path, "health") == 0
        assert seen[0]["stream"] is sys.stderr
        assert seen[0]["cache_loggers"] is False

    def test_plain_query_output(
        self, config_path: Path, policy_file: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        _run(config_path, "index", "--collection", "hr", str(policy_file))
        capsys.readouterr()

        assert _run(config_path, "query", "--collection", "hr", REMOTE_WORK_TEXT) == 0

        out = capsys.readouterr().out
        assert "Status: answered" in out
        assert "[1] policy.txt" in out

    def test_index_directory(
        self, config_path: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        docs = tmp_path / "docs"
        (docs / "nested").mkdir(parents=True)
        (docs / "a.md").write_text("# Travel\n\nTravel needs approval.")
        (docs / "nested" / "b.txt").write_text("Expenses are reimbursed monthly.")
        (docs / "ignored.bin").write_bytes(b"\x00\x01")

        assert _run(config_path, "index", "--collection", "hr", "--dir", str(docs)) == 0
        assert "Indexed 2 of 2 file(s)" in capsys.readouterr().out

    def test_failed_document_exit_code(
        self, config_path: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        blank = tmp_path / "blank.txt"
        blank.write_text("   \n\n  ")

        assert _run(config_path, "index", "--collection", "hr", str(blank)) == 2
        assert "failed" in capsys.readouterr().out

    def test_no_files(self, config_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert _run(config_path, "index", "--collection", "hr") == 1
        assert "no input files" in capsys.readouterr().err


class TestStatsDeleteHealth:
    def test_stats_and_delete(
        self, config_path: Path, policy_file: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        _run(config_path, "index", "--collection", "hr", str(policy_file))
        capsys.readouterr()

        assert _run(config_path, "stats", "--collection", "hr") == 0
        stats = capsys.readouterr().out
        assert "Collection 'hr'" in stats
        assert "vectors=1" in stats

        assert _run(config_path, "delete", "--collection", "hr", "--document", "policy.txt", "--yes") == 0
        assert "Removed 1 vector(s)." in capsys.readouterr().out

        _run(config_path, "stats", "--collection", "hr")
        assert "vectors=0" in capsys.readouterr().out

    def test_delete_aborted(
        self, config_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        monkeypatch.setattr("builtins.input", lambda prompt: "n")

        assert _run(config_path, "delete", "--collection", "hr", "--document", "policy.txt") == 1
        assert "Aborted." in capsys.readouterr().out

    def test_health(self, config_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert _run(config_path, "health") == 0
        assert json.loads(capsys.readouterr().out) == {"memory": True}

    def test_unhealthy_store_exit_code(
        self, config_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(InMemoryVectorStore, "health_check", AsyncMock(return_value=False))

        assert _run(config_path, "health") == 3


class TestConfigErrors:
    def test_malformed_config(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        bad = tmp_path / "bad.yaml"
        bad.write_text("embedding: [oops\n")

        assert main(["--config", str(bad), "health"]) == 1
        assert "Malformed YAML" in capsys.readouterr().err
