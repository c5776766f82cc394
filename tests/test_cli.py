from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml
from conftest import chat_envelope
from typer.testing import CliRunner

from planforge import cli
from planforge.models import OpenAIChatClient

runner = CliRunner()


@pytest.fixture(autouse=True)
def _isolated(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    for name in ("PLANFORGE_API_KEY", "OPENAI_API_KEY", "PLANFORGE_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)


def test_analyze_prints_classification() -> None:
    result = runner.invoke(cli.app, ["analyze", "Build a FastAPI service with PostgreSQL database and user login"])

    assert result.exit_code == 0, result.output
    assert "Project type: api" in result.output
    assert "Complexity: medium" in result.output
    assert "Features: auth, database, fastapi" in result.output
    assert "Backend: Python with FastAPI" in result.output


def test_analyze_json_output() -> None:
    result = runner.invoke(cli.app, ["analyze", "--json", "Build a live chat with websockets"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["features"] == ["realtime"]
    assert payload["database_recommendation"]["recommendation"] == "MongoDB"


def test_plan_text_output_without_key() -> None:
    result = runner.invoke(cli.app, ["plan", "Build a todo app"])

    assert result.exit_code == 0, result.output
    assert "[rule-based]" in result.output
    assert "1. Project Setup & Architecture - 30 minutes" in result.output
    assert "Tech stack: TypeScript, Node.js" in result.output
    assert "Task hash: " in result.output
    assert "Enhancement" not in result.output


def test_plan_json_output() -> None:
    result = runner.invoke(cli.app, ["plan", "--json", "Build a todo app"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["plan"]["generation_method"] == "rule-based"
    assert payload["plan"]["phases"][0]["id"] == "phase-setup"
    assert len(payload["task_hash"]) == 16
    assert payload["status"]["is_complete"] is True
    assert payload["status"]["enhancement_enabled"] is False


def test_plan_rejects_blank_task() -> None:
    result = runner.invoke(cli.app, ["plan", "   "])

    assert result.exit_code == 2


def test_plan_reports_invalid_config(tmp_path: Path) -> None:
    (tmp_path / "planforge.yaml").write_text("enhancement:\n  strategy: parallel\n", encoding="utf-8")

    result = runner.invoke(cli.app, ["plan", "Build a todo app"])

    assert result.exit_code == 1


def test_run_phase_prints_agent_report() -> None:
    result = runner.invoke(cli.app, ["run-phase", "Build a todo app", "--phase", "phase-setup"])

    assert result.exit_code == 0, result.output
    assert result.output.startswith("Project Setup Complete")
    assert "- package.json" in result.output


def test_run_phase_rejects_unknown_phase() -> None:
    result = runner.invoke(cli.app, ["run-phase", "Build a todo app", "-p", "phase-auth"])

    assert result.exit_code == 2


def test_init_writes_config_once(tmp_path: Path) -> None:
    first = runner.invoke(cli.app, ["init"])
    second = runner.invoke(cli.app, ["init"])
    forced = runner.invoke(cli.app, ["init", "--force"])

    assert first.exit_code == 0, first.output
    assert "Wrote default configuration" in first.output
    assert second.exit_code == 1
    assert forced.exit_code == 0
    data = yaml.safe_load((tmp_path / "planforge.yaml").read_text(encoding="utf-8"))
    assert data["enhancement"]["strategy"] == "batch"


def test_test_connection_requires_a_key() -> None:
    result = runner.invoke(cli.app, ["test-connection"])

    assert result.exit_code == 1
    assert "No API key provided." in result.output


def test_test_connection_reports_success(monkeypatch: pytest.MonkeyPatch) -> None:
    seen = []

    def transport(payload):
        seen.append(payload)
        return chat_envelope("OK")

    monkeypatch.setattr(cli, "OpenAIChatClient", lambda **kwargs: OpenAIChatClient(transport=transport, **kwargs))

    result = runner.invoke(cli.app, ["test-connection", "--api-key", "sk-test"])

    assert result.exit_code == 0, result.output
    assert "Connection OK." in result.output
    assert seen[0]["max_tokens"] == 10


def test_stats_counts_plans() -> None:
    result = runner.invoke(cli.app, ["stats", "Build a blog", "Build a shop"])

    assert result.exit_code == 0, result.output
    assert "Plans: 2" in result.output
    assert "Completed: 2" in result.output
    assert "Cache entries: 0" in result.output
