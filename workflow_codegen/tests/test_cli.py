from __future__ import annotations

import ast
import io
import json
import logging
import sys
from pathlib import Path

from click.testing import CliRunner

from cli.main import cli

EXAMPLE = Path(__file__).resolve().parent.parent / "examples" / "support_triage.json"


def _write_workflow(tmp_path: Path, payload: dict) -> Path:
    path = tmp_path / "workflow.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_compile_writes_output_file(tmp_path: Path) -> None:
    target = tmp_path / "generated.py"

    result = CliRunner().invoke(cli, ["compile", str(EXAMPLE), "-o", str(target)])

    assert result.exit_code == 0, result.output
    source = target.read_text(encoding="utf-8")
    ast.parse(source)
    assert "async def run_workflow(workflow_input: WorkflowInput):" in source


def test_compile_prints_to_stdout() -> None:
    result = CliRunner().invoke(cli, ["compile", str(EXAMPLE)])

    assert result.exit_code == 0, result.output
    assert "async def run_workflow" in result.output


def test_compile_failure_writes_nothing(tmp_path: Path) -> None:
    workflow = _write_workflow(tmp_path, {
        "entry_node_id": "start",
        "nodes": [{"id": "start", "kind": "start"}, {"id": "x", "kind": "teleport"}],
        "edges": [{"from": "start", "to": "x"}],
    })
    target = tmp_path / "generated.py"

    result = CliRunner().invoke(cli, ["compile", str(workflow), "-o", str(target)])

    assert result.exit_code == 1
    assert not target.exists()


def test_validate_reports_success() -> None:
    result = CliRunner().invoke(cli, ["validate", str(EXAMPLE)])

    assert result.exit_code == 0, result.output
    assert "nodes" in result.output


def test_validate_lists_problems(tmp_path: Path) -> None:
    workflow = _write_workflow(tmp_path, {
        "entry_node_id": "start",
        "nodes": [{"id": "start", "kind": "start"}, {"id": "orphan", "kind": "end"}],
        "edges": [],
    })

    result = CliRunner().invoke(cli, ["validate", str(workflow)])

    assert result.exit_code == 1
    assert "orphan" in result.output


def test_config_as_json() -> None:
    result = CliRunner().invoke(cli, ["config", "--format", "json"])

    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data["Layout"]["entrypoint_name"] == "run_workflow"
    assert data["Tools"]["file_search_max_results"] == 10


def test_cli_logger_does_not_keep_runner_stream(monkeypatch) -> None:
    result = CliRunner().invoke(cli, ["--verbose", "compile", str(EXAMPLE)])
    assert result.exit_code == 0, result.output

    stream = io.StringIO()
    monkeypatch.setattr(sys, "stderr", stream)
    logging.getLogger("workflow_codegen").warning("after the run")

    assert "after the run" in stream.getvalue()
