from __future__ import annotations

import json
import os

from click.testing import CliRunner

from adaptci.cli import cli
from adaptci.concurrency import RunLock, group_name
from adaptci.context import detect_context
from adaptci.model import EventKind

from conftest import REACT_PACKAGE


def test_detect_json(make_project) -> None:
    root = make_project({"package.json": REACT_PACKAGE})
    result = CliRunner().invoke(cli, ["detect", str(root), "--json"])

    assert result.exit_code == 0, result.output
    doc = json.loads(result.output)
    assert doc["language"] == "javascript"
    assert doc["subtype"] == "react"
    assert "has_tests" in doc["capabilities"]


def test_detect_missing_root_exits_1(tmp_path) -> None:
    result = CliRunner().invoke(cli, ["detect", str(tmp_path / "nope")])
    assert result.exit_code == 1


def test_plan_prints_skip_decisions(make_project) -> None:
    root = make_project({"package.json": REACT_PACKAGE})
    result = CliRunner().invoke(cli, ["plan", str(root), "--branch", "main", "--event", "push", "--no-release"])

    assert result.exit_code == 0, result.output
    assert "PLAN" in result.output
    assert "containerize" in result.output
    assert "npm test -- --coverage --watchAll=false" in result.output


def test_run_writes_report_for_unrecognized_project(make_project, tmp_path) -> None:
    root = make_project({"notes.txt": "hi"})
    report = tmp_path / "out" / "report.json"
    result = CliRunner().invoke(
        cli,
        ["run", str(root), "--branch", "main", "--no-release", "--report", str(report), "--timeout", "cleanup=30s"],
    )

    assert result.exit_code == 0, result.output
    assert "Run SUCCEEDED" in result.output
    doc = json.loads(report.read_text())
    statuses = {s["name"]: s["status"] for s in doc["stages"]}
    assert statuses["cleanup"] == "success"
    assert statuses["test"] == "skipped"
    assert doc["exit_code"] == 0
    assert doc["context"]["branch"] == "main"


def test_run_fails_with_failing_deploy_command(make_project) -> None:
    root = make_project({
        "go.mod": "module example.com/x\n",
        "adaptci.toml": 'deploy_command = "exit 4"\n',
    })
    result = CliRunner().invoke(cli, ["run", str(root), "--branch", "main", "--event", "release", "--quiet"])

    assert result.exit_code == 1, result.output
    assert "deploy: FAILURE" in result.output


def test_run_rejects_bad_timeout_option(make_project) -> None:
    root = make_project({"notes.txt": "hi"})
    result = CliRunner().invoke(cli, ["run", str(root), "--timeout", "test"])
    assert result.exit_code == 2


def test_run_reports_invalid_config(make_project) -> None:
    root = make_project({"adaptci.toml": "concurrency = 0\n"})
    result = CliRunner().invoke(cli, ["run", str(root)])
    assert result.exit_code == 1


def test_detect_context_outside_git_uses_defaults(tmp_path) -> None:
    ctx = detect_context(tmp_path, event="release", branch="main", release=False, commit_message="")
    assert ctx.event is EventKind.RELEASE
    assert ctx.branch == "main"
    assert ctx.tagged_release is False
    assert ctx.run_id


def test_run_lock_replaces_stale_pid(tmp_path) -> None:
    lock = RunLock(tmp_path, group_name("feature/x y"))
    assert lock.path.name == "feature_x_y.pid"
    lock.path.write_text("999999999\n")

    assert lock.acquire() is None
    assert lock.path.read_text().strip() == str(os.getpid())
    lock.release()
    assert not lock.path.exists()


def test_repo_name_strips_only_the_git_suffix(monkeypatch, tmp_path) -> None:
    from adaptci import cli as cli_module

    monkeypatch.setattr(cli_module, "get_remote_url", lambda *a, **kw: "git@github.com:user/user.github.io.git")
    assert cli_module._repo_name(tmp_path) == "user.github.io"
