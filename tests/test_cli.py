"""CLI commands through click's CliRunner."""

import shutil
import sys
import textwrap

import pytest
from click.testing import CliRunner

from pipegate.cli import cli

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="workflow steps use POSIX sh")

DEMO = textwrap.dedent('''
    from pipegate import pipeline, sh

    def workflow():
        return pipeline(
            "demo",
            sh("hello", "echo hello"),
            sh("boom", "exit 3"),
            sh("never", "echo never"),
            on={"push": ["main"], "pull_request": ["*"]},
        )
''')

GREEN = textwrap.dedent('''
    from pipegate import pipeline, sh

    WORKFLOW = pipeline("green", sh("hello", "echo hello"))
''')


@pytest.fixture
def runner(tmp_path, monkeypatch, clean_env):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "demo.py").write_text(DEMO, encoding="utf-8")
    (tmp_path / "green.py").write_text(GREEN, encoding="utf-8")
    return CliRunner()


class TestPlan:
    def test_windows_pull_request_plan(self, runner):
        result = runner.invoke(cli, ["plan", "--platform", "windows", "--trigger", "pull_request"])
        assert result.exit_code == 0, result.output
        assert "PLAN windows / pull_request" in result.output
        assert "✓ fmt check" in result.output
        assert "⏭ build" in result.output
        assert "⏭ install Windows deps (secret unavailable: NPCAP_OEM_URL)" in result.output

    def test_secret_flag_marks_secret_available(self, runner):
        result = runner.invoke(
            cli, ["plan", "--platform", "windows", "--trigger", "push", "--secret", "NPCAP_OEM_URL"],
        )
        assert result.exit_code == 0, result.output
        assert "✓ install Windows deps" in result.output

    def test_platform_from_environment(self, runner, monkeypatch):
        monkeypatch.setenv("RUNNER_OS", "macOS")
        result = runner.invoke(cli, ["plan"])
        assert result.exit_code == 0, result.output
        assert "PLAN macos / push" in result.output

    def test_unmapped_ci_event_with_explicit_trigger(self, runner, monkeypatch):
        monkeypatch.setenv("GITHUB_EVENT_NAME", "workflow_dispatch")
        result = runner.invoke(cli, ["plan", "--platform", "linux", "--trigger", "push"])
        assert result.exit_code == 0, result.output
        assert "PLAN ubuntu / push" in result.output

    def test_unmapped_ci_event_without_trigger(self, runner, monkeypatch):
        monkeypatch.setenv("GITHUB_EVENT_NAME", "workflow_dispatch")
        result = runner.invoke(cli, ["plan", "--platform", "linux"])
        assert result.exit_code == 1
        assert "pass --trigger" in result.output

    def test_workflow_call_warns_about_required_secret(self, runner):
        result = runner.invoke(cli, ["plan", "--platform", "linux", "--trigger", "workflow_call"])
        assert result.exit_code == 0, result.output
        assert "without required secrets: NPCAP_OEM_URL" in result.output

    def test_bad_workflow_file_traceback_only_in_debug(self, runner, tmp_path):
        (tmp_path / "empty.py").write_text("X = 1\n", encoding="utf-8")
        quiet = runner.invoke(cli, ["plan", "--workflow", "empty.py"])
        assert quiet.exit_code == 1
        assert "Failed to plan workflow" in quiet.output
        assert "Traceback" not in quiet.output

        loud = runner.invoke(cli, ["--debug", "plan", "--workflow", "empty.py"])
        assert loud.exit_code == 1
        assert "Traceback" in loud.output
        assert "TypeError" in loud.output

    def test_unknown_trigger_is_usage_error(self, runner):
        result = runner.invoke(cli, ["plan", "--trigger", "schedule"])
        assert result.exit_code == 2


@posix_only
class TestRun:
    def test_run_halts_with_step_exit_code(self, runner):
        result = runner.invoke(
            cli, ["run", "--workflow", "demo.py", "--platform", "linux", "--trigger", "push", "--branch", "main"],
        )
        assert result.exit_code == 3, result.output
        assert "hello: SUCCEEDED" in result.output
        assert "boom: FAILED" in result.output
        assert "never: NOT RUN" in result.output

    def test_run_not_triggered(self, runner):
        result = runner.invoke(
            cli, ["run", "--workflow", "demo.py", "--platform", "linux", "--trigger", "push", "--branch", "feature"],
        )
        assert result.exit_code == 0
        assert "not triggered" in result.output

    def test_run_success(self, runner):
        result = runner.invoke(cli, ["run", "--workflow", "green", "--platform", "linux", "--trigger", "push"])
        assert result.exit_code == 0, result.output
        assert "Run: COMPLETED (exit code 0)" in result.output

    def test_missing_workflow_file(self, runner):
        result = runner.invoke(cli, ["run", "--workflow", "nope.py"])
        assert result.exit_code == 1

    def test_workflow_from_environment(self, runner, monkeypatch):
        monkeypatch.setenv("PIPEGATE_WORKFLOW", "green.py")
        result = runner.invoke(cli, ["run", "--platform", "linux"])
        assert result.exit_code == 0, result.output
        assert "Workflow: green" in result.output


@posix_only
class TestMatrix:
    def test_matrix_subset(self, runner):
        result = runner.invoke(
            cli, ["matrix", "--workflow", "green.py", "--trigger", "push", "--platform", "linux", "--platform", "macos"],
        )
        assert result.exit_code == 0, result.output
        assert "MATRIX push" in result.output
        assert "ubuntu-latest: COMPLETED" in result.output
        assert "macos-latest: COMPLETED" in result.output
        assert "windows-latest" not in result.output

    def test_matrix_failure_exit_code(self, runner):
        result = runner.invoke(
            cli, ["matrix", "--workflow", "demo.py", "--trigger", "pull_request", "--no-fail-fast"],
        )
        assert result.exit_code == 3, result.output
        assert result.output.count("Run: HALTED (exit code 3)") == 3
