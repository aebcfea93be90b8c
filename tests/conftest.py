"""Shared fixtures: a scripted executor standing in for the runner environment."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

from pipegate.executor import ExecResult, Executor
from pipegate.ui.console import Console


@dataclass
class Call:
    command: str
    shell: Optional[str]
    env: Dict[str, str]
    cwd: Path


@dataclass
class FakeExecutor(Executor):
    """
    Records every command and answers from a script.

    exit_codes: command -> exit code (default 0), or an exception to raise
    env_lines:  command -> text appended to the step's env file
    outputs:    command -> captured stdout
    rule:       optional (command, env) -> exit code, checked before exit_codes
    """
    exit_codes: Dict[str, object] = field(default_factory=dict)
    env_lines: Dict[str, str] = field(default_factory=dict)
    outputs: Dict[str, str] = field(default_factory=dict)
    rule: Optional[Callable[[str, Dict[str, str]], int]] = None
    calls: List[Call] = field(default_factory=list)

    def execute(self, command, *, shell, env, cwd) -> ExecResult:
        self.calls.append(Call(command, shell, dict(env), cwd))

        lines = self.env_lines.get(command)
        if lines:
            with open(env["PIPEGATE_ENV"], "a", encoding="utf-8") as f:
                f.write(lines)

        if self.rule is not None:
            code = self.rule(command, env)
        else:
            code = self.exit_codes.get(command, 0)
        if isinstance(code, BaseException):
            raise code
        return ExecResult(exit_code=code, stdout=self.outputs.get(command, ""))

    @property
    def commands(self) -> List[str]:
        return [c.command for c in self.calls]


@pytest.fixture
def executor():
    return FakeExecutor()


@pytest.fixture
def quiet_console():
    return Console(quiet=True)


@pytest.fixture
def clean_env(monkeypatch):
    """Drop CI variables the host may have set."""
    for var in (
        "PIPEGATE_PLATFORM", "PIPEGATE_TRIGGER", "PIPEGATE_BRANCH", "PIPEGATE_WORKFLOW",
        "PIPEGATE_WORKDIR", "PIPEGATE_MAX_WORKERS", "RUNNER_OS", "GITHUB_EVENT_NAME",
        "GITHUB_HEAD_REF", "GITHUB_REF_NAME", "NPCAP_OEM_URL", "PIPEGATE_SECRET_NPCAP_OEM_URL",
        "LOG_LEVEL", "LOG_FORMAT",
    ):
        monkeypatch.delenv(var, raising=False)
