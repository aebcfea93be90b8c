# executor.py
from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List

from .secret_store import mask


@dataclass(frozen=True)
class ExecResult:
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def output(self) -> str:
        return (self.stdout or "") + "\n" + (self.stderr or "")

    def tail(self, lines: int = 30, secret_values: Iterable[str] = ()) -> str:
        # mask the whole output first; a cut could split a secret
        combined = mask(self.output, secret_values)
        return "\n".join(combined.strip().splitlines()[-lines:])


class Executor:
    """Runner environment: runs one command and reports how it went."""

    def execute(
        self,
        command: str,
        *,
        shell: str | None,
        env: Dict[str, str],
        cwd: Path,
    ) -> ExecResult:
        raise NotImplementedError


def shell_argv(command: str, shell: str | None) -> List[str] | str:
    if shell in ("pwsh", "powershell"):
        # stop on the first failing cmdlet, like a CI runner's pwsh wrapper
        script = "$ErrorActionPreference = 'Stop'\n" + command + "\nif ((Test-Path -LiteralPath variable:\\LASTEXITCODE)) { exit $LASTEXITCODE }"
        return [shell, "-NoLogo", "-NoProfile", "-NonInteractive", "-Command", script]
    if shell == "bash":
        return ["bash", "--noprofile", "--norc", "-eo", "pipefail", "-c", command]
    if shell is None:
        return command
    raise ValueError(f"Unsupported shell: {shell!r}")


class ShellExecutor(Executor):
    """Executes commands with subprocess, capturing output."""

    def execute(self, command, *, shell, env, cwd) -> ExecResult:
        argv = shell_argv(command, shell)
        # OSError (e.g. pwsh not installed) propagates to the runner
        proc = subprocess.run(
            argv,
            shell=isinstance(argv, str),
            cwd=str(cwd),
            env=env,
            capture_output=True,
            encoding="utf-8",
            errors="replace",
        )
        return ExecResult(
            exit_code=proc.returncode,
            stdout=proc.stdout,
            stderr=proc.stderr,
        )
