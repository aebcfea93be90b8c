# expressions.py
"""
`${{ ... }}` substitution in step commands.

Supported contexts:
    ${{ secrets.NAME }}   only secrets the step declares
    ${{ matrix.os }}      matrix label of the platform (ubuntu/macos/windows)
    ${{ runner.os }}      Linux/macOS/Windows
    ${{ event_name }}     trigger name (push, pull_request, workflow_call)
    ${{ env.NAME }}       run environment
"""
from __future__ import annotations

import re
from typing import Mapping

from .model import Platform, Step, TriggerKind
from .secret_store import SecretStore

_EXPR = re.compile(r"\$\{\{\s*([A-Za-z_][A-Za-z0-9_.\-]*)\s*\}\}")

_RUNNER_OS = {
    Platform.LINUX: "Linux",
    Platform.MACOS: "macOS",
    Platform.WINDOWS: "Windows",
}


class ExpressionError(ValueError):
    def __init__(self, expression: str, message: str):
        super().__init__(f"{message}: ${{{{ {expression} }}}}")
        self.expression = expression


def render(
    step: Step,
    *,
    platform: Platform,
    trigger: TriggerKind,
    secrets: SecretStore,
    env: Mapping[str, str],
) -> str:
    def resolve(match: re.Match) -> str:
        expr = match.group(1)
        ctx, _, key = expr.partition(".")

        if ctx == "secrets":
            if key not in step.secrets:
                raise ExpressionError(expr, "secret not declared by step")
            value = secrets.lookup(key)
            if not value:
                raise ExpressionError(expr, "secret unavailable")
            return value
        if expr == "matrix.os":
            return platform.matrix_label
        if expr == "runner.os":
            return _RUNNER_OS[platform]
        if expr in ("event_name", "github.event_name"):
            return trigger.value
        if ctx == "env" and key:
            if key not in env:
                raise ExpressionError(expr, "env variable not set")
            return env[key]
        raise ExpressionError(expr, "unknown expression")

    return _EXPR.sub(resolve, step.run)
