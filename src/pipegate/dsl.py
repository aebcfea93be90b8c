# src/pipegate/dsl.py
from __future__ import annotations

from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Sequence

from .guards import always
from .model import GuardFn, Platform, Step, TriggerKind, Workflow


# ---------------------------------------------------------------------
# Step helpers
# ---------------------------------------------------------------------

def sh(
    name: str,
    cmd: str,
    *,
    when: GuardFn = always,
    secrets: Sequence[str] = (),
    env: Optional[Dict[str, str]] = None,
    exports: Optional[Dict[str, str]] = None,
    cwd: str | None = None,
) -> Step:
    """Create a shell step."""
    return Step(
        name=name,
        run=cmd,
        when=when,
        secrets=tuple(secrets),
        env=dict(env or {}),
        exports=dict(exports or {}),
        cwd=cwd,
    )


def pwsh(name: str, script: str, **kwargs) -> Step:
    """Create a PowerShell step (same options as sh)."""
    return replace(sh(name, script, **kwargs), shell="pwsh")


# ---------------------------------------------------------------------
# Workflow helper (single-file story)
# ---------------------------------------------------------------------

def pipeline(
    name: str,
    *steps: Step,  # allow: pipeline("x", sh(...), sh(...))
    steps_list: Optional[List[Step]] = None,  # allow: pipeline("x", steps_list=[...])
    env: Optional[Dict[str, str]] = None,
    platforms: Optional[Iterable[Platform]] = None,
    on: Optional[Dict[TriggerKind, Sequence[str]]] = None,
    fail_fast: bool = True,
    required_secrets: Sequence[str] = (),
    cwd: str | None = None,  # default cwd applied to steps missing cwd
) -> Workflow:
    """
    Users can write:
        from pipegate import pipeline, sh

        def workflow():
            return pipeline(
                "ci",
                sh("build", "make"),
                sh("test", "make test"),
            )
    """
    steps_final: List[Step] = []
    if steps_list:
        steps_final.extend(steps_list)
    steps_final.extend(steps)

    if not steps_final:
        raise ValueError(f"pipeline({name!r}) must have at least one step")

    names = [s.name for s in steps_final]
    if len(set(names)) != len(names):
        dupes = sorted({n for n in names if names.count(n) > 1})
        raise ValueError(f"Duplicate step names found: {dupes}")

    if cwd is not None:
        steps_final = [s if s.cwd is not None else replace(s, cwd=cwd) for s in steps_final]

    kwargs = {}
    if platforms is not None:
        kwargs["platforms"] = tuple(platforms)
    if on is not None:
        kwargs["triggers"] = {TriggerKind.parse(k): tuple(v) for k, v in on.items()}

    return Workflow(
        name=name,
        steps=tuple(steps_final),
        env=dict(env or {}),
        fail_fast=fail_fast,
        required_secrets=tuple(required_secrets),
        **kwargs,
    )


# ---------------------------------------------------------------------
# Matrix
# ---------------------------------------------------------------------

def platform_matrix(*values: Platform | str) -> tuple[Platform, ...]:
    """
    Platform matrix from enum values or labels.

    Example:
        pipeline("ci", ..., platforms=platform_matrix("ubuntu", "macos", "windows"))
    """
    return tuple(Platform.parse(v) for v in values)
