# config.py
from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from .model import Platform, TriggerKind

DEFAULT_WORKFLOW = "pipegate_workflow.py"


def detect_platform(environ: Mapping[str, str], sys_platform: str = sys.platform) -> Platform:
    """PIPEGATE_PLATFORM, then the CI runner's RUNNER_OS, then the host."""
    for var in ("PIPEGATE_PLATFORM", "RUNNER_OS"):
        value = environ.get(var)
        if value:
            return Platform.parse(value)
    if sys_platform.startswith("linux"):
        return Platform.LINUX
    if sys_platform == "darwin":
        return Platform.MACOS
    if sys_platform in ("win32", "cygwin"):
        return Platform.WINDOWS
    raise ValueError(f"Cannot map host platform {sys_platform!r}; set PIPEGATE_PLATFORM")


def detect_trigger(environ: Mapping[str, str]) -> Optional[TriggerKind]:
    """
    PIPEGATE_TRIGGER, then the CI runner's GITHUB_EVENT_NAME, else push.

    A CI event with no trigger kind of its own (workflow_dispatch,
    schedule, ...) gives None; the trigger must then be named explicitly.
    """
    explicit = environ.get("PIPEGATE_TRIGGER")
    if explicit:
        return TriggerKind.parse(explicit)
    event = environ.get("GITHUB_EVENT_NAME")
    if not event:
        return TriggerKind.PUSH
    try:
        return TriggerKind.parse(event)
    except ValueError:
        return None


def detect_branch(environ: Mapping[str, str]) -> Optional[str]:
    # GITHUB_HEAD_REF is only set for pull requests
    for var in ("PIPEGATE_BRANCH", "GITHUB_HEAD_REF", "GITHUB_REF_NAME"):
        value = environ.get(var)
        if value:
            return value
    return None


@dataclass(frozen=True)
class Settings:
    platform: Platform
    trigger: Optional[TriggerKind]
    event_name: Optional[str]
    branch: Optional[str]
    workdir: Path
    workflow_path: Optional[Path]
    max_workers: Optional[int]
    log_level: str
    log_format: str


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    env = os.environ if environ is None else environ

    workflow = env.get("PIPEGATE_WORKFLOW")
    if not workflow and Path(DEFAULT_WORKFLOW).exists():
        workflow = DEFAULT_WORKFLOW

    workers = env.get("PIPEGATE_MAX_WORKERS")
    return Settings(
        platform=detect_platform(env),
        trigger=detect_trigger(env),
        event_name=env.get("GITHUB_EVENT_NAME"),
        branch=detect_branch(env),
        workdir=Path(env.get("PIPEGATE_WORKDIR", ".")),
        workflow_path=Path(workflow) if workflow else None,
        max_workers=int(workers) if workers else None,
        log_level=env.get("LOG_LEVEL", "WARNING").upper(),
        log_format=env.get("LOG_FORMAT", "text").lower(),
    )
