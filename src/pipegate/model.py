# model.py
from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Tuple


# ---------------------------------------------------------------------
# Matrix dimensions
# ---------------------------------------------------------------------

class Platform(Enum):
    """Operating-system target of a matrix run."""
    LINUX = "linux"
    MACOS = "macos"
    WINDOWS = "windows"

    @property
    def matrix_label(self) -> str:
        # value exposed as ${{ matrix.os }}
        return _MATRIX_LABELS[self]

    @property
    def runner_label(self) -> str:
        return f"{self.matrix_label}-latest"

    @classmethod
    def parse(cls, value: str | Platform) -> Platform:
        if isinstance(value, Platform):
            return value
        key = value.strip().lower()
        if key.endswith("-latest"):
            key = key[: -len("-latest")]
        try:
            return _PLATFORM_ALIASES[key]
        except KeyError:
            raise ValueError(
                f"Unknown platform {value!r}. Known: {sorted(_PLATFORM_ALIASES)}"
            ) from None


_MATRIX_LABELS = {
    Platform.LINUX: "ubuntu",
    Platform.MACOS: "macos",
    Platform.WINDOWS: "windows",
}

_PLATFORM_ALIASES = {
    "linux": Platform.LINUX,
    "ubuntu": Platform.LINUX,
    "macos": Platform.MACOS,
    "darwin": Platform.MACOS,
    "osx": Platform.MACOS,
    "windows": Platform.WINDOWS,
    "win32": Platform.WINDOWS,
}


class TriggerKind(Enum):
    """Event that started the pipeline."""
    PUSH = "push"
    PULL_REQUEST = "pull_request"
    WORKFLOW_CALL = "workflow_call"

    @classmethod
    def parse(cls, value: str | TriggerKind) -> TriggerKind:
        if isinstance(value, TriggerKind):
            return value
        key = value.strip().lower().replace("-", "_")
        for kind in cls:
            if kind.value == key or kind.name.lower() == key:
                return kind
        raise ValueError(
            f"Unknown trigger {value!r}. Known: {[k.value for k in cls]}"
        )


# ---------------------------------------------------------------------
# Declarations
# ---------------------------------------------------------------------

# Guard signature: (platform, trigger) -> should the step run?
GuardFn = Callable[[Platform, TriggerKind], bool]


def _always(platform: Platform, trigger: TriggerKind) -> bool:
    return True


@dataclass(frozen=True)
class Step:
    """A single command (step) inside a pipeline."""
    name: str
    run: str
    when: GuardFn = _always
    secrets: Tuple[str, ...] = ()
    env: Dict[str, str] = field(default_factory=dict, hash=False)
    # applied to the run environment after the step succeeds
    exports: Dict[str, str] = field(default_factory=dict, hash=False)
    shell: str | None = None
    cwd: str | None = None


def _branch_regex(pattern: str) -> re.Pattern:
    """
    Compile one branch filter.

    `*` matches within a path segment, `**` across segments, `?` and `+`
    repeat the preceding character, `[...]` is a character class.
    """
    out: List[str] = []
    repeatable = False
    i = 0
    while i < len(pattern):
        ch = pattern[i]
        if pattern.startswith("**", i):
            out.append(".*")
            repeatable = False
            i += 2
            continue
        if ch == "*":
            out.append("[^/]*")
            repeatable = False
        elif ch in "?+" and repeatable:
            out.append(ch)
            repeatable = False
        elif ch == "[" and "]" in pattern[i + 1:]:
            end = pattern.index("]", i + 1)
            out.append(pattern[i:end + 1])
            repeatable = True
            i = end + 1
            continue
        else:
            out.append(re.escape(ch))
            repeatable = True
        i += 1
    return re.compile("".join(out))


def branch_matches(branch: str, patterns: Iterable[str]) -> bool:
    """Filters apply in order; `!pattern` excludes and the last match wins."""
    matched = False
    for p in patterns:
        negate = p.startswith("!")
        if _branch_regex(p[1:] if negate else p).fullmatch(branch):
            matched = not negate
    return matched


@dataclass(frozen=True)
class Workflow:
    """
    A pipeline: ordered steps + the matrix and triggers it runs on.

    `triggers` maps each accepted trigger kind to branch filters in CI
    filter syntax (see branch_matches). A trigger kind missing from the map
    never starts a run.
    """
    name: str
    steps: Tuple[Step, ...]
    env: Dict[str, str] = field(default_factory=dict, hash=False)
    platforms: Tuple[Platform, ...] = (Platform.LINUX, Platform.MACOS, Platform.WINDOWS)
    triggers: Dict[TriggerKind, Tuple[str, ...]] = field(
        default_factory=lambda: {kind: ("*",) for kind in TriggerKind},
        hash=False,
    )
    fail_fast: bool = True
    # secrets a caller must pass for a workflow_call trigger
    required_secrets: Tuple[str, ...] = ()

    def accepts(self, trigger: TriggerKind, branch: Optional[str] = None) -> bool:
        patterns = self.triggers.get(trigger)
        if patterns is None:
            return False
        # workflow_call has no branch filter; neither does an unknown branch
        if trigger is TriggerKind.WORKFLOW_CALL or branch is None:
            return True
        return branch_matches(branch, patterns)


# ---------------------------------------------------------------------
# Execution state
# ---------------------------------------------------------------------

class StepStatus(Enum):
    PENDING = "pending"
    RUNNING = "running"
    SKIPPED = "skipped"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class RunStatus(Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    HALTED = "halted"
    # stopped by the matrix after a sibling run halted
    CANCELLED = "cancelled"


@dataclass
class StepOutcome:
    """What happened to one step of a run."""
    step: Step
    status: StepStatus = StepStatus.PENDING
    reason: str = ""
    exit_code: Optional[int] = None
    duration: Optional[float] = None
    log_tail: str = ""
    error: Optional[Exception] = None

    @property
    def name(self) -> str:
        return self.step.name


@dataclass
class RunResult:
    """Result of one matrix run (one platform, one trigger)."""
    platform: Platform
    trigger: TriggerKind
    outcomes: List[StepOutcome] = field(default_factory=list)
    status: RunStatus = RunStatus.IN_PROGRESS
    env: Dict[str, str] = field(default_factory=dict)

    def _named(self, status: StepStatus) -> List[str]:
        return [o.name for o in self.outcomes if o.status is status]

    @property
    def executed(self) -> List[str]:
        return [
            o.name for o in self.outcomes
            if o.status in (StepStatus.SUCCEEDED, StepStatus.FAILED)
        ]

    @property
    def skipped(self) -> List[str]:
        return self._named(StepStatus.SKIPPED)

    @property
    def not_attempted(self) -> List[str]:
        return self._named(StepStatus.PENDING)

    @property
    def failed_step(self) -> Optional[StepOutcome]:
        for o in self.outcomes:
            if o.status is StepStatus.FAILED:
                return o
        return None

    @property
    def exit_code(self) -> int:
        failed = self.failed_step
        if failed is None:
            return 0
        code = failed.exit_code or 1
        # killed by signal n: report it the way a shell does
        return 128 - code if code < 0 else code


@dataclass
class MatrixResult:
    """Results of a matrix fan-out, in platform declaration order."""
    trigger: TriggerKind
    runs: Dict[Platform, RunResult] = field(default_factory=dict)
    cancelled: List[Platform] = field(default_factory=list)

    @property
    def exit_code(self) -> int:
        for run in self.runs.values():
            if run.status is RunStatus.HALTED:
                return run.exit_code
        return 1 if self.cancelled else 0
