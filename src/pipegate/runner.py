# runner.py
from __future__ import annotations

import logging
import os
import runpy
import tempfile
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional

from .evaluator import evaluate, missing_required_secrets
from .executor import Executor, ShellExecutor
from .expressions import ExpressionError, render
from .model import Platform, RunResult, RunStatus, Step, StepOutcome, StepStatus, TriggerKind, Workflow
from .secret_store import EnvSecretStore, SecretStore, for_trigger, mask
from .ui.console import Console, get_console

logger = logging.getLogger(__name__)

ENV_FILE_VAR = "PIPEGATE_ENV"

# exit codes for failures that never reached a process exit
SPAWN_FAILED_EXIT = 127
CONFIG_FAILED_EXIT = 1


# ----------------------------------------------------------------------
# Errors
# ----------------------------------------------------------------------

@dataclass
class CIError(Exception):
    """
    Structured CI error with enough context for:
      - clean CLI output
      - debugging without full tracebacks
    """
    kind: str
    job: str
    step: str | None
    message: str
    details: dict

    def __str__(self) -> str:
        lines = [f"{self.kind}: {self.message}", f"job={self.job}"]
        if self.step:
            lines.append(f"step={self.step}")
        for k, v in self.details.items():
            lines.append(f"{k}={v}")
        return "\n".join(lines)


@dataclass
class StepFailure(Exception):
    job: str
    step: str
    cmd: str
    exit_code: int

    def __str__(self) -> str:
        return f"[{self.job}] step '{self.step}' failed (exit={self.exit_code}): {self.cmd}"


# ----------------------------------------------------------------------
# Workflow loading (local file)
# ----------------------------------------------------------------------

def load_workflow(path: str | Path) -> Workflow:
    """
    Load a workflow from a python file path.

    The file must define either:
      - workflow() -> Workflow
      - WORKFLOW = Workflow(...)
    """
    wf_path = Path(path).expanduser().resolve()
    if not wf_path.exists():
        raise FileNotFoundError(f"Workflow file not found: {wf_path}")
    if wf_path.suffix != ".py":
        raise ValueError(f"Workflow must be a .py file, got: {wf_path.name}")

    module_name = f"pipegate_workflow_{wf_path.stem}"
    globals_dict = runpy.run_path(str(wf_path), run_name=module_name)

    wf = None
    if "workflow" in globals_dict and callable(globals_dict["workflow"]):
        wf = globals_dict["workflow"]()
    elif "WORKFLOW" in globals_dict:
        wf = globals_dict["WORKFLOW"]

    if not isinstance(wf, Workflow):
        raise TypeError(
            "Workflow file must return/define a Workflow. "
            "Define workflow() -> Workflow or WORKFLOW = pipeline(...)."
        )
    return wf


# ----------------------------------------------------------------------
# Env exports
# ----------------------------------------------------------------------

def read_env_file(path: Path) -> Dict[str, str]:
    """Parse KEY=VALUE lines a step appended to its env file."""
    out: Dict[str, str] = {}
    if not path.exists():
        return out
    # Windows PowerShell may write a BOM
    text = path.read_text(encoding="utf-8-sig", errors="replace")
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep or not key.strip():
            logger.warning("ignoring malformed env export line: %r", line)
            continue
        out[key.strip()] = value.strip().strip('"')
    return out


# ----------------------------------------------------------------------
# Execution primitives
# ----------------------------------------------------------------------

def _fail(outcome: StepOutcome, exit_code: int, error: Exception, log_tail: str = "") -> None:
    outcome.status = StepStatus.FAILED
    outcome.exit_code = exit_code
    outcome.error = error
    outcome.reason = str(error)
    outcome.log_tail = log_tail


def _run_step(
    outcome: StepOutcome,
    *,
    job: str,
    platform: Platform,
    trigger: TriggerKind,
    secrets: SecretStore,
    executor: Executor,
    run_env: Dict[str, str],
    workdir: Path,
    env_file: Path,
    secret_values: List[str],
) -> None:
    step = outcome.step
    outcome.status = StepStatus.RUNNING

    cwd = (workdir / (step.cwd or ".")).resolve()
    if not cwd.is_dir():
        _fail(outcome, CONFIG_FAILED_EXIT, CIError(
            kind="BadWorkingDirectory",
            job=job,
            step=step.name,
            message="Step cwd does not exist",
            details={"cwd": str(cwd)},
        ))
        return

    env = dict(run_env)
    env.update(step.env)
    env[ENV_FILE_VAR] = str(env_file)

    try:
        command = render(step, platform=platform, trigger=trigger, secrets=secrets, env=env)
    except ExpressionError as e:
        _fail(outcome, CONFIG_FAILED_EXIT, CIError(
            kind="ExpressionError",
            job=job,
            step=step.name,
            message=str(e),
            details={"expression": e.expression},
        ))
        return

    env_file.write_text("", encoding="utf-8")
    started = time.monotonic()
    try:
        result = executor.execute(command, shell=step.shell, env=env, cwd=cwd)
    except OSError as e:
        outcome.duration = time.monotonic() - started
        _fail(outcome, SPAWN_FAILED_EXIT, CIError(
            kind="SpawnFailed",
            job=job,
            step=step.name,
            message=mask(str(e), secret_values),
            details={"shell": step.shell or "sh", "cwd": str(cwd)},
        ))
        return
    except Exception as e:
        # anything else the executor raises is still this step's failure
        outcome.duration = time.monotonic() - started
        _fail(outcome, CONFIG_FAILED_EXIT, CIError(
            kind="ExecutorError",
            job=job,
            step=step.name,
            message=mask(f"{type(e).__name__}: {e}", secret_values),
            details={"shell": step.shell or "sh"},
        ))
        return
    outcome.duration = time.monotonic() - started

    if result.exit_code != 0:
        # never show the rendered command: it may carry secret values
        _fail(
            outcome,
            result.exit_code,
            StepFailure(job=job, step=step.name, cmd=step.run, exit_code=result.exit_code),
            log_tail=result.tail(secret_values=secret_values),
        )
        return

    outcome.status = StepStatus.SUCCEEDED
    outcome.exit_code = 0

    exported = dict(step.exports)
    exported.update(read_env_file(env_file))
    if exported:
        logger.debug("%s exported %s", step.name, sorted(exported))
        run_env.update(exported)


def run(
    platform: Platform,
    trigger: TriggerKind,
    steps: Iterable[Step],
    *,
    secrets: Optional[SecretStore] = None,
    executor: Optional[Executor] = None,
    env: Optional[Mapping[str, str]] = None,
    base_env: Optional[Mapping[str, str]] = None,
    workdir: str | Path = ".",
    job: str = "pipeline",
    console: Optional[Console] = None,
    cancel: Optional[threading.Event] = None,
) -> RunResult:
    """
    Execute one matrix run: evaluate gates, then run eligible steps in order.

    Skipped steps never affect the outcome. The first failing step halts
    the run; later steps stay PENDING (never attempted).

    Args:
        env: workflow-level variables, layered over base_env
        base_env: process environment to start from (defaults to os.environ)
        cancel: checked before each eligible step; once set, the run stops
            as CANCELLED and the remaining steps stay PENDING
    """
    steps = list(steps)
    console = console or get_console()
    executor = executor or ShellExecutor()
    secrets = for_trigger(secrets if secrets is not None else EnvSecretStore(), trigger)
    workdir_p = Path(workdir).resolve()
    label = platform.matrix_label

    plan = evaluate(platform, trigger, steps, secrets)

    declared = sorted({name for s in steps for name in s.secrets})
    secret_values = secrets.values(declared)

    # each run owns its env copy; nothing is shared across matrix runs
    run_env: Dict[str, str] = dict(os.environ if base_env is None else base_env)
    run_env.update(env or {})
    run_env["PIPEGATE_PLATFORM"] = platform.value
    run_env["PIPEGATE_TRIGGER"] = trigger.value
    initial_env = dict(run_env)

    result = RunResult(
        platform=platform,
        trigger=trigger,
        outcomes=[StepOutcome(step=d.step) for d in plan.decisions],
    )

    fd, env_file_name = tempfile.mkstemp(prefix=f"pipegate-{label}-", suffix=".env")
    os.close(fd)
    env_file = Path(env_file_name)

    try:
        for decision, outcome in zip(plan.decisions, result.outcomes):
            if not decision.runs:
                outcome.status = StepStatus.SKIPPED
                outcome.reason = decision.reason
                console.print_step_skipped(label, outcome.name, decision.reason)
                continue

            if cancel is not None and cancel.is_set():
                result.status = RunStatus.CANCELLED
                break

            console.print_step(label, outcome.name)
            _run_step(
                outcome,
                job=job,
                platform=platform,
                trigger=trigger,
                secrets=secrets,
                executor=executor,
                run_env=run_env,
                workdir=workdir_p,
                env_file=env_file,
                secret_values=secret_values,
            )

            if outcome.status is StepStatus.FAILED:
                console.print_failure(
                    f"{label}/{outcome.name}",
                    outcome.reason,
                    exit_code=outcome.exit_code,
                    log_tail=outcome.log_tail,
                )
                result.status = RunStatus.HALTED
                break
            console.print_step_success(label, outcome.name, outcome.duration)
        else:
            result.status = RunStatus.COMPLETED
    finally:
        env_file.unlink(missing_ok=True)

    result.env = {k: v for k, v in run_env.items() if initial_env.get(k) != v}
    logger.info(
        "%s/%s finished: %s (exit=%d)",
        label, trigger.value, result.status.value, result.exit_code,
    )
    return result


def run_workflow(
    workflow: Workflow,
    platform: Platform,
    trigger: TriggerKind,
    **kwargs,
) -> RunResult:
    """
    Run one matrix cell of a workflow.

    A workflow_call missing one of the workflow's required secrets is
    reported, not refused: the steps that need it are skipped as usual.
    """
    secrets = kwargs.pop("secrets", None)
    if secrets is None:
        secrets = EnvSecretStore()
    missing = missing_required_secrets(workflow, trigger, secrets)
    if missing:
        logger.warning("%s: required secrets not provided: %s", workflow.name, ", ".join(missing))
        (kwargs.get("console") or get_console()).print_warning(
            f"Workflow '{workflow.name}' called without required secrets: {', '.join(missing)}"
        )
    return run(
        platform, trigger, workflow.steps,
        secrets=secrets, env=workflow.env, job=workflow.name, **kwargs,
    )
