# cli.py
from __future__ import annotations

import sys
from pathlib import Path

import click

from pipegate.config import Settings, load_settings
from pipegate.evaluator import evaluate, missing_required_secrets
from pipegate.logging_config import configure_logging
from pipegate.matrix import run_matrix
from pipegate.model import Platform, TriggerKind, Workflow
from pipegate.pipelines.rust import rust_pipeline
from pipegate.runner import load_workflow, run_workflow
from pipegate.secret_store import EnvSecretStore, MappingSecretStore
from pipegate.ui.console import Console, get_console, set_console

PLATFORM_CHOICES = sorted(["linux", "ubuntu", "macos", "darwin", "windows", "win32"])
TRIGGER_CHOICES = [t.value for t in TriggerKind]


def resolve_workflow(workflow_arg: str | None, settings: Settings) -> Workflow:
    """
    Load the workflow named on the command line, else the one from
    settings (PIPEGATE_WORKFLOW or pipegate_workflow.py), else the
    built-in Rust pipeline.

    Raises:
        SystemExit: If an explicit workflow file cannot be found
    """
    console = get_console()

    if workflow_arg:
        workflow_path = Path(workflow_arg)
        if not workflow_path.exists() and workflow_path.suffix != ".py":
            workflow_path = Path(str(workflow_path) + ".py")
        if not workflow_path.exists():
            console.print_error(
                "Workflow file not found",
                f"Could not find workflow file: {workflow_arg}",
                suggestion="Create a workflow file or specify a different path:\n  pipegate run --workflow my_workflow.py",
            )
            sys.exit(1)
        return load_workflow(workflow_path)

    if settings.workflow_path is not None:
        return load_workflow(settings.workflow_path)

    console.print_debug("No workflow file given; using the built-in Rust pipeline")
    return rust_pipeline()


def _trigger(settings: Settings, trigger: str | None) -> TriggerKind:
    if trigger:
        return TriggerKind.parse(trigger)
    if settings.trigger is None:
        raise ValueError(
            f"CI event {settings.event_name!r} has no trigger kind; "
            "pass --trigger or set PIPEGATE_TRIGGER"
        )
    return settings.trigger


def _cell(settings: Settings, platform: str | None, trigger: str | None) -> tuple[Platform, TriggerKind]:
    p = Platform.parse(platform) if platform else settings.platform
    return p, _trigger(settings, trigger)


def _fail(e: Exception, title: str) -> None:
    console = get_console()
    console.print_error(title, str(e))
    console.print_exception(e)
    sys.exit(1)


workflow_option = click.option(
    "--workflow",
    default=None,
    help="Workflow file path (defaults to $PIPEGATE_WORKFLOW, pipegate_workflow.py, or the built-in Rust pipeline)",
)
platform_option = click.option(
    "--platform",
    default=None,
    type=click.Choice(PLATFORM_CHOICES, case_sensitive=False),
    help="Matrix cell to use (defaults to $PIPEGATE_PLATFORM, $RUNNER_OS or the host)",
)
trigger_option = click.option(
    "--trigger",
    default=None,
    type=click.Choice(TRIGGER_CHOICES, case_sensitive=False),
    help="Trigger kind (defaults to $PIPEGATE_TRIGGER, $GITHUB_EVENT_NAME or push)",
)


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and detailed output)",
)
@click.option("--log-level", default=None, help="Diagnostic log level (overrides $LOG_LEVEL)")
@click.pass_context
def cli(ctx, debug, log_level):
    """pipegate: gated CI pipeline runner."""
    console = Console(debug=debug)
    set_console(console)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug

    try:
        settings = load_settings()
    except ValueError as e:
        console.print_error("Invalid configuration", str(e))
        sys.exit(1)
    ctx.obj["settings"] = settings

    configure_logging(log_level or ("DEBUG" if debug else settings.log_level), settings.log_format)


@cli.command()
@workflow_option
@platform_option
@trigger_option
@click.option("--secret", "secret_names", multiple=True, help="Treat this secret as available (repeatable)")
@click.pass_context
def plan(ctx, workflow, platform, trigger, secret_names):
    """Show which steps would run or be skipped, without executing."""
    console = get_console()
    settings: Settings = ctx.obj["settings"]

    try:
        wf = resolve_workflow(workflow, settings)
        p, t = _cell(settings, platform, trigger)
        if secret_names:
            # values are placeholders; planning only checks presence
            secrets = MappingSecretStore({name: "<provided>" for name in secret_names})
        else:
            secrets = EnvSecretStore()
        console.print_plan(evaluate(p, t, wf.steps, secrets))
        missing = missing_required_secrets(wf, t, secrets)
        if missing:
            console.print_warning(f"workflow_call without required secrets: {', '.join(missing)}")
    except Exception as e:
        _fail(e, "Failed to plan workflow")


@cli.command()
@workflow_option
@platform_option
@trigger_option
@click.option("--branch", default=None, help="Branch that triggered the run (defaults to CI env vars)")
@click.option("--workdir", default=None, help="Directory steps run in (defaults to $PIPEGATE_WORKDIR or .)")
@click.pass_context
def run(ctx, workflow, platform, trigger, branch, workdir):
    """Run one matrix cell of a workflow."""
    console = get_console()
    settings: Settings = ctx.obj["settings"]

    try:
        wf = resolve_workflow(workflow, settings)
        p, t = _cell(settings, platform, trigger)
    except Exception as e:
        _fail(e, "Failed to load workflow")

    branch = branch or settings.branch
    if not wf.accepts(t, branch):
        console.print_info(f"Workflow '{wf.name}' is not triggered by {t.value} on branch {branch!r}")
        sys.exit(0)

    console.print_run_started(
        workflow=wf.name,
        platform=p.runner_label,
        trigger=t.value,
        step_count=len(wf.steps),
    )

    try:
        result = run_workflow(wf, p, t, workdir=workdir or settings.workdir)
    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(130)

    console.print_run_result(result)
    sys.exit(result.exit_code)


@cli.command()
@workflow_option
@trigger_option
@click.option(
    "--platform",
    "platforms",
    multiple=True,
    type=click.Choice(PLATFORM_CHOICES, case_sensitive=False),
    help="Restrict the matrix to these platforms (repeatable)",
)
@click.option("--workers", default=None, type=int, help="Number of parallel runs")
@click.option("--fail-fast/--no-fail-fast", default=None, help="Cancel pending runs after the first halted run (defaults to the workflow's setting)")
@click.option("--branch", default=None, help="Branch that triggered the run (defaults to CI env vars)")
@click.option("--workdir", default=None, help="Directory steps run in (defaults to $PIPEGATE_WORKDIR or .)")
@click.pass_context
def matrix(ctx, workflow, trigger, platforms, workers, fail_fast, branch, workdir):
    """Fan the workflow out across its platform matrix."""
    console = get_console()
    settings: Settings = ctx.obj["settings"]

    try:
        wf = resolve_workflow(workflow, settings)
        t = _trigger(settings, trigger)
        cells = list(dict.fromkeys(Platform.parse(p) for p in platforms)) or None
    except Exception as e:
        _fail(e, "Failed to load workflow")

    branch = branch or settings.branch
    if not wf.accepts(t, branch):
        console.print_info(f"Workflow '{wf.name}' is not triggered by {t.value} on branch {branch!r}")
        sys.exit(0)

    try:
        result = run_matrix(
            wf,
            t,
            platforms=cells,
            max_workers=workers or settings.max_workers,
            fail_fast=fail_fast,
            workdir=workdir or settings.workdir,
        )
    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(130)

    for run_result in result.runs.values():
        console.print_run_result(run_result)
    console.print_matrix_result(result)
    sys.exit(result.exit_code)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
