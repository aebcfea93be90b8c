"""Console output formatting utilities for pipegate."""

from __future__ import annotations

import sys
import threading
import traceback
from typing import Optional

from ..evaluator import Plan
from ..model import MatrixResult, RunResult, RunStatus, StepStatus


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False, quiet: bool = False):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
            quiet: If True, suppress per-step progress lines
        """
        self.debug = debug
        self.quiet = quiet
        # matrix runs print from worker threads
        self._lock = threading.Lock()

    def _emit(self, text: str, *, err: bool = False) -> None:
        with self._lock:
            print(text, file=sys.stderr if err else sys.stdout)

    def print_header(self, title: str) -> None:
        """Print a section header."""
        self._emit(f"\n{title}\n" + "-" * len(title))

    def print_run_started(self, workflow: str, platform: str, trigger: str, step_count: int) -> None:
        """Print run start information."""
        self._emit(
            "\nRUN STARTED\n"
            f"Workflow: {workflow}\n"
            f"Platform: {platform}\n"
            f"Trigger: {trigger}\n"
            f"Steps: {step_count}\n"
        )

    def print_step(self, platform: str, name: str) -> None:
        """Print step start message."""
        if not self.quiet:
            self._emit(f"[{platform}] ▶ {name}")

    def print_step_skipped(self, platform: str, name: str, reason: str) -> None:
        if not self.quiet:
            self._emit(f"[{platform}] ⏭ {name} ({reason})")

    def print_step_success(self, platform: str, name: str, duration: Optional[float] = None) -> None:
        if self.quiet:
            return
        suffix = f" ({duration:.1f}s)" if duration is not None else ""
        self._emit(f"[{platform}] ✓ {name}{suffix}")

    def print_failure(
        self,
        name: str,
        reason: str,
        exit_code: Optional[int] = None,
        log_tail: str = "",
    ) -> None:
        """
        Print step failure message.

        Args:
            name: Step name (prefixed with platform)
            reason: Failure reason/error message
            exit_code: Optional exit code
            log_tail: Last lines of captured output, secrets already masked
        """
        lines = [f"STEP FAILED: {name}"]
        if exit_code is not None:
            lines.append(f"Exit code: {exit_code}")
        if self.debug:
            lines.append(f"Error details: {reason}")
        else:
            # first line only outside debug mode
            lines.append(f"Error: {reason.splitlines()[0] if reason else 'Unknown error'}")
        if log_tail:
            lines.append("Output (tail):")
            lines.extend(f"  {line}" for line in log_tail.splitlines())
        self._emit("\n".join(lines), err=True)

    def print_plan(self, plan: Plan) -> None:
        """Print gate decisions for one matrix cell."""
        self.print_header(f"PLAN {plan.platform.matrix_label} / {plan.trigger.value}")
        for d in plan.decisions:
            mark = "✓" if d.runs else "⏭"
            self._emit(f"  {mark} {d.step.name} ({d.reason})")

    def print_run_result(self, result: RunResult) -> None:
        """Print final results summary of one run."""
        title = f"RESULTS {result.platform.matrix_label} / {result.trigger.value}"
        lines = ["", "=" * 40, title, "=" * 40]
        for o in result.outcomes:
            status = o.status.value.upper()
            if o.status is StepStatus.PENDING:
                status = "NOT RUN"
            lines.append(f"  {o.name}: {status}")
        lines.append(f"Run: {result.status.value.upper()} (exit code {result.exit_code})")
        self._emit("\n".join(lines))

    def print_matrix_result(self, result: MatrixResult) -> None:
        lines = ["", "=" * 40, f"MATRIX {result.trigger.value}", "=" * 40]
        for platform, run in result.runs.items():
            if run.status is RunStatus.CANCELLED:
                continue
            lines.append(f"  {platform.runner_label}: {run.status.value.upper()} (exit code {run.exit_code})")
        for platform in result.cancelled:
            lines.append(f"  {platform.runner_label}: CANCELLED")
        self._emit("\n".join(lines))

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        lines = [f"\nERROR: {title}", message]
        if details:
            lines.extend(f"  {detail}" for detail in details)
        if suggestion:
            lines.append(f"\n{suggestion}")
        self._emit("\n".join(lines), err=True)

    def print_exception(self, exc: BaseException) -> None:
        """Print the traceback of exc (only if debug mode enabled)."""
        if self.debug:
            tb = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
            self._emit(tb.rstrip(), err=True)

    def print_warning(self, message: str) -> None:
        self._emit(f"WARNING: {message}", err=True)

    def print_info(self, message: str) -> None:
        """Print informational message."""
        self._emit(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            self._emit(f"[DEBUG] {message}", err=True)


# Global console instance (will be initialized by CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
