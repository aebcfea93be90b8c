from .dsl import pipeline, platform_matrix, pwsh, sh
from .evaluator import evaluate
from .matrix import run_matrix
from .model import Platform, RunResult, RunStatus, Step, StepStatus, TriggerKind, Workflow
from .runner import run, run_workflow

__all__ = [
    "sh", "pwsh", "pipeline", "platform_matrix", "evaluate", "run", "run_workflow", "run_matrix",
    "Platform", "TriggerKind", "Step", "Workflow", "RunResult", "RunStatus", "StepStatus",
]
