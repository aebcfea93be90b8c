# pipegate_workflow.py
# Workflow for checking pipegate itself: lint, format and tests on every platform.
from __future__ import annotations
from pipegate import Platform, TriggerKind, pipeline, sh
from pipegate.guards import only_on, skip_on

def workflow():
    return pipeline(
        "pipegate",
        sh("Install package", "python -m pip install -e .[test]"),
        # Ruff only needs to run once; its output does not depend on the OS
        sh("Ruff check", "ruff check src tests", when=only_on(Platform.LINUX)),
        sh("Ruff format check", "ruff format --check src tests", when=only_on(Platform.LINUX)),
        sh(
            "Run pytest",
            "python -m pytest -q",
            when=skip_on(Platform.WINDOWS, TriggerKind.PULL_REQUEST),
        ),
        env={"PYTHONUNBUFFERED": "1"},
    )
