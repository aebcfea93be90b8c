# evaluator.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Tuple

from .guards import describe
from .model import Platform, Step, TriggerKind, Workflow
from .secret_store import SecretStore, for_trigger

logger = logging.getLogger(__name__)


class Action(Enum):
    RUN = "run"
    SKIP = "skip"


@dataclass(frozen=True)
class Decision:
    step: Step
    action: Action
    reason: str

    @property
    def runs(self) -> bool:
        return self.action is Action.RUN


@dataclass(frozen=True)
class Plan:
    """
    Output of gate evaluation: what will run, what will be skipped, and why.
    Decisions are in step declaration order.
    """
    platform: Platform
    trigger: TriggerKind
    decisions: Tuple[Decision, ...]

    @property
    def selected(self) -> List[Step]:
        return [d.step for d in self.decisions if d.runs]

    @property
    def skipped(self) -> List[Step]:
        return [d.step for d in self.decisions if not d.runs]


def missing_secrets(step: Step, secrets: SecretStore) -> List[str]:
    return [name for name in step.secrets if not secrets.available(name)]


def secrets_available(step: Step, secrets: SecretStore) -> bool:
    return not missing_secrets(step, secrets)


def guard_passes(step: Step, platform: Platform, trigger: TriggerKind) -> bool:
    return bool(step.when(platform, trigger))


def decide(step: Step, platform: Platform, trigger: TriggerKind, secrets: SecretStore) -> Decision:
    missing = missing_secrets(step, secrets)
    if missing:
        return Decision(step, Action.SKIP, f"secret unavailable: {', '.join(missing)}")
    if not guard_passes(step, platform, trigger):
        return Decision(step, Action.SKIP, f"guard false: {describe(step.when)}")
    return Decision(step, Action.RUN, "eligible")


def evaluate(
    platform: Platform,
    trigger: TriggerKind,
    steps: Iterable[Step],
    secrets: SecretStore,
) -> Plan:
    """
    Decide, for one (platform, trigger) cell, which steps run.

    Pure: the same inputs always give the same plan. Secrets are looked up
    through the trigger-scoped view, so pull requests never see any.
    """
    secrets = for_trigger(secrets, trigger)
    steps = list(steps)
    names = [s.name for s in steps]
    if len(set(names)) != len(names):
        dupes = sorted({n for n in names if names.count(n) > 1})
        raise ValueError(f"Duplicate step names found: {dupes}")

    decisions = tuple(decide(s, platform, trigger, secrets) for s in steps)
    for d in decisions:
        logger.debug("%s/%s %s: %s (%s)", platform.value, trigger.value, d.step.name, d.action.value, d.reason)
    return Plan(platform=platform, trigger=trigger, decisions=decisions)


def missing_required_secrets(workflow: Workflow, trigger: TriggerKind, secrets: SecretStore) -> List[str]:
    """Secrets a workflow_call caller should pass but did not."""
    if trigger is not TriggerKind.WORKFLOW_CALL:
        return []
    return [name for name in workflow.required_secrets if not secrets.available(name)]
