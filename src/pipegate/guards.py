# guards.py
"""
Guard predicates over (Platform, TriggerKind).

A guard is any callable `(platform, trigger) -> bool`. The helpers here
return `Guard` objects, which are such callables plus a readable description
(used when printing plans) and `&` / `|` / `~` composition:

    only_on(Platform.WINDOWS) & not_on(TriggerKind.PULL_REQUEST)
"""
from __future__ import annotations

from typing import Iterable

from .model import GuardFn, Platform, TriggerKind


class Guard:
    def __init__(self, fn: GuardFn, description: str):
        self.fn = fn
        self.description = description

    def __call__(self, platform: Platform, trigger: TriggerKind) -> bool:
        return bool(self.fn(platform, trigger))

    def __and__(self, other: GuardFn) -> Guard:
        o = _as_guard(other)
        return Guard(lambda p, t: self(p, t) and o(p, t), f"({self.description} and {o.description})")

    def __or__(self, other: GuardFn) -> Guard:
        o = _as_guard(other)
        return Guard(lambda p, t: self(p, t) or o(p, t), f"({self.description} or {o.description})")

    def __invert__(self) -> Guard:
        return Guard(lambda p, t: not self(p, t), f"not {self.description}")

    def __repr__(self) -> str:
        return f"Guard({self.description})"


def _as_guard(fn: GuardFn) -> Guard:
    if isinstance(fn, Guard):
        return fn
    return Guard(fn, getattr(fn, "__name__", "<guard>"))


def describe(fn: GuardFn) -> str:
    return _as_guard(fn).description


always = Guard(lambda p, t: True, "always")


def only_on(*platforms: Platform) -> Guard:
    allowed = frozenset(platforms)
    names = ", ".join(p.matrix_label for p in platforms)
    return Guard(lambda p, t: p in allowed, f"os in [{names}]")


def not_on_platform(*platforms: Platform) -> Guard:
    return ~only_on(*platforms)


def on(*triggers: TriggerKind) -> Guard:
    allowed = frozenset(triggers)
    names = ", ".join(t.value for t in triggers)
    return Guard(lambda p, t: t in allowed, f"event in [{names}]")


def not_on(*triggers: TriggerKind) -> Guard:
    return ~on(*triggers)


def skip_on(platform: Platform, trigger: TriggerKind) -> Guard:
    """Run everywhere except the single (platform, trigger) cell."""
    return not_on_platform(platform) | not_on(trigger)


def all_of(guards: Iterable[GuardFn]) -> Guard:
    result = always
    for g in guards:
        result = result & g
    return result
