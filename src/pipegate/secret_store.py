# secret_store.py
from __future__ import annotations

import os
from typing import Iterable, Mapping, Optional

from .model import TriggerKind

SECRET_ENV_PREFIX = "PIPEGATE_SECRET_"
MASK = "***"


class SecretStore:
    """Read-only view of the secrets available to a run."""

    def lookup(self, name: str) -> Optional[str]:
        raise NotImplementedError

    def available(self, name: str) -> bool:
        # an empty value counts as absent (that is what CI runners inject)
        return bool(self.lookup(name))

    def values(self, names: Iterable[str]) -> list[str]:
        out = []
        for n in names:
            v = self.lookup(n)
            if v:
                out.append(v)
        return out


class MappingSecretStore(SecretStore):
    def __init__(self, secrets: Mapping[str, str] | None = None):
        self._secrets = dict(secrets or {})

    def lookup(self, name: str) -> Optional[str]:
        return self._secrets.get(name)

    def __repr__(self) -> str:
        # names only, never values
        return f"MappingSecretStore({sorted(self._secrets)})"


class EnvSecretStore(SecretStore):
    """
    Secrets from the process environment.

    NAME resolves to $PIPEGATE_SECRET_NAME, then to $NAME.
    """

    def __init__(self, environ: Mapping[str, str] | None = None, prefix: str = SECRET_ENV_PREFIX):
        self._environ = os.environ if environ is None else environ
        self.prefix = prefix

    def lookup(self, name: str) -> Optional[str]:
        value = self._environ.get(self.prefix + name)
        if value is None:
            value = self._environ.get(name)
        return value


class NoSecrets(SecretStore):
    def lookup(self, name: str) -> Optional[str]:
        return None


def for_trigger(store: SecretStore, trigger: TriggerKind) -> SecretStore:
    """
    Scope a store to a trigger context.

    Pull requests are treated as untrusted (they may come from forks),
    so they see no secrets at all.
    """
    if trigger is TriggerKind.PULL_REQUEST:
        return NoSecrets()
    return store


def mask(text: str, secret_values: Iterable[str]) -> str:
    # longest first so a secret containing another is fully hidden
    for value in sorted(set(secret_values), key=len, reverse=True):
        if value:
            text = text.replace(value, MASK)
    return text
