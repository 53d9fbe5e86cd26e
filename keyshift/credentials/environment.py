"""Process environment access as an injectable name -> value table."""

from __future__ import annotations

import os
from collections.abc import Iterator, MutableMapping
from typing import Protocol


class EnvironmentTable(Protocol):
    """Name -> value table the environment-backed store reads and writes."""

    def get(self, name: str) -> str | None: ...

    def set(self, name: str, value: str) -> None: ...

    def delete(self, name: str) -> bool: ...


class ProcessEnvironment:
    """The running process's environment (``os.environ``).

    Changes only affect the current process and child processes started
    after the change. Nothing is persisted across restarts.
    """

    def __init__(self, environ: MutableMapping[str, str] | None = None) -> None:
        self._environ = os.environ if environ is None else environ

    def get(self, name: str) -> str | None:
        return self._environ.get(name)

    def set(self, name: str, value: str) -> None:
        self._environ[name] = value

    def delete(self, name: str) -> bool:
        if name in self._environ:
            del self._environ[name]
            return True
        return False


class MappingEnvironment:
    """In-memory environment table.

    Useful in tests and for dry runs where the real process environment
    must not be touched.

    Example:
        >>> env = MappingEnvironment({"ANTHROPIC_BASE_URL": "https://api.z.ai/api/anthropic"})
        >>> env.get("ANTHROPIC_BASE_URL")
        'https://api.z.ai/api/anthropic'
    """

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(initial or {})

    def get(self, name: str) -> str | None:
        return self._values.get(name)

    def set(self, name: str, value: str) -> None:
        self._values[name] = value

    def delete(self, name: str) -> bool:
        return self._values.pop(name, None) is not None

    def __contains__(self, name: object) -> bool:
        return name in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def as_dict(self) -> dict[str, str]:
        return dict(self._values)
