"""Errors as values.

Each pipeline stage hands back ``Ok(value)`` or ``Err(error)``; the
orchestrator inspects the variant to abort, degrade or roll back::

    staged = stager.stage(argument)
    if isinstance(staged, Err):
        return staged
    package_dir = staged.value.package_dir
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

U = TypeVar("U")

__all__ = ["Ok", "Err", "Result"]


@dataclass(frozen=True, slots=True)
class Ok[T]:
    value: T

    def unwrap(self) -> T:
        return self.value

    def map(self, f: Callable[[T], U]) -> Ok[U]:
        return Ok(f(self.value))

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err[E]:
    error: E

    def unwrap(self) -> None:
        """Raise ValueError; an Err reaching unwrap() is a bug in the caller."""
        raise ValueError(f"called unwrap on Err: {self.error}")

    def map(self, f: Callable[[object], U]) -> Err[E]:
        return self

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


type Result[T, E] = Ok[T] | Err[E]
