"""Two-branch result values used between pipeline components."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Ok[T]:
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class Err[E]:
    error: E

    @property
    def ok(self) -> bool:
        return False


type Result[T, E] = Ok[T] | Err[E]


__all__ = ["Err", "Ok", "Result"]
