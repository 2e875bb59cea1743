"""
Outcome -- explicit success/failure result for component boundaries.

Responsibility:
    Components (line-item aggregator, lifecycle state machine, client
    aggregator) never raise a BillingKernelError across their boundary.
    They return an ``Outcome`` carrying either a value or a typed error, so
    the caller decides whether to retry or surface the failure.

Architecture position:
    Kernel > Domain -- pure value object, zero I/O.

Invariants enforced:
    - Exactly one of ``value`` / ``error`` is meaningful: ``success`` is True
      iff ``error`` is None.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

from billing_kernel.exceptions import BillingKernelError

T = TypeVar("T")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of a billing operation: a value, or the error that prevented it."""

    value: T | None = None
    error: BillingKernelError | None = None

    @classmethod
    def ok(cls, value: T) -> Outcome[T]:
        return cls(value=value)

    @classmethod
    def fail(cls, error: BillingKernelError) -> Outcome[T]:
        if error is None:
            raise ValueError("Outcome.fail requires an error")
        return cls(error=error)

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def error_code(self) -> str | None:
        return self.error.code if self.error is not None else None

    def unwrap(self) -> T:
        """Return the value, or raise the carried error.

        Intended for callers (and tests) that have decided a failure is
        exceptional at their level.
        """
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]
