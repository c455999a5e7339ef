"""
Saga — ordered steps with compensation.

Each step is a lazy action plus an optional compensator. Steps run in order;
on the first failure the compensators of every completed step run in
reverse and the failure is reported with rollback status.

    steps = [
        S.from_async("link_user", link_user, on_error=to_error, compensate=unlink_user),
        S.from_async("apply_stock", apply_stock, on_error=to_error, compensate=restore_stock),
    ]
    result = await S.run(steps)
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any

import structlog
from combinators import lift as L
from kungfu import Error, LazyCoroResult, Ok, Result

logger = structlog.get_logger(__name__)

# ═══════════════════════════════════════════════════════════════════════════════
# Types
# ═══════════════════════════════════════════════════════════════════════════════

type Compensator[T] = Callable[[T], Awaitable[None]]
"""Undo action; receives the value the step produced."""


@dataclass(frozen=True, slots=True)
class SagaStep[T, E]:
    name: str
    action: LazyCoroResult[T, E]
    compensate: Compensator[T] | None = None


@dataclass(frozen=True, slots=True)
class SagaResult:
    values: tuple[Any, ...]
    steps_executed: int
    compensators_recorded: int


@dataclass(frozen=True, slots=True)
class SagaError[E]:
    error: E
    step_failed: str
    compensators_run: int
    compensators_failed: int

    @property
    def rollback_complete(self) -> bool:
        return self.compensators_failed == 0


# ═══════════════════════════════════════════════════════════════════════════════
# Constructors
# ═══════════════════════════════════════════════════════════════════════════════

def step[T, E](
    name: str,
    action: LazyCoroResult[T, E],
    compensate: Compensator[T] | None = None,
) -> SagaStep[T, E]:
    return SagaStep(name=name, action=action, compensate=compensate)


def from_async[T, E](
    name: str,
    action: Callable[[], Awaitable[T]],
    on_error: Callable[[Exception], E],
    compensate: Compensator[T] | None = None,
) -> SagaStep[T, E]:
    """Step from a plain async callable; exceptions become ``Error(on_error(exc))``."""
    return SagaStep(
        name=name,
        action=L.catching_async(action, on_error=on_error),
        compensate=compensate,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# run()
# ═══════════════════════════════════════════════════════════════════════════════

type RecordedCompensator = tuple[str, Any, Compensator[Any]]


async def _compensate(recorded: list[RecordedCompensator]) -> tuple[int, int]:
    """Run compensators in reverse. Returns (run, failed)."""
    comp_run = 0
    comp_failed = 0
    for name, value, comp in reversed(recorded):
        try:
            await comp(value)
            comp_run += 1
        except Exception:
            logger.exception("saga_compensation_failed", step=name)
            comp_failed += 1
    return comp_run, comp_failed


async def run[E](steps: Sequence[SagaStep[Any, E]]) -> Result[SagaResult, SagaError[E]]:
    """Execute steps in order with automatic rollback on failure."""
    recorded: list[RecordedCompensator] = []
    values: list[Any] = []

    for saga_step in steps:
        result = await saga_step.action
        match result:
            case Ok(value):
                values.append(value)
                if saga_step.compensate is not None:
                    recorded.append((saga_step.name, value, saga_step.compensate))
            case Error(error):
                comp_run, comp_failed = await _compensate(recorded)
                logger.warning(
                    "saga_step_failed",
                    step=saga_step.name,
                    compensators_run=comp_run,
                    compensators_failed=comp_failed,
                )
                return Error(SagaError(
                    error=error,
                    step_failed=saga_step.name,
                    compensators_run=comp_run,
                    compensators_failed=comp_failed,
                ))

    return Ok(SagaResult(
        values=tuple(values),
        steps_executed=len(values),
        compensators_recorded=len(recorded),
    ))


__all__ = (
    "Compensator",
    "SagaStep",
    "SagaResult",
    "SagaError",
    "step",
    "from_async",
    "run",
)
