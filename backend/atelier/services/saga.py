# Overview: Sequential multi-step writes with reverse-order compensation.

"""
Saga runner.

The record store offers no multi-row transaction across the intake steps
(measurement, order, invoice), so each step commits on its own. When a
step fails, the compensations of the already-completed steps run in
reverse order and a SagaError reports exactly what happened.

A compensation that itself fails is logged and recorded as not
compensated; the remaining compensations still run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from ..errors import AtelierError

logger = logging.getLogger(__name__)


@dataclass
class SagaStep:
    name: str
    action: Callable[[dict], Any]
    compensate: Callable[[Any], Any] | None = None


@dataclass
class SagaResult:
    results: dict[str, Any] = field(default_factory=dict)
    completed: list[str] = field(default_factory=list)


class SagaError(AtelierError):
    """
    A saga step failed. Takes the HTTP status and code of the cause so
    callers see e.g. a 409 for a conflicting step.
    """

    def __init__(
        self,
        message: str,
        *,
        failed_step: str,
        completed: list[str],
        compensated: list[str],
        not_compensated: list[str] | None = None,
        cause: Exception | None = None,
    ):
        self.failed_step = failed_step
        self.completed = completed
        self.compensated = compensated
        self.not_compensated = not_compensated or []
        self.cause = cause
        if isinstance(cause, AtelierError):
            self.status_code = cause.status_code
            self.code = cause.code
        else:
            self.status_code = 502
            self.code = "UPSTREAM_ERROR"
        super().__init__(
            message,
            details={
                "failed_step": failed_step,
                "completed": completed,
                "compensated": compensated,
                "not_compensated": self.not_compensated,
            },
        )


class Saga:
    """
    Usage:
        saga = Saga("intake")
        saga.step("measurement", create_fn, delete_fn)
        saga.step("order", create_order_fn, delete_order_fn)
        result = saga.run()

    Each action receives the results of the previous steps keyed by name.
    """

    def __init__(self, name: str):
        self.name = name
        self.steps: list[SagaStep] = []

    def step(self, name: str, action, compensate=None) -> "Saga":
        self.steps.append(SagaStep(name=name, action=action, compensate=compensate))
        return self

    def run(self) -> SagaResult:
        result = SagaResult()
        done: list[tuple[SagaStep, Any]] = []

        for step in self.steps:
            try:
                value = step.action(dict(result.results))
            except Exception as exc:
                logger.warning("Saga %s failed at step %s: %s", self.name, step.name, exc)
                compensated, not_compensated = self._compensate(done)
                message = exc.message if isinstance(exc, AtelierError) else "Record store rejected the write"
                raise SagaError(
                    f"{self.name} failed at {step.name}: {message}",
                    failed_step=step.name,
                    completed=[s.name for s, _ in done],
                    compensated=compensated,
                    not_compensated=not_compensated,
                    cause=exc,
                ) from exc

            result.results[step.name] = value
            result.completed.append(step.name)
            done.append((step, value))

        return result

    def _compensate(self, done: list[tuple[SagaStep, Any]]) -> tuple[list[str], list[str]]:
        compensated: list[str] = []
        not_compensated: list[str] = []
        for step, value in reversed(done):
            if step.compensate is None:
                not_compensated.append(step.name)
                continue
            try:
                step.compensate(value)
            except Exception:
                logger.exception("Saga %s: compensation for %s failed", self.name, step.name)
                not_compensated.append(step.name)
            else:
                compensated.append(step.name)
        return compensated, not_compensated
