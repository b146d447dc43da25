"""Forward steps with registered compensations."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SagaStep:
    name: str
    action: Callable[[], Awaitable[Any]]
    compensation: Callable[[], Awaitable[Any]] | None = None


class Saga:
    """Runs steps in order and undoes completed ones in reverse on demand.

    Compensation is best-effort: a failing compensation is logged and the
    remaining ones still run.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._completed: list[SagaStep] = []

    @property
    def completed(self) -> list[str]:
        return [step.name for step in self._completed]

    async def run(self, step: SagaStep) -> Any:
        result = await step.action()
        self._completed.append(step)
        return result

    async def compensate(self) -> list[str]:
        """Undo completed steps, newest first.

        Returns the names of steps whose compensation failed.
        """
        failed: list[str] = []
        while self._completed:
            step = self._completed.pop()
            if step.compensation is None:
                continue
            logger.info("%s: compensating step %r", self.name, step.name)
            try:
                await step.compensation()
            except Exception:
                logger.exception(
                    "%s: compensation for step %r failed",
                    self.name,
                    step.name,
                )
                failed.append(step.name)
        return failed
