"""Compensating rollback for multi-step operations spanning storage and the PBX.

A ``Saga`` records each completed step together with the callable that undoes
it. When a later step fails the caller invokes ``compensate()``, which walks
the completed steps newest-first. An undo that raises is logged and skipped so
the remaining undos still run; the names of failed undos are returned for the
caller's error metadata.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from packages.pbx_shared.logging import fields, log_context

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class SagaStep:
    """One completed step and its undo action."""

    name: str
    undo: Callable[[], None]


@dataclass(frozen=True)
class CompensationReport:
    """Outcome of one ``compensate()`` pass."""

    undone: tuple[str, ...]
    failed: tuple[str, ...]

    @property
    def clean(self) -> bool:
        return not self.failed


@dataclass
class Saga:
    """Ordered list of completed steps for one logical operation."""

    name: str
    _steps: list[SagaStep] = field(default_factory=list)
    _compensated: bool = False

    def record(self, name: str, undo: Callable[[], None]) -> None:
        """Register a step that has already succeeded."""
        if self._compensated:
            raise RuntimeError(f"saga {self.name} was already compensated")
        self._steps.append(SagaStep(name=name, undo=undo))

    @property
    def completed(self) -> tuple[str, ...]:
        return tuple(step.name for step in self._steps)

    def compensate(self) -> CompensationReport:
        """Run every recorded undo in reverse order exactly once."""
        if self._compensated:
            return CompensationReport(undone=(), failed=())
        self._compensated = True

        undone: list[str] = []
        failed: list[str] = []
        for step in reversed(self._steps):
            try:
                step.undo()
            except Exception:  # noqa: BLE001
                failed.append(step.name)
                with log_context({fields.SAGA: self.name, fields.SAGA_STEP: step.name}):
                    _LOGGER.exception("Saga undo failed; continuing compensation")
                continue
            undone.append(step.name)

        with log_context(
            {
                fields.SAGA: self.name,
                "undone": ",".join(undone),
                "failed": ",".join(failed),
            }
        ):
            _LOGGER.warning("Saga compensated")
        return CompensationReport(undone=tuple(undone), failed=tuple(failed))
