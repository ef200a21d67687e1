"""
Compensating-step runner for multi-statement writes.

PostgREST offers no transaction spanning several requests, so sequences such
as household provisioning record an undo callable for every completed step.
When a later step fails the recorded undos run newest first and the original
exception is re-raised to the caller.
"""

import logging
from typing import Any, Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)


class Saga:
    def __init__(self, name: str):
        self.name = name
        self._compensations: List[Tuple[str, Callable[[], Any]]] = []

    def step(self, label: str, action: Callable[[], Any], compensate: Optional[Callable[[Any], Any]] = None) -> Any:
        """Run ``action``; on success remember ``compensate(result)`` for rollback."""
        result = action()
        if compensate is not None:
            self._compensations.append((label, lambda: compensate(result)))
        return result

    def compensate(self) -> None:
        while self._compensations:
            label, undo = self._compensations.pop()
            try:
                undo()
                logger.info("%s: compensated step '%s'", self.name, label)
            except Exception as e:
                # Keep unwinding; the remaining steps still need their undo.
                logger.error("%s: compensation for step '%s' failed: %s", self.name, label, e)

    def __enter__(self) -> "Saga":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc is not None:
            logger.error("%s failed, rolling back %d step(s): %s", self.name, len(self._compensations), exc)
            self.compensate()
        else:
            self._compensations.clear()
        return False
