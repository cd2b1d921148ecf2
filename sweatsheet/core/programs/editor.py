"""
Optimistic editing of a loaded program.

The editor holds two snapshots of one program:
- current: what the user sees, including writes still in flight
- last_committed: the last state the gateway confirmed

Each mutation replaces current, writes the entire phases array, and on
failure swaps current back to last_committed. Programs share structure
between versions (see Program.with_exercise), so a rollback is a single
reference swap.

There is no guard against overlapping writes. If two mutations are in
flight, whichever write finishes last is what the store keeps, and a failure
of either rolls current back past the other one.
"""

import logging
from dataclasses import replace
from typing import Callable

from .documents import phases_to_documents, program_from_document
from .errors import ValidationError
from .gateway import PROGRAMS, PersistenceGateway
from .models import Program

logger = logging.getLogger(__name__)


Mutation = Callable[[Program], Program]


class ProgramEditor:
    """Snapshot pair for one opened program."""

    def __init__(self, program: Program, gateway: PersistenceGateway) -> None:
        if not program.id:
            raise ValidationError("Only saved programs can be edited")
        self._gateway = gateway
        self._current = program
        self._last_committed = program
        self._generation = 0

    @property
    def current(self) -> Program:
        return self._current

    @property
    def last_committed(self) -> Program:
        return self._last_committed

    @property
    def generation(self) -> int:
        """Bumped by invalidate(); lets deferred work detect navigation."""
        return self._generation

    def invalidate(self) -> None:
        self._generation += 1

    def rollback(self) -> Program:
        self._current = self._last_committed
        return self._current

    async def apply(self, mutation: Mutation, action: str) -> Program:
        """
        Apply a mutation optimistically and persist the whole phases array.

        Any failed write rolls current back to last_committed before the
        error propagates: PersistenceError for store failures, NotFoundError
        when the program no longer exists.
        """
        proposed = mutation(self._current)
        self._current = proposed

        try:
            doc = await self._gateway.update(
                PROGRAMS,
                proposed.owner_id,
                proposed.id,
                {"phases": phases_to_documents(proposed.phases)},
            )
        except Exception as e:
            logger.warning(
                "Program write failed, rolling back",
                extra={
                    "program_id": proposed.id,
                    "action": action,
                    "error": str(e),
                    "error_type": type(e).__name__,
                }
            )
            self.rollback()
            raise

        committed = replace(proposed, updated_at=program_from_document(doc).updated_at)
        self._last_committed = committed
        if self._current is proposed:
            self._current = committed

        logger.debug(
            "Program write committed",
            extra={"program_id": proposed.id, "action": action}
        )
        return self._current
