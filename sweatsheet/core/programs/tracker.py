"""
Exercise completion tracking.

Ticking an exercise off shows up immediately and is saved in the
background. A failed save is recovered here rather than surfaced: the row
goes back to how it was before the toggle.
"""

import logging

from .editor import ProgramEditor
from .errors import PersistenceError

logger = logging.getLogger(__name__)


class CompletionTracker:
    """Toggles the completed flag of exercise rows in an opened program."""

    def __init__(self, editor: ProgramEditor) -> None:
        self._editor = editor

    async def toggle(
        self,
        phase_index: int,
        block_index: int,
        exercise_index: int,
        completed: bool,
    ) -> bool:
        """
        Set an exercise's completed flag and save the program.

        Returns True if the change was saved. On a persistence failure the
        program is rolled back to its pre-toggle snapshot and False is
        returned.
        """
        try:
            await self._editor.apply(
                lambda program: program.with_exercise(
                    phase_index, block_index, exercise_index, completed=completed
                ),
                action="toggle_completion",
            )
        except PersistenceError as e:
            logger.error(
                "Failed to save exercise completion",
                extra={
                    "program_id": self._editor.current.id,
                    "row": (phase_index, block_index, exercise_index),
                    "error": str(e),
                }
            )
            return False

        logger.debug(
            "Exercise completion saved",
            extra={
                "program_id": self._editor.current.id,
                "row": (phase_index, block_index, exercise_index),
                "completed": completed,
            }
        )
        return True
