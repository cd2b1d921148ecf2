"""
Cascading selection state for exercise rows.

Each exercise row of the phase being edited is filled in through a chain of
dependent dropdowns:

    category -> exercise -> sets -> reps per set -> weight per set

A later choice is only enabled once the one it depends on is made, and some
choices reset the ones downstream of them:
- choosing a category clears exercise, sets, reps and weight
- choosing sets clears reps and weight
- choosing an exercise clears nothing, so entered sets/reps/weight survive
  switching between exercises of the same category

Selections live in memory until commit() copies them onto the row's
Exercise and the editor writes the phases array. Choosing a category also
schedules a debounced commit when a CommitDebouncer is attached.
"""

import asyncio
import copy
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Hashable, Optional, Sequence

from .editor import ProgramEditor
from .errors import NotFoundError, SelectionError, ValidationError
from .models import ExerciseCategory, Program

logger = logging.getLogger(__name__)


SETS_OPTIONS: tuple[int, ...] = (1, 2, 3, 4, 5, 6)
REPS_OPTIONS: tuple[str, ...] = ("1", "3", "5", "8", "10", "12", "15", "20", "25", "30")
WEIGHT_OPTIONS: tuple[str, ...] = (
    "Max", "95%", "90%", "85%", "80%", "75%", "70%", "65%", "60%",
    "55%", "50%", "45%", "40%", "35%", "30%", "25%", "20%",
)

DEFAULT_COMMIT_DELAY_SECONDS = 0.5


@dataclass(frozen=True)
class RowKey:
    """Position of an exercise row within the phase being edited."""
    block_index: int
    exercise_index: int

    def __post_init__(self) -> None:
        if self.block_index < 0 or self.exercise_index < 0:
            raise ValidationError("Row indices cannot be negative")


class SelectionState(Enum):
    """How far along the dropdown chain a row is."""
    EMPTY = "empty"
    CATEGORY_CHOSEN = "category_chosen"
    EXERCISE_CHOSEN = "exercise_chosen"
    SETS_CHOSEN = "sets_chosen"
    REPS_CHOSEN = "reps_chosen"
    WEIGHT_CHOSEN = "weight_chosen"


@dataclass
class RowSelection:
    """
    Transient choices for one row.

    reps and weight are keyed by zero-based set index. No key is ever
    >= sets, and weight only has keys that reps has.
    """
    category_id: Optional[str] = None
    exercise_name: Optional[str] = None
    sets: Optional[int] = None
    reps: dict[int, str] = field(default_factory=dict)
    weight: dict[int, str] = field(default_factory=dict)

    @property
    def state(self) -> SelectionState:
        if self.weight:
            return SelectionState.WEIGHT_CHOSEN
        if self.reps:
            return SelectionState.REPS_CHOSEN
        if self.sets is not None:
            return SelectionState.SETS_CHOSEN
        if self.exercise_name is not None:
            return SelectionState.EXERCISE_CHOSEN
        if self.category_id is not None:
            return SelectionState.CATEGORY_CHOSEN
        return SelectionState.EMPTY

    def reps_enabled(self, set_index: int) -> bool:
        return self.sets is not None and 0 <= set_index < self.sets

    def weight_enabled(self, set_index: int) -> bool:
        return set_index in self.reps


class CommitDebouncer:
    """
    Coalesces rapid edits into one commit per key.

    Scheduling a key again before its timer fires restarts the timer.
    Must be used from inside a running event loop.
    """

    def __init__(self, delay_seconds: float = DEFAULT_COMMIT_DELAY_SECONDS) -> None:
        self._delay = delay_seconds
        self._pending: dict[Hashable, tuple[asyncio.TimerHandle, Callable[[], Awaitable]]] = {}
        self._running: set[asyncio.Task] = set()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def schedule(self, key: Hashable, commit: Callable[[], Awaitable]) -> None:
        self.cancel(key)
        loop = asyncio.get_running_loop()
        timer = loop.call_later(self._delay, self._fire, key)
        self._pending[key] = (timer, commit)

    def cancel(self, key: Hashable) -> None:
        entry = self._pending.pop(key, None)
        if entry is not None:
            entry[0].cancel()

    def cancel_all(self) -> None:
        for key in list(self._pending):
            self.cancel(key)

    async def flush(self) -> None:
        """Fire every pending commit now and wait for all running ones."""
        for key in list(self._pending):
            self._pending[key][0].cancel()
            self._fire(key)
        if self._running:
            await asyncio.gather(*self._running, return_exceptions=True)

    def _fire(self, key: Hashable) -> None:
        entry = self._pending.pop(key, None)
        if entry is None:
            return
        task = asyncio.ensure_future(entry[1]())
        self._running.add(task)
        task.add_done_callback(self._finished)

    def _finished(self, task: asyncio.Task) -> None:
        self._running.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "Debounced commit failed",
                extra={"error": str(error), "error_type": type(error).__name__}
            )


class SelectionStateMachine:
    """
    Row selections for one phase of an opened program.

    Category options come from the exercise library and are fixed for the
    lifetime of the machine; reopen the phase to pick up library edits.
    """

    def __init__(
        self,
        editor: ProgramEditor,
        phase_index: int,
        categories: Sequence[ExerciseCategory],
        debouncer: Optional[CommitDebouncer] = None,
    ) -> None:
        self._editor = editor
        self._phase_index = phase_index
        self._categories = {category.id: category for category in categories}
        self._debouncer = debouncer
        self._rows: dict[RowKey, RowSelection] = {}

    @property
    def phase_index(self) -> int:
        return self._phase_index

    @property
    def categories(self) -> list[ExerciseCategory]:
        return list(self._categories.values())

    def selection(self, row: RowKey) -> RowSelection:
        """A copy of the row's current selection."""
        return copy.deepcopy(self._rows.get(row, RowSelection()))

    def hydrate(self) -> None:
        """Rebuild selections from rows that already carry a category."""
        phase = self._editor.current.phases[self._phase_index]
        for block_index, block in enumerate(phase.blocks):
            for exercise_index, exercise in enumerate(block.exercises):
                if exercise.category_id is None:
                    continue
                reps = {
                    index: value
                    for index, value in exercise.reps_by_set.items()
                    if 0 <= index < exercise.sets
                }
                self._rows[RowKey(block_index, exercise_index)] = RowSelection(
                    category_id=exercise.category_id,
                    exercise_name=exercise.exercise_name,
                    sets=exercise.sets,
                    reps=reps,
                    weight={
                        index: value
                        for index, value in exercise.weight_by_set.items()
                        if index in reps
                    },
                )

    # -----------------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------------

    def exercise_options(self, row: RowKey) -> list[str]:
        category = self._categories.get(self._rows.get(row, RowSelection()).category_id)
        return list(category.exercises) if category else []

    def is_exercise_enabled(self, row: RowKey) -> bool:
        return self._rows.get(row, RowSelection()).category_id is not None

    def is_reps_enabled(self, row: RowKey, set_index: int) -> bool:
        return self._rows.get(row, RowSelection()).reps_enabled(set_index)

    def is_weight_enabled(self, row: RowKey, set_index: int) -> bool:
        return self._rows.get(row, RowSelection()).weight_enabled(set_index)

    # -----------------------------------------------------------------------
    # Transitions
    # -----------------------------------------------------------------------

    def set_category(self, row: RowKey, category_id: Optional[str]) -> RowSelection:
        """Choose a category (None clears the row). Resets everything downstream."""
        self._check_row(row)
        if category_id is not None and category_id not in self._categories:
            raise NotFoundError("exercise category", category_id)

        self._rows[row] = RowSelection(category_id=category_id)
        logger.debug(
            "Row category chosen",
            extra={"row": (row.block_index, row.exercise_index), "category_id": category_id}
        )

        self._schedule_commit(row)
        return self.selection(row)

    def set_exercise(self, row: RowKey, exercise_name: Optional[str]) -> RowSelection:
        """Choose an exercise from the row's category. Sets, reps and weight are kept."""
        selection = self._selection_for_update(row)
        if selection.category_id is None:
            raise SelectionError("Choose a category before choosing an exercise")

        category = self._categories.get(selection.category_id)
        if exercise_name is not None and (category is None or not category.has_exercise(exercise_name)):
            raise SelectionError(f"{exercise_name!r} is not in the chosen category")

        selection.exercise_name = exercise_name
        return self._store(row, selection)

    def set_sets(self, row: RowKey, sets: Optional[int]) -> RowSelection:
        """Choose the number of sets (None clears it). Resets reps and weight."""
        selection = self._selection_for_update(row)
        if sets is not None and sets not in SETS_OPTIONS:
            raise SelectionError(f"Sets must be between {SETS_OPTIONS[0]} and {SETS_OPTIONS[-1]}")

        selection.sets = sets
        selection.reps = {}
        selection.weight = {}
        return self._store(row, selection)

    def set_reps(self, row: RowKey, set_index: int, value: Optional[str]) -> RowSelection:
        """Choose reps for one set (None clears it, and that set's weight)."""
        selection = self._selection_for_update(row)
        if not selection.reps_enabled(set_index):
            raise SelectionError(f"Reps for set {set_index} are not enabled")

        if value is None:
            selection.reps.pop(set_index, None)
            selection.weight.pop(set_index, None)
        elif value not in REPS_OPTIONS:
            raise SelectionError(f"{value!r} is not a valid reps option")
        else:
            selection.reps[set_index] = value
        return self._store(row, selection)

    def set_weight(self, row: RowKey, set_index: int, value: Optional[str]) -> RowSelection:
        """Choose weight for one set. Only enabled once that set has reps."""
        selection = self._selection_for_update(row)
        if not selection.weight_enabled(set_index):
            raise SelectionError(f"Weight for set {set_index} is not enabled")

        if value is None:
            selection.weight.pop(set_index, None)
        elif value not in WEIGHT_OPTIONS:
            raise SelectionError(f"{value!r} is not a valid weight option")
        else:
            selection.weight[set_index] = value
        return self._store(row, selection)

    async def commit(self, row: RowKey) -> Program:
        """
        Copy the row's selection onto its Exercise and save the phases.

        Category and exercise names are copied by value. A row whose category
        is no longer among the options keeps the name it already captured. A
        row without any selection is left alone.
        """
        selection = self._rows.get(row)
        if selection is None:
            return self._editor.current

        changes = {
            "category_id": selection.category_id,
            "category_name": self._category_name(row, selection.category_id),
            "exercise_name": selection.exercise_name,
            "reps_by_set": dict(selection.reps),
            "weight_by_set": dict(selection.weight),
        }
        if selection.sets is not None:
            changes["sets"] = selection.sets

        return await self._editor.apply(
            lambda program: program.with_exercise(
                self._phase_index, row.block_index, row.exercise_index, **changes
            ),
            action="commit_selection",
        )

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _check_row(self, row: RowKey) -> None:
        self._editor.current.get_exercise(self._phase_index, row.block_index, row.exercise_index)

    def _selection_for_update(self, row: RowKey) -> RowSelection:
        """A working copy of the row's selection; stored only by _store()."""
        self._check_row(row)
        return copy.deepcopy(self._rows.get(row, RowSelection()))

    def _store(self, row: RowKey, selection: RowSelection) -> RowSelection:
        self._rows[row] = selection
        return self.selection(row)

    def _category_name(self, row: RowKey, category_id: Optional[str]) -> Optional[str]:
        category = self._categories.get(category_id)
        if category is not None:
            return category.name
        exercise = self._editor.current.get_exercise(
            self._phase_index, row.block_index, row.exercise_index
        )
        if category_id is not None and exercise.category_id == category_id:
            return exercise.category_name
        return None

    def _schedule_commit(self, row: RowKey) -> None:
        if self._debouncer is None:
            return

        generation = self._editor.generation

        async def commit_if_current() -> None:
            if self._editor.generation != generation:
                logger.info(
                    "Dropping selection commit after navigation",
                    extra={"row": (row.block_index, row.exercise_index)}
                )
                return
            await self.commit(row)

        self._debouncer.schedule((self._phase_index, row), commit_if_current)
