"""
Program builder workspace: the per-user editing session.

The workspace is always in one of four modes, and the mode decides which
operations are available:

    GRID              list, open and delete programs
    DETAIL            edit rows of the opened program, toggle completion
    CREATE_ASSIGN     create a blank program or assign a template
    EXERCISE_LIBRARY  manage exercise categories

It also owns the navigation state that is never stored on a Program: which
program is open and which phase (1-4) is shown. Navigating away from a phase
first flushes pending debounced commits, then invalidates the editor
generation so any commit that still fires late is dropped instead of being
written against the wrong phase or program.
"""

import logging
from enum import Enum
from typing import Optional

from .builder import ProgramBuilder
from .editor import ProgramEditor
from .errors import IllegalModeError, PartialLoadError, PersistenceError, ValidationError
from .gateway import PersistenceGateway
from .library import ExerciseLibrary
from .models import PHASE_COUNT, ExerciseCategory, Program, ProgramStatus
from .selection import (
    DEFAULT_COMMIT_DELAY_SECONDS,
    CommitDebouncer,
    RowKey,
    SelectionStateMachine,
)
from .tracker import CompletionTracker

logger = logging.getLogger(__name__)


class BuilderMode(Enum):
    GRID = "grid"
    DETAIL = "detail"
    CREATE_ASSIGN = "create-assign"
    EXERCISE_LIBRARY = "exercise-library"


class ProgramWorkspace:
    """Mode-gated facade over the builder, library, selection and tracker."""

    def __init__(
        self,
        owner_id: str,
        user_id: str,
        gateway: PersistenceGateway,
        builder: ProgramBuilder,
        library: ExerciseLibrary,
        commit_delay_seconds: float = DEFAULT_COMMIT_DELAY_SECONDS,
    ) -> None:
        self.owner_id = owner_id
        self.user_id = user_id
        self._gateway = gateway
        self._builder = builder
        self._library = library
        self._debouncer = CommitDebouncer(commit_delay_seconds)

        self._mode = BuilderMode.GRID
        self._editor: Optional[ProgramEditor] = None
        self._selection: Optional[SelectionStateMachine] = None
        self._tracker: Optional[CompletionTracker] = None
        self._categories: list[ExerciseCategory] = []
        self._current_phase = 1

        self.load_errors: list[PartialLoadError] = []

    # -----------------------------------------------------------------------
    # State
    # -----------------------------------------------------------------------

    @property
    def mode(self) -> BuilderMode:
        return self._mode

    @property
    def current_phase(self) -> int:
        return self._current_phase

    @property
    def program(self) -> Optional[Program]:
        return self._editor.current if self._editor else None

    @property
    def selection(self) -> SelectionStateMachine:
        self._require_mode(BuilderMode.DETAIL)
        return self._selection

    @property
    def pending_commits(self) -> int:
        return self._debouncer.pending_count

    # -----------------------------------------------------------------------
    # Navigation
    # -----------------------------------------------------------------------

    async def show_grid(self) -> None:
        await self._close_program()
        self._mode = BuilderMode.GRID

    async def show_create_assign(self) -> None:
        await self._close_program()
        self._mode = BuilderMode.CREATE_ASSIGN

    async def show_exercise_library(self) -> list[ExerciseCategory]:
        await self._close_program()
        self._mode = BuilderMode.EXERCISE_LIBRARY
        return await self._library.list_categories(self.owner_id)

    async def open_program(self, program_id: str) -> Program:
        """
        Open a program in DETAIL mode on its first phase.

        Pending commits of the previously opened program are flushed before
        the program is read, so reopening the same program sees them.
        """
        self._require_mode(BuilderMode.GRID, BuilderMode.DETAIL)

        await self._close_program()
        self._mode = BuilderMode.GRID
        program = await self._builder.get_program(self.owner_id, program_id)

        self._editor = ProgramEditor(program, self._gateway)
        self._tracker = CompletionTracker(self._editor)
        self._categories = await self._load_categories()
        self._current_phase = 1
        self._open_phase()
        self._mode = BuilderMode.DETAIL

        logger.info(
            "Opened program",
            extra={"owner_id": self.owner_id, "program_id": program_id}
        )
        return program

    async def set_phase(self, phase_number: int) -> None:
        """Show another phase (1-4) of the opened program."""
        self._require_mode(BuilderMode.DETAIL)
        if not 1 <= phase_number <= PHASE_COUNT:
            raise ValidationError(f"Phase must be between 1 and {PHASE_COUNT}")

        await self._leave_phase()
        self._current_phase = phase_number
        self._open_phase()

    # -----------------------------------------------------------------------
    # Grid
    # -----------------------------------------------------------------------

    async def list_programs(self, status: Optional[ProgramStatus] = None) -> list[Program]:
        self._require_mode(BuilderMode.GRID, BuilderMode.DETAIL)
        return await self._builder.list_programs(owner_id=self.owner_id, status=status)

    async def delete_program(self, program_id: str) -> None:
        self._require_mode(BuilderMode.GRID, BuilderMode.DETAIL)
        await self._builder.delete_program(self.owner_id, program_id)

        if self.program is not None and self.program.id == program_id:
            await self.show_grid()

    # -----------------------------------------------------------------------
    # Create / assign
    # -----------------------------------------------------------------------

    async def create_new(
        self,
        athlete_id: str,
        title: str,
        phase_count: int = PHASE_COUNT,
    ) -> Program:
        self._require_mode(BuilderMode.CREATE_ASSIGN)
        program = await self._builder.create_new(
            self.owner_id, athlete_id, title, created_by=self.user_id, phase_count=phase_count
        )
        self._mode = BuilderMode.GRID
        return program

    async def assign_existing(
        self,
        athlete_id: str,
        template_ref: str,
        customization_notes: Optional[str] = None,
    ) -> Program:
        self._require_mode(BuilderMode.CREATE_ASSIGN)
        program = await self._builder.assign_existing(
            self.owner_id,
            athlete_id,
            template_ref,
            created_by=self.user_id,
            customization_notes=customization_notes,
        )
        self._mode = BuilderMode.GRID
        return program

    # -----------------------------------------------------------------------
    # Exercise library
    # -----------------------------------------------------------------------

    async def create_category(self, name: str) -> ExerciseCategory:
        self._require_mode(BuilderMode.EXERCISE_LIBRARY)
        return await self._library.create_category(self.owner_id, name, created_by=self.user_id)

    async def add_exercise(self, category_id: str, name: str) -> ExerciseCategory:
        self._require_mode(BuilderMode.EXERCISE_LIBRARY)
        return await self._library.add_exercise(self.owner_id, category_id, name)

    async def delete_exercise(self, category_id: str, name: str) -> ExerciseCategory:
        self._require_mode(BuilderMode.EXERCISE_LIBRARY)
        return await self._library.delete_exercise(self.owner_id, category_id, name)

    async def delete_category(self, category_id: str) -> None:
        self._require_mode(BuilderMode.EXERCISE_LIBRARY)
        await self._library.delete_category(self.owner_id, category_id)

    # -----------------------------------------------------------------------
    # Detail
    # -----------------------------------------------------------------------

    async def save_row(self, block_index: int, exercise_index: int) -> Program:
        """Explicit save of one row, skipping the debounce."""
        self._require_mode(BuilderMode.DETAIL)
        row = RowKey(block_index, exercise_index)
        self._debouncer.cancel((self._selection.phase_index, row))
        return await self._selection.commit(row)

    async def toggle_completion(
        self,
        block_index: int,
        exercise_index: int,
        completed: bool,
    ) -> bool:
        self._require_mode(BuilderMode.DETAIL)
        return await self._tracker.toggle(
            self._current_phase - 1, block_index, exercise_index, completed
        )

    async def flush_pending(self) -> None:
        await self._debouncer.flush()

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _require_mode(self, *modes: BuilderMode) -> None:
        if self._mode not in modes:
            allowed = ", ".join(mode.value for mode in modes)
            raise IllegalModeError(
                f"Not available in {self._mode.value} mode (needs {allowed})"
            )

    def _open_phase(self) -> None:
        self._selection = SelectionStateMachine(
            self._editor,
            self._current_phase - 1,
            self._categories,
            debouncer=self._debouncer,
        )
        self._selection.hydrate()

    async def _leave_phase(self) -> None:
        await self._debouncer.flush()
        self._debouncer.cancel_all()
        if self._editor is not None:
            self._editor.invalidate()

    async def _close_program(self) -> None:
        if self._editor is None:
            return
        await self._leave_phase()
        self._editor = None
        self._selection = None
        self._tracker = None

    async def _load_categories(self) -> list[ExerciseCategory]:
        try:
            return await self._library.list_categories(self.owner_id)
        except PersistenceError as e:
            error = PartialLoadError("exercise categories", e)
            logger.warning(
                "Continuing without exercise categories",
                extra={"owner_id": self.owner_id, "error": str(e)}
            )
            self.load_errors.append(error)
            return []
