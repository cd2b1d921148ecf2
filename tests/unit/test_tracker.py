"""
Tests for completion tracking and the snapshot editor beneath it.
"""

import asyncio

import pytest

from conftest import OWNER, run
from sweatsheet.core.programs.editor import ProgramEditor
from sweatsheet.core.programs.errors import NotFoundError, PersistenceError, ValidationError
from sweatsheet.core.programs.models import Program
from sweatsheet.core.programs.templates import build_phases
from sweatsheet.core.programs.tracker import CompletionTracker


class GatedGateway:
    """Holds the first update until the test opens the gate."""

    def __init__(self, inner) -> None:
        self.inner = inner
        self.gate = asyncio.Event()
        self.updates = 0

    async def update(self, *args, **kwargs):
        self.updates += 1
        if self.updates == 1:
            await self.gate.wait()
        return await self.inner.update(*args, **kwargs)


def mark(phase_index, block_index, exercise_index, completed=True):
    return lambda program: program.with_exercise(
        phase_index, block_index, exercise_index, completed=completed
    )


# ---------------------------------------------------------------------------
# Completion Tracker Tests
# ---------------------------------------------------------------------------

class TestCompletionTracker:

    def test_toggle_saves_completion(self, saved_program, gateway, builder):
        editor = ProgramEditor(saved_program, gateway)

        saved = run(CompletionTracker(editor).toggle(0, 0, 0, True))

        assert saved is True
        assert editor.current.get_exercise(0, 0, 0).completed is True
        reloaded = run(builder.get_program(OWNER, saved_program.id))
        assert reloaded.get_exercise(0, 0, 0).completed is True

    def test_toggle_back_off(self, saved_program, gateway):
        editor = ProgramEditor(saved_program, gateway)
        tracker = CompletionTracker(editor)

        run(tracker.toggle(0, 0, 0, True))
        run(tracker.toggle(0, 0, 0, False))

        assert editor.current.get_exercise(0, 0, 0).completed is False

    def test_failed_save_rolls_back(self, saved_program, gateway, connection):
        """A failed write restores the pre-toggle snapshot."""
        editor = ProgramEditor(saved_program, gateway)
        connection._fail_writes()

        saved = run(CompletionTracker(editor).toggle(0, 0, 0, True))

        assert saved is False
        assert editor.current.get_exercise(0, 0, 0).completed is False
        assert editor.current is saved_program

    def test_failure_keeps_earlier_saved_toggles(self, saved_program, gateway, connection):
        editor = ProgramEditor(saved_program, gateway)
        tracker = CompletionTracker(editor)
        run(tracker.toggle(0, 0, 0, True))

        connection._fail_writes()
        run(tracker.toggle(0, 0, 1, True))

        assert editor.current.get_exercise(0, 0, 0).completed is True
        assert editor.current.get_exercise(0, 0, 1).completed is False

    def test_toggle_on_deleted_program_raises_and_rolls_back(self, saved_program, gateway, builder):
        editor = ProgramEditor(saved_program, gateway)
        run(builder.delete_program(OWNER, saved_program.id))

        with pytest.raises(NotFoundError):
            run(CompletionTracker(editor).toggle(0, 0, 0, True))

        assert editor.current.get_exercise(0, 0, 0).completed is False

    def test_toggle_unknown_row(self, saved_program, gateway):
        editor = ProgramEditor(saved_program, gateway)
        with pytest.raises(NotFoundError):
            run(CompletionTracker(editor).toggle(0, 9, 0, True))

    def test_completion_percentage_follows_toggles(self, saved_program, gateway):
        """Four phases of 2 x 2 rows: two of sixteen is 12.5%, rounded up."""
        editor = ProgramEditor(saved_program, gateway)
        tracker = CompletionTracker(editor)

        run(tracker.toggle(0, 0, 0, True))
        run(tracker.toggle(3, 1, 1, True))

        assert editor.current.completion_percentage == 13


# ---------------------------------------------------------------------------
# Snapshot Editor Tests
# ---------------------------------------------------------------------------

class TestProgramEditor:

    def test_unsaved_program_cannot_be_edited(self, gateway):
        program = Program(owner_id=OWNER, athlete_id="a1", title="T", phases=build_phases(1, 1))
        with pytest.raises(ValidationError):
            ProgramEditor(program, gateway)

    def test_apply_advances_last_committed(self, saved_program, gateway):
        editor = ProgramEditor(saved_program, gateway)

        result = run(editor.apply(mark(0, 0, 0), action="test"))

        assert editor.last_committed is result
        assert editor.current is result
        assert result.updated_at >= saved_program.updated_at

    def test_apply_failure_reraises_after_rollback(self, saved_program, gateway, connection):
        editor = ProgramEditor(saved_program, gateway)
        connection._fail_writes()

        with pytest.raises(PersistenceError):
            run(editor.apply(mark(0, 0, 0), action="test"))

        assert editor.current is editor.last_committed is saved_program

    def test_write_to_deleted_program_rolls_back(self, saved_program, gateway, builder):
        """A program removed elsewhere fails the write, and current is restored."""
        editor = ProgramEditor(saved_program, gateway)
        run(builder.delete_program(OWNER, saved_program.id))

        with pytest.raises(NotFoundError):
            run(editor.apply(mark(0, 0, 0), action="test"))

        assert editor.current is saved_program
        assert editor.current.get_exercise(0, 0, 0).completed is False

    def test_invalidate_bumps_generation(self, saved_program, gateway):
        editor = ProgramEditor(saved_program, gateway)
        editor.invalidate()
        editor.invalidate()
        assert editor.generation == 2

    def test_overlapping_writes_last_to_finish_wins(self, saved_program, gateway):
        """
        Writes are not serialized.

        The first write is held back while a second one completes. When the
        first finally lands, the store holds its phases, which lack the
        second change, while the editor still shows both.
        """
        async def scenario():
            gated = GatedGateway(gateway)
            editor = ProgramEditor(saved_program, gated)

            first = asyncio.ensure_future(editor.apply(mark(0, 0, 0), action="first"))
            await asyncio.sleep(0)
            await editor.apply(mark(0, 0, 1), action="second")
            gated.gate.set()
            await first
            return editor

        editor = run(scenario())

        stored = run(gateway.get("programs", OWNER, saved_program.id))
        stored_rows = stored["phases"][0]["blocks"][0]["exercises"]
        assert stored_rows[0]["completed"] is True
        assert stored_rows[1]["completed"] is False

        assert editor.current.get_exercise(0, 0, 0).completed is True
        assert editor.current.get_exercise(0, 0, 1).completed is True
