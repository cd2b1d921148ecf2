"""
Tests for the cascading row selection state machine and its debouncer.
"""

import asyncio

import pytest

from conftest import OWNER, run
from sweatsheet.core.programs.editor import ProgramEditor
from sweatsheet.core.programs.errors import NotFoundError, SelectionError, ValidationError
from sweatsheet.core.programs.selection import (
    CommitDebouncer,
    RowKey,
    SelectionState,
    SelectionStateMachine,
)


ROW = RowKey(0, 1)


class CountingGateway:
    """Wraps a gateway and counts update calls."""

    def __init__(self, inner) -> None:
        self.inner = inner
        self.updates = 0

    async def update(self, *args, **kwargs):
        self.updates += 1
        return await self.inner.update(*args, **kwargs)

    def __getattr__(self, name):
        return getattr(self.inner, name)


@pytest.fixture
def editor(saved_program, gateway) -> ProgramEditor:
    return ProgramEditor(saved_program, gateway)


@pytest.fixture
def machine(editor, strength_category) -> SelectionStateMachine:
    return SelectionStateMachine(editor, 0, [strength_category])


def stored_exercise(gateway, program_id, phase_index, block_index, exercise_index):
    doc = run(gateway.get("programs", OWNER, program_id))
    return doc["phases"][phase_index]["blocks"][block_index]["exercises"][exercise_index]


# ---------------------------------------------------------------------------
# Row Key Tests
# ---------------------------------------------------------------------------

class TestRowKey:

    def test_keys_are_structured(self):
        """(1, 11) and (11, 1) are different rows."""
        assert RowKey(1, 11) != RowKey(11, 1)
        assert len({RowKey(1, 11), RowKey(11, 1), RowKey(1, 11)}) == 2

    def test_negative_indices_rejected(self):
        with pytest.raises(ValidationError):
            RowKey(-1, 0)


# ---------------------------------------------------------------------------
# Transition Tests
# ---------------------------------------------------------------------------

class TestSelectionTransitions:
    """Tests for the dropdown chain."""

    def test_new_row_is_empty_and_only_category_is_enabled(self, machine):
        assert machine.selection(ROW).state == SelectionState.EMPTY
        assert not machine.is_exercise_enabled(ROW)
        assert not machine.is_reps_enabled(ROW, 0)
        assert machine.exercise_options(ROW) == []

    def test_category_enables_exercise_choice(self, machine, strength_category):
        selection = machine.set_category(ROW, strength_category.id)

        assert selection.state == SelectionState.CATEGORY_CHOSEN
        assert machine.is_exercise_enabled(ROW)
        assert machine.exercise_options(ROW) == ["Bench Press", "Squats"]

    def test_sets_enable_reps_and_reps_enable_weight_per_set(self, machine, strength_category):
        """Squats x 3 sets: reps start empty, reps[1] enables weight[1] only."""
        machine.set_category(ROW, strength_category.id)
        machine.set_exercise(ROW, "Squats")
        selection = machine.set_sets(ROW, 3)

        assert selection.reps == {}
        assert [machine.is_reps_enabled(ROW, i) for i in range(4)] == [True, True, True, False]

        selection = machine.set_reps(ROW, 1, "10")

        assert selection.state == SelectionState.REPS_CHOSEN
        assert [machine.is_weight_enabled(ROW, i) for i in range(3)] == [False, True, False]

    def test_weight_completes_the_chain(self, machine, strength_category):
        machine.set_category(ROW, strength_category.id)
        machine.set_exercise(ROW, "Squats")
        machine.set_sets(ROW, 2)
        machine.set_reps(ROW, 0, "8")

        selection = machine.set_weight(ROW, 0, "75%")

        assert selection.state == SelectionState.WEIGHT_CHOSEN
        assert selection.weight == {0: "75%"}

    def test_set_category_always_resets_downstream(self, machine, strength_category):
        machine.set_category(ROW, strength_category.id)
        machine.set_exercise(ROW, "Squats")
        machine.set_sets(ROW, 3)
        machine.set_reps(ROW, 0, "5")
        machine.set_weight(ROW, 0, "Max")

        selection = machine.set_category(ROW, strength_category.id)

        assert selection.exercise_name is None
        assert selection.sets is None
        assert selection.reps == {}
        assert selection.weight == {}

    def test_set_category_none_clears_row(self, machine, strength_category):
        machine.set_category(ROW, strength_category.id)
        assert machine.set_category(ROW, None).state == SelectionState.EMPTY

    def test_set_exercise_keeps_sets_reps_and_weight(self, machine, strength_category):
        """Switching exercise within a category keeps what was entered."""
        machine.set_category(ROW, strength_category.id)
        machine.set_exercise(ROW, "Squats")
        machine.set_sets(ROW, 3)
        machine.set_reps(ROW, 0, "5")
        machine.set_weight(ROW, 0, "90%")

        selection = machine.set_exercise(ROW, "Bench Press")

        assert selection.exercise_name == "Bench Press"
        assert selection.sets == 3
        assert selection.reps == {0: "5"}
        assert selection.weight == {0: "90%"}

    def test_set_sets_resets_reps_and_weight(self, machine, strength_category):
        machine.set_category(ROW, strength_category.id)
        machine.set_sets(ROW, 3)
        machine.set_reps(ROW, 2, "12")
        machine.set_weight(ROW, 2, "60%")

        selection = machine.set_sets(ROW, 4)

        assert selection.reps == {}
        assert selection.weight == {}

    def test_clearing_reps_clears_that_sets_weight(self, machine, strength_category):
        machine.set_category(ROW, strength_category.id)
        machine.set_sets(ROW, 2)
        machine.set_reps(ROW, 0, "8")
        machine.set_reps(ROW, 1, "8")
        machine.set_weight(ROW, 0, "80%")
        machine.set_weight(ROW, 1, "80%")

        selection = machine.set_reps(ROW, 0, None)

        assert selection.reps == {1: "8"}
        assert selection.weight == {1: "80%"}

    def test_selection_is_a_copy(self, machine, strength_category):
        machine.set_category(ROW, strength_category.id)
        machine.selection(ROW).exercise_name = "Squats"
        assert machine.selection(ROW).exercise_name is None

    def test_rows_are_independent(self, machine, strength_category):
        machine.set_category(ROW, strength_category.id)
        assert machine.selection(RowKey(1, 0)).state == SelectionState.EMPTY


class TestSelectionGuards:
    """Transitions that are not enabled yet are rejected."""

    def test_exercise_requires_category(self, machine):
        with pytest.raises(SelectionError, match="category"):
            machine.set_exercise(ROW, "Squats")

    def test_exercise_must_be_in_category(self, machine, strength_category):
        machine.set_category(ROW, strength_category.id)
        with pytest.raises(SelectionError):
            machine.set_exercise(ROW, "Running")

    def test_unknown_category(self, machine):
        with pytest.raises(NotFoundError):
            machine.set_category(ROW, "missing")

    def test_reps_require_sets(self, machine, strength_category):
        machine.set_category(ROW, strength_category.id)
        with pytest.raises(SelectionError):
            machine.set_reps(ROW, 0, "10")

    def test_reps_index_must_be_below_sets(self, machine, strength_category):
        machine.set_category(ROW, strength_category.id)
        machine.set_sets(ROW, 2)
        with pytest.raises(SelectionError):
            machine.set_reps(ROW, 2, "10")

    def test_weight_requires_reps_for_that_set(self, machine, strength_category):
        machine.set_category(ROW, strength_category.id)
        machine.set_sets(ROW, 3)
        machine.set_reps(ROW, 1, "10")
        with pytest.raises(SelectionError):
            machine.set_weight(ROW, 0, "Max")

    @pytest.mark.parametrize("sets", [0, 7])
    def test_sets_out_of_range(self, machine, strength_category, sets):
        machine.set_category(ROW, strength_category.id)
        with pytest.raises(SelectionError):
            machine.set_sets(ROW, sets)

    def test_values_must_come_from_option_lists(self, machine, strength_category):
        machine.set_category(ROW, strength_category.id)
        machine.set_sets(ROW, 1)
        with pytest.raises(SelectionError):
            machine.set_reps(ROW, 0, "11")
        machine.set_reps(ROW, 0, "10")
        with pytest.raises(SelectionError):
            machine.set_weight(ROW, 0, "99%")

    def test_row_outside_phase(self, machine, strength_category):
        with pytest.raises(NotFoundError):
            machine.set_category(RowKey(5, 0), strength_category.id)


# ---------------------------------------------------------------------------
# Commit Tests
# ---------------------------------------------------------------------------

class TestCommit:
    """Committing copies the selection onto the program and saves it."""

    def test_commit_writes_row_by_value(self, machine, editor, gateway, strength_category):
        machine.set_category(ROW, strength_category.id)
        machine.set_exercise(ROW, "Squats")
        machine.set_sets(ROW, 3)
        machine.set_reps(ROW, 1, "10")
        machine.set_weight(ROW, 1, "80%")

        program = run(machine.commit(ROW))

        exercise = program.get_exercise(0, 0, 1)
        assert exercise.category_id == strength_category.id
        assert exercise.category_name == "Strength"
        assert exercise.exercise_name == "Squats"
        assert exercise.sets == 3
        assert exercise.reps_by_set == {1: "10"}
        assert exercise.weight_by_set == {1: "80%"}
        assert editor.last_committed is program

        stored = stored_exercise(gateway, program.id, 0, 0, 1)
        assert stored["exerciseName"] == "Squats"
        assert stored["repsBySet"] == {"1": "10"}

    def test_commit_without_sets_keeps_prescribed_sets(self, machine, strength_category):
        machine.set_category(ROW, strength_category.id)
        program = run(machine.commit(ROW))
        assert program.get_exercise(0, 0, 1).sets == 3

    def test_commit_untouched_row_is_noop(self, machine, editor):
        before = editor.current
        assert run(machine.commit(ROW)) is before

    def test_deleted_category_name_survives_on_program(
        self, machine, library, builder, strength_category
    ):
        """Programs keep the copied names after the category is gone."""
        machine.set_category(ROW, strength_category.id)
        machine.set_exercise(ROW, "Squats")
        program = run(machine.commit(ROW))

        run(library.delete_category(OWNER, strength_category.id))

        assert run(library.list_categories(OWNER)) == []
        reloaded = run(builder.get_program(OWNER, program.id))
        assert reloaded.get_exercise(0, 0, 1).display_name == "Squats"
        assert reloaded.get_exercise(0, 0, 1).category_name == "Strength"

    def test_recommitting_row_of_deleted_category_keeps_its_name(
        self, machine, editor, library, builder, strength_category
    ):
        """A reopened row whose category is gone still commits the captured name."""
        machine.set_category(ROW, strength_category.id)
        machine.set_exercise(ROW, "Squats")
        run(machine.commit(ROW))
        run(library.delete_category(OWNER, strength_category.id))

        reopened = SelectionStateMachine(editor, 0, run(library.list_categories(OWNER)))
        reopened.hydrate()
        reopened.set_sets(ROW, 2)
        program = run(reopened.commit(ROW))

        reloaded = run(builder.get_program(OWNER, program.id))
        exercise = reloaded.get_exercise(0, 0, 1)
        assert exercise.category_id == strength_category.id
        assert exercise.category_name == "Strength"
        assert exercise.exercise_name == "Squats"
        assert exercise.sets == 2

    def test_rejected_transitions_leave_new_row_uncommitted(self, machine, editor):
        """A row whose only edits were rejected is still left alone by commit."""
        before = editor.current
        with pytest.raises(SelectionError):
            machine.set_exercise(ROW, "Squats")
        with pytest.raises(SelectionError):
            machine.set_sets(ROW, 9)

        assert machine.selection(ROW).state == SelectionState.EMPTY
        assert run(machine.commit(ROW)) is before

    def test_hydrate_restores_committed_rows(self, machine, editor, strength_category):
        machine.set_category(ROW, strength_category.id)
        machine.set_exercise(ROW, "Squats")
        machine.set_sets(ROW, 2)
        machine.set_reps(ROW, 0, "8")
        run(machine.commit(ROW))

        reopened = SelectionStateMachine(editor, 0, [strength_category])
        reopened.hydrate()

        selection = reopened.selection(ROW)
        assert selection.exercise_name == "Squats"
        assert selection.reps == {0: "8"}
        assert reopened.selection(RowKey(0, 0)).state == SelectionState.EMPTY


# ---------------------------------------------------------------------------
# Debounce Tests
# ---------------------------------------------------------------------------

class TestDebouncedCommit:
    """Choosing a category schedules one coalesced commit per row."""

    def test_rapid_category_changes_coalesce(self, saved_program, gateway, strength_category):
        counting = CountingGateway(gateway)

        async def scenario():
            debouncer = CommitDebouncer(0.01)
            editor = ProgramEditor(saved_program, counting)
            machine = SelectionStateMachine(editor, 0, [strength_category], debouncer=debouncer)

            machine.set_category(ROW, None)
            machine.set_category(ROW, strength_category.id)
            assert debouncer.pending_count == 1

            await asyncio.sleep(0.05)
            await debouncer.flush()
            return editor

        editor = run(scenario())

        assert counting.updates == 1
        assert editor.current.get_exercise(0, 0, 1).category_id == strength_category.id

    def test_flush_fires_pending_commits_immediately(self, saved_program, gateway, strength_category):
        async def scenario():
            debouncer = CommitDebouncer(60)
            editor = ProgramEditor(saved_program, gateway)
            machine = SelectionStateMachine(editor, 0, [strength_category], debouncer=debouncer)

            machine.set_category(ROW, strength_category.id)
            await debouncer.flush()
            return debouncer

        debouncer = run(scenario())

        assert debouncer.pending_count == 0
        assert stored_exercise(gateway, saved_program.id, 0, 0, 1)["category"] == strength_category.id

    def test_commit_after_navigation_is_dropped(self, saved_program, gateway, strength_category):
        """A timer that fires after the editor moved on must not write."""
        counting = CountingGateway(gateway)

        async def scenario():
            debouncer = CommitDebouncer(0.01)
            editor = ProgramEditor(saved_program, counting)
            machine = SelectionStateMachine(editor, 0, [strength_category], debouncer=debouncer)

            machine.set_category(ROW, strength_category.id)
            editor.invalidate()

            await asyncio.sleep(0.05)
            await debouncer.flush()

        run(scenario())

        assert counting.updates == 0

    def test_cancel_all_drops_pending(self, saved_program, gateway, strength_category):
        counting = CountingGateway(gateway)

        async def scenario():
            debouncer = CommitDebouncer(0.01)
            editor = ProgramEditor(saved_program, counting)
            machine = SelectionStateMachine(editor, 0, [strength_category], debouncer=debouncer)

            machine.set_category(ROW, strength_category.id)
            machine.set_category(RowKey(1, 1), strength_category.id)
            assert debouncer.pending_count == 2

            debouncer.cancel_all()
            await asyncio.sleep(0.05)

        run(scenario())

        assert counting.updates == 0

    def test_failed_debounced_commit_is_logged_not_raised(
        self, saved_program, gateway, connection, strength_category, caplog
    ):
        async def scenario():
            debouncer = CommitDebouncer(0)
            editor = ProgramEditor(saved_program, gateway)
            machine = SelectionStateMachine(editor, 0, [strength_category], debouncer=debouncer)

            connection._fail_writes()
            machine.set_category(ROW, strength_category.id)
            await asyncio.sleep(0.01)
            await debouncer.flush()
            return editor

        editor = run(scenario())

        assert editor.current.get_exercise(0, 0, 1).category_id is None
        assert "Debounced commit failed" in caplog.text
