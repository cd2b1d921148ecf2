"""
Tests for the mode-gated builder workspace.

Each test drives the workspace through one asyncio.run call, since the
debouncer's timers belong to the running loop.
"""

import asyncio

import pytest

from conftest import OWNER, run
from sweatsheet.core.programs.errors import (
    IllegalModeError,
    PartialLoadError,
    PersistenceError,
    ValidationError,
)
from sweatsheet.core.programs.library import ExerciseLibrary
from sweatsheet.core.programs.selection import RowKey
from sweatsheet.core.programs.workspace import BuilderMode, ProgramWorkspace


@pytest.fixture
def workspace(gateway, small_builder, library) -> ProgramWorkspace:
    return ProgramWorkspace(
        owner_id=OWNER,
        user_id=OWNER,
        gateway=gateway,
        builder=small_builder,
        library=library,
        commit_delay_seconds=60,
    )


class TestModes:
    """Operations are only available in their mode."""

    def test_starts_in_grid(self, workspace):
        assert workspace.mode == BuilderMode.GRID
        assert workspace.program is None

    def test_create_requires_create_assign_mode(self, workspace):
        with pytest.raises(IllegalModeError):
            run(workspace.create_new("a1", "Leg Day"))

    def test_create_returns_to_grid(self, workspace):
        async def scenario():
            await workspace.show_create_assign()
            program = await workspace.create_new("a1", "leg day")
            return program, await workspace.list_programs()

        program, programs = run(scenario())

        assert workspace.mode == BuilderMode.GRID
        assert program.title == "Leg Day"
        assert [p.id for p in programs] == [program.id]

    def test_assign_existing_template(self, workspace):
        async def scenario():
            await workspace.show_create_assign()
            return await workspace.assign_existing("a1", "Endurance Program", "Build up slowly")

        program = run(scenario())

        assert program.template_id == "builtin:endurance-program"
        assert program.customization_notes == "Build up slowly"
        assert workspace.mode == BuilderMode.GRID

    def test_library_edits_require_library_mode(self, workspace):
        with pytest.raises(IllegalModeError):
            run(workspace.create_category("Strength"))

    def test_library_mode(self, workspace):
        async def scenario():
            categories = await workspace.show_exercise_library()
            category = await workspace.create_category("strength")
            await workspace.add_exercise(category.id, "squats")
            updated = await workspace.delete_exercise(category.id, "Lunges")
            return categories, updated

        categories, updated = run(scenario())

        assert categories == []
        assert updated.name == "Strength"
        assert updated.exercises == ["Squats"]

    def test_listing_not_available_in_library_mode(self, workspace):
        async def scenario():
            await workspace.show_exercise_library()
            await workspace.list_programs()

        with pytest.raises(IllegalModeError):
            run(scenario())

    def test_selection_requires_detail_mode(self, workspace):
        with pytest.raises(IllegalModeError):
            workspace.selection


class TestDetail:
    """Editing an opened program."""

    def test_open_program_enters_detail_on_phase_one(self, workspace, saved_program):
        run(workspace.open_program(saved_program.id))

        assert workspace.mode == BuilderMode.DETAIL
        assert workspace.current_phase == 1
        assert workspace.program.id == saved_program.id
        assert workspace.selection.phase_index == 0

    def test_set_phase_range(self, workspace, saved_program):
        async def scenario():
            await workspace.open_program(saved_program.id)
            await workspace.set_phase(5)

        with pytest.raises(ValidationError):
            run(scenario())

    def test_changing_phase_flushes_pending_commit(
        self, workspace, saved_program, strength_category, builder
    ):
        """Edits scheduled on phase 1 are written before phase 2 is shown."""
        async def scenario():
            await workspace.open_program(saved_program.id)
            workspace.selection.set_category(RowKey(0, 0), strength_category.id)
            assert workspace.pending_commits == 1

            await workspace.set_phase(2)
            return workspace.pending_commits

        pending = run(scenario())

        assert pending == 0
        assert workspace.current_phase == 2
        assert workspace.selection.phase_index == 1
        reloaded = run(builder.get_program(OWNER, saved_program.id))
        assert reloaded.get_exercise(0, 0, 0).category_id == strength_category.id
        assert reloaded.get_exercise(1, 0, 0).category_id is None

    def test_save_row_commits_immediately(self, workspace, saved_program, strength_category):
        async def scenario():
            await workspace.open_program(saved_program.id)
            await workspace.set_phase(3)
            workspace.selection.set_category(RowKey(1, 1), strength_category.id)
            workspace.selection.set_exercise(RowKey(1, 1), "Bench Press")
            program = await workspace.save_row(1, 1)
            return program, workspace.pending_commits

        program, pending = run(scenario())

        assert pending == 0
        assert program.get_exercise(2, 1, 1).exercise_name == "Bench Press"

    def test_toggle_completion_on_current_phase(self, workspace, saved_program):
        async def scenario():
            await workspace.open_program(saved_program.id)
            await workspace.set_phase(4)
            return await workspace.toggle_completion(0, 1, True)

        assert run(scenario()) is True
        assert workspace.program.get_exercise(3, 0, 1).completed is True

    def test_reopening_shows_committed_selections(self, workspace, saved_program, strength_category):
        async def scenario():
            await workspace.open_program(saved_program.id)
            workspace.selection.set_category(RowKey(0, 1), strength_category.id)
            workspace.selection.set_exercise(RowKey(0, 1), "Squats")
            await workspace.save_row(0, 1)
            await workspace.show_grid()
            await workspace.open_program(saved_program.id)

        run(scenario())

        assert workspace.selection.selection(RowKey(0, 1)).exercise_name == "Squats"

    def test_reopening_same_program_keeps_pending_commit(
        self, workspace, saved_program, strength_category, builder
    ):
        """A pending edit is written before the reopened program is read."""
        async def scenario():
            await workspace.open_program(saved_program.id)
            workspace.selection.set_category(RowKey(0, 1), strength_category.id)
            await workspace.open_program(saved_program.id)
            await workspace.toggle_completion(1, 0, True)

        run(scenario())

        assert workspace.program.get_exercise(0, 0, 1).category_id == strength_category.id
        reloaded = run(builder.get_program(OWNER, saved_program.id))
        assert reloaded.get_exercise(0, 0, 1).category_id == strength_category.id
        assert reloaded.get_exercise(0, 1, 0).completed is True

    def test_commit_delay_controls_debounce(
        self, gateway, small_builder, library, saved_program, strength_category, builder
    ):
        workspace = ProgramWorkspace(
            owner_id=OWNER,
            user_id=OWNER,
            gateway=gateway,
            builder=small_builder,
            library=library,
            commit_delay_seconds=0.01,
        )

        async def scenario():
            await workspace.open_program(saved_program.id)
            workspace.selection.set_category(RowKey(1, 0), strength_category.id)
            await asyncio.sleep(0.2)
            return workspace.pending_commits

        assert run(scenario()) == 0
        reloaded = run(builder.get_program(OWNER, saved_program.id))
        assert reloaded.get_exercise(0, 1, 0).category_name == "Strength"

    def test_deleting_open_program_returns_to_grid(self, workspace, saved_program):
        async def scenario():
            await workspace.open_program(saved_program.id)
            await workspace.delete_program(saved_program.id)

        run(scenario())

        assert workspace.mode == BuilderMode.GRID
        assert workspace.program is None


class TestPartialLoad:

    def test_category_load_failure_degrades_to_empty(self, gateway, small_builder, saved_program):
        class BrokenLibrary(ExerciseLibrary):
            async def list_categories(self, owner_id):
                raise PersistenceError("categories unavailable")

        workspace = ProgramWorkspace(
            owner_id=OWNER,
            user_id=OWNER,
            gateway=gateway,
            builder=small_builder,
            library=BrokenLibrary(gateway),
        )

        run(workspace.open_program(saved_program.id))

        assert workspace.mode == BuilderMode.DETAIL
        assert workspace.selection.categories == []
        assert len(workspace.load_errors) == 1
        assert isinstance(workspace.load_errors[0], PartialLoadError)
        assert "exercise categories" in str(workspace.load_errors[0])
