"""
Training program API endpoints.

Coaches create programs from scratch or from a template, hand them to
athletes, and fill in exercise rows phase by phase. Row edits go through
the same selection state machine the builder workspace uses, so the
dropdown rules (category before exercise, sets before reps, reps before
weight) hold for API callers too.

Block and exercise positions in paths are zero-based, as are phase indexes.
Domain errors are mapped to HTTP status codes by the app's exception
handlers; routes only raise HTTPException for HTTP-specific conditions.
"""

import logging
from datetime import datetime
from typing import Annotated, Optional

from fastapi import APIRouter, HTTPException, Path, Query, status
from pydantic import BaseModel, Field

from ...core.programs.editor import ProgramEditor
from ...core.programs.models import (
    Block,
    Exercise,
    Phase,
    Program,
    ProgramStatus,
)
from ...core.programs.selection import RowKey, SelectionStateMachine
from ...core.programs.tracker import CompletionTracker
from ..dependencies import (
    AuthenticatedUser,
    ExerciseLibraryDep,
    GatewayDep,
    OwnerId,
    ProgramBuilderDep,
)

logger = logging.getLogger(__name__)

router = APIRouter()

PhaseIndex = Annotated[int, Path(ge=0, le=3, description="Zero-based phase index")]
BlockIndex = Annotated[int, Path(ge=0, description="Zero-based block index")]
ExerciseIndex = Annotated[int, Path(ge=0, description="Zero-based exercise index")]


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class ExerciseModel(BaseModel):
    """One exercise row."""
    name: str = Field("", description="Placeholder name, e.g. 'Exercise 1'")
    sets: int = Field(3, ge=0)
    reps: int = Field(10, ge=0)
    load: str = "0lbs"
    tempo: str = "2-0-2"
    rest_sec: int = Field(60, ge=0)
    completed: bool = False
    category_id: str | None = None
    category_name: str | None = None
    exercise_name: str | None = None
    reps_by_set: dict[int, str] = Field(default_factory=dict, description="Reps keyed by zero-based set index")
    weight_by_set: dict[int, str] = Field(default_factory=dict, description="Weight keyed by zero-based set index")


class BlockModel(BaseModel):
    muscle_group: str = ""
    notes: str = ""
    exercises: list[ExerciseModel] = Field(default_factory=list)


class PhaseModel(BaseModel):
    name: str = ""
    blocks: list[BlockModel] = Field(default_factory=list)


class ProgramResponse(BaseModel):
    """Complete program with its four phases."""
    program_id: str = Field(description="Program identifier")
    athlete_id: str
    title: str
    status: ProgramStatus
    created_by: str
    customization_notes: str | None = None
    template_id: str | None = None
    completion_percentage: int = Field(description="Completed exercises, 0-100")
    created_at: datetime | None = None
    updated_at: datetime | None = None
    phases: list[PhaseModel]


class ProgramSummary(BaseModel):
    """Summary of a program for list views."""
    program_id: str
    athlete_id: str
    title: str
    status: ProgramStatus
    template_id: str | None = None
    completion_percentage: int
    created_at: datetime | None = None


class ProgramListResponse(BaseModel):
    programs: list[ProgramSummary]
    total: int


class CreateProgramRequest(BaseModel):
    """Request to create a blank program."""
    athlete_id: str = Field(description="Athlete the program is for", min_length=1)
    title: str = Field(description="Program title", min_length=1, max_length=200)


class AssignProgramRequest(BaseModel):
    """Request to create a program from a template."""
    athlete_id: str = Field(description="Athlete the program is for", min_length=1)
    template_id: str = Field(
        description="Template reference, e.g. 'builtin:strength-training-program' or 'custom:<id>'",
        min_length=1,
    )
    customization_notes: str | None = Field(None, max_length=2000)


class StatusUpdateRequest(BaseModel):
    status: ProgramStatus


class AthleteAssignmentRequest(BaseModel):
    athlete_id: str = Field(min_length=1)


class CompletionResponse(BaseModel):
    program_id: str
    completed: int
    total: int
    completion_percentage: int


class RowSelectionRequest(BaseModel):
    """
    Choices for one exercise row.

    Applied in dropdown order: category, exercise, sets, then reps and
    weight per zero-based set index. A null category clears the row.
    """
    category_id: str | None = None
    exercise_name: str | None = None
    sets: int | None = None
    reps: dict[int, str] = Field(default_factory=dict)
    weight: dict[int, str] = Field(default_factory=dict)


class CompletionToggleRequest(BaseModel):
    completed: bool


# ---------------------------------------------------------------------------
# Conversions
# ---------------------------------------------------------------------------

def exercise_to_model(exercise: Exercise) -> ExerciseModel:
    return ExerciseModel(
        name=exercise.name,
        sets=exercise.sets,
        reps=exercise.reps,
        load=exercise.load,
        tempo=exercise.tempo,
        rest_sec=exercise.rest_sec,
        completed=exercise.completed,
        category_id=exercise.category_id,
        category_name=exercise.category_name,
        exercise_name=exercise.exercise_name,
        reps_by_set=dict(exercise.reps_by_set),
        weight_by_set=dict(exercise.weight_by_set),
    )


def phases_to_models(phases: list[Phase]) -> list[PhaseModel]:
    return [
        PhaseModel(
            name=phase.name,
            blocks=[
                BlockModel(
                    muscle_group=block.muscle_group,
                    notes=block.notes,
                    exercises=[exercise_to_model(exercise) for exercise in block.exercises],
                )
                for block in phase.blocks
            ],
        )
        for phase in phases
    ]


def phases_from_models(phases: list[PhaseModel]) -> list[Phase]:
    return [
        Phase(
            name=phase.name,
            blocks=[
                Block(
                    muscle_group=block.muscle_group,
                    notes=block.notes,
                    exercises=[Exercise(**exercise.model_dump()) for exercise in block.exercises],
                )
                for block in phase.blocks
            ],
        )
        for phase in phases
    ]


def _program_response(program: Program) -> ProgramResponse:
    return ProgramResponse(
        program_id=program.id,
        athlete_id=program.athlete_id,
        title=program.title,
        status=program.status,
        created_by=program.created_by,
        customization_notes=program.customization_notes,
        template_id=program.template_id,
        completion_percentage=program.completion_percentage,
        created_at=program.created_at,
        updated_at=program.updated_at,
        phases=phases_to_models(program.phases),
    )


def _completion_response(program: Program) -> CompletionResponse:
    return CompletionResponse(
        program_id=program.id,
        completed=program.completed_count,
        total=program.exercise_count,
        completion_percentage=program.completion_percentage,
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=ProgramResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a blank program",
    description="Create a draft program with four empty phases for an athlete",
)
async def create_program(
    request: CreateProgramRequest,
    owner_id: OwnerId,
    api_key: AuthenticatedUser,
    builder: ProgramBuilderDep,
) -> ProgramResponse:
    program = await builder.create_new(owner_id, request.athlete_id, request.title)
    return _program_response(program)


@router.post(
    "/assign",
    response_model=ProgramResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a program from a template",
    description="Copy a built-in or custom template into a new draft program for an athlete",
)
async def assign_program(
    request: AssignProgramRequest,
    owner_id: OwnerId,
    api_key: AuthenticatedUser,
    builder: ProgramBuilderDep,
) -> ProgramResponse:
    program = await builder.assign_existing(
        owner_id,
        request.athlete_id,
        request.template_id,
        customization_notes=request.customization_notes,
    )
    return _program_response(program)


@router.get(
    "",
    response_model=ProgramListResponse,
    status_code=status.HTTP_200_OK,
    summary="List programs",
    description="List the caller's programs, newest first, optionally for one athlete or status",
)
async def list_programs(
    owner_id: OwnerId,
    api_key: AuthenticatedUser,
    builder: ProgramBuilderDep,
    athlete_id: Annotated[Optional[str], Query()] = None,
    status_filter: Annotated[Optional[ProgramStatus], Query(alias="status")] = None,
) -> ProgramListResponse:
    programs = await builder.list_programs(
        owner_id=owner_id, athlete_id=athlete_id, status=status_filter
    )

    summaries = [
        ProgramSummary(
            program_id=program.id,
            athlete_id=program.athlete_id,
            title=program.title,
            status=program.status,
            template_id=program.template_id,
            completion_percentage=program.completion_percentage,
            created_at=program.created_at,
        )
        for program in programs
    ]
    return ProgramListResponse(programs=summaries, total=len(summaries))


@router.get(
    "/{program_id}",
    response_model=ProgramResponse,
    status_code=status.HTTP_200_OK,
    summary="Get program",
)
async def get_program(
    program_id: str,
    owner_id: OwnerId,
    api_key: AuthenticatedUser,
    builder: ProgramBuilderDep,
) -> ProgramResponse:
    program = await builder.get_program(owner_id, program_id)
    return _program_response(program)


@router.delete(
    "/{program_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete program",
)
async def delete_program(
    program_id: str,
    owner_id: OwnerId,
    api_key: AuthenticatedUser,
    builder: ProgramBuilderDep,
) -> None:
    await builder.delete_program(owner_id, program_id)


@router.put(
    "/{program_id}/status",
    response_model=ProgramResponse,
    status_code=status.HTTP_200_OK,
    summary="Change program status",
    description="draft -> current/archived, current -> completed/archived, completed -> archived",
)
async def update_status(
    program_id: str,
    request: StatusUpdateRequest,
    owner_id: OwnerId,
    api_key: AuthenticatedUser,
    builder: ProgramBuilderDep,
) -> ProgramResponse:
    program = await builder.transition_status(owner_id, program_id, request.status)
    return _program_response(program)


@router.put(
    "/{program_id}/athlete",
    response_model=ProgramResponse,
    status_code=status.HTTP_200_OK,
    summary="Assign program to athlete",
    description="Hand a program to an athlete. A draft becomes current.",
)
async def assign_to_athlete(
    program_id: str,
    request: AthleteAssignmentRequest,
    owner_id: OwnerId,
    api_key: AuthenticatedUser,
    builder: ProgramBuilderDep,
) -> ProgramResponse:
    program = await builder.assign_to_athlete(owner_id, program_id, request.athlete_id)
    return _program_response(program)


@router.get(
    "/{program_id}/completion",
    response_model=CompletionResponse,
    status_code=status.HTTP_200_OK,
    summary="Completion summary",
)
async def get_completion(
    program_id: str,
    owner_id: OwnerId,
    api_key: AuthenticatedUser,
    builder: ProgramBuilderDep,
) -> CompletionResponse:
    program = await builder.get_program(owner_id, program_id)
    return _completion_response(program)


@router.put(
    "/{program_id}/phases/{phase_index}/blocks/{block_index}/exercises/{exercise_index}/selection",
    response_model=ExerciseModel,
    status_code=status.HTTP_200_OK,
    summary="Save a row selection",
    description="Apply category, exercise, sets, reps and weight choices to one row and save the phase",
)
async def save_row_selection(
    program_id: str,
    phase_index: PhaseIndex,
    block_index: BlockIndex,
    exercise_index: ExerciseIndex,
    request: RowSelectionRequest,
    owner_id: OwnerId,
    api_key: AuthenticatedUser,
    builder: ProgramBuilderDep,
    library: ExerciseLibraryDep,
    gateway: GatewayDep,
) -> ExerciseModel:
    program = await builder.get_program(owner_id, program_id)
    program.get_exercise(phase_index, block_index, exercise_index)

    categories = await library.list_categories(owner_id)
    machine = SelectionStateMachine(ProgramEditor(program, gateway), phase_index, categories)
    machine.hydrate()

    row = RowKey(block_index, exercise_index)
    machine.set_category(row, request.category_id)
    if request.exercise_name is not None:
        machine.set_exercise(row, request.exercise_name)
    if request.sets is not None:
        machine.set_sets(row, request.sets)
    for set_index, value in sorted(request.reps.items()):
        machine.set_reps(row, set_index, value)
    for set_index, value in sorted(request.weight.items()):
        machine.set_weight(row, set_index, value)

    program = await machine.commit(row)

    logger.info(
        "Saved row selection",
        extra={
            "program_id": program_id,
            "row": (phase_index, block_index, exercise_index),
            "category_id": request.category_id,
        }
    )
    return exercise_to_model(program.get_exercise(phase_index, block_index, exercise_index))


@router.put(
    "/{program_id}/phases/{phase_index}/blocks/{block_index}/exercises/{exercise_index}/completion",
    response_model=CompletionResponse,
    status_code=status.HTTP_200_OK,
    summary="Mark an exercise complete or incomplete",
)
async def toggle_completion(
    program_id: str,
    phase_index: PhaseIndex,
    block_index: BlockIndex,
    exercise_index: ExerciseIndex,
    request: CompletionToggleRequest,
    owner_id: OwnerId,
    api_key: AuthenticatedUser,
    builder: ProgramBuilderDep,
    gateway: GatewayDep,
) -> CompletionResponse:
    program = await builder.get_program(owner_id, program_id)
    editor = ProgramEditor(program, gateway)

    saved = await CompletionTracker(editor).toggle(
        phase_index, block_index, exercise_index, request.completed
    )
    if not saved:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Completion could not be saved. Please try again.",
        )

    return _completion_response(editor.current)
