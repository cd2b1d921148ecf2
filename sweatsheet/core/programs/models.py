"""
Domain models for structured training programs.

A Program is four Phases; a Phase is an ordered list of Blocks; a Block is
an ordered list of Exercise rows. These models have no knowledge of how they
are stored. The document codec in documents.py handles that.

Programs are treated as values once loaded into an editor: mutations go
through with_exercise() and transition_to(), which return new Programs that
share every untouched phase, block and exercise with the original.
"""

import math
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Iterator, Optional

from .errors import IllegalTransitionError, NotFoundError, ValidationError


PHASE_COUNT = 4


def title_case(text: str) -> str:
    """Lower-case the text and capitalize the first letter of each word."""
    return " ".join(
        word[:1].upper() + word[1:]
        for word in text.strip().lower().split(" ")
    )


class ProgramStatus(Enum):
    """Lifecycle of a program."""
    DRAFT = "draft"
    CURRENT = "current"
    COMPLETED = "completed"
    ARCHIVED = "archived"

    def can_transition_to(self, target: "ProgramStatus") -> bool:
        return target in _STATUS_TRANSITIONS[self]


_STATUS_TRANSITIONS: dict[ProgramStatus, frozenset[ProgramStatus]] = {
    ProgramStatus.DRAFT: frozenset({ProgramStatus.CURRENT, ProgramStatus.ARCHIVED}),
    ProgramStatus.CURRENT: frozenset({ProgramStatus.COMPLETED, ProgramStatus.ARCHIVED}),
    ProgramStatus.COMPLETED: frozenset({ProgramStatus.ARCHIVED}),
    ProgramStatus.ARCHIVED: frozenset(),
}


@dataclass
class Exercise:
    """
    One prescribed movement within a block.

    category_id, category_name and exercise_name are copied in by value when
    a row selection is committed. Deleting the category later leaves them as
    they were.
    """
    name: str = ""
    sets: int = 3
    reps: int = 10
    load: str = "0lbs"
    tempo: str = "2-0-2"
    rest_sec: int = 60
    completed: bool = False
    category_id: Optional[str] = None
    category_name: Optional[str] = None
    exercise_name: Optional[str] = None
    reps_by_set: dict[int, str] = field(default_factory=dict)
    weight_by_set: dict[int, str] = field(default_factory=dict)

    @property
    def display_name(self) -> str:
        return self.exercise_name or self.name


@dataclass
class Block:
    """A group of exercises within a phase, usually one muscle group."""
    muscle_group: str = ""
    notes: str = ""
    exercises: list[Exercise] = field(default_factory=list)


@dataclass
class Phase:
    name: str = ""
    blocks: list[Block] = field(default_factory=list)


@dataclass
class Program:
    """
    A four-phase training plan assigned to one athlete.

    This is the aggregate root: phases, blocks and exercises are only
    ever read or written through the program that owns them.
    """
    owner_id: str
    athlete_id: str
    title: str
    phases: list[Phase]
    status: ProgramStatus = ProgramStatus.DRAFT
    created_by: str = ""
    id: Optional[str] = None
    customization_notes: Optional[str] = None
    template_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if len(self.phases) != PHASE_COUNT:
            raise ValidationError(
                f"A program must have exactly {PHASE_COUNT} phases, got {len(self.phases)}"
            )

    def iter_exercises(self) -> Iterator[Exercise]:
        for phase in self.phases:
            for block in phase.blocks:
                yield from block.exercises

    @property
    def exercise_count(self) -> int:
        return sum(1 for _ in self.iter_exercises())

    @property
    def completed_count(self) -> int:
        return sum(1 for exercise in self.iter_exercises() if exercise.completed)

    @property
    def completion_percentage(self) -> int:
        return completion_percentage(self)

    def get_exercise(
        self,
        phase_index: int,
        block_index: int,
        exercise_index: int,
    ) -> Exercise:
        """Look up a row by zero-based indices."""
        location = (phase_index, block_index, exercise_index)
        if not 0 <= phase_index < len(self.phases):
            raise NotFoundError("phase", phase_index)
        blocks = self.phases[phase_index].blocks
        if not 0 <= block_index < len(blocks):
            raise NotFoundError("block", location[:2])
        exercises = blocks[block_index].exercises
        if not 0 <= exercise_index < len(exercises):
            raise NotFoundError("exercise", location)
        return exercises[exercise_index]

    def with_exercise(
        self,
        phase_index: int,
        block_index: int,
        exercise_index: int,
        **changes,
    ) -> "Program":
        """
        Return a copy of this program with one exercise row changed.

        Only the path from the program down to the changed row is copied;
        all other phases, blocks and exercises are shared.
        """
        exercise = self.get_exercise(phase_index, block_index, exercise_index)
        phase = self.phases[phase_index]
        block = phase.blocks[block_index]

        exercises = list(block.exercises)
        exercises[exercise_index] = replace(exercise, **changes)

        blocks = list(phase.blocks)
        blocks[block_index] = replace(block, exercises=exercises)

        phases = list(self.phases)
        phases[phase_index] = replace(phase, blocks=blocks)

        return replace(self, phases=phases)

    def transition_to(self, target: ProgramStatus) -> "Program":
        """Return a copy with a new status, if the status machine allows it."""
        if not self.status.can_transition_to(target):
            raise IllegalTransitionError(
                f"Cannot move program from {self.status.value} to {target.value}"
            )
        return replace(self, status=target)


def completion_percentage(program: Program) -> int:
    """
    Completed exercises as a whole-number percentage of all exercises.

    Halves round up. A program without exercises is 0% complete.
    """
    total = program.exercise_count
    if total == 0:
        return 0
    return math.floor(program.completed_count * 100 / total + 0.5)


@dataclass
class ExerciseCategory:
    """An owner-scoped bucket of exercise names used to fill row dropdowns."""
    owner_id: str
    name: str
    exercises: list[str] = field(default_factory=list)
    created_by: str = ""
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def has_exercise(self, name: str) -> bool:
        return name in self.exercises


@dataclass
class ProgramTemplate:
    """
    A reusable four-phase skeleton.

    id is a namespaced reference ("builtin:recovery-program",
    "custom:<document id>") so both kinds can be resolved the same way.
    """
    id: str
    name: str
    phases: list[Phase]
    description: str = ""
    focus: str = ""
    difficulty: str = ""
    owner_id: Optional[str] = None
    created_by: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if len(self.phases) != PHASE_COUNT:
            raise ValidationError(
                f"A template must have exactly {PHASE_COUNT} phases, got {len(self.phases)}"
            )

    @property
    def is_custom(self) -> bool:
        return self.owner_id is not None
