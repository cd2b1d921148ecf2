"""
Structured training programs.

Contains the program document model, the exercise library, templates,
the program builder, and the row selection and completion engines that
edit an opened program.
"""

from .builder import ProgramBuilder
from .editor import ProgramEditor
from .errors import (
    IllegalModeError,
    IllegalTransitionError,
    NotFoundError,
    PartialLoadError,
    PersistenceError,
    ProgramError,
    SelectionError,
    ValidationError,
)
from .gateway import PersistenceGateway
from .library import ExerciseLibrary
from .models import (
    Block,
    Exercise,
    ExerciseCategory,
    Phase,
    Program,
    ProgramStatus,
    ProgramTemplate,
    completion_percentage,
    title_case,
)
from .selection import (
    CommitDebouncer,
    RowKey,
    RowSelection,
    SelectionState,
    SelectionStateMachine,
)
from .templates import TemplateCatalog, build_phases, create_template_catalog
from .tracker import CompletionTracker
from .workspace import BuilderMode, ProgramWorkspace

__all__ = [
    "Block",
    "BuilderMode",
    "CommitDebouncer",
    "CompletionTracker",
    "Exercise",
    "ExerciseCategory",
    "ExerciseLibrary",
    "IllegalModeError",
    "IllegalTransitionError",
    "NotFoundError",
    "PartialLoadError",
    "PersistenceError",
    "PersistenceGateway",
    "Phase",
    "Program",
    "ProgramBuilder",
    "ProgramEditor",
    "ProgramError",
    "ProgramStatus",
    "ProgramTemplate",
    "ProgramWorkspace",
    "RowKey",
    "RowSelection",
    "SelectionError",
    "SelectionState",
    "SelectionStateMachine",
    "TemplateCatalog",
    "ValidationError",
    "build_phases",
    "completion_percentage",
    "create_template_catalog",
    "title_case",
]
