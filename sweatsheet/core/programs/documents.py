"""
Translation between domain models and stored documents.

Documents are plain JSON-compatible dicts with camelCase keys, the shape
the document store has always held. The gateway adds "id", "createdAt" and
"updatedAt" on the way out; the *_to_document functions never write them.

JSON object keys are strings, so per-set maps are written with string keys
and read back as ints.
"""

import logging
from datetime import datetime
from typing import Any, Optional

from .models import (
    Block,
    Exercise,
    ExerciseCategory,
    Phase,
    Program,
    ProgramStatus,
    ProgramTemplate,
)

logger = logging.getLogger(__name__)


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _set_map_to_document(values: dict[int, str]) -> dict[str, str]:
    return {str(index): value for index, value in sorted(values.items())}


def _set_map_from_document(values: Optional[dict]) -> dict[int, str]:
    if not values:
        return {}
    return {int(index): str(value) for index, value in values.items()}


# ---------------------------------------------------------------------------
# Phases
# ---------------------------------------------------------------------------

def exercise_to_document(exercise: Exercise) -> dict[str, Any]:
    doc: dict[str, Any] = {
        "name": exercise.name,
        "sets": exercise.sets,
        "reps": exercise.reps,
        "load": exercise.load,
        "tempo": exercise.tempo,
        "restSec": exercise.rest_sec,
        "completed": exercise.completed,
    }
    if exercise.category_id is not None:
        doc["category"] = exercise.category_id
    if exercise.category_name is not None:
        doc["categoryName"] = exercise.category_name
    if exercise.exercise_name is not None:
        doc["exerciseName"] = exercise.exercise_name
    if exercise.reps_by_set:
        doc["repsBySet"] = _set_map_to_document(exercise.reps_by_set)
    if exercise.weight_by_set:
        doc["weightBySet"] = _set_map_to_document(exercise.weight_by_set)
    return doc


def exercise_from_document(doc: dict[str, Any]) -> Exercise:
    reps = doc.get("reps", 10)
    reps_by_set = _set_map_from_document(doc.get("repsBySet"))

    # Older rows stored the per-set map directly under "reps"
    if isinstance(reps, dict):
        reps_by_set = reps_by_set or _set_map_from_document(reps)
        reps = 10

    return Exercise(
        name=doc.get("name", ""),
        sets=int(doc.get("sets", 3)),
        reps=int(reps),
        load=doc.get("load", "0lbs"),
        tempo=doc.get("tempo", "2-0-2"),
        rest_sec=int(doc.get("restSec", 60)),
        completed=bool(doc.get("completed", False)),
        category_id=doc.get("category"),
        category_name=doc.get("categoryName"),
        exercise_name=doc.get("exerciseName"),
        reps_by_set=reps_by_set,
        weight_by_set=_set_map_from_document(doc.get("weightBySet")),
    )


def phases_to_documents(phases: list[Phase]) -> list[dict[str, Any]]:
    return [
        {
            "name": phase.name,
            "blocks": [
                {
                    "muscleGroup": block.muscle_group,
                    "notes": block.notes,
                    "exercises": [exercise_to_document(ex) for ex in block.exercises],
                }
                for block in phase.blocks
            ],
        }
        for phase in phases
    ]


def phases_from_documents(docs: list[dict[str, Any]]) -> list[Phase]:
    return [
        Phase(
            name=phase_doc.get("name", ""),
            blocks=[
                Block(
                    muscle_group=block_doc.get("muscleGroup", ""),
                    notes=block_doc.get("notes", ""),
                    exercises=[
                        exercise_from_document(ex) for ex in block_doc.get("exercises", [])
                    ],
                )
                for block_doc in phase_doc.get("blocks", [])
            ],
        )
        for phase_doc in docs
    ]


# ---------------------------------------------------------------------------
# Programs
# ---------------------------------------------------------------------------

def program_to_document(program: Program) -> dict[str, Any]:
    doc: dict[str, Any] = {
        "proId": program.owner_id,
        "athleteUid": program.athlete_id,
        "title": program.title,
        "status": program.status.value,
        "phases": phases_to_documents(program.phases),
        "createdBy": program.created_by,
    }
    if program.customization_notes:
        doc["customizationNotes"] = program.customization_notes
    if program.template_id:
        doc["templateId"] = program.template_id
    return doc


def program_from_document(doc: dict[str, Any]) -> Program:
    return Program(
        id=doc.get("id"),
        owner_id=doc.get("proId", ""),
        athlete_id=doc.get("athleteUid", ""),
        title=doc.get("title", ""),
        status=ProgramStatus(doc.get("status", ProgramStatus.DRAFT.value)),
        phases=phases_from_documents(doc.get("phases", [])),
        created_by=doc.get("createdBy", ""),
        customization_notes=doc.get("customizationNotes"),
        template_id=doc.get("templateId"),
        created_at=_parse_timestamp(doc.get("createdAt")),
        updated_at=_parse_timestamp(doc.get("updatedAt")),
    )


# ---------------------------------------------------------------------------
# Exercise categories
# ---------------------------------------------------------------------------

def category_to_document(category: ExerciseCategory) -> dict[str, Any]:
    return {
        "proId": category.owner_id,
        "name": category.name,
        "exercises": list(category.exercises),
        "createdBy": category.created_by,
    }


def category_from_document(doc: dict[str, Any]) -> Optional[ExerciseCategory]:
    """
    Build a category, or return None when the document is malformed.

    Documents without a name or without an exercise list are skipped
    rather than failing the whole listing.
    """
    if not doc.get("name") or not isinstance(doc.get("exercises"), list):
        logger.warning(
            "Skipping malformed exercise category document",
            extra={"doc_id": doc.get("id")}
        )
        return None

    return ExerciseCategory(
        id=doc.get("id"),
        owner_id=doc.get("proId", ""),
        name=doc["name"],
        exercises=[str(name) for name in doc["exercises"]],
        created_by=doc.get("createdBy", ""),
        created_at=_parse_timestamp(doc.get("createdAt")),
        updated_at=_parse_timestamp(doc.get("updatedAt")),
    )


# ---------------------------------------------------------------------------
# Custom templates
# ---------------------------------------------------------------------------

def template_to_document(template: ProgramTemplate) -> dict[str, Any]:
    return {
        "proId": template.owner_id,
        "name": template.name,
        "description": template.description,
        "focus": template.focus,
        "difficulty": template.difficulty,
        "phases": phases_to_documents(template.phases),
        "createdBy": template.created_by,
    }


def template_from_document(doc: dict[str, Any], template_id: str) -> ProgramTemplate:
    return ProgramTemplate(
        id=template_id,
        owner_id=doc.get("proId", ""),
        name=doc.get("name", ""),
        description=doc.get("description", ""),
        focus=doc.get("focus", ""),
        difficulty=doc.get("difficulty", ""),
        phases=phases_from_documents(doc.get("phases", [])),
        created_by=doc.get("createdBy", ""),
        created_at=_parse_timestamp(doc.get("createdAt")),
        updated_at=_parse_timestamp(doc.get("updatedAt")),
    )
