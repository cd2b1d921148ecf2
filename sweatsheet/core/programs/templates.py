"""
Program templates.

Two kinds of template exist:
- built-in templates, a fixed catalog held in memory
- custom templates, saved per owner through the persistence gateway

Both are resolved through TemplateCatalog using a namespaced reference:
"builtin:strength-training-program" or "custom:<document id>". A bare
name such as "Recovery Program" is read as a built-in reference.
"""

import copy
import logging
import re
from typing import Optional, Protocol, Sequence

from .documents import template_from_document, template_to_document
from .errors import NotFoundError, ValidationError
from .gateway import PROGRAM_TEMPLATES, PersistenceGateway
from .models import (
    PHASE_COUNT,
    Block,
    Exercise,
    Phase,
    Program,
    ProgramStatus,
    ProgramTemplate,
    title_case,
)

logger = logging.getLogger(__name__)


BUILTIN_NAMESPACE = "builtin"
CUSTOM_NAMESPACE = "custom"

DEFAULT_BLOCKS_PER_PHASE = 8
DEFAULT_EXERCISES_PER_BLOCK = 6


# ---------------------------------------------------------------------------
# Skeleton generation
# ---------------------------------------------------------------------------

def build_phases(
    blocks_per_phase: int = DEFAULT_BLOCKS_PER_PHASE,
    exercises_per_block: int = DEFAULT_EXERCISES_PER_BLOCK,
) -> list[Phase]:
    """
    Build the canonical four-phase skeleton.

    Every exercise starts as a placeholder with the default prescription
    (3 x 10, 0lbs, 2-0-2 tempo, 60s rest) and is not completed.
    """
    phases = []
    for phase_number in range(1, PHASE_COUNT + 1):
        phase_name = f"Phase {phase_number}"
        phases.append(Phase(
            name=phase_name,
            blocks=[
                Block(
                    muscle_group=f"Block {block_number}",
                    notes=f"Notes for {phase_name} Block {block_number}",
                    exercises=[
                        Exercise(name=f"Exercise {exercise_number}")
                        for exercise_number in range(1, exercises_per_block + 1)
                    ],
                )
                for block_number in range(1, blocks_per_phase + 1)
            ],
        ))
    return phases


# name, description, focus, difficulty
BUILTIN_TEMPLATES: tuple[tuple[str, str, str, str], ...] = (
    (
        "Strength Training Program",
        "Focus on building maximum strength with compound movements and progressive overload",
        "Compound lifts, progressive overload, strength building",
        "Intermediate to Advanced",
    ),
    (
        "Power Development Program",
        "Explosive movements and Olympic lifts to develop power and athletic performance",
        "Olympic lifts, plyometrics, explosive movements",
        "Advanced",
    ),
    (
        "Endurance Program",
        "High-rep training and cardio integration for muscular and cardiovascular endurance",
        "High reps, circuit training, cardio integration",
        "Beginner to Intermediate",
    ),
    (
        "Recovery Program",
        "Light training and mobility work to maintain fitness while promoting recovery",
        "Mobility, flexibility, light resistance, recovery",
        "All Levels",
    ),
)


def slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.strip().lower()).strip("-")


def parse_template_ref(template_ref: str) -> tuple[str, str]:
    """Split a reference into (namespace, key). Bare names are built-ins."""
    namespace, sep, key = template_ref.partition(":")
    if not sep:
        return BUILTIN_NAMESPACE, template_ref
    return namespace, key


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------

class TemplateSource(Protocol):
    """One backing store of templates, addressed by its namespace."""

    namespace: str

    async def get(self, owner_id: str, key: str) -> Optional[ProgramTemplate]:
        ...

    async def list(self, owner_id: str) -> list[ProgramTemplate]:
        ...


class BuiltinTemplateSource:
    """The fixed catalog. Each lookup returns a freshly built skeleton."""

    namespace = BUILTIN_NAMESPACE

    def __init__(
        self,
        blocks_per_phase: int = DEFAULT_BLOCKS_PER_PHASE,
        exercises_per_block: int = DEFAULT_EXERCISES_PER_BLOCK,
    ) -> None:
        self._blocks_per_phase = blocks_per_phase
        self._exercises_per_block = exercises_per_block

    async def get(self, owner_id: str, key: str) -> Optional[ProgramTemplate]:
        wanted = slugify(key)
        for entry in BUILTIN_TEMPLATES:
            if slugify(entry[0]) == wanted:
                return self._build(entry)
        return None

    async def list(self, owner_id: str) -> list[ProgramTemplate]:
        return [self._build(entry) for entry in BUILTIN_TEMPLATES]

    def _build(self, entry: tuple[str, str, str, str]) -> ProgramTemplate:
        name, description, focus, difficulty = entry
        return ProgramTemplate(
            id=f"{BUILTIN_NAMESPACE}:{slugify(name)}",
            name=name,
            description=description,
            focus=focus,
            difficulty=difficulty,
            phases=build_phases(self._blocks_per_phase, self._exercises_per_block),
        )


class CustomTemplateSource:
    """Owner-scoped templates persisted through the gateway."""

    namespace = CUSTOM_NAMESPACE

    def __init__(self, gateway: PersistenceGateway) -> None:
        self._gateway = gateway

    async def get(self, owner_id: str, key: str) -> Optional[ProgramTemplate]:
        doc = await self._gateway.get(PROGRAM_TEMPLATES, owner_id, key)
        if doc is None:
            return None
        return template_from_document(doc, self._ref(doc["id"]))

    async def list(self, owner_id: str) -> list[ProgramTemplate]:
        docs = await self._gateway.list(PROGRAM_TEMPLATES, owner_id)
        return [template_from_document(doc, self._ref(doc["id"])) for doc in docs]

    async def save(self, template: ProgramTemplate) -> ProgramTemplate:
        doc = await self._gateway.create(
            PROGRAM_TEMPLATES, template.owner_id, template_to_document(template)
        )
        return template_from_document(doc, self._ref(doc["id"]))

    async def delete(self, owner_id: str, key: str) -> None:
        await self._gateway.delete(PROGRAM_TEMPLATES, owner_id, key)

    def _ref(self, doc_id: str) -> str:
        return f"{self.namespace}:{doc_id}"


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

class TemplateCatalog:
    """
    Single entry point for templates of every kind.

    Resolution picks the source by the reference's namespace, so callers
    never branch on built-in versus custom.
    """

    def __init__(self, sources: Sequence[TemplateSource]) -> None:
        self._sources = {source.namespace: source for source in sources}

    async def list_templates(self, owner_id: str) -> list[ProgramTemplate]:
        templates: list[ProgramTemplate] = []
        for source in self._sources.values():
            templates.extend(await source.list(owner_id))
        return templates

    async def get_template(self, owner_id: str, template_ref: str) -> ProgramTemplate:
        namespace, key = parse_template_ref(template_ref)
        source = self._sources.get(namespace)
        template = await source.get(owner_id, key) if source and key else None
        if template is None:
            raise NotFoundError("template", template_ref)
        return template

    async def save_template(
        self,
        owner_id: str,
        name: str,
        description: str = "",
        focus: str = "",
        difficulty: str = "",
        created_by: Optional[str] = None,
        phases: Optional[list[Phase]] = None,
    ) -> ProgramTemplate:
        """Persist a custom template. Without phases, the default skeleton is used."""
        normalized = title_case(name or "")
        if not normalized:
            raise ValidationError("Template name is required")

        template = ProgramTemplate(
            id=f"{CUSTOM_NAMESPACE}:",
            owner_id=owner_id,
            name=normalized,
            description=description,
            focus=focus,
            difficulty=difficulty,
            phases=copy.deepcopy(phases) if phases is not None else build_phases(),
            created_by=created_by or owner_id,
        )
        saved = await self._custom_source().save(template)

        logger.info(
            "Saved custom template",
            extra={"owner_id": owner_id, "template_id": saved.id}
        )
        return saved

    async def delete_template(self, owner_id: str, template_ref: str) -> None:
        namespace, key = parse_template_ref(template_ref)
        if namespace != CUSTOM_NAMESPACE:
            raise ValidationError("Only custom templates can be deleted")
        await self._custom_source().delete(owner_id, key)

    async def instantiate(
        self,
        template_ref: str,
        athlete_id: str,
        owner_id: str,
        created_by: str,
        customization_notes: Optional[str] = None,
    ) -> Program:
        """
        Build an unsaved draft program from a template.

        The skeleton is deep-copied so the program never shares rows
        with the template it came from.
        """
        template = await self.get_template(owner_id, template_ref)
        notes = (customization_notes or "").strip() or None

        return Program(
            owner_id=owner_id,
            athlete_id=athlete_id,
            title=template.name,
            phases=copy.deepcopy(template.phases),
            status=ProgramStatus.DRAFT,
            created_by=created_by,
            customization_notes=notes,
            template_id=template.id,
        )

    async def instantiate_from_custom(
        self,
        template_id: str,
        athlete_id: str,
        owner_id: str,
        created_by: str,
        customization_notes: Optional[str] = None,
    ) -> Program:
        """Instantiate a custom template by its document id."""
        _, key = parse_template_ref(template_id)
        return await self.instantiate(
            f"{CUSTOM_NAMESPACE}:{key}",
            athlete_id=athlete_id,
            owner_id=owner_id,
            created_by=created_by,
            customization_notes=customization_notes,
        )

    def _custom_source(self) -> CustomTemplateSource:
        source = self._sources.get(CUSTOM_NAMESPACE)
        if not isinstance(source, CustomTemplateSource):
            raise ValidationError("Custom templates are not available")
        return source


def create_template_catalog(
    gateway: PersistenceGateway,
    blocks_per_phase: int = DEFAULT_BLOCKS_PER_PHASE,
    exercises_per_block: int = DEFAULT_EXERCISES_PER_BLOCK,
) -> TemplateCatalog:
    """Catalog with the built-in templates and the owner's saved ones."""
    return TemplateCatalog([
        BuiltinTemplateSource(blocks_per_phase, exercises_per_block),
        CustomTemplateSource(gateway),
    ])
