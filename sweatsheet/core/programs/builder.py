"""
Program builder: creating, assigning, listing and deleting programs.

Creation always produces the canonical four-phase skeleton, either from
scratch or from a template. Status only changes through the guarded status
machine on Program; nothing here moves a program along on its own.
"""

import logging
from dataclasses import replace
from typing import Optional

from .documents import program_from_document, program_to_document
from .errors import NotFoundError, ValidationError
from .gateway import PROGRAMS, PersistenceGateway
from .models import PHASE_COUNT, Program, ProgramStatus, title_case
from .templates import (
    DEFAULT_BLOCKS_PER_PHASE,
    DEFAULT_EXERCISES_PER_BLOCK,
    TemplateCatalog,
    build_phases,
)

logger = logging.getLogger(__name__)


def _require(value: Optional[str], field_name: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{field_name} is required")
    return value.strip()


class ProgramBuilder:
    """
    Service for program lifecycle operations.

    Every method persists through the gateway and returns the stored
    Program, so ids and timestamps are always filled in.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        templates: TemplateCatalog,
        blocks_per_phase: int = DEFAULT_BLOCKS_PER_PHASE,
        exercises_per_block: int = DEFAULT_EXERCISES_PER_BLOCK,
    ) -> None:
        self._gateway = gateway
        self._templates = templates
        self._blocks_per_phase = blocks_per_phase
        self._exercises_per_block = exercises_per_block

    async def create_new(
        self,
        owner_id: str,
        athlete_id: str,
        title: str,
        created_by: Optional[str] = None,
        phase_count: int = PHASE_COUNT,
    ) -> Program:
        """
        Create a blank draft program for an athlete.

        phase_count is accepted for callers that still send it, but the
        skeleton always has four phases.
        """
        athlete_id = _require(athlete_id, "Athlete")
        title = _require(title, "Program title")

        if phase_count != PHASE_COUNT:
            logger.debug(
                "Ignoring requested phase count",
                extra={"requested": phase_count, "used": PHASE_COUNT}
            )

        program = Program(
            owner_id=owner_id,
            athlete_id=athlete_id,
            title=title_case(title),
            phases=build_phases(self._blocks_per_phase, self._exercises_per_block),
            status=ProgramStatus.DRAFT,
            created_by=created_by or owner_id,
        )
        return await self._save_new(program)

    async def assign_existing(
        self,
        owner_id: str,
        athlete_id: str,
        template_ref: str,
        created_by: Optional[str] = None,
        customization_notes: Optional[str] = None,
    ) -> Program:
        """Instantiate a template for an athlete and save it."""
        athlete_id = _require(athlete_id, "Athlete")
        template_ref = _require(template_ref, "Program template")

        program = await self._templates.instantiate(
            template_ref,
            athlete_id=athlete_id,
            owner_id=owner_id,
            created_by=created_by or owner_id,
            customization_notes=customization_notes,
        )
        return await self._save_new(program)

    async def get_program(self, owner_id: str, program_id: str) -> Program:
        doc = await self._gateway.get(PROGRAMS, owner_id, program_id)
        if doc is None:
            raise NotFoundError("program", program_id)
        return program_from_document(doc)

    async def list_programs(
        self,
        owner_id: Optional[str] = None,
        athlete_id: Optional[str] = None,
        status: Optional[ProgramStatus] = None,
    ) -> list[Program]:
        """
        Programs for an owner and/or an athlete, newest first.

        Pure read: status only filters, it never changes anything.
        """
        if not owner_id and not athlete_id:
            raise ValidationError("An owner or an athlete is required")

        where = {"athleteUid": athlete_id} if athlete_id else None
        docs = await self._gateway.list(PROGRAMS, owner_id or None, where)
        programs = [program_from_document(doc) for doc in docs]

        if status is not None:
            programs = [program for program in programs if program.status == status]
        return programs

    async def delete_program(self, owner_id: str, program_id: str) -> None:
        await self._gateway.delete(PROGRAMS, owner_id, program_id)
        logger.info(
            "Deleted program",
            extra={"owner_id": owner_id, "program_id": program_id}
        )

    async def transition_status(
        self,
        owner_id: str,
        program_id: str,
        target: ProgramStatus,
    ) -> Program:
        program = await self.get_program(owner_id, program_id)
        updated = program.transition_to(target)
        doc = await self._gateway.update(
            PROGRAMS, owner_id, program_id, {"status": updated.status.value}
        )

        logger.info(
            "Program status changed",
            extra={
                "program_id": program_id,
                "from": program.status.value,
                "to": target.value,
            }
        )
        return program_from_document(doc)

    async def assign_to_athlete(
        self,
        owner_id: str,
        program_id: str,
        athlete_id: str,
    ) -> Program:
        """
        Hand an existing program to an athlete.

        A draft becomes current; a program that is already current keeps
        its status. Completed or archived programs cannot be reassigned.
        """
        athlete_id = _require(athlete_id, "Athlete")
        program = await self.get_program(owner_id, program_id)

        if program.status != ProgramStatus.CURRENT:
            program = program.transition_to(ProgramStatus.CURRENT)
        program = replace(program, athlete_id=athlete_id)

        doc = await self._gateway.update(
            PROGRAMS,
            owner_id,
            program_id,
            {"athleteUid": program.athlete_id, "status": program.status.value},
        )

        logger.info(
            "Assigned program to athlete",
            extra={"program_id": program_id, "athlete_id": athlete_id}
        )
        return program_from_document(doc)

    async def _save_new(self, program: Program) -> Program:
        doc = await self._gateway.create(
            PROGRAMS, program.owner_id, program_to_document(program)
        )

        logger.info(
            "Created program",
            extra={
                "owner_id": program.owner_id,
                "program_id": doc.get("id"),
                "athlete_id": program.athlete_id,
                "template_id": program.template_id,
            }
        )
        return program_from_document(doc)
