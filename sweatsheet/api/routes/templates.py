"""
Program template API endpoints.

Built-in templates ("builtin:<slug>") are the same for everyone. Custom
templates ("custom:<id>") belong to the coach who saved them. Both are
listed and previewed through one catalog.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from ...core.programs.models import ProgramTemplate
from ..dependencies import AuthenticatedUser, OwnerId, TemplateCatalogDep
from .programs import PhaseModel, phases_from_models, phases_to_models

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class TemplateSummary(BaseModel):
    template_id: str = Field(description="Namespaced template reference")
    name: str
    description: str
    focus: str
    difficulty: str
    is_custom: bool
    created_at: datetime | None = None


class TemplateListResponse(BaseModel):
    templates: list[TemplateSummary]
    total: int


class TemplateDetailResponse(TemplateSummary):
    """Template with its full four-phase skeleton."""
    phases: list[PhaseModel]


class SaveTemplateRequest(BaseModel):
    """
    Request to save a custom template.

    Without phases, the template gets the standard empty skeleton.
    """
    name: str = Field(min_length=1, max_length=200)
    description: str = Field("", max_length=2000)
    focus: str = Field("", max_length=200)
    difficulty: str = Field("", max_length=50)
    phases: list[PhaseModel] | None = Field(None, description="Exactly four phases when given")


def _summary(template: ProgramTemplate) -> TemplateSummary:
    return TemplateSummary(
        template_id=template.id,
        name=template.name,
        description=template.description,
        focus=template.focus,
        difficulty=template.difficulty,
        is_custom=template.is_custom,
        created_at=template.created_at,
    )


def _detail(template: ProgramTemplate) -> TemplateDetailResponse:
    return TemplateDetailResponse(
        **_summary(template).model_dump(),
        phases=phases_to_models(template.phases),
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=TemplateListResponse,
    status_code=status.HTTP_200_OK,
    summary="List templates",
    description="Built-in templates followed by the caller's custom templates",
)
async def list_templates(
    owner_id: OwnerId,
    api_key: AuthenticatedUser,
    catalog: TemplateCatalogDep,
) -> TemplateListResponse:
    templates = await catalog.list_templates(owner_id)
    return TemplateListResponse(
        templates=[_summary(template) for template in templates],
        total=len(templates),
    )


@router.get(
    "/{template_id}",
    response_model=TemplateDetailResponse,
    status_code=status.HTTP_200_OK,
    summary="Preview template",
)
async def get_template(
    template_id: str,
    owner_id: OwnerId,
    api_key: AuthenticatedUser,
    catalog: TemplateCatalogDep,
) -> TemplateDetailResponse:
    return _detail(await catalog.get_template(owner_id, template_id))


@router.post(
    "",
    response_model=TemplateDetailResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Save custom template",
)
async def save_template(
    request: SaveTemplateRequest,
    owner_id: OwnerId,
    api_key: AuthenticatedUser,
    catalog: TemplateCatalogDep,
) -> TemplateDetailResponse:
    template = await catalog.save_template(
        owner_id,
        request.name,
        description=request.description,
        focus=request.focus,
        difficulty=request.difficulty,
        phases=phases_from_models(request.phases) if request.phases is not None else None,
    )
    return _detail(template)


@router.delete(
    "/{template_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete custom template",
    description="Built-in templates cannot be deleted",
)
async def delete_template(
    template_id: str,
    owner_id: OwnerId,
    api_key: AuthenticatedUser,
    catalog: TemplateCatalogDep,
) -> None:
    await catalog.delete_template(owner_id, template_id)
