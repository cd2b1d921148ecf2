"""
Exercise library API endpoints.

Each coach keeps their own categories of exercise names. These feed the
category and exercise choices of program rows; programs copy the names
when a row is saved, so editing the library never rewrites programs.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from ...core.programs.models import ExerciseCategory
from ..dependencies import AuthenticatedUser, ExerciseLibraryDep, OwnerId

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class CategoryResponse(BaseModel):
    category_id: str
    name: str
    exercises: list[str]
    created_by: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CategoryListResponse(BaseModel):
    categories: list[CategoryResponse]
    total: int


class CreateCategoryRequest(BaseModel):
    name: str = Field(description="Category name, stored in title case", min_length=1, max_length=100)


class AddExerciseRequest(BaseModel):
    name: str = Field(description="Exercise name, stored in title case", min_length=1, max_length=100)


def _category_response(category: ExerciseCategory) -> CategoryResponse:
    return CategoryResponse(
        category_id=category.id,
        name=category.name,
        exercises=list(category.exercises),
        created_by=category.created_by,
        created_at=category.created_at,
        updated_at=category.updated_at,
    )


def _list_response(categories: list[ExerciseCategory]) -> CategoryListResponse:
    return CategoryListResponse(
        categories=[_category_response(category) for category in categories],
        total=len(categories),
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=CategoryListResponse,
    status_code=status.HTTP_200_OK,
    summary="List exercise categories",
    description="All of the caller's categories, sorted by name",
)
async def list_categories(
    owner_id: OwnerId,
    api_key: AuthenticatedUser,
    library: ExerciseLibraryDep,
) -> CategoryListResponse:
    return _list_response(await library.list_categories(owner_id))


@router.post(
    "",
    response_model=CategoryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create exercise category",
)
async def create_category(
    request: CreateCategoryRequest,
    owner_id: OwnerId,
    api_key: AuthenticatedUser,
    library: ExerciseLibraryDep,
) -> CategoryResponse:
    category = await library.create_category(owner_id, request.name)
    return _category_response(category)


@router.post(
    "/seed",
    response_model=CategoryListResponse,
    status_code=status.HTTP_200_OK,
    summary="Seed sample categories",
    description="Add the starter categories. Does nothing if the caller already has categories.",
)
async def seed_categories(
    owner_id: OwnerId,
    api_key: AuthenticatedUser,
    library: ExerciseLibraryDep,
) -> CategoryListResponse:
    return _list_response(await library.seed_sample_categories(owner_id))


@router.get(
    "/{category_id}",
    response_model=CategoryResponse,
    status_code=status.HTTP_200_OK,
    summary="Get exercise category",
)
async def get_category(
    category_id: str,
    owner_id: OwnerId,
    api_key: AuthenticatedUser,
    library: ExerciseLibraryDep,
) -> CategoryResponse:
    return _category_response(await library.get_category(owner_id, category_id))


@router.delete(
    "/{category_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete exercise category",
    description="Programs that already use the category keep their copied names",
)
async def delete_category(
    category_id: str,
    owner_id: OwnerId,
    api_key: AuthenticatedUser,
    library: ExerciseLibraryDep,
) -> None:
    await library.delete_category(owner_id, category_id)


@router.post(
    "/{category_id}/exercises",
    response_model=CategoryResponse,
    status_code=status.HTTP_200_OK,
    summary="Add exercise to category",
    description="Adding a name the category already has changes nothing",
)
async def add_exercise(
    category_id: str,
    request: AddExerciseRequest,
    owner_id: OwnerId,
    api_key: AuthenticatedUser,
    library: ExerciseLibraryDep,
) -> CategoryResponse:
    category = await library.add_exercise(owner_id, category_id, request.name)
    return _category_response(category)


@router.delete(
    "/{category_id}/exercises/{exercise_name}",
    response_model=CategoryResponse,
    status_code=status.HTTP_200_OK,
    summary="Remove exercise from category",
)
async def delete_exercise(
    category_id: str,
    exercise_name: str,
    owner_id: OwnerId,
    api_key: AuthenticatedUser,
    library: ExerciseLibraryDep,
) -> CategoryResponse:
    category = await library.delete_exercise(owner_id, category_id, exercise_name)
    return _category_response(category)
