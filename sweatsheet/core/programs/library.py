"""
Exercise library: owner-scoped categories of exercise names.

Categories feed the category and exercise dropdowns of the selection state
machine. Programs copy category and exercise names by value when a row is
committed, so nothing here ever reaches into a Program.
"""

import logging
from typing import Optional

from .documents import category_from_document, category_to_document
from .errors import NotFoundError, ValidationError
from .gateway import EXERCISE_CATEGORIES, PersistenceGateway
from .models import ExerciseCategory, title_case

logger = logging.getLogger(__name__)


SAMPLE_CATEGORIES: dict[str, list[str]] = {
    "Strength Training": ["Bench Press", "Squats", "Deadlifts", "Overhead Press", "Rows"],
    "Cardio": ["Running", "Cycling", "Rowing", "Swimming", "Jump Rope"],
    "Flexibility": ["Stretching", "Yoga", "Mobility Work", "Foam Rolling"],
}


class ExerciseLibrary:
    """
    Service for managing exercise categories.

    Names are normalized to title case on the way in. Exercise lists are
    kept free of exact duplicates; "Squats" and "squats" normalize to the
    same name so they collide as well.
    """

    def __init__(self, gateway: PersistenceGateway) -> None:
        self._gateway = gateway

    async def create_category(
        self,
        owner_id: str,
        name: str,
        created_by: Optional[str] = None,
    ) -> ExerciseCategory:
        normalized = title_case(name or "")
        if not normalized:
            raise ValidationError("Category name is required")

        category = ExerciseCategory(
            owner_id=owner_id,
            name=normalized,
            created_by=created_by or owner_id,
        )
        doc = await self._gateway.create(
            EXERCISE_CATEGORIES, owner_id, category_to_document(category)
        )

        logger.info(
            "Created exercise category",
            extra={"owner_id": owner_id, "category_id": doc.get("id"), "name": normalized}
        )
        return self._require(doc, doc.get("id"))

    async def get_category(self, owner_id: str, category_id: str) -> ExerciseCategory:
        doc = await self._gateway.get(EXERCISE_CATEGORIES, owner_id, category_id)
        return self._require(doc, category_id)

    async def add_exercise(
        self,
        owner_id: str,
        category_id: str,
        name: str,
    ) -> ExerciseCategory:
        """Append an exercise name unless the category already has it."""
        normalized = title_case(name or "")
        if not normalized:
            raise ValidationError("Exercise name is required")

        category = await self.get_category(owner_id, category_id)
        if category.has_exercise(normalized):
            logger.debug(
                "Exercise already in category",
                extra={"category_id": category_id, "exercise": normalized}
            )
            return category

        doc = await self._gateway.update(
            EXERCISE_CATEGORIES,
            owner_id,
            category_id,
            {"exercises": [*category.exercises, normalized]},
        )
        return self._require(doc, category_id)

    async def delete_exercise(
        self,
        owner_id: str,
        category_id: str,
        name: str,
    ) -> ExerciseCategory:
        """Remove an exact name match. Unknown names are ignored."""
        category = await self.get_category(owner_id, category_id)
        if not category.has_exercise(name):
            return category

        doc = await self._gateway.update(
            EXERCISE_CATEGORIES,
            owner_id,
            category_id,
            {"exercises": [ex for ex in category.exercises if ex != name]},
        )
        return self._require(doc, category_id)

    async def delete_category(self, owner_id: str, category_id: str) -> None:
        await self._gateway.delete(EXERCISE_CATEGORIES, owner_id, category_id)
        logger.info(
            "Deleted exercise category",
            extra={"owner_id": owner_id, "category_id": category_id}
        )

    async def list_categories(self, owner_id: str) -> list[ExerciseCategory]:
        """All usable categories for the owner, sorted by name."""
        docs = await self._gateway.list(EXERCISE_CATEGORIES, owner_id)
        categories = [
            category
            for category in (category_from_document(doc) for doc in docs)
            if category is not None
        ]
        return sorted(categories, key=lambda category: category.name.lower())

    async def seed_sample_categories(
        self,
        owner_id: str,
        created_by: Optional[str] = None,
    ) -> list[ExerciseCategory]:
        """
        Give a new owner a starter library.

        Does nothing when the owner already has categories.
        """
        existing = await self.list_categories(owner_id)
        if existing:
            return existing

        for name, exercises in SAMPLE_CATEGORIES.items():
            category = ExerciseCategory(
                owner_id=owner_id,
                name=name,
                exercises=list(exercises),
                created_by=created_by or owner_id,
            )
            await self._gateway.create(
                EXERCISE_CATEGORIES, owner_id, category_to_document(category)
            )

        logger.info(
            "Seeded sample exercise categories",
            extra={"owner_id": owner_id, "count": len(SAMPLE_CATEGORIES)}
        )
        return await self.list_categories(owner_id)

    @staticmethod
    def _require(doc: Optional[dict], category_id: Optional[str]) -> ExerciseCategory:
        category = category_from_document(doc) if doc else None
        if category is None:
            raise NotFoundError("exercise category", category_id)
        return category
