"""
Persistence gateway interface.

The program engine reads and writes whole documents through this protocol
and never knows which store is behind it. Documents are scoped by an owner
id and keyed by a document id within a collection.

Failures are raised rather than returned in a result envelope:
- get() returns None when the document does not exist
- update() and delete() raise NotFoundError for a missing document
- any backend failure raises PersistenceError
"""

from typing import Any, Optional, Protocol


PROGRAMS = "programs"
EXERCISE_CATEGORIES = "exerciseCategories"
PROGRAM_TEMPLATES = "programTemplates"


class PersistenceGateway(Protocol):
    """Async document store scoped by owner."""

    async def get(
        self,
        collection: str,
        owner_id: str,
        doc_id: str,
    ) -> Optional[dict[str, Any]]:
        """Return the document with "id", "createdAt" and "updatedAt" set."""
        ...

    async def list(
        self,
        collection: str,
        owner_id: Optional[str] = None,
        where: Optional[dict[str, Any]] = None,
    ) -> list[dict[str, Any]]:
        """
        Return documents in a collection, newest first.

        owner_id restricts to one owner; where keeps only documents whose
        top-level fields equal the given values.
        """
        ...

    async def create(
        self,
        collection: str,
        owner_id: str,
        data: dict[str, Any],
    ) -> dict[str, Any]:
        """Store a new document under a generated id and return it."""
        ...

    async def update(
        self,
        collection: str,
        owner_id: str,
        doc_id: str,
        changes: dict[str, Any],
    ) -> dict[str, Any]:
        """Replace the given top-level fields and return the stored document."""
        ...

    async def delete(
        self,
        collection: str,
        owner_id: str,
        doc_id: str,
    ) -> None:
        ...
