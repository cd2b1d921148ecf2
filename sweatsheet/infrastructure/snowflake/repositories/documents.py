"""
Snowflake-backed document store for programs, categories and templates.

This module implements the PersistenceGateway protocol on top of a single
table. Every record is a JSON document held in a VARIANT column and keyed by
(collection, doc_id), with the owner id as a separate column so listings can
be scoped without touching the JSON.

The engine never writes SQL; it asks the gateway for documents and the
gateway translates to and from rows.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional, Protocol
from uuid import uuid4

from sweatsheet.core.programs.errors import NotFoundError, PersistenceError


logger = logging.getLogger(__name__)


TABLE_NAME = "program_documents"

SCHEMA_SQL = f"""
    CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
        collection VARCHAR NOT NULL,
        doc_id VARCHAR NOT NULL,
        owner_id VARCHAR NOT NULL,
        body VARIANT,
        created_at TIMESTAMP_TZ NOT NULL,
        updated_at TIMESTAMP_TZ NOT NULL,
        PRIMARY KEY (collection, doc_id)
    )
"""

_SELECT_COLUMNS = "doc_id, owner_id, body, created_at, updated_at"

# Keys the gateway manages itself; never stored inside the body
_RESERVED_KEYS = ("id", "createdAt", "updatedAt")


class SnowflakeConnection(Protocol):
    """
    Protocol for Snowflake connections.

    Using a protocol means tests can provide a mock without
    importing the actual snowflake-connector-python.
    """

    def cursor(self): ...
    def commit(self) -> None: ...


@dataclass
class SnowflakeConfig:
    """Configuration for Snowflake connection."""
    account: str
    user: str
    password: Optional[str] = None
    private_key_path: Optional[str] = None
    private_key_base64: Optional[str] = None
    database: str = "SWEATSHEET"
    schema: str = "PROGRAMS"
    warehouse: str = "COMPUTE_WH"
    role: Optional[str] = None


class SnowflakeDocumentGateway:
    """
    Document store over one Snowflake table.

    Methods are async to match the PersistenceGateway protocol even though
    the connector is synchronous, so a truly async store can replace this
    one without touching the engine.

    update() replaces top-level fields only, the same way the engine
    always writes a whole "phases" array rather than a single exercise.
    """

    def __init__(self, connection: SnowflakeConnection) -> None:
        self._conn = connection

    def ensure_schema(self) -> None:
        """Create the documents table if it does not exist."""
        self._execute("create schema", SCHEMA_SQL, None)

    async def get(
        self,
        collection: str,
        owner_id: str,
        doc_id: str,
    ) -> Optional[dict[str, Any]]:
        row = self._execute(
            "load document",
            f"""
                SELECT {_SELECT_COLUMNS}
                FROM {TABLE_NAME}
                WHERE collection = %s AND owner_id = %s AND doc_id = %s
            """,
            (collection, owner_id, doc_id),
            fetch="one",
        )
        return self._row_to_document(row) if row else None

    async def list(
        self,
        collection: str,
        owner_id: Optional[str] = None,
        where: Optional[dict[str, Any]] = None,
    ) -> list[dict[str, Any]]:
        if owner_id is not None:
            rows = self._execute(
                "list documents",
                f"""
                    SELECT {_SELECT_COLUMNS}
                    FROM {TABLE_NAME}
                    WHERE collection = %s AND owner_id = %s
                    ORDER BY created_at DESC
                """,
                (collection, owner_id),
                fetch="all",
            )
        else:
            rows = self._execute(
                "list documents",
                f"""
                    SELECT {_SELECT_COLUMNS}
                    FROM {TABLE_NAME}
                    WHERE collection = %s
                    ORDER BY created_at DESC
                """,
                (collection,),
                fetch="all",
            )

        documents = [self._row_to_document(row) for row in rows]

        # Field filters run here rather than in SQL so no path index is needed
        if where:
            documents = [
                doc for doc in documents
                if all(doc.get(key) == value for key, value in where.items())
            ]
        return documents

    async def create(
        self,
        collection: str,
        owner_id: str,
        data: dict[str, Any],
    ) -> dict[str, Any]:
        doc_id = str(uuid4())
        now = datetime.now(timezone.utc)
        body = self._strip_reserved(data)

        self._upsert(collection, doc_id, owner_id, body, created_at=now, updated_at=now)

        logger.debug(
            "Created document",
            extra={"collection": collection, "doc_id": doc_id, "owner_id": owner_id}
        )
        return {**body, "id": doc_id, "createdAt": now, "updatedAt": now}

    async def update(
        self,
        collection: str,
        owner_id: str,
        doc_id: str,
        changes: dict[str, Any],
    ) -> dict[str, Any]:
        existing = await self.get(collection, owner_id, doc_id)
        if existing is None:
            raise NotFoundError(collection, doc_id)

        now = datetime.now(timezone.utc)
        body = {**self._strip_reserved(existing), **self._strip_reserved(changes)}

        self._upsert(
            collection, doc_id, owner_id, body,
            created_at=existing["createdAt"], updated_at=now,
        )
        return {**body, "id": doc_id, "createdAt": existing["createdAt"], "updatedAt": now}

    async def delete(
        self,
        collection: str,
        owner_id: str,
        doc_id: str,
    ) -> None:
        deleted = self._execute(
            "delete document",
            f"""
                DELETE FROM {TABLE_NAME}
                WHERE collection = %s AND owner_id = %s AND doc_id = %s
            """,
            (collection, owner_id, doc_id),
        )
        if not deleted:
            raise NotFoundError(collection, doc_id)

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _upsert(
        self,
        collection: str,
        doc_id: str,
        owner_id: str,
        body: dict[str, Any],
        created_at: datetime,
        updated_at: datetime,
    ) -> None:
        """Insert or replace one document."""
        body_json = json.dumps(body)
        self._execute(
            "save document",
            f"""
                MERGE INTO {TABLE_NAME} AS target
                USING (SELECT %s AS collection, %s AS doc_id) AS source
                ON target.collection = source.collection AND target.doc_id = source.doc_id
                WHEN MATCHED THEN UPDATE SET
                    owner_id = %s,
                    body = PARSE_JSON(%s),
                    updated_at = %s
                WHEN NOT MATCHED THEN INSERT (
                    collection, doc_id, owner_id, body, created_at, updated_at
                ) VALUES (%s, %s, %s, PARSE_JSON(%s), %s, %s)
            """,
            (
                collection, doc_id,
                owner_id, body_json, updated_at,
                collection, doc_id, owner_id, body_json, created_at, updated_at,
            ),
        )

    def _execute(
        self,
        action: str,
        query: str,
        params: Optional[tuple],
        fetch: Optional[str] = None,
    ):
        """
        Run one statement and commit.

        Returns the fetched row(s) when fetch is "one" or "all", otherwise
        the affected row count. Driver errors become PersistenceError.
        """
        cursor = self._conn.cursor()

        try:
            cursor.execute(query, params)
            if fetch == "one":
                result = cursor.fetchone()
            elif fetch == "all":
                result = cursor.fetchall()
            else:
                result = cursor.rowcount
                self._conn.commit()
            return result

        except Exception as e:
            logger.error(
                "Document store operation failed",
                extra={"action": action, "error": str(e)}
            )
            raise PersistenceError(f"Failed to {action}: {e}") from e
        finally:
            cursor.close()

    def _row_to_document(self, row) -> dict[str, Any]:
        body = self._parse_variant_json(row[2]) or {}
        if not isinstance(body, dict):
            logger.warning(
                "Document body is not an object",
                extra={"doc_id": row[0], "type": type(body).__name__}
            )
            body = {}
        return {**body, "id": row[0], "createdAt": row[3], "updatedAt": row[4]}

    @staticmethod
    def _strip_reserved(data: dict[str, Any]) -> dict[str, Any]:
        return {key: value for key, value in data.items() if key not in _RESERVED_KEYS}

    def _parse_variant_json(self, variant_data):
        """
        Parse Snowflake VARIANT data that might be a string or already parsed.

        The connector returns VARIANT as a JSON string, other drivers may
        hand back a parsed dict, and an empty column comes back as None.
        """
        if not variant_data:
            return None

        if isinstance(variant_data, str):
            try:
                return json.loads(variant_data)
            except json.JSONDecodeError as e:
                logger.error(
                    "Failed to parse VARIANT JSON string",
                    extra={"variant_data": variant_data[:100], "error": str(e)}
                )
                return None

        return variant_data
