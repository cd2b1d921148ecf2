"""
Snowflake database connection management.

Provides connection factory and context manager for Snowflake operations.
Includes mock mode with in-memory storage for local development.

Using the gateway pattern means most code never touches this module
directly - it goes through SnowflakeDocumentGateway which handles the
translation between documents and database rows.
"""

import base64
import itertools
import logging
from contextlib import contextmanager
from typing import Generator, Optional

from .repositories.documents import SnowflakeConfig, SnowflakeConnection

logger = logging.getLogger(__name__)


class SnowflakeConnectionError(Exception):
    """Raised when Snowflake connection fails."""
    pass


def _private_key_to_der(pem_bytes: bytes) -> bytes:
    """
    Convert a PEM private key to the DER bytes snowflake-connector expects.

    Snowflake requires the private key as a bytes object, not a file path.
    """
    from cryptography.hazmat.backends import default_backend
    from cryptography.hazmat.primitives import serialization

    private_key = serialization.load_pem_private_key(
        pem_bytes,
        password=None,  # No password on the key
        backend=default_backend()
    )

    return private_key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption()
    )


def _load_private_key(key_path: str) -> bytes:
    """Load private key from file for key-pair authentication."""
    with open(key_path, 'rb') as key_file:
        return _private_key_to_der(key_file.read())


def _decode_private_key(key_base64: str) -> bytes:
    """
    Load private key from a base64-encoded PEM string.

    Hosted environments usually can't mount a key file, so the PEM is
    passed through an environment variable instead.
    """
    return _private_key_to_der(base64.b64decode(key_base64))


@contextmanager
def get_snowflake_connection(config: SnowflakeConfig) -> Generator[SnowflakeConnection, None, None]:
    """
    Provide Snowflake connection with automatic cleanup.

    Supports both password and key-pair authentication:
    - If private_key_path or private_key_base64 is set, uses key-pair auth
    - Otherwise, uses password auth

    Usage:
        with get_snowflake_connection(config) as conn:
            gateway = SnowflakeDocumentGateway(conn)
    """
    try:
        import snowflake.connector
    except ImportError:
        raise ImportError(
            "snowflake-connector-python is required. "
            "Install with: pip install snowflake-connector-python"
        )

    conn = None
    try:
        connect_params = {
            'account': config.account,
            'user': config.user,
            'database': config.database,
            'schema': config.schema,
            'warehouse': config.warehouse,
            'role': config.role,
            'client_session_keep_alive': True,
        }

        if config.private_key_path:
            logger.info("Using key-pair authentication for Snowflake")
            connect_params['private_key'] = _load_private_key(config.private_key_path)
        elif config.private_key_base64:
            logger.info("Using key-pair authentication for Snowflake (inline key)")
            connect_params['private_key'] = _decode_private_key(config.private_key_base64)
        elif config.password:
            logger.info("Using password authentication for Snowflake")
            connect_params['password'] = config.password
        else:
            raise SnowflakeConnectionError(
                "Either password or a private key must be provided"
            )

        conn = snowflake.connector.connect(**connect_params)

        logger.debug(
            "Established Snowflake connection",
            extra={
                "account": config.account,
                "database": config.database,
                "schema": config.schema,
            }
        )

    except SnowflakeConnectionError:
        raise

    except snowflake.connector.errors.DatabaseError as e:
        logger.error(
            "Snowflake connection failed",
            extra={"error": str(e), "account": config.account}
        )
        raise SnowflakeConnectionError(f"Database connection failed: {e}") from e

    except Exception as e:
        logger.error(
            "Unexpected error connecting to Snowflake",
            extra={"error": str(e)}
        )
        raise SnowflakeConnectionError(f"Connection error: {e}") from e

    try:
        yield conn
    finally:
        try:
            conn.close()
            logger.debug("Closed Snowflake connection")
        except Exception as e:
            logger.warning(
                "Error closing Snowflake connection",
                extra={"error": str(e)}
            )


# ---------------------------------------------------------------------------
# Mock Connection for Local Development
# ---------------------------------------------------------------------------

class MockSnowflakeCursor:
    """
    Mock Snowflake cursor for testing.

    Implements just enough of the cursor interface to support
    SnowflakeDocumentGateway without a real database. Queries are
    recognized by pattern matching, and bodies are kept as JSON strings
    the way the real connector returns VARIANT columns.
    """

    def __init__(self, connection: "MockSnowflakeConnection") -> None:
        self._connection = connection
        self._storage = connection._storage
        self._results: list = []
        self._rowcount: int = 0

    def execute(self, query: str, params: Optional[tuple] = None) -> 'MockSnowflakeCursor':
        """Execute a query against mock storage."""
        logger.debug(
            "Mock cursor execute",
            extra={"query": query.strip()[:100]}
        )

        query_upper = query.upper().strip()
        self._results = []
        self._rowcount = 0

        if query_upper.startswith('CREATE'):
            return self

        if 'MERGE INTO' in query_upper or query_upper.startswith('DELETE'):
            if self._connection._writes_fail:
                raise RuntimeError("Mock Snowflake write failure")
        elif self._connection._reads_fail:
            raise RuntimeError("Mock Snowflake read failure")

        if 'MERGE INTO' in query_upper:
            self._handle_merge(params)
        elif query_upper.startswith('SELECT'):
            self._handle_select(params)
        elif query_upper.startswith('DELETE'):
            self._handle_delete(params)

        return self

    def _handle_merge(self, params: tuple) -> None:
        """Upsert one document row."""
        collection, doc_id, owner_id, body, updated_at = params[:5]
        created_at = params[9]
        key = (collection, doc_id)

        existing = self._storage.get(key)
        if existing:
            existing.update(owner_id=owner_id, body=body, updated_at=updated_at)
        else:
            self._storage[key] = {
                'doc_id': doc_id,
                'owner_id': owner_id,
                'body': body,
                'created_at': created_at,
                'updated_at': updated_at,
                'seq': next(self._connection._sequence),
            }
        self._rowcount = 1

    def _handle_select(self, params: tuple) -> None:
        """
        Select by (collection), (collection, owner) or (collection, owner, id).

        Listings come back newest first; rows created in the same instant
        keep their insertion order reversed.
        """
        collection = params[0]
        owner_id = params[1] if len(params) > 1 else None
        doc_id = params[2] if len(params) > 2 else None

        rows = [
            row for (row_collection, _), row in self._storage.items()
            if row_collection == collection
            and (owner_id is None or row['owner_id'] == owner_id)
            and (doc_id is None or row['doc_id'] == doc_id)
        ]
        rows.sort(key=lambda row: (row['created_at'], row['seq']), reverse=True)

        self._results = [
            (row['doc_id'], row['owner_id'], row['body'], row['created_at'], row['updated_at'])
            for row in rows
        ]

    def _handle_delete(self, params: tuple) -> None:
        collection, owner_id, doc_id = params
        row = self._storage.get((collection, doc_id))
        if row and row['owner_id'] == owner_id:
            del self._storage[(collection, doc_id)]
            self._rowcount = 1

    def fetchone(self):
        """Fetch one row from results."""
        if not self._results:
            return None
        return self._results[0]

    def fetchall(self) -> list:
        """Fetch all rows from results."""
        return self._results

    def close(self) -> None:
        """Close cursor (no-op for mock)."""
        pass

    @property
    def rowcount(self) -> int:
        """Return number of rows affected."""
        return self._rowcount


class MockSnowflakeConnection:
    """
    Mock Snowflake connection for local development.

    Stores documents in memory keyed by (collection, doc_id).
    This enables testing the full API without a real database.

    Not suitable for production, but perfect for:
    - Local development
    - Unit tests
    - CI/CD environments
    """

    def __init__(self) -> None:
        self._storage: dict[tuple[str, str], dict] = {}
        self._sequence = itertools.count()
        self._reads_fail = False
        self._writes_fail = False

        logger.info("Initialized mock Snowflake connection (in-memory)")

    def cursor(self) -> MockSnowflakeCursor:
        """Create a mock cursor."""
        return MockSnowflakeCursor(self)

    def commit(self) -> None:
        """Commit transaction (no-op for mock, always auto-commits)."""
        logger.debug("Mock connection commit")

    def rollback(self) -> None:
        """Rollback transaction (no-op for mock)."""
        logger.debug("Mock connection rollback")

    def close(self) -> None:
        """Close connection (no-op for mock)."""
        logger.debug("Mock connection close")

    # Helper methods for testing
    def _fail_writes(self, enabled: bool = True) -> None:
        """Make every MERGE and DELETE raise (for failure-path tests)."""
        self._writes_fail = enabled

    def _fail_reads(self, enabled: bool = True) -> None:
        """Make every SELECT raise (for failure-path tests)."""
        self._reads_fail = enabled

    def _document_count(self, collection: str) -> int:
        """Count stored documents in a collection (for test assertions)."""
        return sum(1 for row_collection, _ in self._storage if row_collection == collection)

    def _clear(self) -> None:
        """Clear all mock storage (for test cleanup)."""
        self._storage.clear()
        self._reads_fail = False
        self._writes_fail = False


@contextmanager
def get_mock_snowflake_connection() -> Generator[MockSnowflakeConnection, None, None]:
    """
    Provide mock Snowflake connection for local development.

    Returns a connection that stores data in memory. Perfect for
    testing and local development without provisioning Snowflake.
    """
    conn = MockSnowflakeConnection()
    try:
        yield conn
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

@contextmanager
def create_snowflake_connection(
    config: Optional[SnowflakeConfig] = None,
    mock_mode: bool = False,
) -> Generator[SnowflakeConnection, None, None]:
    """
    Create Snowflake connection based on configuration.

    Factory function that returns either a real or mock connection
    depending on mock_mode flag.

    Args:
        config: Snowflake configuration (required if not mock_mode)
        mock_mode: If True, return mock connection for testing

    Yields:
        SnowflakeConnection implementation (real or mock)
    """
    if mock_mode:
        with get_mock_snowflake_connection() as conn:
            yield conn
    else:
        if config is None:
            raise ValueError("config is required when not in mock mode")

        with get_snowflake_connection(config) as conn:
            yield conn
