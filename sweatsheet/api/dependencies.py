"""
FastAPI dependency injection.

Dependencies provide instances of services, gateways, and configuration
to route handlers. Using dependency injection means:
- Routes don't instantiate their own dependencies (easier to test)
- Dependencies can be overridden in tests
- Configuration is centralized
- Connection lifecycle is managed per request

Each dependency is a function that FastAPI calls when needed.
"""

import logging
from typing import Annotated, Generator, Optional

from fastapi import Depends, Header, HTTPException, Security, status
from fastapi.security import APIKeyHeader

from ..config.settings import Settings, get_settings
from ..core.programs.builder import ProgramBuilder
from ..core.programs.gateway import PersistenceGateway
from ..core.programs.library import ExerciseLibrary
from ..core.programs.templates import TemplateCatalog, create_template_catalog
from ..infrastructure.snowflake.client import (
    MockSnowflakeConnection,
    create_snowflake_connection,
)
from ..infrastructure.snowflake.repositories.documents import (
    SnowflakeConfig,
    SnowflakeDocumentGateway,
)

logger = logging.getLogger(__name__)

# API Key security scheme
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)

# Global mock connection (shared across requests so data persists)
_mock_snowflake_connection: Optional[MockSnowflakeConnection] = None


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

async def verify_api_key(
    settings: Annotated[Settings, Depends(get_settings)],
    api_key: str = Security(api_key_header),
) -> str:
    """
    Validate API key from request header.

    Raises 403 if key is invalid or missing.
    """
    if not api_key:
        logger.warning("Request missing API key")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="API key required. Provide X-API-Key header.",
        )

    if api_key not in settings.api_keys_list:
        logger.warning(
            "Invalid API key attempt",
            extra={"key_prefix": api_key[:8] if api_key else ""}
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key",
        )

    return api_key


async def get_owner_id(
    x_user_id: Annotated[Optional[str], Header()] = None,
) -> str:
    """
    The signed-in coach whose documents a request works on.

    Sign-in itself happens upstream; the caller forwards the user id in
    the X-User-Id header. Raises 401 if it is missing.
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User id required. Provide X-User-Id header.",
        )
    return x_user_id.strip()


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

def get_mock_connection() -> MockSnowflakeConnection:
    """Shared in-memory connection used in mock mode."""
    global _mock_snowflake_connection

    if _mock_snowflake_connection is None:
        _mock_snowflake_connection = MockSnowflakeConnection()
        logger.info("Created shared mock Snowflake connection")
    return _mock_snowflake_connection


def snowflake_config_from_settings(settings: Settings) -> SnowflakeConfig:
    return SnowflakeConfig(
        account=settings.snowflake_account,
        user=settings.snowflake_user,
        password=settings.snowflake_password or None,
        private_key_path=settings.snowflake_private_key_path,
        private_key_base64=settings.snowflake_private_key_base64,
        database=settings.snowflake_database,
        schema=settings.snowflake_schema,
        warehouse=settings.snowflake_warehouse,
        role=settings.snowflake_role,
    )


def get_gateway(
    settings: Annotated[Settings, Depends(get_settings)],
) -> Generator[PersistenceGateway, None, None]:
    """
    Provide the document gateway with a database connection.

    This is a generator function (yields instead of returns) because
    we need to manage the connection lifecycle:
    1. Create connection
    2. Create gateway
    3. Yield gateway (FastAPI injects it)
    4. Close connection (cleanup after request)

    In mock mode, we reuse the same connection across requests
    so that data persists during the testing session.
    """
    if settings.snowflake_mock_mode:
        logger.debug("Using shared mock Snowflake connection")
        yield SnowflakeDocumentGateway(get_mock_connection())
    else:
        config = snowflake_config_from_settings(settings)
        with create_snowflake_connection(config=config) as conn:
            logger.debug("Created document gateway with Snowflake connection")
            yield SnowflakeDocumentGateway(conn)


# ---------------------------------------------------------------------------
# Service Dependencies
# ---------------------------------------------------------------------------

def get_exercise_library(
    gateway: Annotated[PersistenceGateway, Depends(get_gateway)],
) -> ExerciseLibrary:
    return ExerciseLibrary(gateway)


def get_template_catalog(
    settings: Annotated[Settings, Depends(get_settings)],
    gateway: Annotated[PersistenceGateway, Depends(get_gateway)],
) -> TemplateCatalog:
    return create_template_catalog(
        gateway,
        blocks_per_phase=settings.program_blocks_per_phase,
        exercises_per_block=settings.program_exercises_per_block,
    )


def get_program_builder(
    settings: Annotated[Settings, Depends(get_settings)],
    gateway: Annotated[PersistenceGateway, Depends(get_gateway)],
    templates: Annotated[TemplateCatalog, Depends(get_template_catalog)],
) -> ProgramBuilder:
    """
    Provide a ProgramBuilder for the request.

    Builders are stateless, so we create a new instance per request.
    FastAPI caches get_gateway within a request, so the builder and the
    template catalog share one connection.
    """
    return ProgramBuilder(
        gateway,
        templates,
        blocks_per_phase=settings.program_blocks_per_phase,
        exercises_per_block=settings.program_exercises_per_block,
    )


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
AuthenticatedUser = Annotated[str, Depends(verify_api_key)]
OwnerId = Annotated[str, Depends(get_owner_id)]
GatewayDep = Annotated[PersistenceGateway, Depends(get_gateway)]
ExerciseLibraryDep = Annotated[ExerciseLibrary, Depends(get_exercise_library)]
TemplateCatalogDep = Annotated[TemplateCatalog, Depends(get_template_catalog)]
ProgramBuilderDep = Annotated[ProgramBuilder, Depends(get_program_builder)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
