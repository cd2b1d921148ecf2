"""
Shared fixtures for the program engine tests.

Everything runs against the in-memory MockSnowflakeConnection through the
real SnowflakeDocumentGateway, so the SQL translation is exercised too.
Async code is driven with asyncio.run inside plain sync tests.
"""

import asyncio

import pytest

from sweatsheet.core.programs.builder import ProgramBuilder
from sweatsheet.core.programs.library import ExerciseLibrary
from sweatsheet.core.programs.templates import create_template_catalog
from sweatsheet.infrastructure.snowflake.client import MockSnowflakeConnection
from sweatsheet.infrastructure.snowflake.repositories.documents import (
    SnowflakeDocumentGateway,
)


OWNER = "coach-1"
OTHER_OWNER = "coach-2"


def run(coro):
    """Run a coroutine to completion on a fresh event loop."""
    return asyncio.run(coro)


@pytest.fixture
def connection() -> MockSnowflakeConnection:
    return MockSnowflakeConnection()


@pytest.fixture
def gateway(connection) -> SnowflakeDocumentGateway:
    return SnowflakeDocumentGateway(connection)


@pytest.fixture
def library(gateway) -> ExerciseLibrary:
    return ExerciseLibrary(gateway)


@pytest.fixture
def catalog(gateway):
    return create_template_catalog(gateway)


@pytest.fixture
def builder(gateway, catalog) -> ProgramBuilder:
    return ProgramBuilder(gateway, catalog)


@pytest.fixture
def small_builder(gateway):
    """Builder producing 2 blocks x 2 exercises per phase, for row-level tests."""
    catalog = create_template_catalog(gateway, blocks_per_phase=2, exercises_per_block=2)
    return ProgramBuilder(gateway, catalog, blocks_per_phase=2, exercises_per_block=2)


@pytest.fixture
def strength_category(library):
    category = run(library.create_category(OWNER, "Strength"))
    run(library.add_exercise(OWNER, category.id, "Bench Press"))
    return run(library.add_exercise(OWNER, category.id, "Squats"))


@pytest.fixture
def saved_program(small_builder):
    return run(small_builder.create_new(OWNER, "athlete-1", "leg day"))
