#!/usr/bin/env python3
"""
Create the program documents table and seed a coach's exercise library.

Seeding gives the coach the starter categories (Strength Training, Cardio,
Flexibility). A coach who already has categories is left untouched.

Usage:
    python scripts/seed_exercise_library.py --owner <user id>
    python scripts/seed_exercise_library.py --owner <user id> --dry-run

Requires:
    - .env file with Snowflake credentials (or SNOWFLAKE_MOCK_MODE=true)
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from sweatsheet.api.dependencies import snowflake_config_from_settings  # noqa: E402
from sweatsheet.config.settings import get_settings  # noqa: E402
from sweatsheet.core.programs.errors import PersistenceError  # noqa: E402
from sweatsheet.core.programs.library import SAMPLE_CATEGORIES, ExerciseLibrary  # noqa: E402
from sweatsheet.infrastructure.snowflake.client import (  # noqa: E402
    SnowflakeConnectionError,
    create_snowflake_connection,
)
from sweatsheet.infrastructure.snowflake.repositories.documents import (  # noqa: E402
    SnowflakeDocumentGateway,
)


def seed(owner_id: str, dry_run: bool = False) -> bool:
    """Ensure the schema exists and seed the owner's library. Returns success."""
    if dry_run:
        print("\n=== DRY RUN - No data will be written ===\n")
        for name, exercises in SAMPLE_CATEGORIES.items():
            print(f"Would create: {name} ({', '.join(exercises)})")
        print(f"\nTotal: {len(SAMPLE_CATEGORIES)} categories")
        return True

    settings = get_settings()
    missing = settings.validate_required_fields()
    if missing:
        print(f"ERROR: Missing configuration: {', '.join(missing)}")
        return False

    config = None if settings.snowflake_mock_mode else snowflake_config_from_settings(settings)

    try:
        with create_snowflake_connection(config=config, mock_mode=settings.snowflake_mock_mode) as conn:
            gateway = SnowflakeDocumentGateway(conn)
            gateway.ensure_schema()
            print("Program documents table is ready")

            categories = asyncio.run(ExerciseLibrary(gateway).seed_sample_categories(owner_id))

    except (SnowflakeConnectionError, PersistenceError) as e:
        print(f"ERROR: {e}")
        return False

    print(f"\n=== Seed Complete ===")
    for category in categories:
        print(f"[OK] {category.name}: {len(category.exercises)} exercises")
    return True


def main():
    import argparse

    parser = argparse.ArgumentParser(description='Seed the exercise library for a coach')
    parser.add_argument('--owner', required=True, help='User id of the coach')
    parser.add_argument('--dry-run', action='store_true', help='Show what would be created')
    args = parser.parse_args()

    success = seed(args.owner.strip(), dry_run=args.dry_run)

    sys.exit(0 if success else 1)


if __name__ == '__main__':
    main()
