#!/usr/bin/env python3
"""Admin script to load staff members into the directory.

Usage:
    uv run python scripts/seed_staff.py <staff.json>
    uv run python scripts/seed_staff.py --deactivate <staff_id>
    uv run python scripts/seed_staff.py --activate <staff_id>

The JSON file holds a list of staff members:

    [{"id": "hk-1", "name": "Maria", "department": "Housekeeping", "skills": {"cleaning": 4}}]
"""

import asyncio
import logging
import sys
from pathlib import Path

from pydantic import TypeAdapter

from src.core.db_client import close_connection, init_db
from src.domain.create_models import StaffCreate
from src.services.directory_service import SqliteDirectoryService


logging.basicConfig(level=logging.INFO, format="%(message)s")
logger = logging.getLogger(__name__)

_STAFF_LIST = TypeAdapter(list[StaffCreate])


def load_staff(path: Path) -> list[StaffCreate]:
    """Parse and validate a staff JSON file.

    Raises:
        pydantic.ValidationError: The file is not a valid staff list
    """
    return _STAFF_LIST.validate_json(path.read_bytes())


async def seed_staff(staff: list[StaffCreate], *, db_path: str | None = None) -> int:
    """Register (or replace) each staff member and return how many were written."""
    await init_db(db_path=db_path)
    directory = SqliteDirectoryService(db_path=db_path)
    for member in staff:
        registered = await directory.register_staff(member)
        logger.info("%s - %s (%s)", registered.id, registered.name, registered.department)
    return len(staff)


async def set_active(staff_id: str, *, is_active: bool, db_path: str | None = None) -> None:
    """Activate or deactivate a staff member.

    Raises:
        KeyError: No staff member with that ID
    """
    await init_db(db_path=db_path)
    directory = SqliteDirectoryService(db_path=db_path)
    if await directory.get_staff(staff_id) is None:
        msg = f"Unknown staff member: {staff_id}"
        raise KeyError(msg)
    await directory.set_active(staff_id, is_active=is_active)


def print_usage() -> None:
    """Print usage information."""
    logger.info(__doc__)


async def main(argv: list[str]) -> int:
    if len(argv) == 1 and not argv[0].startswith("--"):
        action = seed_staff(load_staff(Path(argv[0])))
    elif len(argv) == 2 and argv[0] in {"--activate", "--deactivate"}:
        action = set_active(argv[1], is_active=argv[0] == "--activate")
    else:
        print_usage()
        return 2

    try:
        result = await action
    except KeyError as e:
        logger.error(e.args[0])
        return 1
    finally:
        await close_connection()

    if result is not None:
        logger.info("Seeded %d staff member(s)", result)
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main(sys.argv[1:])))
