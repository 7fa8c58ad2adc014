"""SQLite schema management (code-first approach)."""

import logging

from src.core import db_client


logger = logging.getLogger(__name__)


# Central list of all tables in the schema
COLLECTIONS = ["tasks", "staff"]

# Indexed columns are duplicated out of the JSON document so the store and
# directory can filter, join and order in SQL.
_TABLES: dict[str, str] = {
    "tasks": """
        CREATE TABLE IF NOT EXISTS tasks (
            id TEXT PRIMARY KEY,
            version INTEGER NOT NULL DEFAULT 1,
            department TEXT NOT NULL,
            category TEXT NOT NULL,
            status TEXT NOT NULL,
            priority TEXT NOT NULL,
            assigned_to TEXT,
            assigned_at TEXT,
            completed_at TEXT,
            due_date TEXT,
            parent_task_id TEXT,
            follow_up_task_id TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            data TEXT NOT NULL
        )
    """,
    "staff": """
        CREATE TABLE IF NOT EXISTS staff (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            department TEXT NOT NULL,
            role TEXT NOT NULL DEFAULT 'staff',
            is_active INTEGER NOT NULL DEFAULT 1,
            skills TEXT NOT NULL DEFAULT '{}'
        )
    """,
}

_INDEXES: list[str] = [
    "CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks (status)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_department_status ON tasks (department, status)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_assigned_to ON tasks (assigned_to)",
    "CREATE INDEX IF NOT EXISTS idx_staff_department ON staff (department, is_active)",
]


async def init_db(*, db_path: str | None = None) -> None:
    """Create all tables and indexes if they do not exist yet."""
    conn = await db_client.get_connection(db_path=db_path)

    for name in COLLECTIONS:
        await conn.execute(_TABLES[name])
        logger.info("Ensured table exists", extra={"table": name})

    for statement in _INDEXES:
        await conn.execute(statement)

    await conn.commit()
    logger.info("Schema initialized", extra={"db_path": str(db_client.get_db_path(db_path))})
