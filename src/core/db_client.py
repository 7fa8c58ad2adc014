"""SQLite database client wrapper with record-level and versioned write helpers."""

import asyncio
import json
import logging
import re
import threading
from collections.abc import Sequence
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

import aiosqlite

from src.core.config import settings


logger = logging.getLogger(__name__)

SqlParam = str | int | float | bool | None


class DatabaseError(RuntimeError):
    """A database operation failed for a reason other than a missing record."""


class RecordNotFoundError(KeyError):
    """The requested record does not exist."""


def _validate_identifier(name: str) -> None:
    """Validate that a table or column name contains only alphanumeric characters and underscores."""
    if not re.match(r"^[a-zA-Z_][a-zA-Z0-9_]*$", name):
        msg = f"Invalid identifier: {name}. Only alphanumeric characters and underscores are allowed."
        raise ValueError(msg)


def _to_sql_value(value: Any) -> SqlParam:
    """Convert a Python value to something SQLite can bind."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict | list):
        return json.dumps(value, default=str)
    return value


def get_db_path(db_path: str | None = None) -> Path:
    """Get the resolved SQLite database file path."""
    path_str = db_path or settings.sqlite_db_path
    return Path(path_str).resolve()


def _parse_value(value: str, *, is_like: bool = False) -> SqlParam:
    """Parse a string value to the appropriate Python type for SQLite."""
    if is_like:
        escaped = value.replace("%", "\\%").replace("_", "\\_")
        return f"%{escaped}%"

    if value.isdigit():
        return int(value)
    if value.replace(".", "", 1).isdigit():
        return float(value)

    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False

    return value


_SQL_OPERATORS = {
    "=": "=",
    "!=": "!=",
    ">": ">",
    "<": "<",
    ">=": ">=",
    "<=": "<=",
    "~": "LIKE",
}


def _parse_single_comparison(comparison: str) -> tuple[str, SqlParam]:
    """Parse a single `field op "value"` expression into a SQL condition and parameter."""
    match = re.match(r"""^(\w+)\s*(!=|>=|<=|=|>|<|~)\s*(['"])(.*)\3$""", comparison.strip())
    if not match:
        msg = f"Invalid filter syntax: {comparison}"
        raise ValueError(msg)

    field, op, _, raw_value = match.groups()
    if raw_value == "" and op in {"=", "!="}:
        # Empty string compares against NULL, which is how unset references are stored
        return (f"{field} IS NULL" if op == "=" else f"{field} IS NOT NULL"), None

    sql_op = _SQL_OPERATORS[op]
    value = _parse_value(raw_value, is_like=sql_op == "LIKE")
    if sql_op == "LIKE":
        return f"{field} LIKE ? ESCAPE '\\'", value
    return f"{field} {sql_op} ?", value


def _parse_or_group(or_group: str) -> tuple[str, list[SqlParam]]:
    """Parse a parenthesized OR group into a SQL condition and parameters."""
    inner = or_group[1:-1]
    or_conditions = []
    or_params: list[SqlParam] = []

    for part in (p.strip() for p in inner.split("||")):
        cond, value = _parse_single_comparison(part)
        or_conditions.append(cond)
        if "?" in cond:
            or_params.append(value)

    return f"({' OR '.join(or_conditions)})", or_params


def _split_and_conditions(filter_query: str) -> list[str]:
    """Split filter query by && while preserving parenthesized groups."""
    parts = []
    current = ""
    paren_depth = 0

    for char in filter_query:
        if char == "(":
            paren_depth += 1
        elif char == ")":
            paren_depth -= 1

        current += char

        if paren_depth == 0 and current.endswith("&&"):
            parts.append(current[:-2].strip())
            current = ""

    if current.strip():
        parts.append(current.strip())

    return parts


def parse_filter(filter_query: str) -> tuple[str, list[SqlParam]]:
    """Parse filter syntax into a SQL WHERE clause and parameter list.

    Supports `field = "value"` comparisons (=, !=, <, >, <=, >=, ~ for contains)
    joined by `&&`, with parenthesized `||` groups:

        status = "pending" && (department = "Kitchen" || department = "Service")
    """
    if not filter_query:
        return "", []

    conditions = []
    params: list[SqlParam] = []

    for part in _split_and_conditions(filter_query):
        if part.startswith("(") and part.endswith(")"):
            cond, cond_params = _parse_or_group(part)
            conditions.append(cond)
            params.extend(cond_params)
        else:
            cond, value = _parse_single_comparison(part)
            conditions.append(cond)
            if "?" in cond:
                params.append(value)

    return " AND ".join(conditions), params


_db_connections: dict[tuple[int, int, str], aiosqlite.Connection] = {}
_db_lock = asyncio.Lock()


async def get_connection(*, db_path: str | None = None) -> aiosqlite.Connection:
    """Get or create a cached connection for the current thread, loop, and db path."""
    thread_id = threading.get_ident()
    loop = asyncio.get_running_loop()
    loop_id = id(loop)
    path = get_db_path(db_path)
    cache_key = (thread_id, loop_id, str(path))

    cached_conn = _db_connections.get(cache_key)
    if cached_conn is not None:
        return cached_conn

    async with _db_lock:
        # Double-check after acquiring lock
        if cache_key in _db_connections:
            return _db_connections[cache_key]

        path.parent.mkdir(parents=True, exist_ok=True)

        conn = await aiosqlite.connect(str(path))
        conn.row_factory = aiosqlite.Row
        await conn.execute("PRAGMA foreign_keys = ON")
        await conn.execute("PRAGMA journal_mode = WAL")

        _db_connections[cache_key] = conn

        logger.info(
            "Created new SQLite connection",
            extra={"db_path": str(path), "thread_id": thread_id, "loop_id": loop_id},
        )
        return conn


async def close_connection(*, db_path: str | None = None) -> None:
    """Close the cached SQLite connection for the current thread, loop, and db path."""
    thread_id = threading.get_ident()
    loop_id = id(asyncio.get_running_loop())
    path = get_db_path(db_path)
    cache_key = (thread_id, loop_id, str(path))

    async with _db_lock:
        conn = _db_connections.pop(cache_key, None)
        if conn is None:
            return
        try:
            await conn.close()
            logger.info(
                "Closed SQLite connection",
                extra={"thread_id": thread_id, "loop_id": loop_id, "db_path": str(path)},
            )
        except aiosqlite.Error as e:
            logger.warning(
                "Error closing SQLite connection",
                extra={"error": str(e), "thread_id": thread_id, "loop_id": loop_id},
            )


async def init_db(*, db_path: str | None = None) -> None:
    """Initialize the database schema by delegating to schema.init_db()."""
    from src.core import schema  # noqa: PLC0415 - schema imports this module

    await schema.init_db(db_path=db_path)


def _wrap_error(e: Exception, *, action: str, collection: str) -> DatabaseError:
    if isinstance(e, aiosqlite.OperationalError) and "no such table" in str(e):
        return DatabaseError(f"Table '{collection}' does not exist. Call init_db() first.")
    return DatabaseError(f"Failed to {action} {collection}: {e}")


async def create_record(*, collection: str, data: dict[str, Any], db_path: str | None = None) -> dict[str, Any]:
    """Insert a new record (the caller supplies its text id) and return it."""
    if "id" not in data:
        msg = "Records must carry an explicit id"
        raise ValueError(msg)

    _validate_identifier(collection)
    for column in data:
        _validate_identifier(column)

    try:
        conn = await get_connection(db_path=db_path)
        columns_str = ", ".join(data)
        placeholders_str = ", ".join("?" for _ in data)
        values = [_to_sql_value(v) for v in data.values()]

        query = f"INSERT INTO {collection} ({columns_str}) VALUES ({placeholders_str})"  # noqa: S608 - identifiers are validated
        await conn.execute(query, values)
        await conn.commit()
    except aiosqlite.Error as e:
        logger.error("create_record_failed", extra={"collection": collection, "error": str(e)})
        raise _wrap_error(e, action="create record in", collection=collection) from e

    logger.debug("Created record", extra={"collection": collection, "record_id": data["id"]})
    return await get_record(collection=collection, record_id=str(data["id"]), db_path=db_path)


async def get_record(*, collection: str, record_id: str, db_path: str | None = None) -> dict[str, Any]:
    """Fetch a single record by ID, raising RecordNotFoundError if not found."""
    _validate_identifier(collection)
    try:
        conn = await get_connection(db_path=db_path)
        query = f"SELECT * FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, (record_id,))
        row = await cursor.fetchone()
    except aiosqlite.Error as e:
        logger.error("get_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        raise _wrap_error(e, action="get record from", collection=collection) from e

    if row is None:
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    return dict(row)


async def update_record_if_version(
    *,
    collection: str,
    record_id: str,
    expected_version: int,
    data: dict[str, Any],
    db_path: str | None = None,
) -> int | None:
    """Update a record only if its version still equals expected_version.

    The version column is incremented as part of the same statement.

    Returns:
        The new version, or None if the record was changed (or removed) concurrently
    """
    if not data:
        msg = "Empty update payload"
        raise ValueError(msg)

    _validate_identifier(collection)
    for column in data:
        _validate_identifier(column)

    set_clause = ", ".join(f"{key} = ?" for key in data)
    values = [_to_sql_value(v) for v in data.values()]
    values.extend([record_id, expected_version])

    try:
        conn = await get_connection(db_path=db_path)
        query = f"UPDATE {collection} SET {set_clause}, version = version + 1 WHERE id = ? AND version = ?"  # noqa: S608 - identifiers are validated
        cursor = await conn.execute(query, values)
        await conn.commit()
    except aiosqlite.Error as e:
        logger.error("update_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        raise _wrap_error(e, action="update record in", collection=collection) from e

    if cursor.rowcount == 0:
        logger.info(
            "Version conflict on update",
            extra={"collection": collection, "record_id": record_id, "expected_version": expected_version},
        )
        return None

    return expected_version + 1


async def upsert_record(*, collection: str, data: dict[str, Any], db_path: str | None = None) -> None:
    """Insert a record or replace the existing row with the same id."""
    _validate_identifier(collection)
    for column in data:
        _validate_identifier(column)

    columns_str = ", ".join(data)
    placeholders_str = ", ".join("?" for _ in data)
    updates = ", ".join(f"{key} = excluded.{key}" for key in data if key != "id")
    values = [_to_sql_value(v) for v in data.values()]

    try:
        conn = await get_connection(db_path=db_path)
        query = (
            f"INSERT INTO {collection} ({columns_str}) VALUES ({placeholders_str}) "  # noqa: S608 - identifiers are validated
            f"ON CONFLICT(id) DO UPDATE SET {updates}"
        )
        await conn.execute(query, values)
        await conn.commit()
    except aiosqlite.Error as e:
        logger.error("upsert_record_failed", extra={"collection": collection, "error": str(e)})
        raise _wrap_error(e, action="upsert record in", collection=collection) from e


async def delete_record(*, collection: str, record_id: str, db_path: str | None = None) -> None:
    """Delete a record by ID, raising RecordNotFoundError if not found."""
    _validate_identifier(collection)
    try:
        conn = await get_connection(db_path=db_path)
        query = f"DELETE FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, (record_id,))
        await conn.commit()
    except aiosqlite.Error as e:
        logger.error("delete_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        raise _wrap_error(e, action="delete record from", collection=collection) from e

    if cursor.rowcount == 0:
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    logger.info("Deleted record", extra={"collection": collection, "record_id": record_id})


async def list_records(
    *,
    collection: str,
    page: int = 1,
    per_page: int = 50,
    filter_query: str = "",
    where: str = "",
    where_params: Sequence[SqlParam] = (),
    sort: str = "",
    db_path: str | None = None,
) -> list[dict[str, Any]]:
    """List records with optional filtering, sorting, and pagination.

    `filter_query` uses the filter syntax of `parse_filter`. `where` is a raw
    SQL condition with `?` placeholders bound to `where_params`, for values
    that must reach the database unescaped (free-form IDs). Both are ANDed.
    """
    _validate_identifier(collection)

    conditions: list[str] = []
    params: list[SqlParam] = []
    if filter_query:
        parsed, parsed_params = parse_filter(filter_query)
        conditions.append(parsed)
        params.extend(parsed_params)
    if where:
        conditions.append(f"({where})")
        params.extend(where_params)
    where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""

    # Only allow: column_name [ASC|DESC]
    safe_sort = "id ASC"
    if sort:
        if re.match(r"^[A-Za-z_][A-Za-z0-9_]*\s*(ASC|DESC)?$", sort.strip(), re.IGNORECASE):
            safe_sort = sort.strip()
        else:
            logger.warning("Invalid sort parameter, using default", extra={"sort": sort})

    offset = (page - 1) * per_page
    query = f"SELECT * FROM {collection} {where_clause} ORDER BY {safe_sort} LIMIT ? OFFSET ?"  # noqa: S608 - collection is validated
    params.extend([per_page, offset])

    try:
        conn = await get_connection(db_path=db_path)
        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()
    except aiosqlite.Error as e:
        logger.error("list_records_failed", extra={"collection": collection, "error": str(e)})
        raise _wrap_error(e, action="list records from", collection=collection) from e

    return [dict(row) for row in rows]


async def fetch_all(
    query: str,
    params: list[SqlParam] | tuple[SqlParam, ...] = (),
    *,
    db_path: str | None = None,
) -> list[dict[str, Any]]:
    """Run a read-only query (joins, aggregates) and return the rows as dicts."""
    try:
        conn = await get_connection(db_path=db_path)
        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()
    except aiosqlite.Error as e:
        logger.error("fetch_all_failed", extra={"error": str(e)})
        msg = f"Query failed: {e}"
        raise DatabaseError(msg) from e

    return [dict(row) for row in rows]
