"""SQLite database client wrapper with CRUD, upsert, and transaction support."""

import asyncio
import contextvars
import json
import logging
import re
import threading
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date
from pathlib import Path
from typing import Any

import aiosqlite

from src.core.config import settings


logger = logging.getLogger(__name__)


class DatabaseError(RuntimeError):
    """Raised when the record store fails an operation."""


class RecordNotFoundError(KeyError):
    """Raised when a record lookup by ID finds nothing."""


FilterValue = str | int | float | bool | None

_FK_FIELDS = {"id", "assigned_to", "assigned_by", "manager_id", "user_id"}

_COMPARISON_RE = re.compile(r"""(\w+)\s*(>=|<=|!=|=|>|<|~)\s*(['"])([^'"]*)\3""")

_SQL_OPERATORS = {
    "=": "=",
    "!=": "!=",
    ">": ">",
    "<": "<",
    ">=": ">=",
    "<=": "<=",
    "~": "LIKE",
}

# Set while a transaction() block is active so writes defer their commit
_in_transaction: contextvars.ContextVar[bool] = contextvars.ContextVar("in_transaction", default=False)


def _validate_collection_name(collection: str) -> None:
    """Validate that a collection name contains only alphanumeric characters and underscores."""
    if not re.match(r"^[a-zA-Z_][a-zA-Z0-9_]*$", collection):
        msg = f"Invalid collection name: {collection}. Only alphanumeric characters and underscores are allowed."
        raise ValueError(msg)


def sanitize_param(value: str | int | float | bool | date | None) -> str:
    """Escape a value for safe embedding in filter queries via json.dumps."""
    if isinstance(value, date):
        value = value.isoformat()
    return json.dumps(str(value))[1:-1]


def _to_db_value(value: Any) -> Any:
    """Convert Python values to something SQLite can store."""
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, set | frozenset):
        return json.dumps(sorted(value))
    if isinstance(value, dict | list):
        return json.dumps(value)
    return value


def _convert_record_ids(record: dict[str, Any]) -> dict[str, Any]:
    """Convert integer ID and foreign key fields to strings for Pydantic compatibility."""
    converted = record.copy()
    for key, value in converted.items():
        if isinstance(value, int) and (key in _FK_FIELDS or key.endswith("_id")):
            converted[key] = str(value)
    return converted


def _row_to_record(cursor: aiosqlite.Cursor, row: tuple) -> dict[str, Any]:
    columns = [description[0] for description in cursor.description]
    return _convert_record_ids(dict(zip(columns, row, strict=True)))


def get_db_path(db_path: str | None = None) -> Path:
    """Get the resolved SQLite database file path."""
    path_str = db_path or settings.sqlite_db_path
    return Path(path_str).resolve()


def _parse_value(value: str, *, is_like: bool = False) -> FilterValue:
    """Parse a filter literal to the matching SQLite type."""
    if is_like:
        return "%" + value.replace("%", "\\%").replace("_", "\\_") + "%"
    if value.isdigit():
        return int(value)
    if value.lower() in ("true", "false"):
        return value.lower() == "true"
    return value


def _parse_comparison(comparison: str) -> tuple[str, FilterValue]:
    """Parse `field op "value"` into a SQL condition and its parameter."""
    match = _COMPARISON_RE.fullmatch(comparison.strip())
    if not match:
        msg = f"Invalid filter syntax: {comparison}"
        raise ValueError(msg)

    field, op, _, raw_value = match.groups()
    sql_op = _SQL_OPERATORS[op]
    return f"{field} {sql_op} ?", _parse_value(raw_value, is_like=sql_op == "LIKE")


def _split_top_level(filter_query: str, separator: str) -> list[str]:
    """Split on a separator while leaving parenthesized groups intact."""
    parts: list[str] = []
    depth = 0
    start = 0
    i = 0
    while i < len(filter_query):
        char = filter_query[i]
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        elif depth == 0 and filter_query.startswith(separator, i):
            parts.append(filter_query[start:i].strip())
            i += len(separator)
            start = i
            continue
        i += 1
    tail = filter_query[start:].strip()
    if tail:
        parts.append(tail)
    return parts


def parse_filter(filter_query: str) -> tuple[str, list[FilterValue]]:
    """Parse `a = "x" && (b = "1" || b = "2")` filters into a WHERE clause and parameters."""
    if not filter_query:
        return "", []

    conditions = []
    params: list[FilterValue] = []
    for part in _split_top_level(filter_query, "&&"):
        if part.startswith("(") and part.endswith(")"):
            or_conditions = []
            for alternative in _split_top_level(part[1:-1], "||"):
                cond, value = _parse_comparison(alternative)
                or_conditions.append(cond)
                params.append(value)
            conditions.append(f"({' OR '.join(or_conditions)})")
        else:
            cond, value = _parse_comparison(part)
            conditions.append(cond)
            params.append(value)

    return " AND ".join(conditions), params


def _order_clause(sort: str) -> str:
    """Translate `-field` / `+field` / `field` into a safe ORDER BY clause."""
    if not sort:
        return "id ASC"
    direction = "DESC" if sort.startswith("-") else "ASC"
    field = sort.lstrip("+-").strip()
    if not re.match(r"^[A-Za-z_][A-Za-z0-9_]*$", field):
        logger.warning("Invalid sort parameter, using default", extra={"sort": sort})
        return "id ASC"
    return f"{field} {direction}"


_db_connections: dict[tuple[int, int, str], aiosqlite.Connection] = {}
_db_lock = asyncio.Lock()
_transaction_lock = asyncio.Lock()


def _cache_key(db_path: str | None) -> tuple[int, int, str]:
    loop = asyncio.get_running_loop()
    return (threading.get_ident(), id(loop), str(get_db_path(db_path)))


async def get_connection(*, db_path: str | None = None) -> aiosqlite.Connection:
    """Get or create a cached connection for the current thread, loop, and db path."""
    cache_key = _cache_key(db_path)

    if cache_key in _db_connections:
        return _db_connections[cache_key]

    async with _db_lock:
        if cache_key in _db_connections:
            return _db_connections[cache_key]

        path = get_db_path(db_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        conn = await aiosqlite.connect(str(path))
        await conn.execute("PRAGMA foreign_keys = ON")
        await conn.execute("PRAGMA journal_mode = WAL")
        _db_connections[cache_key] = conn

        logger.info("Created new SQLite connection", extra={"db_path": str(path)})
        return conn


async def close_connection(*, db_path: str | None = None) -> None:
    """Close the cached SQLite connection for the current thread, loop, and db path."""
    cache_key = _cache_key(db_path)
    async with _db_lock:
        conn = _db_connections.pop(cache_key, None)
    if conn is None:
        return
    try:
        await conn.close()
        logger.info("Closed SQLite connection", extra={"db_path": cache_key[2]})
    except aiosqlite.Error as e:
        logger.warning("Error closing SQLite connection", extra={"error": str(e)})


async def init_db(*, db_path: str | None = None) -> None:
    """Create all tables and indexes if they do not exist."""
    from src.core.schema import INDEXES, TABLE_SCHEMAS

    conn = await get_connection(db_path=db_path)
    for table_name, ddl in TABLE_SCHEMAS.items():
        await conn.execute(ddl)
        logger.debug("Ensured table", extra={"table": table_name})
    for index_ddl in INDEXES:
        await conn.execute(index_ddl)
    await conn.commit()
    logger.info("Database schema initialized", extra={"tables": len(TABLE_SCHEMAS)})


async def _commit(conn: aiosqlite.Connection) -> None:
    if not _in_transaction.get():
        await conn.commit()


@asynccontextmanager
async def _write_lock() -> AsyncIterator[None]:
    """Hold the transaction lock for a write made outside transaction().

    All writes share one connection, so a standalone write waits for any open
    transaction to commit or roll back first.
    """
    if _in_transaction.get():
        yield
        return
    async with _transaction_lock:
        yield


@asynccontextmanager
async def transaction() -> AsyncIterator[None]:
    """Run the enclosed reads and writes as one IMMEDIATE transaction.

    Writes inside the block skip their own commit; the block commits once on exit
    and rolls back if anything raises.
    """
    async with _transaction_lock:
        conn = await get_connection()
        token = _in_transaction.set(True)
        try:
            await conn.execute("BEGIN IMMEDIATE")
            try:
                yield
            except BaseException:
                await conn.rollback()
                raise
            await conn.commit()
        finally:
            _in_transaction.reset(token)


async def create_record(*, collection: str, data: dict[str, Any]) -> dict[str, Any]:
    """Insert a new record and return it with its assigned id."""
    _validate_collection_name(collection)
    try:
        conn = await get_connection()
        columns = list(data.keys())
        values = [_to_db_value(data[key]) for key in columns]
        placeholders = ", ".join("?" for _ in columns)

        query = f"INSERT INTO {collection} ({', '.join(columns)}) VALUES ({placeholders})"  # noqa: S608 - collection is validated
        async with _write_lock():
            cursor = await conn.execute(query, values)
            await _commit(conn)
        record_id = cursor.lastrowid
    except aiosqlite.Error as e:
        logger.error("create_record_failed", extra={"collection": collection, "error": str(e)})
        msg = f"Failed to create record in {collection}: {e}"
        raise DatabaseError(msg) from e

    logger.info("Created record", extra={"collection": collection, "record_id": record_id})
    return await get_record(collection=collection, record_id=str(record_id))


async def get_record(*, collection: str, record_id: str) -> dict[str, Any]:
    """Fetch a single record by ID, raising RecordNotFoundError if not found."""
    _validate_collection_name(collection)
    if not record_id.isdigit():
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)
    try:
        conn = await get_connection()
        query = f"SELECT * FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, (int(record_id),))
        row = await cursor.fetchone()
    except aiosqlite.Error as e:
        logger.error("get_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        msg = f"Failed to get record from {collection}: {e}"
        raise DatabaseError(msg) from e

    if row is None:
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)
    return _row_to_record(cursor, row)


async def update_record(*, collection: str, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
    """Update a record by ID and return the updated record."""
    if not data:
        msg = "Empty update payload"
        raise ValueError(msg)

    _validate_collection_name(collection)
    try:
        conn = await get_connection()
        set_clause = ", ".join(f"{key} = ?" for key in data)
        values = [_to_db_value(val) for val in data.values()]
        values.append(int(record_id))

        query = f"UPDATE {collection} SET {set_clause}, updated = datetime('now') WHERE id = ?"  # noqa: S608 - collection is validated
        async with _write_lock():
            cursor = await conn.execute(query, values)
            await _commit(conn)
    except aiosqlite.Error as e:
        logger.error("update_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        msg = f"Failed to update record in {collection}: {e}"
        raise DatabaseError(msg) from e

    if cursor.rowcount == 0:
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    logger.info("Updated record", extra={"collection": collection, "record_id": record_id})
    return await get_record(collection=collection, record_id=record_id)


async def upsert_record(
    *,
    collection: str,
    conflict_fields: tuple[str, ...],
    data: dict[str, Any],
) -> dict[str, Any]:
    """Insert a record, or update the existing one sharing the same conflict key.

    The conflict fields must be covered by a UNIQUE index so the database
    performs the insert-or-update atomically.
    """
    _validate_collection_name(collection)
    missing = [name for name in conflict_fields if name not in data]
    if missing:
        msg = f"Upsert payload is missing conflict fields: {missing}"
        raise ValueError(msg)

    columns = list(data.keys())
    update_columns = [c for c in columns if c not in conflict_fields]
    update_clause = ", ".join([*(f"{c} = excluded.{c}" for c in update_columns), "updated = datetime('now')"])

    try:
        conn = await get_connection()
        query = (
            f"INSERT INTO {collection} ({', '.join(columns)}) "  # noqa: S608 - collection is validated
            f"VALUES ({', '.join('?' for _ in columns)}) "
            f"ON CONFLICT({', '.join(conflict_fields)}) DO UPDATE SET {update_clause}"
        )
        async with _write_lock():
            await conn.execute(query, [_to_db_value(data[key]) for key in columns])
            await _commit(conn)
    except aiosqlite.Error as e:
        logger.error("upsert_record_failed", extra={"collection": collection, "error": str(e)})
        msg = f"Failed to upsert record in {collection}: {e}"
        raise DatabaseError(msg) from e

    filter_query = " && ".join(f'{name} = "{sanitize_param(data[name])}"' for name in conflict_fields)
    record = await get_first_record(collection=collection, filter_query=filter_query)
    if record is None:
        msg = f"Upserted record vanished from {collection}"
        raise DatabaseError(msg)

    logger.info("Upserted record", extra={"collection": collection, "record_id": record["id"]})
    return record


async def list_records(
    *,
    collection: str,
    page: int = 1,
    per_page: int = 50,
    filter_query: str = "",
    sort: str = "",
) -> list[dict[str, Any]]:
    """List records with optional filtering, sorting, and pagination."""
    _validate_collection_name(collection)
    where_clause, params = parse_filter(filter_query)
    where_sql = f"WHERE {where_clause}" if where_clause else ""

    try:
        conn = await get_connection()
        query = f"SELECT * FROM {collection} {where_sql} ORDER BY {_order_clause(sort)} LIMIT ? OFFSET ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, [*params, per_page, (page - 1) * per_page])
        rows = await cursor.fetchall()
    except aiosqlite.Error as e:
        logger.error("list_records_failed", extra={"collection": collection, "error": str(e)})
        msg = f"Failed to list records from {collection}: {e}"
        raise DatabaseError(msg) from e

    records = [_row_to_record(cursor, row) for row in rows]
    logger.debug("Listed records", extra={"collection": collection, "count": len(records)})
    return records


async def get_first_record(*, collection: str, filter_query: str) -> dict[str, Any] | None:
    """Return the first record matching the filter, or None."""
    records = await list_records(collection=collection, filter_query=filter_query, per_page=1)
    return records[0] if records else None
