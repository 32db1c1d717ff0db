"""SQLite database client wrapper with CRUD operations."""

import asyncio
import json
import logging
import re
import threading
from datetime import date, datetime
from pathlib import Path
from typing import Any

import aiosqlite

from src.core.config import constants, settings


logger = logging.getLogger(__name__)


class DatabaseError(RuntimeError):
    """Persistence failure; `recoverable` tells the caller whether a retry may succeed."""

    def __init__(self, message: str, *, recoverable: bool = False) -> None:
        super().__init__(message)
        self.recoverable = recoverable


class RecordNotFoundError(KeyError):
    """Raised when a record does not exist."""


class ConstraintViolationError(DatabaseError):
    """Raised when a write collides with a unique key."""


_IDENTIFIER_PATTERN = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


def _validate_collection_name(collection: str) -> None:
    """Validate that a collection name contains only alphanumeric characters and underscores."""
    if not _IDENTIFIER_PATTERN.match(collection):
        msg = f"Invalid collection name: {collection}. Only alphanumeric characters and underscores are allowed."
        raise ValueError(msg)


def sanitize_param(value: str | int | float | bool | None) -> str:
    """Escape a value for safe embedding in filter queries via json.dumps."""
    return json.dumps(str(value))[1:-1]


def _convert_record_ids(record: dict[str, Any]) -> dict[str, Any]:
    """Convert integer ID and foreign key fields to strings for Pydantic compatibility."""
    converted = record.copy()
    for key, value in converted.items():
        if isinstance(value, int) and (key == "id" or key.endswith("_id")):
            converted[key] = str(value)
    return converted


def _serialize_value(value: object) -> object:
    """Convert Python values to something SQLite can store."""
    if isinstance(value, datetime | date):
        return value.isoformat()
    if isinstance(value, dict | list | tuple | set | frozenset):
        return json.dumps(sorted(value) if isinstance(value, set | frozenset) else value)
    return value


def get_db_path(db_path: str | None = None) -> Path:
    """Get the resolved SQLite database file path."""
    path_str = db_path or settings.sqlite_db_path
    return Path(path_str).resolve()


def _parse_value(value: str, *, is_like: bool = False) -> str | int | float | bool | None:
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


def _get_sql_operator(op: str) -> str:
    """Map filter operator to SQL operator."""
    op_map = {
        "=": "=",
        "!=": "!=",
        ">": ">",
        "<": "<",
        ">=": ">=",
        "<=": "<=",
        "~": "LIKE",
    }
    sql_op = op_map.get(op)
    if not sql_op:
        msg = f"Unsupported operator: {op}"
        raise ValueError(msg)
    return sql_op


def _parse_single_comparison(comparison: str) -> tuple[str, str | int | float | None]:
    """Parse a single comparison expression into a SQL condition and parameter."""
    match = re.match(
        r"""(\w+)\s*(!=|>=|<=|=|>|<|~)\s*(['"])([^'"]*)\3""",
        comparison,
    )
    if not match:
        msg = f"Invalid filter syntax: {comparison}"
        raise ValueError(msg)

    field = match.group(1)
    op = match.group(2)
    raw_value = match.group(4)

    sql_op = _get_sql_operator(op)
    is_like = sql_op == "LIKE"
    value = _parse_value(raw_value, is_like=is_like)

    if is_like:
        return f"{field} LIKE ? ESCAPE '\\'", value
    return f"{field} {sql_op} ?", value


def _parse_or_group(or_group: str) -> tuple[str, list[str | int | float | None]]:
    """Parse a parenthesized OR group into a SQL condition and parameters."""
    inner = or_group[1:-1]
    or_parts = [p.strip() for p in inner.split("||")]
    or_conditions = []
    or_params = []

    for part in or_parts:
        cond, value = _parse_single_comparison(part)
        or_conditions.append(cond)
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


def parse_filter(filter_query: str) -> tuple[str, list[str | int | float | None]]:
    """Parse filter syntax into a SQL WHERE clause and parameter list."""
    if not filter_query:
        return "", []

    parts = _split_and_conditions(filter_query)
    conditions = []
    params = []

    for raw_part in parts:
        part = raw_part.strip()

        if part.startswith("(") and part.endswith(")"):
            cond, cond_params = _parse_or_group(part)
            conditions.append(cond)
            params.extend(cond_params)
        else:
            cond, value = _parse_single_comparison(part)
            conditions.append(cond)
            params.append(value)

    return " AND ".join(conditions), params


def parse_sort(sort: str) -> str:
    """Translate a sort string ("+field", "-field" or "field ASC|DESC") into an ORDER BY clause."""
    sort = sort.strip()
    if not sort:
        return "id ASC"

    clauses = []
    for raw_part in sort.split(","):
        part = raw_part.strip()
        direction = "ASC"
        if part.startswith("-"):
            direction = "DESC"
            part = part[1:]
        elif part.startswith("+"):
            part = part[1:]

        match = re.match(r"^([A-Za-z_][A-Za-z0-9_]*)(?:\s+(ASC|DESC))?$", part, re.IGNORECASE)
        if not match:
            logger.warning("Invalid sort parameter, using default", extra={"sort": sort})
            return "id ASC"
        if match.group(2):
            direction = match.group(2).upper()
        clauses.append(f"{match.group(1)} {direction}")

    # Stable tiebreak on insertion order
    if not any(clause.startswith("id ") for clause in clauses):
        clauses.append("id ASC")
    return ", ".join(clauses)


def _record_id_param(record_id: str) -> int:
    """Convert a string record ID to the integer primary key, raising RecordNotFoundError if malformed."""
    if not str(record_id).isdigit():
        msg = f"Invalid record id: {record_id}"
        raise RecordNotFoundError(msg)
    return int(record_id)


_db_connections: dict[tuple[int, int, str], aiosqlite.Connection] = {}
_db_lock = asyncio.Lock()


async def get_connection(*, db_path: str | None = None) -> aiosqlite.Connection:
    """Get or create a cached connection for the current thread, loop, and db path."""
    thread_id = threading.get_ident()
    loop = asyncio.get_running_loop()
    loop_id = id(loop)
    path = get_db_path(db_path)
    cache_key = (thread_id, loop_id, str(path))

    if cache_key in _db_connections:
        return _db_connections[cache_key]

    async with _db_lock:
        # Double-check after acquiring lock
        if cache_key in _db_connections:
            return _db_connections[cache_key]

        path.parent.mkdir(parents=True, exist_ok=True)

        conn = await aiosqlite.connect(str(path))
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

    conn = _db_connections.pop(cache_key, None)
    if conn is None:
        return

    try:
        await conn.close()
        logger.info(
            "Closed SQLite connection",
            extra={"thread_id": thread_id, "loop_id": loop_id, "db_path": str(path)},
        )
    except Exception as e:
        logger.warning(
            "Error closing SQLite connection",
            extra={"error": str(e), "thread_id": thread_id, "loop_id": loop_id},
        )


async def init_db(*, db_path: str | None = None) -> None:
    """Initialize the database schema."""
    from src.core.schema import SCHEMA_STATEMENTS

    conn = await get_connection(db_path=db_path)
    for statement in SCHEMA_STATEMENTS:
        await conn.execute(statement)
    await conn.commit()
    logger.info("Database schema initialized", extra={"db_path": str(get_db_path(db_path))})


def _row_to_record(cursor: aiosqlite.Cursor, row: tuple[Any, ...]) -> dict[str, Any]:
    columns = [description[0] for description in cursor.description]
    return _convert_record_ids(dict(zip(columns, row, strict=True)))


async def create_record(*, collection: str, data: dict[str, Any]) -> dict[str, Any]:
    """Insert a new record and return it with its assigned id.

    Raises:
        ConstraintViolationError: If the insert collides with a unique key
        DatabaseError: For other failures
    """
    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        columns = list(data.keys())
        for column in columns:
            _validate_collection_name(column)
        columns_str = ", ".join(columns)
        placeholders_str = ", ".join("?" for _ in columns)
        values = [_serialize_value(data[key]) for key in columns]

        query = f"INSERT INTO {collection} ({columns_str}) VALUES ({placeholders_str})"  # noqa: S608 - names are validated
        cursor = await conn.execute(query, values)
        await conn.commit()

        record_id = cursor.lastrowid
        result = await get_record(collection=collection, record_id=str(record_id))

        logger.info("Created record", extra={"collection": collection, "record_id": record_id})
        return result
    except aiosqlite.IntegrityError as e:
        await conn.rollback()
        if "UNIQUE" in str(e).upper():
            logger.info("Unique constraint hit", extra={"collection": collection, "error": str(e)})
            msg = f"Duplicate record in {collection}: {e}"
            raise ConstraintViolationError(msg, recoverable=False) from e
        logger.error("create_record_failed", extra={"collection": collection, "error": str(e)})
        raise DatabaseError(f"Failed to create record in {collection}: {e}") from e
    except aiosqlite.OperationalError as e:
        if "no such table" in str(e):
            logger.error("Table not found", extra={"collection": collection})
            raise DatabaseError(f"Table '{collection}' does not exist. Call init_db() first.") from e
        logger.error("create_record_failed", extra={"collection": collection, "error": str(e)})
        raise DatabaseError(f"Failed to create record in {collection}: {e}", recoverable=True) from e


async def get_record(*, collection: str, record_id: str) -> dict[str, Any]:
    """Fetch a single record by ID, raising RecordNotFoundError if not found."""
    _validate_collection_name(collection)
    try:
        conn = await get_connection()

        query = f"SELECT * FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, (_record_id_param(record_id),))
        row = await cursor.fetchone()

        if row is None:
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg)

        logger.debug("Retrieved record", extra={"collection": collection, "record_id": record_id})
        return _row_to_record(cursor, row)
    except RecordNotFoundError:
        raise
    except aiosqlite.Error as e:
        logger.error("get_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        raise DatabaseError(f"Failed to get record from {collection}: {e}", recoverable=True) from e


async def update_record(*, collection: str, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
    """Update a record by ID and return the updated record."""
    if not data:
        msg = "Empty update payload"
        raise ValueError(msg)

    _validate_collection_name(collection)
    for column in data:
        _validate_collection_name(column)

    try:
        conn = await get_connection()

        set_clause = ", ".join(f"{key} = ?" for key in data)
        values = [_serialize_value(val) for val in data.values()]
        values.append(_record_id_param(record_id))

        query = (
            f"UPDATE {collection} SET {set_clause}, updated = strftime('%Y-%m-%dT%H:%M:%fZ', 'now') "  # noqa: S608
            "WHERE id = ?"
        )
        cursor = await conn.execute(query, values)
        await conn.commit()

        if cursor.rowcount == 0:
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg)

        logger.info("Updated record", extra={"collection": collection, "record_id": record_id})
        return await get_record(collection=collection, record_id=record_id)
    except RecordNotFoundError:
        raise
    except aiosqlite.IntegrityError as e:
        await conn.rollback()
        raise ConstraintViolationError(f"Duplicate record in {collection}: {e}") from e
    except aiosqlite.Error as e:
        logger.error("update_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        raise DatabaseError(f"Failed to update record in {collection}: {e}", recoverable=True) from e


async def delete_record(*, collection: str, record_id: str) -> None:
    """Delete a record by ID, raising RecordNotFoundError if not found."""
    _validate_collection_name(collection)
    try:
        conn = await get_connection()

        query = f"DELETE FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, (_record_id_param(record_id),))
        await conn.commit()

        if cursor.rowcount == 0:
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg)

        logger.info("Deleted record", extra={"collection": collection, "record_id": record_id})
    except RecordNotFoundError:
        raise
    except aiosqlite.Error as e:
        logger.error("delete_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        raise DatabaseError(f"Failed to delete record from {collection}: {e}", recoverable=True) from e


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
    try:
        conn = await get_connection()

        where_clause = ""
        params: list[Any] = []
        if filter_query:
            where_clause, params = parse_filter(filter_query)
            where_clause = f"WHERE {where_clause}"

        order_by = parse_sort(sort)
        offset = (page - 1) * per_page

        query = f"SELECT * FROM {collection} {where_clause} ORDER BY {order_by} LIMIT ? OFFSET ?"  # noqa: S608
        params.extend([per_page, offset])

        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()
        records = [_row_to_record(cursor, row) for row in rows]

        logger.debug("Listed records", extra={"collection": collection, "count": len(records)})
        return records
    except aiosqlite.Error as e:
        logger.error("list_records_failed", extra={"collection": collection, "error": str(e)})
        raise DatabaseError(f"Failed to list records from {collection}: {e}", recoverable=True) from e


async def get_first_record(*, collection: str, filter_query: str) -> dict[str, Any] | None:
    """Return the first record matching the filter, or None."""
    records = await list_records(collection=collection, filter_query=filter_query, per_page=1)
    return records[0] if records else None


async def increment_field(*, collection: str, record_id: str, field: str, amount: int) -> int:
    """Atomically add `amount` to a numeric field and return the new value."""
    _validate_collection_name(collection)
    _validate_collection_name(field)
    try:
        conn = await get_connection()

        query = (
            f"UPDATE {collection} SET {field} = COALESCE({field}, 0) + ?, "  # noqa: S608 - names are validated
            "updated = strftime('%Y-%m-%dT%H:%M:%fZ', 'now') WHERE id = ? "
            f"RETURNING {field}"
        )
        cursor = await conn.execute(query, (amount, _record_id_param(record_id)))
        rows = await cursor.fetchall()
        await conn.commit()

        if not rows:
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg)
        row = rows[0]

        logger.info(
            "Incremented field",
            extra={"collection": collection, "record_id": record_id, "field": field, "amount": amount},
        )
        return int(row[0])
    except RecordNotFoundError:
        raise
    except aiosqlite.Error as e:
        logger.error("increment_field_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        raise DatabaseError(f"Failed to increment {field} in {collection}: {e}", recoverable=True) from e


async def list_all_records(*, collection: str, filter_query: str = "", sort: str = "") -> list[dict[str, Any]]:
    """List every matching record, reading DEFAULT_PER_PAGE_LIMIT rows per page."""
    per_page = constants.DEFAULT_PER_PAGE_LIMIT
    records: list[dict[str, Any]] = []
    page = 1
    while True:
        batch = await list_records(
            collection=collection,
            page=page,
            per_page=per_page,
            filter_query=filter_query,
            sort=sort,
        )
        records.extend(batch)
        if len(batch) < per_page:
            return records
        page += 1


async def create_record_with_increment(
    *,
    collection: str,
    data: dict[str, Any],
    target_collection: str,
    target_id: str,
    field: str,
    amount: int,
) -> tuple[dict[str, Any], int]:
    """Insert a record and add `amount` to a counter on another record in one transaction.

    The transaction runs on its own connection, so no other writer can commit half of
    it. If the caller fails or is cancelled before the commit, closing the connection
    rolls both writes back.

    Returns:
        The created record and the counter's new value

    Raises:
        ConstraintViolationError: If the insert collides with a unique key (nothing is written)
        RecordNotFoundError: If the target record does not exist (nothing is written)
        DatabaseError: For other failures
    """
    columns = list(data.keys())
    for name in (collection, target_collection, field, *columns):
        _validate_collection_name(name)

    insert = (
        f"INSERT INTO {collection} ({', '.join(columns)}) "  # noqa: S608 - names are validated
        f"VALUES ({', '.join('?' for _ in columns)}) RETURNING *"
    )
    increment = (
        f"UPDATE {target_collection} SET {field} = COALESCE({field}, 0) + ?, "  # noqa: S608 - names are validated
        "updated = strftime('%Y-%m-%dT%H:%M:%fZ', 'now') WHERE id = ? "
        f"RETURNING {field}"
    )

    try:
        async with aiosqlite.connect(str(get_db_path())) as conn:
            await conn.execute("PRAGMA foreign_keys = ON")
            await conn.execute("BEGIN IMMEDIATE")

            cursor = await conn.execute(insert, [_serialize_value(data[key]) for key in columns])
            rows = await cursor.fetchall()
            record = _row_to_record(cursor, rows[0])

            cursor = await conn.execute(increment, (amount, _record_id_param(target_id)))
            rows = await cursor.fetchall()
            if not rows:
                await conn.rollback()
                msg = f"Record not found in {target_collection}: {target_id}"
                raise RecordNotFoundError(msg)

            await conn.commit()
    except RecordNotFoundError:
        raise
    except aiosqlite.IntegrityError as e:
        if "UNIQUE" in str(e).upper():
            logger.info("Unique constraint hit", extra={"collection": collection, "error": str(e)})
            raise ConstraintViolationError(f"Duplicate record in {collection}: {e}") from e
        logger.error("create_record_with_increment_failed", extra={"collection": collection, "error": str(e)})
        raise DatabaseError(f"Failed to create record in {collection}: {e}") from e
    except aiosqlite.Error as e:
        logger.error("create_record_with_increment_failed", extra={"collection": collection, "error": str(e)})
        raise DatabaseError(f"Failed to create record in {collection}: {e}", recoverable=True) from e

    new_value = int(rows[0][0])
    logger.info(
        "Created record and incremented field",
        extra={
            "collection": collection,
            "record_id": record["id"],
            "target_collection": target_collection,
            "target_id": target_id,
            "field": field,
            "amount": amount,
        },
    )
    return record, new_value


async def set_fields_to_sums(
    *,
    collection: str,
    record_id: str,
    source_collection: str,
    foreign_key: str,
    amount_field: str,
    category_field: str,
    fields: dict[str, str],
) -> dict[str, int]:
    """Overwrite numeric fields with sums over related rows, in a single statement.

    Each entry of `fields` maps a target field to the `category_field` value whose
    `amount_field` values are summed into it. Source rows are matched on
    `foreign_key = record_id`.

    Returns:
        The new value of each target field

    Raises:
        RecordNotFoundError: If the record does not exist
        DatabaseError: If the update fails
    """
    for name in (collection, source_collection, foreign_key, amount_field, category_field, *fields):
        _validate_collection_name(name)

    assignments = []
    params: list[Any] = []
    for target, category in fields.items():
        assignments.append(
            f"{target} = (SELECT COALESCE(SUM({amount_field}), 0) FROM {source_collection} "  # noqa: S608
            f"WHERE {foreign_key} = ? AND {category_field} = ?)"
        )
        params.extend([str(record_id), category])
    params.append(_record_id_param(record_id))

    query = (
        f"UPDATE {collection} SET {', '.join(assignments)}, "  # noqa: S608 - names are validated
        "updated = strftime('%Y-%m-%dT%H:%M:%fZ', 'now') WHERE id = ? "
        f"RETURNING {', '.join(fields)}"
    )
    try:
        conn = await get_connection()
        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()
        await conn.commit()
    except aiosqlite.Error as e:
        logger.error("set_fields_to_sums_failed", extra={"collection": collection, "error": str(e)})
        raise DatabaseError(f"Failed to recompute fields in {collection}: {e}", recoverable=True) from e

    if not rows:
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    logger.info("Recomputed fields from sums", extra={"collection": collection, "record_id": record_id})
    return {target: int(value) for target, value in zip(fields, rows[0], strict=True)}
