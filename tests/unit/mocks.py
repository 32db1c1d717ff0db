"""Pure Python in-memory database for unit testing."""

import asyncio
import copy
from datetime import UTC, datetime
from typing import Any

from src.core.db_client import ConstraintViolationError, DatabaseError, RecordNotFoundError, _serialize_value


# Column defaults mirroring src/core/schema.py
_DEFAULTS: dict[str, dict[str, Any]] = {
    "users": {
        "email": None,
        "coins": 0,
        "silver_coins": 0,
        "group_ids": "[]",
        "goals": "",
        "habits": "",
        "occupation": "",
    },
    "goal_groups": {"description": "", "member_ids": "[]"},
    "tasks": {"group_id": None, "owner_id": None, "description": "", "coins": 0, "visibility": "private"},
}

# Unique keys mirroring the unique indexes in src/core/schema.py
_UNIQUE_KEYS: dict[str, tuple[str, ...]] = {
    "completion_records": ("user_id", "task_id", "date"),
    "task_schedules": ("user_id", "task_id"),
}


def _store_value(value: Any) -> Any:
    """Store values the way SQLite returns them."""
    value = _serialize_value(value)
    if isinstance(value, str):
        return str(value)
    return value


class InMemoryDBClient:
    """Pure Python in-memory database for unit testing.

    Mirrors the db_client module: values are stored as SQLite would return them,
    unique indexes raise ConstraintViolationError, and listing sorts with an id
    tiebreak.
    """

    def __init__(self):
        """Initialize empty in-memory database."""
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._id_counter = 1000

    async def create_record(self, collection: str, data: dict[str, Any]) -> dict[str, Any]:
        """Create a new record in the specified collection.

        Raises:
            ConstraintViolationError: If the record collides with a unique key
            DatabaseError: If data is not a dictionary
        """
        if not isinstance(data, dict):
            raise DatabaseError(f"Data must be a dictionary, got {type(data)}")

        records = self._collections.setdefault(collection, {})
        stored = {key: _store_value(value) for key, value in data.items()}

        unique_key = _UNIQUE_KEYS.get(collection)
        if unique_key:
            candidate = tuple(stored.get(field) for field in unique_key)
            for existing in records.values():
                if tuple(existing.get(field) for field in unique_key) == candidate:
                    raise ConstraintViolationError(f"Duplicate record in {collection}: {candidate}")

        record_id = str(self._id_counter)
        self._id_counter += 1
        now = datetime.now(UTC).isoformat().replace("+00:00", "Z")

        record = {"id": record_id, "created": now, "updated": now, **_DEFAULTS.get(collection, {}), **stored}
        records[record_id] = record
        return copy.deepcopy(record)

    async def get_record(self, collection: str, record_id: str) -> dict[str, Any]:
        """Get a record by ID, raising RecordNotFoundError if missing."""
        if not isinstance(record_id, str):
            raise DatabaseError(f"Record ID must be a string, got {type(record_id)}")

        record = self._collections.get(collection, {}).get(record_id)
        if record is None:
            raise RecordNotFoundError(f"Record not found in {collection}: {record_id}")
        return copy.deepcopy(record)

    async def update_record(self, collection: str, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
        """Update an existing record and return it."""
        if not data:
            raise ValueError("Empty update payload")

        record = self._collections.get(collection, {}).get(record_id)
        if record is None:
            raise RecordNotFoundError(f"Record not found in {collection}: {record_id}")

        record.update({key: _store_value(value) for key, value in data.items()})
        record["updated"] = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return copy.deepcopy(record)

    async def delete_record(self, collection: str, record_id: str) -> None:
        """Delete a record, raising RecordNotFoundError if missing."""
        if record_id not in self._collections.get(collection, {}):
            raise RecordNotFoundError(f"Record not found in {collection}: {record_id}")
        del self._collections[collection][record_id]

    async def list_records(
        self,
        collection: str,
        page: int = 1,
        per_page: int = 50,
        filter_query: str = "",
        sort: str = "",
    ) -> list[dict[str, Any]]:
        """List records with optional filtering, sorting and pagination."""
        records = list(self._collections.get(collection, {}).values())

        if filter_query:
            records = [r for r in records if self._parse_filter(filter_query, r)]

        records = self._apply_sort(records, sort)

        start_idx = (page - 1) * per_page
        return [copy.deepcopy(r) for r in records[start_idx : start_idx + per_page]]

    async def get_first_record(self, collection: str, filter_query: str) -> dict[str, Any] | None:
        """Get the first matching record or None."""
        records = await self.list_records(collection, filter_query=filter_query, per_page=1)
        return records[0] if records else None

    async def increment_field(self, collection: str, record_id: str, field: str, amount: int) -> int:
        """Add `amount` to a numeric field and return the new value."""
        record = self._collections.get(collection, {}).get(record_id)
        if record is None:
            raise RecordNotFoundError(f"Record not found in {collection}: {record_id}")

        # Let other coroutines run between read and write, as a real round-trip would
        await asyncio.sleep(0)
        record[field] = int(record.get(field) or 0) + amount
        return record[field]

    async def create_record_with_increment(
        self,
        collection: str,
        data: dict[str, Any],
        target_collection: str,
        target_id: str,
        field: str,
        amount: int,
    ) -> tuple[dict[str, Any], int]:
        """Insert a record and increment a counter without yielding in between."""
        target = self._collections.get(target_collection, {}).get(target_id)
        if target is None:
            raise RecordNotFoundError(f"Record not found in {target_collection}: {target_id}")

        record = await self.create_record(collection, data)
        target[field] = int(target.get(field) or 0) + amount
        return record, target[field]

    async def set_fields_to_sums(
        self,
        collection: str,
        record_id: str,
        source_collection: str,
        foreign_key: str,
        amount_field: str,
        category_field: str,
        fields: dict[str, str],
    ) -> dict[str, int]:
        """Overwrite fields with sums over related rows without yielding in between."""
        record = self._collections.get(collection, {}).get(record_id)
        if record is None:
            raise RecordNotFoundError(f"Record not found in {collection}: {record_id}")

        related = [
            row for row in self._collections.get(source_collection, {}).values() if row.get(foreign_key) == record_id
        ]
        for target, category in fields.items():
            record[target] = sum(int(row[amount_field]) for row in related if row.get(category_field) == category)
        return {target: record[target] for target in fields}

    def records(self, collection: str) -> list[dict[str, Any]]:
        """All records of a collection, for assertions."""
        return [copy.deepcopy(r) for r in self._collections.get(collection, {}).values()]

    def _parse_filter(self, filter_str: str, record: dict[str, Any]) -> bool:
        """Evaluate a filter expression (=, !=, ~ joined by &&) against a record."""
        if "&&" in filter_str:
            return all(self._parse_filter(cond.strip(), record) for cond in filter_str.split("&&"))

        for op in ("!=", "~", "="):
            if op in filter_str:
                field, raw_value = filter_str.split(op, 1)
                field = field.strip()
                value = raw_value.strip().strip("'\"")
                actual = record.get(field)
                actual_str = "" if actual is None else str(actual)
                if op == "!=":
                    return actual_str != value
                if op == "~":
                    return value.lower() in actual_str.lower()
                return actual_str == value

        raise DatabaseError(f"Invalid filter syntax (no operator found): {filter_str}")

    def _apply_sort(self, records: list[dict], sort: str) -> list[dict]:
        """Sort by "+field"/"-field" clauses, then by numeric id."""
        records = sorted(records, key=lambda r: int(r["id"]))

        clauses = [part.strip() for part in sort.split(",") if part.strip()]
        for clause in reversed(clauses):
            reverse = clause.startswith("-")
            field = clause.lstrip("+-")
            key = (lambda r, f=field: int(r[f])) if field == "id" else (lambda r, f=field: r.get(f) or 0)
            records = sorted(records, key=key, reverse=reverse)
        return records
