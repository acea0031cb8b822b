import logging
from typing import Any, Dict, List, Sequence
from schoolhub.db.store_interface import RemoteStore
from schoolhub.exceptions import StoreWriteError

logger = logging.getLogger(__name__)


def check_batch(table: str, rows: List[Dict[str, Any]], conflict_key: Sequence[str]) -> None:
    """
    Reject a batch the store could never apply: a row lacking a key column, or two
    rows sharing one key (PostgreSQL refuses to update a row twice in one upsert).
    """
    if not conflict_key:
        raise ValueError("conflict_key must name at least one column")

    seen = {}
    for index, row in enumerate(rows):
        missing = [column for column in conflict_key if row.get(column) is None]
        if missing:
            raise ValueError(f"Row {index} for '{table}' is missing conflict key columns: {', '.join(missing)}")
        key = tuple(row[column] for column in conflict_key)
        if key in seen:
            raise ValueError(f"Rows {seen[key]} and {index} for '{table}' share conflict key {key}")
        seen[key] = index


def upsert_by_conflict_key(store: RemoteStore, table: str, rows: List[Dict[str, Any]],
                           conflict_key: Sequence[str]) -> List[Dict[str, Any]]:
    """
    Write `rows` to `table` in one call: rows whose `conflict_key` values match a
    stored row replace its other fields, the rest are inserted.

    Applying the same batch twice leaves the store as applying it once. The batch
    is a single call with a single outcome; on failure nothing can be assumed about
    which rows landed.

    Args:
        store: Remote store to write to
        table: Target table
        rows: Candidate rows, each carrying every conflict key column
        conflict_key: Ordered natural key columns, backed by a unique constraint

    Returns:
        The rows as written by the store

    Raises:
        ValueError: If the key is empty, a row lacks a key column, or two rows share
            a key (no call is made)
        StoreWriteError: If the store rejects the write
    """
    check_batch(table, rows, conflict_key)
    if not rows:
        return []

    try:
        written = store.upsert(table, rows, conflict_key)
    except StoreWriteError as e:
        logger.error(f"Upsert of {len(rows)} rows into '{table}' failed: {e.message}")
        raise

    logger.debug(f"Upserted {len(rows)} rows into '{table}' keyed on ({', '.join(conflict_key)})")
    return written
