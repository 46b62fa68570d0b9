"""Idempotent, additive schema upgrades for SQLite databases."""

from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import text
from sqlalchemy.engine import Engine

from ..core.logging import log_event

logger = logging.getLogger(__name__)

# Columns added after the first release, per table. ``create_all`` never alters
# an existing table, so older databases pick these up here.
_ADDED_COLUMNS: dict[str, dict[str, str]] = {
    "inventory_items": {
        "low_stock_threshold": "INTEGER DEFAULT 0 NOT NULL",
        "created_by": "TEXT",
    },
    "inventory_transactions": {
        "distribution_id": "INTEGER REFERENCES class_distributions(id)",
        "reference_no": "TEXT",
        "created_by": "TEXT",
    },
    "class_distributions": {
        "status": "TEXT DEFAULT 'active' NOT NULL",
        "cancelled_at": "TEXT",
        "created_by": "TEXT",
    },
    "class_entitlements": {
        "notes": "TEXT",
        "created_by": "TEXT",
    },
    "student_collections": {
        "given_by": "INTEGER",
        "created_by": "TEXT",
    },
}

# (table, index name, key columns). Tables built by create_all already carry the
# key as a UNIQUE constraint; older tables get the index after duplicates are
# collapsed to the newest row.
_UNIQUE_KEYS: tuple[tuple[str, str, tuple[str, ...]], ...] = (
    ("class_entitlements", "ux_class_entitlements_key", ("class_id", "item_id", "term_id")),
    ("student_collections", "ux_student_collections_key", ("student_id", "term_id", "item_id")),
)


def _column_names(engine: Engine, table: str) -> set[str]:
    with engine.connect() as conn:
        rows = conn.execute(text(f"PRAGMA table_info({table})")).mappings().all()
    return {row["name"] for row in rows}


def _add_column_sqlite(engine: Engine, table: str, col_def: str) -> None:
    with engine.begin() as conn:
        conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {col_def}"))


def _collapse_duplicates(engine: Engine, table: str, cols: Iterable[str]) -> int:
    """Keep the highest id for every key so a unique index can be built."""

    cols_sql = ", ".join(cols)
    with engine.begin() as conn:
        result = conn.execute(
            text(f"DELETE FROM {table} WHERE id NOT IN (SELECT MAX(id) FROM {table} GROUP BY {cols_sql})")
        )
    return result.rowcount or 0


def _has_unique_key(engine: Engine, table: str, cols: Iterable[str]) -> bool:
    """True when some unique index (named or from a UNIQUE constraint) covers exactly ``cols``."""

    wanted = set(cols)
    with engine.connect() as conn:
        indexes = conn.execute(text(f"PRAGMA index_list({table})")).mappings().all()
        for index in indexes:
            if not index["unique"]:
                continue
            info = conn.execute(text(f"PRAGMA index_info('{index['name']}')")).mappings().all()
            if {row["name"] for row in info} == wanted:
                return True
    return False


def _create_index_if_not_exists(engine: Engine, table: str, name: str, cols: Iterable[str], unique: bool = False) -> None:
    cols_sql = ", ".join(cols)
    unique_sql = "UNIQUE " if unique else ""
    with engine.begin() as conn:
        conn.execute(text(f"CREATE {unique_sql}INDEX IF NOT EXISTS {name} ON {table} ({cols_sql})"))


def _link_legacy_distribution_rows(engine: Engine) -> int:
    """Attach unlinked distribution ledger rows to the distribution they mirror.

    Older builds wrote the pair without a foreign key. A row is linked only when
    item, quantity and date match exactly one distribution.
    """

    with engine.begin() as conn:
        result = conn.execute(
            text(
                """
                UPDATE inventory_transactions
                SET distribution_id = (
                    SELECT d.id FROM class_distributions d
                    WHERE d.item_id = inventory_transactions.item_id
                      AND d.distributed_quantity = inventory_transactions.qty_out
                      AND d.distribution_date = inventory_transactions.transaction_date
                )
                WHERE transaction_type = 'distribution'
                  AND distribution_id IS NULL
                  AND (
                    SELECT COUNT(*) FROM class_distributions d
                    WHERE d.item_id = inventory_transactions.item_id
                      AND d.distributed_quantity = inventory_transactions.qty_out
                      AND d.distribution_date = inventory_transactions.transaction_date
                  ) = 1
                """
            )
        )
    return result.rowcount or 0


def run_migrations(engine: Engine) -> None:
    """Bring an existing SQLite schema up to what the models expect."""

    if engine.dialect.name != "sqlite":
        return

    for table, needed in _ADDED_COLUMNS.items():
        existing = _column_names(engine, table)
        if not existing:
            # Table absent: create_all builds it fresh.
            continue
        for name, col_type in needed.items():
            if name not in existing:
                _add_column_sqlite(engine, table, f"{name} {col_type}")
                log_event(logger, "migrate.column_added", table=table, column=name)

    for table, index_name, cols in _UNIQUE_KEYS:
        if not _column_names(engine, table) or _has_unique_key(engine, table, cols):
            continue
        removed = _collapse_duplicates(engine, table, cols)
        if removed:
            log_event(logger, "migrate.duplicates_collapsed", level=logging.WARNING, table=table, removed=removed)
        _create_index_if_not_exists(engine, table, index_name, cols, unique=True)

    if _column_names(engine, "inventory_transactions") and _column_names(engine, "class_distributions"):
        linked = _link_legacy_distribution_rows(engine)
        if linked:
            log_event(logger, "migrate.distribution_rows_linked", linked=linked)
        _create_index_if_not_exists(engine, "inventory_transactions", "ix_inventory_transactions_distribution_id", ["distribution_id"])
