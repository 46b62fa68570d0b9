"""Insert-or-update on a unique key, resolved by the database."""

from __future__ import annotations

from typing import Iterable

from sqlalchemy import func, select
from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.orm import Session

_INSERTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
    "mysql": mysql.insert,
    "mariadb": mysql.insert,
}


def upsert_row(
    db: Session,
    model,
    *,
    key: Iterable[str],
    values: dict,
    update: Iterable[str],
    keep_when_null: Iterable[str] = (),
):
    """Insert ``values``, or update the ``update`` columns of the row sharing ``key``.

    The conflict is settled inside one ``INSERT ... ON CONFLICT`` statement, so
    two writers racing on the same key both succeed and the later one wins.
    Columns in ``keep_when_null`` keep their stored value when the incoming one
    is NULL. Returns the stored row, loaded fresh.
    """

    dialect = db.get_bind().dialect.name
    try:
        insert = _INSERTS[dialect]
    except KeyError as exc:
        raise NotImplementedError(f"upsert is not supported on {dialect}") from exc

    key = tuple(key)
    keep_when_null = set(keep_when_null)
    table = model.__table__
    stmt = insert(table).values(**values)
    incoming = stmt.inserted if dialect in ("mysql", "mariadb") else stmt.excluded
    changes = {}
    for column in update:
        if column in keep_when_null:
            changes[column] = func.coalesce(incoming[column], table.c[column])
        else:
            changes[column] = incoming[column]

    if dialect in ("mysql", "mariadb"):
        stmt = stmt.on_duplicate_key_update(**changes)
    else:
        stmt = stmt.on_conflict_do_update(index_elements=[table.c[column] for column in key], set_=changes)
    db.execute(stmt)

    lookup = (
        select(model)
        .where(*(getattr(model, column) == values[column] for column in key))
        .execution_options(populate_existing=True)
    )
    return db.execute(lookup).scalars().one()
