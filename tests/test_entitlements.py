import os
import sys
import threading
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from schoolstock.db.session import Base
from schoolstock.core.errors import ItemNotFoundError, LedgerValidationError
from schoolstock.crud.entitlements import (
    bulk_upsert_entitlements,
    delete_entitlement,
    get_entitlement,
    list_entitlements,
    update_entitlement,
    upsert_entitlement,
)
from schoolstock.crud.items import create_item

# Ensure models are imported so metadata is populated
from schoolstock.models import item as item_model  # noqa: F401
from schoolstock.models import entitlement as entitlement_model  # noqa: F401


@pytest.fixture()
def db_session():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False})
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def item(db_session):
    return create_item(db_session, {"name": "Atlas"})


def test_upsert_twice_keeps_one_row_with_latest_quantity(db_session, item):
    first = upsert_entitlement(db_session, {"class_id": 4, "item_id": item.id, "term_id": 1, "quantity": 25})
    second = upsert_entitlement(db_session, {"class_id": 4, "item_id": item.id, "term_id": 1, "quantity": 30})

    assert first.id == second.id
    rows = list_entitlements(db_session, class_id=4)
    assert len(rows) == 1
    assert rows[0].quantity == 30


def test_entitlement_ignores_stock(db_session, item):
    # No purchases exist; planning a large allotment is still fine.
    entitlement = upsert_entitlement(db_session, {"class_id": 1, "item_id": item.id, "term_id": 1, "quantity": 500})

    assert entitlement.quantity == 500


def test_zero_quantity_allowed_negative_rejected(db_session, item):
    zero = upsert_entitlement(db_session, {"class_id": 1, "item_id": item.id, "term_id": 2, "quantity": 0})
    assert zero.quantity == 0

    with pytest.raises(LedgerValidationError):
        upsert_entitlement(db_session, {"class_id": 1, "item_id": item.id, "term_id": 2, "quantity": -1})


def test_unknown_item_rejected(db_session):
    with pytest.raises(ItemNotFoundError):
        upsert_entitlement(db_session, {"class_id": 1, "item_id": 99, "term_id": 1, "quantity": 1})


def test_bulk_upsert_last_record_wins(db_session, item):
    rows = bulk_upsert_entitlements(
        db_session,
        [
            {"class_id": 1, "item_id": item.id, "term_id": 1, "quantity": 10},
            {"class_id": 2, "item_id": item.id, "term_id": 1, "quantity": 12},
            {"class_id": 1, "item_id": item.id, "term_id": 1, "quantity": 15},
        ],
    )

    assert len(rows) == 2
    stored = {(row.class_id, row.term_id): row.quantity for row in list_entitlements(db_session)}
    assert stored == {(1, 1): 15, (2, 1): 12}


def test_bulk_upsert_validates_everything_first(db_session, item):
    upsert_entitlement(db_session, {"class_id": 1, "item_id": item.id, "term_id": 1, "quantity": 10})

    with pytest.raises(LedgerValidationError) as excinfo:
        bulk_upsert_entitlements(
            db_session,
            [
                {"class_id": 1, "item_id": item.id, "term_id": 1, "quantity": 99},
                {"class_id": 3, "item_id": item.id, "term_id": None, "quantity": 5},
            ],
        )

    assert excinfo.value.details["index"] == 1
    [row] = list_entitlements(db_session)
    assert row.quantity == 10


def test_update_and_delete(db_session, item):
    entitlement = upsert_entitlement(db_session, {"class_id": 1, "item_id": item.id, "term_id": 1, "quantity": 10})

    updated = update_entitlement(db_session, entitlement, {"quantity": 11, "notes": "new pupils"})
    assert (updated.quantity, updated.notes) == (11, "new pupils")

    with pytest.raises(LedgerValidationError):
        update_entitlement(db_session, entitlement, {"term_id": 2})

    delete_entitlement(db_session, entitlement)
    assert get_entitlement(db_session, entitlement.id) is None


def _file_sessions(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'entitlements.db'}",
        connect_args={"check_same_thread": False, "timeout": 10},
    )
    Base.metadata.create_all(bind=engine)
    return engine, sessionmaker(bind=engine, autocommit=False, autoflush=False)


def test_upsert_after_another_writer_inserted_the_key(tmp_path):
    engine, SessionFactory = _file_sessions(tmp_path)
    with SessionFactory() as first, SessionFactory() as second:
        item_id = create_item(first, {"name": "Globe"}).id
        assert list_entitlements(first) == []

        upsert_entitlement(second, {"class_id": 2, "item_id": item_id, "term_id": 1, "quantity": 8, "notes": "plan"})
        saved = upsert_entitlement(first, {"class_id": 2, "item_id": item_id, "term_id": 1, "quantity": 12})

        [row] = list_entitlements(second)
        assert row.id == saved.id
        assert (saved.quantity, saved.notes) == (12, "plan")
    engine.dispose()


def test_concurrent_upserts_of_one_key_store_one_row(tmp_path):
    engine, SessionFactory = _file_sessions(tmp_path)
    with SessionFactory() as setup:
        item_id = create_item(setup, {"name": "Globe"}).id

    barrier = threading.Barrier(2)
    errors = []

    def worker(quantity):
        with SessionFactory() as session:
            barrier.wait(timeout=5)
            try:
                upsert_entitlement(session, {"class_id": 5, "item_id": item_id, "term_id": 1, "quantity": quantity})
            except Exception as exc:  # noqa: BLE001
                errors.append(exc)

    threads = [threading.Thread(target=worker, args=(quantity,)) for quantity in (20, 30)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert errors == []
    with SessionFactory() as check:
        [row] = list_entitlements(check, class_id=5)
        assert row.quantity in (20, 30)
    engine.dispose()
