import os
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from schoolstock.db.session import Base
from schoolstock.core.errors import LedgerValidationError, RecordNotFoundError
from schoolstock.crud.collections import (
    bulk_upsert_collections,
    delete_collection,
    list_collections,
    require_collection,
    upsert_collection,
)
from schoolstock.crud.items import create_item

# Ensure models are imported so metadata is populated
from schoolstock.models import item as item_model  # noqa: F401
from schoolstock.models import collection as collection_model  # noqa: F401


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
    return create_item(db_session, {"name": "Uniform tie"})


def _record(item_id, **overrides):
    record = {"student_id": 1, "class_id": 1, "term_id": 1, "item_id": item_id, "qty": 1}
    record.update(overrides)
    return record


def test_received_without_date_is_stamped(db_session, item):
    row = upsert_collection(db_session, _record(item.id, received=True))

    assert row.received is True
    assert row.received_date.endswith("Z")
    assert row.eligible is True


def test_unreceived_rows_have_no_date(db_session, item):
    row = upsert_collection(db_session, _record(item.id, received_date="2024-01-01"))

    assert row.received is False
    assert row.received_date is None


def test_upsert_replaces_same_student_term_item(db_session, item):
    first = upsert_collection(db_session, _record(item.id, qty=1))
    second = upsert_collection(db_session, _record(item.id, qty=2, received=True, given_by=8))

    assert first.id == second.id
    [row] = list_collections(db_session)
    assert (row.qty, row.received, row.given_by) == (2, True, 8)


def test_qty_must_be_positive(db_session, item):
    with pytest.raises(LedgerValidationError):
        upsert_collection(db_session, _record(item.id, qty=0))


def test_bulk_upsert_single_commit(db_session, item):
    rows = bulk_upsert_collections(
        db_session,
        [
            _record(item.id, student_id=1, qty=1),
            _record(item.id, student_id=2, qty=1, received=True),
            _record(item.id, student_id=1, qty=3),
        ],
    )

    assert len(rows) == 2
    assert {row.student_id: row.qty for row in list_collections(db_session)} == {1: 3, 2: 1}
    assert [row.student_id for row in list_collections(db_session, received=True)] == [2]


def test_bulk_upsert_bad_record_writes_nothing(db_session, item):
    with pytest.raises(LedgerValidationError):
        bulk_upsert_collections(db_session, [_record(item.id), _record(item.id, student_id=None)])

    assert list_collections(db_session) == []


def test_delete_collection(db_session, item):
    row = upsert_collection(db_session, _record(item.id))
    delete_collection(db_session, row)

    with pytest.raises(RecordNotFoundError):
        require_collection(db_session, row.id)


def test_upsert_after_another_writer_inserted_the_key(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'collections.db'}",
        connect_args={"check_same_thread": False, "timeout": 10},
    )
    Base.metadata.create_all(bind=engine)
    SessionFactory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    with SessionFactory() as first, SessionFactory() as second:
        item_id = create_item(first, {"name": "Lunch box"}).id
        assert list_collections(first) == []

        upsert_collection(second, _record(item_id, qty=1))
        saved = upsert_collection(first, _record(item_id, qty=2, received=True))

        [row] = list_collections(second)
        assert row.id == saved.id
        assert (saved.qty, saved.received) == (2, True)
    engine.dispose()
