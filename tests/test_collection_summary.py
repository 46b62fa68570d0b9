import logging
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
from schoolstock.crud.collections import upsert_collection
from schoolstock.crud.items import create_item
from schoolstock.crud.ledger import record_purchase
from schoolstock.services.collection import get_distribution_summary
from schoolstock.services.distribution import cancel_distribution, distribute

# Ensure models are imported so metadata is populated
from schoolstock.models import item as item_model  # noqa: F401
from schoolstock.models import distribution as distribution_model  # noqa: F401
from schoolstock.models import ledger as ledger_model  # noqa: F401
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
def items(db_session):
    books = create_item(db_session, {"name": "Books"})
    pens = create_item(db_session, {"name": "Pens"})
    glue = create_item(db_session, {"name": "Glue"})
    for item in (books, pens, glue):
        record_purchase(db_session, item_id=item.id, quantity=100)
    return books, pens, glue


def _collect(db_session, *, student_id, item_id, qty, received=True, class_id=1, term_id=1, given_by=None):
    return upsert_collection(
        db_session,
        {
            "student_id": student_id,
            "class_id": class_id,
            "term_id": term_id,
            "item_id": item_id,
            "qty": qty,
            "received": received,
            "given_by": given_by,
        },
    )


def test_balance_merges_both_sides(db_session, items):
    books, pens, glue = items
    distribute(db_session, class_id=1, item_id=books.id, term_id=1, quantity=30, distribution_date="2024-01-05", received_by=11)
    distribute(db_session, class_id=1, item_id=books.id, term_id=1, quantity=10, distribution_date="2024-02-05", received_by=11)
    distribute(db_session, class_id=1, item_id=pens.id, term_id=1, quantity=20, received_by=11)
    _collect(db_session, student_id=1, item_id=books.id, qty=3)
    _collect(db_session, student_id=2, item_id=books.id, qty=2)
    _collect(db_session, student_id=3, item_id=books.id, qty=9, received=False)
    # Collected but never distributed.
    _collect(db_session, student_id=1, item_id=glue.id, qty=1)

    rows = get_distribution_summary(db_session)

    assert [row["item_id"] for row in rows] == [books.id, pens.id, glue.id]
    by_item = {row["item_id"]: row for row in rows}
    assert by_item[books.id]["total_distributed"] == 40
    assert by_item[books.id]["total_collected"] == 5
    assert by_item[books.id]["balance"] == 35
    assert by_item[books.id]["last_distribution_date"] == "2024-02-05T00:00:00Z"
    assert by_item[pens.id]["total_collected"] == 0
    assert by_item[pens.id]["balance"] == 20
    assert by_item[glue.id]["total_distributed"] == 0
    assert by_item[glue.id]["last_distribution_date"] is None
    assert by_item[glue.id]["balance"] == -1


def test_over_collection_is_flagged_and_logged(db_session, items, caplog):
    books, _, _ = items
    distribute(db_session, class_id=1, item_id=books.id, term_id=1, quantity=2, received_by=11)
    _collect(db_session, student_id=1, item_id=books.id, qty=2)
    _collect(db_session, student_id=2, item_id=books.id, qty=1)

    with caplog.at_level(logging.WARNING, logger="schoolstock.services.collection"):
        [row] = get_distribution_summary(db_session)

    assert row["balance"] == -1
    assert row["is_over_collected"] is True
    assert any(record.getMessage() == "collection.over_collected" for record in caplog.records)


def test_filters_apply_to_both_sides(db_session, items):
    books, _, _ = items
    distribute(db_session, class_id=1, item_id=books.id, term_id=1, quantity=10, received_by=50)
    distribute(db_session, class_id=2, item_id=books.id, term_id=1, quantity=7, received_by=60)
    distribute(db_session, class_id=1, item_id=books.id, term_id=2, quantity=4, received_by=50)
    _collect(db_session, student_id=1, item_id=books.id, qty=3, class_id=1, term_id=1, given_by=50)
    _collect(db_session, student_id=2, item_id=books.id, qty=2, class_id=2, term_id=1, given_by=60)

    [class_one] = get_distribution_summary(db_session, class_id=1, term_id=1)
    assert (class_one["total_distributed"], class_one["total_collected"]) == (10, 3)

    [teacher] = get_distribution_summary(db_session, teacher_id=60)
    assert (teacher["total_distributed"], teacher["total_collected"]) == (7, 2)

    assert get_distribution_summary(db_session, term_id=9) == []


def test_cancelled_distributions_are_excluded(db_session, items):
    books, _, _ = items
    kept = distribute(db_session, class_id=1, item_id=books.id, term_id=1, quantity=10, received_by=11)
    dropped = distribute(db_session, class_id=1, item_id=books.id, term_id=1, quantity=6, received_by=11)
    cancel_distribution(db_session, dropped)

    [row] = get_distribution_summary(db_session, item_id=books.id)

    assert row["total_distributed"] == kept.distributed_quantity
