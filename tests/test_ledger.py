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
from schoolstock.core.errors import ItemNotFoundError, LedgerValidationError, RecordNotFoundError
from schoolstock.crud.items import create_item, get_item_by_sku, update_item
from schoolstock.crud.ledger import (
    delete_transaction,
    list_transactions,
    record_purchase,
    record_transaction,
    require_transaction,
    update_transaction,
)
from schoolstock.services.distribution import distribute, get_paired_entry

# Ensure models are imported so metadata is populated
from schoolstock.models import item as item_model  # noqa: F401
from schoolstock.models import distribution as distribution_model  # noqa: F401
from schoolstock.models import ledger as ledger_model  # noqa: F401


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
    return create_item(db_session, {"name": "Notebook", "sku": "NB-1", "cost_price": "$2.50"})


def test_create_item_normalizes_prices_and_sku(db_session, item):
    assert item.cost_price == pytest.approx(2.5)
    assert item.low_stock_threshold == 0
    assert get_item_by_sku(db_session, " NB-1 ").id == item.id


def test_duplicate_sku_rejected(db_session, item):
    with pytest.raises(LedgerValidationError):
        create_item(db_session, {"name": "Other notebook", "sku": "NB-1"})


def test_update_item_threshold(db_session, item):
    updated = update_item(db_session, item, {"low_stock_threshold": 4, "brand_name": " Acme "})

    assert updated.low_stock_threshold == 4
    assert updated.brand_name == "Acme"


def test_row_cannot_move_both_directions(db_session, item):
    with pytest.raises(LedgerValidationError):
        record_transaction(db_session, item_id=item.id, transaction_type="return", qty_in=2, qty_out=1)
    assert list_transactions(db_session, item_id=item.id) == []


def test_negative_quantity_rejected(db_session, item):
    with pytest.raises(LedgerValidationError):
        record_transaction(db_session, item_id=item.id, transaction_type="purchase", qty_in=-3)


def test_purchase_needs_qty_in(db_session, item):
    with pytest.raises(LedgerValidationError):
        record_transaction(db_session, item_id=item.id, transaction_type="purchase", qty_out=3)


def test_return_accepts_either_direction(db_session, item):
    back_in = record_transaction(db_session, item_id=item.id, transaction_type="return", qty_in=2)
    back_out = record_transaction(db_session, item_id=item.id, transaction_type="Return", qty_out=1)

    assert back_in.net_quantity == 2
    assert back_out.transaction_type == "return"


def test_distribution_kind_cannot_be_written_directly(db_session, item):
    with pytest.raises(LedgerValidationError):
        record_transaction(db_session, item_id=item.id, transaction_type="distribution", qty_out=1)


def test_unknown_item_rejected(db_session):
    with pytest.raises(ItemNotFoundError):
        record_purchase(db_session, item_id=42, quantity=1)


def test_new_rows_default_to_pending(db_session, item):
    entry = record_transaction(db_session, item_id=item.id, transaction_type="purchase", qty_in=5)

    assert entry.status == "pending"
    assert entry.transaction_date.endswith("Z")


def test_update_transaction_changes_status_only(db_session, item):
    entry = record_transaction(db_session, item_id=item.id, transaction_type="purchase", qty_in=5)

    updated = update_transaction(db_session, entry, {"status": "completed", "reference_no": " PO-7 "})
    assert updated.status == "completed"
    assert updated.reference_no == "PO-7"

    with pytest.raises(LedgerValidationError):
        update_transaction(db_session, entry, {"qty_in": 9})


def test_list_transactions_filters(db_session, item):
    record_purchase(db_session, item_id=item.id, quantity=5, transaction_date="2024-03-01")
    record_transaction(db_session, item_id=item.id, transaction_type="sale", qty_out=1, transaction_date="2024-03-02")

    sales = list_transactions(db_session, transaction_type="sale")
    completed = list_transactions(db_session, status="completed")

    assert [row.transaction_type for row in sales] == ["sale"]
    assert [row.transaction_type for row in completed] == ["purchase"]
    assert [row.transaction_date for row in list_transactions(db_session)] == [
        "2024-03-02T00:00:00Z",
        "2024-03-01T00:00:00Z",
    ]


def test_distribution_rows_cannot_be_edited_through_ledger(db_session, item):
    record_purchase(db_session, item_id=item.id, quantity=10)
    distribution = distribute(db_session, class_id=1, item_id=item.id, term_id=1, quantity=4, received_by=11)
    paired = get_paired_entry(db_session, distribution.id)

    with pytest.raises(LedgerValidationError):
        delete_transaction(db_session, paired)
    with pytest.raises(LedgerValidationError):
        update_transaction(db_session, paired, {"status": "cancelled"})


def test_require_transaction_missing(db_session):
    with pytest.raises(RecordNotFoundError):
        require_transaction(db_session, 1234)
