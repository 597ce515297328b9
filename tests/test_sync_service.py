"""
Sync reconciler tests.

Verifies:
- Products and partners upsert by name without duplication
- Transactions upsert by uid (repeating a sync never duplicates them)
- Synced transactions never move stock
- Bad rows are skipped and reported; the rest still apply
- Void status propagates one way only
"""

import pytest
from sqlalchemy.exc import DataError

from storebook.extensions import db
from storebook.models import Partner, Product, Transaction, TransactionItem
from storebook.services.posting_service import post_transaction, void_transaction
from storebook.services import sync_service
from storebook.services.sync_service import content_uid, reconcile, snapshot
from storebook.validation import ValidationError


WIDGET = {
    "id": 77,
    "name": "Widget",
    "sku": "WG-1",
    "quantity": 12,
    "cost_price_cents": 300,
    "selling_price_cents": 700,
    "min_stock_level": 2,
    "category": "Parts",
    "is_active": True,
    "created_at": "2024-01-01T00:00:00Z",
}


def _remote_sale(uid: str | None = "a" * 32) -> dict:
    record = {
        "type": "sale",
        "partner_name": "Walk-in Customer",
        "user_id": 3,
        "total_amount_cents": 5000,
        "status": "completed",
        "notes": None,
        "transaction_date": "2024-02-01T10:00:00Z",
        "items": [
            {"product_name": "Wireless Mouse", "quantity": 2, "price_cents": 2500, "cost_cents": 1000},
        ],
    }
    if uid is not None:
        record["uid"] = uid
    return record


# =============================================================================
# PRODUCTS AND PARTNERS
# =============================================================================


class TestProductPartnerUpsert:
    def test_same_product_twice_keeps_one_row(self, db_session):
        reconcile({"products": [WIDGET]})
        reconcile({"products": [WIDGET]})

        rows = db.session.query(Product).filter_by(name="Widget").all()
        assert len(rows) == 1
        widget = rows[0]
        assert widget.sku == "WG-1"
        assert widget.quantity == 12
        assert widget.cost_price_cents == 300
        assert widget.selling_price_cents == 700

    def test_name_match_overwrites_fields(self, mouse):
        reconcile({"products": [{"name": "Wireless Mouse", "quantity": 7, "selling_price_cents": 2700}]})

        product = db.session.get(Product, mouse.id)
        assert product.quantity == 7
        assert product.selling_price_cents == 2700
        assert db.session.query(Product).count() == 1

    def test_partner_upsert(self, customer):
        result = reconcile({"partners": [
            {"name": "Walk-in Customer", "type": "customer", "phone": "555-0100"},
            {"name": "Tech Supplier Inc.", "type": "supplier"},
        ]})
        assert result["applied"]["partners"] == {"updated": 1, "inserted": 1}
        assert db.session.get(Partner, customer.id).phone == "555-0100"
        assert db.session.query(Partner).count() == 2

    def test_unique_sku_clash_is_reported(self, mouse):
        result = reconcile({"products": [
            {"name": "Other Mouse", "sku": "MS-001"},
            WIDGET,
        ]})

        assert len(result["conflicts"]) == 1
        conflict = result["conflicts"][0]
        assert conflict["collection"] == "products"
        assert conflict["index"] == 0
        assert conflict["key"] == "Other Mouse"
        assert db.session.query(Product).filter_by(name="Widget").count() == 1
        assert db.session.query(Product).filter_by(name="Other Mouse").count() == 0

    def test_name_match_replaces_the_whole_row(self, mouse):
        reconcile({"products": [{"name": "Wireless Mouse", "quantity": 7}]})

        product = db.session.get(Product, mouse.id)
        assert product.quantity == 7
        assert product.sku is None
        assert product.category is None
        assert product.cost_price_cents == 0
        assert product.selling_price_cents == 0
        assert product.min_stock_level == 5

    def test_partner_update_without_type_is_reported(self, customer):
        result = reconcile({"partners": [{"name": "Walk-in Customer", "phone": "555-0100"}]})

        assert len(result["conflicts"]) == 1
        partner = db.session.get(Partner, customer.id)
        assert partner.type == "customer"
        assert partner.phone is None


# =============================================================================
# TRANSACTIONS
# =============================================================================


class TestTransactionUpsert:
    def test_repeated_sync_does_not_duplicate(self, mouse, customer):
        payload = {"transactions": [_remote_sale("a" * 32), _remote_sale("b" * 32)]}

        reconcile(payload)
        reconcile(payload)

        assert db.session.query(Transaction).count() == 2
        assert db.session.query(TransactionItem).count() == 2

    def test_records_without_uid_get_content_hash(self, mouse, customer):
        payload = {"transactions": [_remote_sale(uid=None)]}

        reconcile(payload)
        reconcile(payload)

        rows = db.session.query(Transaction).all()
        assert len(rows) == 1
        assert rows[0].uid == content_uid(_remote_sale(uid=None))

    def test_synced_transaction_does_not_move_stock(self, mouse, customer):
        reconcile({"transactions": [_remote_sale()]})

        tx = db.session.query(Transaction).one()
        assert tx.partner_id == customer.id
        assert tx.items[0].product_id == mouse.id
        assert tx.items[0].cost_cents == 1000
        assert db.session.get(Product, mouse.id).quantity == 50

    def test_unknown_product_is_reported(self, customer):
        result = reconcile({"transactions": [_remote_sale()]})

        assert result["conflicts"][0]["collection"] == "transactions"
        assert "Wireless Mouse" in result["conflicts"][0]["error"]
        assert db.session.query(Transaction).count() == 0
        assert db.session.query(TransactionItem).count() == 0

    def test_item_without_cost_is_reported(self, mouse, customer):
        record = _remote_sale()
        record["items"] = [{"product_name": "Wireless Mouse", "quantity": 2, "price_cents": 2500}]

        result = reconcile({"transactions": [record]})

        assert len(result["conflicts"]) == 1
        assert "cost_cents" in result["conflicts"][0]["error"]
        assert db.session.query(Transaction).count() == 0
        assert db.session.query(TransactionItem).count() == 0

    def test_overlong_void_reason_is_reported(self, mouse, customer):
        record = {**_remote_sale(), "status": "voided", "void_reason": "x" * 256}

        result = reconcile({"transactions": [record]})

        assert len(result["conflicts"]) == 1
        assert "void_reason" in result["conflicts"][0]["error"]
        assert db.session.query(Transaction).count() == 0

    def test_products_arrive_before_their_transactions(self, customer):
        result = reconcile({
            "products": [{"name": "Wireless Mouse", "quantity": 48, "cost_price_cents": 1000}],
            "transactions": [_remote_sale()],
        })
        assert result["conflicts"] == []
        assert db.session.query(Transaction).count() == 1

    def test_void_propagates(self, mouse, customer):
        reconcile({"transactions": [_remote_sale()]})

        voided = {**_remote_sale(), "status": "voided", "void_reason": "returned"}
        result = reconcile({"transactions": [voided]})

        tx = db.session.query(Transaction).one()
        assert result["applied"]["transactions"] == {"voided": 1}
        assert tx.status == "voided"
        assert tx.void_reason == "returned"
        assert tx.voided_at is not None

    def test_void_is_not_undone_by_stale_peer(self, user, mouse):
        tx = post_transaction(
            type="sale",
            user_id=user.id,
            items=[{"product_id": mouse.id, "quantity": 1, "price_cents": 2500}],
        )
        stale = snapshot()["transactions"]
        void_transaction(tx.id, user_id=user.id, reason="mistake")

        reconcile({"transactions": stale})

        assert db.session.get(Transaction, tx.id).status == "voided"


# =============================================================================
# ROW ISOLATION
# =============================================================================


class TestRowIsolation:
    def test_out_of_range_middle_row_is_skipped(self, db_session):
        result = reconcile({"products": [
            {"name": "A", "quantity": 1},
            {"name": "B", "quantity": 10**20},
            {"name": "C", "quantity": 3},
        ]})

        assert [(c["index"], c["key"]) for c in result["conflicts"]] == [(1, "B")]
        assert result["applied"]["products"] == {"inserted": 2}
        names = sorted(name for (name,) in db.session.query(Product.name).all())
        assert names == ["A", "C"]

    def test_out_of_range_transaction_total_is_skipped(self, mouse, customer):
        bad = {**_remote_sale("b" * 32), "total_amount_cents": 2**63}

        result = reconcile({"transactions": [_remote_sale("a" * 32), bad, _remote_sale("c" * 32)]})

        assert [c["index"] for c in result["conflicts"]] == [1]
        uids = sorted(uid for (uid,) in db.session.query(Transaction.uid).all())
        assert uids == ["a" * 32, "c" * 32]

    def test_database_error_is_skipped(self, db_session, monkeypatch):
        upsert_partner = sync_service._UPSERTS["partners"]

        def failing_upsert(record):
            if record["name"] == "Broken":
                raise DataError("INSERT INTO partners", {}, Exception("value too long"))
            return upsert_partner(record)

        monkeypatch.setitem(sync_service._UPSERTS, "partners", failing_upsert)

        result = reconcile({"partners": [
            {"name": "Broken", "type": "customer"},
            {"name": "Fine", "type": "supplier"},
        ]})

        assert len(result["conflicts"]) == 1
        assert result["conflicts"][0]["key"] == "Broken"
        assert "DataError" in result["conflicts"][0]["error"]
        assert [p.name for p in db.session.query(Partner).all()] == ["Fine"]


# =============================================================================
# ENVELOPE AND ROUND TRIP
# =============================================================================


class TestReconcile:
    def test_returns_current_state(self, mouse, customer):
        result = reconcile({"products": [WIDGET]})

        assert result["received_count"] == {"products": 1, "partners": 0, "transactions": 0}
        names = sorted(p["name"] for p in result["current_state"]["products"])
        assert names == ["Widget", "Wireless Mouse"]
        assert [p["name"] for p in result["current_state"]["partners"]] == ["Walk-in Customer"]

    def test_own_snapshot_is_a_no_op(self, user, mouse, keyboard, customer):
        post_transaction(
            type="sale",
            user_id=user.id,
            partner_id=customer.id,
            items=[
                {"product_id": mouse.id, "quantity": 2, "price_cents": 2500},
                {"product_id": keyboard.id, "quantity": 1, "price_cents": 9000},
            ],
        )
        before = snapshot()

        result = reconcile(before)

        assert result["conflicts"] == []
        assert result["current_state"] == before

    @pytest.mark.parametrize(
        "payload",
        [
            ["not", "an", "object"],
            {"products": {"name": "Widget"}},
            {"transactions": ["uid-only"]},
        ],
    )
    def test_malformed_envelope_is_rejected(self, db_session, payload):
        with pytest.raises(ValidationError):
            reconcile(payload)
