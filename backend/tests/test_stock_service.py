# Overview: Pytest coverage for the stock ledger service.

"""
Stock Ledger Tests

Pools never go negative, every mutation leaves history, and every move
leaves exactly one transfer transaction.
"""

import pytest

from filmstock.extensions import db
from filmstock.models import StockPool, StockHistoryEntry, StockTransaction
from filmstock.services import stock_service
from filmstock.services.stock_service import InsufficientStockError
from filmstock.validation import ValidationError


class TestReads:
    def test_unknown_pool_is_rejected(self, db_session):
        with pytest.raises(ValidationError):
            stock_service.get_pool("warehouse")

    def test_missing_pool_reads_as_zero(self, db_session):
        assert stock_service.get_pool("finished") == {"virgin": 0, "colored": 0}
        assert db_session.query(StockPool).count() == 0

    def test_get_all_pools_lists_every_pool(self, db_session, raw_stock):
        pools = stock_service.get_all_pools()
        assert set(pools) == {"rawMaterial", "inProcess", "outsourcing", "finished"}
        assert pools["rawMaterial"] == {"virgin": 100, "colored": 50}
        assert pools["inProcess"] == {"virgin": 0, "colored": 0}

    def test_ensure_pools_is_idempotent(self, db_session):
        stock_service.ensure_pools()
        stock_service.ensure_pools()
        assert db_session.query(StockPool).count() == 4


class TestAdjust:
    def test_adjust_adds_and_records(self, db_session):
        row = stock_service.adjust("rawMaterial", "virgin", 100, description="Supplier delivery")

        assert row.virgin == 100
        assert row.colored == 0

        history = stock_service.list_history("rawMaterial")
        assert len(history) == 1
        assert history[0].kind == "increment"
        assert history[0].added_virgin == 100
        assert history[0].added_colored == 0
        assert history[0].virgin == 100

        txs = stock_service.list_transactions()
        assert len(txs) == 1
        assert txs[0].kind == "input"
        assert txs[0].to_section == "rawMaterial"
        assert txs[0].quantity == 100

    def test_adjust_accumulates(self, db_session):
        stock_service.adjust("rawMaterial", "colored", 30)
        stock_service.adjust("rawMaterial", "colored", 20)
        assert stock_service.get_pool("rawMaterial")["colored"] == 50

    def test_negative_delta_is_rejected(self, db_session, raw_stock):
        with pytest.raises(ValidationError):
            stock_service.adjust("rawMaterial", "virgin", -10)
        assert stock_service.get_pool("rawMaterial")["virgin"] == 100

    def test_unknown_film_type_is_rejected(self, db_session):
        with pytest.raises(ValidationError):
            stock_service.adjust("rawMaterial", "black", 10)


class TestSetLevels:
    def test_overwrites_both_variants(self, db_session, raw_stock):
        row = stock_service.set_levels("rawMaterial", virgin=7, colored=3)
        assert (row.virgin, row.colored) == (7, 3)

        latest = stock_service.list_history("rawMaterial", limit=1)[0]
        assert latest.kind == "update"
        assert (latest.virgin, latest.colored) == (7, 3)
        assert latest.added_virgin is None

    def test_negative_level_is_rejected(self, db_session, raw_stock):
        with pytest.raises(ValidationError):
            stock_service.set_levels("rawMaterial", virgin=-1, colored=0)


class TestMove:
    def test_move_conserves_quantity(self, db_session, raw_stock):
        tx = stock_service.move("rawMaterial", "inProcess", "virgin", 40)

        assert stock_service.get_pool("rawMaterial")["virgin"] == 60
        assert stock_service.get_pool("inProcess")["virgin"] == 40
        # other variant untouched
        assert stock_service.get_pool("rawMaterial")["colored"] == 50

        assert tx.kind == "transfer"
        assert tx.from_section == "rawMaterial"
        assert tx.to_section == "inProcess"
        assert tx.description == "Transfer from Raw Material to In Process"

    def test_move_writes_one_history_entry_per_side(self, db_session, raw_stock):
        stock_service.move("rawMaterial", "inProcess", "virgin", 40)

        source = stock_service.list_history("rawMaterial", limit=1)[0]
        target = stock_service.list_history("inProcess", limit=1)[0]
        assert source.kind == "decrement"
        assert source.added_virgin == -40
        assert source.description == "Stock transferred to In Process"
        assert target.kind == "increment"
        assert target.added_virgin == 40
        assert target.description == "Stock added from Raw Material"

        transfers = StockTransaction.query.filter_by(kind="transfer").count()
        assert transfers == 1

    def test_insufficient_stock_blocks_move(self, db_session, raw_stock):
        history_before = db_session.query(StockHistoryEntry).count()

        with pytest.raises(InsufficientStockError) as exc_info:
            stock_service.move("rawMaterial", "inProcess", "virgin", 150)

        err = exc_info.value
        assert err.pool == "rawMaterial"
        assert err.film_type == "virgin"
        assert err.available == 100
        assert err.requested == 150
        assert err.details["available"] == 100

        assert stock_service.get_pool("rawMaterial")["virgin"] == 100
        assert stock_service.get_pool("inProcess")["virgin"] == 0
        assert db_session.query(StockHistoryEntry).count() == history_before

    def test_move_of_exact_balance_empties_pool(self, db_session, raw_stock):
        stock_service.move("rawMaterial", "outsourcing", "colored", 50)
        assert stock_service.get_pool("rawMaterial")["colored"] == 0
        assert stock_service.get_pool("outsourcing")["colored"] == 50

    @pytest.mark.parametrize("amount", [0, -5, 2.5, "abc"])
    def test_non_positive_or_fractional_amount_is_rejected(self, db_session, raw_stock, amount):
        with pytest.raises(ValidationError):
            stock_service.move("rawMaterial", "inProcess", "virgin", amount)

    def test_same_pool_is_rejected(self, db_session, raw_stock):
        with pytest.raises(ValidationError):
            stock_service.move("rawMaterial", "rawMaterial", "virgin", 1)

    def test_move_revalidates_against_persisted_row(self, db_session, raw_stock):
        """A change committed behind the session's back is seen before writing."""
        row = StockPool.query.filter_by(pool="rawMaterial").one()
        assert row.virgin == 100

        db.session.execute(
            StockPool.__table__.update()
            .where(StockPool.pool == "rawMaterial")
            .values(virgin=5, version_id=StockPool.version_id + 1)
        )
        db.session.commit()

        with pytest.raises(InsufficientStockError) as exc_info:
            stock_service.move("rawMaterial", "inProcess", "virgin", 40)
        assert exc_info.value.available == 5


class TestDecrement:
    def test_decrement_inner_refuses_to_go_negative(self, db_session, finished_stock):
        with pytest.raises(InsufficientStockError):
            stock_service.decrement_inner("finished", "colored", 31)
        db_session.rollback()
        assert stock_service.get_pool("finished")["colored"] == 30


class TestTransactions:
    def test_filter_by_film_type(self, db_session, raw_stock):
        stock_service.move("rawMaterial", "inProcess", "virgin", 10)
        stock_service.move("rawMaterial", "inProcess", "colored", 5)

        virgin_txs = stock_service.list_transactions(film_type="virgin")
        assert all(tx.film_type == "virgin" for tx in virgin_txs)
        assert {tx.kind for tx in virgin_txs} == {"input", "transfer"}

    def test_newest_first(self, db_session, raw_stock):
        stock_service.move("rawMaterial", "inProcess", "virgin", 10)
        txs = stock_service.list_transactions()
        assert txs[0].kind == "transfer"
