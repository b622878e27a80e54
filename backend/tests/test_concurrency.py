# Overview: Pytest coverage for retry policy, rollback and optimistic locking.

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from filmstock.extensions import db
from filmstock.models import StockPool
from filmstock.services import stock_service
from filmstock.services.concurrency import RetryPolicy, run_with_retry, is_transient_db_error
from filmstock.validation import ValidationError


class TestRetryPolicy:
    def test_retries_transient_errors_until_success(self):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise StaleDataError("version mismatch")
            return "ok"

        policy = RetryPolicy(attempts=3, backoff_base=0)
        assert policy.run(flaky) == "ok"
        assert len(calls) == 3

    def test_gives_up_after_attempts(self):
        calls = []

        def always_stale():
            calls.append(1)
            raise StaleDataError("version mismatch")

        with pytest.raises(StaleDataError):
            RetryPolicy(attempts=2, backoff_base=0).run(always_stale)
        assert len(calls) == 2

    def test_non_transient_errors_propagate_immediately(self):
        calls = []

        def broken():
            calls.append(1)
            raise ValidationError("bad")

        with pytest.raises(ValidationError):
            RetryPolicy(attempts=5, backoff_base=0).run(broken)
        assert len(calls) == 1

    def test_backoff_doubles(self):
        policy = RetryPolicy(backoff_base=0.5)
        assert [policy.delay_for(n) for n in range(3)] == [0.5, 1.0, 2.0]

    def test_transient_predicate(self):
        assert is_transient_db_error(StaleDataError("x"))
        assert is_transient_db_error(OperationalError("SELECT 1", {}, Exception("locked")))
        assert not is_transient_db_error(ValueError("x"))


class TestRunWithRetry:
    def test_failure_rolls_back_partial_writes(self, db_session):
        def unit_of_work():
            db.session.add(StockPool(pool="finished", virgin=10, colored=0))
            db.session.flush()
            raise ValidationError("rejected after flush")

        with pytest.raises(ValidationError):
            run_with_retry(unit_of_work)

        assert StockPool.query.count() == 0

    def test_retry_rolls_back_between_attempts(self, db_session):
        attempts = []

        def unit_of_work():
            attempts.append(1)
            db.session.add(StockPool(pool="finished", virgin=len(attempts), colored=0))
            db.session.flush()
            if len(attempts) == 1:
                raise StaleDataError("concurrent update")
            db.session.commit()

        run_with_retry(unit_of_work, policy=RetryPolicy(attempts=2, backoff_base=0))

        rows = StockPool.query.all()
        assert len(rows) == 1
        assert rows[0].virgin == 2


class TestOptimisticLocking:
    def test_stale_write_is_detected(self, db_session, raw_stock):
        row = StockPool.query.filter_by(pool="rawMaterial").one()
        assert row.version_id is not None

        db.session.execute(
            StockPool.__table__.update()
            .where(StockPool.pool == "rawMaterial")
            .values(virgin=1, version_id=StockPool.version_id + 1)
        )

        row.virgin = 0
        with pytest.raises(StaleDataError):
            db.session.flush()
        db.session.rollback()

        assert stock_service.get_pool("rawMaterial")["virgin"] == 100

    def test_sequential_moves_never_go_negative(self, db_session, raw_stock):
        stock_service.move("rawMaterial", "inProcess", "virgin", 60)
        with pytest.raises(stock_service.InsufficientStockError):
            stock_service.move("rawMaterial", "inProcess", "virgin", 60)
        assert stock_service.get_pool("rawMaterial")["virgin"] == 40
