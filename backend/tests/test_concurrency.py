"""
Conditional write and retry helper tests.
"""

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from portal.errors import StorageError, ValidationError
from portal.models import Item
from portal.services import concurrency
from portal.services.concurrency import ConcurrentUpdateError, atomic, compare_and_swap, run_with_retry


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    monkeypatch.setattr(concurrency.time, "sleep", lambda seconds: None)


class TestCompareAndSwap:
    def test_matches_expected_value(self, db_session, hoodie):
        assert compare_and_swap(Item, row_id=hoodie.id, expected={"stock_balance": 10},
                                values={"stock_balance": 15}) is True
        db_session.commit()
        assert db_session.get(Item, hoodie.id).stock_balance == 15

    def test_stale_expected_value(self, db_session, hoodie):
        assert compare_and_swap(Item, row_id=hoodie.id, expected={"stock_balance": 7},
                                values={"stock_balance": 15}) is False
        db_session.commit()
        assert db_session.get(Item, hoodie.id).stock_balance == 10


class TestRunWithRetry:
    def test_retries_transient_errors(self, db_session):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise OperationalError("UPDATE items", {}, Exception("database is locked"))
            return "ok"

        assert run_with_retry(flaky) == "ok"
        assert len(calls) == 3

    def test_gives_up_with_storage_error(self, db_session):
        def locked():
            raise OperationalError("UPDATE items", {}, Exception("database is locked"))

        with pytest.raises(StorageError):
            run_with_retry(locked)

    def test_lost_swap_is_reraised_after_last_attempt(self, db_session):
        def always_stale():
            raise ConcurrentUpdateError("changed underneath")

        with pytest.raises(ConcurrentUpdateError):
            run_with_retry(always_stale, attempts=2)

    def test_domain_errors_are_not_retried(self, db_session):
        calls = []

        def invalid():
            calls.append(1)
            raise ValidationError("bad input")

        with pytest.raises(ValidationError):
            run_with_retry(invalid)
        assert len(calls) == 1


class TestAtomic:
    def test_commits_on_success(self, db_session):
        with atomic("add item"):
            db_session.add(Item(name="Mug", category="Accessory"))

        db_session.rollback()
        assert Item.query.filter_by(name="Mug").count() == 1

    def test_database_error_becomes_storage_error(self, db_session):
        with pytest.raises(StorageError, match="Failed to add item"):
            with atomic("add item"):
                db_session.add(Item(name="Mug", category="Accessory"))
                db_session.flush()
                raise IntegrityError("INSERT INTO items", {}, Exception("constraint failed"))

        assert Item.query.filter_by(name="Mug").count() == 0

    def test_domain_error_rolls_back_and_propagates(self, db_session):
        with pytest.raises(ValidationError):
            with atomic("add item"):
                db_session.add(Item(name="Mug", category="Accessory"))
                db_session.flush()
                raise ValidationError("nope")

        assert Item.query.filter_by(name="Mug").count() == 0
