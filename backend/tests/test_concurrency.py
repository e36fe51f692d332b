# Overview: Pytest coverage for optimistic locking and retry on concurrent order writes.

"""
Concurrency Tests

Order rows carry a version_id; a writer that read an old version loses with
StaleDataError and run_with_retry re-reads and re-applies the change.
"""

import pytest
from sqlalchemy import text
from sqlalchemy.orm.exc import StaleDataError

from storefront.extensions import db
from storefront.models import Order
from storefront.services import order_service
from storefront.services.concurrency import run_with_retry


def _bump_version(order_id):
    """Simulate another writer committing a newer version of the row."""
    db.session.execute(
        text("UPDATE orders SET version_id = version_id + 1 WHERE id = :id"),
        {"id": order_id},
    )


class TestOptimisticLocking:
    def test_lost_update_detected(self, place_order):
        order = place_order()
        assert order.version_id == 1
        _bump_version(order.id)
        order.delivery_note = "stale write"

        with pytest.raises(StaleDataError):
            db.session.commit()
        db.session.rollback()

    def test_version_increments_on_update(self, place_order, customer_principal):
        order = place_order()
        version = order.version_id

        order_service.confirm_order(customer_principal, order.order_number)

        assert order.version_id > version


class TestRunWithRetry:
    def test_retries_stale_write_and_reapplies(self, place_order):
        order = place_order()
        order_number = order.order_number
        attempts = []

        def _op():
            current = db.session.query(Order).filter_by(order_number=order_number).one()
            if not attempts:
                _bump_version(current.id)
            attempts.append(current.version_id)
            current.delivery_note = "Call on arrival"
            db.session.commit()
            return current

        result = run_with_retry(_op, backoff_base=0)

        assert len(attempts) == 2
        assert result.delivery_note == "Call on arrival"

    def test_gives_up_after_attempts(self, app):
        calls = []

        def _op():
            calls.append(1)
            raise StaleDataError("conflict")

        with pytest.raises(StaleDataError):
            run_with_retry(_op, attempts=3, backoff_base=0)
        assert len(calls) == 3

    def test_domain_errors_are_not_retried(self, app):
        calls = []

        def _op():
            calls.append(1)
            raise ValueError("bad input")

        with pytest.raises(ValueError):
            run_with_retry(_op, backoff_base=0)
        assert len(calls) == 1
