# Overview: Concurrency coverage for parallel sales, payments and refunds.

"""
Concurrent sale, payment and refund tests.

Runs against a file-backed SQLite database so every worker thread gets its
own connection, app context and session, the way concurrent requests do.
"""

import threading

import pytest

from pharmapos import create_app
from pharmapos.extensions import db
from pharmapos.errors import InsufficientStock, RefundExceedsSaleTotal
from pharmapos.models import Branch, StockItem, Sale, Payment, AuditEntry, Refund, ReturnRequest
from pharmapos.services import refund_service, sales_service


@pytest.fixture
def concurrent_app(tmp_path):
    db_path = tmp_path / "concurrency.db"
    app = create_app(TESTING=True, SQLALCHEMY_DATABASE_URI=f"sqlite:///{db_path}")

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def seeded(concurrent_app):
    """Branch with one item: 10 on hand at 5.00."""
    with concurrent_app.app_context():
        branch = Branch(name="Concurrency Branch")
        db.session.add(branch)
        db.session.commit()

        item = StockItem(branch_id=branch.id, name="Contended item", unit_price_cents=500, quantity_on_hand=10)
        db.session.add(item)
        db.session.commit()
        ids = (branch.id, item.id)
        db.session.remove()
    return ids


def _race(app, calls):
    """Start every call at once, each in its own app context and session."""
    results = []
    lock = threading.Lock()
    barrier = threading.Barrier(len(calls))

    def worker(call):
        with app.app_context():
            try:
                barrier.wait()
                value = call(db.session)
                with lock:
                    results.append(("ok", value))
            except Exception as exc:
                with lock:
                    results.append(("error", exc))
            finally:
                db.session.remove()

    threads = [threading.Thread(target=worker, args=(call,)) for call in calls]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results


def _run_concurrent_sales(app, branch_id, item_id, quantity, workers):
    def sell(user_id):
        def call(session):
            return sales_service.create_sale(
                session,
                branch_id=branch_id,
                user_id=user_id,
                items=[{"item_id": item_id, "quantity": quantity}],
                payment_method="cash",
            ).id
        return call

    return _race(app, [sell(user_id) for user_id in range(1, workers + 1)])


def _final_state(app, item_id):
    with app.app_context():
        try:
            return {
                "on_hand": db.session.get(StockItem, item_id).quantity_on_hand,
                "sales": db.session.query(Sale).count(),
                "payments": db.session.query(Payment).count(),
                "audit_entries": db.session.query(AuditEntry).count(),
            }
        finally:
            db.session.remove()


def test_two_sales_race_for_the_same_stock(concurrent_app, seeded):
    """10 on hand, two concurrent sales of 6 -> exactly one wins, 4 left."""
    branch_id, item_id = seeded

    results = _run_concurrent_sales(concurrent_app, branch_id, item_id, quantity=6, workers=2)

    successes = [value for status, value in results if status == "ok"]
    failures = [value for status, value in results if status == "error"]
    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], InsufficientStock)

    state = _final_state(concurrent_app, item_id)
    assert state == {"on_hand": 4, "sales": 1, "payments": 1, "audit_entries": 1}


def test_many_sales_never_oversell(concurrent_app, seeded):
    """8 workers buying 3 each from 10 -> 3 succeed, stock ends at 1, never negative."""
    branch_id, item_id = seeded

    results = _run_concurrent_sales(concurrent_app, branch_id, item_id, quantity=3, workers=8)

    successes = [value for status, value in results if status == "ok"]
    failures = [value for status, value in results if status == "error"]
    assert len(successes) == 3
    assert all(isinstance(exc, InsufficientStock) for exc in failures)

    state = _final_state(concurrent_app, item_id)
    assert state["on_hand"] == 1
    assert state["sales"] == state["payments"] == state["audit_entries"] == 3


def test_concurrent_payments_keep_a_single_payment(concurrent_app, seeded):
    """Two cashiers paying the same pending sale -> one Payment row, stock taken once."""
    branch_id, item_id = seeded
    with concurrent_app.app_context():
        sale_id = sales_service.request_sale(
            db.session, branch_id=branch_id, user_id=11, items=[{"item_id": item_id, "quantity": 4}]
        ).id
        db.session.remove()

    def pay(reference):
        def call(session):
            return sales_service.record_payment(
                session, sale_id=sale_id, branch_id=branch_id, user_id=7,
                method="card", reference_number=reference,
            ).reference_number
        return call

    results = _race(concurrent_app, [pay("AUTH-A"), pay("AUTH-B")])

    assert [status for status, _ in results] == ["ok", "ok"]
    state = _final_state(concurrent_app, item_id)
    assert state == {"on_hand": 6, "sales": 1, "payments": 1, "audit_entries": 3}

    with concurrent_app.app_context():
        try:
            payment = db.session.query(Payment).one()
            sale = db.session.get(Sale, sale_id)
            assert sale.status == sales_service.SALE_STATUS_COMPLETED
            assert payment.reference_number in {"AUTH-A", "AUTH-B"}
            assert payment.amount_cents == 2000
        finally:
            db.session.remove()


def test_concurrent_refunds_respect_sale_total(concurrent_app, seeded):
    """Two refunds of 30.00 on a 50.00 sale -> one succeeds, one exceeds the total."""
    branch_id, item_id = seeded
    with concurrent_app.app_context():
        sale_id = sales_service.create_sale(
            db.session, branch_id=branch_id, user_id=7,
            items=[{"item_id": item_id, "quantity": 10}], payment_method="cash",
        ).id
        return_ids = [
            refund_service.open_return(
                db.session, sale_id=sale_id, branch_id=branch_id, item_id=item_id,
                quantity=5, reason="Recalled batch", condition="damaged", actor_user_id=7,
            ).id
            for _ in range(2)
        ]
        db.session.remove()

    def refund(return_id):
        def call(session):
            return refund_service.process_refund(
                session, sale_id=sale_id, branch_id=branch_id, return_id=return_id,
                amount_cents=3000, method="cash", actor_user_id=3,
            ).id
        return call

    results = _race(concurrent_app, [refund(return_id) for return_id in return_ids])

    successes = [value for status, value in results if status == "ok"]
    failures = [value for status, value in results if status == "error"]
    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], RefundExceedsSaleTotal)

    with concurrent_app.app_context():
        try:
            assert db.session.query(Refund).count() == 1
            assert refund_service.refunded_total_cents(db.session, sale_id=sale_id) == 3000
            statuses = sorted(r.status for r in db.session.query(ReturnRequest).all())
            assert statuses == ["COMPLETED", "PENDING"]
        finally:
            db.session.remove()
