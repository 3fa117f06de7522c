"""
Pytest fixtures for pharmapos backend tests.

Provides test database setup, branch/stock fixtures, and test client.
"""

import pytest
from pharmapos import create_app
from pharmapos.extensions import db
from pharmapos.models import Branch, StockItem


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(
        TESTING=True,
        SQLALCHEMY_DATABASE_URI='sqlite:///:memory:',
        SQLALCHEMY_TRACK_MODIFICATIONS=False,
    )

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def branch(db_session):
    """Create Branch A (the caller's branch)."""
    branch = Branch(name="Branch A - Central", code="A")
    db_session.add(branch)
    db_session.commit()
    return branch


@pytest.fixture(scope='function')
def other_branch(db_session):
    """Create Branch B (a different tenant boundary)."""
    branch = Branch(name="Branch B - Riverside", code="B")
    db_session.add(branch)
    db_session.commit()
    return branch


@pytest.fixture(scope='function')
def make_stock(db_session, branch):
    """Factory for committed stock items; defaults to the caller's branch."""
    def _make(name="Paracetamol 500mg", unit_price_cents=500, quantity=10, branch_id=None):
        item = StockItem(
            branch_id=branch_id or branch.id,
            name=name,
            unit_price_cents=unit_price_cents,
            quantity_on_hand=quantity,
        )
        db_session.add(item)
        db_session.commit()
        return item
    return _make


@pytest.fixture(scope='function')
def paracetamol(make_stock):
    """Stock item: 10 on hand at 5.00."""
    return make_stock()


def _caller_headers(branch_id: int, role: str, user_id: int) -> dict:
    return {
        'X-User-Id': str(user_id),
        'X-Branch-Id': str(branch_id),
        'X-User-Role': role,
    }


@pytest.fixture(scope='function')
def cashier_headers(branch):
    return _caller_headers(branch.id, "cashier", user_id=7)


@pytest.fixture(scope='function')
def manager_headers(branch):
    return _caller_headers(branch.id, "manager", user_id=3)


@pytest.fixture(scope='function')
def pharmacist_headers(branch):
    return _caller_headers(branch.id, "pharmacist", user_id=11)


@pytest.fixture(scope='function')
def stock_level(db_session):
    """Read quantity_on_hand straight from the database, bypassing the identity map."""
    def _read(item_id: int) -> int:
        db_session.expire_all()
        return db_session.get(StockItem, item_id).quantity_on_hand
    return _read
