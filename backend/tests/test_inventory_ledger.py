# Overview: Pytest coverage for stock reservation and release.

"""
Inventory Ledger Tests

Verifies:
- reserve() decrements stock and returns the authoritative unit price
- reserve() never takes stock below zero
- reserve()/release() join the caller's unit of work (no independent commit)
- Items are only visible inside the branch that owns them
"""

import pytest

from pharmapos.errors import InvalidRequestError, ItemNotFound, InsufficientStock, NotFoundError
from pharmapos.services import inventory_service
from pharmapos.services.concurrency import unit_of_work


class TestReserve:

    def test_reserve_decrements_and_returns_price(self, db_session, branch, paracetamol, stock_level):
        with unit_of_work(db_session):
            price = inventory_service.reserve(
                db_session, branch_id=branch.id, item_id=paracetamol.id, quantity=3
            )

        assert price == 500
        assert stock_level(paracetamol.id) == 7

    def test_reserve_exact_quantity_leaves_zero(self, db_session, branch, paracetamol, stock_level):
        with unit_of_work(db_session):
            inventory_service.reserve(db_session, branch_id=branch.id, item_id=paracetamol.id, quantity=10)

        assert stock_level(paracetamol.id) == 0

    def test_reserve_more_than_on_hand_raises(self, db_session, branch, paracetamol, stock_level):
        with pytest.raises(InsufficientStock) as exc:
            with unit_of_work(db_session):
                inventory_service.reserve(db_session, branch_id=branch.id, item_id=paracetamol.id, quantity=11)

        assert exc.value.details["on_hand"] == 10
        assert exc.value.details["requested_quantity"] == 11
        assert stock_level(paracetamol.id) == 10

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_reserve_non_positive_quantity_rejected(self, db_session, branch, paracetamol, quantity):
        with pytest.raises(InvalidRequestError):
            inventory_service.reserve(db_session, branch_id=branch.id, item_id=paracetamol.id, quantity=quantity)

    def test_reserve_item_from_other_branch_not_found(self, db_session, other_branch, paracetamol, stock_level):
        with pytest.raises(ItemNotFound):
            with unit_of_work(db_session):
                inventory_service.reserve(
                    db_session, branch_id=other_branch.id, item_id=paracetamol.id, quantity=1
                )

        assert stock_level(paracetamol.id) == 10

    def test_reserve_rolls_back_with_enclosing_unit_of_work(self, db_session, branch, paracetamol, stock_level):
        """A reservation is undone when the caller's transaction fails later."""
        with pytest.raises(RuntimeError):
            with unit_of_work(db_session):
                inventory_service.reserve(db_session, branch_id=branch.id, item_id=paracetamol.id, quantity=4)
                raise RuntimeError("later step failed")

        assert stock_level(paracetamol.id) == 10


class TestRelease:

    def test_release_increments(self, db_session, branch, paracetamol, stock_level):
        with unit_of_work(db_session):
            inventory_service.release(db_session, branch_id=branch.id, item_id=paracetamol.id, quantity=5)

        assert stock_level(paracetamol.id) == 15

    def test_reserve_then_release_is_net_zero(self, db_session, branch, paracetamol, stock_level):
        with unit_of_work(db_session):
            inventory_service.reserve(db_session, branch_id=branch.id, item_id=paracetamol.id, quantity=6)
            inventory_service.release(db_session, branch_id=branch.id, item_id=paracetamol.id, quantity=6)

        assert stock_level(paracetamol.id) == 10

    def test_release_non_positive_rejected(self, db_session, branch, paracetamol):
        with pytest.raises(InvalidRequestError):
            inventory_service.release(db_session, branch_id=branch.id, item_id=paracetamol.id, quantity=0)


class TestStockAdministration:

    def test_add_stock_item(self, db_session, branch):
        item = inventory_service.add_stock_item(
            db_session,
            branch_id=branch.id,
            name="  Amoxicillin 250mg ",
            unit_price_cents=1250,
            quantity=40,
            category="Antibiotics",
        )

        assert item.id is not None
        assert item.name == "Amoxicillin 250mg"
        assert item.quantity_on_hand == 40

    def test_add_stock_item_unknown_branch(self, db_session):
        with pytest.raises(NotFoundError):
            inventory_service.add_stock_item(
                db_session, branch_id=99999, name="Ghost", unit_price_cents=100, quantity=1
            )

    def test_add_stock_item_negative_quantity_rejected(self, db_session, branch):
        with pytest.raises(InvalidRequestError):
            inventory_service.add_stock_item(
                db_session, branch_id=branch.id, name="Bad", unit_price_cents=100, quantity=-1
            )

    def test_list_stock_is_branch_scoped(self, db_session, branch, other_branch, make_stock):
        make_stock(name="Zinc tablets")
        make_stock(name="Aspirin")
        make_stock(name="Elsewhere", branch_id=other_branch.id)

        names = [item.name for item in inventory_service.list_stock(db_session, branch_id=branch.id)]

        assert names == ["Aspirin", "Zinc tablets"]
