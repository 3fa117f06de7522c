# Overview: Service-layer operations for the inventory ledger; per-branch stock reservation.

from __future__ import annotations

from datetime import date

from sqlalchemy import update
from sqlalchemy.orm import Session

from ..models import StockItem, Branch
from ..errors import InvalidRequestError, ItemNotFound, InsufficientStock, NotFoundError
from .concurrency import lock_for_update, unit_of_work
"""
Inventory Ledger Invariants (authoritative)

- quantity_on_hand >= 0 at all times, including mid-transaction.
- Stock changes only through reserve() and release().
- reserve() and release() never commit: they join the caller's unit of work,
  so a stock decrement is committed or rolled back together with the sale
  that caused it.
- reserve() locks the row (SELECT ... FOR UPDATE) before reading, then
  decrements with a compare-and-swap UPDATE guarded by
  quantity_on_hand >= :quantity. Zero rows affected means another writer got
  there first and is reported as InsufficientStock.
- An item id is only valid within the branch that owns it.
"""


def get_stock_item(session: Session, *, branch_id: int, item_id: int, lock: bool = False) -> StockItem:
    query = session.query(StockItem).filter_by(id=item_id, branch_id=branch_id)
    if lock:
        query = lock_for_update(query)
    item = query.first()
    if item is None:
        raise ItemNotFound(
            f"Item {item_id} not found in branch {branch_id}",
            details={"item_id": item_id, "branch_id": branch_id},
        )
    return item


def reserve(session: Session, *, branch_id: int, item_id: int, quantity: int) -> int:
    """
    Decrement stock for a sale inside the caller's unit of work.

    Returns:
        The authoritative unit price (cents) read under the row lock.

    Raises:
        InvalidRequestError: quantity is not positive
        ItemNotFound: item does not belong to the branch
        InsufficientStock: quantity exceeds quantity_on_hand
    """
    if quantity <= 0:
        raise InvalidRequestError("Reservation quantity must be positive", details={"item_id": item_id})

    item = get_stock_item(session, branch_id=branch_id, item_id=item_id, lock=True)
    if quantity > item.quantity_on_hand:
        raise InsufficientStock(
            f"Insufficient stock for {item.name}. Available: {item.quantity_on_hand}, Requested: {quantity}",
            details={
                "item_id": item_id,
                "requested_quantity": quantity,
                "on_hand": item.quantity_on_hand,
            },
        )

    result = session.execute(
        update(StockItem)
        .where(
            StockItem.id == item_id,
            StockItem.branch_id == branch_id,
            StockItem.quantity_on_hand >= quantity,
        )
        .values(quantity_on_hand=StockItem.quantity_on_hand - quantity)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise InsufficientStock(
            f"Insufficient stock for {item.name}. Requested: {quantity}",
            details={"item_id": item_id, "requested_quantity": quantity},
        )

    session.expire(item, ["quantity_on_hand", "updated_at"])
    return item.unit_price_cents


def release(session: Session, *, branch_id: int, item_id: int, quantity: int) -> StockItem:
    """
    Put stock back inside the caller's unit of work.

    Compensating action for reserve(); also restocks resellable returns.
    """
    if quantity <= 0:
        raise InvalidRequestError("Release quantity must be positive", details={"item_id": item_id})

    item = get_stock_item(session, branch_id=branch_id, item_id=item_id, lock=True)
    session.execute(
        update(StockItem)
        .where(StockItem.id == item_id, StockItem.branch_id == branch_id)
        .values(quantity_on_hand=StockItem.quantity_on_hand + quantity)
        .execution_options(synchronize_session=False)
    )
    session.expire(item, ["quantity_on_hand", "updated_at"])
    return item


def list_stock(session: Session, *, branch_id: int) -> list[StockItem]:
    return (
        session.query(StockItem)
        .filter_by(branch_id=branch_id)
        .order_by(StockItem.name, StockItem.id)
        .all()
    )


def add_stock_item(
    session: Session,
    *,
    branch_id: int,
    name: str,
    unit_price_cents: int,
    quantity: int,
    category: str | None = None,
    barcode: str | None = None,
    expiry_date: date | None = None,
) -> StockItem:
    """Register a new stock item for a branch (operator seeding)."""
    if not name or not name.strip():
        raise InvalidRequestError("name is required")
    if unit_price_cents < 0:
        raise InvalidRequestError("unit_price_cents must not be negative")
    if quantity < 0:
        raise InvalidRequestError("quantity must not be negative")

    with unit_of_work(session):
        if session.get(Branch, branch_id) is None:
            raise NotFoundError(f"Branch {branch_id} not found", details={"branch_id": branch_id})

        item = StockItem(
            branch_id=branch_id,
            name=name.strip(),
            unit_price_cents=unit_price_cents,
            quantity_on_hand=quantity,
            category=category,
            barcode=barcode,
            expiry_date=expiry_date,
        )
        session.add(item)
    return item
