# Overview: Service-layer cart validation and pricing; builds sale drafts without touching stock.

"""
Sale Builder

WHY: A cart arrives as loosely shaped JSON. It is parsed into canonical
CartLines once, at this boundary, and priced against the authoritative stock
snapshot. The result is a SaleDraft that the transaction coordinator can
persist.

DESIGN PRINCIPLES:
- Input ambiguity (item_id vs medicine_id, string quantities) is accepted
  only in parse_cart; everything past it is strongly typed.
- Pricing never mutates stock. When called inside a unit of work with
  lock=True, every priced row is also locked, so validation and stock
  commitment happen against the same snapshot.
- Rows are visited in ascending item id, so concurrent sales always take
  their row locks in the same order.
- Totals are integer cents: total == sum(line subtotals), exactly.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from ..errors import InvalidRequestError, InsufficientStock
from ..validation import coerce_positive_int
from .inventory_service import get_stock_item


@dataclass(frozen=True)
class CartLine:
    item_id: int
    quantity: int


@dataclass(frozen=True)
class DraftLine:
    item_id: int
    item_name: str
    quantity: int
    unit_price_cents: int

    @property
    def subtotal_cents(self) -> int:
        return self.unit_price_cents * self.quantity

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "item_name": self.item_name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "subtotal_cents": self.subtotal_cents,
        }


@dataclass(frozen=True)
class SaleDraft:
    """Fully priced, not-yet-persisted sale."""
    branch_id: int
    user_id: int
    lines: list[DraftLine] = field(default_factory=list)

    @property
    def total_amount_cents(self) -> int:
        return sum(line.subtotal_cents for line in self.lines)

    def to_dict(self) -> dict:
        return {
            "branch_id": self.branch_id,
            "user_id": self.user_id,
            "lines": [line.to_dict() for line in self.lines],
            "total_amount_cents": self.total_amount_cents,
        }


def parse_cart(items) -> list[CartLine]:
    """
    Parse a request cart into canonical lines.

    Accepts a list of {"item_id" | "medicine_id": int, "quantity": int}.
    Duplicate item ids are merged into one line.

    Raises:
        InvalidRequestError: cart missing/empty, or any line malformed
    """
    if not isinstance(items, list) or not items:
        raise InvalidRequestError("items array is required and must not be empty")

    quantities: dict[int, int] = {}
    for index, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise InvalidRequestError(f"items[{index}] must be an object")

        raw_item_id = raw.get("item_id", raw.get("medicine_id"))
        if raw_item_id is None:
            raise InvalidRequestError(f"items[{index}].item_id is required")
        if "quantity" not in raw or raw.get("quantity") is None:
            raise InvalidRequestError(f"items[{index}].quantity is required")

        item_id = coerce_positive_int(raw_item_id, f"items[{index}].item_id")
        quantity = coerce_positive_int(raw["quantity"], f"items[{index}].quantity")
        quantities[item_id] = quantities.get(item_id, 0) + quantity

    return [CartLine(item_id=item_id, quantity=qty) for item_id, qty in sorted(quantities.items())]


def price_cart(
    session: Session,
    *,
    branch_id: int,
    user_id: int,
    cart: list[CartLine],
    lock: bool = False,
) -> SaleDraft:
    """
    Validate every line against current stock and compute authoritative totals.

    Raises:
        ItemNotFound: an item does not belong to the branch
        InsufficientStock: a line asks for more than quantity_on_hand
    """
    if not cart:
        raise InvalidRequestError("items array is required and must not be empty")

    lines: list[DraftLine] = []
    insufficient = []
    for cart_line in sorted(cart, key=lambda line: line.item_id):
        item = get_stock_item(session, branch_id=branch_id, item_id=cart_line.item_id, lock=lock)
        if cart_line.quantity > item.quantity_on_hand:
            insufficient.append({
                "item_id": item.id,
                "name": item.name,
                "requested_quantity": cart_line.quantity,
                "on_hand": item.quantity_on_hand,
            })
            continue
        lines.append(DraftLine(
            item_id=item.id,
            item_name=item.name,
            quantity=cart_line.quantity,
            unit_price_cents=item.unit_price_cents,
        ))

    if insufficient:
        first = insufficient[0]
        raise InsufficientStock(
            f"Insufficient stock for {first['name']}. "
            f"Available: {first['on_hand']}, Requested: {first['requested_quantity']}",
            details={"items": insufficient},
        )

    return SaleDraft(branch_id=branch_id, user_id=user_id, lines=lines)


def build_sale_draft(session: Session, *, branch_id: int, user_id: int, items) -> SaleDraft:
    """Parse and price a raw cart (no locks, no writes)."""
    cart = parse_cart(items)
    return price_cart(session, branch_id=branch_id, user_id=user_id, cart=cart)
