"""
Sales Service - Transaction coordinator for sales and payments

WHY: A sale touches several tables at once (stock, sale, line items,
payment, audit). They must change together or not at all, even when two
cashiers sell the last units of the same item at the same moment.

DESIGN PRINCIPLES:
- Every operation is one unit of work: one DB transaction, one commit.
- Stock is committed through inventory_service.reserve only, under row locks.
- Line prices are snapshots; the sale total is the sum of line subtotals.
- At most one Payment per sale (upsert on record_payment).
- Exactly one audit entry per operation, in the same transaction.

LIFECYCLE:
1. request_sale -> PENDING (priced, stock checked but not committed)
2. record_payment -> COMPLETED (stock reserved, payment recorded)
   create_sale goes straight to COMPLETED in a single step.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from ..models import Sale, SaleLineItem, Payment
from ..errors import InvalidRequestError, SaleNotFound
from pharmapos.time_utils import utcnow
from . import audit_service
from .concurrency import lock_for_update, unit_of_work
from .inventory_service import reserve
from .sale_builder import DraftLine, parse_cart, price_cart


# =============================================================================
# STATUS AND PAYMENT METHOD CONSTANTS
# =============================================================================

SALE_STATUS_PENDING = "PENDING"
SALE_STATUS_COMPLETED = "COMPLETED"

METHOD_CASH = "cash"
METHOD_CARD = "card"
METHOD_MOBILE_MONEY = "mobile_money"
METHOD_INSURANCE = "insurance"
METHOD_BANK_TRANSFER = "bank_transfer"

VALID_PAYMENT_METHODS = [
    METHOD_CASH,
    METHOD_CARD,
    METHOD_MOBILE_MONEY,
    METHOD_INSURANCE,
    METHOD_BANK_TRANSFER,
]

REFUND_STATUS_NONE = "NONE"
REFUND_STATUS_PARTIAL = "PARTIAL"
REFUND_STATUS_FULL = "FULL"


def normalize_payment_method(method: str | None) -> str:
    if not method or not isinstance(method, str):
        raise InvalidRequestError("payment method is required")
    normalized = method.strip().lower()
    if normalized not in VALID_PAYMENT_METHODS:
        raise InvalidRequestError(
            f"Invalid payment method: {method}. Must be one of {VALID_PAYMENT_METHODS}",
            details={"method": method},
        )
    return normalized


def format_cents(amount_cents: int) -> str:
    return f"{amount_cents // 100}.{amount_cents % 100:02d}"


# =============================================================================
# SALE CREATION
# =============================================================================

def create_sale(
    session: Session,
    *,
    branch_id: int,
    user_id: int,
    items,
    payment_method: str,
    customer_name: str | None = None,
    customer_phone: str | None = None,
    reference_number: str | None = None,
) -> Sale:
    """
    Convert a cart into a completed, paid sale in one unit of work.

    Steps (all inside one transaction):
    1. Price the cart against locked stock rows
    2. Reserve stock for every line
    3. Persist Sale (COMPLETED) and its line items
    4. Persist the Payment for the full total
    5. Append one audit entry

    Raises:
        InvalidRequestError: malformed cart or payment method
        ItemNotFound: an item is not in the caller's branch
        InsufficientStock: any line exceeds stock; nothing is decremented
        StorageError: transaction failure; nothing is committed
    """
    method = normalize_payment_method(payment_method)
    cart = parse_cart(items)

    with unit_of_work(session):
        draft = price_cart(session, branch_id=branch_id, user_id=user_id, cart=cart, lock=True)

        lines = []
        for draft_line in draft.lines:
            unit_price_cents = reserve(
                session,
                branch_id=branch_id,
                item_id=draft_line.item_id,
                quantity=draft_line.quantity,
            )
            lines.append(_line_from_draft(draft_line, unit_price_cents))

        now = utcnow()
        sale = Sale(
            branch_id=branch_id,
            created_by_user_id=user_id,
            customer_name=customer_name,
            customer_phone=customer_phone,
            status=SALE_STATUS_COMPLETED,
            total_amount_cents=sum(line.subtotal_cents for line in lines),
            sale_date=now,
            completed_at=now,
        )
        sale.lines.extend(lines)
        session.add(sale)
        session.flush()  # Get sale ID

        payment = Payment(
            sale_id=sale.id,
            method=method,
            amount_cents=sale.total_amount_cents,
            reference_number=reference_number,
            recorded_by_user_id=user_id,
            paid_at=now,
        )
        session.add(payment)
        session.flush()

        audit_service.record(
            session,
            branch_id=branch_id,
            actor_user_id=user_id,
            action_type=audit_service.ACTION_CREATE,
            entity_type=audit_service.ENTITY_SALE,
            entity_id=sale.id,
            description=(
                f"Created sale #{sale.id} with total amount {format_cents(sale.total_amount_cents)}, "
                f"paid by {method}"
            ),
        )

    return sale


def request_sale(
    session: Session,
    *,
    branch_id: int,
    user_id: int,
    items,
    customer_name: str | None = None,
    customer_phone: str | None = None,
) -> Sale:
    """
    Create a PENDING sale awaiting payment at the till.

    WHY: Pharmacists prepare the order; the cashier takes payment later.
    Prices are snapshotted now and stock availability is checked, but stock
    is only committed when record_payment completes the sale.
    """
    cart = parse_cart(items)

    with unit_of_work(session):
        draft = price_cart(session, branch_id=branch_id, user_id=user_id, cart=cart)

        sale = Sale(
            branch_id=branch_id,
            created_by_user_id=user_id,
            customer_name=customer_name,
            customer_phone=customer_phone,
            status=SALE_STATUS_PENDING,
            total_amount_cents=draft.total_amount_cents,
            sale_date=utcnow(),
        )
        sale.lines.extend(
            _line_from_draft(line, line.unit_price_cents) for line in draft.lines
        )
        session.add(sale)
        session.flush()

        audit_service.record(
            session,
            branch_id=branch_id,
            actor_user_id=user_id,
            action_type=audit_service.ACTION_CREATE,
            entity_type=audit_service.ENTITY_SALE,
            entity_id=sale.id,
            description=(
                f"Requested sale #{sale.id} with total amount {format_cents(sale.total_amount_cents)}, "
                f"awaiting payment"
            ),
        )

    return sale


def _line_from_draft(draft_line: DraftLine, unit_price_cents: int) -> SaleLineItem:
    return SaleLineItem(
        item_id=draft_line.item_id,
        item_name=draft_line.item_name,
        quantity=draft_line.quantity,
        unit_price_cents_at_sale=unit_price_cents,
        subtotal_cents=unit_price_cents * draft_line.quantity,
    )


# =============================================================================
# PAYMENT
# =============================================================================

def record_payment(
    session: Session,
    *,
    sale_id: int,
    branch_id: int,
    user_id: int,
    method: str,
    reference_number: str | None = None,
) -> Payment:
    """
    Record (or re-record) the payment for a sale.

    - A second call updates the existing Payment in place; there is never
      more than one Payment row per sale.
    - A PENDING sale has its stock reserved and moves to COMPLETED in the
      same transaction as the payment.

    Raises:
        InvalidRequestError: invalid payment method
        SaleNotFound: sale does not exist in the caller's branch
        InsufficientStock: a PENDING sale can no longer be fulfilled
    """
    method = normalize_payment_method(method)

    with unit_of_work(session):
        sale = get_sale(session, sale_id=sale_id, branch_id=branch_id, lock=True)

        now = utcnow()
        if sale.status == SALE_STATUS_PENDING:
            for line in sorted(sale.lines, key=lambda line: line.item_id):
                reserve(session, branch_id=branch_id, item_id=line.item_id, quantity=line.quantity)
            sale.status = SALE_STATUS_COMPLETED
            sale.completed_at = now

        payment = session.query(Payment).filter_by(sale_id=sale.id).first()
        if payment is not None:
            payment.method = method
            payment.reference_number = reference_number
            payment.paid_at = now
            payment.recorded_by_user_id = user_id
        else:
            payment = Payment(
                sale_id=sale.id,
                method=method,
                amount_cents=sale.total_amount_cents,
                reference_number=reference_number,
                recorded_by_user_id=user_id,
                paid_at=now,
            )
            session.add(payment)
        session.flush()

        audit_service.record(
            session,
            branch_id=branch_id,
            actor_user_id=user_id,
            action_type=audit_service.ACTION_PAYMENT,
            entity_type=audit_service.ENTITY_SALE,
            entity_id=sale.id,
            description=(
                f"Processed payment for sale #{sale.id}. Payment type: {method}, "
                f"Amount: {format_cents(payment.amount_cents)}"
            ),
        )

    return payment


# =============================================================================
# QUERIES
# =============================================================================

def get_sale(session: Session, *, sale_id: int, branch_id: int, lock: bool = False) -> Sale:
    query = session.query(Sale).filter_by(id=sale_id, branch_id=branch_id)
    if lock:
        query = lock_for_update(query)
    sale = query.first()
    if sale is None:
        raise SaleNotFound(
            "Sale not found or does not belong to your branch",
            details={"sale_id": sale_id},
        )
    return sale


def list_sales(
    session: Session,
    *,
    branch_id: int,
    status: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Sale]:
    query = session.query(Sale).filter_by(branch_id=branch_id)
    if status:
        query = query.filter_by(status=status.upper())
    return query.order_by(Sale.sale_date.desc(), Sale.id.desc()).limit(limit).offset(offset).all()


def refund_status(total_amount_cents: int, refunded_cents: int) -> str:
    """
    Derived refund state of a sale.

    Not stored on Sale: a refunded sale stays COMPLETED and this is computed
    from its refunds on read.
    """
    if refunded_cents <= 0:
        return REFUND_STATUS_NONE
    if refunded_cents >= total_amount_cents:
        return REFUND_STATUS_FULL
    return REFUND_STATUS_PARTIAL


def sale_summary(session: Session, sale: Sale) -> dict:
    """Full receipt view: sale, lines, payment, refunds and derived refund status."""
    from .refund_service import list_refunds_for_sale

    refunds = list_refunds_for_sale(session, sale_id=sale.id)
    refunded_cents = sum(refund.amount_cents for refund in refunds)
    payment = session.query(Payment).filter_by(sale_id=sale.id).first()

    return {
        "sale": sale.to_dict(),
        "items": [line.to_dict() for line in sale.lines],
        "payment": payment.to_dict() if payment else None,
        "refunds": [refund.to_dict() for refund in refunds],
        "refunded_total_cents": refunded_cents,
        "refund_status": refund_status(sale.total_amount_cents, refunded_cents),
    }
