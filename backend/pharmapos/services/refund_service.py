# Overview: Service-layer operations for returns and refunds against completed sales.

"""
Return/Refund Workflow

LIFECYCLE:
1. open_return: staff flag returned units on a completed sale -> PENDING
   (resellable units go straight back on the shelf)
2. process_refund: money goes back to the customer -> COMPLETED (terminal)

INVARIANTS:
- At most one Refund per ReturnRequest (unique return_id backs this).
- Refund amount is positive and the sum of refunds for a sale never exceeds
  the sale total.
- Units returned for an item never exceed the units sold on that sale.
- The Sale row keeps status COMPLETED; its refund state is derived from
  refunds on read (see sales_service.sale_summary).
"""

from __future__ import annotations

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models import ReturnRequest, Refund, SaleLineItem
from ..errors import (
    InvalidRequestError,
    ReturnNotFound,
    ReturnAlreadyProcessed,
    RefundAlreadyProcessed,
    RefundExceedsSaleTotal,
)
from pharmapos.time_utils import utcnow
from . import audit_service
from .concurrency import lock_for_update, unit_of_work
from .inventory_service import release
from .sales_service import (
    SALE_STATUS_COMPLETED,
    format_cents,
    get_sale,
    normalize_payment_method,
)


RETURN_STATUS_PENDING = "PENDING"
RETURN_STATUS_COMPLETED = "COMPLETED"

CONDITION_GOOD = "good"
CONDITION_DAMAGED = "damaged"
CONDITION_EXPIRED = "expired"

VALID_CONDITIONS = [CONDITION_GOOD, CONDITION_DAMAGED, CONDITION_EXPIRED]


def open_return(
    session: Session,
    *,
    sale_id: int,
    branch_id: int,
    item_id: int,
    quantity: int,
    reason: str,
    condition: str = CONDITION_GOOD,
    actor_user_id: int,
) -> ReturnRequest:
    """
    Record returned units against a completed sale.

    Items returned in good condition are restocked in the same transaction.
    Damaged or expired units are recorded but not put back on sale.

    Raises:
        InvalidRequestError: bad quantity/reason/condition, item not on the sale,
            sale not completed, or more units returned than were sold
        SaleNotFound: sale not in the caller's branch
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidRequestError("quantity must be a positive integer")
    if not isinstance(reason, str) or not reason.strip():
        raise InvalidRequestError("reason is required")
    if condition is None:
        condition = CONDITION_GOOD
    if not isinstance(condition, str):
        raise InvalidRequestError("condition must be a string", details={"condition": repr(condition)})
    condition = condition.strip().lower() or CONDITION_GOOD
    if condition not in VALID_CONDITIONS:
        raise InvalidRequestError(
            f"Invalid condition: {condition}. Must be one of {VALID_CONDITIONS}",
            details={"condition": condition},
        )

    with unit_of_work(session):
        sale = get_sale(session, sale_id=sale_id, branch_id=branch_id, lock=True)
        if sale.status != SALE_STATUS_COMPLETED:
            raise InvalidRequestError(
                f"Cannot return items from sale with status {sale.status}",
                details={"sale_id": sale_id, "status": sale.status},
            )

        sold = (
            session.query(func.coalesce(func.sum(SaleLineItem.quantity), 0))
            .filter(SaleLineItem.sale_id == sale.id, SaleLineItem.item_id == item_id)
            .scalar()
        )
        if not sold:
            raise InvalidRequestError(
                "Item was not part of this sale",
                details={"sale_id": sale_id, "item_id": item_id},
            )

        already_returned = (
            session.query(func.coalesce(func.sum(ReturnRequest.quantity_returned), 0))
            .filter(ReturnRequest.sale_id == sale.id, ReturnRequest.item_id == item_id)
            .scalar()
        )
        if already_returned + quantity > sold:
            raise InvalidRequestError(
                f"Cannot return {quantity} units; {sold - already_returned} remaining of {sold} sold",
                details={
                    "sale_id": sale_id,
                    "item_id": item_id,
                    "sold_quantity": sold,
                    "already_returned": already_returned,
                },
            )

        return_request = ReturnRequest(
            sale_id=sale.id,
            item_id=item_id,
            quantity_returned=quantity,
            reason=str(reason).strip(),
            condition=condition,
            status=RETURN_STATUS_PENDING,
            created_by_user_id=actor_user_id,
            created_at=utcnow(),
        )
        session.add(return_request)
        session.flush()

        if condition == CONDITION_GOOD:
            release(session, branch_id=branch_id, item_id=item_id, quantity=quantity)

        audit_service.record(
            session,
            branch_id=branch_id,
            actor_user_id=actor_user_id,
            action_type=audit_service.ACTION_RETURN,
            entity_type=audit_service.ENTITY_RETURN,
            entity_id=return_request.id,
            description=(
                f"Processed return for sale #{sale.id}, item {item_id}, quantity {quantity}, "
                f"condition {condition}"
            ),
        )

    return return_request


def process_refund(
    session: Session,
    *,
    sale_id: int,
    branch_id: int,
    return_id: int,
    amount_cents: int,
    method: str,
    notes: str | None = None,
    actor_user_id: int,
) -> Refund:
    """
    Issue the refund for one pending return and close it.

    Checks, in order:
    1. Sale exists in the branch             -> SaleNotFound
    2. Return exists on that sale            -> ReturnNotFound
    3. No refund yet for the return          -> RefundAlreadyProcessed
       and the return is still PENDING       -> ReturnAlreadyProcessed
    4. amount_cents > 0                      -> InvalidRequestError
    5. Refunds for the sale stay <= total    -> RefundExceedsSaleTotal

    Then, atomically: insert Refund, mark the return COMPLETED, append one
    audit entry.
    """
    method = normalize_payment_method(method)

    with unit_of_work(session):
        sale = get_sale(session, sale_id=sale_id, branch_id=branch_id, lock=True)
        return_request = get_return(session, sale_id=sale.id, return_id=return_id, lock=True)

        if session.query(Refund.id).filter_by(return_id=return_request.id).first() is not None:
            raise RefundAlreadyProcessed(
                f"Refund already processed for return request {return_id}",
                details={"return_id": return_id},
            )

        if return_request.status != RETURN_STATUS_PENDING:
            raise ReturnAlreadyProcessed(
                f"Return request {return_id} has already been processed",
                details={"return_id": return_id, "status": return_request.status},
            )

        if isinstance(amount_cents, bool) or not isinstance(amount_cents, int) or amount_cents <= 0:
            raise InvalidRequestError("Refund amount must be greater than 0", details={"amount_cents": amount_cents})

        already_refunded = refunded_total_cents(session, sale_id=sale.id)
        if already_refunded + amount_cents > sale.total_amount_cents:
            raise RefundExceedsSaleTotal(
                f"Refund of {format_cents(amount_cents)} would exceed sale total "
                f"{format_cents(sale.total_amount_cents)} "
                f"({format_cents(already_refunded)} already refunded)",
                details={
                    "sale_id": sale.id,
                    "amount_cents": amount_cents,
                    "already_refunded_cents": already_refunded,
                    "sale_total_cents": sale.total_amount_cents,
                },
            )

        now = utcnow()
        refund = Refund(
            return_id=return_request.id,
            issued_by_user_id=actor_user_id,
            amount_cents=amount_cents,
            method=method,
            notes=notes,
            issued_at=now,
        )
        session.add(refund)

        return_request.status = RETURN_STATUS_COMPLETED
        return_request.completed_at = now
        session.flush()

        audit_service.record(
            session,
            branch_id=branch_id,
            actor_user_id=actor_user_id,
            action_type=audit_service.ACTION_REFUND,
            entity_type=audit_service.ENTITY_REFUND,
            entity_id=refund.id,
            description=(
                f"Processed refund of {format_cents(amount_cents)} for return #{return_request.id} "
                f"on sale #{sale.id}"
            ),
        )

    return refund


def get_return(session: Session, *, sale_id: int, return_id: int, lock: bool = False) -> ReturnRequest:
    query = session.query(ReturnRequest).filter_by(id=return_id, sale_id=sale_id)
    if lock:
        query = lock_for_update(query)
    return_request = query.first()
    if return_request is None:
        raise ReturnNotFound(
            "Return request not found for this sale",
            details={"return_id": return_id, "sale_id": sale_id},
        )
    return return_request


def list_refunds_for_sale(session: Session, *, sale_id: int) -> list[Refund]:
    return (
        session.query(Refund)
        .join(ReturnRequest, Refund.return_id == ReturnRequest.id)
        .filter(ReturnRequest.sale_id == sale_id)
        .order_by(Refund.issued_at, Refund.id)
        .all()
    )


def refunded_total_cents(session: Session, *, sale_id: int) -> int:
    total = (
        session.query(func.coalesce(func.sum(Refund.amount_cents), 0))
        .select_from(Refund)
        .join(ReturnRequest, Refund.return_id == ReturnRequest.id)
        .filter(ReturnRequest.sale_id == sale_id)
        .scalar()
    )
    return int(total or 0)
