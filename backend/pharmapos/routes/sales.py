# Overview: Flask API routes for sales, payments and refunds; parses input and returns JSON responses.

# backend/pharmapos/routes/sales.py
"""
Sales API Routes

DESIGN:
- Caller identity (user, branch, role) comes from the gateway headers via
  @require_caller; the branch is never taken from the request body.
- Every mutation is a single service call, i.e. a single unit of work.
- Service errors carry their own HTTP status and JSON shape.

ROLES:
- manager, cashier: create sales, record payments, list sales
- pharmacist: request (pending) sales, quote carts
- manager only: refunds
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..errors import SaleTransactionError
from ..services import sales_service, refund_service
from ..services.sale_builder import build_sale_draft
from ..decorators import require_caller, require_role, ROLE_MANAGER, ROLE_CASHIER, ROLE_PHARMACIST
from ..validation import coerce_int, coerce_positive_int, coerce_amount_cents, coerce_optional_str, require_fields


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


# =============================================================================
# SALE CREATION
# =============================================================================

@sales_bp.post("")
@require_caller
@require_role(ROLE_MANAGER, ROLE_CASHIER)
def create_sale_route():
    """
    Create a completed, paid sale in one step.

    Request body:
    {
        "items": [{"item_id": 1, "quantity": 3}],
        "payment_method": "cash",
        "customer_name": "Jane Doe",  (optional)
        "customer_phone": "0700000000",  (optional)
        "reference_number": "TX-1"  (optional)
    }

    Returns:
        201: Sale receipt
        400: Invalid input
        404: Item not found in branch
        409: Insufficient stock
    """
    try:
        data = request.get_json(silent=True) or {}
        require_fields(data, "items", "payment_method")

        sale = sales_service.create_sale(
            db.session,
            branch_id=g.branch_id,
            user_id=g.user_id,
            items=data.get("items"),
            payment_method=data.get("payment_method"),
            customer_name=coerce_optional_str(data.get("customer_name"), "customer_name", 255),
            customer_phone=coerce_optional_str(data.get("customer_phone"), "customer_phone", 32),
            reference_number=coerce_optional_str(data.get("reference_number"), "reference_number", 128),
        )

        current_app.logger.info(
            "Sale %s created in branch %s by user %s (total_cents=%s)",
            sale.id, g.branch_id, g.user_id, sale.total_amount_cents,
        )
        return jsonify(sales_service.sale_summary(db.session, sale)), 201

    except SaleTransactionError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/quote")
@require_caller
@require_role(ROLE_MANAGER, ROLE_CASHIER, ROLE_PHARMACIST)
def quote_route():
    """Price a cart against current stock without writing anything."""
    try:
        data = request.get_json(silent=True) or {}
        draft = build_sale_draft(
            db.session,
            branch_id=g.branch_id,
            user_id=g.user_id,
            items=data.get("items"),
        )
        return jsonify({"quote": draft.to_dict()}), 200

    except SaleTransactionError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to quote cart")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/requests")
@require_caller
@require_role(ROLE_PHARMACIST, ROLE_MANAGER)
def request_sale_route():
    """
    Create a PENDING sale for the cashier to take payment on.

    Request body:
    {
        "items": [{"medicine_id": 1, "quantity": 2}],
        "customer_name": "Jane Doe",  (optional)
        "customer_phone": "0700000000"  (optional)
    }
    """
    try:
        data = request.get_json(silent=True) or {}

        sale = sales_service.request_sale(
            db.session,
            branch_id=g.branch_id,
            user_id=g.user_id,
            items=data.get("items"),
            customer_name=coerce_optional_str(data.get("customer_name"), "customer_name", 255),
            customer_phone=coerce_optional_str(data.get("customer_phone"), "customer_phone", 32),
        )

        current_app.logger.info(
            "Sale %s requested in branch %s by user %s, awaiting payment",
            sale.id, g.branch_id, g.user_id,
        )
        return jsonify(sales_service.sale_summary(db.session, sale)), 201

    except SaleTransactionError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to request sale")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# QUERIES
# =============================================================================

@sales_bp.get("")
@require_caller
@require_role(ROLE_MANAGER, ROLE_CASHIER)
def list_sales_route():
    """
    List sales in the caller's branch, newest first.

    Query params: status, limit (default 50, capped by SALES_PAGE_LIMIT_MAX), offset
    """
    try:
        limit = coerce_positive_int(request.args.get("limit", "50"), "limit")
        offset = coerce_int(request.args.get("offset", "0"), "offset")
        if offset < 0:
            return jsonify({"error": "offset must not be negative"}), 400

        sales = sales_service.list_sales(
            db.session,
            branch_id=g.branch_id,
            status=request.args.get("status"),
            limit=min(limit, current_app.config["SALES_PAGE_LIMIT_MAX"]),
            offset=offset,
        )
        return jsonify({"sales": [sale.to_dict() for sale in sales]}), 200

    except SaleTransactionError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
@require_caller
def get_sale_route(sale_id: int):
    """Sale receipt: lines, payment, refunds and derived refund status."""
    try:
        sale = sales_service.get_sale(db.session, sale_id=sale_id, branch_id=g.branch_id)
        return jsonify(sales_service.sale_summary(db.session, sale)), 200

    except SaleTransactionError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get sale")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# PAYMENT
# =============================================================================

@sales_bp.post("/<int:sale_id>/payment")
@require_caller
@require_role(ROLE_MANAGER, ROLE_CASHIER)
def record_payment_route(sale_id: int):
    """
    Record or update the payment for a sale.

    Request body:
    {
        "payment_method": "card",
        "reference_number": "AUTH-123"  (optional)
    }

    A PENDING sale is completed (stock committed) by this call.
    """
    try:
        data = request.get_json(silent=True) or {}
        require_fields(data, "payment_method")

        payment = sales_service.record_payment(
            db.session,
            sale_id=sale_id,
            branch_id=g.branch_id,
            user_id=g.user_id,
            method=data.get("payment_method"),
            reference_number=coerce_optional_str(data.get("reference_number"), "reference_number", 128),
        )

        current_app.logger.info(
            "Payment recorded for sale %s by user %s (method=%s)",
            sale_id, g.user_id, payment.method,
        )
        sale = sales_service.get_sale(db.session, sale_id=sale_id, branch_id=g.branch_id)
        return jsonify(sales_service.sale_summary(db.session, sale)), 200

    except SaleTransactionError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# REFUNDS
# =============================================================================

@sales_bp.post("/<int:sale_id>/refunds")
@require_caller
@require_role(ROLE_MANAGER)
def process_refund_route(sale_id: int):
    """
    Issue the refund for a pending return on this sale.

    Request body:
    {
        "return_id": 7,
        "amount_cents": 5000,
        "refund_method": "cash",
        "notes": "Unopened pack"  (optional)
    }

    Returns:
        201: Refund created, return closed
        400: Invalid input
        404: Sale or return not found
        409: Return/refund already processed, or refund exceeds sale total
    """
    try:
        data = request.get_json(silent=True) or {}
        require_fields(data, "return_id", "amount_cents", "refund_method")

        refund = refund_service.process_refund(
            db.session,
            sale_id=sale_id,
            branch_id=g.branch_id,
            return_id=coerce_positive_int(data.get("return_id"), "return_id"),
            amount_cents=coerce_amount_cents(data.get("amount_cents")),
            method=data.get("refund_method"),
            notes=coerce_optional_str(data.get("notes"), "notes"),
            actor_user_id=g.user_id,
        )

        current_app.logger.info(
            "Refund %s issued for sale %s return %s by user %s (amount_cents=%s)",
            refund.id, sale_id, refund.return_id, g.user_id, refund.amount_cents,
        )
        return jsonify({"refund": refund.to_dict()}), 201

    except SaleTransactionError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to process refund")
        return jsonify({"error": "Internal server error"}), 500
