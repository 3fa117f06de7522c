# Overview: Flask API routes for customer returns; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..errors import SaleTransactionError
from ..services import refund_service
from ..decorators import require_caller, require_role, ROLE_MANAGER, ROLE_CASHIER
from ..validation import coerce_positive_int, coerce_optional_str, require_fields


returns_bp = Blueprint("returns", __name__, url_prefix="/api/returns")


@returns_bp.post("")
@require_caller
@require_role(ROLE_MANAGER, ROLE_CASHIER)
def open_return_route():
    """
    Record a customer return against a completed sale (status: PENDING).

    Request body:
    {
        "sale_id": 123,
        "item_id": 4,  (or "medicine_id")
        "quantity": 1,
        "reason": "Wrong strength dispensed",
        "condition": "good"  (optional: good, damaged, expired)
    }

    Items in good condition go back into stock immediately.

    Returns:
        201: Return created
        400: Invalid input or more units than were sold
        404: Sale not found in branch
    """
    try:
        data = request.get_json(silent=True) or {}
        if data.get("item_id") is None and data.get("medicine_id") is not None:
            data["item_id"] = data["medicine_id"]
        require_fields(data, "sale_id", "item_id", "quantity", "reason")

        return_request = refund_service.open_return(
            db.session,
            sale_id=coerce_positive_int(data.get("sale_id"), "sale_id"),
            branch_id=g.branch_id,
            item_id=coerce_positive_int(data.get("item_id"), "item_id"),
            quantity=coerce_positive_int(data.get("quantity"), "quantity"),
            reason=coerce_optional_str(data.get("reason"), "reason"),
            condition=coerce_optional_str(data.get("condition"), "condition") or refund_service.CONDITION_GOOD,
            actor_user_id=g.user_id,
        )

        current_app.logger.info(
            "Return %s opened for sale %s by user %s (item=%s qty=%s condition=%s)",
            return_request.id, return_request.sale_id, g.user_id,
            return_request.item_id, return_request.quantity_returned, return_request.condition,
        )
        return jsonify({"return": return_request.to_dict()}), 201

    except SaleTransactionError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to open return")
        return jsonify({"error": "Internal server error"}), 500
