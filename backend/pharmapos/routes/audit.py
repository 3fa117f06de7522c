# Overview: Flask API routes for reading the branch audit trail.

from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..errors import SaleTransactionError
from ..services import audit_service
from ..decorators import require_caller, require_role, ROLE_MANAGER
from ..validation import coerce_int, coerce_positive_int, parse_date_arg


audit_bp = Blueprint("audit", __name__, url_prefix="/api/audit")


@audit_bp.get("")
@require_caller
@require_role(ROLE_MANAGER)
def list_audit_trail_route():
    """
    Page through the caller's branch audit trail, newest first.

    Query params:
        action_type: create | payment | return | refund
        entity_type: sale | return | refund
        start_date, end_date: ISO-8601, inclusive
        limit: page size (default 100, capped by AUDIT_PAGE_LIMIT_MAX)
        offset: rows to skip (default 0)
    """
    try:
        limit = coerce_positive_int(
            request.args.get("limit", str(audit_service.DEFAULT_PAGE_LIMIT)), "limit"
        )
        offset = coerce_int(request.args.get("offset", "0"), "offset")

        page = audit_service.list_audit_trail(
            db.session,
            branch_id=g.branch_id,
            action_type=request.args.get("action_type") or None,
            entity_type=request.args.get("entity_type") or None,
            start_date=parse_date_arg(request.args.get("start_date"), "start_date"),
            end_date=parse_date_arg(request.args.get("end_date"), "end_date", end_of_day=True),
            limit=min(limit, current_app.config["AUDIT_PAGE_LIMIT_MAX"]),
            offset=offset,
        )
        return jsonify(page.to_dict()), 200

    except SaleTransactionError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list audit trail")
        return jsonify({"error": "Internal server error"}), 500


@audit_bp.get("/<int:audit_id>")
@require_caller
@require_role(ROLE_MANAGER)
def get_audit_entry_route(audit_id: int):
    try:
        entry = audit_service.get_audit_entry(db.session, audit_id=audit_id, branch_id=g.branch_id)
        return jsonify({"entry": entry.to_dict()}), 200

    except SaleTransactionError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get audit entry")
        return jsonify({"error": "Internal server error"}), 500
