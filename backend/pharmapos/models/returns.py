from __future__ import annotations

from ..extensions import db
from pharmapos.time_utils import to_utc_z

class ReturnRequest(db.Model):
    """
    Customer return flagged by staff against a completed sale.

    LIFECYCLE:
    1. PENDING: return recorded, item restocked if resellable, refund outstanding
    2. COMPLETED: refund issued (terminal)
    """
    __tablename__ = "return_requests"
    __table_args__ = (
        db.CheckConstraint("quantity_returned > 0", name="qty_positive"),
        db.Index("ix_return_requests_sale_status", "sale_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("stock_items.id"), nullable=False)

    quantity_returned = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.Text, nullable=False)
    condition = db.Column(db.String(16), nullable=False, default="good")  # good, damaged, expired

    status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)  # PENDING, COMPLETED

    created_by_user_id = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    sale = db.relationship("Sale", backref=db.backref("returns", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "item_id": self.item_id,
            "quantity_returned": self.quantity_returned,
            "reason": self.reason,
            "condition": self.condition,
            "status": self.status,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
        }

class Refund(db.Model):
    """
    Money returned to the customer for one return request.

    AT MOST ONE per return request (unique return_id).
    INVARIANTS:
    - amount_cents > 0
    - refunds across all returns of a sale never exceed the sale total
    """
    __tablename__ = "refunds"
    __table_args__ = (
        db.UniqueConstraint("return_id", name="uq_refunds_return"),
        db.CheckConstraint("amount_cents > 0", name="amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    return_id = db.Column(db.Integer, db.ForeignKey("return_requests.id"), nullable=False, index=True)

    issued_by_user_id = db.Column(db.Integer, nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    method = db.Column(db.String(32), nullable=False)
    notes = db.Column(db.Text, nullable=True)

    issued_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    return_request = db.relationship("ReturnRequest", backref=db.backref("refund", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "return_id": self.return_id,
            "sale_id": self.return_request.sale_id if self.return_request else None,
            "issued_by_user_id": self.issued_by_user_id,
            "amount_cents": self.amount_cents,
            "method": self.method,
            "notes": self.notes,
            "issued_at": to_utc_z(self.issued_at),
        }
