from __future__ import annotations

from ..extensions import db
from pharmapos.time_utils import to_utc_z

class Sale(db.Model):
    """
    Sale document.

    LIFECYCLE:
    - PENDING: priced and persisted, stock not yet committed, no payment
    - COMPLETED: stock reserved and payment recorded (terminal)

    INVARIANT: total_amount_cents == sum(line.subtotal_cents for line in lines).

    Refund state is not stored here. A sale that is later refunded stays
    COMPLETED; refunds live on ReturnRequest/Refund and the sale's refund
    status is derived from them on read.
    """
    __tablename__ = "sales"
    __table_args__ = (
        # Composite index for branch-scoped queries by status and date
        db.Index("ix_sales_branch_status_date", "branch_id", "status", "sale_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)

    # Caller identity is resolved upstream; users live outside this service
    created_by_user_id = db.Column(db.Integer, nullable=False, index=True)

    customer_name = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(32), nullable=True)

    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    # Lifecycle status
    status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)

    # Timestamps
    sale_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    branch = db.relationship("Branch", backref=db.backref("sales", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def receipt_number(self) -> str:
        return f"REC-{str(self.id).zfill(6)}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "created_by_user_id": self.created_by_user_id,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "total_amount_cents": self.total_amount_cents,
            "status": self.status,
            "sale_date": to_utc_z(self.sale_date),
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
            "receipt_number": self.receipt_number,
            "version_id": self.version_id,
        }

class SaleLineItem(db.Model):
    """
    Line item on a sale.

    unit_price_cents_at_sale and item_name are snapshots taken when the sale
    was priced. Later price changes on the stock item never alter a
    historical sale.
    """
    __tablename__ = "sale_line_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="qty_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("stock_items.id"), nullable=False, index=True)

    item_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents_at_sale = db.Column(db.Integer, nullable=False)
    subtotal_cents = db.Column(db.Integer, nullable=False)

    sale = db.relationship(
        "Sale",
        backref=db.backref("lines", lazy=True, order_by="SaleLineItem.id"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "item_id": self.item_id,
            "item_name": self.item_name,
            "quantity": self.quantity,
            "unit_price_cents_at_sale": self.unit_price_cents_at_sale,
            "subtotal_cents": self.subtotal_cents,
        }

class Payment(db.Model):
    """
    Payment record for a sale.

    AT MOST ONE per sale: the unique constraint on sale_id backs the upsert
    in sales_service.record_payment. A second payment call for the same sale
    updates method, reference and paid_at in place.

    METHODS:
    - cash, card, mobile_money, insurance, bank_transfer
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.UniqueConstraint("sale_id", name="uq_payments_sale"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)

    method = db.Column(db.String(32), nullable=False, index=True)

    # Always the sale total (in cents)
    amount_cents = db.Column(db.Integer, nullable=False)

    # Reference info (card auth code, mobile money transaction id, etc.)
    reference_number = db.Column(db.String(128), nullable=True)

    recorded_by_user_id = db.Column(db.Integer, nullable=False)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    sale = db.relationship("Sale", backref=db.backref("payment", uselist=False, lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "method": self.method,
            "amount_cents": self.amount_cents,
            "reference_number": self.reference_number,
            "recorded_by_user_id": self.recorded_by_user_id,
            "paid_at": to_utc_z(self.paid_at),
            "version_id": self.version_id,
        }
