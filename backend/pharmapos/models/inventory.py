from __future__ import annotations

from ..extensions import db
from pharmapos.time_utils import to_utc_z

class StockItem(db.Model):
    """
    Per-branch stock of one medicine.

    MULTI-BRANCH: Stock items are scoped to branches via branch_id.
    An item id is only meaningful together with the branch that owns it.

    INVARIANT: quantity_on_hand >= 0 at all times, including mid-transaction.
    The check constraint backs this at the database level; the inventory
    service never issues a decrement that could violate it.

    MUTATION: quantity_on_hand changes only through inventory_service.reserve
    and inventory_service.release.
    """
    __tablename__ = "stock_items"
    __table_args__ = (
        db.CheckConstraint("quantity_on_hand >= 0", name="qty_nonnegative"),
        db.CheckConstraint("unit_price_cents >= 0", name="price_nonnegative"),
        db.Index("ix_stock_items_branch_name", "branch_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=True)
    barcode = db.Column(db.String(64), nullable=True, index=True)

    # Authoritative storage in cents
    unit_price_cents = db.Column(db.Integer, nullable=False)
    quantity_on_hand = db.Column(db.Integer, nullable=False, default=0)

    expiry_date = db.Column(db.Date, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    branch = db.relationship("Branch", backref=db.backref("stock_items", lazy=True))

    def __repr__(self) -> str:
        return f"<StockItem id={self.id} name={self.name!r} branch_id={self.branch_id} qty={self.quantity_on_hand}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "name": self.name,
            "category": self.category,
            "barcode": self.barcode,
            "unit_price_cents": self.unit_price_cents,
            "quantity_on_hand": self.quantity_on_hand,
            "expiry_date": self.expiry_date.isoformat() if self.expiry_date else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
