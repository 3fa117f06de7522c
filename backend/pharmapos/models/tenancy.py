from __future__ import annotations

from ..extensions import db
from pharmapos.time_utils import to_utc_z

class Branch(db.Model):
    """
    Physical pharmacy location.

    WHY: The branch is the tenancy boundary for every entity in the sale core.
    Stock, sales, returns and audit entries all carry branch_id (directly or
    through their sale) and are never shared across branches.

    Branch records are reference data maintained outside this service; the
    table exists so branch-scoped rows have a foreign key target.
    """
    __tablename__ = "branches"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    code = db.Column(db.String(32), nullable=True, unique=True, index=True)  # Short code for lookups

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Branch id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
