from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from pharmapos.time_utils import to_utc_z

class AuditEntry(db.Model):
    """
    Append-only log of every mutating action in the sale core.

    IMMUTABLE: created once, never updated, never deleted through the ORM.
    The entity it describes is referenced by (entity_type, entity_id) with no
    foreign key, so entries outlive the rows they describe.

    ACTION TYPES: create, payment, return, refund
    ENTITY TYPES: sale, return, refund
    """
    __tablename__ = "audit_entries"
    __table_args__ = (
        db.Index("ix_audit_entries_branch_created", "branch_id", "created_at"),
        db.Index("ix_audit_entries_entity", "entity_type", "entity_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, nullable=False, index=True)
    actor_user_id = db.Column(db.Integer, nullable=False, index=True)

    # What happened
    action_type = db.Column(db.String(32), nullable=False, index=True)

    # What it refers to (generic pointer)
    entity_type = db.Column(db.String(32), nullable=False)
    entity_id = db.Column(db.Integer, nullable=False)

    description = db.Column(db.String(512), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "actor_user_id": self.actor_user_id,
            "action_type": self.action_type,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
        }


@event.listens_for(AuditEntry, "before_update")
def _reject_audit_update(mapper, connection, target):
    raise RuntimeError("AuditEntry records are immutable")


@event.listens_for(AuditEntry, "before_delete")
def _reject_audit_delete(mapper, connection, target):
    raise RuntimeError("AuditEntry records cannot be deleted")
