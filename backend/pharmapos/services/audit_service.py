# Overview: Service-layer operations for the audit trail; append-only writer and branch-scoped reads.

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from ..models import AuditEntry
from ..errors import InvalidRequestError, NotFoundError
from pharmapos.time_utils import utcnow
"""
Audit Trail Invariants (authoritative)

- Append-only: entries are never updated or deleted.
- One entry per mutating operation (sale creation, payment, return, refund).
- Entries are written inside the same DB transaction as the action they
  record: record() flushes but never commits. An action and its entry are
  committed or rolled back together.
- Reads are always branch-scoped; newest first.
"""

ACTION_CREATE = "create"
ACTION_PAYMENT = "payment"
ACTION_RETURN = "return"
ACTION_REFUND = "refund"

ENTITY_SALE = "sale"
ENTITY_RETURN = "return"
ENTITY_REFUND = "refund"

DEFAULT_PAGE_LIMIT = 100


@dataclass(frozen=True)
class AuditPage:
    items: list[AuditEntry]
    total: int
    limit: int
    offset: int

    @property
    def has_more(self) -> bool:
        return self.offset + self.limit < self.total

    def to_dict(self) -> dict:
        return {
            "items": [entry.to_dict() for entry in self.items],
            "pagination": {
                "total": self.total,
                "limit": self.limit,
                "offset": self.offset,
                "has_more": self.has_more,
            },
        }


def record(
    session: Session,
    *,
    branch_id: int,
    actor_user_id: int,
    action_type: str,
    entity_type: str,
    entity_id: int,
    description: str,
) -> AuditEntry:
    """
    Append one audit entry to the caller's unit of work.

    - No domain logic here.
    - No commit: the caller's transaction decides whether it survives.
    """
    entry = AuditEntry(
        branch_id=branch_id,
        actor_user_id=actor_user_id,
        action_type=action_type,
        entity_type=entity_type,
        entity_id=entity_id,
        description=description[:512],
        created_at=utcnow(),
    )
    session.add(entry)
    session.flush()  # ensures entry.id is assigned without committing
    return entry


def list_audit_trail(
    session: Session,
    *,
    branch_id: int,
    action_type: str | None = None,
    entity_type: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    limit: int = DEFAULT_PAGE_LIMIT,
    offset: int = 0,
) -> AuditPage:
    """
    Page through a branch's audit trail, newest first.

    Date bounds are inclusive on created_at.
    """
    if limit <= 0:
        raise InvalidRequestError("limit must be positive")
    if offset < 0:
        raise InvalidRequestError("offset must not be negative")
    if start_date is not None and end_date is not None and start_date > end_date:
        raise InvalidRequestError("start_date must not be after end_date")

    q = session.query(AuditEntry).filter(AuditEntry.branch_id == branch_id)

    if action_type:
        q = q.filter(AuditEntry.action_type == action_type)
    if entity_type:
        q = q.filter(AuditEntry.entity_type == entity_type)
    if start_date is not None:
        q = q.filter(AuditEntry.created_at >= start_date)
    if end_date is not None:
        q = q.filter(AuditEntry.created_at <= end_date)

    total = q.count()
    rows = (
        q.order_by(AuditEntry.created_at.desc(), AuditEntry.id.desc())
        .limit(limit)
        .offset(offset)
        .all()
    )
    return AuditPage(items=rows, total=total, limit=limit, offset=offset)


def get_audit_entry(session: Session, *, audit_id: int, branch_id: int) -> AuditEntry:
    entry = session.query(AuditEntry).filter_by(id=audit_id, branch_id=branch_id).first()
    if entry is None:
        raise NotFoundError("Audit trail entry not found", details={"audit_id": audit_id})
    return entry


def entries_for_entity(session: Session, *, entity_type: str, entity_id: int) -> list[AuditEntry]:
    return (
        session.query(AuditEntry)
        .filter_by(entity_type=entity_type, entity_id=entity_id)
        .order_by(AuditEntry.id)
        .all()
    )
