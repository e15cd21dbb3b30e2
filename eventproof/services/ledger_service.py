"""
Ledger Service
Fund movements and emitted protocol events. Nothing here commits: rows join
the caller's transaction and vanish with it on rollback.
"""

import logging
from sqlalchemy import func
from eventproof.extensions import db
from eventproof.models.ledger import AuditEntry, Transfer

logger = logging.getLogger(__name__)


def record_transfer(kind, reference_id, sender, recipient, amount, now):
    transfer = Transfer(
        kind=kind,
        reference_id=reference_id,
        sender=sender,
        recipient=recipient,
        amount=amount,
        created_at=now,
    )
    db.session.add(transfer)
    return transfer


def emit(kind, event_id, now, **payload):
    entry = AuditEntry(kind=kind, event_id=event_id, payload=payload, created_at=now)
    db.session.add(entry)
    logger.info("%s event_id=%s %s", kind, event_id, payload)
    return entry


def total_received(address):
    total = db.session.query(func.coalesce(func.sum(Transfer.amount), 0)) \
        .filter(Transfer.recipient == address).scalar()
    return int(total)


def total_by_kind(*kinds):
    total = db.session.query(func.coalesce(func.sum(Transfer.amount), 0)) \
        .filter(Transfer.kind.in_(kinds)).scalar()
    return int(total)


def transfers_for(reference_id):
    return Transfer.query.filter_by(reference_id=reference_id).order_by(Transfer.id).all()


def audit_trail(event_id, kind=None):
    query = AuditEntry.query.filter_by(event_id=event_id)
    if kind:
        query = query.filter_by(kind=kind)
    return query.order_by(AuditEntry.id).all()
