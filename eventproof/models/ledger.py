"""
Ledger Models
Transfer: append-only fund movement (deposit | release | refund | emergency_refund |
          airdrop_fund | claim | sweep)
AuditEntry: protocol events emitted by state changes
"""

from datetime import datetime, timezone
from eventproof.extensions import db


class TransferKind:
    DEPOSIT = 'deposit'
    RELEASE = 'release'
    REFUND = 'refund'
    EMERGENCY_REFUND = 'emergency_refund'
    AIRDROP_FUND = 'airdrop_fund'
    CLAIM = 'claim'
    SWEEP = 'sweep'


class Transfer(db.Model):
    __tablename__ = 'transfers'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    kind = db.Column(db.String(32), nullable=False, index=True)
    reference_id = db.Column(db.String(66), nullable=False, index=True)
    sender = db.Column(db.String(66), nullable=False)
    recipient = db.Column(db.String(66), nullable=False, index=True)
    amount = db.Column(db.BigInteger, nullable=False)
    created_at = db.Column(db.BigInteger, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'kind': self.kind,
            'reference_id': self.reference_id,
            'sender': self.sender,
            'recipient': self.recipient,
            'amount': self.amount,
            'created_at': self.created_at,
        }


class AuditEntry(db.Model):
    __tablename__ = 'audit_entries'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    kind = db.Column(db.String(64), nullable=False, index=True)
    event_id = db.Column(db.String(66), nullable=True, index=True)
    payload = db.Column(db.JSON, nullable=False, default=dict)
    created_at = db.Column(db.BigInteger, nullable=False)
    recorded_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )

    def to_dict(self):
        return {
            'id': self.id,
            'kind': self.kind,
            'event_id': self.event_id,
            'payload': self.payload,
            'created_at': self.created_at,
        }
