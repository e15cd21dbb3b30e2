"""
Attendance Model
State: REGISTERED | CHECKED_IN | CHECKED_OUT
"""

from enum import IntEnum
from eventproof.extensions import db
from eventproof.codec import new_object_id


class AttendanceState(IntEnum):
    REGISTERED = 0
    CHECKED_IN = 1
    CHECKED_OUT = 2


class CapabilityKind:
    MINT_POA = 'mint_poa'
    MINT_COMPLETION = 'mint_completion'


class AttendanceRecord(db.Model):
    __tablename__ = 'attendance_records'
    __table_args__ = (db.UniqueConstraint('event_id', 'wallet', name='uq_attendance_event_wallet'),)

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    event_id = db.Column(db.String(66), db.ForeignKey('events.event_id'), nullable=False, index=True)
    wallet = db.Column(db.String(66), nullable=False)
    state = db.Column(db.Integer, nullable=False, default=AttendanceState.REGISTERED)
    registered_at = db.Column(db.BigInteger, nullable=False)
    check_in_time = db.Column(db.BigInteger, nullable=True)
    check_out_time = db.Column(db.BigInteger, nullable=True)

    def to_dict(self):
        return {
            'event_id': self.event_id,
            'wallet': self.wallet,
            'state': self.state,
            'state_name': AttendanceState(self.state).name,
            'registered_at': self.registered_at,
            'check_in_time': self.check_in_time,
            'check_out_time': self.check_out_time,
        }


class Capability(db.Model):
    """One-shot authorization issued by a state transition, consumed exactly once."""
    __tablename__ = 'capabilities'

    capability_id = db.Column(db.String(66), primary_key=True, default=new_object_id)
    kind = db.Column(db.String(32), nullable=False)
    event_id = db.Column(db.String(66), db.ForeignKey('events.event_id'), nullable=False)
    wallet = db.Column(db.String(66), nullable=False, index=True)
    issued_at = db.Column(db.BigInteger, nullable=False)
    consumed = db.Column(db.Boolean, nullable=False, default=False)
    consumed_at = db.Column(db.BigInteger, nullable=True)

    def to_dict(self):
        return {
            'capability_id': self.capability_id,
            'kind': self.kind,
            'event_id': self.event_id,
            'wallet': self.wallet,
            'issued_at': self.issued_at,
            'consumed': self.consumed,
            'consumed_at': self.consumed_at,
        }
