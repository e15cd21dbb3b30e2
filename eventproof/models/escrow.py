"""
Escrow Model
One row per event. Terminal once settled or withdrawn.
"""

from eventproof.extensions import db


class Escrow(db.Model):
    __tablename__ = 'escrows'

    event_id = db.Column(db.String(66), db.ForeignKey('events.event_id'), primary_key=True)
    organizer = db.Column(db.String(66), nullable=False)
    sponsor = db.Column(db.String(66), nullable=False, index=True)
    balance = db.Column(db.BigInteger, nullable=False, default=0)
    total_deposited = db.Column(db.BigInteger, nullable=False, default=0)
    settled = db.Column(db.Boolean, nullable=False, default=False)
    settlement_time = db.Column(db.BigInteger, nullable=True)
    withdrawn = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.BigInteger, nullable=False)

    # settlement read model, filled in by settle_escrow
    conditions_met = db.Column(db.Boolean, nullable=True)
    attendees_actual = db.Column(db.Integer, nullable=True)
    attendees_required = db.Column(db.Integer, nullable=True)
    completion_rate_actual = db.Column(db.Integer, nullable=True)
    completion_rate_required = db.Column(db.Integer, nullable=True)
    avg_rating_actual = db.Column(db.Integer, nullable=True)
    avg_rating_required = db.Column(db.Integer, nullable=True)
    amount_released = db.Column(db.BigInteger, nullable=True)
    amount_refunded = db.Column(db.BigInteger, nullable=True)

    @property
    def closed(self):
        return self.settled or self.withdrawn

    def to_dict(self):
        return {
            'event_id': self.event_id,
            'organizer': self.organizer,
            'sponsor': self.sponsor,
            'balance': self.balance,
            'total_deposited': self.total_deposited,
            'settled': self.settled,
            'settlement_time': self.settlement_time,
            'withdrawn': self.withdrawn,
        }

    def settlement_dict(self):
        return {
            'conditions_met': self.conditions_met,
            'attendees_actual': self.attendees_actual,
            'attendees_required': self.attendees_required,
            'completion_rate_actual': self.completion_rate_actual,
            'completion_rate_required': self.completion_rate_required,
            'avg_rating_actual': self.avg_rating_actual,
            'avg_rating_required': self.avg_rating_required,
            'amount_released': self.amount_released,
            'amount_refunded': self.amount_refunded,
        }
