from enum import IntEnum
from eventproof.extensions import db
from eventproof.codec import new_object_id


class DistributionType(IntEnum):
    EQUAL = 0
    WEIGHTED_BY_DURATION = 1
    COMPLETION_BONUS = 2


class Airdrop(db.Model):
    __tablename__ = 'airdrops'

    airdrop_id = db.Column(db.String(66), primary_key=True, default=new_object_id)
    event_id = db.Column(db.String(66), db.ForeignKey('events.event_id'), nullable=False, index=True)
    organizer = db.Column(db.String(66), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, default='')
    pool_initial = db.Column(db.BigInteger, nullable=False)
    pool_balance = db.Column(db.BigInteger, nullable=False)
    distribution_type = db.Column(db.Integer, nullable=False)

    # eligibility criteria
    require_attendance = db.Column(db.Boolean, nullable=False, default=True)
    require_completion = db.Column(db.Boolean, nullable=False, default=False)
    min_duration_ms = db.Column(db.BigInteger, nullable=False, default=0)
    require_rating_submitted = db.Column(db.Boolean, nullable=False, default=False)

    total_recipients = db.Column(db.Integer, nullable=False)
    per_user_amount = db.Column(db.BigInteger, nullable=False)
    claimed_count = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.BigInteger, nullable=False)
    expires_at = db.Column(db.BigInteger, nullable=False)
    active = db.Column(db.Boolean, nullable=False, default=True)
    completed_at = db.Column(db.BigInteger, nullable=True)
    withdrawn_at = db.Column(db.BigInteger, nullable=True)

    claims = db.relationship('AirdropClaim', backref='airdrop', lazy=True)

    def criteria(self):
        return {
            'require_attendance': self.require_attendance,
            'require_completion': self.require_completion,
            'min_duration_ms': self.min_duration_ms,
            'require_rating_submitted': self.require_rating_submitted,
        }

    def to_dict(self):
        return {
            'airdrop_id': self.airdrop_id,
            'event_id': self.event_id,
            'organizer': self.organizer,
            'name': self.name,
            'description': self.description,
            'pool_initial': self.pool_initial,
            'pool_balance': self.pool_balance,
            'distribution_type': DistributionType(self.distribution_type).name,
            'eligibility_criteria': self.criteria(),
            'total_recipients': self.total_recipients,
            'per_user_amount': self.per_user_amount,
            'claimed_count': self.claimed_count,
            'created_at': self.created_at,
            'expires_at': self.expires_at,
            'active': self.active,
        }


class AirdropClaim(db.Model):
    __tablename__ = 'airdrop_claims'
    __table_args__ = (db.UniqueConstraint('airdrop_id', 'claimant', name='uq_claim_airdrop_claimant'),)

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    airdrop_id = db.Column(db.String(66), db.ForeignKey('airdrops.airdrop_id'), nullable=False, index=True)
    claimant = db.Column(db.String(66), nullable=False)
    amount = db.Column(db.BigInteger, nullable=False)
    claimed_at = db.Column(db.BigInteger, nullable=False)

    def to_dict(self):
        return {
            'airdrop_id': self.airdrop_id,
            'claimant': self.claimant,
            'amount': self.amount,
            'claimed_at': self.claimed_at,
        }
