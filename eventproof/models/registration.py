from eventproof.extensions import db


class PassIssuance(db.Model):
    """Append-only counter; the autoincrement key is the pass_id."""
    __tablename__ = 'pass_issuances'

    pass_id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    event_id = db.Column(db.String(66), db.ForeignKey('events.event_id'), nullable=False)
    wallet = db.Column(db.String(66), nullable=False)
    issued_at = db.Column(db.BigInteger, nullable=False)


class Registration(db.Model):
    __tablename__ = 'registrations'
    __table_args__ = (db.UniqueConstraint('event_id', 'wallet', name='uq_registration_event_wallet'),)

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    event_id = db.Column(db.String(66), db.ForeignKey('events.event_id'), nullable=False, index=True)
    wallet = db.Column(db.String(66), nullable=False)
    pass_id = db.Column(db.Integer, nullable=False)
    pass_hash = db.Column(db.LargeBinary(32), nullable=False)
    registered_at = db.Column(db.BigInteger, nullable=False)
    pass_rotated_at = db.Column(db.BigInteger, nullable=True)

    def to_dict(self):
        return {
            'event_id': self.event_id,
            'wallet': self.wallet,
            'pass_id': self.pass_id,
            'pass_hash': self.pass_hash.hex(),
            'registered_at': self.registered_at,
            'pass_rotated_at': self.pass_rotated_at,
        }
