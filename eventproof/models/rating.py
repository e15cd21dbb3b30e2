from eventproof.extensions import db


class Rating(db.Model):
    __tablename__ = 'ratings'
    __table_args__ = (db.UniqueConstraint('event_id', 'wallet', name='uq_rating_event_wallet'),)

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    event_id = db.Column(db.String(66), db.ForeignKey('events.event_id'), nullable=False, index=True)
    wallet = db.Column(db.String(66), nullable=False)
    rating = db.Column(db.Integer, nullable=False)  # stars * 100
    submitted_at = db.Column(db.BigInteger, nullable=False)

    def to_dict(self):
        return {
            'event_id': self.event_id,
            'wallet': self.wallet,
            'rating': self.rating,
            'submitted_at': self.submitted_at,
        }
