from eventproof.extensions import db
from eventproof.codec import new_object_id


class NFTKind:
    POA = 'poa'
    COMPLETION = 'completion'


class AttendanceNFT(db.Model):
    __tablename__ = 'attendance_nfts'
    __table_args__ = (db.UniqueConstraint('kind', 'event_id', 'owner', name='uq_nft_kind_event_owner'),)

    nft_id = db.Column(db.String(66), primary_key=True, default=new_object_id)
    kind = db.Column(db.String(16), nullable=False)
    event_id = db.Column(db.String(66), db.ForeignKey('events.event_id'), nullable=False)
    owner = db.Column(db.String(66), nullable=False, index=True)
    minted_at = db.Column(db.BigInteger, nullable=False)

    def to_dict(self):
        return {
            'nft_id': self.nft_id,
            'kind': self.kind,
            'event_id': self.event_id,
            'owner': self.owner,
            'minted_at': self.minted_at,
        }
