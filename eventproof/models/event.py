from enum import IntEnum
from eventproof.extensions import db
from eventproof.codec import new_object_id


class EventState(IntEnum):
    CREATED = 0
    ACTIVE = 1
    COMPLETED = 2
    SETTLED = 3


class OrganizerProfile(db.Model):
    __tablename__ = 'organizer_profiles'

    profile_id = db.Column(db.String(66), primary_key=True, default=new_object_id)
    address = db.Column(db.String(66), unique=True, nullable=False)
    name = db.Column(db.String(255), nullable=False)
    bio = db.Column(db.Text, default='')
    total_events = db.Column(db.Integer, nullable=False, default=0)
    successful_events = db.Column(db.Integer, nullable=False, default=0)
    total_attendees_served = db.Column(db.Integer, nullable=False, default=0)
    # rating * 100, running mean over settled events that received ratings
    avg_rating = db.Column(db.Integer, nullable=False, default=0)
    rated_events = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.BigInteger, nullable=False)

    def to_dict(self):
        return {
            'profile_id': self.profile_id,
            'address': self.address,
            'name': self.name,
            'bio': self.bio,
            'total_events': self.total_events,
            'successful_events': self.successful_events,
            'total_attendees_served': self.total_attendees_served,
            'avg_rating': self.avg_rating,
            'created_at': self.created_at,
        }


class Event(db.Model):
    __tablename__ = 'events'

    event_id = db.Column(db.String(66), primary_key=True, default=new_object_id)
    organizer = db.Column(db.String(66), nullable=False, index=True)
    profile_id = db.Column(db.String(66), db.ForeignKey('organizer_profiles.profile_id'), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, default='')
    location = db.Column(db.String(255), default='')
    metadata_uri = db.Column(db.Text, default='')
    capacity = db.Column(db.Integer, nullable=False)
    current_attendees = db.Column(db.Integer, nullable=False, default=0)
    start_time = db.Column(db.BigInteger, nullable=False)
    end_time = db.Column(db.BigInteger, nullable=False)
    # sponsor KPI thresholds
    min_attendees = db.Column(db.Integer, nullable=False, default=0)
    min_completion_rate = db.Column(db.Integer, nullable=False, default=0)
    min_avg_rating = db.Column(db.Integer, nullable=False, default=0)
    state = db.Column(db.Integer, nullable=False, default=EventState.CREATED)
    created_at = db.Column(db.BigInteger, nullable=False)

    def to_dict(self):
        return {
            'event_id': self.event_id,
            'organizer': self.organizer,
            'profile_id': self.profile_id,
            'name': self.name,
            'description': self.description,
            'location': self.location,
            'metadata_uri': self.metadata_uri,
            'capacity': self.capacity,
            'current_attendees': self.current_attendees,
            'start_time': self.start_time,
            'end_time': self.end_time,
            'sponsor_conditions': {
                'min_attendees': self.min_attendees,
                'min_completion_rate': self.min_completion_rate,
                'min_avg_rating': self.min_avg_rating,
            },
            'state': self.state,
            'state_name': EventState(self.state).name,
            'created_at': self.created_at,
        }
