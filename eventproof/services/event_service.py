"""
Event Service
Organizer profiles and the event lifecycle: CREATED -> ACTIVE -> COMPLETED -> SETTLED.
"""

import logging
from eventproof.extensions import db
from eventproof.errors import AbortCode, ProtocolError
from eventproof.models.event import Event, EventState, OrganizerProfile
from eventproof.services import ledger_service

logger = logging.getLogger(__name__)

VALID_TRANSITIONS = {
    EventState.CREATED: {EventState.ACTIVE},
    EventState.ACTIVE: {EventState.COMPLETED},
    EventState.COMPLETED: {EventState.SETTLED},
    EventState.SETTLED: set(),
}

MAX_COMPLETION_RATE = 100
MAX_RATING = 500


def get_event(event_id, lock=False):
    query = Event.query.filter_by(event_id=event_id)
    if lock:
        query = query.with_for_update()
    return query.first()


def require_event(event_id, lock=False):
    event = get_event(event_id, lock=lock)
    if not event:
        raise ProtocolError(AbortCode.EVENT_NOT_FOUND, f"Event {event_id} not found")
    return event


def require_organizer(event, caller):
    if event.organizer != caller:
        raise ProtocolError(AbortCode.NOT_ORGANIZER, "Caller is not the event organizer")


def get_profile(profile_id):
    return OrganizerProfile.query.filter_by(profile_id=profile_id).first()


def get_profile_by_address(address, lock=False):
    query = OrganizerProfile.query.filter_by(address=address)
    if lock:
        query = query.with_for_update()
    return query.first()


def create_organizer_profile(caller, name, bio, now):
    if get_profile_by_address(caller):
        raise ProtocolError(AbortCode.ALREADY_REGISTERED, "Organizer profile already exists")
    profile = OrganizerProfile(address=caller, name=name, bio=bio or '', created_at=now)
    db.session.add(profile)
    db.session.commit()
    logger.info("Organizer profile %s created for %s", profile.profile_id, caller)
    return profile


def create_event(caller, profile_id, name, start_time, end_time, capacity, now,
                 description='', location='', metadata_uri='',
                 min_attendees=0, min_completion_rate=0, min_avg_rating=0):
    profile = OrganizerProfile.query.filter_by(profile_id=profile_id).with_for_update().first()
    if not profile:
        raise ProtocolError(AbortCode.PROFILE_NOT_FOUND, f"Profile {profile_id} not found")
    if profile.address != caller:
        raise ProtocolError(AbortCode.NOT_ORGANIZER, "Profile belongs to another address")
    if capacity <= 0:
        raise ProtocolError(AbortCode.INVALID_CAPACITY, "Capacity must be positive")
    if end_time <= start_time or end_time <= now:
        raise ProtocolError(AbortCode.INVALID_TIMESTAMP, "end_time must follow start_time and now")
    if min_attendees < 0 or not 0 <= min_completion_rate <= MAX_COMPLETION_RATE:
        raise ProtocolError(AbortCode.INVALID_CAPACITY, "KPI thresholds out of range")
    if not 0 <= min_avg_rating <= MAX_RATING:
        raise ProtocolError(AbortCode.INVALID_RATING, "min_avg_rating must be within 0..500")

    event = Event(
        organizer=caller,
        profile_id=profile.profile_id,
        name=name,
        description=description or '',
        location=location or '',
        metadata_uri=metadata_uri or '',
        capacity=capacity,
        start_time=start_time,
        end_time=end_time,
        min_attendees=min_attendees,
        min_completion_rate=min_completion_rate,
        min_avg_rating=min_avg_rating,
        state=EventState.CREATED,
        created_at=now,
    )
    profile.total_events += 1
    db.session.add(event)
    db.session.flush()
    ledger_service.emit('EventCreated', event.event_id, now, organizer=caller, capacity=capacity)
    db.session.commit()
    return event


def _transition(event, new_state):
    allowed = VALID_TRANSITIONS.get(EventState(event.state), set())
    if new_state not in allowed:
        raise ProtocolError(
            AbortCode.INVALID_STATE_TRANSITION,
            f"Cannot transition from {EventState(event.state).name} to {new_state.name}",
        )
    event.state = new_state


def activate_event(caller, event_id, now):
    event = require_event(event_id, lock=True)
    require_organizer(event, caller)
    if event.state >= EventState.COMPLETED:
        raise ProtocolError(AbortCode.EVENT_ALREADY_COMPLETED, "Event already completed")
    _transition(event, EventState.ACTIVE)
    ledger_service.emit('EventActivated', event.event_id, now)
    db.session.commit()
    return event


def complete_event(caller, event_id, now):
    event = require_event(event_id, lock=True)
    require_organizer(event, caller)
    if event.state >= EventState.COMPLETED:
        raise ProtocolError(AbortCode.EVENT_ALREADY_COMPLETED, "Event already completed")
    if event.state != EventState.ACTIVE:
        raise ProtocolError(AbortCode.EVENT_NOT_ACTIVE, "Only an active event can complete")
    if now < event.end_time:
        raise ProtocolError(AbortCode.INVALID_TIMESTAMP, "Event has not ended yet")
    _transition(event, EventState.COMPLETED)
    ledger_service.emit('EventCompleted', event.event_id, now)
    db.session.commit()
    return event


def mark_settled(event):
    """Called by settlement inside its own transaction; does not commit."""
    _transition(event, EventState.SETTLED)


def record_settlement_outcome(organizer, conditions_met, attendees_served, avg_rating):
    """Fold one settled event into the organizer's reputation. Does not commit."""
    profile = get_profile_by_address(organizer, lock=True)
    if not profile:
        return None
    if conditions_met:
        profile.successful_events += 1
    profile.total_attendees_served += attendees_served
    if avg_rating > 0:
        total = profile.avg_rating * profile.rated_events + avg_rating
        profile.rated_events += 1
        profile.avg_rating = total // profile.rated_events
    return profile
