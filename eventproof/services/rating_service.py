"""
Rating Service
Attendee ratings as fixed-point integers (stars * 100, 100..500).
"""

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from eventproof.extensions import db
from eventproof.errors import AbortCode, ProtocolError
from eventproof.models.attendance import AttendanceState
from eventproof.models.rating import Rating
from eventproof.services import attendance_service, event_service, ledger_service

MIN_RATING = 100
MAX_RATING = 500


def has_rated(event_id, wallet):
    return Rating.query.filter_by(event_id=event_id, wallet=wallet).first() is not None


def rating_count(event_id):
    return Rating.query.filter_by(event_id=event_id).count()


def average_rating(event_id):
    """Integer floor of the mean rating; 0 when nobody rated."""
    total, count = db.session.query(func.coalesce(func.sum(Rating.rating), 0), func.count(Rating.id)) \
        .filter(Rating.event_id == event_id).one()
    if not count:
        return 0
    return int(total) // int(count)


def submit_rating(caller, event_id, rating, now):
    event_service.require_event(event_id)
    if isinstance(rating, bool) or not isinstance(rating, int) or not MIN_RATING <= rating <= MAX_RATING:
        raise ProtocolError(AbortCode.INVALID_RATING, "Rating must be an integer within 100..500")

    record = attendance_service.get_record(event_id, caller)
    if not record or record.state < AttendanceState.CHECKED_IN:
        raise ProtocolError(AbortCode.NOT_ELIGIBLE, "Only attendees can rate an event")
    if has_rated(event_id, caller):
        raise ProtocolError(AbortCode.ALREADY_RATED, "Rating already submitted")

    entry = Rating(event_id=event_id, wallet=caller, rating=rating, submitted_at=now)
    db.session.add(entry)
    ledger_service.emit('RatingSubmitted', event_id, now, wallet=caller, rating=rating)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ProtocolError(AbortCode.ALREADY_RATED, "Rating already submitted")
    return entry
