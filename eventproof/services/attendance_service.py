"""
Attendance Service
Per (event, wallet) state machine: REGISTERED -> CHECKED_IN -> CHECKED_OUT.
Check-in issues a one-shot MINT_POA capability, check-out a MINT_COMPLETION one.
"""

import logging
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from eventproof.extensions import db
from eventproof.errors import AbortCode, ProtocolError
from eventproof.codec import parse_pass_payload
from eventproof.models.attendance import AttendanceRecord, AttendanceState, Capability, CapabilityKind
from eventproof.models.event import EventState
from eventproof.services import event_service, identity_service, ledger_service

logger = logging.getLogger(__name__)

VALID_TRANSITIONS = {
    AttendanceState.REGISTERED: {AttendanceState.CHECKED_IN},
    AttendanceState.CHECKED_IN: {AttendanceState.CHECKED_OUT},
    AttendanceState.CHECKED_OUT: set(),
}


def get_record(event_id, wallet, lock=False):
    query = AttendanceRecord.query.filter_by(event_id=event_id, wallet=wallet)
    if lock:
        query = query.with_for_update()
    return query.first()


def duration_ms(record):
    """Time between check-in and check-out; 0 when the wallet never checked out."""
    if record is None or record.check_in_time is None or record.check_out_time is None:
        return 0
    return max(0, record.check_out_time - record.check_in_time)


def attendance_counts(event_id):
    rows = db.session.query(AttendanceRecord.state, func.count(AttendanceRecord.id)) \
        .filter(AttendanceRecord.event_id == event_id) \
        .group_by(AttendanceRecord.state).all()
    by_state = {int(state): count for state, count in rows}
    checked_in = by_state.get(AttendanceState.CHECKED_IN, 0)
    checked_out = by_state.get(AttendanceState.CHECKED_OUT, 0)
    return {
        'registered': sum(by_state.values()),
        'checked_in': checked_in,
        'checked_out': checked_out,
        'attended': checked_in + checked_out,
    }


def _transition(record, new_state):
    current = AttendanceState(record.state)
    if new_state not in VALID_TRANSITIONS[current]:
        raise ProtocolError(
            AbortCode.INVALID_STATE_TRANSITION,
            f"Cannot transition from {current.name} to {new_state.name}",
        )
    record.state = new_state


def _issue_capability(kind, event_id, wallet, now):
    capability = Capability(kind=kind, event_id=event_id, wallet=wallet, issued_at=now)
    db.session.add(capability)
    db.session.flush()
    return capability


def register_for_event(caller, event_id, now):
    event = event_service.require_event(event_id, lock=True)
    if event.state != EventState.ACTIVE:
        raise ProtocolError(AbortCode.EVENT_NOT_ACTIVE, "Event is not open for registration")
    if event.current_attendees >= event.capacity:
        raise ProtocolError(AbortCode.INVALID_CAPACITY, "Event capacity is full")

    registration = identity_service.issue_pass(event.event_id, caller, now)
    record = AttendanceRecord(
        event_id=event.event_id,
        wallet=caller,
        state=AttendanceState.REGISTERED,
        registered_at=now,
    )
    db.session.add(record)
    event.current_attendees += 1
    ledger_service.emit('UserRegistered', event.event_id, now, wallet=caller)

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ProtocolError(AbortCode.ALREADY_REGISTERED, "Wallet already registered for this event")
    return registration


def generate_new_pass(caller, event_id, now):
    event = event_service.require_event(event_id)
    if event.state != EventState.ACTIVE:
        raise ProtocolError(AbortCode.EVENT_NOT_ACTIVE, "Event is not active")
    registration = identity_service.get_registration(event_id, caller, lock=True)
    if not registration:
        raise ProtocolError(AbortCode.NOT_REGISTERED, "Wallet is not registered for this event")
    record = get_record(event_id, caller, lock=True)
    if record.state != AttendanceState.REGISTERED:
        raise ProtocolError(AbortCode.INVALID_STATE_TRANSITION, "Pass already used for check-in")
    identity_service.reissue_pass(registration, now)
    db.session.commit()
    return registration


def check_in(caller, payload, now):
    """Verify a presented pass and move the holder to CHECKED_IN.

    Returns the updated record and the MINT_POA capability.
    """
    if isinstance(payload, (str, bytes, dict)):
        payload = parse_pass_payload(payload)

    event = event_service.require_event(payload.event_id, lock=True)
    event_service.require_organizer(event, caller)
    if event.state != EventState.ACTIVE:
        raise ProtocolError(AbortCode.EVENT_NOT_ACTIVE, "Check-in requires an active event")

    registration = identity_service.verify_pass(payload, lock=True)
    record = get_record(registration.event_id, registration.wallet, lock=True)
    _transition(record, AttendanceState.CHECKED_IN)
    record.check_in_time = now

    capability = _issue_capability(CapabilityKind.MINT_POA, record.event_id, record.wallet, now)
    ledger_service.emit('AttendeeCheckedIn', record.event_id, now,
                        attendee=record.wallet, check_in_time=now)
    db.session.commit()
    logger.info("Checked in %s at event %s", record.wallet, record.event_id)
    return record, capability


def check_out(caller, event_id, wallet, now):
    event = event_service.require_event(event_id, lock=True)
    event_service.require_organizer(event, caller)
    if event.state not in (EventState.ACTIVE, EventState.COMPLETED):
        raise ProtocolError(AbortCode.EVENT_NOT_ACTIVE, "Check-out requires an active or completed event")

    record = get_record(event_id, wallet, lock=True)
    if not record:
        raise ProtocolError(AbortCode.NOT_REGISTERED, "Wallet is not registered for this event")
    _transition(record, AttendanceState.CHECKED_OUT)
    record.check_out_time = now

    capability = _issue_capability(CapabilityKind.MINT_COMPLETION, record.event_id, record.wallet, now)
    ledger_service.emit('AttendeeCheckedOut', record.event_id, now,
                        attendee=record.wallet, duration_ms=duration_ms(record))
    db.session.commit()
    return record, capability


def consume_capability(capability_id, kind, holder, now):
    """Spend a one-shot capability. Joins the caller's transaction."""
    capability = Capability.query.filter_by(capability_id=capability_id).with_for_update().first()
    if not capability or capability.kind != kind or capability.wallet != holder:
        raise ProtocolError(AbortCode.INVALID_CAPABILITY, "Unknown capability for this holder")
    if capability.consumed:
        raise ProtocolError(AbortCode.INVALID_CAPABILITY, "Capability already consumed")
    capability.consumed = True
    capability.consumed_at = now
    return capability


def discard_capability(caller, capability_id, now):
    """Consume a MINT_POA capability without minting."""
    capability = consume_capability(capability_id, CapabilityKind.MINT_POA, caller, now)
    db.session.commit()
    return capability
