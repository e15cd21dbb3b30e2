"""
Escrow Service
Sponsor funds held per event and settled once against the event's KPIs.

Settlement reads attendance counts, the average rating and the event's
thresholds, then splits the balance between organizer (release) and sponsor
(refund). released + refunded always equals the balance at settlement.
"""

import logging
from flask import current_app
from eventproof.extensions import db
from eventproof.errors import AbortCode, ProtocolError
from eventproof.models.escrow import Escrow
from eventproof.models.event import EventState
from eventproof.models.ledger import TransferKind
from eventproof.services import attendance_service, event_service, ledger_service, rating_service

logger = logging.getLogger(__name__)

ATTENDANCE_POLICIES = ('checked_out', 'attended')


def _all_or_nothing(balance, checks):
    return balance if all(checks) else 0


def _proportional(balance, checks):
    return balance * sum(1 for met in checks if met) // len(checks)


RELEASE_POLICIES = {
    'all_or_nothing': _all_or_nothing,
    'proportional': _proportional,
}


def _setting(key, default):
    return current_app.config.get(key, default)


def get_escrow(event_id, lock=False):
    query = Escrow.query.filter_by(event_id=event_id)
    if lock:
        query = query.with_for_update()
    return query.first()


def require_escrow(event_id, lock=False):
    escrow = get_escrow(event_id, lock=lock)
    if not escrow:
        raise ProtocolError(AbortCode.ESCROW_NOT_FOUND, f"No escrow for event {event_id}")
    return escrow


def fund_escrow(caller, event_id, amount, now):
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ProtocolError(AbortCode.INVALID_AMOUNT, "Amount must be a positive integer")
    event = event_service.require_event(event_id, lock=True)
    escrow = get_escrow(event_id, lock=True)
    if escrow is not None and escrow.closed:
        raise ProtocolError(AbortCode.ESCROW_ALREADY_SETTLED, "Escrow is closed")
    if event.state == EventState.SETTLED:
        raise ProtocolError(AbortCode.EVENT_ALREADY_COMPLETED, "Event already settled")

    if escrow is None:
        escrow = Escrow(
            event_id=event.event_id,
            organizer=event.organizer,
            sponsor=caller,
            balance=amount,
            total_deposited=amount,
            settled=False,
            created_at=now,
        )
        db.session.add(escrow)
        ledger_service.emit('EscrowCreated', event_id, now, sponsor=caller, amount=amount)
    else:
        if escrow.sponsor != caller:
            raise ProtocolError(AbortCode.NOT_SPONSOR, "Only the escrow sponsor can add funds")
        escrow.balance += amount
        escrow.total_deposited += amount
        ledger_service.emit('EscrowFunded', event_id, now, sponsor=caller, amount=amount)

    ledger_service.record_transfer(TransferKind.DEPOSIT, event_id, caller, event_id, amount, now)
    db.session.commit()
    return escrow


def evaluate_conditions(event, attendance_policy='checked_out'):
    """Measure the event against its sponsor KPIs. Pure read."""
    if attendance_policy not in ATTENDANCE_POLICIES:
        raise ValueError(f"Unknown attendance policy: {attendance_policy}")
    counts = attendance_service.attendance_counts(event.event_id)
    attendees_actual = counts['checked_out'] if attendance_policy == 'checked_out' else counts['attended']
    registered = counts['registered']
    completion_rate = counts['checked_out'] * 100 // registered if registered else 0
    avg_rating = rating_service.average_rating(event.event_id)
    return {
        'attendees_actual': attendees_actual,
        'attendees_required': event.min_attendees,
        'completion_rate_actual': completion_rate,
        'completion_rate_required': event.min_completion_rate,
        'avg_rating_actual': avg_rating,
        'avg_rating_required': event.min_avg_rating,
        'checks': [
            attendees_actual >= event.min_attendees,
            completion_rate >= event.min_completion_rate,
            avg_rating >= event.min_avg_rating,
        ],
    }


def settle_escrow(caller, event_id, now):
    event = event_service.require_event(event_id, lock=True)
    escrow = require_escrow(event_id, lock=True)

    operator = _setting('OPERATOR_ADDRESS', None)
    if caller not in (event.organizer, escrow.sponsor) and caller != operator:
        raise ProtocolError(AbortCode.NOT_ORGANIZER, "Caller may not settle this escrow")
    if escrow.closed:
        raise ProtocolError(AbortCode.ESCROW_ALREADY_SETTLED, "Escrow already settled")
    if event.state == EventState.SETTLED:
        raise ProtocolError(AbortCode.EVENT_ALREADY_COMPLETED, "Event already settled")
    if event.state != EventState.COMPLETED:
        raise ProtocolError(AbortCode.EVENT_NOT_ACTIVE, "Event must be completed before settlement")

    policy_name = _setting('SETTLEMENT_RELEASE_POLICY', 'all_or_nothing')
    release = RELEASE_POLICIES[policy_name]
    result = evaluate_conditions(event, _setting('SETTLEMENT_ATTENDANCE_POLICY', 'checked_out'))
    checks = result.pop('checks')

    balance = escrow.balance
    released = release(balance, checks)
    refunded = balance - released

    escrow.conditions_met = all(checks)
    for key, value in result.items():
        setattr(escrow, key, value)
    escrow.amount_released = released
    escrow.amount_refunded = refunded
    escrow.balance = 0
    escrow.settled = True
    escrow.settlement_time = now

    if released:
        ledger_service.record_transfer(TransferKind.RELEASE, event_id, event_id, escrow.organizer, released, now)
    if refunded:
        ledger_service.record_transfer(TransferKind.REFUND, event_id, event_id, escrow.sponsor, refunded, now)

    event_service.mark_settled(event)
    event_service.record_settlement_outcome(
        event.organizer, escrow.conditions_met, result['attendees_actual'], result['avg_rating_actual'],
    )
    ledger_service.emit('EscrowSettled', event_id, now, conditions_met=escrow.conditions_met,
                        released=released, refunded=refunded, policy=policy_name)
    db.session.commit()
    logger.info("Escrow for %s settled: released=%s refunded=%s", event_id, released, refunded)
    return escrow


def emergency_withdraw(caller, event_id, now):
    event = event_service.require_event(event_id)
    escrow = require_escrow(event_id, lock=True)

    operator = _setting('OPERATOR_ADDRESS', None)
    if caller != escrow.sponsor and caller != operator:
        raise ProtocolError(AbortCode.NOT_SPONSOR, "Only the sponsor or operator can withdraw")
    if escrow.closed:
        raise ProtocolError(AbortCode.ESCROW_ALREADY_SETTLED, "Escrow already closed")
    grace = _setting('ESCROW_GRACE_PERIOD_MS', 0)
    if now < event.end_time + grace:
        raise ProtocolError(AbortCode.INVALID_TIMESTAMP, "Grace period has not elapsed")

    amount = escrow.balance
    escrow.balance = 0
    escrow.withdrawn = True
    if amount:
        ledger_service.record_transfer(TransferKind.EMERGENCY_REFUND, event_id, event_id, escrow.sponsor, amount, now)
    ledger_service.emit('EscrowEmergencyWithdrawn', event_id, now, sponsor=escrow.sponsor, amount=amount)
    db.session.commit()
    logger.warning("Emergency withdrawal of %s from escrow %s by %s", amount, event_id, caller)
    return escrow


def get_escrow_details(event_id):
    return require_escrow(event_id).to_dict()


def get_settlement_result(event_id):
    escrow = require_escrow(event_id)
    if not escrow.settled:
        return None
    return escrow.settlement_dict()


def get_global_stats():
    return {
        'total_escrowed': ledger_service.total_by_kind(TransferKind.DEPOSIT),
        'total_released': ledger_service.total_by_kind(TransferKind.RELEASE),
        'total_refunded': ledger_service.total_by_kind(TransferKind.REFUND, TransferKind.EMERGENCY_REFUND),
    }
