"""
Airdrop Service
Per-event reward pools with eligibility gating and three payout strategies.

Claims are first-come-first-served: recipients are estimated at creation
time, and once the pool runs dry later eligible claimants get
INSUFFICIENT_FUNDS rather than a partial payout.
"""

import logging
from sqlalchemy.exc import IntegrityError
from eventproof.config import DAY_MS, HOUR_MS
from eventproof.extensions import db
from eventproof.errors import AbortCode, ProtocolError
from eventproof.codec import normalize_address
from eventproof.models.airdrop import Airdrop, AirdropClaim, DistributionType
from eventproof.models.attendance import AttendanceState
from eventproof.models.ledger import TransferKind
from eventproof.services import (
    attendance_service,
    event_service,
    ledger_service,
    nft_service,
    rating_service,
)

logger = logging.getLogger(__name__)


def get_airdrop(airdrop_id, lock=False):
    query = Airdrop.query.filter_by(airdrop_id=airdrop_id)
    if lock:
        query = query.with_for_update()
    return query.first()


def require_airdrop(airdrop_id, lock=False):
    airdrop = get_airdrop(airdrop_id, lock=lock)
    if not airdrop:
        raise ProtocolError(AbortCode.AIRDROP_NOT_FOUND, f"Airdrop {airdrop_id} not found")
    return airdrop


def get_claim(airdrop_id, wallet):
    return AirdropClaim.query.filter_by(airdrop_id=airdrop_id, claimant=wallet).first()


def estimate_recipients(event_id, require_attendance, require_completion):
    counts = attendance_service.attendance_counts(event_id)
    if require_completion:
        return counts['checked_out']
    if require_attendance:
        return counts['attended']
    return counts['registered']


def create_airdrop(caller, event_id, name, pool, distribution_type, validity_days, now,
                   description='', require_attendance=True, require_completion=False,
                   min_duration_ms=0, require_rating_submitted=False):
    event = event_service.require_event(event_id)
    event_service.require_organizer(event, caller)
    if isinstance(pool, bool) or not isinstance(pool, int) or pool <= 0:
        raise ProtocolError(AbortCode.INVALID_AMOUNT, "Pool must be a positive integer")
    try:
        distribution_type = DistributionType(distribution_type)
    except ValueError:
        raise ProtocolError(AbortCode.INVALID_DISTRIBUTION, f"Unknown distribution type {distribution_type!r}")
    if validity_days <= 0:
        raise ProtocolError(AbortCode.INVALID_TIMESTAMP, "Validity window must be at least one day")
    if min_duration_ms < 0:
        raise ProtocolError(AbortCode.INVALID_TIMESTAMP, "min_duration cannot be negative")

    estimated = estimate_recipients(event_id, require_attendance, require_completion)
    if estimated == 0:
        raise ProtocolError(AbortCode.INVALID_DISTRIBUTION, "No eligible recipients to distribute to")
    per_user_amount = pool // estimated
    if per_user_amount == 0:
        raise ProtocolError(AbortCode.INVALID_DISTRIBUTION, "Pool too small for the estimated recipients")

    airdrop = Airdrop(
        event_id=event.event_id,
        organizer=caller,
        name=name,
        description=description or '',
        pool_initial=pool,
        pool_balance=pool,
        distribution_type=int(distribution_type),
        require_attendance=require_attendance,
        require_completion=require_completion,
        min_duration_ms=min_duration_ms,
        require_rating_submitted=require_rating_submitted,
        total_recipients=estimated,
        per_user_amount=per_user_amount,
        claimed_count=0,
        created_at=now,
        expires_at=now + validity_days * DAY_MS,
        active=True,
    )
    db.session.add(airdrop)
    db.session.flush()
    ledger_service.record_transfer(TransferKind.AIRDROP_FUND, airdrop.airdrop_id, caller,
                                   airdrop.airdrop_id, pool, now)
    ledger_service.emit('AirdropCreated', event.event_id, now, airdrop_id=airdrop.airdrop_id,
                        pool=pool, distribution_type=distribution_type.name,
                        estimated_recipients=estimated)
    db.session.commit()
    return airdrop


def check_eligibility(event_id, wallet, criteria):
    """Return (eligible, reason). Reads registries only."""
    record = attendance_service.get_record(event_id, wallet)
    if record is None:
        return False, 'no attendance record'
    if criteria.get('require_attendance') and record.state < AttendanceState.CHECKED_IN:
        return False, 'did not check in'
    if criteria.get('require_completion'):
        if record.state != AttendanceState.CHECKED_OUT:
            return False, 'did not complete the event'
        if not nft_service.has_completion_nft(event_id, wallet):
            return False, 'no completion NFT'
    min_duration = criteria.get('min_duration_ms') or 0
    if min_duration > 0 and attendance_service.duration_ms(record) < min_duration:
        return False, 'attendance shorter than required'
    if criteria.get('require_rating_submitted') and not rating_service.has_rated(event_id, wallet):
        return False, 'no rating submitted'
    return True, None


def claim_amount(airdrop, record):
    base = airdrop.per_user_amount
    kind = DistributionType(airdrop.distribution_type)
    if kind == DistributionType.WEIGHTED_BY_DURATION:
        # linear per-claimant weight, not renormalised across claimants
        hours = attendance_service.duration_ms(record) // HOUR_MS
        return base * (hours + 1)
    if kind == DistributionType.COMPLETION_BONUS:
        if record is not None and record.state == AttendanceState.CHECKED_OUT:
            return base * 2
        return base
    return base


def _check_claim(airdrop, wallet, now):
    """Run every claim guard in order and return the payout; raises on the first failure."""
    if airdrop.withdrawn_at is not None:
        raise ProtocolError(AbortCode.AIRDROP_NOT_ACTIVE, "Airdrop was withdrawn")
    if now >= airdrop.expires_at:
        raise ProtocolError(AbortCode.AIRDROP_EXPIRED, "Airdrop has expired")
    if get_claim(airdrop.airdrop_id, wallet):
        raise ProtocolError(AbortCode.ALREADY_CLAIMED, "Already claimed")
    eligible, reason = check_eligibility(airdrop.event_id, wallet, airdrop.criteria())
    if not eligible:
        raise ProtocolError(AbortCode.NOT_ELIGIBLE, f"Not eligible: {reason}")
    amount = claim_amount(airdrop, attendance_service.get_record(airdrop.event_id, wallet))
    if airdrop.pool_balance < amount:
        raise ProtocolError(AbortCode.INSUFFICIENT_FUNDS, "Airdrop pool cannot cover this claim")
    if not airdrop.active:
        raise ProtocolError(AbortCode.AIRDROP_NOT_ACTIVE, "Airdrop is no longer active")
    return amount


def _pay(airdrop, wallet, amount, now):
    claim_row = AirdropClaim(airdrop_id=airdrop.airdrop_id, claimant=wallet, amount=amount, claimed_at=now)
    db.session.add(claim_row)
    airdrop.pool_balance -= amount
    airdrop.claimed_count += 1
    ledger_service.record_transfer(TransferKind.CLAIM, airdrop.airdrop_id, airdrop.airdrop_id,
                                   wallet, amount, now)
    ledger_service.emit('AirdropClaimed', airdrop.event_id, now, airdrop_id=airdrop.airdrop_id,
                        claimant=wallet, amount=amount)

    if airdrop.claimed_count >= airdrop.total_recipients or airdrop.pool_balance < airdrop.per_user_amount:
        airdrop.active = False
        airdrop.completed_at = now
        ledger_service.emit('AirdropCompleted', airdrop.event_id, now, airdrop_id=airdrop.airdrop_id,
                            claimed_count=airdrop.claimed_count, remaining=airdrop.pool_balance)
    return claim_row


def claim(caller, airdrop_id, now):
    airdrop = require_airdrop(airdrop_id, lock=True)
    amount = _check_claim(airdrop, caller, now)
    claim_row = _pay(airdrop, caller, amount, now)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ProtocolError(AbortCode.ALREADY_CLAIMED, "Already claimed")
    return claim_row


# Guards that mean "skip this recipient"; anything else aborts the batch.
_SKIPPABLE = {AbortCode.ALREADY_CLAIMED, AbortCode.NOT_ELIGIBLE}


def batch_distribute(caller, airdrop_id, recipients, now):
    """Pay recipients in list order with the same guards as claim().

    Ineligible and already-paid addresses are skipped; the run stops at the
    first payout the pool cannot cover or once the airdrop deactivates.
    """
    airdrop = require_airdrop(airdrop_id, lock=True)
    if airdrop.organizer != caller:
        raise ProtocolError(AbortCode.NOT_ORGANIZER, "Only the organizer can distribute")
    if airdrop.withdrawn_at is not None or not airdrop.active:
        raise ProtocolError(AbortCode.AIRDROP_NOT_ACTIVE, "Airdrop is not active")
    if now >= airdrop.expires_at:
        raise ProtocolError(AbortCode.AIRDROP_EXPIRED, "Airdrop has expired")

    paid, skipped = [], []
    stopped_early = False
    seen = set()
    for raw in recipients:
        wallet = normalize_address(raw)
        if wallet in seen:
            skipped.append({'wallet': wallet, 'reason': AbortCode.ALREADY_CLAIMED.name})
            continue
        seen.add(wallet)
        try:
            amount = _check_claim(airdrop, wallet, now)
        except ProtocolError as exc:
            if exc.code in _SKIPPABLE:
                skipped.append({'wallet': wallet, 'reason': exc.code.name})
                continue
            stopped_early = True
            break
        _pay(airdrop, wallet, amount, now)
        paid.append({'wallet': wallet, 'amount': amount})
        if not airdrop.active:
            stopped_early = len(paid) + len(skipped) < len(recipients)
            break

    db.session.commit()
    logger.info("Batch distribution for %s: %d paid, %d skipped", airdrop_id, len(paid), len(skipped))
    return {'paid': paid, 'skipped': skipped, 'stopped_early': stopped_early}


def withdraw_unclaimed(caller, airdrop_id, now):
    airdrop = require_airdrop(airdrop_id, lock=True)
    if airdrop.organizer != caller:
        raise ProtocolError(AbortCode.NOT_ORGANIZER, "Only the organizer can withdraw")
    if airdrop.withdrawn_at is not None:
        raise ProtocolError(AbortCode.AIRDROP_NOT_ACTIVE, "Airdrop already withdrawn")
    if now < airdrop.expires_at:
        raise ProtocolError(AbortCode.INVALID_TIMESTAMP, "Airdrop has not expired yet")

    amount = airdrop.pool_balance
    airdrop.pool_balance = 0
    airdrop.active = False
    airdrop.withdrawn_at = now
    if amount:
        ledger_service.record_transfer(TransferKind.SWEEP, airdrop.airdrop_id, airdrop.airdrop_id,
                                       airdrop.organizer, amount, now)
    ledger_service.emit('AirdropWithdrawn', airdrop.event_id, now, airdrop_id=airdrop.airdrop_id, amount=amount)
    db.session.commit()
    return amount


def get_airdrop_details(airdrop_id):
    airdrop = require_airdrop(airdrop_id)
    return {
        'event_id': airdrop.event_id,
        'name': airdrop.name,
        'pool_balance': airdrop.pool_balance,
        'claimed_count': airdrop.claimed_count,
        'expires_at': airdrop.expires_at,
        'active': airdrop.active,
    }


def get_claim_status(airdrop_id, wallet):
    require_airdrop(airdrop_id)
    claim_row = get_claim(airdrop_id, wallet)
    if not claim_row:
        return {'claimed': False, 'amount': 0}
    return {'claimed': True, 'amount': claim_row.amount}


def airdrops_for_event(event_id):
    return Airdrop.query.filter_by(event_id=event_id).order_by(Airdrop.created_at).all()
