"""
Identity Service
Pass issuance and verification.

pass_id comes from the PassIssuance counter, never from the client. The
registry keeps the derived commitment; verification recomputes it from the
stored pass_id and compares byte for byte, so a replayed or edited hash
string, a rotated pass_id, or a pass presented for another event or wallet
all fail closed with INVALID_CAPABILITY.
"""

import logging
from eventproof.extensions import db
from eventproof.errors import AbortCode, ProtocolError
from eventproof.codec import (
    build_compact_payload,
    build_legacy_payload,
    commitments_match,
    parse_pass_payload,
    pass_commitment,
)
from eventproof.models.registration import PassIssuance, Registration
from eventproof.services import ledger_service

logger = logging.getLogger(__name__)


def get_registration(event_id, wallet, lock=False):
    query = Registration.query.filter_by(event_id=event_id, wallet=wallet)
    if lock:
        query = query.with_for_update()
    return query.first()


def _next_pass_id(event_id, wallet, now):
    issuance = PassIssuance(event_id=event_id, wallet=wallet, issued_at=now)
    db.session.add(issuance)
    db.session.flush()
    return issuance.pass_id


def issue_pass(event_id, wallet, now):
    """Create the registration and its first pass. Joins the caller's transaction."""
    if get_registration(event_id, wallet):
        raise ProtocolError(AbortCode.ALREADY_REGISTERED, "Wallet already registered for this event")
    pass_id = _next_pass_id(event_id, wallet, now)
    registration = Registration(
        event_id=event_id,
        wallet=wallet,
        pass_id=pass_id,
        pass_hash=pass_commitment(pass_id, event_id, wallet),
        registered_at=now,
    )
    db.session.add(registration)
    ledger_service.emit('PassGenerated', event_id, now, wallet=wallet, pass_id=pass_id)
    return registration


def reissue_pass(registration, now):
    """Rotate to a fresh pass_id; payloads carrying the old one stop verifying."""
    pass_id = _next_pass_id(registration.event_id, registration.wallet, now)
    registration.pass_id = pass_id
    registration.pass_hash = pass_commitment(pass_id, registration.event_id, registration.wallet)
    registration.pass_rotated_at = now
    ledger_service.emit('PassGenerated', registration.event_id, now,
                        wallet=registration.wallet, pass_id=pass_id, rotated=True)
    return registration


def verify_pass(payload, lock=False):
    """Return the registration a presented pass proves, or raise."""
    if isinstance(payload, (str, bytes, dict)):
        payload = parse_pass_payload(payload)

    registration = get_registration(payload.event_id, payload.wallet, lock=lock)
    if not registration:
        logger.warning("No registration for %s at event %s", payload.wallet, payload.event_id)
        raise ProtocolError(AbortCode.INVALID_CAPABILITY, "Pass does not match the registration")

    expected = pass_commitment(registration.pass_id, registration.event_id, registration.wallet)
    if payload.is_compact:
        presented = pass_commitment(payload.pass_id, payload.event_id, payload.wallet)
    else:
        presented = payload.presented_hash

    if not commitments_match(expected, presented) or not commitments_match(expected, registration.pass_hash):
        logger.warning("Pass verification failed for %s at event %s", payload.wallet, payload.event_id)
        raise ProtocolError(AbortCode.INVALID_CAPABILITY, "Pass does not match the registration")
    return registration


def payload_for(registration, now, legacy=False):
    if legacy:
        return build_legacy_payload(
            registration.event_id, registration.wallet, registration.pass_hash,
            registration.registered_at, now,
        )
    return build_compact_payload(registration.pass_id, registration.event_id, registration.wallet, now)
