"""
NFT Service
Mints proof-of-attendance and completion credentials by spending the
capability issued at check-in / check-out.
"""

from eventproof.extensions import db
from eventproof.errors import AbortCode, ProtocolError
from eventproof.models.attendance import CapabilityKind
from eventproof.models.nft import AttendanceNFT, NFTKind
from eventproof.services import attendance_service, ledger_service

_KIND_FOR_CAPABILITY = {
    CapabilityKind.MINT_POA: NFTKind.POA,
    CapabilityKind.MINT_COMPLETION: NFTKind.COMPLETION,
}


def _owns(kind, event_id, owner):
    return AttendanceNFT.query.filter_by(kind=kind, event_id=event_id, owner=owner).first() is not None


def has_poa(event_id, owner):
    return _owns(NFTKind.POA, event_id, owner)


def has_completion_nft(event_id, owner):
    return _owns(NFTKind.COMPLETION, event_id, owner)


def nfts_of(owner):
    return AttendanceNFT.query.filter_by(owner=owner).order_by(AttendanceNFT.minted_at).all()


def _mint(caller, capability_id, capability_kind, now):
    capability = attendance_service.consume_capability(capability_id, capability_kind, caller, now)
    kind = _KIND_FOR_CAPABILITY[capability_kind]
    if _owns(kind, capability.event_id, caller):
        raise ProtocolError(AbortCode.INVALID_CAPABILITY, f"{kind} NFT already minted for this event")
    nft = AttendanceNFT(kind=kind, event_id=capability.event_id, owner=caller, minted_at=now)
    db.session.add(nft)
    db.session.flush()
    ledger_service.emit('NFTMinted', capability.event_id, now, kind=kind, owner=caller, nft_id=nft.nft_id)
    db.session.commit()
    return nft


def mint_poa(caller, capability_id, now):
    return _mint(caller, capability_id, CapabilityKind.MINT_POA, now)


def mint_completion(caller, capability_id, now):
    return _mint(caller, capability_id, CapabilityKind.MINT_COMPLETION, now)
