"""
Pass commitment and scannable-payload codec.

The commitment binds one registration to one (event, wallet) pair:

    keccak256(u64_le(pass_id) || id_bytes(event_id) || id_bytes(wallet))

Serialisation must stay byte-exact: any endianness or padding change still
yields a valid-looking hash that no longer matches the registry.
"""

import base64
import binascii
import hmac
import json
import re
import secrets
from dataclasses import dataclass
from typing import Optional, Union

from web3 import Web3

from eventproof.errors import AbortCode, ProtocolError

U64_MAX = 2**64 - 1
ID_LENGTH = 32

_HEX_RE = re.compile(r"^(0x)?[0-9a-fA-F]+$")


def keccak256(data: bytes) -> bytes:
    return bytes(Web3.keccak(data))


def u64_le(value: int) -> bytes:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= U64_MAX:
        raise ProtocolError(AbortCode.INVALID_PAYLOAD, f"Not a u64: {value!r}")
    return value.to_bytes(8, "little")


def uleb128(value: int) -> bytes:
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def bcs_string(value: str) -> bytes:
    raw = value.encode("utf-8")
    return uleb128(len(raw)) + raw


def address_bytes(value: str) -> bytes:
    """Raw 32 bytes of a 0x-hex object id or address, left-zero-padded."""
    if not isinstance(value, str) or not _HEX_RE.match(value):
        raise ProtocolError(AbortCode.INVALID_PAYLOAD, f"Not a hex identifier: {value!r}")
    digits = value[2:] if value.startswith("0x") else value
    if len(digits) > ID_LENGTH * 2:
        raise ProtocolError(AbortCode.INVALID_PAYLOAD, f"Identifier longer than {ID_LENGTH} bytes")
    return bytes.fromhex(digits.rjust(ID_LENGTH * 2, "0"))


def new_object_id() -> str:
    return "0x" + secrets.token_hex(ID_LENGTH)


def normalize_address(value: str) -> str:
    """Canonical text form: 0x + 64 lowercase hex digits."""
    return "0x" + address_bytes(value).hex()


def pass_commitment(pass_id: int, event_id: str, wallet: str) -> bytes:
    data = u64_le(pass_id) + address_bytes(event_id) + address_bytes(wallet)
    return keccak256(data)


def commitments_match(expected: bytes, presented: bytes) -> bool:
    return hmac.compare_digest(bytes(expected), bytes(presented))


@dataclass
class PassPayload:
    event_id: str
    wallet: str
    pass_id: Optional[int] = None
    presented_hash: Optional[bytes] = None
    client_timestamp: Optional[int] = None
    reference: Optional[str] = None

    @property
    def is_compact(self):
        return self.pass_id is not None


def _decode_hash(value) -> bytes:
    if not isinstance(value, str) or not value:
        raise ProtocolError(AbortCode.INVALID_PAYLOAD, "Missing pass hash")
    stripped = value[2:] if value.startswith("0x") else value
    if len(stripped) == ID_LENGTH * 2 and _HEX_RE.match(stripped):
        return bytes.fromhex(stripped)
    try:
        raw = base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        raise ProtocolError(AbortCode.INVALID_PAYLOAD, "Pass hash is neither base64 nor hex")
    if len(raw) != ID_LENGTH:
        raise ProtocolError(AbortCode.INVALID_PAYLOAD, "Pass hash must be 32 bytes")
    return raw


def _optional_int(value):
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_pass_payload(data: Union[str, bytes, dict]) -> PassPayload:
    """Accept the compact {e,p,u,t,ref} or the legacy {event_id,user_address,pass_hash,...} form."""
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except ValueError:
            raise ProtocolError(AbortCode.INVALID_PAYLOAD, "Pass payload is not JSON")
    if not isinstance(data, dict):
        raise ProtocolError(AbortCode.INVALID_PAYLOAD, "Pass payload must be an object")

    if "e" in data and "p" in data and "u" in data:
        pass_id = data["p"]
        if isinstance(pass_id, str) and pass_id.isdigit():
            pass_id = int(pass_id)
        u64_le(pass_id)
        return PassPayload(
            event_id=normalize_address(data["e"]),
            wallet=normalize_address(data["u"]),
            pass_id=pass_id,
            client_timestamp=_optional_int(data.get("t")),
            reference=data.get("ref"),
        )

    if "event_id" in data and "user_address" in data:
        presented = data.get("pass_hash", data.get("registration_hash"))
        return PassPayload(
            event_id=normalize_address(data["event_id"]),
            wallet=normalize_address(data["user_address"]),
            presented_hash=_decode_hash(presented),
            client_timestamp=_optional_int(data.get("timestamp")),
        )

    raise ProtocolError(AbortCode.INVALID_PAYLOAD, "Unrecognised pass payload schema")


def build_compact_payload(pass_id: int, event_id: str, wallet: str, now: int) -> dict:
    commitment = pass_commitment(pass_id, event_id, wallet)
    return {
        "e": normalize_address(event_id),
        "p": pass_id,
        "u": normalize_address(wallet),
        "t": now,
        "ref": commitment.hex()[:8],
    }


def build_legacy_payload(event_id: str, wallet: str, commitment: bytes,
                         registered_at: int, now: int) -> dict:
    return {
        "event_id": normalize_address(event_id),
        "user_address": normalize_address(wallet),
        "pass_hash": base64.b64encode(commitment).decode("ascii"),
        "registered_at": registered_at,
        "timestamp": now,
    }
