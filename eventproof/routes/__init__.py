"""
Request helpers shared by the blueprints: caller identity, the injected
clock, body field extraction and the success envelope.
"""

from flask import current_app, jsonify, request
from werkzeug.routing import BaseConverter
from flask_jwt_extended import get_jwt_identity
from eventproof.codec import normalize_address
from eventproof.errors import AbortCode, ProtocolError

_MISSING = object()


class AddressConverter(BaseConverter):
    """Object id or wallet path segment, canonicalised before the view sees it."""
    regex = r'(?:0x)?[0-9a-fA-F]{1,64}'

    def to_python(self, value):
        return normalize_address(value)


def now_ms():
    return current_app.config['CLOCK']()


def current_wallet():
    return normalize_address(get_jwt_identity())


def json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ProtocolError(AbortCode.INVALID_PAYLOAD, "Expected a JSON object body")
    return data


def field(data, key, kind=int, default=_MISSING):
    value = data.get(key)
    if value is None:
        if default is _MISSING:
            raise ProtocolError(AbortCode.INVALID_PAYLOAD, f"Missing field: {key}")
        return default
    # bool is an int subclass; never accept it as a number
    if kind is int and isinstance(value, bool) or not isinstance(value, kind):
        raise ProtocolError(AbortCode.INVALID_PAYLOAD, f"Field {key} must be {kind.__name__}")
    return value


def ok(data, status=200):
    return jsonify({"success": True, "data": data}), status
