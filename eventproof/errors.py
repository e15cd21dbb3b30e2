"""
Abort codes shared by every entry point.

Codes 1-5 keep the event module's numbering. Callers map codes to
user-facing text and must not infer anything beyond the documented name.
"""

from enum import IntEnum


class AbortCode(IntEnum):
    NOT_ORGANIZER = 1
    EVENT_NOT_ACTIVE = 2
    EVENT_ALREADY_COMPLETED = 3
    INVALID_CAPACITY = 4
    INVALID_TIMESTAMP = 5
    NOT_SPONSOR = 6
    INVALID_CAPABILITY = 7
    ALREADY_REGISTERED = 8
    ALREADY_CLAIMED = 9
    AIRDROP_NOT_FOUND = 10
    AIRDROP_NOT_ACTIVE = 11
    AIRDROP_EXPIRED = 12
    INSUFFICIENT_FUNDS = 13
    NOT_ELIGIBLE = 14
    INVALID_DISTRIBUTION = 15
    EVENT_NOT_FOUND = 16
    NOT_REGISTERED = 17
    INVALID_STATE_TRANSITION = 18
    ESCROW_NOT_FOUND = 19
    ESCROW_ALREADY_SETTLED = 20
    ALREADY_RATED = 21
    INVALID_RATING = 22
    INVALID_AMOUNT = 23
    INVALID_PAYLOAD = 24
    PROFILE_NOT_FOUND = 25


HTTP_STATUS = {
    AbortCode.NOT_ORGANIZER: 403,
    AbortCode.EVENT_NOT_ACTIVE: 409,
    AbortCode.EVENT_ALREADY_COMPLETED: 409,
    AbortCode.INVALID_CAPACITY: 400,
    AbortCode.INVALID_TIMESTAMP: 400,
    AbortCode.NOT_SPONSOR: 403,
    AbortCode.INVALID_CAPABILITY: 403,
    AbortCode.ALREADY_REGISTERED: 409,
    AbortCode.ALREADY_CLAIMED: 409,
    AbortCode.AIRDROP_NOT_FOUND: 404,
    AbortCode.AIRDROP_NOT_ACTIVE: 409,
    AbortCode.AIRDROP_EXPIRED: 410,
    AbortCode.INSUFFICIENT_FUNDS: 402,
    AbortCode.NOT_ELIGIBLE: 403,
    AbortCode.INVALID_DISTRIBUTION: 400,
    AbortCode.EVENT_NOT_FOUND: 404,
    AbortCode.NOT_REGISTERED: 404,
    AbortCode.INVALID_STATE_TRANSITION: 409,
    AbortCode.ESCROW_NOT_FOUND: 404,
    AbortCode.ESCROW_ALREADY_SETTLED: 409,
    AbortCode.ALREADY_RATED: 409,
    AbortCode.INVALID_RATING: 400,
    AbortCode.INVALID_AMOUNT: 400,
    AbortCode.INVALID_PAYLOAD: 400,
    AbortCode.PROFILE_NOT_FOUND: 404,
}


class ProtocolError(Exception):
    """A violated precondition. The whole transaction is aborted."""

    def __init__(self, code, message=None):
        self.code = AbortCode(code)
        self.message = message or self.code.name.replace("_", " ").capitalize()
        super().__init__(f"{self.code.name} ({int(self.code)}): {self.message}")

    @property
    def http_status(self):
        return HTTP_STATUS.get(self.code, 400)

    def to_dict(self):
        return {
            "success": False,
            "code": int(self.code),
            "error_code": self.code.name,
            "message": self.message,
        }
