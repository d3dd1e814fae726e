"""
Error taxonomy for the connection and messaging core.

Every error is recoverable: the API layer turns it into a structured JSON
response (see ``main.py``), none of them is fatal to the process.
"""
from typing import Optional


class MatrimonyError(Exception):
    status_code = 500
    code = 'internal_error'

    def __init__(self, detail: str = '', reason: Optional[str] = None):
        super().__init__(detail or self.code)
        self.detail = detail or self.code
        self.reason = reason

    def to_dict(self) -> dict:
        body = {'error': self.code, 'detail': self.detail}
        if self.reason:
            body['reason'] = self.reason
        return body


class InvalidArgument(MatrimonyError):
    """Malformed input or a self-targeting action"""
    status_code = 400
    code = 'invalid_argument'


class NotEligible(MatrimonyError):
    """Target profile is inactive or unverified"""
    # Reported as 404 so inactive profiles look the same as missing ones.
    status_code = 404
    code = 'not_eligible'


class Forbidden(MatrimonyError):
    status_code = 403
    code = 'forbidden'


class NotFound(MatrimonyError):
    """Record absent, or the caller is not one of its participants"""
    status_code = 404
    code = 'not_found'


class Conflict(MatrimonyError):
    """State precondition no longer holds"""
    status_code = 409
    code = 'conflict'
