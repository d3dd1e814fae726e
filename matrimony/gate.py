"""
Message gate: decides, on every send, whether two users may message.
"""
import enum
from dataclasses import dataclass
from typing import Optional

from .models.connection_requests import (
    ConnectionStatus,
    RequestStatus,
    MESSAGING_CONNECTION_STATUSES,
)
from .store import ConnectionRequestStore


class DenyReason(str, enum.Enum):
    NO_CONNECTION = 'no_connection'
    NOT_APPROVED_YET = 'not_approved_yet'
    QUESTIONNAIRE_PENDING = 'questionnaire_pending'


DENY_MESSAGES = {
    DenyReason.NO_CONNECTION: 'You need an approved connection request before messaging this user',
    DenyReason.NOT_APPROVED_YET: 'Your connection request has not been approved yet',
    DenyReason.QUESTIONNAIRE_PENDING: 'Message request must be approved and questionnaire completed first. Please complete the compatibility questionnaire.',
}


@dataclass(frozen=True)
class GateDecision:
    allowed: bool
    reason: Optional[DenyReason] = None

    @property
    def message(self) -> str:
        return DENY_MESSAGES[self.reason] if self.reason else ''


PERMIT = GateDecision(True)


class MessageGate:

    def __init__(self, store: ConnectionRequestStore = None):
        self.store = store or ConnectionRequestStore()

    async def can_message(self, user_a: int, user_b: int) -> GateDecision:
        request = await self.store.find_active_between(user_a, user_b)
        if request is None:
            return GateDecision(False, DenyReason.NO_CONNECTION)
        if request.status != RequestStatus.APPROVED.value:
            return GateDecision(False, DenyReason.NOT_APPROVED_YET)
        if ConnectionStatus(request.connection_status) not in MESSAGING_CONNECTION_STATUSES:
            return GateDecision(False, DenyReason.QUESTIONNAIRE_PENDING)
        return PERMIT

    async def can_view_conversation(self, user_a: int, user_b: int) -> bool:
        return await self.store.find_approved_between(user_a, user_b) is not None
