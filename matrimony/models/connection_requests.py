import enum
import uuid
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Index, func, text
from . import Base


class RequestStatus(str, enum.Enum):
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'


class ConnectionStatus(str, enum.Enum):
    PENDING = 'pending'
    ACCEPTED = 'accepted'
    QUESTIONNAIRE_SENT = 'questionnaire_sent'
    QUESTIONNAIRE_COMPLETED = 'questionnaire_completed'
    CONNECTED = 'connected'
    REJECTED = 'rejected'


TERMINAL_CONNECTION_STATUSES = frozenset({ConnectionStatus.REJECTED, ConnectionStatus.CONNECTED})
MESSAGING_CONNECTION_STATUSES = frozenset({ConnectionStatus.QUESTIONNAIRE_COMPLETED, ConnectionStatus.CONNECTED})

# A request occupies its pair while pending, or approved and not yet rejected.
ACTIVE_REQUEST_PREDICATE = "status = 'pending' OR (status = 'approved' AND connection_status <> 'rejected')"


def canonical_pair(user_a: int, user_b: int):
    a, b = sorted([user_a, user_b])
    return a, b


def _new_request_id() -> str:
    return str(uuid.uuid4())


class ConnectionRequest(Base):
    __tablename__ = 'connection_requests'
    id = Column(String(36), primary_key=True, default=_new_request_id)
    sender_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), index=True, nullable=False)
    receiver_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), index=True, nullable=False)
    pair_low = Column(Integer, nullable=False)
    pair_high = Column(Integer, nullable=False)
    status = Column(String(32), nullable=False, default=RequestStatus.PENDING.value)
    connection_status = Column(String(32), nullable=False, default=ConnectionStatus.PENDING.value)
    initial_message = Column(Text, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index(
            'uix_connection_requests_active_pair',
            'pair_low',
            'pair_high',
            unique=True,
            postgresql_where=text(ACTIVE_REQUEST_PREDICATE),
            sqlite_where=text(ACTIVE_REQUEST_PREDICATE),
        ),
        Index('ix_connection_requests_pair', 'pair_low', 'pair_high'),
    )

    def involves(self, user_id: int) -> bool:
        return user_id in (self.sender_id, self.receiver_id)

    def counterpart_of(self, user_id: int) -> int:
        return self.receiver_id if user_id == self.sender_id else self.sender_id
