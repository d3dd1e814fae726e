"""
Persistence for connection requests.

The two races the state machine cares about are closed here, at the storage
layer: duplicate creation fails on the partial unique index over the
canonical pair, and every transition is a single conditional UPDATE whose
affected-row count decides success.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update, or_, and_
from sqlalchemy.exc import IntegrityError

from .errors import Conflict
from .models import AsyncSessionLocal
from .models.connection_requests import (
    ConnectionRequest,
    ConnectionStatus,
    RequestStatus,
    canonical_pair,
)

logger = logging.getLogger(__name__)


def _active_clause():
    return or_(
        ConnectionRequest.status == RequestStatus.PENDING.value,
        and_(
            ConnectionRequest.status == RequestStatus.APPROVED.value,
            ConnectionRequest.connection_status != ConnectionStatus.REJECTED.value,
        ),
    )


class ConnectionRequestStore:

    def __init__(self, session_factory=AsyncSessionLocal):
        self.session_factory = session_factory

    async def insert(self, sender_id: int, receiver_id: int, initial_message: Optional[str] = None) -> ConnectionRequest:
        low, high = canonical_pair(sender_id, receiver_id)
        async with self.session_factory() as session:
            request = ConnectionRequest(
                sender_id=sender_id,
                receiver_id=receiver_id,
                pair_low=low,
                pair_high=high,
                status=RequestStatus.PENDING.value,
                connection_status=ConnectionStatus.PENDING.value,
                initial_message=initial_message,
            )
            session.add(request)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                logger.info(f"Active request already exists for pair {low}:{high}")
                raise Conflict('Connection request already exists')
            await session.refresh(request)
            return request

    async def get(self, request_id: str) -> Optional[ConnectionRequest]:
        async with self.session_factory() as session:
            q = await session.execute(select(ConnectionRequest).where(ConnectionRequest.id == request_id))
            return q.scalars().first()

    async def find_active_between(self, user_a: int, user_b: int) -> Optional[ConnectionRequest]:
        low, high = canonical_pair(user_a, user_b)
        async with self.session_factory() as session:
            q = await session.execute(
                select(ConnectionRequest).where(
                    ConnectionRequest.pair_low == low,
                    ConnectionRequest.pair_high == high,
                    _active_clause(),
                )
            )
            return q.scalars().first()

    async def find_approved_between(self, user_a: int, user_b: int) -> Optional[ConnectionRequest]:
        """Latest approved request for the pair, including ones rejected after approval."""
        low, high = canonical_pair(user_a, user_b)
        async with self.session_factory() as session:
            q = await session.execute(
                select(ConnectionRequest)
                .where(
                    ConnectionRequest.pair_low == low,
                    ConnectionRequest.pair_high == high,
                    ConnectionRequest.status == RequestStatus.APPROVED.value,
                )
                .order_by(ConnectionRequest.created_at.desc())
            )
            return q.scalars().first()

    async def update_if(self, request_id: str, expected: Dict[str, Any], values: Dict[str, Any]) -> Optional[ConnectionRequest]:
        """
        Apply ``values`` only if every column in ``expected`` still holds the
        given value. Returns the updated row, or None when no row matched.
        """
        conditions = [ConnectionRequest.id == request_id]
        for column, value in expected.items():
            conditions.append(getattr(ConnectionRequest, column) == value)
        values = dict(values, updated_at=datetime.now(timezone.utc))

        async with self.session_factory() as session:
            result = await session.execute(
                update(ConnectionRequest)
                .where(*conditions)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            if result.rowcount == 0:
                return None
            q = await session.execute(select(ConnectionRequest).where(ConnectionRequest.id == request_id))
            return q.scalars().first()

    async def list_for(self, user_id: int, direction: str = 'received') -> List[ConnectionRequest]:
        column = ConnectionRequest.sender_id if direction == 'sent' else ConnectionRequest.receiver_id
        async with self.session_factory() as session:
            q = await session.execute(
                select(ConnectionRequest)
                .where(column == user_id)
                .order_by(ConnectionRequest.created_at.desc())
            )
            return q.scalars().all()
