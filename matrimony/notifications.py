"""
Notification side effects.

The state machine and the conversation service hand events to
``NotificationDispatcher.notify`` after their own write has committed.
Delivery is best-effort: a failure here is logged and dropped, it never
reaches the caller.
"""
import enum
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError

from . import core
from .kafka_producer import publish
from .models import AsyncSessionLocal
from .models.notifications import Notification
from .profiles import ProfileDirectory

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 50
PREVIEW_LENGTH = 80


class NotificationKind(str, enum.Enum):
    REQUEST = 'request'
    REQUEST_APPROVED = 'request_approved'
    REQUEST_REJECTED = 'request_rejected'
    MESSAGE = 'message'


def _preview(text: Optional[str]) -> str:
    text = (text or '').strip()
    if len(text) <= PREVIEW_LENGTH:
        return text
    return text[:PREVIEW_LENGTH - 3].rstrip() + '...'


def render(kind: NotificationKind, actor_name: str, payload: Dict[str, Any]) -> Dict[str, Optional[str]]:
    request_id = payload.get('request_id')
    if kind == NotificationKind.REQUEST:
        return {
            'title': f'New connection request from {actor_name}',
            'message': payload.get('message') or 'Wants to connect with you',
            'link': f'/messaging/request/{request_id}',
            'dedupe_key': f'request:{request_id}',
        }
    if kind == NotificationKind.REQUEST_APPROVED:
        return {
            'title': f'{actor_name} accepted your connection request',
            'message': 'You can now continue to the compatibility questionnaire',
            'link': f'/messaging/connect/{request_id}',
            'dedupe_key': f'request_approved:{request_id}',
        }
    if kind == NotificationKind.REQUEST_REJECTED:
        return {
            'title': f'{actor_name} declined your connection request',
            'message': payload.get('reason') or 'The request was declined',
            'link': f'/messaging/request/{request_id}',
            'dedupe_key': f'request_rejected:{request_id}',
        }
    return {
        'title': f'New message from {actor_name}',
        'message': _preview(payload.get('content')),
        'link': f"/messaging/{payload.get('actor_id')}",
        'dedupe_key': None,
    }


class NotificationDispatcher:

    def __init__(self, session_factory=AsyncSessionLocal, profiles: ProfileDirectory = None):
        self.session_factory = session_factory
        self.profiles = profiles or ProfileDirectory(session_factory)

    async def notify(self, user_id: int, kind: NotificationKind, payload: Dict[str, Any]) -> Optional[Notification]:
        """Fire-and-forget; returns the stored row, or None if nothing was stored."""
        try:
            kind = NotificationKind(kind)
            actor_id = payload.get('actor_id')
            actor_name = await self.profiles.display_name(actor_id) if actor_id is not None else 'Someone'
            rendered = render(kind, actor_name, payload)
            notification = await self._store(user_id, kind, rendered, payload)
            if core.KAFKA_PRODUCER:
                await publish(core.NOTIFICATIONS_TOPIC, {
                    'user_id': user_id,
                    'type': kind.value,
                    'title': rendered['title'],
                    'link': rendered['link'],
                    'payload': payload,
                }, key=str(user_id))
            return notification
        except Exception as e:
            logger.error(f"Failed to dispatch {kind} notification to user {user_id}: {e}")
            return None

    async def _store(self, user_id: int, kind: NotificationKind, rendered: Dict[str, Optional[str]], payload: Dict[str, Any]) -> Optional[Notification]:
        async with self.session_factory() as session:
            n = Notification(
                user_id=user_id,
                type=kind.value,
                title=rendered['title'],
                message=rendered['message'],
                link=rendered['link'],
                dedupe_key=rendered['dedupe_key'],
                payload=json.dumps(payload, default=str),
            )
            session.add(n)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                logger.info(f"Duplicate notification {rendered['dedupe_key']} for user {user_id} ignored")
                return None
            await session.refresh(n)
            return n

    async def list_for(self, user_id: int, limit: int = 20, cursor: Optional[datetime] = None) -> List[Notification]:
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        q = select(Notification).where(Notification.user_id == user_id)
        if cursor is not None:
            q = q.where(Notification.created_at < cursor)
        q = q.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit)
        async with self.session_factory() as session:
            res = await session.execute(q)
            return res.scalars().all()

    async def unread_count(self, user_id: int) -> int:
        async with self.session_factory() as session:
            res = await session.execute(
                select(func.count(Notification.id)).where(
                    Notification.user_id == user_id,
                    Notification.is_read.is_(False),
                )
            )
            return res.scalar_one()

    async def mark_read(self, notification_id: int, user_id: int) -> bool:
        async with self.session_factory() as session:
            res = await session.execute(
                update(Notification)
                .where(Notification.id == notification_id, Notification.user_id == user_id)
                .values(is_read=True, read_at=datetime.now(timezone.utc))
            )
            await session.commit()
            return res.rowcount > 0

    async def mark_all_read(self, user_id: int) -> int:
        async with self.session_factory() as session:
            res = await session.execute(
                update(Notification)
                .where(Notification.user_id == user_id, Notification.is_read.is_(False))
                .values(is_read=True, read_at=datetime.now(timezone.utc))
            )
            await session.commit()
            return res.rowcount
