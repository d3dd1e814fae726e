"""
Private messages between connected members.

``MessageStore`` only persists and reads rows; text passes through the
contact filter before it is written. ``ConversationService`` puts the
message gate in front of every send and marks a conversation read when it
is opened.
"""
import logging
from dataclasses import dataclass, field
from typing import List

from sqlalchemy import select, update

from . import core
from .content_filter import filter_personal_info
from .errors import Forbidden, NotFound
from .gate import MessageGate
from .models import AsyncSessionLocal
from .models.messages import Message
from .notifications import NotificationDispatcher, NotificationKind
from .profiles import ProfileDirectory

logger = logging.getLogger(__name__)


@dataclass
class AppendResult:
    message: Message
    blocked_items: List[str] = field(default_factory=list)


class MessageStore:
    """Message rows. Content is filtered on the way in; raw text is never stored."""

    def __init__(self, session_factory=AsyncSessionLocal, profiles: ProfileDirectory = None):
        self.session_factory = session_factory
        self.profiles = profiles or ProfileDirectory(session_factory)

    async def append(self, sender_id: int, receiver_id: int, raw_content: str) -> AppendResult:
        if sender_id == receiver_id:
            raise Forbidden('Cannot send message to yourself')
        result = filter_personal_info(raw_content)
        async with self.session_factory() as session:
            m = Message(sender_id=sender_id, receiver_id=receiver_id, content=result.filtered, is_read=False)
            session.add(m)
            await session.commit()
            await session.refresh(m)
        return AppendResult(message=m, blocked_items=result.blocked_items)

    async def list_conversation(self, user_a: int, user_b: int) -> List[dict]:
        async with self.session_factory() as session:
            q = select(Message).where(
                ((Message.sender_id == user_a) & (Message.receiver_id == user_b)) |
                ((Message.sender_id == user_b) & (Message.receiver_id == user_a))
            ).order_by(Message.created_at.asc(), Message.id.asc())
            res = await session.execute(q)
            messages = res.scalars().all()

        names = await self.profiles.display_names(m.sender_id for m in messages)
        return [
            {
                'id': m.id,
                'sender_id': m.sender_id,
                'receiver_id': m.receiver_id,
                'content': m.content,
                'is_read': m.is_read,
                'created_at': m.created_at,
                'sender': {'id': m.sender_id, 'display_name': names.get(m.sender_id, 'Someone')},
            }
            for m in messages
        ]

    async def mark_read(self, receiver_id: int, sender_id: int) -> int:
        async with self.session_factory() as session:
            res = await session.execute(
                update(Message)
                .where(
                    Message.receiver_id == receiver_id,
                    Message.sender_id == sender_id,
                    Message.is_read.is_(False),
                )
                .values(is_read=True)
            )
            await session.commit()
            return res.rowcount


class ConversationService:
    """Sending goes through the gate every time; opening a conversation marks it read."""

    def __init__(
        self,
        gate: MessageGate = None,
        messages: MessageStore = None,
        profiles: ProfileDirectory = None,
        notifier: NotificationDispatcher = None,
    ):
        self.profiles = profiles or ProfileDirectory()
        self.gate = gate or MessageGate()
        self.messages = messages or MessageStore(profiles=self.profiles)
        self.notifier = notifier or NotificationDispatcher(profiles=self.profiles)

    async def send(self, sender_id: int, receiver_id: int, content: str) -> AppendResult:
        if sender_id == receiver_id:
            raise Forbidden('Cannot send message to yourself')

        decision = await self.gate.can_message(sender_id, receiver_id)
        if not decision.allowed:
            raise Forbidden(decision.message, reason=decision.reason.value)

        result = await self.messages.append(sender_id, receiver_id, content)
        if result.blocked_items:
            core.CONTACT_INFO_BLOCKED.labels(channel='message').inc(len(result.blocked_items))
            logger.warning(f"Blocked personal info from user {sender_id}: {result.blocked_items}")

        await self.notifier.notify(receiver_id, NotificationKind.MESSAGE, {
            'actor_id': sender_id,
            'message_id': result.message.id,
            'content': result.message.content,
        })
        return result

    async def open(self, viewer_id: int, peer_id: int) -> dict:
        if not await self.gate.can_view_conversation(viewer_id, peer_id):
            raise NotFound('Conversation not found or not approved')

        marked = await self.messages.mark_read(viewer_id, peer_id)
        if marked:
            logger.info(f"Marked {marked} messages from user {peer_id} read for user {viewer_id}")
        return {
            'messages': await self.messages.list_conversation(viewer_id, peer_id),
            'other_user': await self.profiles.summary(peer_id),
        }
