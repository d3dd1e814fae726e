from fastapi import APIRouter, Depends, HTTPException
from ..auth import get_current_user
from ..cache import check_rate_limit
from ..messages import ConversationService
from ..schemas.messages import ConversationOut, MessageIn, SentMessageOut

router = APIRouter()


def get_conversations() -> ConversationService:
    return ConversationService()


@router.post('/', response_model=SentMessageOut, status_code=201)
async def send(
    payload: MessageIn,
    current_user: dict = Depends(get_current_user),
    conversations: ConversationService = Depends(get_conversations),
):
    # Rate limiting - max 100 messages per hour
    if not await check_rate_limit(current_user['id'], "send_message", limit=100, window=3600):
        raise HTTPException(429, "Rate limit exceeded. Too many messages.")

    result = await conversations.send(current_user['id'], payload.receiver_id, payload.content)
    return {
        'message': result.message,
        'blocked_content': result.blocked_items or None,
    }


@router.get('/{peer_id}', response_model=ConversationOut)
async def dialog(
    peer_id: int,
    current_user: dict = Depends(get_current_user),
    conversations: ConversationService = Depends(get_conversations),
):
    # Opening the conversation marks the peer's messages read.
    return await conversations.open(current_user['id'], peer_id)
