from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

class MessageIn(BaseModel):
    receiver_id: int
    content: str = Field(..., min_length=1, max_length=5000)

class SenderOut(BaseModel):
    id: int
    display_name: str

class MessageOut(BaseModel):
    id: int
    sender_id: int
    receiver_id: int
    content: str
    is_read: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class SentMessageOut(BaseModel):
    message: MessageOut
    # raw matches are only echoed back to their own author
    blocked_content: Optional[List[str]] = None

class ConversationMessageOut(MessageOut):
    sender: SenderOut

class OtherUserOut(BaseModel):
    id: int
    display_name: str
    id_verified: bool

class ConversationOut(BaseModel):
    messages: List[ConversationMessageOut]
    other_user: Optional[OtherUserOut] = None
