from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel

class NotificationOut(BaseModel):
    id: int
    type: str
    title: str
    message: str
    link: Optional[str] = None
    is_read: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class NotificationListOut(BaseModel):
    notifications: List[NotificationOut]
    unread_count: int
    next_cursor: Optional[datetime] = None

class ActionOkOut(BaseModel):
    ok: bool = True
    count: Optional[int] = None
