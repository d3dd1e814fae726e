from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from ..auth import get_current_user
from ..notifications import NotificationDispatcher, MAX_PAGE_SIZE
from ..schemas.notifications import ActionOkOut, NotificationListOut

router = APIRouter()


def get_dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher()


@router.get('/my', response_model=NotificationListOut)
async def my_notifications(
    limit: int = Query(20, ge=1, le=MAX_PAGE_SIZE),
    cursor: Optional[datetime] = None,
    current_user: dict = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    rows = await dispatcher.list_for(current_user['id'], limit=limit, cursor=cursor)
    return {
        'notifications': rows,
        'unread_count': await dispatcher.unread_count(current_user['id']),
        'next_cursor': rows[-1].created_at if len(rows) == limit else None,
    }


@router.post('/{notification_id}/read', response_model=ActionOkOut)
async def read_one(
    notification_id: int,
    current_user: dict = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    if not await dispatcher.mark_read(notification_id, current_user['id']):
        raise HTTPException(404, 'Notification not found')
    return {'ok': True}


@router.post('/read-all', response_model=ActionOkOut)
async def read_all(
    current_user: dict = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    return {'ok': True, 'count': await dispatcher.mark_all_read(current_user['id'])}
