from fastapi import APIRouter
from .connections import router as connections_router
from .messages import router as messages_router
from .notifications import router as notifications_router

router = APIRouter()
router.include_router(connections_router, prefix='/connections', tags=['connections'])
router.include_router(messages_router, prefix='/messages', tags=['messages'])
router.include_router(notifications_router, prefix='/notifications', tags=['notifications'])
