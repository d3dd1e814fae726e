from fastapi import APIRouter, Depends, HTTPException, Query
from ..auth import get_current_user
from ..cache import check_rate_limit
from ..connections import ConnectionStateMachine
from ..schemas.connections import (
    ConnectionRequestIn,
    ConnectionRequestListOut,
    ConnectionRequestOut,
    TransitionIn,
)

router = APIRouter()


def get_state_machine() -> ConnectionStateMachine:
    return ConnectionStateMachine()


@router.post('/requests', response_model=ConnectionRequestOut, status_code=201)
async def create_request(
    payload: ConnectionRequestIn,
    current_user: dict = Depends(get_current_user),
    machine: ConnectionStateMachine = Depends(get_state_machine),
):
    # Rate limiting - max 20 connection requests per hour
    if not await check_rate_limit(current_user['id'], "connection_request", limit=20, window=3600):
        raise HTTPException(429, "Rate limit exceeded. Too many connection requests.")
    return await machine.create_request(current_user['id'], payload.receiver_id, payload.message)


@router.get('/requests', response_model=ConnectionRequestListOut)
async def list_requests(
    type: str = Query('received', pattern='^(sent|received)$'),
    current_user: dict = Depends(get_current_user),
    machine: ConnectionStateMachine = Depends(get_state_machine),
):
    return {'requests': await machine.list_requests(current_user['id'], type)}


@router.get('/requests/{request_id}', response_model=ConnectionRequestOut)
async def get_request(
    request_id: str,
    current_user: dict = Depends(get_current_user),
    machine: ConnectionStateMachine = Depends(get_state_machine),
):
    return await machine.get_request(request_id, current_user['id'])


@router.patch('/requests/{request_id}', response_model=ConnectionRequestOut)
async def update_request(
    request_id: str,
    payload: TransitionIn,
    current_user: dict = Depends(get_current_user),
    machine: ConnectionStateMachine = Depends(get_state_machine),
):
    return await machine.transition(
        request_id,
        current_user['id'],
        status=payload.status,
        connection_status=payload.connection_status,
        rejection_reason=payload.rejection_reason,
    )
