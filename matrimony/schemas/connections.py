from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field
from ..models.connection_requests import ConnectionStatus, RequestStatus

class ConnectionRequestIn(BaseModel):
    receiver_id: int
    message: Optional[str] = Field(None, max_length=1000)

class TransitionIn(BaseModel):
    status: Optional[RequestStatus] = None
    connection_status: Optional[ConnectionStatus] = None
    rejection_reason: Optional[str] = Field(None, max_length=500)

class ConnectionRequestOut(BaseModel):
    id: str
    sender_id: int
    receiver_id: int
    status: str
    connection_status: str
    initial_message: Optional[str] = None
    rejection_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class CounterpartOut(BaseModel):
    id: int
    display_name: str

class ConnectionRequestListItem(BaseModel):
    request: ConnectionRequestOut
    counterpart: CounterpartOut

class ConnectionRequestListOut(BaseModel):
    requests: List[ConnectionRequestListItem]
