"""
Connection request state machine.

A request moves through two fields. ``status`` (pending -> approved |
rejected) is decided once by the receiver. ``connection_status`` then
tracks the post-approval progression (accepted -> questionnaire_sent ->
questionnaire_completed -> connected) and may be set by either participant,
or short-circuited to rejected. ``rejected`` and ``connected`` are terminal.

Writes go through ``ConnectionRequestStore``, which makes each one
conditional on the row still matching what was read here.
"""
import logging
from typing import List, Optional

from . import core
from .content_filter import filter_personal_info
from .errors import Conflict, Forbidden, InvalidArgument, NotEligible, NotFound
from .models.connection_requests import (
    ConnectionRequest,
    ConnectionStatus,
    RequestStatus,
    TERMINAL_CONNECTION_STATUSES,
)
from .notifications import NotificationDispatcher, NotificationKind
from .profiles import ProfileDirectory
from .store import ConnectionRequestStore

logger = logging.getLogger(__name__)

APPROVED_CONNECTION_STATUSES = frozenset({
    ConnectionStatus.ACCEPTED,
    ConnectionStatus.QUESTIONNAIRE_SENT,
    ConnectionStatus.QUESTIONNAIRE_COMPLETED,
    ConnectionStatus.CONNECTED,
})


def _coerce(enum_cls, value, field_name: str):
    if value is None:
        return None
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ', '.join(e.value for e in enum_cls)
        raise InvalidArgument(f'Invalid {field_name} {value!r}. Must be one of: {allowed}')


class ConnectionStateMachine:

    def __init__(
        self,
        store: ConnectionRequestStore = None,
        profiles: ProfileDirectory = None,
        notifier: NotificationDispatcher = None,
    ):
        self.store = store or ConnectionRequestStore()
        self.profiles = profiles or ProfileDirectory()
        self.notifier = notifier or NotificationDispatcher(profiles=self.profiles)

    async def create_request(self, sender_id: int, receiver_id: int, initial_message: Optional[str] = None) -> ConnectionRequest:
        if sender_id == receiver_id:
            raise InvalidArgument('Cannot send request to yourself')

        if not await self.profiles.is_eligible_receiver(receiver_id):
            raise NotEligible('User not found or profile not active')

        note = None
        if initial_message:
            result = filter_personal_info(initial_message)
            if result.contains_blocked_content:
                core.CONTACT_INFO_BLOCKED.labels(channel='request').inc(len(result.blocked_items))
                logger.warning(f"Blocked personal info in request note from user {sender_id}: {result.blocked_items}")
            note = result.filtered

        try:
            request = await self.store.insert(sender_id, receiver_id, note)
        except Conflict:
            core.CONNECTION_CONFLICTS.labels(operation='create').inc()
            raise

        logger.info(f"Connection request {request.id} created: {sender_id} -> {receiver_id}")
        await self.notifier.notify(receiver_id, NotificationKind.REQUEST, {
            'request_id': request.id,
            'actor_id': sender_id,
            'message': note,
        })
        return request

    async def transition(
        self,
        request_id: str,
        actor_id: int,
        status=None,
        connection_status=None,
        rejection_reason: Optional[str] = None,
    ) -> ConnectionRequest:
        status = _coerce(RequestStatus, status, 'status')
        connection_status = _coerce(ConnectionStatus, connection_status, 'connection status')
        if status is None and connection_status is None:
            raise InvalidArgument('Nothing to update')
        if status == RequestStatus.PENDING:
            raise InvalidArgument('Invalid status. Must be "approved" or "rejected"')

        request = await self.store.get(request_id)
        if request is None:
            raise NotFound('Connection request not found')

        if status is not None:
            expected, values = self._status_change(request, actor_id, status, connection_status, rejection_reason)
        else:
            expected, values = self._connection_status_change(request, actor_id, connection_status, rejection_reason)

        updated = await self.store.update_if(request_id, expected, values)
        if updated is None:
            core.CONNECTION_CONFLICTS.labels(operation='transition').inc()
            raise Conflict('Request was modified by another action, reload and retry')

        for field_name in ('status', 'connection_status'):
            if field_name in values:
                core.CONNECTION_TRANSITIONS.labels(field=field_name, value=values[field_name]).inc()
        logger.info(f"Connection request {request_id} updated by user {actor_id}: {values}")

        if status == RequestStatus.APPROVED:
            await self.notifier.notify(updated.sender_id, NotificationKind.REQUEST_APPROVED, {
                'request_id': updated.id,
                'actor_id': actor_id,
            })
        elif status == RequestStatus.REJECTED:
            await self.notifier.notify(updated.sender_id, NotificationKind.REQUEST_REJECTED, {
                'request_id': updated.id,
                'actor_id': actor_id,
                'reason': updated.rejection_reason,
            })
        return updated

    def _status_change(self, request, actor_id, status, connection_status, rejection_reason):
        if actor_id != request.receiver_id:
            raise Forbidden('Only the receiver can approve or reject this request')
        if request.status != RequestStatus.PENDING.value:
            raise Conflict('Request has already been processed')

        values = {'status': status.value}
        if status == RequestStatus.APPROVED:
            connection_status = connection_status or ConnectionStatus.ACCEPTED
            if connection_status not in APPROVED_CONNECTION_STATUSES:
                raise InvalidArgument(f'Cannot approve with connection status {connection_status.value!r}')
        else:
            connection_status = connection_status or ConnectionStatus.REJECTED
            if connection_status != ConnectionStatus.REJECTED:
                raise InvalidArgument('A rejected request must have connection status "rejected"')
            if rejection_reason:
                values['rejection_reason'] = rejection_reason
        values['connection_status'] = connection_status.value
        return {'status': RequestStatus.PENDING.value}, values

    def _connection_status_change(self, request, actor_id, connection_status, rejection_reason):
        if not request.involves(actor_id):
            raise Forbidden('Not a participant of this request')
        if request.status != RequestStatus.APPROVED.value:
            raise Conflict('Request must be approved first')
        if ConnectionStatus(request.connection_status) in TERMINAL_CONNECTION_STATUSES:
            raise Conflict(f'Connection is already {request.connection_status}')

        values = {'connection_status': connection_status.value}
        if connection_status == ConnectionStatus.REJECTED and rejection_reason:
            values['rejection_reason'] = rejection_reason
        expected = {'status': request.status, 'connection_status': request.connection_status}
        return expected, values

    async def get_request(self, request_id: str, actor_id: int) -> ConnectionRequest:
        request = await self.store.get(request_id)
        # same answer for "missing" and "not yours"
        if request is None or not request.involves(actor_id):
            raise NotFound('Connection request not found')
        return request

    async def list_requests(self, user_id: int, direction: str = 'received') -> List[dict]:
        if direction not in ('sent', 'received'):
            raise InvalidArgument('type must be "sent" or "received"')
        requests = await self.store.list_for(user_id, direction)
        names = await self.profiles.display_names(r.counterpart_of(user_id) for r in requests)
        return [
            {
                'request': r,
                'counterpart': {'id': r.counterpart_of(user_id), 'display_name': names.get(r.counterpart_of(user_id), 'Someone')},
            }
            for r in requests
        ]
