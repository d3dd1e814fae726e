import pytest
from sqlalchemy import select

from matrimony.connections import ConnectionStateMachine
from matrimony.content_filter import CONTACT_PLACEHOLDER
from matrimony.errors import Conflict, Forbidden, NotFound
from matrimony.gate import DenyReason, MessageGate
from matrimony.messages import ConversationService, MessageStore
from matrimony.models import AsyncSessionLocal
from matrimony.models.messages import Message
from matrimony.notifications import NotificationKind
from matrimony.store import ConnectionRequestStore


@pytest.fixture
def machine(notifier):
    return ConnectionStateMachine(notifier=notifier)


@pytest.fixture
def conversations(notifier):
    return ConversationService(notifier=notifier)


async def _stored_messages():
    async with AsyncSessionLocal() as session:
        res = await session.execute(select(Message).order_by(Message.id))
        return res.scalars().all()


@pytest.mark.asyncio
async def test_gate_denies_without_request(make_user):
    alice = await make_user()
    bob = await make_user()
    decision = await MessageGate().can_message(alice.id, bob.id)
    assert not decision.allowed
    assert decision.reason == DenyReason.NO_CONNECTION


@pytest.mark.asyncio
async def test_gate_denies_pending_request(machine, make_user):
    alice = await make_user()
    bob = await make_user()
    await machine.create_request(alice.id, bob.id)
    decision = await MessageGate().can_message(bob.id, alice.id)
    assert decision.reason == DenyReason.NOT_APPROVED_YET


@pytest.mark.asyncio
@pytest.mark.parametrize('connection_status, allowed', [
    ('pending', False),
    ('accepted', False),
    ('questionnaire_sent', False),
    ('questionnaire_completed', True),
    ('connected', True),
])
async def test_gate_follows_connection_status(make_user, connection_status, allowed):
    alice = await make_user()
    bob = await make_user()
    store = ConnectionRequestStore()
    request = await store.insert(alice.id, bob.id)
    await store.update_if(request.id, {'status': 'pending'}, {'status': 'approved', 'connection_status': connection_status})

    for a, b in ((alice.id, bob.id), (bob.id, alice.id)):
        decision = await MessageGate().can_message(a, b)
        assert decision.allowed is allowed
        if not allowed:
            assert decision.reason == DenyReason.QUESTIONNAIRE_PENDING


@pytest.mark.asyncio
@pytest.mark.parametrize('connection_status', ['questionnaire_completed', 'connected'])
async def test_gate_denies_unapproved_status_regardless_of_connection_status(make_user, connection_status):
    alice = await make_user()
    bob = await make_user()
    store = ConnectionRequestStore()
    request = await store.insert(alice.id, bob.id)
    await store.update_if(request.id, {'status': 'pending'}, {'connection_status': connection_status})
    assert not (await MessageGate().can_message(alice.id, bob.id)).allowed

    await store.update_if(request.id, {'status': 'pending'}, {'status': 'rejected'})
    decision = await MessageGate().can_message(alice.id, bob.id)
    assert not decision.allowed
    assert decision.reason == DenyReason.NO_CONNECTION


@pytest.mark.asyncio
async def test_send_is_refused_until_questionnaire_completed(machine, conversations, make_user):
    alice = await make_user()
    bob = await make_user()
    request = await machine.create_request(alice.id, bob.id)
    await machine.transition(request.id, bob.id, status='approved')

    with pytest.raises(Forbidden) as exc:
        await conversations.send(alice.id, bob.id, "hello")
    assert exc.value.reason == DenyReason.QUESTIONNAIRE_PENDING.value
    assert await _stored_messages() == []


@pytest.mark.asyncio
async def test_append_stores_filtered_text_only(make_user):
    alice = await make_user()
    bob = await make_user()
    result = await MessageStore().append(alice.id, bob.id, "call 5551234567")

    assert result.blocked_items == ['5551234567']
    assert result.message.content == f"call {CONTACT_PLACEHOLDER}"
    assert result.message.is_read is False
    stored = await _stored_messages()
    assert [m.content for m in stored] == [f"call {CONTACT_PLACEHOLDER}"]


@pytest.mark.asyncio
async def test_append_to_self_is_forbidden(make_user):
    alice = await make_user()
    with pytest.raises(Forbidden):
        await MessageStore().append(alice.id, alice.id, "note to self")


@pytest.mark.asyncio
async def test_mark_read_only_touches_one_direction(make_user):
    alice = await make_user()
    bob = await make_user()
    store = MessageStore()
    await store.append(alice.id, bob.id, "one")
    await store.append(alice.id, bob.id, "two")
    await store.append(bob.id, alice.id, "reply")

    assert await store.mark_read(bob.id, alice.id) == 2
    assert await store.mark_read(bob.id, alice.id) == 0
    flags = {m.content: m.is_read for m in await _stored_messages()}
    assert flags == {'one': True, 'two': True, 'reply': False}


@pytest.mark.asyncio
async def test_list_conversation_is_oldest_first_with_sender_names(make_user):
    alice = await make_user('Alice', 'Khan')
    bob = await make_user('Bob', None)
    carol = await make_user()
    store = MessageStore()
    await store.append(alice.id, bob.id, "first")
    await store.append(bob.id, alice.id, "second")
    await store.append(carol.id, bob.id, "elsewhere")
    await store.append(alice.id, bob.id, "third")

    conversation = await store.list_conversation(bob.id, alice.id)
    assert [m['content'] for m in conversation] == ['first', 'second', 'third']
    assert conversation[0]['sender'] == {'id': alice.id, 'display_name': 'Alice Khan'}
    assert conversation[1]['sender'] == {'id': bob.id, 'display_name': 'Bob'}


@pytest.mark.asyncio
async def test_open_requires_an_approved_request(conversations, machine, make_user):
    alice = await make_user()
    bob = await make_user()
    with pytest.raises(NotFound):
        await conversations.open(alice.id, bob.id)

    await machine.create_request(alice.id, bob.id)
    with pytest.raises(NotFound):
        await conversations.open(bob.id, alice.id)


@pytest.mark.asyncio
async def test_end_to_end_connection_then_message(machine, conversations, make_user, notifier):
    alice = await make_user('Alice', 'Khan')
    bob = await make_user('Bob', 'Ahmed')

    request = await machine.create_request(alice.id, bob.id, "hi, email me at a@b.com")
    assert CONTACT_PLACEHOLDER in request.initial_message
    assert 'a@b.com' not in request.initial_message

    request = await machine.transition(request.id, bob.id, status='approved')
    assert request.connection_status == 'accepted'
    assert not (await MessageGate().can_message(alice.id, bob.id)).allowed
    with pytest.raises(Forbidden):
        await conversations.send(alice.id, bob.id, "hello?")

    await machine.transition(request.id, alice.id, connection_status='connected')
    assert (await MessageGate().can_message(alice.id, bob.id)).allowed

    sent = await conversations.send(alice.id, bob.id, "call 5551234567")
    assert '5551234567' not in sent.message.content
    assert sent.blocked_items == ['5551234567']
    assert sent.message.is_read is False
    user_id, kind, payload = notifier.sent[-1]
    assert (user_id, kind) == (bob.id, NotificationKind.MESSAGE)
    assert '5551234567' not in payload['content']

    view = await conversations.open(bob.id, alice.id)
    assert [m['content'] for m in view['messages']] == [f"call {CONTACT_PLACEHOLDER}"]
    assert view['messages'][0]['is_read'] is True
    assert view['other_user'] == {'id': alice.id, 'display_name': 'Alice Khan', 'id_verified': True}
    assert all(m.is_read for m in await _stored_messages())


@pytest.mark.asyncio
async def test_history_stays_readable_after_later_rejection(machine, conversations, make_user):
    alice = await make_user()
    bob = await make_user()
    request = await machine.create_request(alice.id, bob.id)
    await machine.transition(request.id, bob.id, status='approved', connection_status='questionnaire_completed')
    await conversations.send(bob.id, alice.id, "salaam")
    await machine.transition(request.id, alice.id, connection_status='rejected')

    with pytest.raises(Forbidden):
        await conversations.send(bob.id, alice.id, "are you there?")
    view = await conversations.open(alice.id, bob.id)
    assert [m['content'] for m in view['messages']] == ['salaam']


@pytest.mark.asyncio
async def test_connected_pair_cannot_be_rejected_later(machine, conversations, make_user):
    alice = await make_user()
    bob = await make_user()
    request = await machine.create_request(alice.id, bob.id)
    await machine.transition(request.id, bob.id, status='approved', connection_status='connected')

    with pytest.raises(Conflict):
        await machine.transition(request.id, alice.id, connection_status='rejected')
    sent = await conversations.send(bob.id, alice.id, "still here")
    assert sent.message.content == "still here"
