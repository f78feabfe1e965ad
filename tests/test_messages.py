import pytest
from sqlalchemy.exc import OperationalError

from conftest import count_rows
from pairchat.exceptions import EmptyBody, NotAMember, NotFound, StoreError
from pairchat.models import Message
from pairchat.services.admission import AdmissionController
from pairchat.services.messaging import MessageService
from pairchat.websocket_manager import ConnectionManager


@pytest.fixture
def service(db_session, relay):
    return MessageService(db_session, relay)


@pytest.fixture
async def chat_id(db_session, users):
    ticket = await AdmissionController(db_session).request_conversation(users["alice"], users["bob"])
    return ticket.chat_id


class TestAppendMessage:
    async def test_stores_unread_message(self, service, chat_id, users):
        message = await service.append_message(chat_id, users["alice"], "hi")

        assert message.id is not None
        assert message.text == "hi"
        assert message.sender_id == users["alice"]
        assert message.is_read is False
        assert message.timestamp is not None

    async def test_publishes_after_storing(self, service, relay, chat_id, users):
        message = await service.append_message(chat_id, users["alice"], "hi")

        assert len(relay.published) == 1
        published_chat, event = relay.published[0]
        assert published_chat == chat_id
        assert event["type"] == "new_message"
        assert event["data"]["id"] == message.id
        assert event["data"]["text"] == "hi"

    async def test_non_member_rejected(self, service, relay, db_session, chat_id, users):
        with pytest.raises(NotAMember):
            await service.append_message(chat_id, users["carol"], "let me in")

        assert await count_rows(db_session, Message) == 0
        assert relay.published == []

    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    async def test_empty_body_rejected(self, service, relay, db_session, chat_id, users, text):
        with pytest.raises(EmptyBody):
            await service.append_message(chat_id, users["alice"], text)

        assert await count_rows(db_session, Message) == 0
        assert relay.published == []

    async def test_non_member_with_blank_text_gets_access_error(self, service, chat_id, users):
        with pytest.raises(NotAMember):
            await service.append_message(chat_id, users["carol"], "   ")

    async def test_unknown_chat(self, service, users):
        with pytest.raises(NotFound):
            await service.append_message(404, users["alice"], "hello?")

    async def test_store_failure_publishes_nothing(self, service, relay, chat_id, users, monkeypatch):
        async def broken_create(chat_id, sender_id, text):
            raise OperationalError("INSERT INTO messages", {}, Exception("disk full"))

        monkeypatch.setattr(service.messages, "create", broken_create)

        with pytest.raises(StoreError) as exc_info:
            await service.append_message(chat_id, users["alice"], "hi")

        assert "disk full" not in exc_info.value.detail
        assert relay.published == []

    async def test_relay_failure_keeps_stored_message(self, db_session, chat_id, users):
        class DownRelay(ConnectionManager):
            async def publish(self, chat_id, event):
                raise ConnectionError("redis down")

        service = MessageService(db_session, DownRelay())

        message = await service.append_message(chat_id, users["alice"], "hi")

        assert message.id is not None
        assert await count_rows(db_session, Message) == 1
        assert await service.mark_read(chat_id, users["bob"]) == 1


class TestHistory:
    async def test_history_in_call_order(self, service, chat_id, users):
        texts = [f"message {i}" for i in range(5)]
        for i, text in enumerate(texts):
            sender = users["alice"] if i % 2 == 0 else users["bob"]
            await service.append_message(chat_id, sender, text)

        history = await service.fetch_history(chat_id)

        assert [message.text for message in history] == texts

    async def test_same_timestamp_ordered_by_id(self, service, db_session, chat_id, users):
        first = await service.append_message(chat_id, users["alice"], "first")
        second = await service.append_message(chat_id, users["bob"], "second")
        second.timestamp = first.timestamp
        await db_session.commit()

        history = await service.fetch_history(chat_id)

        assert [message.id for message in history] == [first.id, second.id]

    async def test_empty_history(self, service, chat_id):
        assert await service.fetch_history(chat_id) == []

    async def test_unknown_chat(self, service):
        with pytest.raises(NotFound):
            await service.fetch_history(404)


class TestReadTracking:
    async def test_mark_read_only_touches_other_senders(self, service, chat_id, users):
        await service.append_message(chat_id, users["alice"], "hi")
        await service.append_message(chat_id, users["bob"], "hello")

        updated = await service.mark_read(chat_id, users["bob"])

        assert updated == 1
        history = await service.fetch_history(chat_id)
        assert [(m.text, m.is_read) for m in history] == [("hi", True), ("hello", False)]

    async def test_mark_read_is_idempotent(self, service, chat_id, users):
        await service.append_message(chat_id, users["alice"], "one")
        await service.append_message(chat_id, users["alice"], "two")

        assert await service.mark_read(chat_id, users["bob"]) == 2
        after_first = await service.unread_counts_for(users["bob"])
        assert await service.mark_read(chat_id, users["bob"]) == 0
        after_second = await service.unread_counts_for(users["bob"])

        assert after_first == after_second == {}

    async def test_mark_read_publishes_only_changes(self, service, relay, chat_id, users):
        await service.append_message(chat_id, users["alice"], "hi")
        relay.published.clear()

        await service.mark_read(chat_id, users["bob"])
        await service.mark_read(chat_id, users["bob"])

        assert relay.published == [(chat_id, {
            "type": "messages_read",
            "data": {"chat_id": chat_id, "reader_id": users["bob"], "updated": 1},
        })]

    async def test_mark_read_requires_membership(self, service, chat_id, users):
        with pytest.raises(NotAMember):
            await service.mark_read(chat_id, users["carol"])

    async def test_unread_counts_grouped_by_sender(self, service, db_session, chat_id, users):
        carol_chat = await AdmissionController(db_session).request_conversation(users["carol"], users["bob"])
        await service.append_message(chat_id, users["alice"], "a1")
        await service.append_message(chat_id, users["alice"], "a2")
        await service.append_message(carol_chat.chat_id, users["carol"], "c1")
        await service.append_message(chat_id, users["bob"], "own message")

        assert await service.unread_counts_for(users["bob"]) == {users["alice"]: 2, users["carol"]: 1}
        assert await service.unread_counts_for(users["alice"]) == {users["bob"]: 1}

        await service.mark_read(chat_id, users["bob"])

        assert await service.unread_counts_for(users["bob"]) == {users["carol"]: 1}
