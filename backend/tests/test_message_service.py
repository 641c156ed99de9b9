from datetime import datetime, timezone

import pytest
from pymongo import _csot
from pymongo.errors import OperationFailure, ServerSelectionTimeoutError

from app.core.crypto import encrypt_field, hash_recipient_code
from app.core.exceptions import CipherError, StoreUnavailableError, ValidationError
from app.core.message import DEFAULT_SENDER_NAME
from app.services.message_store import TTL_INDEX_NAME


def test_send_then_fetch(service, collection) -> None:
    service.send("AgentX", "Bob", "meet at noon")

    doc = collection.docs[0]
    assert doc["recipientUsernameHash"] == hash_recipient_code("agentx")
    assert "meet at noon" not in doc["encryptedMessageContent"]
    assert "Bob" not in doc["encryptedSenderName"]

    [message] = service.fetch("agentx")
    assert message.sender_name == "Bob"
    assert message.message_text == "meet at noon"
    assert message.created_at == doc["createdAt"]


def test_fetch_is_newest_first(service) -> None:
    for text in ("t1", "t2", "t3"):
        service.send("inbox", "", text)

    assert [m.message_text for m in service.fetch("inbox")] == ["t3", "t2", "t1"]


def test_fetch_never_crosses_inboxes(service) -> None:
    service.send("A", None, "for a")
    service.send("B", None, "for b")

    assert [m.message_text for m in service.fetch("A")] == ["for a"]
    assert [m.message_text for m in service.fetch("B")] == ["for b"]
    assert service.fetch("C") == []


@pytest.mark.parametrize("sender", [None, "", "   "])
def test_blank_sender_becomes_anonymous(service, sender) -> None:
    service.send("inbox", sender, "hi")

    assert service.fetch("inbox")[0].sender_name == DEFAULT_SENDER_NAME


def test_sender_name_is_trimmed(service) -> None:
    service.send("inbox", "  Carol  ", "hi")

    assert service.fetch("inbox")[0].sender_name == "Carol"


@pytest.mark.parametrize("code, body", [("", "hi"), (None, "hi"), ("inbox", ""), ("inbox", None)])
def test_send_requires_code_and_body(service, collection, code, body) -> None:
    with pytest.raises(ValidationError) as exc_info:
        service.send(code, "x", body)

    assert exc_info.value.message == "Missing fields"
    assert collection.docs == []


@pytest.mark.parametrize("code", ["", None])
def test_fetch_requires_code(service, code) -> None:
    with pytest.raises(ValidationError) as exc_info:
        service.fetch(code)

    assert exc_info.value.message == "Anon code required"


def test_send_installs_retention_index(service, collection) -> None:
    service.send("inbox", None, "hi")

    assert TTL_INDEX_NAME in collection.indexes


def test_maintenance_failure_does_not_fail_send(service, collection) -> None:
    def broken():
        raise OperationFailure("not authorized", code=13)

    collection.index_information = broken
    service.send("inbox", None, "still stored")

    assert [m.message_text for m in service.fetch("inbox")] == ["still stored"]


def test_store_outage_surfaces_on_send(service, collection) -> None:
    def down(doc):
        raise ServerSelectionTimeoutError("no servers")

    collection.insert_one = down
    with pytest.raises(StoreUnavailableError):
        service.send("inbox", None, "hi")


def test_corrupted_record_aborts_fetch(service, collection) -> None:
    service.send("inbox", None, "good")
    service.send("inbox", None, "bad")
    collection.docs[1]["encryptedMessageContent"] = "garbage"

    with pytest.raises(CipherError):
        service.fetch("inbox")


def test_truncated_record_aborts_fetch(service, collection) -> None:
    service.send("inbox", None, "ok")
    collection.docs[0]["encryptedMessageContent"] = encrypt_field("x")[:-4]

    with pytest.raises(CipherError):
        service.fetch("inbox")


def test_store_calls_run_under_service_deadline(service, collection) -> None:
    service.timeout = 2.5
    seen = []

    def recording(name, call):
        def wrapper(*args, **kwargs):
            seen.append((name, _csot.get_timeout()))
            return call(*args, **kwargs)
        return wrapper

    collection.insert_one = recording("insert_one", collection.insert_one)
    collection.index_information = recording("index_information", collection.index_information)
    collection.find = recording("find", collection.find)

    service.send("inbox", None, "hi")
    service.fetch("inbox")

    assert seen == [("insert_one", 2.5), ("index_information", 2.5), ("find", 2.5)]
    assert _csot.get_timeout() is None


def test_send_returns_stored_millisecond_time(collection) -> None:
    from app.core.message import MessageService
    from app.services.message_store import MessageStore

    moment = datetime(2024, 5, 6, 7, 8, 9, 123456, tzinfo=timezone.utc)
    service = MessageService(MessageStore(collection, clock=lambda: moment))

    created_at = service.send("inbox", None, "hi")

    assert created_at == moment.replace(microsecond=123000)
    assert collection.docs[0]["createdAt"] == created_at
