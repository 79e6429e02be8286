"""Tests for chat persistence and search."""

import pytest

from parley.models.chat import Chat, Message, ToolCall
from parley.services.store import ChatNotFoundError, StoreError


def _chat(title=None, content="hello", created=0, **kwargs):
    return Chat(
        title=title,
        creation_timestamp=created,
        update_timestamp=created,
        messages=[Message(role="user", content=content), Message(role="assistant", content=f"re: {content}")],
        **kwargs,
    )


def test_create_and_get(store):
    call = ToolCall(id="t1", name="exec_shell", arguments='{"command": "ls"}')
    chat = Chat(messages=[
        Message(role="user", content="list files"),
        Message(role="assistant", tool_calls=[call]),
        Message(role="tool", content="a\nb\n", tool_call_id="t1"),
    ])
    created = store.create_chat(chat)
    assert created.creation_timestamp > 0
    assert created.update_timestamp >= created.creation_timestamp

    fetched = store.get_chat(chat.id)
    assert fetched.messages == chat.messages
    assert fetched.messages[1].tool_calls[0] == call


def test_get_missing_chat(store):
    with pytest.raises(ChatNotFoundError, match="chat not found: nope"):
        store.get_chat("nope")


def test_files_and_tags_are_sorted_and_deduplicated(store):
    chat = _chat(files=["b.py", "a.py", "b.py"], tags=["z", "github/o/r", "z"])
    created = store.create_chat(chat)
    assert created.files == ["a.py", "b.py"]
    assert created.tags == ["github/o/r", "z"]


def test_update_masked_fields_only(store):
    chat = store.create_chat(_chat(title="Old", created=1000))
    changed = chat.model_copy(update={"title": "New", "favorite": True})
    updated = store.update_chat(changed, ["title"])
    assert updated.title == "New"
    assert updated.favorite is False
    assert updated.update_timestamp > chat.update_timestamp


def test_update_without_changes_keeps_timestamp(store):
    chat = store.create_chat(_chat(title="Same", created=1000))
    updated = store.update_chat(chat, ["title", "messages"])
    assert updated.update_timestamp == chat.update_timestamp


def test_update_rejects_unknown_fields(store):
    chat = store.create_chat(_chat())
    with pytest.raises(StoreError, match="invalid update mask fields: id"):
        store.update_chat(chat, ["id", "title"])


def test_update_missing_chat(store):
    with pytest.raises(ChatNotFoundError):
        store.update_chat(_chat(title="x"), ["title"])


def test_update_appends_messages(store):
    chat = store.create_chat(_chat())
    longer = chat.model_copy(update={"messages": chat.messages + [Message(role="user", content="more")]})
    store.update_chat(longer, ["messages"])
    assert [m.content for m in store.get_chat(chat.id).messages] == ["hello", "re: hello", "more"]


def test_list_newest_first_with_pagination(store):
    for i in range(5):
        store.create_chat(_chat(title=f"chat {i}", created=1000 + i))

    page, token = store.list_chats(page_size=2)
    assert [c.title for c in page] == ["chat 4", "chat 3"]
    assert token == "2"

    page, token = store.list_chats(page_size=2, page_token=token)
    assert [c.title for c in page] == ["chat 2", "chat 1"]

    page, token = store.list_chats(page_size=2, page_token=token)
    assert [c.title for c in page] == ["chat 0"]
    assert token == ""


def test_list_orders_by_update(store):
    first = store.create_chat(_chat(title="first", created=1000))
    store.create_chat(_chat(title="second", created=2000))
    store.update_chat(first.model_copy(update={"title": "first again"}), ["title"])

    by_update, _ = store.list_chats()
    assert [c.title for c in by_update] == ["first again", "second"]
    by_creation, _ = store.list_chats(order_by="creation_timestamp desc")
    assert [c.title for c in by_creation] == ["second", "first again"]


def test_list_filters(store):
    store.create_chat(_chat(title="tagged", tags=["github/o/r", "work"], created=1000))
    store.create_chat(_chat(title="half", tags=["work"], created=2000))
    store.create_chat(_chat(title="fav", favorite=True, created=3000))

    tagged, _ = store.list_chats(tags=["work", "github/o/r"])
    assert [c.title for c in tagged] == ["tagged"]
    favorites, _ = store.list_chats(favorite=True)
    assert [c.title for c in favorites] == ["fav"]


def test_list_rejects_bad_arguments(store):
    with pytest.raises(StoreError, match="invalid page token"):
        store.list_chats(page_token="abc")
    with pytest.raises(StoreError, match="invalid order"):
        store.list_chats(order_by="title")


def test_search(store):
    store.create_chat(_chat(title="Rust lifetimes", content="explain borrowing"))
    store.create_chat(_chat(title="Pasta", content="carbonara recipe"))

    found, token = store.search_chats("carbonara")
    assert [c.title for c in found] == ["Pasta"]
    assert token == ""
    found, _ = store.search_chats("lifetimes")
    assert [c.title for c in found] == ["Rust lifetimes"]


def test_search_sees_updated_title(store):
    chat = store.create_chat(_chat(title="Draft"))
    store.update_chat(chat.model_copy(update={"title": "Kubernetes networking"}), ["title"])
    found, _ = store.search_chats("kubernetes")
    assert [c.id for c in found] == [chat.id]
    assert store.search_chats("draft")[0] == []


def test_delete_hides_chat(store):
    chat = store.create_chat(_chat(title="Secret", content="hidden words"))
    store.delete_chat(chat.id)

    with pytest.raises(ChatNotFoundError):
        store.get_chat(chat.id)
    assert store.list_chats()[0] == []
    assert store.search_chats("hidden")[0] == []
    with pytest.raises(ChatNotFoundError):
        store.delete_chat(chat.id)


def test_latest_chat(store):
    with pytest.raises(ChatNotFoundError):
        store.latest_chat()
    store.create_chat(_chat(title="old", created=1000))
    store.create_chat(_chat(title="new", created=2000))
    assert store.latest_chat().title == "new"
