"""Shared test fixtures."""

import asyncio

import pytest
from sqlalchemy import text
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

from parley.chat.session import ChatSession, State
from parley.core.database import init_db
from parley.models.chat import Message
from parley.services.llm.base import BaseGenerator, GenerateConfig
from parley.services.store import ChatStore, StoreError

# In-memory SQLite with StaticPool so all connections share one DB
test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# Placed in a script, makes the fake stream block until cancelled.
HANG = object()


@pytest.fixture(autouse=True)
def setup_test_db():
    """Create all tables before each test, drop after."""
    init_db(test_engine)
    yield
    SQLModel.metadata.drop_all(test_engine)
    with test_engine.begin() as conn:
        conn.execute(text("DROP TABLE IF EXISTS chats_fts"))


@pytest.fixture
def store():
    return ChatStore(test_engine)


class FakeGenerator(BaseGenerator):
    """Plays back one scripted list of events per stream call."""

    def __init__(self, *scripts, title="A Friendly Greeting"):
        self.scripts = list(scripts)
        self.title = title
        self.requests: list[tuple[list[Message], list, GenerateConfig]] = []
        self.generate_calls: list[tuple[list[Message], GenerateConfig]] = []

    async def generate(self, messages, config):
        self.generate_calls.append((list(messages), config))
        if isinstance(self.title, Exception):
            raise self.title
        return Message(role="assistant", content=self.title)

    async def stream(self, messages, tools, config):
        self.requests.append((list(messages), tools, config))
        for item in self.scripts.pop(0):
            if item is HANG:
                await asyncio.Event().wait()
            elif isinstance(item, Exception):
                raise item
            else:
                yield item
            await asyncio.sleep(0)


class FailingStore(ChatStore):
    """Store whose creates fail until `healthy` is set, and whose updates fail while `update_error` is set."""

    def __init__(self, bind, healthy=False):
        super().__init__(bind)
        self.healthy = healthy
        self.update_error: str | None = None

    def create_chat(self, chat):
        if not self.healthy:
            raise StoreError("disk full")
        return super().create_chat(chat)

    def update_chat(self, chat, update_mask):
        if self.update_error:
            raise StoreError(self.update_error)
        return super().update_chat(chat, update_mask)


@pytest.fixture
def make_session(store):
    """Build a session whose mailbox is an asyncio.Queue."""
    def _make(generator, session_store=None, **kwargs):
        mailbox: asyncio.Queue = asyncio.Queue()
        session = ChatSession(
            generator,
            session_store or store,
            GenerateConfig(model="test-model"),
            post=mailbox.put_nowait,
            **kwargs,
        )
        return session, mailbox
    return _make


async def settle(session: ChatSession, mailbox: asyncio.Queue, timeout: float = 2.0) -> list:
    """Deliver mailbox events until the session waits on the user again."""
    delivered = []
    while True:
        if mailbox.empty() and session.state in (State.IDLE, State.AWAITING_CONFIRM):
            return delivered
        event = await asyncio.wait_for(mailbox.get(), timeout=timeout)
        session.handle(event)
        delivered.append(event)


async def deliver(session: ChatSession, mailbox: asyncio.Queue, count: int) -> list:
    """Deliver exactly `count` events."""
    delivered = []
    for _ in range(count):
        event = await asyncio.wait_for(mailbox.get(), timeout=2.0)
        session.handle(event)
        delivered.append(event)
    return delivered

