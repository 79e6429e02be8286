"""Chat session state machine.

The session owns all mutable chat state and is driven from a single event
loop: the UI calls `submit`, `cancel`, `approve` and `reject`, and feeds
every mailbox event back through `handle`. Background tasks (the stream
producer and tool execution) never touch session state; they only post
events through the `post` callable the session was created with.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Union

from parley.chat.messages import RuntimeMessage, from_chat_messages
from parley.chat.navigation import Cursor
from parley.models.chat import INTERRUPTED, Chat, Message, ToolCall
from parley.services.llm.base import (
    BaseGenerator,
    ContentChunk,
    GenerateConfig,
    GenerationMetrics,
    GeneratorError,
    ModelUsage,
    ReasoningChunk,
    ReasoningEffort,
    StopReason,
    StreamEvent,
    ToolCallEvent,
    Usage,
)
from parley.services.store import ChatStore, StoreError
from parley.services.summary import generate_title
from parley.services.tools.base import BaseTool, ToolError, UnknownToolError
from parley.services.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

# Minimum delay between two render requests while streaming (~15 fps).
RENDER_INTERVAL = 0.066

TOOL_CANCELLED = "[Tool execution cancelled by user]"
UPDATE_MASK = ["messages", "files", "tags"]


class State(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    AWAITING_CONFIRM = "awaiting_confirm"
    EXECUTING = "executing"


# Mailbox events

@dataclass
class StreamEventReceived:
    event: StreamEvent


@dataclass
class RenderRequested:
    pass


@dataclass
class StreamDone:
    error: str | None = None
    interrupted: bool = False


@dataclass
class ToolFinished:
    tool_call: ToolCall
    result: str = ""
    cancelled: bool = False


SessionEvent = Union[StreamEventReceived, RenderRequested, StreamDone, ToolFinished]


class ChatSession:
    def __init__(
        self,
        generator: BaseGenerator,
        store: ChatStore,
        config: GenerateConfig,
        *,
        post: Callable[[SessionEvent], Any],
        chat: Chat | None = None,
        additional_messages: list[Message] | None = None,
        registry: ToolRegistry | None = None,
        files: list[str] | None = None,
        tags: list[str] | None = None,
        summary_model: str = "",
        clock: Callable[[], float] = time.monotonic,
    ):
        self.generator = generator
        self.store = store
        self.config = config
        self.post = post
        self.registry = registry
        self.summary_model = summary_model
        self.clock = clock

        self.chat = chat or Chat()
        self.created = chat is not None
        self.additional_messages = list(additional_messages or [])
        self.files = list(self.chat.files) + list(files or [])
        self.tags = list(self.chat.tags) + list(tags or [])

        self.state = State.IDLE
        self.messages: list[RuntimeMessage] = from_chat_messages(self.chat.messages)
        self.cursor = Cursor(self.messages)

        self.pending_user: Message | None = None
        self._pending_user_message: RuntimeMessage | None = None

        # Builders for the stream in flight
        self._response: list[str] = []
        self._reasoning: list[str] = []
        self.tool_calls: list[ToolCall] = []
        self._content_message: RuntimeMessage | None = None
        self._reasoning_message: RuntimeMessage | None = None
        self._stream_messages: list[RuntimeMessage] = []

        # Tool confirmation
        self._tool_queue: list[ToolCall] = []
        self.pending_tool_call: ToolCall | None = None
        self.pending_tool_args: dict[str, Any] | None = None
        self._pending_tool: BaseTool | None = None

        self.last_usage = Usage()
        self.usage = Usage()
        self.stop_reason = ""
        self.metrics: dict = {}

        self._stream_task: asyncio.Task | None = None
        self._tool_task: asyncio.Task | None = None
        self.title_task: asyncio.Task | None = None

    # --- State queries ---

    @property
    def streaming(self) -> bool:
        return self.state == State.STREAMING

    @property
    def awaiting_confirm(self) -> bool:
        return self.state == State.AWAITING_CONFIRM

    @property
    def busy(self) -> bool:
        return self.state in (State.STREAMING, State.EXECUTING)

    @property
    def tools_enabled(self) -> bool:
        return self.registry is not None

    def request_messages(self) -> list[Message]:
        messages = self.additional_messages + self.chat.messages
        if self.pending_user is not None:
            messages = messages + [self.pending_user]
        return messages

    # --- Commands ---

    def submit(self, text: str) -> bool:
        """Stage a user message and start streaming the reply."""
        text = text.strip()
        if self.state != State.IDLE or not text:
            return False
        self.pending_user = Message(role="user", content=text)
        self._pending_user_message = RuntimeMessage.user(text)
        self.messages.append(self._pending_user_message)
        self._start_stream()
        return True

    def cancel(self) -> bool:
        """Interrupt the stream or the running tool. Returns False when there is nothing to cancel."""
        if self.state == State.STREAMING and self._stream_task is not None:
            self._stream_task.cancel()
            return True
        if self.state == State.EXECUTING and self._tool_task is not None:
            self._tool_task.cancel()
            return True
        return False

    def approve(self) -> bool:
        if self.state != State.AWAITING_CONFIRM:
            return False
        tool_call, tool, args = self.pending_tool_call, self._pending_tool, self.pending_tool_args or {}
        self._clear_pending_tool()
        self.state = State.EXECUTING
        self._tool_task = asyncio.create_task(self._execute(tool_call, tool, args))
        self._tool_task.add_done_callback(
            lambda task: self._on_task_done(task, ToolFinished(tool_call, cancelled=True))
        )
        return True

    def reject(self) -> bool:
        if self.state != State.AWAITING_CONFIRM:
            return False
        tool_call = self.pending_tool_call
        self._clear_pending_tool()
        self._cancel_tools(tool_call)
        return True

    def cycle_reasoning_effort(self) -> ReasoningEffort:
        self.config.reasoning_effort = self.config.reasoning_effort.next()
        return self.config.reasoning_effort

    def shutdown(self) -> None:
        for task in (self._stream_task, self._tool_task):
            if task is not None and not task.done():
                task.cancel()

    # --- Event handling ---

    def handle(self, event: SessionEvent) -> None:
        if isinstance(event, StreamEventReceived):
            self._on_stream_event(event.event)
        elif isinstance(event, StreamDone):
            self._on_stream_done(event)
        elif isinstance(event, ToolFinished):
            self._on_tool_finished(event)

    def _push(self, message: RuntimeMessage) -> RuntimeMessage:
        self.messages.append(message)
        self._stream_messages.append(message)
        return message

    def _on_stream_event(self, event: StreamEvent) -> None:
        if self.state != State.STREAMING:
            return
        if isinstance(event, ContentChunk):
            self._response.append(event.text)
            if self._content_message is None:
                self._content_message = self._push(RuntimeMessage.assistant(streaming=True))
            self._content_message.append_content(event.text)
        elif isinstance(event, ReasoningChunk):
            self._reasoning.append(event.text)
            if self._reasoning_message is None:
                self._reasoning_message = self._push(RuntimeMessage.reasoning(streaming=True))
            self._reasoning_message.append_content(event.text)
        elif isinstance(event, ToolCallEvent):
            self.tool_calls.append(event.tool_call)
            self._push(RuntimeMessage.tool_call_request(event.tool_call))
        elif isinstance(event, ModelUsage):
            self.last_usage.merge(event.usage)
        elif isinstance(event, StopReason):
            self.stop_reason = event.reason
        elif isinstance(event, GenerationMetrics):
            self.metrics = event.data

    def _on_stream_done(self, done: StreamDone) -> None:
        if self.state != State.STREAMING:
            return
        self._stream_task = None
        self.usage.merge(self.last_usage)

        if done.error is not None and not done.interrupted:
            logger.warning(f"Stream failed: {done.error}")
            self._fail_turn(done.error)
            return

        error = INTERRUPTED if done.interrupted else None
        if self._content_message is None and not self.tool_calls:
            self._push(RuntimeMessage.assistant())
        for message in self._stream_messages:
            message.finalize(error)

        assistant = Message(
            role="assistant",
            content="".join(self._response),
            reasoning="".join(self._reasoning),
            tool_calls=list(self.tool_calls),
            error=error,
        )
        turn = [self.pending_user] if self.pending_user is not None else []
        try:
            self._persist(turn + [assistant])
        except StoreError as e:
            logger.error(f"Persisting turn failed: {e}")
            self._fail_turn(str(e))
            return

        self.pending_user = None
        self._pending_user_message = None
        if self.tool_calls and not done.interrupted:
            self._tool_queue = list(self.tool_calls)
            self._next_tool_call()
        else:
            self.state = State.IDLE

    def _fail_turn(self, error: str) -> None:
        """Abort the turn: everything shown for it gets the error, nothing is kept."""
        if not self._stream_messages:
            self._push(RuntimeMessage.assistant())
        for message in self._stream_messages:
            message.finalize(error)
        if self._pending_user_message is not None:
            self._pending_user_message.error = error
        self.pending_user = None
        self._pending_user_message = None
        self._tool_queue = []
        self.state = State.IDLE

    def _on_tool_finished(self, finished: ToolFinished) -> None:
        if self.state != State.EXECUTING:
            return
        self._tool_task = None
        if finished.cancelled:
            self._cancel_tools(finished.tool_call)
            return
        if self._record_tool_result(finished.tool_call, finished.result):
            self._next_tool_call()

    # --- Streaming ---

    def _start_stream(self) -> None:
        self._response = []
        self._reasoning = []
        self.tool_calls = []
        self._content_message = None
        self._reasoning_message = None
        self._stream_messages = []
        self.last_usage = Usage()
        self.stop_reason = ""

        tools = self.registry.definitions() if self.registry is not None else []
        self.state = State.STREAMING
        self._stream_task = asyncio.create_task(
            self._produce(self.request_messages(), tools, replace(self.config))
        )
        self._stream_task.add_done_callback(lambda task: self._on_task_done(task, StreamDone(interrupted=True)))

    def _on_task_done(self, task: asyncio.Task, event: SessionEvent) -> None:
        # a task cancelled before its first step never reaches its own handler
        if task.cancelled():
            self.post(event)

    async def _produce(self, messages: list[Message], tools: list, config: GenerateConfig) -> None:
        """Read the stream and post its events, coalescing render requests."""
        last_render: float | None = None
        render_pending = False
        error: str | None = None
        interrupted = False
        try:
            async for event in self.generator.stream(messages, tools, config):
                self.post(StreamEventReceived(event))
                if not isinstance(event, (ContentChunk, ReasoningChunk, ToolCallEvent)):
                    continue
                now = self.clock()
                if last_render is None or now - last_render >= RENDER_INTERVAL:
                    self.post(RenderRequested())
                    last_render = now
                    render_pending = False
                else:
                    render_pending = True
        except asyncio.CancelledError:
            interrupted = True
        except GeneratorError as e:
            error = str(e)
        except Exception as e:
            logger.exception("Unexpected error while streaming")
            error = f"unexpected error: {e}"

        if render_pending:
            self.post(RenderRequested())
        self.post(StreamDone(error=error, interrupted=interrupted))

    # --- Persistence ---

    def _persist(self, new_messages: list[Message]) -> None:
        """Append messages to the chat record in one store call. Raises StoreError."""
        chat = self.chat.model_copy(update={
            "messages": self.chat.messages + new_messages,
            "files": list(self.files),
            "tags": list(self.tags),
        })
        if self.created:
            self.chat = self.store.update_chat(chat, UPDATE_MASK)
            return
        self.chat = self.store.create_chat(chat)
        self.created = True
        if self.summary_model:
            self.title_task = asyncio.create_task(
                generate_title(self.generator, self.store, self.chat, self.summary_model)
            )

    # --- Tools ---

    def _clear_pending_tool(self) -> None:
        self.pending_tool_call = None
        self.pending_tool_args = None
        self._pending_tool = None

    def _next_tool_call(self) -> None:
        """Ask for confirmation of the next queued call; continue the turn once none are left."""
        while self._tool_queue:
            tool_call = self._tool_queue.pop(0)
            try:
                if self.registry is None:
                    raise UnknownToolError(tool_call.name)
                tool, args = self.registry.parse(tool_call)
            except ToolError as e:
                logger.info(f"Rejected tool call {tool_call.name}: {e}")
                if not self._record_tool_result(tool_call, f"Error: {e}"):
                    return
                continue
            self.pending_tool_call = tool_call
            self.pending_tool_args = args
            self._pending_tool = tool
            self.state = State.AWAITING_CONFIRM
            return
        self._start_stream()

    def _record_tool_result(self, tool_call: ToolCall, content: str) -> bool:
        runtime = RuntimeMessage.tool_result(tool_call.id, content)
        self.messages.append(runtime)
        try:
            self._persist([Message(role="tool", content=content, tool_call_id=tool_call.id)])
        except StoreError as e:
            logger.error(f"Persisting tool result failed: {e}")
            runtime.error = str(e)
            self._tool_queue = []
            self.state = State.IDLE
            return False
        return True

    def _cancel_tools(self, tool_call: ToolCall | None) -> None:
        self.messages.append(RuntimeMessage.tool_result(
            tool_call.id if tool_call else "", TOOL_CANCELLED, error=INTERRUPTED,
        ))
        self._tool_queue = []
        self.state = State.IDLE

    async def _execute(self, tool_call: ToolCall, tool: BaseTool, args: dict[str, Any]) -> None:
        logger.info(f"Tool call: {tool_call.name}({args})")
        try:
            result = await tool.execute(**args)
        except asyncio.CancelledError:
            self.post(ToolFinished(tool_call, cancelled=True))
            return
        except Exception as e:
            logger.exception(f"Tool {tool_call.name} failed")
            result = f"Error executing {tool_call.name}: {e}"
        self.post(ToolFinished(tool_call, result=result))
