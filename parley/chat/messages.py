"""Display-layer messages.

A runtime message is what the transcript shows. It does not map 1:1 to a
persisted `Message`: one assistant turn can show up as reasoning, content
and one tool-call entry per call. Errored runtime messages are displayed
but never persisted on their own.
"""

import itertools
from dataclasses import dataclass, field
from enum import Enum

from parley.chat.markdown import Block, parse_blocks
from parley.models.chat import Message, ToolCall

_ids = itertools.count(1)


class Kind(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    REASONING = "reasoning"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"


def format_tool_call(tool_call: ToolCall) -> str:
    return f"{tool_call.name}\n```json\n{tool_call.arguments or '{}'}\n```"


@dataclass
class RuntimeMessage:
    kind: Kind
    content: str = ""
    streaming: bool = False
    error: str | None = None
    tool_call: ToolCall | None = None
    tool_call_id: str = ""
    id: str = field(default_factory=lambda: f"m{next(_ids)}")
    blocks: list[Block] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.blocks = parse_blocks(self.content)

    @classmethod
    def user(cls, content: str, error: str | None = None) -> "RuntimeMessage":
        return cls(Kind.USER, content, error=error)

    @classmethod
    def system(cls, content: str) -> "RuntimeMessage":
        return cls(Kind.SYSTEM, content)

    @classmethod
    def assistant(cls, content: str = "", streaming: bool = False, error: str | None = None) -> "RuntimeMessage":
        return cls(Kind.ASSISTANT, content, streaming=streaming, error=error)

    @classmethod
    def reasoning(cls, content: str = "", streaming: bool = False, error: str | None = None) -> "RuntimeMessage":
        return cls(Kind.REASONING, content, streaming=streaming, error=error)

    @classmethod
    def tool_call_request(cls, tool_call: ToolCall, error: str | None = None) -> "RuntimeMessage":
        return cls(Kind.TOOL_CALL, format_tool_call(tool_call), tool_call=tool_call, error=error)

    @classmethod
    def tool_result(cls, tool_call_id: str, content: str, error: str | None = None) -> "RuntimeMessage":
        return cls(Kind.TOOL_RESULT, content, tool_call_id=tool_call_id, error=error)

    def append_content(self, text: str) -> None:
        self.content += text
        self.blocks = parse_blocks(self.content)

    def finalize(self, error: str | None = None) -> None:
        self.streaming = False
        if error is not None:
            self.error = error

    def selection(self, block_index: int = -1) -> tuple[str, str]:
        """Content and file extension of a block, or of the whole message."""
        if 0 <= block_index < len(self.blocks):
            block = self.blocks[block_index]
            return block.content, block.ext
        return self.content, "md"


def from_persisted(message: Message) -> list[RuntimeMessage]:
    """Rebuild the runtime messages for a stored message, errors included."""
    if message.role == "user":
        return [RuntimeMessage.user(message.content, error=message.error)]
    if message.role == "system":
        return [RuntimeMessage.system(message.content)]
    if message.role == "tool":
        return [RuntimeMessage.tool_result(message.tool_call_id, message.content, error=message.error)]

    result = []
    if message.reasoning:
        result.append(RuntimeMessage.reasoning(message.reasoning, error=message.error))
    if message.content or not message.tool_calls:
        result.append(RuntimeMessage.assistant(message.content, error=message.error))
    for tool_call in message.tool_calls:
        result.append(RuntimeMessage.tool_call_request(tool_call, error=message.error))
    return result


def from_chat_messages(messages: list[Message]) -> list[RuntimeMessage]:
    return [rm for m in messages for rm in from_persisted(m)]
