"""Chat and message models for conversation persistence."""

import uuid
from typing import Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

# Error sentinel attached to messages whose turn was cut off by the user.
INTERRUPTED = "user interrupt"


def new_chat_id() -> str:
    return uuid.uuid4().hex[:8]


class ToolCall(SQLModel):
    id: str
    name: str
    arguments: str = ""  # raw JSON as sent by the generator


class Message(SQLModel):
    role: str  # "system" | "user" | "assistant" | "tool"
    content: str = ""
    reasoning: str = ""
    tool_calls: list[ToolCall] = Field(default_factory=list)
    tool_call_id: str = ""
    error: Optional[str] = None


class Chat(SQLModel):
    id: str = Field(default_factory=new_chat_id)
    title: Optional[str] = None
    creation_timestamp: int = 0  # microseconds since epoch
    update_timestamp: int = 0
    messages: list[Message] = Field(default_factory=list)
    files: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    favorite: bool = False
    delete_timestamp: Optional[int] = None

    def searchable_content(self) -> str:
        parts = [self.title or ""] + [m.content for m in self.messages]
        return " ".join(p for p in parts if p)


class ChatRow(SQLModel, table=True):
    __tablename__ = "chats"

    id: str = Field(primary_key=True)
    title: Optional[str] = None
    creation_timestamp: int = Field(index=True)
    update_timestamp: int = Field(index=True)
    messages: list = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    files: list = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    tags: list = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    favorite: bool = False
    delete_timestamp: Optional[int] = None
