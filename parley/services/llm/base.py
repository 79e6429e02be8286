"""Abstract generator interface. All providers must implement this."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, AsyncIterator, Union

from parley.models.chat import Message, ToolCall

if TYPE_CHECKING:
    from parley.services.tools.base import ToolDefinition


class GeneratorError(Exception):
    """The generator call failed (transport or API error)."""


class ReasoningEffort(str, Enum):
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    def next(self) -> "ReasoningEffort":
        members = list(ReasoningEffort)
        return members[(members.index(self) + 1) % len(members)]

    @classmethod
    def parse(cls, value: str) -> "ReasoningEffort":
        """Parse the `--think` flag: low/l, medium/m, high/h or empty."""
        aliases = {
            "": cls.NONE,
            "l": cls.LOW, "low": cls.LOW,
            "m": cls.MEDIUM, "medium": cls.MEDIUM,
            "h": cls.HIGH, "high": cls.HIGH,
        }
        try:
            return aliases[value.strip().lower()]
        except KeyError:
            raise ValueError(f"invalid reasoning effort {value!r}: expected low, medium or high") from None


@dataclass
class GenerateConfig:
    model: str
    max_tokens: int = 8192
    temperature: float = 1.0
    reasoning_effort: ReasoningEffort = ReasoningEffort.NONE


# Usage kinds reported by the generator.
INPUT_TOKEN = "input_token"
OUTPUT_TOKEN = "output_token"
OUTPUT_REASONING_TOKEN = "output_reasoning_token"
INPUT_CACHE_READ_TOKEN = "input_cache_read_token"
INPUT_CACHE_WRITE_TOKEN = "input_cache_write_token"


@dataclass
class UsageEntry:
    quantity: int = 0
    price: float = 0.0


@dataclass
class Usage:
    """Per-kind token quantities and prices.

    Snapshots are merged additively: a provider that reports absolute
    totals must emit a single snapshot per call, otherwise counts double.
    """

    entries: dict[str, UsageEntry] = field(default_factory=dict)

    def merge(self, other: "Usage") -> None:
        for kind, entry in other.entries.items():
            current = self.entries.setdefault(kind, UsageEntry())
            current.quantity += entry.quantity
            current.price += entry.price

    def quantity(self, kind: str) -> int:
        entry = self.entries.get(kind)
        return entry.quantity if entry else 0

    @property
    def input_tokens(self) -> int:
        return self.quantity(INPUT_TOKEN) + self.quantity(INPUT_CACHE_READ_TOKEN)

    @property
    def output_tokens(self) -> int:
        return self.quantity(OUTPUT_TOKEN) + self.quantity(OUTPUT_REASONING_TOKEN)

    @property
    def price(self) -> float:
        return sum(entry.price for entry in self.entries.values())


# Stream events

@dataclass
class ContentChunk:
    text: str


@dataclass
class ReasoningChunk:
    text: str


@dataclass
class ToolCallEvent:
    tool_call: ToolCall


@dataclass
class StopReason:
    reason: str


@dataclass
class ModelUsage:
    usage: Usage


@dataclass
class GenerationMetrics:
    data: dict = field(default_factory=dict)


StreamEvent = Union[ContentChunk, ReasoningChunk, ToolCallEvent, StopReason, ModelUsage, GenerationMetrics]


class BaseGenerator(ABC):
    @abstractmethod
    async def generate(self, messages: list[Message], config: GenerateConfig) -> Message:
        """Unary call: return the complete assistant message."""
        ...

    @abstractmethod
    def stream(
        self,
        messages: list[Message],
        tools: list["ToolDefinition"],
        config: GenerateConfig,
    ) -> AsyncIterator[StreamEvent]:
        """Stream a response as events. Raises GeneratorError on transport failure."""
        ...
