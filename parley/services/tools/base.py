"""Base tool interface. All tools the model can call implement this."""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


class ToolError(Exception):
    """A tool call could not be dispatched. The message is reported back to the model."""


class UnknownToolError(ToolError):
    def __init__(self, name: str):
        super().__init__(f"unknown tool: {name}")
        self.name = name


class ToolArgumentError(ToolError):
    pass


def decode_arguments(raw: str) -> dict[str, Any]:
    try:
        args = json.loads(raw or "{}")
    except json.JSONDecodeError as e:
        raise ToolArgumentError(f"failed to parse tool arguments: {e}") from e
    if not isinstance(args, dict):
        raise ToolArgumentError("failed to parse tool arguments: expected a JSON object")
    return args


@dataclass
class ToolParameter:
    name: str
    type: str  # "string" | "integer" | "boolean" | "number" | "array"
    description: str
    required: bool = True
    enum: list[str] | None = None
    items: str | None = None  # element type for arrays


@dataclass
class ToolDefinition:
    name: str
    description: str
    parameters: list[ToolParameter] = field(default_factory=list)

    def json_schema(self) -> dict:
        properties = {}
        required = []
        for param in self.parameters:
            prop: dict[str, Any] = {"type": param.type, "description": param.description}
            if param.enum:
                prop["enum"] = param.enum
            if param.items:
                prop["items"] = {"type": param.items}
            properties[param.name] = prop
            if param.required:
                required.append(param.name)
        return {"type": "object", "properties": properties, "required": required}

    def to_gemini_schema(self) -> dict:
        """Convert to Gemini function declaration format."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.json_schema(),
        }


class BaseTool(ABC):
    @abstractmethod
    def definition(self) -> ToolDefinition:
        """Return the tool's definition for LLM function calling."""
        ...

    def parse_arguments(self, raw: str) -> dict[str, Any]:
        """Decode the raw JSON payload and check required parameters."""
        args = decode_arguments(raw)
        for param in self.definition().parameters:
            if param.required and not args.get(param.name):
                raise ToolArgumentError(f"missing required argument: {param.name}")
        return args

    @abstractmethod
    async def execute(self, **kwargs: Any) -> str:
        """Execute the tool with the given arguments. Returns a string result."""
        ...
