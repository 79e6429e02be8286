"""Tool registry - central place to register and look up all available tools."""

from typing import Any

from parley.models.chat import ToolCall
from parley.services.tools.base import BaseTool, ToolDefinition, UnknownToolError
from parley.services.tools.file_tools import ReadFilesTool
from parley.services.tools.shell import ExecShellTool


class ToolRegistry:
    def __init__(self) -> None:
        self._tools: dict[str, BaseTool] = {}

    def register(self, tool: BaseTool) -> None:
        defn = tool.definition()
        self._tools[defn.name] = tool

    def get(self, name: str) -> BaseTool | None:
        return self._tools.get(name)

    def definitions(self) -> list[ToolDefinition]:
        return [tool.definition() for tool in self._tools.values()]

    def parse(self, tool_call: ToolCall) -> tuple[BaseTool, dict[str, Any]]:
        """Resolve a call to its tool and parsed arguments. Raises ToolError."""
        tool = self.get(tool_call.name)
        if tool is None:
            raise UnknownToolError(tool_call.name)
        return tool, tool.parse_arguments(tool_call.arguments)


def create_default_registry() -> ToolRegistry:
    """Create a registry with all default tools."""
    registry = ToolRegistry()
    registry.register(ExecShellTool())
    registry.register(ReadFilesTool())
    return registry
