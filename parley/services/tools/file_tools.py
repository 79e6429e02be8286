"""File reading tool for the model."""

from pathlib import Path
from typing import Any

from parley.services.tools.base import (
    BaseTool,
    ToolArgumentError,
    ToolDefinition,
    ToolParameter,
    decode_arguments,
)


class ReadFilesTool(BaseTool):
    def definition(self) -> ToolDefinition:
        return ToolDefinition(
            name="read_files",
            description=(
                "Read the contents of one or more files. Use this to examine file contents "
                "before making changes or to understand code structure."
            ),
            parameters=[
                ToolParameter(name="paths", type="array", items="string", description="List of file paths to read"),
            ],
        )

    def parse_arguments(self, raw: str) -> dict[str, Any]:
        args = decode_arguments(raw)
        if not args.get("paths"):
            raise ToolArgumentError("no paths specified")
        if not isinstance(args["paths"], list) or not all(isinstance(p, str) for p in args["paths"]):
            raise ToolArgumentError("paths must be a list of strings")
        return args

    async def execute(self, **kwargs: Any) -> str:
        sections = []
        for path in kwargs["paths"]:
            file_path = Path(path).expanduser()
            try:
                sections.append(f"=== {path} ===\n{file_path.read_text()}")
            except UnicodeDecodeError:
                sections.append(f"=== {path} ===\nError: {path} is not a text file")
            except OSError as e:
                sections.append(f"=== {path} ===\nError: {e}")
        return "\n\n".join(sections)
