"""Shell execution tool."""

import asyncio
import logging
from typing import Any

from parley.services.tools.base import (
    BaseTool,
    ToolArgumentError,
    ToolDefinition,
    ToolParameter,
    decode_arguments,
)

logger = logging.getLogger(__name__)


class ExecShellTool(BaseTool):
    def definition(self) -> ToolDefinition:
        return ToolDefinition(
            name="exec_shell",
            description=(
                "Execute a shell command on the user's system. Use this when the user asks you "
                "to run commands, create files, or perform system operations."
            ),
            parameters=[
                ToolParameter(name="command", type="string", description="The shell command to execute"),
                ToolParameter(
                    name="working_directory", type="string",
                    description="Optional working directory for the command",
                    required=False,
                ),
            ],
        )

    def parse_arguments(self, raw: str) -> dict[str, Any]:
        args = decode_arguments(raw)
        if not isinstance(args.get("command"), str) or not args["command"].strip():
            raise ToolArgumentError("no command specified")
        return args

    async def execute(self, **kwargs: Any) -> str:
        command = kwargs["command"]
        cwd = kwargs.get("working_directory") or None
        logger.info(f"exec_shell: {command!r} (cwd={cwd})")

        try:
            proc = await asyncio.create_subprocess_exec(
                "sh", "-c", command,
                cwd=cwd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as e:
            return f"Command failed with error: {e}\nOutput: "

        try:
            stdout, _ = await proc.communicate()
        except asyncio.CancelledError:
            proc.kill()
            await proc.wait()
            raise

        output = stdout.decode(errors="replace")
        if proc.returncode != 0:
            return f"Command failed with error: exit status {proc.returncode}\nOutput: {output}"
        return output
